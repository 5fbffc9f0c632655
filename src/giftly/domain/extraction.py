"""Deterministic field extraction from free-form intake messages.

NO LLM. Uses regex rules and heuristics.
Security: NEVER log raw text (PII).

Every field is driven by an ordered tuple of named ``MatchRule``s. Rules are
sorted by ``priority`` (lowest first) and the first rule that matches wins, so
a rule can be tested on its own or moved without touching its neighbours.
Range rules always run before single-value rules.
"""

import math
import re
from dataclasses import dataclass
from typing import Any, Iterable

from giftly.domain.state import ChatState


@dataclass(frozen=True)
class MatchRule:
    """A named regex rule.

    ``value`` is the field value the rule assigns when it matches; rules that
    capture numbers or phrases leave it as None and the caller reads the
    match groups instead.
    """

    name: str
    priority: int
    pattern: re.Pattern[str]
    value: Any = None

    def search(self, text: str) -> re.Match[str] | None:
        return self.pattern.search(text)


def _ordered(rules: Iterable[MatchRule]) -> tuple[MatchRule, ...]:
    return tuple(sorted(rules, key=lambda r: r.priority))


def first_match(
    rules: Iterable[MatchRule], text: str
) -> tuple[MatchRule, re.Match[str]] | None:
    """Return the first (rule, match) pair in priority order, or None."""
    for rule in rules:
        match = rule.search(text)
        if match:
            return rule, match
    return None


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round half away from zero for positive values (2.5 -> 3)."""
    factor = 10**ndigits
    return math.floor(value * factor + 0.5) / factor


# Whole-number part longer than this is not a plausible count or price
MAX_NUMBER_DIGITS = 9


def parse_positive_number(raw: str) -> float | None:
    """Parse a captured number, or None when it is not a usable positive value."""
    if len(raw.split(".", 1)[0]) > MAX_NUMBER_DIGITS:
        return None
    value = float(raw)
    if not math.isfinite(value) or value <= 0:
        return None
    return value


def parse_positive_int(raw: str) -> int | None:
    value = parse_positive_number(raw)
    return int(value) if value is not None else None


_I = re.IGNORECASE

_QTY_NOUNS = r"(?:people|employees|recipients|gifts|units)"
_PRODUCT_NOUNS = (
    r"(?:hoodies?|shirts?|t-?shirts?|jackets?|bags?|kits?|boxes?|gifts?|mugs?|"
    r"bottles?|notebooks?|devices?|items?|units?|pieces?|pcs)"
)
_APPROX = r"(?:~|about|approx\.?|around)?"
_NUM = r"(\d+(?:\.\d+)?)"
_PER_UNIT = r"(?:each|per\s+(?:person|employee|recipient|unit|head|item)|pp\b)"

# =============================================================================
# quantity
# =============================================================================

QUANTITY_RANGE_RULES = _ordered(
    [
        MatchRule(
            "between_a_and_b",
            10,
            re.compile(rf"\bbetween\s+(\d+)\s+and\s+(\d+)\s*{_QTY_NOUNS}?", _I),
        ),
        MatchRule(
            "a_to_b_noun",
            20,
            re.compile(rf"\b(\d+)\s+to\s+(\d+)\s*{_QTY_NOUNS}\b", _I),
        ),
        MatchRule(
            "a_dash_b_noun",
            30,
            re.compile(rf"\b(\d+)\s*-\s*(\d+)\s*{_QTY_NOUNS}\b", _I),
        ),
    ]
)

QUANTITY_RULES = _ordered(
    [
        # "50 embroidered hoodies", "30 custom kits"
        MatchRule(
            "number_product_noun",
            10,
            re.compile(rf"\b(\d+)\s+(?:(?:embroidered|custom)\s+)?{_PRODUCT_NOUNS}\b", _I),
        ),
        # "60 holiday gifts"
        MatchRule(
            "number_word_quantity_noun",
            20,
            re.compile(r"\b(\d+)\s+(?:\w+\s+)?(?:people|employees|recipients|gifts|units|pcs|items)\b", _I),
        ),
        MatchRule(
            "number_quantity_noun",
            30,
            re.compile(rf"{_APPROX}\s*(\d+)\s*(?:people|employees|recipients|gifts|units|pcs|items)\b", _I),
        ),
        # "for 75 people"
        MatchRule(
            "for_number",
            40,
            re.compile(rf"\bfor\s+{_APPROX}\s*(\d+)\s*(?:people|employees|recipients|guests)?\b", _I),
        ),
        # "sending 75"
        MatchRule(
            "sending_number",
            50,
            re.compile(r"\bsend(?:ing)?\s+(?:to\s+)?(?:~|about)?\s*(\d+)\b", _I),
        ),
        # "40 onboarding kits", "75 welcome boxes"
        MatchRule(
            "swag_context",
            60,
            re.compile(
                rf"{_APPROX}\s*(\d+)\s*(?:swag|kits?|boxes?|welcome\s+kits?|onboarding|"
                r"new\s+hires?|new\s+employees?)\b",
                _I,
            ),
        ),
    ]
)

_LEADING_NUMBER = re.compile(r"^\s*(\d+)\b")
_SWAG_CONTEXT = re.compile(r"swag|kit|box|welcome|onboarding|new\s+hire|new\s+employee", _I)


def extract_quantity(text: str, current: int | None) -> int | None:
    """Extract recipient count.

    A range always wins (and overwrites ``current``); single-value rules and
    the leading-number fallback only fill an unset quantity.
    """
    quantity = current

    hit = first_match(QUANTITY_RANGE_RULES, text)
    if hit:
        _, match = hit
        low, high = parse_positive_int(match.group(1)), parse_positive_int(match.group(2))
        if low is not None and high is not None:
            quantity = int(round_half_up((low + high) / 2))

    if quantity is None:
        for _, match in _matches(QUANTITY_RULES, text):
            n = parse_positive_int(match.group(1))
            if n is not None:
                quantity = n
                break

    if quantity is None:
        start = _LEADING_NUMBER.match(text)
        if start and _SWAG_CONTEXT.search(text):
            quantity = parse_positive_int(start.group(1))

    return quantity


# =============================================================================
# budgetPerUnitUsd
# =============================================================================

BUDGET_RANGE_RULES = _ordered(
    [
        MatchRule(
            "between_a_and_b_each",
            10,
            re.compile(rf"\bbetween\s+{_NUM}\s+and\s+{_NUM}\s*(?:each|per\s|dollars?|USD?)\b", _I),
        ),
        MatchRule(
            "a_to_b_each",
            20,
            re.compile(r"\$?(\d+(?:\.\d+)?)\s+to\s+\$?(\d+(?:\.\d+)?)\s*(?:each|per\s)", _I),
        ),
        MatchRule(
            "a_dash_b_each",
            30,
            re.compile(r"\$?(\d+(?:\.\d+)?)\s*-\s*\$?(\d+(?:\.\d+)?)\s*(?:each|per\s)", _I),
        ),
    ]
)

BUDGET_RULES = _ordered(
    [
        MatchRule("dollar_per_unit", 10, re.compile(rf"\${_NUM}\s*{_PER_UNIT}", _I)),
        MatchRule("number_per_unit", 20, re.compile(rf"{_NUM}\s*{_PER_UNIT}", _I)),
        MatchRule(
            "upper_bound",
            30,
            re.compile(rf"(?:under|<=?|less\s+than|max(?:imum)?|no\s+more\s+than)\s*\$?{_NUM}", _I),
        ),
        # "around $35", "about $40", "~$25", "around 35 per gift"
        MatchRule(
            "approximate",
            40,
            re.compile(
                rf"(?:around|about|~|approx\.?)\s*\$?\s*{_NUM}\s*"
                r"(?:each|per\s+(?:gift|person|employee|recipient|unit)|dollars?)?",
                _I,
            ),
        ),
        # "30 swag around $35"
        MatchRule(
            "approximate_dollar",
            50,
            re.compile(rf"\b(?:around|about|~|approx\.?)\s*\${_NUM}\b", _I),
        ),
        MatchRule("trailing_dollar", 60, re.compile(rf"\$\s*{_NUM}\s*$", _I)),
        # "70$"
        MatchRule("number_dollar_sign", 70, re.compile(rf"\b{_NUM}\s*\$", _I)),
    ]
)


def extract_budget(text: str, current: float | None) -> float | None:
    """Extract the per-unit budget in USD.

    Range midpoints are rounded to cents. Totals ("$5000 for 100 gifts") are
    deliberately not matched.
    """
    budget = current

    hit = first_match(BUDGET_RANGE_RULES, text)
    if hit:
        _, match = hit
        low, high = parse_positive_number(match.group(1)), parse_positive_number(match.group(2))
        if low is not None and high is not None:
            budget = round_half_up((low + high) / 2, 2)

    if budget is None:
        for _, match in _matches(BUDGET_RULES, text):
            n = parse_positive_number(match.group(1))
            if n is not None:
                budget = n
                break

    return budget


# =============================================================================
# shippingType
# =============================================================================

SHIPPING_RULES = _ordered(
    [
        MatchRule(
            "individual_addresses",
            10,
            re.compile(
                r"home\s+address(es)?|individual\s+address(es)?|ship\s+to\s+each|multiple\s+addresses",
                _I,
            ),
            "individual",
        ),
        MatchRule(
            "bulk_location",
            20,
            re.compile(
                r"\bbulk\b|one\s+location|ship\s+to\s+(?:the\s+)?office|single\s+address|to\s+our\s+hq",
                _I,
            ),
            "bulk",
        ),
    ]
)


# =============================================================================
# branding
# =============================================================================

_UNCERTAIN = re.compile(r"not\s+sure|don'?t\s+know|unsure|open\s+to|flexible|no\s+idea", _I)
_BRANDING_VOCAB = re.compile(r"brand|branding|logo|embroidery|engraving|custom", _I)

BRANDING_RULES = _ordered(
    [
        MatchRule("embroidery", 10, re.compile(r"\bembroid(?:er(?:ed)?|ery)\b", _I), "embroidery"),
        MatchRule("laser", 20, re.compile(r"laser|engrav(?:e|ing)", _I), "laser"),
        MatchRule("insert", 30, re.compile(r"\binsert\b|note\s+card|message\s+card", _I), "insert"),
        MatchRule("sticker", 40, re.compile(r"sticker|label", _I), "sticker"),
        MatchRule("no_branding", 50, re.compile(r"no\s+branding|no\s+logo|unbranded", _I), "none"),
    ]
)


def is_uncertain_branding(text: str) -> bool:
    """True when the user is unsure AND talks about branding."""
    return bool(_UNCERTAIN.search(text)) and bool(_BRANDING_VOCAB.search(text))


# =============================================================================
# distributionTiming (bulk) / addressHandling (individual)
# =============================================================================

_UNSURE_WORDS = re.compile(r"\b(?:not\s+sure|don'?t\s+know|unsure|no\s+idea|no\s+clue|idk|skip)\b", _I)

# Only short replies count as "unsure" for the follow-up questions
SHORT_REPLY_MAX_CHARS = 60

DISTRIBUTION_RULES = _ordered(
    [
        MatchRule(
            "all_at_once",
            10,
            re.compile(
                r"\b(?:all\s+at\s+once|delivered\s+at\s+once|one\s+delivery|single\s+delivery|"
                r"all\s+at\s+one\s+time)\b",
                _I,
            ),
            "all_at_once",
        ),
        MatchRule(
            "over_time",
            20,
            re.compile(
                r"\b(?:over\s+time|stored\s+and\s+distribut|stored\s+later|distribut(?:e|ed)\s+later|"
                r"store\s+and\s+distribut)\b",
                _I,
            ),
            "over_time",
        ),
    ]
)

ADDRESS_RULES = _ordered(
    [
        MatchRule(
            "client_provides",
            10,
            re.compile(
                r"\b(?:we(?:\s+will|['’]ll|\s+provide)|we\s+have|i(?:['’]ll|\s+will)\s+provide|provided\s+by\s+us|"
                r"our\s+addresses|provide\s+the\s+addresses)\b",
                _I,
            ),
            "provided",
        ),
        MatchRule(
            "we_handle",
            20,
            re.compile(
                r"\b(?:you\s+(?:handle|collect)|handle\s+collection|handle\s+distribut|you\s+collect|"
                r"handled\s+by\s+(?:you|us))\b",
                _I,
            ),
            "handled_by_us",
        ),
    ]
)


def _short_unsure(text: str) -> bool:
    return bool(_UNSURE_WORDS.search(text)) and len(text) < SHORT_REPLY_MAX_CHARS


# =============================================================================
# international
# =============================================================================

INTERNATIONAL_RULES = _ordered(
    [
        MatchRule(
            "bare_yes",
            10,
            re.compile(r"^\s*(yes|yeah|yep|yup|sure|correct|we do|we have)\s*[.!]?\s*$", _I),
            True,
        ),
        MatchRule(
            "bare_no",
            20,
            re.compile(r"^\s*(no|nope|nah|negative|we don't|we do not|us only|domestic only)\s*[.!]?\s*$", _I),
            False,
        ),
        MatchRule(
            "domestic_phrase",
            30,
            re.compile(
                r"\b(us only|domestic only|no international|across the us|within the us|in the us|domestic)\b",
                _I,
            ),
            False,
        ),
        # Keyword absence never forces False
        MatchRule(
            "international_keyword",
            40,
            re.compile(r"international|outside\s+(?:the\s+)?us|canada|united\s+kingdom|\buk\b|\beu\b|europe|asia", _I),
            True,
        ),
    ]
)


# =============================================================================
# contact
# =============================================================================

_EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}")
_PHONE_PATTERN = re.compile(r"(?:\+?\d[\d\s\-.()]{8,}\d|\b\d{10,}\b)")
_NON_DIGIT = re.compile(r"\D")
MIN_PHONE_DIGITS = 10


def extract_email(text: str) -> str | None:
    match = _EMAIL_PATTERN.search(text)
    return match.group(0).lower() if match else None


def extract_phone(text: str) -> str | None:
    """Return the raw phone-shaped token if it carries at least 10 digits."""
    match = _PHONE_PATTERN.search(text)
    if not match:
        return None
    if len(_NON_DIGIT.sub("", match.group(0))) < MIN_PHONE_DIGITS:
        return None
    return match.group(0).strip()


# =============================================================================
# deadlineText
# =============================================================================

DEADLINE_RULES = _ordered(
    [
        MatchRule("by_phrase", 10, re.compile(r"\b(by\s+(?:end\s+of\s+)?\S+(?:\s+\S+){0,3})", _I)),
        MatchRule("before_phrase", 20, re.compile(r"\b(before\s+\S+(?:\s+\S+){0,3})", _I)),
        MatchRule("need_by", 30, re.compile(r"\b(need(?:ed)?\s+(?:by|before|in)\s+\S+(?:\s+\S+){0,3})", _I)),
        MatchRule("deadline_is", 40, re.compile(r"\b(deadline(?:\s+is)?\s+\S+(?:\s+\S+){0,3})", _I)),
        MatchRule("in_n_units", 50, re.compile(r"\b(in\s+\d+\s+(?:week|month|day)s?)\b", _I)),
        # Month names are capitalised; lower-case "mid-week" is not a deadline
        MatchRule("mid_month", 60, re.compile(r"\b(mid-?[A-Z][a-z]+)")),
        MatchRule("asap", 70, re.compile(r"\b(ASAP)\b", _I)),
        MatchRule("urgent", 80, re.compile(r"\b(urgent(?:ly)?)\b", _I)),
    ]
)


def extract_deadline(text: str) -> str | None:
    """Return the first deadline phrase verbatim. Never parsed into a date."""
    hit = first_match(DEADLINE_RULES, text)
    if not hit:
        return None
    _, match = hit
    return match.group(1).strip()


def _matches(rules: Iterable[MatchRule], text: str) -> Iterable[tuple[MatchRule, re.Match[str]]]:
    """Yield every matching rule in priority order."""
    for rule in rules:
        match = rule.search(text)
        if match:
            yield rule, match


def extract_from_text(text: str, prior: ChatState) -> ChatState:
    """Scan one message and return an updated state.

    Pure and total: never raises and never mutates ``prior``. Fields that are
    not confidently detected in ``text`` are carried over unchanged. Detected
    values overwrite earlier ones, except that single-value quantity and
    budget rules only fill unset fields.

    Args:
        text: Raw user message. NEVER logged.
        prior: State before this message.

    Returns:
        A new ChatState snapshot.
    """
    t = text.strip()
    changes: dict[str, Any] = {
        "quantity": extract_quantity(t, prior.quantity),
        "budget_per_unit_usd": extract_budget(t, prior.budget_per_unit_usd),
    }

    hit = first_match(SHIPPING_RULES, t)
    shipping_type = hit[0].value if hit else prior.shipping_type
    changes["shipping_type"] = shipping_type

    if is_uncertain_branding(t):
        changes["branding"] = None
        changes["branding_needs_qualification"] = True
    else:
        hit = first_match(BRANDING_RULES, t)
        if hit:
            changes["branding"] = hit[0].value

    if shipping_type == "bulk" and prior.distribution_timing is None:
        if _short_unsure(t):
            changes["distribution_timing"] = "unknown"
        else:
            hit = first_match(DISTRIBUTION_RULES, t)
            if hit:
                changes["distribution_timing"] = hit[0].value

    if shipping_type == "individual" and prior.address_handling is None:
        if _short_unsure(t):
            changes["address_handling"] = "unknown"
        else:
            hit = first_match(ADDRESS_RULES, t)
            if hit:
                changes["address_handling"] = hit[0].value

    hit = first_match(INTERNATIONAL_RULES, t)
    if hit:
        changes["international"] = hit[0].value

    email = extract_email(t)
    if email:
        changes["email"] = email

    phone = extract_phone(t)
    if phone:
        changes["phone"] = phone

    deadline = extract_deadline(t)
    if deadline:
        changes["deadline_text"] = deadline

    return prior.replace(**changes)
