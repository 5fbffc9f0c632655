"""Turn orchestration - one call per inbound user message.

Composes extraction, scoring, missing-field resolution and bundle matching,
then asks the optional composer for copy and decides on lead capture.

Turn states (derived, not stored):
- collecting: non-contact fields are still missing
- ready-for-contact: only contact details are missing
- complete: nothing is missing

Security: NEVER log the message, history or contact values (PII).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import Any, Literal

from pydantic import ValidationError

from giftly.composer.contracts import ComposerReply, MessageComposer, TurnContext
from giftly.domain.bundles import SuggestedBundle, suggest_bundles
from giftly.domain.complexity import compute_complexity
from giftly.domain.extraction import extract_from_text, parse_positive_number, round_half_up
from giftly.domain.missing import CONTACT_FIELD, is_contact_only, next_missing
from giftly.domain.questions import question_for_field
from giftly.domain.state import ChatState, ComplexityMode
from giftly.infra.leads import Lead, LeadStore
from giftly.observability.logging import get_logger
from giftly.observability.redaction import safe_log_context

logger = get_logger(__name__)

UNSURE_ACK = "No problem — we can add that later. "
DEFAULT_BUNDLE_WHY = "Fits your budget and typical lead time."

# Fields that get a fixed value when the user cannot answer; others stay open
UNSURE_DEFAULTS: dict[str, dict[str, Any]] = {
    "branding": {"branding": "none"},
    "international": {"international": False},
}

_APOS = r"['’]"

_UNSURE_PATTERN = re.compile(
    rf"^(?:(?:i\s+)?(?:don{_APOS}?t|do\s+not)\s+know"
    rf"|(?:i{_APOS}?m|i\s+am)\s+not\s+sure"
    r"|no\s+idea|not\s+sure|unsure|no\s+clue"
    r"|skip(?:\s+this)?|maybe\s+later|later|pass|dunno"
    r"|rather\s+not\s+say"
    rf"|(?:i\s+)?(?:don{_APOS}?t|do\s+not)\s+have\s+(?:a\s+)?(?:clue|idea))\b"
    r"|^idk$",
    re.IGNORECASE,
)
_TRAILING_PUNCT = re.compile(r"\s*[.!?]+$")

_BARE_NUMBER = re.compile(r"^\s*\$?(\d+(?:\.\d+)?)\s*$")
_BARE_RANGES: tuple[re.Pattern[str], ...] = (
    re.compile(r"^\s*between\s+(\d+(?:\.\d+)?)\s+and\s+(\d+(?:\.\d+)?)\s*$", re.IGNORECASE),
    re.compile(r"^\s*(\d+(?:\.\d+)?)\s+to\s+(\d+(?:\.\d+)?)\s*$", re.IGNORECASE),
    re.compile(r"^\s*(\d+(?:\.\d+)?)\s*-\s*(\d+(?:\.\d+)?)\s*$"),
)


@dataclass(frozen=True)
class HistoryEntry:
    role: Literal["user", "assistant"]
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class TurnInput:
    """One inbound message with the caller-owned state and history."""

    message: str
    state: ChatState = field(default_factory=ChatState)
    history: list[HistoryEntry] = field(default_factory=list)


@dataclass(frozen=True)
class TurnResult:
    """Outcome of one turn. ``state`` must be persisted by the caller."""

    assistant_message: str
    state: ChatState
    mode: ComplexityMode
    complexity_score: int
    missing: list[str]
    bundle_suggestions: list[SuggestedBundle] | None = None
    sales_summary: str | None = None
    lead_captured: bool | None = None
    lead_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase response format, omitting unset optionals."""
        out: dict[str, Any] = {
            "assistantMessage": self.assistant_message,
            "state": self.state.to_dict(),
            "mode": self.mode,
            "complexityScore": self.complexity_score,
            "missing": list(self.missing),
        }
        if self.bundle_suggestions:
            out["bundleSuggestions"] = [b.to_dict() for b in self.bundle_suggestions]
        if self.sales_summary is not None:
            out["salesSummary"] = self.sales_summary
        if self.lead_captured is not None:
            out["leadCaptured"] = self.lead_captured
        if self.lead_id is not None:
            out["leadId"] = self.lead_id
        return out


def is_unsure_phrase(message: str) -> bool:
    """True when the reply expresses inability or unwillingness to answer."""
    t = _TRAILING_PUNCT.sub("", message.strip())
    if not t:
        return False
    return bool(_UNSURE_PATTERN.match(t))


def _parse_bare_value(message: str) -> tuple[float, bool] | None:
    """Parse a bare number or bare range.

    Returns:
        (value, is_range) where a range yields its midpoint rounded to cents,
        or None when the message is not a bare positive number/range.
    """
    for pattern in _BARE_RANGES:
        match = pattern.match(message)
        if match:
            low, high = parse_positive_number(match.group(1)), parse_positive_number(match.group(2))
            if low is None or high is None:
                return None
            return round_half_up((low + high) / 2, 2), True

    match = _BARE_NUMBER.match(message)
    if match:
        n = parse_positive_number(match.group(1))
        if n is not None:
            return n, False
    return None


def apply_bare_numeric(message: str, state: ChatState) -> ChatState | None:
    """Assign a bare number/range reply to quantity or budget.

    Quantity is filled first (when both are unset), then budget (when only
    quantity is set). Returns None when the reply is not bare numeric or
    both are already known, so the caller falls through to extraction.
    """
    parsed = _parse_bare_value(message)
    if parsed is None:
        return None
    value, _ = parsed

    if state.quantity is None and state.budget_per_unit_usd is None:
        return state.replace(quantity=int(round_half_up(value)))
    if state.quantity is not None and state.budget_per_unit_usd is None:
        return state.replace(budget_per_unit_usd=value)
    return None


def resolve_next_field(
    missing: list[str],
    mode: ComplexityMode,
    state: ChatState,
) -> str | None:
    """Pick the field to ask for next.

    Contact is only requested once everything else is known, and only for
    non-streamlined tiers with no contact captured yet.
    """
    for key in missing:
        if key != CONTACT_FIELD:
            return key
    if mode != "streamlined" and not state.has_contact() and CONTACT_FIELD in missing:
        return CONTACT_FIELD
    return None


def _next_after_default(missing: list[str]) -> str | None:
    for key in missing:
        if key != CONTACT_FIELD:
            return key
    return CONTACT_FIELD if CONTACT_FIELD in missing else None


def _format_usd(amount: float) -> str:
    if amount == int(amount):
        return str(int(amount))
    return str(amount)


def build_sales_summary(state: ChatState) -> str:
    """Deterministic bullet summary of the known order fields."""
    bullets: list[str] = []
    if state.quantity is not None:
        bullets.append(f"{state.quantity} recipients")
    if state.budget_per_unit_usd is not None:
        bullets.append(f"${_format_usd(state.budget_per_unit_usd)} per gift")
    if state.deadline_text is not None:
        bullets.append(f"Deadline: {state.deadline_text}")
    if state.shipping_type is not None:
        bullets.append(f"Shipping: {state.shipping_type}")
    if state.branding is not None:
        bullets.append(f"Branding: {state.branding}")
    if state.international is not None:
        bullets.append(f"International: {'true' if state.international else 'false'}")
    return ". ".join(bullets) if bullets else "Summary of your request."


def build_fallback_message(
    state: ChatState,
    mode: ComplexityMode,
    next_question: str | None,
    bundles: list[SuggestedBundle],
) -> str:
    """Local assistant message used when the composer is absent or rejected."""
    if next_question:
        return next_question
    if mode == "streamlined" and bundles:
        return (
            "This looks eligible for a streamlined flow. Here are a few ready-to-ship "
            "options. If you'd like, share your email and we'll follow up."
        )
    if mode != "streamlined" and not state.has_contact():
        return "Thanks — what's the best email or phone to follow up with a tailored proposal?"
    return "Thanks — we've got what we need. We'll follow up shortly."


def _annotate(bundles: list[SuggestedBundle], reply: ComposerReply | None) -> list[SuggestedBundle]:
    """Attach a "why" to each computed bundle.

    Only the computed bundles are ever returned; composer entries that alter
    name/price/lead time or invent bundles never match and are dropped.
    """
    annotated = []
    for bundle in bundles:
        why = reply.why_for(bundle) if reply is not None else None
        annotated.append(
            SuggestedBundle(
                name=bundle.name,
                unit_price=bundle.unit_price,
                lead_time_days=bundle.lead_time_days,
                why=why or bundle.why or DEFAULT_BUNDLE_WHY,
            )
        )
    return annotated


def _ask_composer(composer: MessageComposer, context: TurnContext) -> ComposerReply | None:
    """Call the composer once and validate its reply. None means fall back."""
    try:
        raw = composer.compose(context)
    except Exception as e:
        logger.warning(
            "composer raised, using fallback",
            extra={"extra_fields": safe_log_context(error_type=type(e).__name__)},
        )
        return None

    if raw is None:
        return None

    try:
        return ComposerReply.model_validate(raw)
    except ValidationError as e:
        logger.warning(
            "composer reply rejected, using fallback",
            extra={"extra_fields": safe_log_context(error_count=e.error_count())},
        )
        return None


def _capture_lead(
    lead_store: LeadStore,
    state: ChatState,
    mode: ComplexityMode,
    score: int,
    reasons: list[str],
    history: list[HistoryEntry],
) -> str | None:
    """Append a lead; failures are logged and swallowed."""
    lead = Lead(
        state=state.to_dict(),
        mode=mode,
        complexity_score=score,
        reasons=list(reasons),
        history=[h.to_dict() for h in history],
    )
    try:
        return lead_store.append(lead)
    except Exception as e:
        logger.error(
            "lead persistence failed",
            extra={
                "extra_fields": safe_log_context(
                    error_type=type(e).__name__,
                    mode=mode,
                )
            },
        )
        return None


def handle_turn(
    turn: TurnInput,
    *,
    composer: MessageComposer | None = None,
    lead_store: LeadStore | None = None,
) -> TurnResult:
    """Advance the intake by one user message.

    Never mutates ``turn.state``. Composer and lead-store failures degrade
    locally and never raise.

    Args:
        turn: Message, prior state and history. Message/history are NEVER logged.
        composer: Optional message-generation collaborator.
        lead_store: Optional lead store; without it no lead is captured.

    Returns:
        TurnResult carrying the new state snapshot.
    """
    message = turn.message
    prior = turn.state
    unsure = is_unsure_phrase(message)

    # 1-4. Bare numeric pre-pass, then extraction; unsure replies keep the prior state
    if unsure:
        state = prior
    else:
        state = apply_bare_numeric(message.strip(), prior)
        if state is None:
            state = extract_from_text(message, prior)

    # 5-6. Score and resolve
    complexity = compute_complexity(state)
    mode = complexity.mode
    missing = next_missing(state)
    next_field = resolve_next_field(missing, mode, state)

    # 7. Unsure defaults for the field being asked
    if unsure and next_field in UNSURE_DEFAULTS:
        state = state.replace(**UNSURE_DEFAULTS[next_field])
        missing = next_missing(state)
        next_field = _next_after_default(missing)

    # 8. Bundles only for streamlined, otherwise-complete intakes
    bundles: list[SuggestedBundle] = []
    if mode == "streamlined" and is_contact_only(missing):
        bundles = suggest_bundles(state)

    # 9. Question copy
    next_question = question_for_field(next_field) if next_field is not None else None

    # 10. Composer, validated, with local fallback
    reply: ComposerReply | None = None
    if composer is not None:
        reply = _ask_composer(
            composer,
            TurnContext(
                message=message,
                state=state,
                mode=mode,
                complexity_score=complexity.score,
                reasons=list(complexity.reasons),
                missing=list(missing),
                next_field=next_field,
                next_question=next_question,
                bundles=list(bundles),
            ),
        )

    if reply is not None:
        assistant_message = reply.assistantMessage
        sales_summary = reply.salesSummary
    else:
        assistant_message = build_fallback_message(state, mode, next_question, bundles)
        sales_summary = build_sales_summary(state)

    # 11. Acknowledge the skipped question
    if unsure and next_question:
        assistant_message = UNSURE_ACK + next_question

    result = TurnResult(
        assistant_message=assistant_message,
        state=state,
        mode=mode,
        complexity_score=complexity.score,
        missing=missing,
        bundle_suggestions=_annotate(bundles, reply) or None,
        sales_summary=sales_summary,
    )

    # 12. Lead capture gate (no idempotency key, one lead per qualifying turn)
    lead_id: str | None = None
    if lead_store is not None and state.has_contact() and is_contact_only(missing):
        lead_id = _capture_lead(
            lead_store, state, mode, complexity.score, complexity.reasons, turn.history
        )
        if lead_id is not None:
            result = replace(result, lead_captured=True, lead_id=lead_id)

    logger.info(
        "turn handled",
        extra={
            "extra_fields": safe_log_context(
                mode=mode,
                complexity_score=complexity.score,
                missing=",".join(missing),
                next_field=next_field,
                unsure=unsure,
                bundle_count=len(bundles),
                composer_used=reply is not None,
                lead_captured=lead_id is not None,
            )
        },
    )

    return result
