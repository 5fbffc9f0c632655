"""Operational complexity scoring and tier routing.

Additive rules starting at 1, clamped to [1, 5]:

    +1  budget per unit missing
    +2  individual shipping
    +1  storage and distribution over time
    +1  address collection/distribution handled by us
    +1  laser or embroidery branding
    +1  quantity above 200
    +2  international shipping
    +1  tight deadline
    +1  branding needs clarification

Tier bands: 1-2 streamlined, 3-4 assisted, 5 high_touch. A state whose
branding still needs qualification is always routed to assisted.
"""

from __future__ import annotations

import re

from giftly.domain.state import ChatState, ComplexityMode, ComplexityResult

MIN_SCORE = 1
MAX_SCORE = 5
LARGE_QUANTITY_THRESHOLD = 200
TIGHT_DEADLINE_MAX_WEEKS = 2
TIGHT_DEADLINE_MAX_DAYS = 14

_URGENT_WORDS = re.compile(r"\b(?:asap|rush|immediately)\b|\burgent")
_IN_WEEKS = re.compile(r"\bin\s+(\d{1,9})\s+weeks?\b")
_IN_DAYS = re.compile(r"\bin\s+(\d{1,9})\s+days?\b")


def is_tight_deadline(deadline_text: str) -> bool:
    """True when a raw deadline phrase signals urgency."""
    t = deadline_text.lower()
    if _URGENT_WORDS.search(t):
        return True

    weeks = _IN_WEEKS.search(t)
    if weeks and int(weeks.group(1)) <= TIGHT_DEADLINE_MAX_WEEKS:
        return True

    days = _IN_DAYS.search(t)
    if days and int(days.group(1)) <= TIGHT_DEADLINE_MAX_DAYS:
        return True

    return False


def mode_for_score(score: int) -> ComplexityMode:
    """Map a clamped score to its routing tier."""
    if score <= 2:
        return "streamlined"
    if score <= 4:
        return "assisted"
    return "high_touch"


def compute_complexity(state: ChatState) -> ComplexityResult:
    """Score a state and derive its routing tier.

    Args:
        state: Current intake state.

    Returns:
        ComplexityResult with one reason per rule that fired, in rule order.
    """
    score = MIN_SCORE
    reasons: list[str] = []

    if state.budget_per_unit_usd is None:
        score += 1
        reasons.append("Budget not provided")

    if state.shipping_type == "individual":
        score += 2
        reasons.append("Individual shipping")

    if state.distribution_timing == "over_time":
        score += 1
        reasons.append("Storage and distribution over time")

    if state.address_handling == "handled_by_us":
        score += 1
        reasons.append("Address collection/distribution handled by us")

    if state.branding in ("laser", "embroidery"):
        score += 1
        reasons.append("High-touch branding")

    if state.quantity is not None and state.quantity > LARGE_QUANTITY_THRESHOLD:
        score += 1
        reasons.append("Large quantity")

    if state.international is True:
        score += 2
        reasons.append("International shipping")

    if state.deadline_text is not None and is_tight_deadline(state.deadline_text):
        score += 1
        reasons.append("Tight deadline")

    if state.branding_needs_qualification is True:
        score += 1
        reasons.append("Branding needs clarification")

    score = min(MAX_SCORE, max(MIN_SCORE, score))

    mode = mode_for_score(score)
    if state.branding_needs_qualification is True:
        mode = "assisted"

    return ComplexityResult(score=score, mode=mode, reasons=reasons)
