"""Missing-field resolution under the conditional field graph.

Base fields are always required; the remaining ones depend on the shipping
type. Contact is satisfied by either email or phone.
"""

from __future__ import annotations

from giftly.domain.state import ChatState

CONTACT_FIELD = "email"


def next_missing(state: ChatState) -> list[str]:
    """Return every field key still to collect, in canonical intake order.

    Keys use the wire names (``budgetPerUnitUsd``, ``deadlineText``...). An
    empty list means intake is complete.
    """
    missing: list[str] = []

    if state.quantity is None:
        missing.append("quantity")
    if state.budget_per_unit_usd is None:
        missing.append("budgetPerUnitUsd")
    if state.deadline_text is None:
        missing.append("deadlineText")
    if state.shipping_type is None:
        missing.append("shippingType")
    if state.branding is None:
        missing.append("branding")

    # Bulk / unknown shipping is not worth asking about international
    if state.shipping_type == "individual" and state.international is None:
        missing.append("international")

    if state.shipping_type == "bulk" and state.distribution_timing is None:
        missing.append("distributionTiming")

    if state.shipping_type == "individual" and state.address_handling is None:
        missing.append("addressHandling")

    if state.email is None and state.phone is None:
        missing.append(CONTACT_FIELD)

    return missing


def is_contact_only(missing: list[str]) -> bool:
    """True when nothing but contact details remain (or nothing at all)."""
    return not missing or missing == [CONTACT_FIELD]
