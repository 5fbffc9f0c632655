"""Canonical one-line question copy per intake field (PII-free).

Questions are static text; unknown field keys get a generic template.
"""

FIELD_QUESTIONS: dict[str, str] = {
    "quantity": "How many recipients (approximate quantity)?",
    "budgetPerUnitUsd": "What's your budget per gift (USD)?",
    "deadlineText": "What delivery deadline are you targeting?",
    "shippingType": "Should we ship to one location (bulk) or individual addresses?",
    "branding": "Do you need branding (none, sticker/insert, laser, embroidery)?",
    "international": "Any international destinations (outside the US)?",
    "distributionTiming": (
        "Should everything be delivered at once, or stored and distributed over time?"
    ),
    "addressHandling": (
        "Will you provide the recipient addresses, or should we handle collecting them?"
    ),
    "email": "What's the best email or phone to follow up with options?",
}

GENERIC_QUESTION = "What is your {field}?"


def question_for_field(field: str) -> str:
    """Return the question text for ``field``.

    Args:
        field: Missing-field key (wire name).

    Returns:
        Canonical question, or a generic prompt for unknown keys.
    """
    if field in FIELD_QUESTIONS:
        return FIELD_QUESTIONS[field]
    return GENERIC_QUESTION.format(field=field)
