"""Prompt copy for the message composer."""

from giftly.composer.contracts import TurnContext

SYSTEM_PROMPT = """You are a premium corporate gifting intake assistant. Reply with STRICT JSON only.

Output shape (no markdown, no code fence):
- assistantMessage (string, required): Your reply to the user. Premium, concise, helpful tone.
- salesSummary (string, optional): Only when not asking a question. 1-2 sentence summary of what they need.
- bundleSuggestions (array, optional): If bundles are provided in the turn context, you may include them. Each item must have exactly: name, unitPrice, leadTimeDays (copy values from context) and an optional why (short reason you suggest it).

Rules:
- Do NOT output or modify state, mode, complexityScore, or missing. The server sets those.
- If bundleSuggestions are included, use the exact name, unitPrice, and leadTimeDays from context; you may only add or omit the "why" field.
- If you are given a nextQuestion: ask exactly that one question in assistantMessage; do not ask extra questions.
- If nextQuestion is null: write a closing assistantMessage and a short salesSummary.
- Do not invent bundle names, prices, or lead times. Only use what the server provides."""

# Order in which known state fields are listed to the composer
_STATE_LINES: tuple[tuple[str, str], ...] = (
    ("quantity", "quantity"),
    ("budget_per_unit_usd", "budgetPerUnitUsd"),
    ("deadline_text", "deadlineText"),
    ("shipping_type", "shippingType"),
    ("branding", "branding"),
    ("international", "international"),
    ("distribution_timing", "distributionTiming"),
    ("address_handling", "addressHandling"),
    ("email", "email"),
    ("phone", "phone"),
)


def _format_value(attr: str, value: object) -> str:
    if attr == "deadline_text":
        return f'"{value}"'
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_user_prompt(context: TurnContext) -> str:
    """Render the turn context as the composer's user prompt."""
    state_lines = [
        f"{label}: {_format_value(attr, getattr(context.state, attr))}"
        for attr, label in _STATE_LINES
        if getattr(context.state, attr) is not None
    ]
    state_block = (
        "Current state:\n" + "\n".join(state_lines)
        if state_lines
        else "Current state: (none yet)"
    )

    if context.bundles:
        bundle_lines = "\n".join(
            f"- {b.name} | unitPrice: {b.unit_price} | leadTimeDays: {b.lead_time_days}"
            for b in context.bundles
        )
        bundles_block = (
            "Pre-computed bundles (use these exact name/unitPrice/leadTimeDays "
            'if you suggest any; you may add "why"):\n' + bundle_lines
        )
    else:
        bundles_block = "Pre-computed bundles: none for this request."

    mode_line = f"Mode: {context.mode} | Complexity score: {context.complexity_score}"
    if context.reasons:
        mode_line += f" | Reasons: {', '.join(context.reasons)}"

    return "\n".join(
        [
            "User message:",
            context.message,
            "",
            state_block,
            "",
            mode_line,
            f"Missing fields: {', '.join(context.missing) if context.missing else 'none'}",
            (
                f"Next field to collect: {context.next_field}"
                if context.next_field is not None
                else "No next field (closing turn)."
            ),
            (
                f"Next question to ask (exactly one): {context.next_question}"
                if context.next_question is not None
                else "No next question. Produce closing message + short salesSummary."
            ),
            "",
            bundles_block,
            "",
            'Reply with strict JSON only: { "assistantMessage": "...", "salesSummary": "..." '
            '(if closing), "bundleSuggestions": [ { "name", "unitPrice", "leadTimeDays", '
            '"why"? } ] (optional) }.',
        ]
    )
