"""Redaction helpers for safe logging.

Raw user messages, history, emails and phone numbers never reach the logs.
Everything logged goes through ``safe_log_context``.
"""

import re
from typing import Any

from giftly.domain.state import ChatState

_PHONE_PATTERN = re.compile(r"\+?\d[\d\s\-()]{8,}\d")
_EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")

_REDACTED = "[REDACTED]"


def redact_string(value: str) -> str:
    """Mask phone numbers and email addresses inside a string."""
    result = _PHONE_PATTERN.sub(_REDACTED, value)
    return _EMAIL_PATTERN.sub(_REDACTED, result)


def redact_state(state: ChatState) -> str:
    """Describe a state by the wire keys that are set, never by value."""
    return f"state(keys={sorted(state.to_dict().keys())})"


def redact_value(value: Any) -> str:
    """Render any value safely. Containers are reduced to their shape."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return redact_string(value)
    if isinstance(value, ChatState):
        return redact_state(value)
    if isinstance(value, dict):
        return f"dict(keys={list(value.keys())})"
    if isinstance(value, (list, tuple)):
        return f"list(len={len(value)})"
    return f"<{type(value).__name__}>"


def safe_log_context(**kwargs: Any) -> dict[str, str]:
    """Build a log context dict in which every value is redacted."""
    return {k: redact_value(v) for k, v in kwargs.items()}
