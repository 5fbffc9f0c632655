"""Schema-driven single-field intake.

Older flow kept for generic forms: the schema is an ordered list of fields,
each turn targets exactly one field and the reply text is assembled from the
field metadata. Independent from the gifting ChatState flow.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Literal

from giftly.domain.extraction import round_half_up
from giftly.infra.time import utc_now_iso

BrainAction = Literal["ask", "confirm", "finalize"]

MAX_FIELD_SCORE = 7
MAX_CONVERSATION_PENALTY = 3
EXTRA_TURN_PENALTY = 0.3

_EMAIL = re.compile(r"[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}")
_URL = re.compile(r"https?://[^\s\"'<>]+", re.IGNORECASE)
_BARE_DOMAIN = re.compile(r"^(?:www\.)?[a-zA-Z0-9\-]+\.[a-zA-Z]{2,}(?:/\S*)?$")
_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")


class FieldType(str, Enum):
    TEXT = "text"
    EMAIL = "email"
    URL = "url"
    NUMBER = "number"
    SELECT = "select"


class IntakeStatus(str, Enum):
    ACTIVE = "active"
    COMPLETE = "complete"
    ABANDONED = "abandoned"


class MessageRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class IntakeField:
    """A field declared in the intake schema.

    Attributes:
        key: Machine-readable key, e.g. "contactEmail".
        label: Human-readable label used in prompts.
        type: How the value is extracted from the reply.
        required: Required fields are asked before optional ones.
        hint: Optional clarifying hint appended to prompts.
        options: Accepted values for SELECT fields.
    """

    key: str
    label: str
    type: FieldType = FieldType.TEXT
    required: bool = True
    hint: str | None = None
    options: tuple[str, ...] = ()


@dataclass(frozen=True)
class ChatMessage:
    role: MessageRole
    content: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: str = field(default_factory=utc_now_iso)


@dataclass(frozen=True)
class CollectedField:
    key: str
    value: str
    extracted_at: str


@dataclass(frozen=True)
class IntakeSession:
    """Full state of one schema-driven conversation (caller persists it)."""

    session_id: str
    collected_fields: dict[str, CollectedField] = field(default_factory=dict)
    messages: tuple[ChatMessage, ...] = ()
    status: IntakeStatus = IntakeStatus.ACTIVE
    complexity: float = 0.0
    company_id: str | None = None
    started_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)


@dataclass(frozen=True)
class BrainResult:
    action: BrainAction
    message: str
    updated_session: IntakeSession
    target_field: IntakeField | None = None


def extract_field_value(text: str, intake_field: IntakeField) -> str | None:
    """Extract a single field value from free text according to its type."""
    trimmed = text.strip()
    if not trimmed:
        return None

    if intake_field.type == FieldType.EMAIL:
        match = _EMAIL.search(trimmed)
        return match.group(0).lower() if match else None

    if intake_field.type == FieldType.URL:
        match = _URL.search(trimmed)
        if match:
            return match.group(0)
        if _BARE_DOMAIN.match(trimmed):
            return "https://" + re.sub(r"^www\.", "", trimmed)
        return None

    if intake_field.type == FieldType.NUMBER:
        match = _NUMBER.search(trimmed)
        return match.group(0) if match else None

    if intake_field.type == FieldType.SELECT:
        if not intake_field.options:
            return trimmed
        lower = trimmed.lower()
        for option in intake_field.options:
            if option.lower() in lower:
                return option
        return None

    return trimmed


def schema_complexity(session: IntakeSession, schema: list[IntakeField]) -> float:
    """Score in [0, 10] from remaining required fields and extra user turns."""
    required = [f for f in schema if f.required]
    if not required:
        return 0.0

    remaining = sum(1 for f in required if f.key not in session.collected_fields)
    field_score = remaining / len(required) * MAX_FIELD_SCORE

    user_turns = sum(1 for m in session.messages if m.role == MessageRole.USER)
    extra_turns = max(0, user_turns - len(required))
    penalty = min(MAX_CONVERSATION_PENALTY, extra_turns * EXTRA_TURN_PENALTY)

    return round_half_up(field_score + penalty, 1)


def next_missing_field(session: IntakeSession, schema: list[IntakeField]) -> IntakeField | None:
    """First uncollected required field, then first uncollected optional one."""
    for f in schema:
        if f.required and f.key not in session.collected_fields:
            return f
    for f in schema:
        if not f.required and f.key not in session.collected_fields:
            return f
    return None


def build_ask_message(intake_field: IntakeField) -> str:
    hint = f" ({intake_field.hint})" if intake_field.hint else ""
    return f"Got it! What is your {intake_field.label}?{hint}"


def build_reprompt_message(intake_field: IntakeField) -> str:
    hint = f" {intake_field.hint}." if intake_field.hint else ""
    return f"I didn't catch that — could you share your {intake_field.label}?{hint}"


def build_finalize_message(session: IntakeSession) -> str:
    count = len(session.collected_fields)
    plural = "" if count == 1 else "s"
    return (
        f"Thanks! I've collected all {count} piece{plural} of information. "
        "Your intake is complete."
    )


def process_turn(
    message: str,
    session: IntakeSession,
    schema: list[IntakeField],
) -> BrainResult:
    """Apply one user message to a schema-driven session.

    - Nothing left to collect: finalize.
    - Value extracted for the targeted field: store it, then ask for the next
      field or finalize.
    - Nothing extracted: re-ask ("confirm") without storing anything.

    The input session is never mutated.
    """
    now = utc_now_iso()
    target = next_missing_field(session, schema)

    if target is None:
        return BrainResult(
            action="finalize",
            message=build_finalize_message(session),
            updated_session=replace(
                session, status=IntakeStatus.COMPLETE, complexity=0.0, updated_at=now
            ),
        )

    value = extract_field_value(message, target)
    if value is None:
        return BrainResult(
            action="confirm",
            message=build_reprompt_message(target),
            updated_session=replace(session, updated_at=now),
            target_field=target,
        )

    collected = dict(session.collected_fields)
    collected[target.key] = CollectedField(key=target.key, value=value, extracted_at=now)
    partial = replace(session, collected_fields=collected, updated_at=now)

    next_field = next_missing_field(partial, schema)
    if next_field is None:
        return BrainResult(
            action="finalize",
            message=build_finalize_message(partial),
            updated_session=replace(partial, status=IntakeStatus.COMPLETE, complexity=0.0),
        )

    return BrainResult(
        action="ask",
        message=build_ask_message(next_field),
        updated_session=replace(partial, complexity=schema_complexity(partial, schema)),
        target_field=next_field,
    )
