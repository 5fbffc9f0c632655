"""Composer contracts - the turn context sent out and the reply accepted back.

The composer is untrusted. It may only supply the assistant message, a "why"
per pre-computed bundle and a sales summary. Anything else it returns is
ignored by the orchestrator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, field_validator

from giftly.domain.bundles import SuggestedBundle
from giftly.domain.state import ChatState, ComplexityMode


@dataclass(frozen=True)
class TurnContext:
    """Structured context for one turn.

    Attributes:
        message: Raw user message (PII - never logged).
        state: State after this turn's extraction.
        mode: Routing tier.
        complexity_score: Score in [1, 5].
        reasons: Scoring reasons in rule order.
        missing: Missing field keys.
        next_field: Field to ask for next, if any.
        next_question: Question text for ``next_field``, if any.
        bundles: Bundles computed by the matcher (possibly empty).
    """

    message: str
    state: ChatState
    mode: ComplexityMode
    complexity_score: int
    reasons: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    next_field: str | None = None
    next_question: str | None = None
    bundles: list[SuggestedBundle] = field(default_factory=list)


class MessageComposer(Protocol):
    """Protocol for message-generation backends."""

    def compose(self, context: TurnContext) -> dict[str, Any] | None:
        """Return the raw JSON reply, or None if unavailable/failed."""
        ...


class ComposerBundle(BaseModel):
    """Bundle entry echoed back by the composer. Fields are checked by value."""

    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    unitPrice: float | None = None
    leadTimeDays: float | None = None
    why: str | None = None

    @field_validator("name", "why", mode="before")
    @classmethod
    def _str_or_none(cls, v: Any) -> Any:
        return v if isinstance(v, str) else None

    @field_validator("unitPrice", "leadTimeDays", mode="before")
    @classmethod
    def _number_or_none(cls, v: Any) -> Any:
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            return None
        return v


class ComposerReply(BaseModel):
    """Accepted shape of a composer reply.

    ``assistantMessage`` is mandatory; a reply without it fails validation
    and the orchestrator falls back to its local message.
    """

    model_config = ConfigDict(extra="ignore")

    assistantMessage: str
    salesSummary: str | None = None
    bundleSuggestions: list[ComposerBundle] | None = None

    @field_validator("assistantMessage", mode="before")
    @classmethod
    def _non_empty_message(cls, v: Any) -> Any:
        if not isinstance(v, str) or not v.strip():
            raise ValueError("assistantMessage must be a non-empty string")
        return v

    @field_validator("salesSummary", mode="before")
    @classmethod
    def _summary_str_or_none(cls, v: Any) -> Any:
        return v if isinstance(v, str) else None

    @field_validator("bundleSuggestions", mode="before")
    @classmethod
    def _drop_non_objects(cls, v: Any) -> Any:
        if not isinstance(v, list):
            return None
        return [item for item in v if isinstance(item, dict)]

    def why_for(self, bundle: SuggestedBundle) -> str | None:
        """Return the composer's "why" for an exact (name, price, lead time) match."""
        for item in self.bundleSuggestions or []:
            if (
                item.name == bundle.name
                and item.unitPrice == bundle.unit_price
                and item.leadTimeDays == bundle.lead_time_days
            ):
                return item.why
        return None
