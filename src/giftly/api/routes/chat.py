"""Chat intake routes.

Security:
- The message, history and contact values are PII and are NEVER logged
- State is logged only as the set of known field keys
- The client owns the state; nothing is stored server-side except leads
"""

from __future__ import annotations

from typing import Any, Literal

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, StrictStr, ValidationError

from giftly.composer.client import get_composer
from giftly.composer.contracts import MessageComposer
from giftly.domain.state import ChatState
from giftly.domain.turn import HistoryEntry, TurnInput, handle_turn
from giftly.infra.leads import LeadStore, get_lead_store
from giftly.observability.correlation import get_correlation_id
from giftly.observability.logging import get_logger
from giftly.observability.redaction import safe_log_context

router = APIRouter(prefix="/api/chat", tags=["chat"])

logger = get_logger(__name__)


class InvalidTurnInput(Exception):
    """Raised when a request body does not have the turn shape."""


class HistoryItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    role: Literal["user", "assistant"]
    content: StrictStr


class TurnRequest(BaseModel):
    """Request body for one chat turn."""

    model_config = ConfigDict(extra="ignore")

    message: StrictStr
    state: dict[str, Any]
    history: list[HistoryItem]


def _get_composer() -> MessageComposer | None:
    """Get composer instance (allows test injection)."""
    return get_composer()


def _get_lead_store() -> LeadStore:
    """Get lead store instance (allows test injection)."""
    return get_lead_store()


def parse_turn_request(body: Any) -> TurnInput:
    """Validate a decoded JSON body into a TurnInput.

    Raises:
        InvalidTurnInput: If the body or the state does not have the expected shape.
    """
    try:
        req = TurnRequest.model_validate(body)
    except ValidationError as e:
        raise InvalidTurnInput("Expected { message, state, history }") from e

    try:
        state = ChatState.from_dict(req.state)
    except ValueError as e:
        raise InvalidTurnInput(f"Invalid state: {e}") from e

    return TurnInput(
        message=req.message,
        state=state,
        history=[HistoryEntry(role=h.role, content=h.content) for h in req.history],
    )


@router.get("")
def chat_liveness() -> dict:
    """Liveness probe used by the smoke script."""
    return {"ok": True}


@router.post("")
async def chat_turn(request: Request) -> JSONResponse:
    """Process one chat turn.

    Returns:
        200 with the turn result.
        400 if the body is not JSON or not a valid turn.
        500 if processing fails unexpectedly.
    """
    correlation_id = get_correlation_id()

    try:
        body = await request.json()
    except ValueError:
        logger.warning(
            "invalid json body",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return JSONResponse(status_code=400, content={"error": "Invalid JSON body"})

    try:
        turn = parse_turn_request(body)
    except InvalidTurnInput as e:
        logger.warning(
            "invalid turn payload",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return JSONResponse(status_code=400, content={"error": str(e)})

    try:
        result = handle_turn(
            turn,
            composer=_get_composer(),
            lead_store=_get_lead_store(),
        )
    except Exception as e:
        logger.error(
            "chat turn failed",
            extra={
                "extra_fields": safe_log_context(
                    correlationId=correlation_id,
                    error_type=type(e).__name__,
                )
            },
        )
        return JSONResponse(status_code=500, content={"error": "internal error"})

    logger.info(
        "chat turn processed",
        extra={
            "extra_fields": safe_log_context(
                correlationId=correlation_id,
                state=result.state,
                mode=result.mode,
                history_len=len(turn.history),
            )
        },
    )

    return JSONResponse(content=result.to_dict())
