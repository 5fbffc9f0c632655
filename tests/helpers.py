"""Shared test helpers for giftly tests.

Regular functions and fakes, importable from any test module.
"""

from __future__ import annotations

from typing import Any

from giftly.composer.contracts import TurnContext
from giftly.domain.state import ChatState
from giftly.domain.turn import HistoryEntry, TurnInput, TurnResult, handle_turn
from giftly.infra.leads import Lead


class FakeComposer:
    """Composer returning a canned reply and recording each context."""

    def __init__(self, reply: Any = None, exc: Exception | None = None):
        self.reply = reply
        self.exc = exc
        self.contexts: list[TurnContext] = []

    def compose(self, context: TurnContext) -> Any:
        self.contexts.append(context)
        if self.exc is not None:
            raise self.exc
        return self.reply


class FakeLeadStore:
    """In-memory lead store."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.leads: list[Lead] = []

    def append(self, lead: Lead) -> str:
        if self.fail:
            raise OSError("disk full")
        self.leads.append(lead)
        return lead.id


def run_turns(
    messages: list[str],
    *,
    composer: Any = None,
    lead_store: Any = None,
) -> list[TurnResult]:
    """Replay messages like a client would, threading state and history."""
    state = ChatState()
    history: list[HistoryEntry] = []
    results: list[TurnResult] = []
    for message in messages:
        result = handle_turn(
            TurnInput(message=message, state=state, history=list(history)),
            composer=composer,
            lead_store=lead_store,
        )
        results.append(result)
        state = result.state
        history += [
            HistoryEntry(role="user", content=message),
            HistoryEntry(role="assistant", content=result.assistant_message),
        ]
    return results


class LogRecorder:
    """Stand-in logger that records every call for PII assertions."""

    def __init__(self):
        self.calls: list[tuple[str, tuple, dict]] = []

    def _record(self, level: str, *args, **kwargs):
        self.calls.append((level, args, kwargs))

    def info(self, *args, **kwargs):
        self._record("info", *args, **kwargs)

    def warning(self, *args, **kwargs):
        self._record("warning", *args, **kwargs)

    def error(self, *args, **kwargs):
        self._record("error", *args, **kwargs)

    def exception(self, *args, **kwargs):
        self._record("exception", *args, **kwargs)

    def debug(self, *args, **kwargs):
        self._record("debug", *args, **kwargs)

    def messages(self, level: str | None = None) -> list[str]:
        return [args[0] for lvl, args, _ in self.calls if level is None or lvl == level]

    def get_all_logged_content(self) -> str:
        """Concatenate all args and kwargs from all calls into one string."""
        return " ".join(f"{args!r} {kwargs!r}" for _, args, kwargs in self.calls)
