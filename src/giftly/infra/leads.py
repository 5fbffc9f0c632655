"""Append-only lead store.

A lead is the finalized intake snapshot (state, tier, score, reasons and
conversation history) written when a turn passes the lead-capture gate.

Backends (LEADS_BACKEND env var):
- json (default): a JSON array in LEADS_FILE (default data/leads.json)
- postgres: the ``leads`` table via DATABASE_URL

There is no idempotency key: every qualifying turn appends a new record.
"""

from __future__ import annotations

import json
import os
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from psycopg2.extensions import cursor as PgCursor

from giftly.infra.db import txn
from giftly.infra.time import utc_now_iso

DEFAULT_LEADS_FILE = "data/leads.json"


@dataclass(frozen=True)
class Lead:
    """Lead record. Contains PII (contact, history): never log it."""

    state: dict[str, Any]
    mode: str
    complexity_score: int
    reasons: list[str] = field(default_factory=list)
    history: list[dict[str, str]] = field(default_factory=list)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "createdAt": self.created_at,
            "state": self.state,
            "mode": self.mode,
            "complexityScore": self.complexity_score,
            "reasons": list(self.reasons),
            "history": list(self.history),
        }


class LeadStore(Protocol):
    """Protocol for lead persistence backends."""

    def append(self, lead: Lead) -> str:
        """Persist ``lead`` and return its id. Raises on failure."""
        ...


class JsonFileLeadStore:
    """Lead store backed by a single JSON array file.

    A missing or unreadable file is treated as an empty list. Writes are not
    coordinated across processes.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> list[Any]:
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return []
        return data if isinstance(data, list) else []

    def append(self, lead: Lead) -> str:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        existing = self._read_all()
        existing.append(lead.to_dict())
        self._path.write_text(json.dumps(existing, indent=2), encoding="utf-8")
        return lead.id

    def list_leads(self) -> list[dict[str, Any]]:
        """Return all stored leads (oldest first)."""
        return [item for item in self._read_all() if isinstance(item, dict)]


def insert_lead(cur: PgCursor, lead: Lead) -> str:
    """Insert one lead row.

    Args:
        cur: Database cursor (within transaction).
        lead: Lead to insert.

    Returns:
        The lead id.
    """
    cur.execute(
        """
        INSERT INTO leads (
            id, created_at, state, mode, complexity_score, reasons, history
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s)
        RETURNING id
        """,
        (
            lead.id,
            lead.created_at,
            json.dumps(lead.state),
            lead.mode,
            lead.complexity_score,
            json.dumps(list(lead.reasons)),
            json.dumps(list(lead.history)),
        ),
    )
    return str(cur.fetchone()[0])


class PostgresLeadStore:
    """Lead store backed by the ``leads`` table (one short transaction per lead)."""

    def append(self, lead: Lead) -> str:
        with txn() as cur:
            return insert_lead(cur, lead)


def get_lead_store() -> LeadStore:
    """Build the lead store selected by LEADS_BACKEND.

    Raises:
        ValueError: If LEADS_BACKEND is unknown.
    """
    backend = os.environ.get("LEADS_BACKEND", "json")
    if backend == "json":
        return JsonFileLeadStore(os.environ.get("LEADS_FILE", DEFAULT_LEADS_FILE))
    if backend == "postgres":
        return PostgresLeadStore()
    raise ValueError(f"Unknown LEADS_BACKEND: {backend}")
