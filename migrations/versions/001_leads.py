"""Leads table (SQL-only).

One row per captured lead. State, reasons and history are stored as JSONB
exactly as the intake engine produced them.

Revision ID: 001_leads
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op

revision = "001_leads"
down_revision = None
branch_labels = None
depends_on = None

_SQL = """
CREATE TABLE IF NOT EXISTS leads (
    id TEXT PRIMARY KEY,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    state JSONB NOT NULL,
    mode TEXT NOT NULL CHECK (mode IN ('streamlined', 'assisted', 'high_touch')),
    complexity_score INTEGER NOT NULL CHECK (complexity_score BETWEEN 1 AND 5),
    reasons JSONB NOT NULL DEFAULT '[]'::jsonb,
    history JSONB NOT NULL DEFAULT '[]'::jsonb
);

CREATE INDEX IF NOT EXISTS idx_leads_created_at ON leads (created_at DESC);
CREATE INDEX IF NOT EXISTS idx_leads_mode ON leads (mode);
"""


def upgrade() -> None:
    op.execute(_SQL)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS leads")
