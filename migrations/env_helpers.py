"""Database URL helpers for Alembic migrations.

Kept apart from env.py so they can be tested without alembic.context.
DATABASE_URL may be a URL or a libpq key=value DSN (the same value psycopg2
accepts at runtime).
"""

from __future__ import annotations

import os

from psycopg2.extensions import parse_dsn
from sqlalchemy.engine import URL, make_url

DRIVERNAME = "postgresql+psycopg2"


def dsn_to_url(dsn: str) -> URL:
    """Convert a libpq key=value DSN to a SQLAlchemy URL.

    A host starting with "/" is a unix socket directory and is passed as the
    ``host`` query parameter. DB_PASSWORD fills in a missing password.
    """
    params = parse_dsn(dsn)
    password = params.get("password") or os.environ.get("DB_PASSWORD") or None
    host: str | None = params.get("host", "localhost")
    port: int | None = int(params.get("port", "5432"))
    query: dict[str, str] = {}

    if host is not None and host.startswith("/"):
        query["host"] = host
        host = None
        port = None

    return URL.create(
        DRIVERNAME,
        username=params.get("user"),
        password=password,
        host=host,
        port=port,
        database=params.get("dbname"),
        query=query,
    )


def get_database_url() -> str:
    """Return DATABASE_URL as a psycopg2 SQLAlchemy URL string.

    Raises:
        RuntimeError: If DATABASE_URL is not set.
    """
    raw = os.environ.get("DATABASE_URL")
    if not raw:
        raise RuntimeError("DATABASE_URL is required to run migrations")

    if "://" not in raw:
        url = dsn_to_url(raw)
    else:
        url = make_url(raw)
        if url.drivername in ("postgres", "postgresql"):
            url = url.set(drivername=DRIVERNAME)
        db_password = os.environ.get("DB_PASSWORD", "")
        if db_password and not url.password:
            url = url.set(password=db_password)

    return url.render_as_string(hide_password=False)
