"""Tiny home-grown migration helpers for the SQLite store."""

from __future__ import annotations

from sqlalchemy import text
from sqlalchemy.engine import Engine

# Simple, idempotent fix-ups for SQLite. Nothing here drops or rewrites columns.


def _table_exists(engine: Engine, table: str) -> bool:
    """Ask SQLite's PRAGMA whether ``table`` has any columns yet."""

    with engine.connect() as conn:
        return bool(conn.execute(text(f"PRAGMA table_info({table})")).mappings().all())


def run_migrations(engine: Engine) -> None:
    """Normalise blank collection payloads to an empty JSON list."""

    if engine.dialect.name != "sqlite":
        return
    if not _table_exists(engine, "ledger_collections"):
        # Table absent -> Base.metadata.create_all builds the fresh schema.
        return

    with engine.begin() as conn:
        conn.execute(text("UPDATE ledger_collections SET payload = '[]' WHERE payload IS NULL OR payload = ''"))
