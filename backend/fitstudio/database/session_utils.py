# backend/fitstudio/database/session_utils.py
"""Dialect lookups for code that only holds a Session."""

from __future__ import annotations

from typing import Optional

from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import UnboundExecutionError
from sqlalchemy.orm import Session


def session_bind(session: Session) -> Optional[Connection | Engine]:
    try:
        return session.get_bind()
    except UnboundExecutionError:
        return None


def get_dialect_name(session: Session, default: str = "sqlite") -> str:
    """Name of the session's SQL dialect ("postgresql", "sqlite"), or ``default`` when unbound."""
    bind = session_bind(session)
    if bind is None:
        return default
    return bind.dialect.name or default


def supports_row_locks(session: Session) -> bool:
    """SQLite ignores FOR UPDATE; the per-session mutex is the only guard there."""
    return get_dialect_name(session) != "sqlite"
