"""Database engine and session helpers.

The engine is created once at startup with `init_engine()` from the
configured URL (SQLite in the data directory by default). Tests point it at
an in-memory database instead.
"""

from __future__ import annotations

import logging
from typing import Iterator, Optional

from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine
from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

_engine: Optional[Engine] = None


def init_engine(url: str, echo: bool = False) -> Engine:
    """Create the global engine. SQLite gets thread-sharing enabled for FastAPI."""
    global _engine
    kwargs: dict = {"echo": echo}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    _engine = create_engine(url, **kwargs)
    log.info(f"Database engine ready: {url}")
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Database not initialized. Call init_engine() first.")
    return _engine


def create_db_and_tables() -> None:
    """Create all tables from SQLModel metadata (idempotent)."""
    from . import models  # noqa: F401  registers tables on the metadata

    SQLModel.metadata.create_all(get_engine())


def get_session() -> Iterator[Session]:
    """Yield a `Session` for FastAPI dependency injection."""
    with Session(get_engine()) as session:
        yield session
