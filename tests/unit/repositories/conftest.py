"""Shared fixtures for repository integration tests.

Provides an in-memory SQLite engine with FK enforcement and a session
factory bound to it.
"""

from __future__ import annotations

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from reef_scheduler.database import Base

# Force model registration so create_all picks up every table.
import reef_scheduler.infra.db.models.scheduling  # noqa: F401


@pytest.fixture
def engine():
    """Function-scoped :memory: SQLite engine with FK enforcement.

    StaticPool keeps a single connection so every session sees the same
    in-memory database.
    """
    eng = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(eng, "connect")
    def _set_fk_pragma(dbapi_conn, _):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def session(session_factory):
    """Function-scoped session for arranging and inspecting rows."""
    sess = session_factory()
    yield sess
    sess.close()
