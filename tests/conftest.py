"""
Pytest configuration and shared fixtures.

Test environment variables are set here before any board import so the
module-level settings and engine pick them up.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("OWNER_ID", "owner")
os.environ.setdefault("AUTH_SECRET", "test-secret")

import pytest
from sqlalchemy.orm import sessionmaker

# Clear settings cache before any app imports to ensure test env vars are used
from board.config import get_settings
get_settings.cache_clear()

from board.events import EventLog
from board.state_machine import BoardStateMachine
from board.storage import Base, MemoryBoardStore, SqlBoardStore, create_db_engine, init_db
from board.utils import make_owner_check


OWNER = os.environ["OWNER_ID"]
FIXED_TIME = "2025-01-15T10:00:00.000Z"


@pytest.fixture
def sql_store():
    """SqlBoardStore over a private in-memory database."""
    engine = create_db_engine("sqlite://")
    init_db(engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield SqlBoardStore(session)
    session.close()
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(params=["memory", "sql"])
def store(request):
    """Each state machine test runs against both store implementations."""
    if request.param == "memory":
        return MemoryBoardStore()
    return request.getfixturevalue("sql_store")


@pytest.fixture
def event_log():
    return EventLog()


@pytest.fixture
def board(store, event_log):
    from datetime import datetime, timezone

    return BoardStateMachine(
        store=store,
        is_owner=make_owner_check(OWNER),
        clock=lambda: datetime(2025, 1, 15, 10, 0, 0, tzinfo=timezone.utc),
        emit=event_log,
    )
