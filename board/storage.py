import logging
from typing import Optional

from sqlalchemy import create_engine, text, func
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session, declarative_base
from sqlalchemy.pool import StaticPool

from board.config import settings

logger = logging.getLogger(__name__)

IN_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")


def create_db_engine(database_url: str) -> Engine:
    """
    Create a SQLAlchemy engine for the given URL.

    check_same_thread=False is required for SQLite to work with FastAPI's async.
    In-memory SQLite URLs share a single connection so every session sees
    the same database.
    """
    kwargs = {"echo": False}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    if database_url in IN_MEMORY_URLS:
        kwargs["poolclass"] = StaticPool
    return create_engine(database_url, **kwargs)


engine = create_db_engine(settings.DATABASE_URL)

# Create SessionLocal class for creating database sessions
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for SQLAlchemy models
Base = declarative_base()


def init_db(bind: Optional[Engine] = None) -> None:
    """
    Initialize the database by creating all tables.
    Called during application startup.
    """
    bind = bind or engine
    logger.debug(f"Initializing database with URL: {bind.url}")
    try:
        # Import models to register them with Base.metadata
        from board.models import Message, EditRequest

        logger.debug("Creating database tables...")
        Base.metadata.create_all(bind=bind)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


def check_db_health() -> bool:
    """
    Check if the database is reachable and both board tables exist.

    Returns:
        True if DB is healthy and schema exists, False otherwise.
    """
    logger.debug("Checking database health...")
    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
            logger.debug("Database connectivity OK")

            for table in ("messages", "edit_requests"):
                result = db.execute(
                    text("SELECT COUNT(*) FROM sqlite_master WHERE type='table' AND name=:name"),
                    {"name": table},
                ).scalar()
                if result == 0:
                    logger.error(f"Database schema not applied: '{table}' table not found")
                    return False
        logger.debug("Database health check passed")
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False


# =============================================================================
# Board Stores
# =============================================================================

class SqlBoardStore:
    """
    Durable board storage backed by a SQLAlchemy session.

    Writes are staged in the session until commit(); rollback() discards
    them and expires any loaded rows so in-place changes are reverted too.
    """

    def __init__(self, session: Session):
        self.session = session

    def get_message(self, message_id: int):
        from board.models import Message
        return self.session.get(Message, message_id)

    def add_message(self, message) -> None:
        logger.debug(f"Staging message {message.id}")
        self.session.add(message)

    def save_message(self, message) -> None:
        self.session.add(message)

    def list_messages(self, include_deleted: bool = False) -> list:
        from board.models import Message

        query = self.session.query(Message)
        if not include_deleted:
            query = query.filter(Message.deleted.is_(False))
        return query.order_by(Message.id.asc()).all()

    def message_count(self) -> int:
        from board.models import Message
        return self.session.query(func.max(Message.id)).scalar() or 0

    def get_edit_request(self, edit_request_id: int):
        from board.models import EditRequest
        return self.session.get(EditRequest, edit_request_id)

    def add_edit_request(self, edit_request) -> None:
        logger.debug(f"Staging edit request {edit_request.id}")
        self.session.add(edit_request)

    def save_edit_request(self, edit_request) -> None:
        self.session.add(edit_request)

    def list_edit_requests(self, pending_only: bool = False) -> list:
        from board.models import EditRequest

        query = self.session.query(EditRequest)
        if pending_only:
            query = query.filter(EditRequest.approved.is_(False))
        return query.order_by(EditRequest.id.asc()).all()

    def edit_request_count(self) -> int:
        from board.models import EditRequest
        return self.session.query(func.max(EditRequest.id)).scalar() or 0

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


class MemoryBoardStore:
    """
    In-memory board storage keyed by integer id.

    Rows are held as plain dicts and every read returns a fresh model
    instance, so callers can only change stored state through save_*()
    followed by commit().
    """

    def __init__(self):
        self._messages: dict[int, dict] = {}
        self._edit_requests: dict[int, dict] = {}
        self._staged_messages: dict[int, dict] = {}
        self._staged_edit_requests: dict[int, dict] = {}

    def get_message(self, message_id: int):
        from board.models import Message

        row = self._staged_messages.get(message_id) or self._messages.get(message_id)
        return Message(**row) if row else None

    def add_message(self, message) -> None:
        self._staged_messages[message.id] = message.as_dict()

    save_message = add_message

    def list_messages(self, include_deleted: bool = False) -> list:
        from board.models import Message

        rows = {**self._messages, **self._staged_messages}
        return [
            Message(**rows[key])
            for key in sorted(rows)
            if include_deleted or not rows[key]["deleted"]
        ]

    def message_count(self) -> int:
        return len({**self._messages, **self._staged_messages})

    def get_edit_request(self, edit_request_id: int):
        from board.models import EditRequest

        row = self._staged_edit_requests.get(edit_request_id) or self._edit_requests.get(edit_request_id)
        return EditRequest(**row) if row else None

    def add_edit_request(self, edit_request) -> None:
        self._staged_edit_requests[edit_request.id] = edit_request.as_dict()

    save_edit_request = add_edit_request

    def list_edit_requests(self, pending_only: bool = False) -> list:
        from board.models import EditRequest

        rows = {**self._edit_requests, **self._staged_edit_requests}
        return [
            EditRequest(**rows[key])
            for key in sorted(rows)
            if not (pending_only and rows[key]["approved"])
        ]

    def edit_request_count(self) -> int:
        return len({**self._edit_requests, **self._staged_edit_requests})

    def commit(self) -> None:
        self._messages.update(self._staged_messages)
        self._edit_requests.update(self._staged_edit_requests)
        self._staged_messages.clear()
        self._staged_edit_requests.clear()

    def rollback(self) -> None:
        self._staged_messages.clear()
        self._staged_edit_requests.clear()
