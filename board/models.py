"""
SQLAlchemy ORM models for database tables.

This module contains database table definitions using SQLAlchemy.
For Pydantic request/response schemas, see schemas.py.
"""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Text

from board.storage import Base


class RecordMixin:
    """Plain-dict view of a row, used by the in-memory store for copies."""

    def as_dict(self) -> dict:
        return {column.name: getattr(self, column.name) for column in self.__table__.columns}


class Message(RecordMixin, Base):
    """
    SQLAlchemy model for board messages.

    Table: messages
    Primary Key: id (assigned by the state machine, never reused)
    Rows are never removed; deletion only sets the deleted flag.
    """
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=False)
    author = Column(String, nullable=False, index=True)
    content = Column(Text, nullable=False)
    created_at = Column(String, nullable=False)  # ISO-8601 UTC string
    deleted = Column(Boolean, nullable=False, default=False)


class EditRequest(RecordMixin, Base):
    """
    SQLAlchemy model for proposed message edits awaiting owner approval.

    Table: edit_requests
    Primary Key: id (separate sequence from messages)
    """
    __tablename__ = "edit_requests"

    id = Column(Integer, primary_key=True, autoincrement=False)
    message_id = Column(Integer, ForeignKey("messages.id"), nullable=False, index=True)
    requester = Column(String, nullable=False)
    new_content = Column(Text, nullable=False)
    approved = Column(Boolean, nullable=False, default=False, index=True)
