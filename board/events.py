"""
Notifications emitted by the board state machine.

Each successful mutating operation emits exactly one event to the sink
the state machine was built with. A sink is any callable taking the event.
"""

import logging
from typing import Callable, Literal, Union

from pydantic import BaseModel, Field

from board.metrics import record_board_event

logger = logging.getLogger(__name__)


class MessagePosted(BaseModel):
    event: Literal["MessagePosted"] = "MessagePosted"
    id: int = Field(..., ge=1, description="New message id")
    author: str
    content: str

    model_config = {"frozen": True}


class EditRequested(BaseModel):
    event: Literal["EditRequested"] = "EditRequested"
    edit_request_id: int = Field(..., ge=1)
    message_id: int = Field(..., ge=1)
    requester: str
    new_content: str

    model_config = {"frozen": True}


class EditApproved(BaseModel):
    event: Literal["EditApproved"] = "EditApproved"
    edit_request_id: int = Field(..., ge=1)
    message_id: int = Field(..., ge=1)
    new_content: str

    model_config = {"frozen": True}


class MessageDeleted(BaseModel):
    event: Literal["MessageDeleted"] = "MessageDeleted"
    message_id: int = Field(..., ge=1)

    model_config = {"frozen": True}


BoardEvent = Union[MessagePosted, EditRequested, EditApproved, MessageDeleted]
EventSink = Callable[[BoardEvent], None]


def log_event(event: BoardEvent) -> None:
    """Default sink: structured log line plus the board_events_total metric."""
    logger.info(event.event, extra=event.model_dump())
    record_board_event(event.event)


class EventLog:
    """Sink that keeps every event it receives, in emission order."""

    def __init__(self):
        self.events: list[BoardEvent] = []

    def __call__(self, event: BoardEvent) -> None:
        self.events.append(event)

    def of_kind(self, name: str) -> list[BoardEvent]:
        return [event for event in self.events if event.event == name]
