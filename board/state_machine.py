"""
Board state machine.

Owns the message and edit-request collections and enforces every rule on
them:

- ids are allocated sequentially from 1 in two separate spaces
- only a message's author may request an edit to it
- only the owner may approve an edit or delete a message
- deletion is a soft delete; deleted messages disappear from reads

Mutating operations run under a reentrancy guard and inside a store
transaction. An operation either stores its changes, emits its event and
commits, or rolls back and leaves the counters unchanged.
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Iterator, List, Optional

from board.errors import (
    AlreadyApproved,
    AlreadyDeleted,
    Forbidden,
    Gone,
    InvalidInput,
    NotFound,
    ReentrantCall,
)
from board.events import (
    EditApproved,
    EditRequested,
    EventSink,
    MessageDeleted,
    MessagePosted,
    log_event,
)
from board.models import EditRequest, Message

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC with millisecond precision and Z suffix."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def _require_content(value, field_name: str) -> str:
    if not isinstance(value, str):
        raise InvalidInput(f"{field_name} must be non-empty text")
    try:
        encoded = value.encode("utf-8")
    except UnicodeEncodeError as e:
        raise InvalidInput(f"{field_name} must be valid text") from e
    if len(encoded) == 0:
        raise InvalidInput(f"{field_name} must be non-empty text")
    return value


class BoardStateMachine:
    """
    Message board with owner-approved edits.

    Args:
        store: Board store (SqlBoardStore or MemoryBoardStore)
        is_owner: Predicate telling whether an identity holds the owner role
        clock: Timestamp source for message creation times
        emit: Event sink receiving one event per successful mutation
    """

    def __init__(
        self,
        store,
        is_owner: Callable[[str], bool],
        clock: Callable[[], datetime] = utc_now,
        emit: EventSink = log_event,
    ):
        self._store = store
        self._is_owner = is_owner
        self._clock = clock
        self._emit = emit
        self._operation: Optional[str] = None

        self.message_count = store.message_count()
        self.edit_request_count = store.edit_request_count()
        logger.info(
            f"Board loaded: {self.message_count} messages, "
            f"{self.edit_request_count} edit requests"
        )

    # =========================================================================
    # Guards
    # =========================================================================

    @contextmanager
    def _exclusive(self, operation: str) -> Iterator[None]:
        """Reject a mutating call made while another one is in progress."""
        if self._operation is not None:
            logger.warning(f"Rejected {operation} while {self._operation} in progress")
            raise ReentrantCall(
                f"{operation} called while {self._operation} is in progress"
            )
        self._operation = operation
        try:
            yield
        finally:
            self._operation = None

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        try:
            yield
            self._store.commit()
        except Exception:
            self._store.rollback()
            raise

    def _load_message(self, message_id) -> Message:
        if isinstance(message_id, bool) or not isinstance(message_id, int):
            raise NotFound(f"message {message_id!r} not found")
        if not 1 <= message_id <= self.message_count:
            raise NotFound(f"message {message_id} not found")
        return self._store.get_message(message_id)

    def _load_live_message(self, message_id) -> Message:
        message = self._load_message(message_id)
        if message.deleted:
            raise Gone(f"message {message_id} has been deleted")
        return message

    def _load_edit_request(self, edit_request_id) -> EditRequest:
        if isinstance(edit_request_id, bool) or not isinstance(edit_request_id, int):
            raise NotFound(f"edit request {edit_request_id!r} not found")
        if not 1 <= edit_request_id <= self.edit_request_count:
            raise NotFound(f"edit request {edit_request_id} not found")
        return self._store.get_edit_request(edit_request_id)

    def _require_owner(self, caller: str, action: str) -> None:
        if not self._is_owner(caller):
            logger.warning(f"{caller!r} is not the owner, cannot {action}")
            raise Forbidden(f"only the owner may {action}")

    # =========================================================================
    # Messages
    # =========================================================================

    def post_message(self, author: str, content: str) -> int:
        """Store a new message and return its id."""
        with self._exclusive("post_message"):
            _require_content(content, "content")

            message_id = self.message_count + 1
            message = Message(
                id=message_id,
                author=author,
                content=content,
                created_at=format_timestamp(self._clock()),
                deleted=False,
            )
            with self._transaction():
                self._store.add_message(message)
                self._emit(MessagePosted(id=message_id, author=author, content=content))

            self.message_count = message_id
            logger.info(f"Message {message_id} posted by {author}")
            return message_id

    def get_message(self, message_id: int) -> Message:
        return self._load_live_message(message_id)

    def get_all_messages(self) -> List[Message]:
        """Every non-deleted message, ascending id."""
        return self._store.list_messages(include_deleted=False)

    def delete_message(self, message_id: int, caller: str) -> None:
        with self._exclusive("delete_message"):
            self._require_owner(caller, "delete messages")
            message = self._load_message(message_id)
            if message.deleted:
                raise AlreadyDeleted(f"message {message_id} is already deleted")

            with self._transaction():
                message.deleted = True
                self._store.save_message(message)
                self._emit(MessageDeleted(message_id=message_id))

            # Pending edit requests for this message are left as they are.
            logger.info(f"Message {message_id} deleted")

    # =========================================================================
    # Edit requests
    # =========================================================================

    def request_edit(self, message_id: int, requester: str, new_content: str) -> int:
        """File an edit of a message by its author; returns the edit request id."""
        with self._exclusive("request_edit"):
            message = self._load_live_message(message_id)
            if requester != message.author:
                logger.warning(
                    f"{requester!r} tried to edit message {message_id} owned by {message.author!r}"
                )
                raise Forbidden("only the author may request an edit")
            _require_content(new_content, "new_content")

            edit_request_id = self.edit_request_count + 1
            edit_request = EditRequest(
                id=edit_request_id,
                message_id=message_id,
                requester=requester,
                new_content=new_content,
                approved=False,
            )
            with self._transaction():
                self._store.add_edit_request(edit_request)
                self._emit(EditRequested(
                    edit_request_id=edit_request_id,
                    message_id=message_id,
                    requester=requester,
                    new_content=new_content,
                ))

            self.edit_request_count = edit_request_id
            logger.info(f"Edit request {edit_request_id} filed for message {message_id}")
            return edit_request_id

    def approve_edit(self, edit_request_id: int, caller: str) -> None:
        """
        Apply a pending edit to its message.

        The target message is updated even when it has been deleted since
        the request was filed.
        """
        with self._exclusive("approve_edit"):
            self._require_owner(caller, "approve edits")
            edit_request = self._load_edit_request(edit_request_id)
            if edit_request.approved:
                raise AlreadyApproved(f"edit request {edit_request_id} is already approved")

            message = self._store.get_message(edit_request.message_id)
            with self._transaction():
                message.content = edit_request.new_content
                edit_request.approved = True
                self._store.save_message(message)
                self._store.save_edit_request(edit_request)
                self._emit(EditApproved(
                    edit_request_id=edit_request_id,
                    message_id=edit_request.message_id,
                    new_content=edit_request.new_content,
                ))

            logger.info(f"Edit request {edit_request_id} approved")

    def get_pending_edit_requests(self) -> List[EditRequest]:
        """Every edit request not yet approved, ascending id."""
        return self._store.list_edit_requests(pending_only=True)
