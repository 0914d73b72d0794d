"""
Failures raised by the board state machine.

Every failure is deterministic for the given input and state, so none of
them is worth retrying with the identical call. Each carries a stable
``reason`` that the HTTP layer returns to clients.
"""


class BoardError(Exception):
    """Base class for all board failures."""

    reason = "board_error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class InvalidInput(BoardError):
    """Content is missing or empty."""
    reason = "invalid_input"


class NotFound(BoardError):
    """Id outside 1..count for its collection."""
    reason = "not_found"


class Gone(BoardError):
    """The referenced message has been soft-deleted."""
    reason = "gone"


class Forbidden(BoardError):
    """The caller lacks the required identity or role."""
    reason = "forbidden"


class AlreadyApproved(BoardError):
    reason = "already_approved"


class AlreadyDeleted(BoardError):
    reason = "already_deleted"


class ReentrantCall(BoardError):
    """A mutating operation was invoked while another one was in progress."""
    reason = "reentrant_call"
