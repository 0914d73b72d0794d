"""
Tests for BoardStateMachine.

Tests cover:
- Sequential id allocation for messages and edit requests
- Reads: get_message, get_all_messages, get_pending_edit_requests
- Edit workflow: author-only requests, owner-only approval
- Soft delete and its interaction with pending edits
- Events emitted per operation
- Atomicity when the event sink fails
- Reentrancy rejection

Every test runs against both MemoryBoardStore and SqlBoardStore.
"""

import pytest

from board.errors import (
    AlreadyApproved,
    AlreadyDeleted,
    Forbidden,
    Gone,
    InvalidInput,
    NotFound,
    ReentrantCall,
)
from board.state_machine import BoardStateMachine
from board.utils import make_owner_check

from conftest import FIXED_TIME, OWNER


class TestPostMessage:
    """Test posting and reading single messages."""

    def test_ids_are_sequential_from_one(self, board):
        ids = [board.post_message("alice", f"post {n}") for n in range(5)]

        assert ids == [1, 2, 3, 4, 5]
        assert board.message_count == 5

    def test_get_message_returns_posted_content(self, board):
        board.post_message("alice", "first")
        board.post_message("bob", "second")

        message = board.get_message(2)
        assert message.id == 2
        assert message.author == "bob"
        assert message.content == "second"
        assert message.created_at == FIXED_TIME
        assert message.deleted is False

    def test_empty_content_rejected(self, board):
        with pytest.raises(InvalidInput):
            board.post_message("alice", "")

        assert board.message_count == 0

    def test_non_text_content_rejected(self, board):
        with pytest.raises(InvalidInput):
            board.post_message("alice", None)

    def test_unencodable_content_rejected(self, board):
        with pytest.raises(InvalidInput):
            board.post_message("alice", "\ud800")

        assert board.message_count == 0

    def test_whitespace_content_accepted(self, board):
        assert board.post_message("alice", " ") == 1

    def test_failed_post_does_not_consume_id(self, board):
        board.post_message("alice", "one")
        with pytest.raises(InvalidInput):
            board.post_message("alice", "")

        assert board.post_message("alice", "two") == 2

    def test_emits_message_posted(self, board, event_log):
        board.post_message("alice", "hello")

        [event] = event_log.events
        assert event.event == "MessagePosted"
        assert (event.id, event.author, event.content) == (1, "alice", "hello")


class TestGetMessage:

    @pytest.mark.parametrize("message_id", [0, -1, 2, 999])
    def test_out_of_range_is_not_found(self, board, message_id):
        board.post_message("alice", "only")

        with pytest.raises(NotFound):
            board.get_message(message_id)

    def test_non_integer_id_is_not_found(self, board):
        board.post_message("alice", "only")

        with pytest.raises(NotFound):
            board.get_message("1")

    def test_deleted_message_is_gone(self, board):
        board.post_message("alice", "x")
        board.delete_message(1, OWNER)

        with pytest.raises(Gone):
            board.get_message(1)


class TestGetAllMessages:

    def test_empty_board(self, board):
        assert board.get_all_messages() == []

    def test_ascending_order_without_deleted(self, board):
        for n in range(1, 6):
            board.post_message("alice", f"m{n}")
        board.delete_message(2, OWNER)
        board.delete_message(4, OWNER)

        messages = board.get_all_messages()
        assert [m.id for m in messages] == [1, 3, 5]
        assert [m.content for m in messages] == ["m1", "m3", "m5"]

    def test_delete_then_list_is_empty(self, board):
        assert board.post_message("alice", "x") == 1
        board.delete_message(1, OWNER)

        with pytest.raises(Gone):
            board.get_message(1)
        assert board.get_all_messages() == []


class TestRequestEdit:

    def test_author_can_request_edit(self, board, event_log):
        board.post_message("alice", "hello")

        assert board.request_edit(1, "alice", "hi") == 1
        assert board.request_edit(1, "alice", "hey") == 2
        assert board.edit_request_count == 2

        event = event_log.of_kind("EditRequested")[0]
        assert (event.message_id, event.requester, event.new_content) == (1, "alice", "hi")
        assert event.edit_request_id == 1

    def test_request_does_not_change_content(self, board):
        board.post_message("alice", "hello")
        board.request_edit(1, "alice", "hi")

        assert board.get_message(1).content == "hello"

    def test_non_author_forbidden(self, board):
        board.post_message("alice", "x")

        with pytest.raises(Forbidden):
            board.request_edit(1, "bob", "y")

    def test_owner_is_not_the_author(self, board):
        board.post_message("alice", "x")

        with pytest.raises(Forbidden):
            board.request_edit(1, OWNER, "y")

    def test_unknown_message_not_found(self, board):
        with pytest.raises(NotFound):
            board.request_edit(1, "alice", "y")

    def test_deleted_message_gone(self, board):
        board.post_message("alice", "x")
        board.delete_message(1, OWNER)

        with pytest.raises(Gone):
            board.request_edit(1, "alice", "y")

    def test_unencodable_new_content_rejected(self, board):
        board.post_message("alice", "x")

        with pytest.raises(InvalidInput):
            board.request_edit(1, "alice", "bad \udfff")
        assert board.edit_request_count == 0

    def test_empty_new_content_rejected(self, board):
        board.post_message("alice", "x")

        with pytest.raises(InvalidInput):
            board.request_edit(1, "alice", "")
        assert board.edit_request_count == 0

    def test_authorization_checked_before_content(self, board):
        board.post_message("alice", "x")

        with pytest.raises(Forbidden):
            board.request_edit(1, "bob", "")


class TestApproveEdit:

    def test_request_then_approve_updates_content(self, board, event_log):
        assert board.post_message("alice", "hello") == 1
        assert board.request_edit(1, "alice", "hi") == 1

        board.approve_edit(1, OWNER)

        assert board.get_message(1).content == "hi"
        event = event_log.of_kind("EditApproved")[0]
        assert (event.message_id, event.new_content) == (1, "hi")

    def test_approval_keeps_author_and_created_at(self, board):
        board.post_message("alice", "hello")
        board.request_edit(1, "alice", "hi")
        board.approve_edit(1, OWNER)

        message = board.get_message(1)
        assert message.author == "alice"
        assert message.created_at == FIXED_TIME

    def test_non_owner_forbidden(self, board):
        board.post_message("alice", "hello")
        board.request_edit(1, "alice", "hi")

        with pytest.raises(Forbidden):
            board.approve_edit(1, "alice")
        assert board.get_message(1).content == "hello"

    def test_unknown_request_not_found(self, board):
        with pytest.raises(NotFound):
            board.approve_edit(999, OWNER)

    def test_second_approval_rejected(self, board):
        board.post_message("alice", "hello")
        board.request_edit(1, "alice", "hi")
        board.request_edit(1, "alice", "hey")
        board.approve_edit(2, OWNER)
        board.approve_edit(1, OWNER)

        with pytest.raises(AlreadyApproved):
            board.approve_edit(2, OWNER)
        # Content is the last approved edit, not re-applied by the failed call
        assert board.get_message(1).content == "hi"

    def test_pending_excludes_approved(self, board):
        board.post_message("alice", "a")
        board.post_message("bob", "b")
        board.request_edit(1, "alice", "a1")
        board.request_edit(2, "bob", "b1")
        board.request_edit(1, "alice", "a2")
        board.approve_edit(2, OWNER)

        pending = board.get_pending_edit_requests()
        assert [req.id for req in pending] == [1, 3]
        assert all(req.approved is False for req in pending)

    def test_pending_empty_board(self, board):
        assert board.get_pending_edit_requests() == []


class TestDeleteMessage:

    def test_owner_deletes(self, board, event_log):
        board.post_message("alice", "x")
        board.delete_message(1, OWNER)

        [event] = event_log.of_kind("MessageDeleted")
        assert event.message_id == 1

    def test_author_cannot_delete(self, board):
        board.post_message("alice", "x")

        with pytest.raises(Forbidden):
            board.delete_message(1, "alice")
        assert board.get_message(1).content == "x"

    def test_second_delete_rejected(self, board):
        board.post_message("alice", "x")
        board.delete_message(1, OWNER)

        with pytest.raises(AlreadyDeleted):
            board.delete_message(1, OWNER)

    def test_unknown_message_not_found(self, board):
        with pytest.raises(NotFound):
            board.delete_message(1, OWNER)

    def test_ids_not_reused_after_delete(self, board):
        board.post_message("alice", "x")
        board.delete_message(1, OWNER)

        assert board.post_message("alice", "y") == 2


class TestEditOfDeletedMessage:
    """Deleting a message leaves its pending edits approvable."""

    def test_pending_request_survives_delete(self, board):
        board.post_message("alice", "x")
        board.request_edit(1, "alice", "y")
        board.delete_message(1, OWNER)

        assert [req.id for req in board.get_pending_edit_requests()] == [1]

    def test_approval_rewrites_deleted_message(self, board, store):
        board.post_message("alice", "x")
        board.request_edit(1, "alice", "y")
        board.delete_message(1, OWNER)

        board.approve_edit(1, OWNER)

        stored = store.get_message(1)
        assert stored.content == "y"
        assert stored.deleted is True
        assert board.get_pending_edit_requests() == []


class TestAtomicity:
    """A failing event sink leaves no trace of the operation."""

    @staticmethod
    def failing_sink(event):
        raise RuntimeError("sink down")

    def test_post_rolled_back(self, store):
        board = BoardStateMachine(store, make_owner_check(OWNER), emit=self.failing_sink)

        with pytest.raises(RuntimeError):
            board.post_message("alice", "x")

        assert board.message_count == 0
        assert board.get_all_messages() == []
        assert store.get_message(1) is None

    def test_approve_rolled_back(self, store, event_log):
        board = BoardStateMachine(store, make_owner_check(OWNER), emit=event_log)
        board.post_message("alice", "x")
        board.request_edit(1, "alice", "y")

        board._emit = self.failing_sink
        with pytest.raises(RuntimeError):
            board.approve_edit(1, OWNER)

        assert board.get_message(1).content == "x"
        assert [req.id for req in board.get_pending_edit_requests()] == [1]


class TestReentrancy:

    def test_sink_cannot_reenter_mutation(self, store):
        calls = []

        def reentrant_sink(event):
            calls.append(event.event)
            board.post_message("mallory", "injected")

        board = BoardStateMachine(store, make_owner_check(OWNER), emit=reentrant_sink)

        with pytest.raises(ReentrantCall):
            board.post_message("alice", "x")

        assert calls == ["MessagePosted"]
        assert board.message_count == 0
        assert board.get_all_messages() == []

    def test_sink_cannot_reenter_during_request_edit(self, store, event_log):
        board = BoardStateMachine(store, make_owner_check(OWNER), emit=event_log)
        board.post_message("alice", "x")

        def reentrant_sink(event):
            board.delete_message(1, OWNER)

        board._emit = reentrant_sink
        with pytest.raises(ReentrantCall):
            board.request_edit(1, "alice", "y")

        assert board.edit_request_count == 0
        assert board.get_pending_edit_requests() == []
        assert board.get_message(1).deleted is False

    def test_sink_cannot_reenter_during_approve_edit(self, store, event_log):
        board = BoardStateMachine(store, make_owner_check(OWNER), emit=event_log)
        board.post_message("alice", "x")
        board.request_edit(1, "alice", "y")

        def reentrant_sink(event):
            board.request_edit(1, "alice", "z")

        board._emit = reentrant_sink
        with pytest.raises(ReentrantCall):
            board.approve_edit(1, OWNER)

        assert board.get_message(1).content == "x"
        assert board.edit_request_count == 1
        assert [req.id for req in board.get_pending_edit_requests()] == [1]

    def test_sink_cannot_reenter_during_delete(self, store, event_log):
        board = BoardStateMachine(store, make_owner_check(OWNER), emit=event_log)
        board.post_message("alice", "x")
        board.request_edit(1, "alice", "y")

        def reentrant_sink(event):
            board.approve_edit(1, OWNER)

        board._emit = reentrant_sink
        with pytest.raises(ReentrantCall):
            board.delete_message(1, OWNER)

        message = board.get_message(1)
        assert message.deleted is False
        assert message.content == "x"
        assert [req.id for req in board.get_pending_edit_requests()] == [1]

    def test_guard_released_after_failure(self, board):
        with pytest.raises(InvalidInput):
            board.post_message("alice", "")

        assert board.post_message("alice", "x") == 1

    def test_reads_allowed_during_mutation(self, store):
        seen = []

        def reading_sink(event):
            if event.id == 2:
                seen.append(board.get_message(1).content)

        board = BoardStateMachine(store, make_owner_check(OWNER), emit=reading_sink)
        board.post_message("alice", "x")
        board.post_message("alice", "y")

        assert seen == ["x"]
