"""
Message board with an owner-gated edit approval workflow.
"""

from board.errors import (
    BoardError,
    InvalidInput,
    NotFound,
    Gone,
    Forbidden,
    AlreadyApproved,
    AlreadyDeleted,
    ReentrantCall,
)
from board.state_machine import BoardStateMachine

__all__ = [
    "BoardStateMachine",
    "BoardError",
    "InvalidInput",
    "NotFound",
    "Gone",
    "Forbidden",
    "AlreadyApproved",
    "AlreadyDeleted",
    "ReentrantCall",
]
