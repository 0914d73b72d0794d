"""
Caller authentication helpers for the board API.
"""

import hmac
import hashlib
import logging
from typing import Callable

logger = logging.getLogger(__name__)


def sign_caller_id(caller_id: str, secret: str) -> str:
    """Hex-encoded HMAC-SHA256 of the caller id under the shared secret."""
    return hmac.new(
        secret.encode("utf-8"),
        caller_id.encode("utf-8"),
        hashlib.sha256
    ).hexdigest()


def verify_caller_signature(caller_id: str, signature: str, secret: str) -> bool:
    """
    Verify that X-Signature matches the claimed X-Caller-Id.

    Args:
        caller_id: Identity claimed by the X-Caller-Id header
        signature: Hex-encoded signature from X-Signature header
        secret: AUTH_SECRET

    Returns:
        True if signature is valid, False otherwise
    """
    expected_signature = sign_caller_id(caller_id, secret)

    # Constant-time comparison
    is_valid = hmac.compare_digest(expected_signature, signature)
    logger.info(f"Caller signature verification for {caller_id}: {'valid' if is_valid else 'invalid'}")

    return is_valid


def make_owner_check(owner_id: str) -> Callable[[str], bool]:
    """Return the predicate telling whether an identity is the board owner."""

    def is_owner(identity: str) -> bool:
        if not identity or not owner_id:
            return False
        return hmac.compare_digest(identity.encode("utf-8"), owner_id.encode("utf-8"))

    return is_owner
