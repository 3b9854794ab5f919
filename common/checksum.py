"""Provides SHA-256 integrity hash calculation and verification helpers."""

import hmac
import hashlib
from typing import Optional

from common.exceptions import IntegrityError
from common.logging_config import get_logger

logger = get_logger(__name__)


def compute_checksum(text: str) -> str:
    """
    Compute SHA-256 checksum over the UTF-8 encoding of text.

    Args:
        text: Canonical compact payload text

    Returns:
        Hexadecimal string representation of SHA-256 hash
    """
    return hashlib.sha256(text.encode('utf-8')).hexdigest()


def verify_checksum(text: str, expected: str) -> bool:
    """
    Verify that text matches expected checksum.

    Args:
        text: Text to verify
        expected: Expected SHA-256 checksum (hex string)

    Returns:
        True if checksum matches, False otherwise
    """
    actual = compute_checksum(text)
    return hmac.compare_digest(actual, expected.lower())


class IntegrityVerifier:
    """
    Recomputes the content hash of decrypted plaintext and compares it with
    the hash transmitted alongside the ciphertext.
    """

    def __init__(self, require_hash: bool = True):
        """
        Args:
            require_hash: Reject messages that arrive without a hash
        """
        self.require_hash = require_hash

    def check(self, plaintext: str, expected: Optional[str]) -> str:
        """
        Verify decrypted plaintext against the transmitted hash.

        Args:
            plaintext: Decrypted canonical compact payload
            expected: Transmitted SHA-256 hex digest, if any

        Returns:
            The plaintext, unchanged, once verified

        Raises:
            IntegrityError: On mismatch, or on a missing hash when one is required
        """
        if not expected:
            if self.require_hash:
                raise IntegrityError("Message carries no integrity hash")
            logger.warning("Message carries no integrity hash, skipping verification")
            return plaintext

        actual = compute_checksum(plaintext)
        if not hmac.compare_digest(actual, expected.lower()):
            logger.error(
                f"Integrity check failed: expected={expected[:16]} actual={actual[:16]}"
            )
            raise IntegrityError(
                "Integrity check failed - data may be corrupted",
                expected=expected,
                actual=actual,
            )

        logger.debug(f"Integrity verified: {actual[:16]}")
        return plaintext
