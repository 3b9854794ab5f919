"""Splits ciphertext into channel-safe fragments and picks the broadcast strategy."""

import secrets
import string
import time
from typing import List, Optional

from common.constants import MAX_SEGMENT, SINGLE_VS_CHUNK_THRESHOLD
from common.exceptions import ValidationError
from common.logging_config import get_logger
from common.protocol import SingleEnvelope
from common.types import BroadcastStrategy, ChunkPlan, Fragment

logger = get_logger(__name__)

SESSION_SUFFIX_ALPHABET = string.digits + string.ascii_lowercase
SESSION_SUFFIX_LENGTH = 10


def generate_session_id() -> str:
    """
    Generate a session token: millisecond time prefix plus a random base36 suffix.

    Returns:
        Token like "1718000000000-k3j9x0a1bq"
    """
    suffix = "".join(secrets.choice(SESSION_SUFFIX_ALPHABET) for _ in range(SESSION_SUFFIX_LENGTH))
    return f"{int(time.time() * 1000)}-{suffix}"


def estimate_envelope_size(recipient: str, ciphertext: str, integrity_hash: Optional[str]) -> int:
    """Length of the single envelope that would carry this ciphertext."""
    return len(SingleEnvelope(to=recipient, e=ciphertext, h=integrity_hash).to_json())


def select_strategy(estimated_size: int, threshold: int = SINGLE_VS_CHUNK_THRESHOLD) -> BroadcastStrategy:
    """
    Choose single or chunked broadcast from the estimated envelope size.

    Args:
        estimated_size: Serialized single-envelope length
        threshold: Largest size still sent as one operation

    Returns:
        BroadcastStrategy.SINGLE when estimated_size <= threshold
    """
    if estimated_size <= threshold:
        return BroadcastStrategy.SINGLE
    return BroadcastStrategy.CHUNKED


class Chunker:
    """Cuts ciphertext into ordered fragments of at most max_segment characters."""

    def __init__(self, max_segment: int = MAX_SEGMENT):
        if max_segment <= 0:
            raise ValidationError(f"max_segment must be positive, got {max_segment}")
        self.max_segment = max_segment

    def split(self, ciphertext: str, integrity_hash: Optional[str] = None) -> ChunkPlan:
        """
        Split ciphertext into fragments under a fresh session id.

        The hash travels on fragment 0 only.

        Args:
            ciphertext: Opaque encrypted payload
            integrity_hash: SHA-256 hex of the plaintext

        Returns:
            ChunkPlan with ceil(len/max_segment) fragments

        Raises:
            ValidationError: If ciphertext is empty
        """
        if not ciphertext:
            raise ValidationError("Cannot split empty ciphertext")

        session_id = generate_session_id()
        fragments: List[Fragment] = []
        for start in range(0, len(ciphertext), self.max_segment):
            index = len(fragments)
            fragments.append(
                Fragment(
                    index=index,
                    data=ciphertext[start:start + self.max_segment],
                    hash=integrity_hash if index == 0 else None,
                )
            )

        logger.info(
            f"Created {len(fragments)} chunks (session: {session_id}): "
            f"total={len(ciphertext)} last={len(fragments[-1].data)}"
        )
        return ChunkPlan(session_id=session_id, fragments=tuple(fragments), hash=integrity_hash)
