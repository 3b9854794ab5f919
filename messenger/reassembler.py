"""Rebuilds chunked ciphertexts from session fragment groups."""

from typing import Dict, List, Tuple

from common.exceptions import IncompleteSessionError
from common.logging_config import get_logger
from common.types import ImageMessage, SessionState
from messenger.arena import FragmentArena, FragmentEntry, SessionGroup

logger = get_logger(__name__)


class Reassembler:
    """
    Orders fragments by index and concatenates them once a session is complete.
    """

    def assemble(self, group: SessionGroup) -> ImageMessage:
        """
        Reconstruct the ciphertext of one session.

        Fragments are ordered by idx, never by arrival. A duplicate index keeps
        the fragment that carries the hash, else the first one seen.

        Raises:
            IncompleteSessionError: If any index in [0, tot) is missing
        """
        total = group.expected_total()
        by_index: Dict[int, FragmentEntry] = {}

        for entry in group.entries:
            envelope = entry.envelope
            if envelope.tot != total:
                logger.warning(
                    f"Dropping fragment idx={envelope.idx} of session {group.session_id}: "
                    f"tot={envelope.tot} disagrees with {total}"
                )
                continue
            current = by_index.get(envelope.idx)
            if current is None or (current.envelope.h is None and envelope.h):
                by_index[envelope.idx] = entry

        missing = [index for index in range(total) if index not in by_index]
        if missing:
            group.state = SessionState.COLLECTING
            raise IncompleteSessionError(group.session_id, missing, total)

        ordered = [by_index[index] for index in range(total)]
        ciphertext = "".join(entry.envelope.e for entry in ordered)
        integrity_hash = next((entry.envelope.h for entry in ordered if entry.envelope.h), None)
        first = ordered[0].record

        group.state = SessionState.COMPLETE
        logger.info(
            f"Reassembled session {group.session_id}: chunks={total} size={len(ciphertext)} "
            f"has_hash={integrity_hash is not None}"
        )
        return ImageMessage(
            tx_id=first.tx_id,
            sender=group.sender,
            recipient=group.recipient,
            timestamp=first.timestamp,
            ciphertext=ciphertext,
            hash=integrity_hash,
            session_id=group.session_id,
            chunks=total,
        )

    def reassemble(self, arena: FragmentArena) -> Tuple[List[ImageMessage], List[IncompleteSessionError]]:
        """
        Assemble every group in the arena.

        Returns:
            (completed messages, one IncompleteSessionError per session still collecting)
        """
        messages: List[ImageMessage] = []
        pending: List[IncompleteSessionError] = []

        for group in arena.groups():
            try:
                messages.append(self.assemble(group))
            except IncompleteSessionError as e:
                logger.info(f"{e}; missing={list(e.missing)[:10]}")
                pending.append(e)

        return messages, pending
