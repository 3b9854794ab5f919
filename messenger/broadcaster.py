"""Submits a ciphertext to the ledger as one envelope or one atomic batch of chunk envelopes."""

from dataclasses import dataclass
from typing import Iterable, List, Optional

from common.constants import (
    CHANNEL_KIND,
    MAX_SEGMENT,
    MAX_TRANSACTION_BYTES,
    OPERATION_OVERHEAD_BYTES,
    SINGLE_VS_CHUNK_THRESHOLD,
    TRANSACTION_OVERHEAD_BYTES,
)
from common.exceptions import BroadcastError, ValidationError
from common.logging_config import get_logger
from common.protocol import ChunkEnvelope, SingleEnvelope
from common.types import BroadcastReceipt, BroadcastStrategy, LedgerOperation
from ledger.base import Ledger
from messenger.chunker import Chunker, select_strategy

logger = get_logger(__name__)


def estimate_transaction_size(bodies: Iterable[str]) -> int:
    """Approximate serialized size of one transaction carrying the given custom_json bodies."""
    return TRANSACTION_OVERHEAD_BYTES + sum(
        len(body.encode("utf-8")) + OPERATION_OVERHEAD_BYTES for body in bodies
    )


@dataclass
class PreparedBroadcast:
    """Envelopes ready for the ledger, with the strategy that produced them."""
    strategy: BroadcastStrategy
    sender: str
    operations: List[LedgerOperation]
    envelope_size: int
    session_id: Optional[str] = None

    @property
    def chunk_count(self) -> int:
        return len(self.operations)

    @property
    def total_size(self) -> int:
        return sum(len(op.body) for op in self.operations)

class Broadcaster:
    """
    Chooses the broadcast strategy and submits the envelopes.

    Failures are raised to the caller for explicit retry; nothing is retried here.
    """

    def __init__(
        self,
        ledger: Ledger,
        channel_kind: str = CHANNEL_KIND,
        max_segment: int = MAX_SEGMENT,
        single_threshold: int = SINGLE_VS_CHUNK_THRESHOLD,
        max_transaction_bytes: int = MAX_TRANSACTION_BYTES,
    ):
        self.ledger = ledger
        self.channel_kind = channel_kind
        self.chunker = Chunker(max_segment)
        self.single_threshold = single_threshold
        self.max_transaction_bytes = max_transaction_bytes

    def prepare(
        self,
        sender: str,
        recipient: str,
        ciphertext: str,
        integrity_hash: str,
    ) -> PreparedBroadcast:
        """
        Pick the strategy and build every envelope without touching the ledger.

        Raises:
            ValidationError: If the chunked transaction would exceed the ledger size ceiling
        """
        envelope_json = SingleEnvelope(to=recipient, e=ciphertext, h=integrity_hash).to_json()
        estimated_size = len(envelope_json)
        strategy = select_strategy(estimated_size, self.single_threshold)

        logger.info(
            f"Broadcast strategy {strategy.value}: ciphertext={len(ciphertext)} "
            f"envelope={estimated_size} threshold={self.single_threshold} recipient={recipient}"
        )

        if strategy is BroadcastStrategy.SINGLE:
            operation = LedgerOperation(channel_kind=self.channel_kind, sender=sender, body=envelope_json)
            return PreparedBroadcast(strategy, sender, [operation], estimated_size)

        plan = self.chunker.split(ciphertext, integrity_hash)
        operations: List[LedgerOperation] = [
            LedgerOperation(
                channel_kind=self.channel_kind,
                sender=sender,
                body=ChunkEnvelope.from_fragment(recipient, plan.session_id, plan.total_chunks, fragment).to_json(),
            )
            for fragment in plan.fragments
        ]

        transaction_size = estimate_transaction_size(op.body for op in operations)
        if transaction_size > self.max_transaction_bytes:
            raise ValidationError(
                f"Image too large for one transaction: ~{transaction_size} bytes in {len(operations)} "
                f"chunks exceeds {self.max_transaction_bytes}"
            )

        logger.info(
            f"Prepared batched transaction: session={plan.session_id} operations={len(operations)} "
            f"largest={max(len(op.body) for op in operations)} size~{transaction_size}"
        )
        return PreparedBroadcast(strategy, sender, operations, estimated_size, plan.session_id)

    async def send(self, prepared: PreparedBroadcast) -> BroadcastReceipt:
        """
        Submit prepared envelopes: one operation, or all chunks in one transaction.

        Raises:
            BroadcastError: If the ledger rejects the transaction
        """
        if prepared.strategy is BroadcastStrategy.SINGLE:
            try:
                tx_id = await self.ledger.broadcast(self.channel_kind, prepared.sender, prepared.operations[0].body)
            except BroadcastError as e:
                logger.error(f"Single operation failed: {e}")
                raise
            logger.info(f"Single operation sent, txId: {tx_id}")
        else:
            try:
                tx_id = await self.ledger.broadcast_atomic(prepared.sender, prepared.operations)
            except BroadcastError as e:
                logger.error(f"Batched broadcast failed [session={prepared.session_id}]: {e}")
                raise
            logger.info(f"{prepared.chunk_count} chunks sent in one transaction, txId: {tx_id}")

        return BroadcastReceipt(
            tx_id=tx_id,
            strategy=prepared.strategy,
            chunk_count=prepared.chunk_count,
            envelope_size=prepared.envelope_size,
            session_id=prepared.session_id,
        )

    async def submit(
        self,
        sender: str,
        recipient: str,
        ciphertext: str,
        integrity_hash: str,
    ) -> BroadcastReceipt:
        """
        Broadcast ciphertext from sender to recipient.

        Returns:
            BroadcastReceipt with the confirmed transaction id

        Raises:
            ValidationError: If the chunked transaction would exceed the ledger size ceiling
            BroadcastError: If the ledger rejects the transaction
        """
        return await self.send(self.prepare(sender, recipient, ciphertext, integrity_hash))
