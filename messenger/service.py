"""Image messaging service: producer pipeline (send) and consumer pipeline (fetch/open)."""

from typing import List, Optional, Sequence

from common.checksum import IntegrityVerifier
from common.exceptions import IntegrityError, MessengerError, ServiceError
from common.logging_config import get_logger
from common.types import (
    BroadcastReceipt,
    ConversationSnapshot,
    ImageMessage,
    OpenResult,
    Payload,
    SessionState,
)
from ledger.base import Ledger
from ledger.rpc_client import HiveRpcClient
from messenger.broadcaster import Broadcaster
from messenger.codec import PayloadCodec
from messenger.config import MessengerSettings
from messenger.encryption import Encryptor
from messenger.reassembler import Reassembler
from messenger.repositories.message_repository import (
    INTEGRITY_CORRUPTED,
    INTEGRITY_VERIFIED,
    MessageRepository,
)
from messenger.resources import ensure_sufficient_rc
from messenger.retriever import Retriever

logger = get_logger(__name__)


class ImageMessageService:
    """
    Sends encrypted images over the ledger and reads them back.

    Decryption happens only in open_message, on demand, one wallet prompt per message.
    """

    def __init__(
        self,
        ledger: Ledger,
        encryptor: Encryptor,
        settings: Optional[MessengerSettings] = None,
        codec: Optional[PayloadCodec] = None,
        repository: Optional[MessageRepository] = None,
        rpc: Optional[HiveRpcClient] = None,
    ):
        """
        Initialize service.

        Args:
            ledger: Ledger used for broadcasts and history
            encryptor: Memo encryption backend
            settings: Pipeline settings (defaults when None)
            codec: Payload codec (default limits when None)
            repository: Optional ciphertext cache
            rpc: RPC client for resource-credit pre-flight checks
        """
        self.ledger = ledger
        self.encryptor = encryptor
        self.settings = settings or MessengerSettings()
        self.codec = codec or PayloadCodec()
        self.repository = repository
        self.rpc = rpc
        self.broadcaster = Broadcaster(
            ledger,
            channel_kind=self.settings.channel_kind,
            max_segment=self.settings.max_segment,
            single_threshold=self.settings.single_threshold,
        )
        self.retriever = Retriever(
            ledger,
            channel_kind=self.settings.channel_kind,
            page_size=self.settings.history_page_size,
            max_pages=self.settings.max_history_pages,
        )
        self.reassembler = Reassembler()
        self.verifier = IntegrityVerifier(require_hash=self.settings.require_integrity_hash)

    async def send_image(self, payload: Payload) -> BroadcastReceipt:
        """
        Validate, serialize, hash, encrypt and broadcast one image payload.

        Raises:
            ValidationError: If the payload is malformed or oversized
            ServiceError: If encryption is cancelled or unavailable
            BroadcastError: If the ledger rejects the broadcast
        """
        self.codec.validate(payload)
        compact = self.codec.encode(payload)
        integrity_hash = self.codec.hash(compact)

        logger.info(
            f"Sending image {payload.filename} {payload.sender}->{payload.recipient}: "
            f"compact={len(compact)} hash={integrity_hash[:16]}"
        )

        ciphertext = await self.encryptor.encrypt(compact, payload.sender, payload.recipient)

        prepared = self.broadcaster.prepare(payload.sender, payload.recipient, ciphertext, integrity_hash)
        if self.settings.rc_preflight and self.rpc is not None:
            await ensure_sufficient_rc(self.rpc, payload.sender, prepared.total_size, prepared.chunk_count)

        receipt = await self.broadcaster.send(prepared)
        logger.info(
            f"Image sent: tx={receipt.tx_id} strategy={receipt.strategy.value} chunks={receipt.chunk_count}"
        )
        return receipt

    async def fetch_conversation(
        self,
        viewer: str,
        partner: str,
        limit: Optional[int] = None,
    ) -> ConversationSnapshot:
        """
        Retrieve every image message between viewer and partner, still encrypted.

        Args:
            viewer: Reading account
            partner: Conversation partner
            limit: Keep only the newest limit messages

        Returns:
            ConversationSnapshot ordered oldest first, plus sessions still collecting

        Raises:
            RetrievalError: If ledger history cannot be fetched
        """
        result = await self.retriever.collect(viewer, partner)
        assembled, pending = self.reassembler.reassemble(result.arena)

        messages = sorted(result.messages + assembled, key=lambda message: (message.timestamp, message.tx_id))
        if limit is not None:
            messages = messages[-limit:] if limit > 0 else []

        if self.repository is not None and messages:
            self.repository.cache_messages(messages)

        logger.info(
            f"Fetched conversation {viewer}<->{partner}: messages={len(messages)} pending={len(pending)}"
        )
        return ConversationSnapshot(messages=messages, pending=pending)

    def cached_conversation(self, viewer: str, partner: str, limit: Optional[int] = None) -> List[ImageMessage]:
        if self.repository is None:
            return []
        return self.repository.get_by_conversation(viewer, partner, limit)

    async def open_message(self, message: ImageMessage, viewer: str) -> Payload:
        """
        Decrypt, verify and decode one message.

        Corrupted plaintext is discarded and never decoded.

        Raises:
            ServiceError: If decryption is cancelled, unavailable or not for viewer
            IntegrityError: If the recomputed hash differs from the transmitted one
            ParseError: If the verified plaintext is not a valid payload
        """
        message.state = SessionState.DECRYPTING
        try:
            plaintext = await self.encryptor.decrypt(message.ciphertext, viewer)
        except ServiceError:
            message.state = SessionState.COMPLETE
            raise

        try:
            verified = self.verifier.check(plaintext, message.hash)
        except IntegrityError:
            message.state = SessionState.CORRUPTED
            self._record_integrity(message, INTEGRITY_CORRUPTED)
            logger.error(f"Discarding corrupted message tx={message.tx_id}")
            raise

        message.state = SessionState.VERIFIED
        self._record_integrity(message, INTEGRITY_VERIFIED)

        payload = self.codec.decode(verified)
        message.state = SessionState.DECODED
        logger.info(f"Opened message tx={message.tx_id} file={payload.filename} type={payload.content_type}")
        return payload

    async def open_messages(self, messages: Sequence[ImageMessage], viewer: str) -> List[OpenResult]:
        """Open each message in turn; a failure is captured on its own result."""
        results: List[OpenResult] = []
        for message in messages:
            try:
                payload = await self.open_message(message, viewer)
            except MessengerError as e:
                logger.warning(f"Could not open message tx={message.tx_id}: {type(e).__name__}: {e}")
                results.append(OpenResult(message=message, error=e))
            else:
                results.append(OpenResult(message=message, payload=payload))
        return results

    def _record_integrity(self, message: ImageMessage, status: str) -> None:
        if self.repository is not None:
            self.repository.set_integrity_status(message.tx_id, status)

    async def close(self) -> None:
        await self.ledger.close()
