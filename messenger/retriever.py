"""Scans ledger history for image-channel records of one conversation."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from common.constants import CHANNEL_KIND, DEFAULT_HISTORY_PAGE_SIZE, DEFAULT_MAX_HISTORY_PAGES
from common.exceptions import ParseError
from common.logging_config import get_logger
from common.protocol import ChunkEnvelope, parse_envelope
from common.types import ImageMessage, LedgerRecord
from ledger.base import Ledger
from messenger.arena import FragmentArena

logger = get_logger(__name__)


def is_relevant(sender: str, recipient: str, viewer: str, partner: str) -> bool:
    """
    True when the record travels between viewer and partner, in either direction.

    Relevance filter over a public ledger, not an access-control boundary.
    """
    # viewer == partner is a self-chat: both directions collapse to the same record
    return (sender == viewer and recipient == partner) or (sender == partner and recipient == viewer)


@dataclass
class ScanPage:
    """Outcome of scanning one history page."""
    messages: List[ImageMessage] = field(default_factory=list)
    fragments: int = 0
    skipped: int = 0
    next_cursor: Optional[int] = None


@dataclass
class ScanResult:
    """Everything one collect() call found."""
    messages: List[ImageMessage]
    arena: FragmentArena
    pages: int
    exhausted: bool


class Retriever:
    """
    Reads history pages, parses envelopes and sorts matching records into
    complete messages and session fragments.
    """

    def __init__(
        self,
        ledger: Ledger,
        channel_kind: str = CHANNEL_KIND,
        page_size: int = DEFAULT_HISTORY_PAGE_SIZE,
        max_pages: int = DEFAULT_MAX_HISTORY_PAGES,
    ):
        self.ledger = ledger
        self.channel_kind = channel_kind
        self.page_size = page_size
        self.max_pages = max_pages

    async def scan(
        self,
        account: str,
        viewer: str,
        partner: str,
        arena: FragmentArena,
        cursor: Optional[int] = None,
        seen: Optional[Set[Tuple[str, int]]] = None,
    ) -> ScanPage:
        """
        Scan one page of account history.

        Malformed records are logged and skipped; they never abort the scan.

        Args:
            account: Account whose history page is fetched
            viewer: Identity of the reading user
            partner: Conversation partner
            arena: Fragment groups of the current retrieval call
            cursor: History cursor; None for the most recent page
            seen: Record keys already processed in this call

        Raises:
            RetrievalError: If the page cannot be fetched
        """
        if seen is None:
            seen = set()

        history = await self.ledger.history(account, self.channel_kind, cursor, self.page_size)
        page = ScanPage(next_cursor=history.next_cursor)

        for record in history.records:
            if record.record_key in seen:
                continue
            seen.add(record.record_key)

            if record.channel_kind != self.channel_kind:
                continue

            try:
                envelope = parse_envelope(record.body)
            except ParseError as e:
                page.skipped += 1
                logger.warning(f"Skipping malformed record tx={record.tx_id} op={record.op_index}: {e}")
                continue

            if not is_relevant(record.sender, envelope.to, viewer, partner):
                continue

            if isinstance(envelope, ChunkEnvelope):
                arena.add(envelope, record)
                page.fragments += 1
            else:
                page.messages.append(self._to_message(record, envelope))

        logger.debug(
            f"Scanned page of {account}: records={len(history.records)} messages={len(page.messages)} "
            f"fragments={page.fragments} skipped={page.skipped} next={page.next_cursor}"
        )
        return page

    async def collect(self, viewer: str, partner: str, max_pages: Optional[int] = None) -> ScanResult:
        """
        Collect one conversation from the histories of both participants.

        The first page of each history is always read; further pages are read
        only while some chunk session is still missing fragments.

        Raises:
            RetrievalError: If a page cannot be fetched
        """
        max_pages = max_pages if max_pages is not None else self.max_pages
        arena = FragmentArena()
        seen: Set[Tuple[str, int]] = set()
        messages: List[ImageMessage] = []

        accounts = [viewer] if viewer == partner else [viewer, partner]
        cursors: Dict[str, Optional[int]] = {account: None for account in accounts}
        active = list(accounts)
        pages = 0

        for round_number in range(max_pages):
            for account in list(active):
                page = await self.scan(account, viewer, partner, arena, cursors[account], seen)
                pages += 1
                messages.extend(page.messages)
                if page.next_cursor is None:
                    active.remove(account)
                else:
                    cursors[account] = page.next_cursor

            pending = arena.pending()
            if not active or not pending:
                break
            logger.info(
                f"{len(pending)} session(s) still collecting after round {round_number + 1}, widening scan"
            )

        logger.info(
            f"Collected conversation {viewer}<->{partner}: messages={len(messages)} "
            f"sessions={len(arena)} pages={pages}"
        )
        return ScanResult(messages=messages, arena=arena, pages=pages, exhausted=not active)

    @staticmethod
    def _to_message(record: LedgerRecord, envelope) -> ImageMessage:
        tx_id = record.tx_id if record.op_index == 0 else f"{record.tx_id}:{record.op_index}"
        return ImageMessage(
            tx_id=tx_id,
            sender=record.sender,
            recipient=envelope.to,
            timestamp=record.timestamp,
            ciphertext=envelope.e,
            hash=envelope.h,
        )
