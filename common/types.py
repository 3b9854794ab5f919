"""Shared data type definitions (Payload, Fragment, LedgerRecord, ImageMessage, etc.)."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from common.exceptions import IncompleteSessionError


@dataclass(frozen=True)
class Payload:
    """
    Logical image message as composed by the sender.

    Exists only in memory; never persisted.
    """
    image_data: str
    filename: str
    content_type: str
    sender: str
    recipient: str
    timestamp: int
    caption: Optional[str] = None

    def __post_init__(self):
        # An empty caption is the same message as no caption.
        if self.caption == "":
            object.__setattr__(self, "caption", None)


@dataclass(frozen=True)
class Fragment:
    """
    One ciphertext slice of a chunked message.
    """
    index: int
    data: str
    hash: Optional[str] = None


@dataclass(frozen=True)
class ChunkPlan:
    """
    Producer-side session: every fragment of one chunked message.
    """
    session_id: str
    fragments: Tuple[Fragment, ...]
    hash: Optional[str] = None

    @property
    def total_chunks(self) -> int:
        return len(self.fragments)


class BroadcastStrategy(str, Enum):
    SINGLE = "single"
    CHUNKED = "chunked"


@dataclass(frozen=True)
class BroadcastReceipt:
    """
    Result of a confirmed broadcast.
    """
    tx_id: str
    strategy: BroadcastStrategy
    chunk_count: int
    envelope_size: int
    session_id: Optional[str] = None


@dataclass(frozen=True)
class LedgerRecord:
    """
    One channel operation read from ledger history.

    body is the raw envelope JSON text, unparsed.
    """
    tx_id: str
    op_index: int
    sequence: int
    block_num: int
    timestamp: str
    channel_kind: str
    sender: str
    body: str

    @property
    def record_key(self) -> Tuple[str, int]:
        return (self.tx_id, self.op_index)


@dataclass(frozen=True)
class LedgerOperation:
    """
    One operation of an atomic multi-operation broadcast.
    """
    channel_kind: str
    sender: str
    body: str


@dataclass
class HistoryPage:
    """
    One page of account history. next_cursor is None once history is exhausted.
    """
    records: List[LedgerRecord]
    next_cursor: Optional[int] = None


class SessionState(str, Enum):
    COLLECTING = "collecting"
    COMPLETE = "complete"
    DECRYPTING = "decrypting"
    VERIFIED = "verified"
    CORRUPTED = "corrupted"
    DECODED = "decoded"


@dataclass
class ImageMessage:
    """
    An encrypted image message retrieved from the ledger, ready for on-demand decryption.
    """
    tx_id: str
    sender: str
    recipient: str
    timestamp: str
    ciphertext: str
    hash: Optional[str] = None
    session_id: Optional[str] = None
    chunks: int = 1
    state: SessionState = SessionState.COMPLETE

    @property
    def is_chunked(self) -> bool:
        return self.session_id is not None


@dataclass
class OpenResult:
    """
    Outcome of opening one message; exactly one of payload/error is set.
    """
    message: ImageMessage
    payload: Optional[Payload] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ConversationSnapshot:
    """
    Messages visible in one conversation plus sessions still collecting fragments.
    """
    messages: List[ImageMessage] = field(default_factory=list)
    pending: List[IncompleteSessionError] = field(default_factory=list)
