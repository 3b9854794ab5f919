"""Abstract ledger collaborator: broadcast operations and page through history."""

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from common.types import HistoryPage, LedgerOperation


class Ledger(ABC):
    """
    Append-only, publicly readable record store.

    Implementations raise BroadcastError subclasses from the broadcast calls
    and RetrievalError from history.
    """

    @abstractmethod
    async def broadcast(self, channel_kind: str, sender: str, envelope_json: str) -> str:
        """Submit one operation; returns the transaction id."""

    @abstractmethod
    async def broadcast_atomic(self, sender: str, operations: Sequence[LedgerOperation]) -> str:
        """Submit every operation in one transaction, all-or-nothing; returns the transaction id."""

    @abstractmethod
    async def history(
        self,
        account: str,
        channel_kind: str,
        cursor: Optional[int] = None,
        page_size: int = 200,
    ) -> HistoryPage:
        """
        Fetch one page of account history, newest first.

        Args:
            account: Account whose history is scanned
            channel_kind: Operation id to keep
            cursor: Sequence to start from; None for the most recent entry
            page_size: Maximum entries to request
        """

    async def close(self) -> None:
        """Release network resources."""
