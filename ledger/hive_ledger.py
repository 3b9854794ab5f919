"""Hive implementation of the Ledger: history via JSON-RPC, broadcasts via the wallet bridge."""

from typing import List, Optional, Sequence

from common.constants import MAX_HISTORY_PAGE_SIZE
from common.exceptions import ParseError
from common.logging_config import get_logger
from common.types import HistoryPage, LedgerOperation, LedgerRecord
from ledger.base import Ledger
from ledger.keychain_client import KeychainClient
from ledger.records import parse_history_entry
from ledger.rpc_client import HiveRpcClient

logger = get_logger(__name__)


def custom_json_operation(operation: LedgerOperation) -> list:
    """Build a posting-authority custom_json operation in condenser form."""
    return [
        "custom_json",
        {
            "required_auths": [],
            "required_posting_auths": [operation.sender],
            "id": operation.channel_kind,
            "json": operation.body,
        },
    ]


def next_history_cursor(entries: list) -> Optional[int]:
    """Sequence just below the oldest entry of a page, or None when history is exhausted."""
    sequences = [entry[0] for entry in entries if isinstance(entry, (list, tuple)) and entry]
    sequences = [seq for seq in sequences if isinstance(seq, int) and not isinstance(seq, bool)]
    if not sequences:
        return None
    oldest = min(sequences)
    return oldest - 1 if oldest > 0 else None


class HiveLedger(Ledger):
    """Ledger backed by Hive API nodes and a Keychain signing bridge."""

    def __init__(self, rpc: HiveRpcClient, keychain: KeychainClient):
        self.rpc = rpc
        self.keychain = keychain

    async def broadcast(self, channel_kind: str, sender: str, envelope_json: str) -> str:
        tx_id = await self.keychain.request_custom_json(
            sender, channel_kind, envelope_json, "Send encrypted image"
        )
        logger.info(f"Broadcast confirmed: tx={tx_id} sender={sender} size={len(envelope_json)}")
        return tx_id

    async def broadcast_atomic(self, sender: str, operations: Sequence[LedgerOperation]) -> str:
        ops = [custom_json_operation(operation) for operation in operations]
        tx_id = await self.keychain.request_broadcast(sender, ops)
        logger.info(f"Atomic broadcast confirmed: tx={tx_id} sender={sender} operations={len(ops)}")
        return tx_id

    async def history(
        self,
        account: str,
        channel_kind: str,
        cursor: Optional[int] = None,
        page_size: int = 200,
    ) -> HistoryPage:
        """
        Fetch one page of custom_json history for account.

        Args:
            account: Account whose history is scanned
            channel_kind: custom_json id to keep
            cursor: Sequence to start from; None for the most recent entry
            page_size: Maximum entries to request (capped by the node limit)

        Returns:
            HistoryPage with records newest first

        Raises:
            RetrievalError: If the node request fails
        """
        start = -1 if cursor is None else cursor
        if start < -1:
            return HistoryPage(records=[], next_cursor=None)

        limit = max(1, min(page_size, MAX_HISTORY_PAGE_SIZE))
        if start >= 0:
            limit = min(limit, start + 1)

        entries = await self.rpc.get_account_history(account, start, limit)

        records: List[LedgerRecord] = []
        for entry in entries:
            try:
                record = parse_history_entry(entry, channel_kind)
            except ParseError as e:
                logger.warning(f"Skipping malformed history entry of {account}: {e}")
                continue
            if record is not None:
                records.append(record)

        records.sort(key=lambda record: record.sequence, reverse=True)
        next_cursor = next_history_cursor(entries)
        logger.debug(
            f"History page {account} start={start} limit={limit}: entries={len(entries)} "
            f"records={len(records)} next={next_cursor}"
        )
        return HistoryPage(records=records, next_cursor=next_cursor)

    async def close(self) -> None:
        await self.rpc.close()
        await self.keychain.close()
