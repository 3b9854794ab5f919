"""Shared pytest fixtures for all tests."""

import base64
import tempfile
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, Generator, List, Optional, Sequence

import pytest
from PIL import Image

from cli.config import Config
from common.constants import CHANNEL_KIND
from common.exceptions import UserCancelledError, WrongRecipientError
from common.types import HistoryPage, LedgerOperation, LedgerRecord, Payload
from ledger.base import Ledger
from messenger.database import init_database
from messenger.encryption import Encryptor

BASE_TIME = datetime(2026, 1, 1, 12, 0, 0)


class FakeLedger(Ledger):
    """
    In-memory ledger: every account has an ascending list of records.

    Records are filed under the signing account, like Hive account history.
    """

    def __init__(self):
        self.accounts: Dict[str, List[LedgerRecord]] = {}
        self.broadcasts: List[tuple] = []
        self.history_calls: List[tuple] = []
        self.broadcast_error: Optional[Exception] = None
        self._tx_counter = 0
        self._clock = 0

    def _next_tx_id(self) -> str:
        self._tx_counter += 1
        return f"{self._tx_counter:040x}"

    def _next_timestamp(self) -> str:
        self._clock += 3
        return (BASE_TIME + timedelta(seconds=self._clock)).isoformat()

    def append(
        self,
        sender: str,
        body: str,
        channel_kind: str = CHANNEL_KIND,
        tx_id: Optional[str] = None,
        op_index: int = 0,
        timestamp: Optional[str] = None,
    ) -> LedgerRecord:
        """File a raw record under sender's history."""
        history = self.accounts.setdefault(sender, [])
        record = LedgerRecord(
            tx_id=tx_id or self._next_tx_id(),
            op_index=op_index,
            sequence=len(history),
            block_num=1000 + self._tx_counter,
            timestamp=timestamp or self._next_timestamp(),
            channel_kind=channel_kind,
            sender=sender,
            body=body,
        )
        history.append(record)
        return record

    async def broadcast(self, channel_kind: str, sender: str, envelope_json: str) -> str:
        if self.broadcast_error is not None:
            raise self.broadcast_error
        record = self.append(sender, envelope_json, channel_kind=channel_kind)
        self.broadcasts.append(("single", sender, [envelope_json]))
        return record.tx_id

    async def broadcast_atomic(self, sender: str, operations: Sequence[LedgerOperation]) -> str:
        if self.broadcast_error is not None:
            raise self.broadcast_error
        tx_id = self._next_tx_id()
        timestamp = self._next_timestamp()
        for op_index, operation in enumerate(operations):
            self.append(
                operation.sender,
                operation.body,
                channel_kind=operation.channel_kind,
                tx_id=tx_id,
                op_index=op_index,
                timestamp=timestamp,
            )
        self.broadcasts.append(("atomic", sender, [operation.body for operation in operations]))
        return tx_id

    async def history(
        self,
        account: str,
        channel_kind: str,
        cursor: Optional[int] = None,
        page_size: int = 200,
    ) -> HistoryPage:
        self.history_calls.append((account, cursor, page_size))
        records = self.accounts.get(account, [])
        if not records:
            return HistoryPage(records=[], next_cursor=None)

        start = len(records) - 1 if cursor is None else cursor
        lowest = max(0, start - page_size + 1)
        page = [
            record for record in reversed(records[lowest:start + 1])
            if record.channel_kind == channel_kind
        ]
        return HistoryPage(records=page, next_cursor=lowest - 1 if lowest > 0 else None)


class FakeEncryptor(Encryptor):
    """
    Reversible stand-in for memo encryption.

    Ciphertext is '#<from>:<to>:<base64>'; only the two parties can decrypt.
    """

    def __init__(self):
        self.cancel_next = False
        self.decrypt_calls: List[str] = []

    async def encrypt(self, plaintext: str, from_id: str, to_id: str) -> str:
        if self.cancel_next:
            self.cancel_next = False
            raise UserCancelledError("User cancelled the request")
        encoded = base64.b64encode(plaintext.encode("utf-8")).decode("ascii")
        return f"#{from_id}:{to_id}:{encoded}"

    async def decrypt(self, ciphertext: str, my_id: str) -> str:
        self.decrypt_calls.append(ciphertext)
        if self.cancel_next:
            self.cancel_next = False
            raise UserCancelledError("User cancelled the request")
        from_id, to_id, encoded = ciphertext[1:].split(":", 2)
        if my_id not in (from_id, to_id):
            raise WrongRecipientError(f"Message not encrypted for {my_id}")
        return base64.b64decode(encoded).decode("utf-8", errors="replace")


@pytest.fixture
def fake_ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def fake_encryptor() -> FakeEncryptor:
    return FakeEncryptor()


@pytest.fixture
def sample_payload() -> Payload:
    """Small payload that fits in one operation."""
    return Payload(
        image_data="H4sIAAAAAAAAA2NgYGBgAAAABQABUklDgQAAAA==",
        filename="dot.webp",
        content_type="image/webp",
        sender="alice",
        recipient="bob",
        timestamp=1767268800000,
        caption="hello bob",
    )


@pytest.fixture
def large_payload() -> Payload:
    """Payload whose ciphertext needs several chunk operations."""
    return Payload(
        image_data="Q" * 20000,
        filename="big.png",
        content_type="image/png",
        sender="alice",
        recipient="bob",
        timestamp=1767268800000,
    )


@pytest.fixture
def temp_config_dir(tmp_path):
    """
    Create temporary config directory.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to temporary .chainpix directory
    """
    config_dir = tmp_path / '.chainpix'
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def temp_config(temp_config_dir):
    """
    Create temporary config instance.

    Args:
        temp_config_dir: Temporary config directory fixture

    Returns:
        Config instance with temp config file
    """
    return Config(temp_config_dir / 'config.json')


@pytest.fixture
def test_db(monkeypatch) -> Generator[Path, None, None]:
    """
    Create a temporary test database for each test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        monkeypatch.setattr("messenger.database.DATABASE_PATH", str(db_path))
        monkeypatch.setattr("messenger.config.DATABASE_PATH", str(db_path))
        init_database()
        yield db_path


@pytest.fixture
def sample_image(tmp_path) -> Path:
    """
    Create a PNG wider than the WebP target width.

    Returns:
        Path to a PNG file
    """
    image_path = tmp_path / 'dot.png'
    Image.new('RGB', (640, 480), (200, 30, 30)).save(image_path, format='PNG')
    return image_path
