"""End-to-end tests of the messaging service over an in-memory ledger."""

import hashlib
import json
from dataclasses import replace
from unittest.mock import AsyncMock

import pytest

from common.exceptions import (
    BroadcastCancelledError,
    InsufficientResourceBudgetError,
    IntegrityError,
    UserCancelledError,
    ValidationError,
    WrongRecipientError,
)
from common.types import BroadcastStrategy, Payload, SessionState
from ledger.rpc_client import HiveRpcClient
from messenger.config import MessengerSettings
from messenger.repositories.message_repository import MessageRepository
from messenger.service import ImageMessageService


@pytest.fixture
def service(fake_ledger, fake_encryptor):
    return ImageMessageService(fake_ledger, fake_encryptor)


@pytest.mark.asyncio
async def test_single_round_trip(service, sample_payload):
    receipt = await service.send_image(sample_payload)
    snapshot = await service.fetch_conversation("bob", "alice")

    assert receipt.strategy is BroadcastStrategy.SINGLE
    assert [message.tx_id for message in snapshot.messages] == [receipt.tx_id]

    payload = await service.open_message(snapshot.messages[0], "bob")

    assert payload == sample_payload
    assert snapshot.messages[0].state is SessionState.DECODED


@pytest.mark.asyncio
async def test_chunked_round_trip(service, large_payload):
    receipt = await service.send_image(large_payload)
    snapshot = await service.fetch_conversation("bob", "alice")

    assert receipt.strategy is BroadcastStrategy.CHUNKED
    assert receipt.chunk_count >= 3
    assert snapshot.pending == []
    message = snapshot.messages[0]
    assert message.chunks == receipt.chunk_count
    assert message.session_id == receipt.session_id
    assert await service.open_message(message, "bob") == large_payload


@pytest.mark.asyncio
async def test_sender_can_read_own_message(service, sample_payload):
    await service.send_image(sample_payload)
    snapshot = await service.fetch_conversation("alice", "bob")

    assert await service.open_message(snapshot.messages[0], "alice") == sample_payload


@pytest.mark.asyncio
async def test_conversation_is_ordered_and_limited(service, sample_payload):
    for caption in ("one", "two", "three"):
        await service.send_image(replace(sample_payload, caption=caption))
    await service.send_image(replace(sample_payload, sender="bob", recipient="alice", caption="reply"))

    snapshot = await service.fetch_conversation("alice", "bob", limit=2)
    payloads = [await service.open_message(message, "alice") for message in snapshot.messages]

    assert [payload.caption for payload in payloads] == ["three", "reply"]


@pytest.mark.asyncio
async def test_tampered_ciphertext_is_corrupted(service, fake_ledger, sample_payload):
    await service.send_image(sample_payload)
    record = fake_ledger.accounts["alice"][0]
    envelope = json.loads(record.body)
    envelope["h"] = "0" * 64
    fake_ledger.accounts["alice"][0] = replace(record, body=json.dumps(envelope))

    snapshot = await service.fetch_conversation("bob", "alice")
    message = snapshot.messages[0]

    with pytest.raises(IntegrityError):
        await service.open_message(message, "bob")
    assert message.state is SessionState.CORRUPTED


@pytest.mark.asyncio
async def test_open_messages_isolates_failures(service, fake_ledger, sample_payload):
    await service.send_image(replace(sample_payload, caption="good"))
    await service.send_image(replace(sample_payload, caption="bad"))
    await service.send_image(replace(sample_payload, caption="also good"))

    record = fake_ledger.accounts["alice"][1]
    envelope = json.loads(record.body)
    envelope["h"] = "f" * 64
    fake_ledger.accounts["alice"][1] = replace(record, body=json.dumps(envelope))

    snapshot = await service.fetch_conversation("bob", "alice")
    results = await service.open_messages(snapshot.messages, "bob")

    assert [result.ok for result in results] == [True, False, True]
    assert isinstance(results[1].error, IntegrityError)
    assert results[1].payload is None
    assert [result.payload.caption for result in results if result.ok] == ["good", "also good"]


@pytest.mark.asyncio
async def test_missing_fragment_is_reported_pending(service, fake_ledger, large_payload):
    await service.send_image(large_payload)
    del fake_ledger.accounts["alice"][1]

    snapshot = await service.fetch_conversation("bob", "alice")

    assert snapshot.messages == []
    assert len(snapshot.pending) == 1
    assert 1 in snapshot.pending[0].missing


@pytest.mark.asyncio
async def test_wrong_recipient_cannot_open(service, sample_payload):
    await service.send_image(sample_payload)
    snapshot = await service.fetch_conversation("bob", "alice")
    message = snapshot.messages[0]

    with pytest.raises(WrongRecipientError):
        await service.open_message(message, "carol")
    assert message.state is SessionState.COMPLETE


@pytest.mark.asyncio
async def test_cancelled_encryption_broadcasts_nothing(service, fake_ledger, fake_encryptor, sample_payload):
    fake_encryptor.cancel_next = True

    with pytest.raises(UserCancelledError):
        await service.send_image(sample_payload)
    assert fake_ledger.broadcasts == []


@pytest.mark.asyncio
async def test_cancelled_broadcast_propagates(service, fake_ledger, sample_payload):
    fake_ledger.broadcast_error = BroadcastCancelledError("user_cancel")

    with pytest.raises(BroadcastCancelledError):
        await service.send_image(sample_payload)


@pytest.mark.asyncio
async def test_invalid_payload_is_rejected_before_encryption(service, fake_encryptor, sample_payload):
    fake_encryptor.encrypt = AsyncMock()

    with pytest.raises(ValidationError):
        await service.send_image(replace(sample_payload, content_type="text/plain"))
    fake_encryptor.encrypt.assert_not_called()


@pytest.mark.asyncio
async def test_missing_hash_accepted_when_not_required(fake_ledger, fake_encryptor, sample_payload):
    service = ImageMessageService(
        fake_ledger, fake_encryptor, settings=MessengerSettings(require_integrity_hash=False)
    )
    await service.send_image(sample_payload)
    record = fake_ledger.accounts["alice"][0]
    envelope = json.loads(record.body)
    del envelope["h"]
    fake_ledger.accounts["alice"][0] = replace(record, body=json.dumps(envelope))

    snapshot = await service.fetch_conversation("bob", "alice")

    assert await service.open_message(snapshot.messages[0], "bob") == sample_payload


@pytest.mark.asyncio
async def test_rc_preflight_blocks_broadcast(fake_ledger, fake_encryptor, sample_payload):
    rpc = AsyncMock(spec=HiveRpcClient)
    rpc.find_rc_accounts.return_value = [{"rc_manabar": {"current_mana": "1000"}, "max_rc": "100000"}]
    service = ImageMessageService(
        fake_ledger, fake_encryptor, settings=MessengerSettings(rc_preflight=True), rpc=rpc
    )

    with pytest.raises(InsufficientResourceBudgetError):
        await service.send_image(sample_payload)
    assert fake_ledger.broadcasts == []


@pytest.mark.asyncio
async def test_fetch_caches_ciphertext_and_integrity(test_db, fake_ledger, fake_encryptor, sample_payload):
    repository = MessageRepository()
    service = ImageMessageService(fake_ledger, fake_encryptor, repository=repository)
    await service.send_image(sample_payload)

    snapshot = await service.fetch_conversation("bob", "alice")
    await service.fetch_conversation("bob", "alice")
    await service.open_message(snapshot.messages[0], "bob")

    cached = service.cached_conversation("alice", "bob")
    assert [message.tx_id for message in cached] == [snapshot.messages[0].tx_id]
    assert cached[0].ciphertext == snapshot.messages[0].ciphertext
    assert repository.get_integrity_status(cached[0].tx_id) == "verified"


@pytest.mark.asyncio
async def test_literal_single_payload_round_trip(service, fake_ledger):
    payload = Payload(
        image_data="X",
        caption="hi",
        filename="a.webp",
        content_type="image/webp",
        sender="alice",
        recipient="bob",
        timestamp=1000,
    )
    compact = '{"t":"bob","f":"alice","i":"X","m":"hi","n":"a.webp","c":"image/webp","ts":1000}'

    receipt = await service.send_image(payload)
    envelope = json.loads(fake_ledger.accounts["alice"][0].body)
    snapshot = await service.fetch_conversation("bob", "alice")

    assert receipt.strategy is BroadcastStrategy.SINGLE
    assert receipt.chunk_count == 1
    assert envelope["h"] == hashlib.sha256(compact.encode("utf-8")).hexdigest()
    assert await service.open_message(snapshot.messages[0], "bob") == payload


@pytest.mark.asyncio
@pytest.mark.parametrize("tampered_index", [0, 1, 2])
async def test_flipped_character_in_chunk_is_corrupted(service, fake_ledger, large_payload, tampered_index):
    await service.send_image(large_payload)
    records = fake_ledger.accounts["alice"]
    position = next(i for i, record in enumerate(records) if json.loads(record.body)["idx"] == tampered_index)
    envelope = json.loads(records[position].body)
    data = envelope["e"]
    flipped = "A" if data[100] != "A" else "B"
    envelope["e"] = data[:100] + flipped + data[101:]
    records[position] = replace(records[position], body=json.dumps(envelope))

    snapshot = await service.fetch_conversation("bob", "alice")
    message = snapshot.messages[0]

    with pytest.raises(IntegrityError):
        await service.open_message(message, "bob")
    assert message.state is SessionState.CORRUPTED


@pytest.mark.asyncio
async def test_every_missing_chunk_is_reported_pending(service, fake_ledger, large_payload):
    receipt = await service.send_image(large_payload)
    original = list(fake_ledger.accounts["alice"])

    for missing_index in range(receipt.chunk_count):
        fake_ledger.accounts["alice"] = [
            record for record in original if json.loads(record.body)["idx"] != missing_index
        ]

        snapshot = await service.fetch_conversation("bob", "alice")

        assert snapshot.messages == []
        assert snapshot.pending[0].missing == (missing_index,)


@pytest.mark.asyncio
async def test_rc_preflight_measures_chunk_envelopes(fake_ledger, fake_encryptor, large_payload, monkeypatch):
    check = AsyncMock()
    monkeypatch.setattr("messenger.service.ensure_sufficient_rc", check)
    rpc = AsyncMock(spec=HiveRpcClient)
    service = ImageMessageService(
        fake_ledger, fake_encryptor, settings=MessengerSettings(rc_preflight=True), rpc=rpc
    )

    receipt = await service.send_image(large_payload)

    bodies = fake_ledger.broadcasts[0][2]
    check.assert_awaited_once_with(rpc, "alice", sum(len(body) for body in bodies), receipt.chunk_count)


@pytest.mark.asyncio
async def test_oversized_chunked_message_is_rejected_before_broadcast(fake_ledger, fake_encryptor, large_payload):
    service = ImageMessageService(fake_ledger, fake_encryptor)
    service.broadcaster.max_transaction_bytes = 10000

    with pytest.raises(ValidationError, match="too large for one transaction"):
        await service.send_image(large_payload)
    assert fake_ledger.broadcasts == []
