"""Tests for history scanning, relevance filtering and scan widening."""

import pytest

from common.exceptions import RetrievalError
from common.protocol import ChunkEnvelope, SingleEnvelope
from messenger.arena import FragmentArena
from messenger.reassembler import Reassembler
from messenger.retriever import Retriever, is_relevant

HASH = "d4" * 32


def _single(recipient: str, e: str = "#cipher") -> str:
    return SingleEnvelope(to=recipient, e=e, h=HASH).to_json()


def _chunk(recipient: str, sid: str, idx: int, tot: int, e: str) -> str:
    return ChunkEnvelope(to=recipient, sid=sid, idx=idx, tot=tot, h=HASH if idx == 0 else None, e=e).to_json()


@pytest.mark.parametrize(
    "sender, recipient, expected",
    [
        ("alice", "bob", True),
        ("bob", "alice", True),
        ("alice", "carol", False),
        ("carol", "bob", False),
        ("alice", "alice", False),
    ],
)
def test_is_relevant(sender, recipient, expected):
    assert is_relevant(sender, recipient, "alice", "bob") is expected


def test_self_conversation_is_relevant():
    assert is_relevant("alice", "alice", "alice", "alice")


@pytest.mark.asyncio
async def test_malformed_records_are_skipped(fake_ledger):
    fake_ledger.append("alice", _single("bob", "#first"))
    fake_ledger.append("alice", "{not json")
    fake_ledger.append("alice", '{"v":1,"to":"bob","sid":"s","idx":5,"tot":2,"e":"x"}')
    fake_ledger.append("alice", _single("bob", "#second"))

    page = await Retriever(fake_ledger).scan("alice", "alice", "bob", FragmentArena())

    assert page.skipped == 2
    assert sorted(message.ciphertext for message in page.messages) == ["#first", "#second"]


@pytest.mark.asyncio
async def test_other_channels_and_conversations_are_ignored(fake_ledger):
    fake_ledger.append("alice", _single("bob"), channel_kind="some-other-app")
    fake_ledger.append("alice", _single("carol"))
    fake_ledger.append("alice", _single("bob", "#mine"))

    result = await Retriever(fake_ledger).collect("alice", "bob")

    assert [message.ciphertext for message in result.messages] == ["#mine"]


@pytest.mark.asyncio
async def test_collect_reads_both_histories(fake_ledger):
    fake_ledger.append("alice", _single("bob", "#from-alice"))
    fake_ledger.append("bob", _single("alice", "#from-bob"))

    result = await Retriever(fake_ledger).collect("alice", "bob")

    assert sorted((m.sender, m.recipient) for m in result.messages) == [("alice", "bob"), ("bob", "alice")]
    assert {call[0] for call in fake_ledger.history_calls} == {"alice", "bob"}


@pytest.mark.asyncio
async def test_self_conversation_scans_once(fake_ledger):
    fake_ledger.append("alice", _single("alice", "#note"))

    result = await Retriever(fake_ledger).collect("alice", "alice")

    assert [message.ciphertext for message in result.messages] == ["#note"]
    assert len(fake_ledger.history_calls) == 1


@pytest.mark.asyncio
async def test_single_message_ids_include_operation_index(fake_ledger):
    fake_ledger.append("alice", _single("bob", "#a"), tx_id="abc", op_index=0)
    fake_ledger.append("alice", _single("bob", "#b"), tx_id="abc", op_index=1)

    result = await Retriever(fake_ledger).collect("alice", "bob")

    assert sorted(message.tx_id for message in result.messages) == ["abc", "abc:1"]


@pytest.mark.asyncio
async def test_duplicate_records_are_processed_once(fake_ledger):
    body = _single("bob", "#dup")
    fake_ledger.append("alice", body, tx_id="same", op_index=0)
    fake_ledger.append("alice", body, tx_id="same", op_index=0)

    result = await Retriever(fake_ledger).collect("alice", "bob")

    assert len(result.messages) == 1


@pytest.mark.asyncio
async def test_scan_widens_until_session_completes(fake_ledger):
    fake_ledger.append("alice", _chunk("bob", "s-1", 0, 2, "AAAA"), tx_id="t1", op_index=0)
    for _ in range(4):
        fake_ledger.append("alice", _single("carol"))
    fake_ledger.append("alice", _chunk("bob", "s-1", 1, 2, "BB"), tx_id="t1", op_index=1)

    retriever = Retriever(fake_ledger, page_size=3, max_pages=5)
    result = await retriever.collect("alice", "bob")
    messages, pending = Reassembler().reassemble(result.arena)

    assert pending == []
    assert messages[0].ciphertext == "AAAABB"
    assert result.pages > 2


@pytest.mark.asyncio
async def test_scan_stops_without_pending_sessions(fake_ledger):
    for _ in range(10):
        fake_ledger.append("alice", _single("bob"))

    retriever = Retriever(fake_ledger, page_size=3, max_pages=5)
    result = await retriever.collect("alice", "bob")

    assert [call[0] for call in fake_ledger.history_calls].count("alice") == 1
    assert not result.exhausted


@pytest.mark.asyncio
async def test_page_budget_leaves_session_incomplete(fake_ledger):
    fake_ledger.append("alice", _chunk("bob", "s-1", 0, 2, "AAAA"), tx_id="t1", op_index=0)
    for _ in range(10):
        fake_ledger.append("alice", _single("carol"))
    fake_ledger.append("alice", _chunk("bob", "s-1", 1, 2, "BB"), tx_id="t1", op_index=1)

    result = await Retriever(fake_ledger, page_size=2, max_pages=2).collect("alice", "bob")
    messages, pending = Reassembler().reassemble(result.arena)

    assert messages == []
    assert pending[0].missing == (0,)


@pytest.mark.asyncio
async def test_each_collect_uses_fresh_arena(fake_ledger):
    fake_ledger.append("alice", _chunk("bob", "s-1", 1, 2, "BB"))
    retriever = Retriever(fake_ledger)

    first = await retriever.collect("alice", "bob")
    second = await retriever.collect("alice", "bob")

    assert first.arena is not second.arena
    assert len(second.arena.get("alice", "s-1").entries) == 1


@pytest.mark.asyncio
async def test_retrieval_errors_propagate(fake_ledger):
    async def failing_history(*args, **kwargs):
        raise RetrievalError("node down")

    fake_ledger.history = failing_history

    with pytest.raises(RetrievalError):
        await Retriever(fake_ledger).collect("alice", "bob")
