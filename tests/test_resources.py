"""Tests for resource-credit estimation and checks."""

from unittest.mock import AsyncMock

import pytest

from common.exceptions import InsufficientResourceBudgetError, RetrievalError
from ledger.rpc_client import HiveRpcClient
from messenger.resources import (
    RC_COSTS,
    ensure_sufficient_rc,
    estimate_custom_json_rc,
    format_rc,
    get_account_rc,
    rc_warning_level,
)


def _rpc(current: int, maximum: int) -> AsyncMock:
    rpc = AsyncMock(spec=HiveRpcClient)
    rpc.find_rc_accounts.return_value = [
        {"account": "alice", "rc_manabar": {"current_mana": str(current)}, "max_rc": str(maximum)}
    ]
    return rpc


def test_estimate_bills_each_operation_and_started_kilobyte():
    assert estimate_custom_json_rc(0) == RC_COSTS["CUSTOM_JSON_BASE"]
    assert estimate_custom_json_rc(1024) == 200_000_000 + 50_000_000
    assert estimate_custom_json_rc(1025, chunk_count=3) == 3 * 200_000_000 + 2 * 50_000_000


def test_estimate_rejects_invalid_arguments():
    with pytest.raises(ValueError):
        estimate_custom_json_rc(-1)
    with pytest.raises(ValueError):
        estimate_custom_json_rc(10, chunk_count=0)


@pytest.mark.asyncio
async def test_get_account_rc():
    info = await get_account_rc(_rpc(25, 100), "alice")

    assert info.current == 25
    assert info.max == 100
    assert info.percentage == 25.0


@pytest.mark.asyncio
async def test_unknown_account_raises_retrieval_error():
    rpc = AsyncMock(spec=HiveRpcClient)
    rpc.find_rc_accounts.return_value = []

    with pytest.raises(RetrievalError):
        await get_account_rc(rpc, "ghost")


@pytest.mark.asyncio
async def test_ensure_sufficient_rc():
    info = await ensure_sufficient_rc(_rpc(10_000_000_000, 20_000_000_000), "alice", 20000, 3)
    assert info.percentage == 50.0

    with pytest.raises(InsufficientResourceBudgetError):
        await ensure_sufficient_rc(_rpc(100_000_000, 20_000_000_000), "alice", 500)


@pytest.mark.parametrize(
    "percentage, level",
    [(0, "critical"), (4.99, "critical"), (5, "low"), (19.9, "low"), (20, "ok"), (100, "ok")],
)
def test_rc_warning_level(percentage, level):
    assert rc_warning_level(percentage) == level


@pytest.mark.parametrize(
    "value, text",
    [(None, "?"), (999, "999"), (12_000, "12.0K"), (200_000_000, "200.0M"), (1_500_000_000, "1.5B")],
)
def test_format_rc(value, text):
    assert format_rc(value) == text
