"""Resource-credit estimation and pre-flight checks for image broadcasts."""

import math
from dataclasses import dataclass
from typing import Optional

from common.exceptions import InsufficientResourceBudgetError, RetrievalError
from common.logging_config import get_logger
from ledger.rpc_client import HiveRpcClient

logger = get_logger(__name__)

RC_COSTS = {
    "CUSTOM_JSON_BASE": 200_000_000,
    "CUSTOM_JSON_PER_KB": 50_000_000,
}

CRITICAL_RC_PERCENT = 5
LOW_RC_PERCENT = 20


@dataclass(frozen=True)
class RCInfo:
    """Current resource-credit mana of an account."""
    current: int
    max: int
    percentage: float


def estimate_custom_json_rc(size: int, chunk_count: int = 1) -> int:
    """
    Estimate the RC cost of broadcasting size bytes of envelopes.

    Each operation pays the base cost; bytes are billed per started kilobyte.
    """
    if size < 0 or chunk_count < 1:
        raise ValueError("size must be >= 0 and chunk_count >= 1")
    kilobytes = math.ceil(size / 1024)
    return RC_COSTS["CUSTOM_JSON_BASE"] * chunk_count + RC_COSTS["CUSTOM_JSON_PER_KB"] * kilobytes


async def get_account_rc(rpc: HiveRpcClient, account: str) -> RCInfo:
    """
    Fetch an account's RC mana.

    Raises:
        RetrievalError: If the account is unknown or the node fails
    """
    accounts = await rpc.find_rc_accounts([account])
    if not accounts:
        raise RetrievalError(f"No RC account found for {account}")

    rc_account = accounts[0]
    try:
        current = int(rc_account["rc_manabar"]["current_mana"])
        maximum = int(rc_account["max_rc"])
    except (KeyError, TypeError, ValueError) as e:
        raise RetrievalError(f"Malformed RC account for {account}") from e

    percentage = round(current / maximum * 100, 2) if maximum > 0 else 0.0
    return RCInfo(current=current, max=maximum, percentage=percentage)


async def ensure_sufficient_rc(
    rpc: HiveRpcClient,
    account: str,
    size: int,
    chunk_count: int = 1,
) -> RCInfo:
    """
    Pre-flight check before asking the wallet to sign.

    Raises:
        InsufficientResourceBudgetError: If the estimate exceeds current mana
    """
    info = await get_account_rc(rpc, account)
    required = estimate_custom_json_rc(size, chunk_count)
    if info.current < required:
        logger.warning(
            f"Insufficient RC for {account}: required={format_rc(required)} available={format_rc(info.current)}"
        )
        raise InsufficientResourceBudgetError(
            f"Broadcast needs ~{format_rc(required)} RC but {account} has {format_rc(info.current)}"
        )
    logger.debug(f"RC pre-flight ok for {account}: required={required} available={info.current}")
    return info


def rc_warning_level(percentage: float) -> str:
    if percentage < CRITICAL_RC_PERCENT:
        return "critical"
    if percentage < LOW_RC_PERCENT:
        return "low"
    return "ok"


def format_rc(value: Optional[int]) -> str:
    """Human-readable RC amount (1.5B, 200.0M, 12.0K)."""
    if value is None:
        return "?"
    for threshold, suffix in ((1_000_000_000, "B"), (1_000_000, "M"), (1_000, "K")):
        if abs(value) >= threshold:
            return f"{value / threshold:.1f}{suffix}"
    return str(value)
