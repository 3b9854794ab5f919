"""Conversion of raw Hive account-history entries into LedgerRecords."""

from typing import Any, Optional

from common.exceptions import ParseError
from common.types import LedgerRecord

NULL_TRX_ID = "0" * 40


def _operation_parts(op: Any) -> tuple:
    """Accept condenser ([type, body]) and appbase ({type, value}) operation shapes."""
    if isinstance(op, (list, tuple)) and len(op) == 2:
        return op[0], op[1]
    if isinstance(op, dict) and "type" in op and "value" in op:
        op_type = op["type"]
        if not isinstance(op_type, str):
            raise ParseError(f"Operation type must be a string, got {op_type!r}")
        if op_type.endswith("_operation"):
            op_type = op_type[: -len("_operation")]
        return op_type, op["value"]
    raise ParseError(f"Unrecognized operation shape: {type(op).__name__}")


def _as_int(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise ParseError(f"History field {field} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ParseError(f"History field {field} must be an integer, got {value!r}") from e


def parse_history_entry(entry: Any, channel_kind: str) -> Optional[LedgerRecord]:
    """
    Convert one [sequence, {...}] history entry.

    Returns:
        LedgerRecord, or None for operations outside the channel

    Raises:
        ParseError: If the entry is structurally malformed
    """
    if not isinstance(entry, (list, tuple)) or len(entry) != 2 or not isinstance(entry[1], dict):
        raise ParseError("History entry must be [sequence, object]")

    sequence, info = entry
    if isinstance(sequence, bool) or not isinstance(sequence, int):
        raise ParseError(f"History sequence must be an integer, got {sequence!r}")

    op_type, body = _operation_parts(info.get("op"))
    if op_type != "custom_json":
        return None
    if not isinstance(body, dict):
        raise ParseError("custom_json body must be an object")
    if body.get("id") != channel_kind:
        return None

    posting_auths = body.get("required_posting_auths") or []
    active_auths = body.get("required_auths") or []
    if not isinstance(posting_auths, list) or not isinstance(active_auths, list):
        raise ParseError("custom_json authorities must be lists")
    signers = posting_auths + active_auths
    if not signers or not isinstance(signers[0], str):
        raise ParseError("custom_json has no signing account")

    payload = body.get("json")
    if not isinstance(payload, str):
        raise ParseError("custom_json json field must be a string")

    block = info.get("block", 0)
    trx_in_block = info.get("trx_in_block", 0)
    trx_id = info.get("trx_id")
    if not trx_id or trx_id == NULL_TRX_ID:
        trx_id = f"{block}-{trx_in_block}"

    return LedgerRecord(
        tx_id=trx_id,
        op_index=_as_int(info.get("op_in_trx", 0), "op_in_trx"),
        sequence=sequence,
        block_num=_as_int(block, "block"),
        timestamp=str(info.get("timestamp", "")),
        channel_kind=channel_kind,
        sender=signers[0],
        body=payload,
    )
