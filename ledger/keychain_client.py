"""HTTP client for the wallet signing bridge (memo encode/decode and broadcasts)."""

from typing import Any, List, Optional

import httpx
from pydantic import BaseModel, ValidationError

from common.constants import SIGNER_TIMEOUT_SECONDS
from common.exceptions import (
    BroadcastCancelledError,
    InsufficientResourceBudgetError,
    RelayRejectedError,
    ServiceUnavailableError,
    UserCancelledError,
    WrongRecipientError,
)
from common.logging_config import get_logger

logger = get_logger(__name__)

CANCEL_CODES = {"user_cancel", "user_cancelled", "cancelled", "rejected_by_user"}
WRONG_RECIPIENT_CODES = {"wrong_recipient", "not_recipient", "invalid_memo_key"}
INSUFFICIENT_RC_CODES = {"insufficient_rc", "not_enough_rc"}


class SignerResponse(BaseModel):
    """Response envelope of every bridge endpoint."""
    success: bool
    result: Any = None
    message: Optional[str] = None
    error: Optional[str] = None


def _is_cancel(response: SignerResponse) -> bool:
    text = (response.message or "").lower()
    return (response.error or "").lower() in CANCEL_CODES or "cancel" in text


def _is_wrong_recipient(response: SignerResponse) -> bool:
    text = (response.message or "").lower()
    return (response.error or "").lower() in WRONG_RECIPIENT_CODES or "not the recipient" in text


def _is_insufficient_rc(response: SignerResponse) -> bool:
    text = (response.message or "").lower()
    return (
        (response.error or "").lower() in INSUFFICIENT_RC_CODES
        or "resource credits" in text
        or "not enough rc" in text
        or "rc_plugin" in text
    )


class KeychainClient:
    """
    Client for the signing bridge that fronts the user's wallet.

    Every call may block until the user approves or rejects it in the wallet.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = SIGNER_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.session = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)
        logger.info(f"Initialized KeychainClient [base_url={base_url}]")

    async def close(self) -> None:
        await self.session.aclose()

    async def _post(self, endpoint: str, body: dict) -> SignerResponse:
        try:
            response = await self.session.post(endpoint, json=body)
        except (httpx.ConnectError, httpx.TimeoutException, httpx.NetworkError) as e:
            logger.error(f"Signing bridge unreachable: {endpoint} error={type(e).__name__}")
            raise ServiceUnavailableError(f"Signing service unavailable: {type(e).__name__}") from e

        if response.status_code >= 500:
            raise ServiceUnavailableError(f"Signing service error: HTTP {response.status_code}")

        try:
            return SignerResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise ServiceUnavailableError(f"Signing service returned an invalid response for {endpoint}") from e

    async def encode_message(self, username: str, receiver: str, message: str) -> str:
        """
        Encrypt a memo-prefixed message for receiver with username's memo key.

        Raises:
            UserCancelledError, ServiceUnavailableError
        """
        response = await self._post(
            "/encode",
            {"username": username, "receiver": receiver, "message": message, "key_type": "Memo"},
        )
        if not response.success:
            if _is_cancel(response):
                raise UserCancelledError(response.message or "Encryption cancelled")
            raise ServiceUnavailableError(response.message or "Encryption failed")
        if not isinstance(response.result, str):
            raise ServiceUnavailableError("Encryption returned no ciphertext")
        return response.result

    async def decode_message(self, username: str, message: str) -> str:
        """
        Decrypt a memo with username's memo key.

        Raises:
            UserCancelledError, WrongRecipientError, ServiceUnavailableError
        """
        response = await self._post(
            "/decode",
            {"username": username, "message": message, "key_type": "Memo"},
        )
        if not response.success:
            if _is_cancel(response):
                raise UserCancelledError(response.message or "Decryption cancelled")
            if _is_wrong_recipient(response):
                raise WrongRecipientError(response.message or f"Message not encrypted for {username}")
            raise ServiceUnavailableError(response.message or "Decryption failed")
        if not isinstance(response.result, str):
            raise ServiceUnavailableError("Decryption returned no plaintext")
        return response.result

    async def request_custom_json(self, username: str, custom_json_id: str, payload: str, display_msg: str) -> str:
        """Sign and broadcast one custom_json operation with the posting key; returns the tx id."""
        response = await self._post(
            "/custom_json",
            {
                "username": username,
                "id": custom_json_id,
                "key_type": "Posting",
                "json": payload,
                "display_msg": display_msg,
            },
        )
        return self._broadcast_result(response)

    async def request_broadcast(self, username: str, operations: List[list]) -> str:
        """Sign and broadcast several operations in one transaction; returns the tx id."""
        response = await self._post(
            "/broadcast",
            {"username": username, "operations": operations, "key_type": "Posting"},
        )
        return self._broadcast_result(response)

    @staticmethod
    def _broadcast_result(response: SignerResponse) -> str:
        if not response.success:
            if _is_cancel(response):
                raise BroadcastCancelledError(response.message or "Broadcast cancelled")
            if _is_insufficient_rc(response):
                raise InsufficientResourceBudgetError(response.message or "Insufficient resource credits")
            raise RelayRejectedError(response.message or "Broadcast failed")

        result = response.result
        if isinstance(result, dict):
            result = result.get("id") or result.get("tx_id")
        if not isinstance(result, str) or not result:
            raise RelayRejectedError("Broadcast confirmed without a transaction id")
        return result
