"""Synchronous facade over the async messaging service for the REPL."""

import asyncio
import time
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, TypeVar

from common.exceptions import (
    BroadcastCancelledError,
    BroadcastError,
    IncompleteSessionError,
    InsufficientResourceBudgetError,
    IntegrityError,
    MessengerError,
    ParseError,
    RelayRejectedError,
    RetrievalError,
    ServiceUnavailableError,
    UserCancelledError,
    ValidationError,
    WrongRecipientError,
)
from common.logging_config import get_logger
from common.types import ImageMessage, Payload
from cli.config import Config
from cli.utils import colorize_level, format_file_size, short_tx_id
from ledger.hive_ledger import HiveLedger
from ledger.keychain_client import KeychainClient
from ledger.rpc_client import HiveRpcClient
from messenger.config import MessengerSettings
from messenger.database import init_database
from messenger.encryption import MemoEncryptor
from messenger.image_data import prepare_image_for_ledger, unpack_image_data, validate_image_file
from messenger.repositories.message_repository import MessageRepository
from messenger.resources import format_rc, get_account_rc, rc_warning_level
from messenger.service import ImageMessageService

logger = get_logger(__name__)

T = TypeVar("T")

ERROR_MESSAGES = {
    UserCancelledError: "Request cancelled in the wallet.",
    WrongRecipientError: "This message was not encrypted for your account.",
    ServiceUnavailableError: "Signing service unavailable. Is the wallet bridge running?",
    BroadcastCancelledError: "Broadcast cancelled in the wallet.",
    InsufficientResourceBudgetError: "Not enough resource credits to broadcast. Wait for RC to regenerate.",
    RelayRejectedError: "The network rejected the transaction.",
    RetrievalError: "Could not read ledger history. Check your RPC nodes.",
    IntegrityError: "Integrity check failed - the image may be corrupted or tampered with.",
    ValidationError: "Invalid image.",
    ParseError: "Message content could not be decoded.",
}


def _format_error(error: MessengerError) -> str:
    """
    Map messaging errors to user-friendly messages.

    Args:
        error: Raised exception

    Returns:
        User-friendly error message
    """
    for error_type in type(error).__mro__:
        if error_type in ERROR_MESSAGES:
            detail = str(error)
            message = ERROR_MESSAGES[error_type]
            return f"{message} ({detail})" if detail else message
    if isinstance(error, BroadcastError):
        return f"Broadcast failed: {error}"
    return f"Error: {error}"


def _build_service(config: Config) -> ImageMessageService:
    """Wire the production service from CLI configuration."""
    retry_config = config.get_retry_config()
    rpc = HiveRpcClient(
        nodes=config.get_rpc_nodes(),
        timeout=config.get_timeout(),
        max_retries=retry_config['max_retries'],
        retry_backoff_multiplier=retry_config['retry_backoff_multiplier'],
    )
    keychain = KeychainClient(config.get_signer_url())
    init_database()
    return ImageMessageService(
        HiveLedger(rpc, keychain),
        MemoEncryptor(keychain),
        settings=MessengerSettings.from_env(),
        repository=MessageRepository(),
        rpc=rpc,
    )


class MessengerClient:
    """Runs one service operation per command and renders the outcome as text."""

    def __init__(
        self,
        config: Config,
        service_factory: Callable[[Config], ImageMessageService] = _build_service,
    ):
        """
        Initialize messenger client.

        Args:
            config: Configuration instance
            service_factory: Builds a fresh service for each command
        """
        self.config = config
        self.service_factory = service_factory

    def _run(self, operation: Callable[[ImageMessageService], Awaitable[T]]) -> T:
        async def runner() -> T:
            service = self.service_factory(self.config)
            try:
                return await operation(service)
            finally:
                await service.close()

        return asyncio.run(runner())

    def _require_account(self) -> str:
        account = self.config.get_account()
        if not account:
            raise ValueError("Not logged in. Please run: login <account>")
        return account

    def login(self, account: str) -> str:
        self.config.set_account(account)
        logger.info(f"Active account set: {account}")
        return f"Logged in as @{account}. Signing requests will go to {self.config.get_signer_url()}"

    def whoami(self) -> str:
        account = self.config.get_account()
        return f"@{account}" if account else "Not logged in."

    def send_image(self, partner: str, image_path: str, caption: Optional[str] = None) -> str:
        """
        Pack, encrypt and broadcast one image file.

        Args:
            partner: Recipient account
            image_path: Local image file
            caption: Optional text sent along with the image

        Returns:
            Success or error message
        """
        try:
            account = self._require_account()
            path = Path(image_path).expanduser()
            validate_image_file(path)
            packed = prepare_image_for_ledger(path.read_bytes())
            filename = path.with_suffix(".webp").name
            payload = Payload(
                image_data=packed.text,
                filename=filename,
                content_type=packed.content_type,
                sender=account,
                recipient=partner,
                timestamp=int(time.time() * 1000),
                caption=caption,
            )
            logger.info(
                f"Sending {filename} to {partner}: {packed.original_size} -> {packed.packed_size} bytes packed"
            )
            receipt = self._run(lambda service: service.send_image(payload))
        except ValueError as e:
            return f"Error: {e}"
        except MessengerError as e:
            logger.warning(f"Send failed: {type(e).__name__}: {e}")
            return f"Send failed: {_format_error(e)}"
        except OSError as e:
            return f"Error: cannot read {image_path}: {e}"

        lines = [
            f"Sent {filename} to @{partner} ({format_file_size(packed.original_size)})",
            f"Transaction: {receipt.tx_id}",
            f"Strategy: {receipt.strategy.value} ({receipt.chunk_count} operation(s), envelope {receipt.envelope_size} chars)",
        ]
        return "\n".join(lines)

    def list_messages(self, partner: str, limit: Optional[int] = None) -> str:
        """
        List the conversation with partner without decrypting anything.

        Returns:
            Formatted message table or error message
        """
        try:
            account = self._require_account()
            snapshot = self._run(lambda service: service.fetch_conversation(account, partner, limit))
        except ValueError as e:
            return f"Error: {e}"
        except MessengerError as e:
            logger.warning(f"List failed: {type(e).__name__}: {e}")
            return f"List failed: {_format_error(e)}"

        if not snapshot.messages and not snapshot.pending:
            return f"No image messages with @{partner}."

        lines = [f"Found {len(snapshot.messages)} image message(s) with @{partner}:"]
        for message in snapshot.messages:
            direction = "->" if message.sender == account else "<-"
            chunks = f"{message.chunks} chunks" if message.is_chunked else "single"
            lines.append(
                f"  {short_tx_id(message.tx_id)}  {message.timestamp}  {direction} @{message.sender}  "
                f"{chunks}  {format_file_size(len(message.ciphertext))}"
            )
        for pending in snapshot.pending:
            lines.append(f"  (incomplete) {_describe_pending(pending)}")
        return "\n".join(lines)

    def open_image(self, partner: str, tx_id: str, output_path: Optional[str] = None) -> str:
        """
        Decrypt, verify and save one image message.

        Args:
            partner: Conversation partner
            tx_id: Transaction id or unique prefix
            output_path: Destination file; defaults to the download directory

        Returns:
            Success or error message
        """
        try:
            account = self._require_account()

            async def operation(service: ImageMessageService) -> Payload:
                snapshot = await service.fetch_conversation(account, partner)
                message = _select_message(snapshot.messages, tx_id)
                return await service.open_message(message, account)

            payload = self._run(operation)
            image_bytes = unpack_image_data(payload.image_data)
            destination = self._destination(payload.filename, output_path)
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_bytes(image_bytes)
        except ValueError as e:
            return f"Error: {e}"
        except MessengerError as e:
            logger.warning(f"Open failed: {type(e).__name__}: {e}")
            return f"Open failed: {_format_error(e)}"
        except OSError as e:
            return f"Error: cannot write image: {e}"

        lines = [
            f"Verified image from @{payload.sender}: {payload.filename} ({payload.content_type}, {format_file_size(len(image_bytes))})",
            f"Saved to {destination}",
        ]
        if payload.caption:
            lines.append(f"Caption: {payload.caption}")
        return "\n".join(lines)

    def rc_status(self) -> str:
        try:
            account = self._require_account()
            info = self._run(lambda service: get_account_rc(service.rpc, account))
        except ValueError as e:
            return f"Error: {e}"
        except MessengerError as e:
            return f"RC lookup failed: {_format_error(e)}"

        level = rc_warning_level(info.percentage)
        return (
            f"@{account} resource credits: {format_rc(info.current)} / {format_rc(info.max)} "
            f"({colorize_level(level, f'{info.percentage:.2f}%')})"
        )

    def _destination(self, filename: str, output_path: Optional[str]) -> Path:
        safe_name = Path(filename).name or "image"
        if output_path:
            destination = Path(output_path).expanduser()
            if destination.is_dir():
                destination = destination / safe_name
            return destination
        return self.config.get_download_dir() / safe_name


def _select_message(messages: List[ImageMessage], tx_id: str) -> ImageMessage:
    """Find the message whose tx id equals or starts with tx_id."""
    exact = [message for message in messages if message.tx_id == tx_id]
    if exact:
        return exact[0]
    matches = [message for message in messages if message.tx_id.startswith(tx_id)]
    if not matches:
        raise ValueError(f"No image message with transaction id {tx_id}")
    if len(matches) > 1:
        raise ValueError(f"Transaction id prefix {tx_id} is ambiguous ({len(matches)} matches)")
    return matches[0]


def _describe_pending(error: IncompleteSessionError) -> str:
    received = error.total - len(error.missing)
    return f"session {error.session_id}: {received}/{error.total} chunks received"
