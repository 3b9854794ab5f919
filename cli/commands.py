"""Command handler functions for CLI operations."""

from pathlib import Path
from typing import Optional

from common.logging_config import get_logger
from cli.models import (
    ListCommand,
    LoginCommand,
    OpenCommand,
    RcCommand,
    SendCommand,
    WhoamiCommand,
)
from cli.config import Config
from cli.messenger_client import MessengerClient

logger = get_logger(__name__)


_client: Optional[MessengerClient] = None


def get_client() -> MessengerClient:
    """
    Get or create global MessengerClient instance.

    Returns:
        MessengerClient instance
    """
    global _client
    if _client is None:
        logger.debug("Creating new MessengerClient instance")
        config = Config(Path.home() / '.chainpix' / 'config.json')
        _client = MessengerClient(config)
    return _client


def handle_login(cmd: LoginCommand, client: Optional[MessengerClient] = None) -> str:
    """
    Handle 'login' command.

    Args:
        cmd: LoginCommand with account
        client: Optional MessengerClient for dependency injection (testing)

    Returns:
        Success message
    """
    if client is None:
        client = get_client()
    return client.login(cmd.account)


def handle_whoami(cmd: WhoamiCommand, client: Optional[MessengerClient] = None) -> str:
    if client is None:
        client = get_client()
    return client.whoami()


def handle_send(cmd: SendCommand, client: Optional[MessengerClient] = None) -> str:
    """
    Handle 'send' command.

    Args:
        cmd: SendCommand with partner, image_path and caption
        client: Optional MessengerClient for dependency injection (testing)

    Returns:
        Success or error message with the transaction id
    """
    logger.info(f"Executing send command: partner={cmd.partner} image={cmd.image_path}")
    if client is None:
        client = get_client()
    result = client.send_image(cmd.partner, cmd.image_path, cmd.caption)
    logger.debug("Send command completed")
    return result


def handle_list(cmd: ListCommand, client: Optional[MessengerClient] = None) -> str:
    """
    Handle 'list' command.

    Args:
        cmd: ListCommand with partner and optional limit
        client: Optional MessengerClient for dependency injection (testing)

    Returns:
        Formatted list of messages
    """
    logger.info(f"Executing list command: partner={cmd.partner} limit={cmd.limit}")
    if client is None:
        client = get_client()
    result = client.list_messages(cmd.partner, cmd.limit)
    logger.debug("List command completed")
    return result


def handle_open(cmd: OpenCommand, client: Optional[MessengerClient] = None) -> str:
    """
    Handle 'open' command.

    Args:
        cmd: OpenCommand with partner, tx_id and optional output_path
        client: Optional MessengerClient for dependency injection (testing)

    Returns:
        Success or error message
    """
    logger.info(f"Executing open command: partner={cmd.partner} tx_id={cmd.tx_id} output_path={cmd.output_path}")
    if client is None:
        client = get_client()
    result = client.open_image(cmd.partner, cmd.tx_id, cmd.output_path)
    logger.debug("Open command completed")
    return result


def handle_rc(cmd: RcCommand, client: Optional[MessengerClient] = None) -> str:
    if client is None:
        client = get_client()
    return client.rc_status()
