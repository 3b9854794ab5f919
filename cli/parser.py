"""Command parser for CLI input."""

import re
import shlex

from cli.models import (
    CommandRequest,
    ListCommand,
    LoginCommand,
    OpenCommand,
    RcCommand,
    SendCommand,
    WhoamiCommand,
)

ACCOUNT_PATTERN = re.compile(r"^[a-z][a-z0-9\-.]{2,15}$")


class ParseError(Exception):
    """Raised when command parsing fails."""

    pass


def parse_command(input_line: str) -> CommandRequest:
    """Parse user input into a CommandRequest object.

    Args:
        input_line: Raw user input from REPL

    Returns:
        CommandRequest object (one of Login/Whoami/Send/List/Open/Rc)

    Raises:
        ParseError: If command syntax is invalid
    """
    if not input_line.strip():
        raise ParseError("Empty command")

    try:
        tokens = shlex.split(input_line)
    except ValueError as e:
        raise ParseError(f"Invalid syntax: {e}")

    if not tokens:
        raise ParseError("Empty command")

    command_name = tokens[0]

    if command_name == "login":
        return _parse_login(tokens[1:])
    elif command_name == "whoami":
        return _parse_no_args("whoami", tokens[1:], WhoamiCommand)
    elif command_name == "send":
        return _parse_send(tokens[1:])
    elif command_name == "list":
        return _parse_list(tokens[1:])
    elif command_name == "open":
        return _parse_open(tokens[1:])
    elif command_name == "rc":
        return _parse_no_args("rc", tokens[1:], RcCommand)
    else:
        raise ParseError(f"Unknown command: {command_name}")


def _parse_account(value: str) -> str:
    """Normalize '@name' to 'name' and check Hive account syntax."""
    account = value[1:] if value.startswith("@") else value
    account = account.lower()
    if not ACCOUNT_PATTERN.match(account):
        raise ParseError(f"Invalid Hive account name: {value}")
    return account


def _parse_no_args(name: str, args: list, command_cls):
    if args:
        raise ParseError(f"{name} takes no arguments")
    return command_cls()


def _parse_login(args: list) -> LoginCommand:
    """Parse 'login <account>' command."""
    if len(args) != 1:
        raise ParseError("login requires exactly 1 argument: <account>")

    return LoginCommand(account=_parse_account(args[0]))


def _parse_send(args: list) -> SendCommand:
    """Parse 'send <partner> <image_path> [caption...]' command."""
    if len(args) < 2:
        raise ParseError("send requires at least 2 arguments: <partner> <image_path> [caption]")

    partner = _parse_account(args[0])
    caption = " ".join(args[2:]) or None
    return SendCommand(partner=partner, image_path=args[1], caption=caption)


def _parse_list(args: list) -> ListCommand:
    """Parse 'list <partner> [limit]' command."""
    if not 1 <= len(args) <= 2:
        raise ParseError("list requires 1 or 2 arguments: <partner> [limit]")

    limit = None
    if len(args) == 2:
        try:
            limit = int(args[1])
        except ValueError:
            raise ParseError(f"limit must be a positive integer, got {args[1]!r}")
        if limit <= 0:
            raise ParseError(f"limit must be a positive integer, got {args[1]!r}")

    return ListCommand(partner=_parse_account(args[0]), limit=limit)


def _parse_open(args: list) -> OpenCommand:
    """Parse 'open <partner> <tx_id> [output_path]' command."""
    if not 2 <= len(args) <= 3:
        raise ParseError("open requires 2 or 3 arguments: <partner> <tx_id> [output_path]")

    output_path = args[2] if len(args) > 2 else None
    return OpenCommand(partner=_parse_account(args[0]), tx_id=args[1], output_path=output_path)
