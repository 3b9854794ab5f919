"""Command request data types for CLI."""

from dataclasses import dataclass
from typing import Literal, Optional, Union


@dataclass(frozen=True)
class LoginCommand:
    """Select the active Hive account."""

    account: str
    command: Literal["login"] = "login"


@dataclass(frozen=True)
class WhoamiCommand:
    """Show the active account."""

    command: Literal["whoami"] = "whoami"


@dataclass(frozen=True)
class SendCommand:
    """Send an image to a partner."""

    partner: str
    image_path: str
    caption: Optional[str] = None
    command: Literal["send"] = "send"


@dataclass(frozen=True)
class ListCommand:
    """List image messages exchanged with a partner."""

    partner: str
    limit: Optional[int] = None
    command: Literal["list"] = "list"


@dataclass(frozen=True)
class OpenCommand:
    """Decrypt one image message and save it."""

    partner: str
    tx_id: str
    output_path: Optional[str] = None
    command: Literal["open"] = "open"


@dataclass(frozen=True)
class RcCommand:
    """Show resource credits of the active account."""

    command: Literal["rc"] = "rc"


CommandRequest = Union[
    LoginCommand,
    WhoamiCommand,
    SendCommand,
    ListCommand,
    OpenCommand,
    RcCommand,
]
