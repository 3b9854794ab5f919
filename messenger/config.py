"""Configuration settings for the image messaging pipeline."""

import os
from dataclasses import dataclass

from common.constants import (
    CHANNEL_KIND,
    DEFAULT_HISTORY_PAGE_SIZE,
    DEFAULT_MAX_HISTORY_PAGES,
    MAX_SEGMENT,
    SINGLE_VS_CHUNK_THRESHOLD,
)


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


DATABASE_PATH = os.environ.get("CHAINPIX_DATABASE_PATH", os.path.expanduser("~/.chainpix/messages.db"))


@dataclass(frozen=True)
class MessengerSettings:
    """Runtime knobs of the producer and consumer pipelines."""

    channel_kind: str = CHANNEL_KIND
    max_segment: int = MAX_SEGMENT
    single_threshold: int = SINGLE_VS_CHUNK_THRESHOLD
    history_page_size: int = DEFAULT_HISTORY_PAGE_SIZE
    max_history_pages: int = DEFAULT_MAX_HISTORY_PAGES
    require_integrity_hash: bool = True
    rc_preflight: bool = False

    @classmethod
    def from_env(cls) -> 'MessengerSettings':
        return cls(
            channel_kind=os.environ.get("CHAINPIX_CHANNEL_KIND", CHANNEL_KIND),
            history_page_size=int(os.environ.get("CHAINPIX_HISTORY_PAGE_SIZE", DEFAULT_HISTORY_PAGE_SIZE)),
            max_history_pages=int(os.environ.get("CHAINPIX_MAX_HISTORY_PAGES", DEFAULT_MAX_HISTORY_PAGES)),
            require_integrity_hash=_env_bool("CHAINPIX_REQUIRE_INTEGRITY_HASH", True),
            rc_preflight=_env_bool("CHAINPIX_RC_PREFLIGHT", False),
        )
