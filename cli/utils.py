"""Utility functions for CLI output."""

from typing import Optional

from cli.constants import GREEN, HIVE_RED, RESET, YELLOW


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in bytes to human-readable format with appropriate unit.

    Uses binary units (1024-based) and automatically selects the most
    appropriate unit (B, KiB, MiB, GiB, TiB).

    Args:
        size_bytes: File size in bytes

    Returns:
        Formatted string with size and unit (e.g., "1.50 MiB", "512 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"

    units = ['KiB', 'MiB', 'GiB', 'TiB']
    size = size_bytes / 1024.0

    for unit in units:
        if size < 1024.0:
            return f"{size:.2f} {unit}"
        size /= 1024.0

    return f"{size:.2f} PiB"


def short_tx_id(tx_id: str, length: int = 12) -> str:
    return tx_id if len(tx_id) <= length else tx_id[:length]


def colorize_level(level: str, text: Optional[str] = None) -> str:
    """Color RC text by warning level ('ok' green, 'low' yellow, 'critical' red)."""
    text = text if text is not None else level
    if level == "ok":
        return f"{GREEN}{text}{RESET}"
    if level == "low":
        return f"{YELLOW}{text}{RESET}"
    return f"{HIVE_RED}{text}{RESET}"
