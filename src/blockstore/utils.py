"""Utility functions for blockstore."""

import re
from datetime import datetime, timezone
from typing import Optional

_HEX = re.compile(r"^[0-9a-f]+$")


def is_hex(value) -> bool:
    """Check whether a value is a valid lowercase hexadecimal string."""
    return (
        isinstance(value, str)
        and len(value) % 2 == 0
        and _HEX.fullmatch(value) is not None
    )


def humanize_size(size: float) -> str:
    """Convert bytes to human-readable format."""
    for unit in ["B", "KB", "MB", "GB"]:
        if size < 1024.:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TB"


def utc_now() -> datetime:
    """Get the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_timestamp(value: Optional[datetime]) -> str:
    """Format a stored-at timestamp for display.

    Examples:
        datetime(2025, 8, 26, 2, 51, 17, 317839, tzinfo=utc) -> "2025-08-26 02:51:17"
        None -> "-"
    """
    if value is None:
        return "-"
    return value.strftime("%Y-%m-%d %H:%M:%S")
