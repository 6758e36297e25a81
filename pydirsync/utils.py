"""Utility functions for pydirsync."""

import hashlib
from datetime import datetime, timedelta, timezone
from pathlib import Path

# =============================================================================
# Constants
# =============================================================================

# Read buffer for content hashing (64 KB)
HASH_BUFFER_SIZE: int = 64 * 1024

# One tick is 100 nanoseconds, counted from 0001-01-01T00:00:00Z
TICKS_EPOCH: datetime = datetime(1, 1, 1, tzinfo=timezone.utc)

# Ticks between 0001-01-01 and the Unix epoch
UNIX_EPOCH_TICKS: int = 621_355_968_000_000_000


# =============================================================================
# Timestamp utilities
# =============================================================================


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def datetime_to_ticks(value: datetime) -> int:
    """Convert a datetime to a 64-bit tick count.

    Naive datetimes are interpreted as UTC.

    Args:
        value: Datetime to convert

    Returns:
        Number of 100ns intervals since 0001-01-01T00:00:00Z

    Examples:
        >>> datetime_to_ticks(datetime(1970, 1, 1, tzinfo=timezone.utc))
        621355968000000000
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    delta = value - TICKS_EPOCH
    return (delta // timedelta(microseconds=1)) * 10


def ticks_to_datetime(ticks: int) -> datetime:
    """Convert a tick count back to an aware UTC datetime.

    Sub-microsecond precision is truncated.

    Args:
        ticks: Number of 100ns intervals since 0001-01-01T00:00:00Z

    Returns:
        Aware UTC datetime

    Raises:
        ValueError: If ticks is negative or out of datetime range
    """
    if ticks < 0:
        raise ValueError(f"Tick count must not be negative: {ticks}")
    try:
        return TICKS_EPOCH + timedelta(microseconds=ticks // 10)
    except OverflowError as e:
        raise ValueError(f"Tick count out of range: {ticks}") from e


def ns_to_datetime(timestamp_ns: int) -> datetime:
    """Convert an ``st_mtime_ns`` value to an aware UTC datetime."""
    return datetime.fromtimestamp(0, timezone.utc) + timedelta(
        microseconds=timestamp_ns // 1000
    )


# =============================================================================
# Hashing utilities
# =============================================================================


def hash_file(file_path: Path) -> bytes:
    """Compute the SHA-256 digest of a file's content.

    Args:
        file_path: File to hash

    Returns:
        Raw digest bytes

    Raises:
        OSError: If the file cannot be read
    """
    hasher = hashlib.sha256()
    with open(file_path, "rb") as f:
        while True:
            data = f.read(HASH_BUFFER_SIZE)
            if not data:
                break
            hasher.update(data)
    return hasher.digest()


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"
