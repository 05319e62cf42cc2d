"""Utility functions and constants for kvassets."""

import math
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import quote

# =============================================================================
# Constants for sync operations
# =============================================================================

# Default asset source directory
DEFAULT_ASSET_DIR: str = "public"

# Default location of the generated manifest
DEFAULT_MANIFEST_PATH: str = "data/assets.bin"

# Default wrangler configuration file
DEFAULT_WRANGLER_PATH: str = "wrangler.toml"

# Parallel workers for hashing, uploads and deletes
DEFAULT_MAX_WORKERS: int = 4

# Retry configuration for transient errors
DEFAULT_MAX_RETRIES: int = 3
DEFAULT_RETRY_DELAY: float = 1.0  # seconds

# Workers KV rejects expiration TTLs shorter than this
MIN_EXPIRATION_TTL: int = 60

# Page size for key listing (Workers KV maximum)
LIST_KEYS_PAGE_SIZE: int = 1000


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


# =============================================================================
# Timestamp utilities
# =============================================================================


def to_epoch_seconds(mtime: float) -> int:
    """Truncate a filesystem mtime to whole UTC seconds.

    Sub-second precision differs between filesystems, so only whole
    seconds are kept in the manifest.

    Examples:
        >>> to_epoch_seconds(1700000000.9)
        1700000000
    """
    return int(math.floor(mtime))


def format_timestamp(epoch_seconds: Optional[int]) -> str:
    """Format epoch seconds as an ISO 8601 UTC string.

    Examples:
        >>> format_timestamp(0)
        '1970-01-01T00:00:00+00:00'
        >>> format_timestamp(None)
        '-'
    """
    if epoch_seconds is None:
        return "-"
    return datetime.fromtimestamp(epoch_seconds, tz=timezone.utc).isoformat()


# =============================================================================
# Key utilities
# =============================================================================


def quote_key(key: str) -> str:
    """URL-encode a remote key for use as a single path segment.

    Examples:
        >>> quote_key("css/site.abc.css")
        'css%2Fsite.abc.css'
    """
    return quote(key, safe="")
