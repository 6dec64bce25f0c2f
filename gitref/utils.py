"""Utility functions for gitref."""

from datetime import datetime, timezone
from typing import Optional

# =============================================================================
# Constants
# =============================================================================

# Directory created inside each workspace for default load targets
WORKSPACE_DIR_NAME: str = ".gitreference"

# Metadata file stored next to every cached clone
META_FILE_NAME: str = ".gitreference-meta.json"

# Never copied from the cache into a workspace
COPY_EXCLUDES: tuple[str, ...] = (".git", META_FILE_NAME)

SHORT_REVISION_LENGTH: int = 7


# =============================================================================
# Timestamp utilities
# =============================================================================


def now_iso() -> str:
    """Return the current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


def parse_iso_timestamp(timestamp_str: Optional[str]) -> Optional[datetime]:
    """Parse an ISO format timestamp from a state file.

    Args:
        timestamp_str: ISO format timestamp string (e.g., "2025-01-15T10:30:00Z")

    Returns:
        datetime object in local timezone or None if parsing fails
    """
    if not timestamp_str:
        return None

    try:
        # The 'Z' suffix indicates UTC time
        if timestamp_str.endswith("Z"):
            timestamp_str = timestamp_str[:-1] + "+00:00"

        dt = datetime.fromisoformat(timestamp_str)
        if dt.tzinfo is not None:
            # Convert to timestamp (UTC) then to local naive datetime
            return datetime.fromtimestamp(dt.timestamp())
        return dt
    except (ValueError, AttributeError):
        return None


def format_timestamp(timestamp_str: Optional[str]) -> str:
    """Format a stored timestamp as ``YYYY-MM-DD HH:MM`` for display."""
    dt = parse_iso_timestamp(timestamp_str)
    if dt is None:
        return "-"
    return dt.strftime("%Y-%m-%d %H:%M")


# =============================================================================
# Revision and path helpers
# =============================================================================


def short_revision(revision: Optional[str]) -> str:
    """Abbreviate a revision id for display.

    Examples:
        >>> short_revision("0123456789abcdef")
        '0123456'
        >>> short_revision(None)
        '-'
    """
    if not revision:
        return "-"
    return revision[:SHORT_REVISION_LENGTH]


def normalize_separators(value: str) -> str:
    """Convert backslashes to forward slashes.

    Examples:
        >>> normalize_separators("vendor\\\\widgets")
        'vendor/widgets'
    """
    return value.replace("\\", "/")


def as_ignore_entry(target_path: str) -> str:
    """Turn a relative target path into a directory ignore entry.

    Examples:
        >>> as_ignore_entry("vendor/widgets")
        'vendor/widgets/'
        >>> as_ignore_entry("vendor/widgets/")
        'vendor/widgets/'
    """
    entry = normalize_separators(target_path)
    return entry if entry.endswith("/") else entry + "/"


def is_under_workspace_dir(target_path: str) -> bool:
    """Check whether a relative target path lives inside ``.gitreference/``."""
    normalized = normalize_separators(target_path)
    return normalized.startswith(WORKSPACE_DIR_NAME + "/")
