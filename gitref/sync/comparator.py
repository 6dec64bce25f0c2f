"""Drift detection between a workspace copy and the cache."""

from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class SyncStatus:
    """Derived sync state of one loading record."""

    loaded_revision: str
    """Revision recorded when the content was copied"""

    cache_revision: Optional[str]
    """Current revision of the cache, None if unknown"""

    cache_exists: bool
    """Whether the cached source could be resolved"""

    target_exists: bool
    """Whether the target directory exists in the workspace"""

    needs_sync: bool
    """Whether the target should be re-copied from the cache"""

    @property
    def reason(self) -> str:
        """Human-readable explanation of the status."""
        if not self.cache_exists:
            return "Cached repository is missing"
        if not self.target_exists:
            return "Target directory is missing"
        if self.needs_sync:
            return "Cache has a newer revision"
        return "Up to date"

    def to_dict(self) -> dict[str, Any]:
        return {
            "loaded_revision": self.loaded_revision,
            "cache_revision": self.cache_revision,
            "cache_exists": self.cache_exists,
            "target_exists": self.target_exists,
            "needs_sync": self.needs_sync,
        }


def compute_status(
    loaded_revision: str,
    cache_revision: Optional[str],
    target_exists: bool,
) -> SyncStatus:
    """Compare a loaded revision with the cache.

    A sync is needed only when the cache exists and either the target is
    missing or the revisions differ.

    Args:
        loaded_revision: Revision recorded for the workspace copy
        cache_revision: Current cache revision, None if the cache is missing
        target_exists: Whether the target directory exists

    Returns:
        SyncStatus for the record

    Examples:
        >>> compute_status("aaa", "bbb", True).needs_sync
        True
        >>> compute_status("aaa", None, False).needs_sync
        False
    """
    cache_exists = cache_revision is not None
    needs_sync = cache_exists and (
        not target_exists or loaded_revision != cache_revision
    )
    return SyncStatus(
        loaded_revision=loaded_revision,
        cache_revision=cache_revision,
        cache_exists=cache_exists,
        target_exists=target_exists,
        needs_sync=needs_sync,
    )
