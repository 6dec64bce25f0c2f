"""Data models for cached repositories and batch outcomes."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


@dataclass
class CacheEntry:
    """One cached remote source, as recorded in repos.json."""

    url: str
    """Remote URL the clone was made from"""

    path: str
    """Absolute path of the clone"""

    added_at: str
    """ISO timestamp of when the source was added"""

    def to_dict(self) -> dict[str, Any]:
        return {"url": self.url, "path": self.path, "added_at": self.added_at}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CacheEntry":
        """Create a CacheEntry, accepting legacy camelCase keys."""
        return cls(
            url=data.get("url", ""),
            path=data.get("path", ""),
            added_at=data.get("added_at") or data.get("addedAt") or "",
        )


@dataclass
class CacheMeta:
    """Version record stored next to a cached clone."""

    url: str
    name: str
    added_at: str
    updated_at: str
    revision_id: str
    branch: Optional[str] = None
    tag: Optional[str] = None
    ref: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "url": self.url,
            "name": self.name,
            "added_at": self.added_at,
            "updated_at": self.updated_at,
            "revision_id": self.revision_id,
        }
        for key in ("branch", "tag", "ref"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CacheMeta":
        """Create CacheMeta, accepting legacy camelCase keys."""
        return cls(
            url=data.get("url", ""),
            name=data.get("name", ""),
            added_at=data.get("added_at") or data.get("addedAt") or "",
            updated_at=data.get("updated_at") or data.get("updatedAt") or "",
            revision_id=data.get("revision_id") or data.get("commitId") or "",
            branch=data.get("branch"),
            tag=data.get("tag"),
            ref=data.get("ref"),
        )


@dataclass
class RepositoryInfo:
    """Joined view of a cache entry and its metadata."""

    name: str
    url: str
    path: str
    revision_id: str
    added_at: str
    updated_at: str
    branch: Optional[str] = None

    @classmethod
    def from_entry(
        cls, name: str, entry: CacheEntry, meta: CacheMeta
    ) -> "RepositoryInfo":
        return cls(
            name=name,
            url=entry.url,
            path=entry.path,
            revision_id=meta.revision_id,
            added_at=meta.added_at or entry.added_at,
            updated_at=meta.updated_at,
            branch=meta.branch,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "url": self.url,
            "path": self.path,
            "revision_id": self.revision_id,
            "branch": self.branch,
            "added_at": self.added_at,
            "updated_at": self.updated_at,
        }


class UpdateStatus(str, Enum):
    """Outcome of refreshing one cached repository."""

    UP_TO_DATE = "up-to-date"
    HAS_UPDATES = "has-updates"
    UPDATED = "updated"
    ERROR = "error"


@dataclass
class UpdateResult:
    """Result of refreshing a cached repository from its remote."""

    name: str
    status: UpdateStatus
    old_revision: Optional[str] = None
    new_revision: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "old_revision": self.old_revision,
            "new_revision": self.new_revision,
            "error": self.error,
        }


@dataclass
class BatchResult:
    """Aggregated outcome of a batch operation.

    A batch is successful when every item was attempted; failures are
    reported separately so the caller can decide on the exit status.
    """

    attempted: int = 0
    succeeded: int = 0
    failures: list[tuple[str, str]] = field(default_factory=list)
    """(item, message) pairs for items that failed"""

    @property
    def failed_count(self) -> int:
        return len(self.failures)

    @property
    def all_succeeded(self) -> bool:
        return not self.failures

    def record_success(self) -> None:
        self.attempted += 1
        self.succeeded += 1

    def record_failure(self, item: str, message: str) -> None:
        self.attempted += 1
        self.failures.append((item, message))

    def to_dict(self) -> dict[str, Any]:
        return {
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "failed": self.failed_count,
            "failures": [
                {"item": item, "message": message} for item, message in self.failures
            ],
        }
