"""Loading state shared by all workspaces.

Every copy of a cached repository into a workspace is recorded in a single
JSON file keyed by ``<working_directory>::<target_path>``. A record means the
content was last known to be copied; callers still check the filesystem.
"""

import json
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Optional

from ..config import config
from ..exceptions import FileSystemError
from ..utils import normalize_separators, now_iso

logger = logging.getLogger(__name__)

STATE_VERSION = 2
KEY_SEPARATOR = "::"


def make_loading_key(working_directory: str, target_path: str) -> str:
    """Build the unique key of a loading record.

    Examples:
        >>> make_loading_key("/home/me/project", "vendor/widgets")
        '/home/me/project::vendor/widgets'
    """
    return f"{working_directory}{KEY_SEPARATOR}{target_path}"


@dataclass
class LoadingRecord:
    """One cached repository copied into one workspace location."""

    name: str
    """Canonical cache name (host/owner/repo)"""

    url: str
    """Remote URL of the cached source"""

    revision_id: str
    """Revision that was copied"""

    target_path: str
    """Target path relative to the workspace (forward slashes)"""

    working_directory: str
    """Absolute path identifying the workspace"""

    loaded_at: str
    """ISO timestamp of the first load"""

    branch: Optional[str] = None
    """Branch the cache was on when copied"""

    subdir: Optional[str] = None
    """Subdirectory of the cache that was copied, if not the whole clone"""

    updated_at: Optional[str] = None
    """ISO timestamp of the last re-sync"""

    def __post_init__(self) -> None:
        self.target_path = normalize_separators(self.target_path)

    @property
    def key(self) -> str:
        return make_loading_key(self.working_directory, self.target_path)

    @property
    def absolute_target(self) -> Path:
        return Path(self.working_directory) / self.target_path

    def to_dict(self) -> dict[str, Any]:
        """Convert record to dictionary for JSON serialization."""
        data: dict[str, Any] = {
            "name": self.name,
            "url": self.url,
            "revision_id": self.revision_id,
            "target_path": self.target_path,
            "working_directory": self.working_directory,
            "loaded_at": self.loaded_at,
        }
        for key in ("branch", "subdir", "updated_at"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LoadingRecord":
        """Create LoadingRecord from a current-format dictionary."""
        return cls(
            name=data["name"],
            url=data.get("url", ""),
            revision_id=data.get("revision_id", ""),
            target_path=data["target_path"],
            working_directory=data["working_directory"],
            loaded_at=data.get("loaded_at", ""),
            branch=data.get("branch"),
            subdir=data.get("subdir"),
            updated_at=data.get("updated_at"),
        )

    @classmethod
    def from_v1_dict(cls, key: str, data: dict[str, Any]) -> Optional["LoadingRecord"]:
        """Convert a version 1 (camelCase) record.

        Returns:
            The converted record, or None if it has no repository name
        """
        name = data.get("repoName")
        if not name:
            return None

        working_directory = data.get("workingDirectory")
        target_path = data.get("targetPath")
        if KEY_SEPARATOR in key:
            key_wd, key_tp = key.split(KEY_SEPARATOR, 1)
            working_directory = working_directory or key_wd
            target_path = target_path or key_tp
        if not working_directory or not target_path:
            return None

        return cls(
            name=name,
            url=data.get("repoUrl", ""),
            revision_id=data.get("commitId", ""),
            target_path=target_path,
            working_directory=working_directory,
            loaded_at=data.get("loadedAt", ""),
            branch=data.get("branch"),
            subdir=data.get("subdir"),
            updated_at=data.get("updatedAt"),
        )


def _parse_current(data: dict) -> Optional[dict[str, LoadingRecord]]:
    if data.get("version") != STATE_VERSION or not isinstance(
        data.get("records"), dict
    ):
        return None
    records: dict[str, LoadingRecord] = {}
    for key, raw in data["records"].items():
        try:
            record = LoadingRecord.from_dict(raw)
        except (KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Dropping malformed loading record {key}: {e}")
            continue
        records[record.key] = record
    return records


def _parse_v1(data: dict) -> Optional[dict[str, LoadingRecord]]:
    loaded = data.get("loadedRepos")
    if not isinstance(loaded, dict):
        return None
    records: dict[str, LoadingRecord] = {}
    for key, raw in loaded.items():
        if not isinstance(raw, dict):
            continue
        record = LoadingRecord.from_v1_dict(key, raw)
        if record is None:
            logger.debug(f"Dropping version 1 loading record without name: {key}")
            continue
        records[record.key] = record
    logger.debug(f"Converted {len(records)} version 1 loading record(s)")
    return records


# Tried in order; the first parser that recognizes the shape wins
_SCHEMA_CHAIN = (_parse_current, _parse_v1)


class LoadingStateStore:
    """Persists loading records in a single JSON file.

    The whole file is read once and cached; every write rewrites the whole
    file and refreshes the cache. There is no locking, so concurrent
    writers follow last-writer-wins.
    """

    def __init__(self, state_path: Optional[Path] = None):
        """Initialize state store.

        Args:
            state_path: JSON file holding the state. Defaults to
                        loading.json under the gitref root directory
        """
        self._state_path = Path(state_path) if state_path is not None else None
        self._cache: Optional[dict[str, LoadingRecord]] = None

    @property
    def state_path(self) -> Path:
        if self._state_path is not None:
            return self._state_path
        return config.loading_state_path

    def _read(self) -> dict[str, LoadingRecord]:
        if self._cache is not None:
            return self._cache

        records: dict[str, LoadingRecord] = {}
        path = self.state_path
        if path.exists():
            try:
                with open(path, encoding="utf-8") as f:
                    data = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Ignoring unreadable loading state {path}: {e}")
                data = None

            if isinstance(data, dict):
                for parser in _SCHEMA_CHAIN:
                    parsed = parser(data)
                    if parsed is not None:
                        records = parsed
                        break
                else:
                    logger.debug(f"Unrecognized loading state format in {path}")

        self._cache = records
        return records

    def _write(self, records: dict[str, LoadingRecord]) -> None:
        path = self.state_path
        payload = {
            "version": STATE_VERSION,
            "records": {
                key: records[key].to_dict() for key in sorted(records)
            },
        }
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
        except OSError as e:
            raise FileSystemError(f"Failed to write loading state {path}: {e}") from e
        self._cache = dict(records)
        logger.debug(f"Saved {len(records)} loading record(s) to {path}")

    def clear_cache(self) -> None:
        """Forget the cached file content so the next read hits the disk."""
        self._cache = None

    def get_all(self) -> dict[str, LoadingRecord]:
        """Copies of every record, keyed by record key."""
        return {key: replace(record) for key, record in self._read().items()}

    def get(self, working_directory: str, target_path: str) -> Optional[LoadingRecord]:
        key = make_loading_key(working_directory, normalize_separators(target_path))
        record = self._read().get(key)
        return replace(record) if record is not None else None

    def set(self, record: LoadingRecord) -> None:
        """Insert or replace the record with the same key."""
        records = dict(self._read())
        records[record.key] = replace(record)
        self._write(records)

    def remove(self, working_directory: str, target_path: str) -> bool:
        """Remove a record.

        Returns:
            True if a record was removed, False if none existed
        """
        key = make_loading_key(working_directory, normalize_separators(target_path))
        records = dict(self._read())
        if key not in records:
            return False
        del records[key]
        self._write(records)
        return True

    def clear(self) -> None:
        self._write({})

    def is_loaded(self, working_directory: str, target_path: str) -> bool:
        return self.get(working_directory, target_path) is not None

    def count(self) -> int:
        return len(self._read())

    def records_for(self, working_directory: str) -> list[LoadingRecord]:
        """Records belonging to one workspace, in key order."""
        records = self._read()
        return [
            replace(records[key])
            for key in sorted(records)
            if records[key].working_directory == working_directory
        ]

    def update_revision(
        self,
        working_directory: str,
        target_path: str,
        revision_id: str,
        branch: Optional[str] = None,
    ) -> Optional[LoadingRecord]:
        """Record a re-sync of an existing record.

        Args:
            working_directory: Workspace of the record
            target_path: Target path of the record
            revision_id: Revision now present at the target
            branch: Branch now present at the target, if known

        Returns:
            The updated record, or None if no such record exists
        """
        record = self.get(working_directory, target_path)
        if record is None:
            return None
        updated = replace(
            record,
            revision_id=revision_id,
            branch=branch if branch is not None else record.branch,
            updated_at=now_iso(),
        )
        self.set(updated)
        return updated
