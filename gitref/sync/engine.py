"""Core sync engine for re-copying cached content into workspaces."""

import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

from rich.progress import Progress, SpinnerColumn, TextColumn

from ..exceptions import GitRefError, RepoNotFoundError, SubdirNotFoundError
from ..output import OutputFormatter
from ..utils import now_iso, short_revision
from ..validation import relative_inside
from .comparator import SyncStatus, compute_status
from .operations import SyncOperations
from .state import LoadingRecord, LoadingStateStore

if TYPE_CHECKING:
    from ..repository import RepositoryCache

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Outcome of syncing one loading record."""

    name: str
    """Canonical cache name of the record"""

    target_path: str
    """Target path relative to the workspace"""

    success: bool
    """Whether the target now matches the cache"""

    message: str
    """Human-readable outcome"""

    old_revision: Optional[str] = None
    """Revision recorded before the sync"""

    new_revision: Optional[str] = None
    """Revision recorded after the sync"""

    @property
    def changed(self) -> bool:
        return self.success and self.old_revision != self.new_revision

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "target_path": self.target_path,
            "success": self.success,
            "message": self.message,
            "old_revision": self.old_revision,
            "new_revision": self.new_revision,
        }


class SyncEngine:
    """Computes drift between workspaces and the cache and repairs it.

    Records are processed one at a time in key order. Batch operations never
    raise; every record yields exactly one :class:`SyncResult`.
    """

    def __init__(
        self,
        cache: "RepositoryCache",
        store: LoadingStateStore,
        operations: Optional[SyncOperations] = None,
        output: Optional[OutputFormatter] = None,
    ):
        """Initialize sync engine.

        Args:
            cache: Repository cache that resolves names and revisions
            store: Loading state store
            operations: Copy-replace operations
            output: Output formatter for progress display
        """
        self.cache = cache
        self.store = store
        self.operations = operations or SyncOperations()
        self.output = output

    def _cache_revision(self, record: LoadingRecord) -> Optional[str]:
        try:
            info = self.cache.find_exact(record.name)
            if info is None:
                return None
            return self.cache.current_revision(info)
        except GitRefError as e:
            logger.debug(f"Cannot resolve cache revision of {record.name}: {e}")
            return None

    def status(self, record: LoadingRecord) -> SyncStatus:
        """Compare one record with the cache.

        A missing cache, or one whose revision cannot be read, reports
        ``cache_exists=False`` and never needs a sync.
        """
        return compute_status(
            loaded_revision=record.revision_id,
            cache_revision=self._cache_revision(record),
            target_exists=record.absolute_target.exists(),
        )

    def _records(
        self, working_directory: Optional[str] = None, name: Optional[str] = None
    ) -> list[LoadingRecord]:
        records = self.store.get_all()
        selected = []
        for key in sorted(records):
            record = records[key]
            if working_directory is not None and (
                record.working_directory != working_directory
            ):
                continue
            if name is not None and record.name != name:
                continue
            selected.append(record)
        return selected

    def status_all(
        self, working_directory: Optional[str] = None
    ) -> list[tuple[LoadingRecord, SyncStatus]]:
        return [
            (record, self.status(record))
            for record in self._records(working_directory=working_directory)
        ]

    def _resolve_source(self, record: LoadingRecord, cache_path: str) -> Path:
        source = Path(cache_path)
        if record.subdir:
            if relative_inside(source, record.subdir) is None:
                raise SubdirNotFoundError(record.subdir, record.name)
            source = source / record.subdir
            if not source.is_dir():
                raise SubdirNotFoundError(record.subdir, record.name)
        return source

    def sync_one(self, record: LoadingRecord, force: bool = False) -> SyncResult:
        """Bring one workspace copy up to the cache revision.

        Args:
            record: Loading record to sync
            force: Re-copy even when the revisions already match

        Returns:
            SyncResult; failures are reported, not raised
        """
        old_revision = record.revision_id
        target = record.absolute_target
        try:
            info = self.cache.find_exact(record.name)
            if info is None:
                raise RepoNotFoundError(record.name)
            cache_revision = self.cache.current_revision(info)

            if not force and target.exists() and old_revision == cache_revision:
                return SyncResult(
                    name=record.name,
                    target_path=record.target_path,
                    success=True,
                    message="Already up to date",
                    old_revision=old_revision,
                    new_revision=cache_revision,
                )

            source = self._resolve_source(record, info.path)
            self.operations.materialize(source, target)

            updated = replace(
                record,
                revision_id=cache_revision,
                branch=info.branch or record.branch,
                updated_at=now_iso(),
            )
            self.store.set(updated)
            record.revision_id = updated.revision_id
            record.branch = updated.branch
            record.updated_at = updated.updated_at
        except GitRefError as e:
            logger.debug(f"Sync failed for {record.key}: {e.message}")
            return SyncResult(
                name=record.name,
                target_path=record.target_path,
                success=False,
                message=e.message,
                old_revision=old_revision,
            )
        except Exception as e:
            logger.warning(f"Unexpected error syncing {record.key}: {e}")
            return SyncResult(
                name=record.name,
                target_path=record.target_path,
                success=False,
                message=str(e),
                old_revision=old_revision,
            )

        logger.info(
            f"Synced {record.target_path}: "
            f"{short_revision(old_revision)} -> {short_revision(cache_revision)}"
        )
        return SyncResult(
            name=record.name,
            target_path=record.target_path,
            success=True,
            message=(
                f"Synced {short_revision(old_revision)} -> "
                f"{short_revision(cache_revision)}"
            ),
            old_revision=old_revision,
            new_revision=cache_revision,
        )

    def _sync_record(self, record: LoadingRecord, force: bool) -> SyncResult:
        status = self.status(record)
        if not status.cache_exists:
            return SyncResult(
                name=record.name,
                target_path=record.target_path,
                success=False,
                message="Cached repository not found",
                old_revision=record.revision_id,
            )
        if not status.needs_sync and not force:
            return SyncResult(
                name=record.name,
                target_path=record.target_path,
                success=True,
                message="Already up to date",
                old_revision=record.revision_id,
                new_revision=record.revision_id,
            )
        return self.sync_one(record, force=force)

    def sync_all(
        self,
        force: bool = False,
        working_directory: Optional[str] = None,
        name: Optional[str] = None,
    ) -> list[SyncResult]:
        """Sync every matching record.

        Args:
            force: Re-copy records that are already up to date
            working_directory: Only sync records of this workspace
            name: Only sync records of this cached repository

        Returns:
            One SyncResult per record, in key order
        """
        records = self._records(working_directory=working_directory, name=name)
        results: list[SyncResult] = []

        if self.output is None or self.output.quiet or self.output.json_output:
            for record in records:
                results.append(self._sync_record(record, force))
            return results

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
            console=self.output.console,
        ) as progress:
            task = progress.add_task("Syncing...", total=len(records))
            for index, record in enumerate(records, start=1):
                progress.update(
                    task,
                    description=(
                        f"Syncing [{index}/{len(records)}] {record.target_path}"
                    ),
                )
                results.append(self._sync_record(record, force))
                progress.advance(task)
        return results
