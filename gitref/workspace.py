"""Load, unload and tidy reference code inside one workspace."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from . import filesystem
from .exceptions import (
    GitRefError,
    InvalidInputError,
    SubdirNotFoundError,
)
from .ignore_file import IgnoreFileEditor
from .matcher import MatchResult, match_entries
from .models import BatchResult, RepositoryInfo
from .repository import RepositoryCache, derive_repo_name
from .sync import (
    EmptyDirectory,
    LoadingRecord,
    LoadingStateStore,
    SyncOperations,
    clean_empty,
    remove_empty_ancestors,
    scan_empty,
)
from .utils import (
    COPY_EXCLUDES,
    WORKSPACE_DIR_NAME,
    as_ignore_entry,
    is_under_workspace_dir,
    now_iso,
)
from .validation import is_git_url, relative_inside, validate_path

logger = logging.getLogger(__name__)

WORKSPACE_IGNORE_ENTRY = WORKSPACE_DIR_NAME + "/"


@dataclass
class UnloadResult:
    """What an unload removed."""

    record: LoadingRecord
    directory_removed: bool = False
    """Whether the target directory existed and was deleted"""

    ancestors_removed: int = 0
    """Number of empty parent directories deleted"""

    ignore_entries_removed: list[str] = field(default_factory=list)
    """Ignore file lines that were dropped"""

    workspace_dir_removed: bool = False
    """Whether the emptied .gitreference directory was deleted"""


class Workspace:
    """Reference code operations for a single working directory."""

    def __init__(
        self,
        root: Optional[Path] = None,
        cache: Optional[RepositoryCache] = None,
        store: Optional[LoadingStateStore] = None,
        ignore_editor: Optional[IgnoreFileEditor] = None,
        operations: Optional[SyncOperations] = None,
    ):
        """Initialize workspace.

        Args:
            root: Workspace directory; defaults to the current directory
            cache: Repository cache
            store: Loading state store
            ignore_editor: Editor for the workspace ignore file
            operations: Copy-replace operations
        """
        self.root = Path(root if root is not None else Path.cwd()).resolve()
        self.cache = cache or RepositoryCache()
        self.store = store or LoadingStateStore()
        self.ignore_editor = ignore_editor or IgnoreFileEditor()
        self.operations = operations or SyncOperations()

    @property
    def working_directory(self) -> str:
        return str(self.root)

    @property
    def workspace_dir(self) -> Path:
        return self.root / WORKSPACE_DIR_NAME

    # -------------------------------------------------------------------------
    # Load
    # -------------------------------------------------------------------------

    def _resolve_repository(
        self, name_or_url: str, branch: Optional[str]
    ) -> RepositoryInfo:
        """Find a cached repository, adding it first if given a new URL."""
        if is_git_url(name_or_url):
            repo_name = derive_repo_name(name_or_url)
            if not self.cache.exists(repo_name):
                logger.info(f"Adding {name_or_url} before loading")
                return self.cache.add(name_or_url, branch=branch, shallow=True, depth=1)
            return self.cache.require(repo_name)
        return self.cache.require(name_or_url)

    def _relative_target(self, target: Optional[str], repo_name: str) -> str:
        if not target:
            return f"{WORKSPACE_DIR_NAME}/{repo_name}"

        result = validate_path(target)
        if not result:
            raise InvalidInputError(result.message or f"Invalid path: {target}")
        relative = relative_inside(self.root, target)
        if relative is None:
            raise InvalidInputError(
                f"Target path must be inside the workspace: {target}"
            )
        return relative

    def load(
        self,
        name_or_url: str,
        target: Optional[str] = None,
        subdir: Optional[str] = None,
        branch: Optional[str] = None,
        update_ignore: bool = True,
    ) -> LoadingRecord:
        """Copy a cached repository into the workspace.

        Args:
            name_or_url: Cached name, short name or git URL. A URL that is not
                         cached yet is added first with a shallow clone.
            target: Target path relative to the workspace; defaults to
                    ``.gitreference/<name>``
            subdir: Copy only this subdirectory of the repository
            branch: Switch the cached clone to this branch first
            update_ignore: Add the target to the workspace ignore file

        Returns:
            The stored LoadingRecord

        Raises:
            RepoNotFoundError: If no cached repository matches
            AmbiguousMatchError: If a short name matches several repositories
            SubdirNotFoundError: If the subdirectory does not exist
        """
        info = self._resolve_repository(name_or_url, branch)
        if branch and info.branch != branch:
            info = self.cache.switch_branch(info.name, branch)

        source = Path(info.path)
        if subdir:
            result = validate_path(subdir)
            if not result:
                raise InvalidInputError(result.message or f"Invalid path: {subdir}")
            if relative_inside(source, subdir) is None:
                raise InvalidInputError(
                    f"Subdirectory must be inside the repository: {subdir}"
                )
            source = source / subdir
            if not source.is_dir():
                raise SubdirNotFoundError(subdir, info.name)

        relative = self._relative_target(target, info.name)
        absolute = self.root / relative
        existing = self.store.get(self.working_directory, relative)

        if existing is not None or not absolute.exists():
            self.operations.materialize(source, absolute)
        else:
            # Unrecorded directory: merge instead of wiping user content
            logger.warning(f"Target {relative} already exists, merging files")
            filesystem.copy_dir(source, absolute, exclude=COPY_EXCLUDES)

        if update_ignore:
            self.ignore_editor.add_entry(self.root, WORKSPACE_IGNORE_ENTRY)
            if not is_under_workspace_dir(relative):
                self.ignore_editor.add_entry(self.root, as_ignore_entry(relative))

        now = now_iso()
        record = LoadingRecord(
            name=info.name,
            url=info.url,
            revision_id=self.cache.current_revision(info),
            target_path=relative,
            working_directory=self.working_directory,
            loaded_at=existing.loaded_at if existing else now,
            branch=info.branch,
            subdir=subdir,
            updated_at=now if existing else None,
        )
        self.store.set(record)
        logger.info(f"Loaded {info.name} into {relative}")
        return record

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def loaded_records(self) -> list[LoadingRecord]:
        return self.store.records_for(self.working_directory)

    def find(self, query: str) -> MatchResult[LoadingRecord]:
        """Match a name, short name or target path against loaded records."""
        return match_entries(
            self.loaded_records(),
            query,
            name_of=lambda record: record.name,
            target_of=lambda record: record.target_path,
        )

    # -------------------------------------------------------------------------
    # Unload
    # -------------------------------------------------------------------------

    def unload(self, record: LoadingRecord, keep_empty: bool = False) -> UnloadResult:
        """Remove loaded reference code and its bookkeeping.

        Args:
            record: Record to unload
            keep_empty: Keep the .gitreference directory even when emptied

        Returns:
            UnloadResult describing what was removed
        """
        result = UnloadResult(record=record)
        root = Path(record.working_directory)
        target = record.absolute_target
        under_workspace_dir = is_under_workspace_dir(record.target_path)

        if target.exists() or target.is_symlink():
            self.operations.remove(target)
            result.directory_removed = True
            stop_at = root / WORKSPACE_DIR_NAME if under_workspace_dir else root
            result.ancestors_removed = remove_empty_ancestors(target, stop_at)
        else:
            logger.debug(f"Target {target} does not exist, removing record only")

        self.store.remove(record.working_directory, record.target_path)

        if not under_workspace_dir:
            entry = as_ignore_entry(record.target_path)
            if self.ignore_editor.remove_entry(root, entry):
                result.ignore_entries_removed.append(entry)

        if not keep_empty:
            removed_dir, removed_entry = self._tidy_workspace_dir(root)
            result.workspace_dir_removed = removed_dir
            if removed_entry:
                result.ignore_entries_removed.append(WORKSPACE_IGNORE_ENTRY)

        logger.info(f"Unloaded {record.name} from {record.target_path}")
        return result

    def _tidy_workspace_dir(self, root: Path) -> tuple[bool, bool]:
        """Drop an empty .gitreference directory once nothing is loaded.

        Returns:
            (directory removed, ignore entry removed)
        """
        if self.store.records_for(str(root)):
            return False, False

        workspace_dir = root / WORKSPACE_DIR_NAME
        removed_dir = False
        if workspace_dir.is_dir():
            if self._has_files(workspace_dir):
                return False, False
            filesystem.remove_dir(workspace_dir)
            removed_dir = True

        removed_entry = self.ignore_editor.remove_entry(root, WORKSPACE_IGNORE_ENTRY)
        return removed_dir, removed_entry

    @staticmethod
    def _has_files(directory: Path) -> bool:
        return any(
            not path.is_dir() or path.is_symlink() for path in directory.rglob("*")
        )

    def unload_all(self, keep_empty: bool = False) -> BatchResult:
        """Unload every record of this workspace, continuing past failures."""
        batch = BatchResult()
        for record in self.loaded_records():
            try:
                self.unload(record, keep_empty=keep_empty)
            except GitRefError as e:
                logger.debug(f"Failed to unload {record.target_path}: {e.message}")
                batch.record_failure(record.target_path, e.message)
            except Exception as e:
                logger.warning(
                    f"Unexpected error unloading {record.target_path}: {e}"
                )
                batch.record_failure(record.target_path, str(e))
            else:
                batch.record_success()
        return batch

    # -------------------------------------------------------------------------
    # Empty directories
    # -------------------------------------------------------------------------

    def scan_empty(self) -> list[EmptyDirectory]:
        """Empty directories inside .gitreference, deepest first."""
        return scan_empty(self.workspace_dir)

    def clean_empty(
        self, dirs: list[EmptyDirectory], keep_empty: bool = False
    ) -> int:
        """Remove scanned empty directories inside .gitreference.

        Returns:
            Number of directories removed
        """
        removed = clean_empty(self.workspace_dir, dirs)
        if not keep_empty:
            removed_dir, _ = self._tidy_workspace_dir(self.root)
            if removed_dir:
                removed += 1
        return removed
