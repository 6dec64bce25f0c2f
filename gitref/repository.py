"""Shared cache of cloned reference repositories.

Clones live under ``<root>/repos/<host>/<owner>/<repo>`` and are indexed by
canonical name (``host/owner/repo``) in ``repos.json``. Each clone carries a
``.gitreference-meta.json`` file with its URL and revision.
"""

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from . import filesystem
from .config import config
from .exceptions import (
    AmbiguousMatchError,
    FileSystemError,
    GitError,
    GitRefError,
    InvalidBranchError,
    InvalidInputError,
    InvalidUrlError,
    RepoAlreadyExistsError,
    RepoNotFoundError,
)
from .git import GitClient
from .matcher import MatchOutcome, match_entries
from .models import (
    BatchResult,
    CacheEntry,
    CacheMeta,
    RepositoryInfo,
    UpdateResult,
    UpdateStatus,
)
from .sync.scanner import remove_empty_ancestors
from .utils import META_FILE_NAME, now_iso
from .validation import validate_branch_name, validate_repo_name

logger = logging.getLogger(__name__)

_HTTPS_URL = re.compile(r"^https?://([^/]+)/([^/]+)/([^/]+?)(?:\.git)?/?$")
_SSH_URL = re.compile(r"^[\w.-]+@([^:]+):([^/]+)/([^/]+?)(?:\.git)?$")


@dataclass(frozen=True)
class ParsedRepoUrl:
    """Host, owner and repository parts of a remote URL."""

    host: str
    owner: str
    repo: str

    @property
    def name(self) -> str:
        return f"{self.host}/{self.owner}/{self.repo}"


def parse_repo_url(url: str) -> ParsedRepoUrl:
    """Split a remote URL into host, owner and repository.

    Args:
        url: HTTPS (``https://host/owner/repo.git``) or SSH
             (``git@host:owner/repo.git``) URL

    Returns:
        ParsedRepoUrl with the ``.git`` suffix removed

    Raises:
        InvalidUrlError: If the URL matches neither format

    Examples:
        >>> parse_repo_url("https://github.com/facebook/react.git").name
        'github.com/facebook/react'
        >>> parse_repo_url("git@github.com:facebook/react.git").repo
        'react'
    """
    value = url.strip()
    match = _HTTPS_URL.match(value) or _SSH_URL.match(value)
    if not match:
        raise InvalidUrlError(url)
    host, owner, repo = match.groups()
    return ParsedRepoUrl(host=host, owner=owner, repo=repo)


def derive_repo_name(url: str) -> str:
    return parse_repo_url(url).name


def read_meta(repo_path: Path) -> Optional[CacheMeta]:
    """Read the metadata file of a cached clone, None if missing or corrupt."""
    meta_path = Path(repo_path) / META_FILE_NAME
    if not meta_path.exists():
        return None
    try:
        with open(meta_path, encoding="utf-8") as f:
            return CacheMeta.from_dict(json.load(f))
    except (OSError, json.JSONDecodeError, AttributeError) as e:
        logger.warning(f"Ignoring unreadable metadata {meta_path}: {e}")
        return None


def write_meta(repo_path: Path, meta: CacheMeta) -> None:
    meta_path = Path(repo_path) / META_FILE_NAME
    try:
        with open(meta_path, "w", encoding="utf-8") as f:
            json.dump(meta.to_dict(), f, indent=2)
    except OSError as e:
        raise FileSystemError(
            f"Failed to write metadata {meta_path}: {e}"
        ) from e


class CacheIndex:
    """The ``repos.json`` index of cached repositories.

    Read once and cached; every write rewrites the whole file.
    """

    def __init__(self, index_path: Optional[Path] = None):
        """Initialize cache index.

        Args:
            index_path: JSON index file. Defaults to repos.json under the
                        gitref root directory
        """
        self._index_path = Path(index_path) if index_path is not None else None
        self._cache: Optional[dict[str, CacheEntry]] = None

    @property
    def index_path(self) -> Path:
        if self._index_path is not None:
            return self._index_path
        return config.repos_index_path

    def _read(self) -> dict[str, CacheEntry]:
        if self._cache is not None:
            return self._cache

        if self._index_path is None and config.needs_migration():
            config.migrate_legacy_config()

        entries: dict[str, CacheEntry] = {}
        path = self.index_path
        if path.exists():
            try:
                with open(path, encoding="utf-8") as f:
                    data = json.load(f)
                repos = data.get("repos", {}) if isinstance(data, dict) else {}
                for name, raw in repos.items():
                    if isinstance(raw, dict):
                        entries[name] = CacheEntry.from_dict(raw)
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Ignoring unreadable cache index {path}: {e}")

        self._cache = entries
        return entries

    def _write(self, entries: dict[str, CacheEntry]) -> None:
        path = self.index_path
        payload = {"repos": {name: entries[name].to_dict() for name in sorted(entries)}}
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
        except OSError as e:
            raise FileSystemError(
                f"Failed to write cache index {path}: {e}"
            ) from e
        self._cache = dict(entries)

    def clear_cache(self) -> None:
        self._cache = None

    def get_all(self) -> dict[str, CacheEntry]:
        return dict(self._read())

    def get(self, name: str) -> Optional[CacheEntry]:
        return self._read().get(name)

    def set(self, name: str, entry: CacheEntry) -> None:
        entries = dict(self._read())
        entries[name] = entry
        self._write(entries)

    def remove(self, name: str) -> bool:
        entries = dict(self._read())
        if name not in entries:
            return False
        del entries[name]
        self._write(entries)
        return True


class RepositoryCache:
    """Adds, resolves, refreshes and removes cached clones."""

    def __init__(
        self, git: Optional[GitClient] = None, index: Optional[CacheIndex] = None
    ):
        """Initialize repository cache.

        Args:
            git: Git client used for clone/pull/checkout
            index: Cache index; defaults to the global repos.json
        """
        self.git = git or GitClient()
        self.index = index or CacheIndex()

    @property
    def repos_dir(self) -> Path:
        return config.repos_dir

    def storage_path(self, parsed: ParsedRepoUrl) -> Path:
        return self.repos_dir / parsed.host / parsed.owner / parsed.repo

    def _info(self, name: str, entry: CacheEntry) -> RepositoryInfo:
        meta = read_meta(Path(entry.path))
        if meta is None:
            meta = CacheMeta(
                url=entry.url,
                name=name,
                added_at=entry.added_at,
                updated_at=entry.added_at,
                revision_id="",
            )
        return RepositoryInfo.from_entry(name, entry, meta)

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def find_exact(self, name: str) -> Optional[RepositoryInfo]:
        entry = self.index.get(name)
        if entry is None:
            return None
        return self._info(name, entry)

    def get(self, name: str) -> Optional[RepositoryInfo]:
        """Resolve a full or short repository name.

        Exact names win; otherwise ``owner/repo`` or ``repo`` suffixes are
        matched against every cached name.

        Returns:
            RepositoryInfo, or None if nothing matches

        Raises:
            AmbiguousMatchError: If a short name matches several repositories
        """
        exact = self.find_exact(name)
        if exact is not None:
            return exact

        entries = self.index.get_all()
        result = match_entries(sorted(entries), name, name_of=lambda n: n)
        if result.outcome is MatchOutcome.NONE:
            return None
        if result.outcome is MatchOutcome.AMBIGUOUS:
            raise AmbiguousMatchError(name, result.candidates)
        matched = result.candidates[0]
        return self._info(matched, entries[matched])

    def require(self, name: str) -> RepositoryInfo:
        info = self.get(name)
        if info is None:
            raise RepoNotFoundError(name)
        return info

    def exists(self, name: str) -> bool:
        return self.index.get(name) is not None

    def list(self) -> list[RepositoryInfo]:
        """All cached repositories, sorted by name."""
        entries = self.index.get_all()
        return [self._info(name, entries[name]) for name in sorted(entries)]

    def current_revision(self, info: RepositoryInfo) -> str:
        return self.git.current_revision(info.path)

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def add(
        self,
        url: str,
        name: Optional[str] = None,
        branch: Optional[str] = None,
        shallow: Optional[bool] = None,
        depth: Optional[int] = None,
    ) -> RepositoryInfo:
        """Clone a remote repository into the cache.

        Args:
            url: Remote URL
            name: Custom name; defaults to ``host/owner/repo``
            branch: Branch to clone; defaults to the remote's default branch
            shallow: Make a shallow clone; defaults to the shallow_clone setting
            depth: Shallow clone depth; defaults to the shallow_depth setting

        Returns:
            RepositoryInfo of the new clone

        Raises:
            InvalidUrlError: If the URL cannot be parsed
            RepoAlreadyExistsError: If the name is already cached
            GitError: If cloning fails
        """
        parsed = parse_repo_url(url)
        repo_name = name or parsed.name
        if name is not None:
            result = validate_repo_name(name)
            if not result:
                raise InvalidInputError(result.message or f"Invalid name: {name}")
        if branch is not None:
            result = validate_branch_name(branch)
            if not result:
                raise InvalidBranchError(branch, result.message or "invalid")
        if self.exists(repo_name):
            raise RepoAlreadyExistsError(repo_name)

        if shallow is None:
            shallow = config.shallow_clone
        if depth is None:
            depth = config.shallow_depth

        config.ensure_dirs()
        dest = self.storage_path(parsed)
        if filesystem.exists(dest):
            logger.warning(f"Removing unindexed clone at {dest}")
            filesystem.remove_dir(dest)
        filesystem.ensure_dir(dest.parent)

        logger.debug(f"Cloning {url} into {dest} (shallow={shallow}, depth={depth})")
        try:
            self.git.clone(url, dest, branch=branch, depth=depth if shallow else None)
        except GitError:
            filesystem.remove_dir(dest)
            raise

        revision = self.git.current_revision(dest)
        current_branch = self.git.current_branch(dest)
        now = now_iso()
        meta = CacheMeta(
            url=url,
            name=repo_name,
            added_at=now,
            updated_at=now,
            revision_id=revision,
            branch=current_branch,
        )
        write_meta(dest, meta)

        entry = CacheEntry(url=url, path=str(dest), added_at=now)
        self.index.set(repo_name, entry)
        logger.info(f"Added {repo_name} at {revision}")
        return RepositoryInfo.from_entry(repo_name, entry, meta)

    def remove(self, name: str) -> RepositoryInfo:
        """Delete a cached clone and its index entry.

        Raises:
            RepoNotFoundError: If nothing matches the name
        """
        info = self.require(name)
        path = Path(info.path)
        filesystem.remove_dir(path)
        self.index.remove(info.name)
        if self.repos_dir in path.parents:
            remove_empty_ancestors(path, self.repos_dir)
        logger.info(f"Removed {info.name}")
        return info

    def remove_all(self, infos: Iterable[RepositoryInfo]) -> BatchResult:
        """Remove several repositories, continuing past failures."""
        batch = BatchResult()
        for info in infos:
            try:
                self.remove(info.name)
            except GitRefError as e:
                logger.debug(f"Failed to remove {info.name}: {e.message}")
                batch.record_failure(info.name, e.message)
            except Exception as e:
                logger.warning(f"Unexpected error removing {info.name}: {e}")
                batch.record_failure(info.name, str(e))
            else:
                batch.record_success()
        return batch

    def switch_branch(self, name: str, branch: str) -> RepositoryInfo:
        """Check out another branch in a cached clone and update its metadata.

        Raises:
            InvalidBranchError: If the branch name is not a valid ref name
            RepoNotFoundError: If nothing matches the name
            GitError: If the branch cannot be fetched or checked out
        """
        result = validate_branch_name(branch)
        if not result:
            raise InvalidBranchError(branch, result.message or "invalid")

        info = self.require(name)
        self.git.checkout(info.path, branch)
        revision = self.git.current_revision(info.path)
        current_branch = self.git.current_branch(info.path)
        now = now_iso()
        write_meta(
            Path(info.path),
            CacheMeta(
                url=info.url,
                name=info.name,
                added_at=info.added_at,
                updated_at=now,
                revision_id=revision,
                branch=current_branch,
            ),
        )
        logger.info(f"Switched {info.name} to {current_branch} at {revision}")
        info.revision_id = revision
        info.branch = current_branch
        info.updated_at = now
        return info

    def refresh(self, info: RepositoryInfo, check_only: bool = False) -> UpdateResult:
        """Pull new commits into a cached clone.

        Args:
            info: Repository to refresh
            check_only: Only report whether updates exist

        Returns:
            UpdateResult; git failures are reported with status ``error``
        """
        try:
            old_revision = self.git.current_revision(info.path)
            if not self.git.has_remote_updates(info.path):
                return UpdateResult(
                    info.name,
                    UpdateStatus.UP_TO_DATE,
                    old_revision=old_revision,
                    new_revision=old_revision,
                )
            if check_only:
                return UpdateResult(
                    info.name, UpdateStatus.HAS_UPDATES, old_revision=old_revision
                )

            self.git.pull(info.path)
            new_revision = self.git.current_revision(info.path)
            branch = self.git.current_branch(info.path)
            write_meta(
                Path(info.path),
                CacheMeta(
                    url=info.url,
                    name=info.name,
                    added_at=info.added_at,
                    updated_at=now_iso(),
                    revision_id=new_revision,
                    branch=branch,
                ),
            )
        except GitRefError as e:
            logger.debug(f"Failed to refresh {info.name}: {e.message}")
            return UpdateResult(info.name, UpdateStatus.ERROR, error=e.message)

        logger.info(f"Updated {info.name}: {old_revision} -> {new_revision}")
        return UpdateResult(
            info.name,
            UpdateStatus.UPDATED,
            old_revision=old_revision,
            new_revision=new_revision,
        )
