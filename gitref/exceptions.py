"""Exception types raised by gitref.

Every error carries a machine-readable :class:`ErrorKind` and an optional
list of hints that the CLI prints below the message.
"""

from enum import Enum
from typing import Any, Optional, Sequence


class ErrorKind(str, Enum):
    """Categories of failure surfaced to callers."""

    NOT_FOUND = "not-found"
    ALREADY_EXISTS = "already-exists"
    INVALID_INPUT = "invalid-input"
    FILESYSTEM = "filesystem"
    VERSION_CONTROL = "version-control"
    AMBIGUOUS_MATCH = "ambiguous-match"
    CONFIG = "config"


class GitRefError(Exception):
    """Base exception for all gitref errors."""

    kind: ErrorKind = ErrorKind.INVALID_INPUT
    default_hints: tuple[str, ...] = ()

    def __init__(
        self,
        message: str,
        kind: Optional[ErrorKind] = None,
        hints: Optional[Sequence[str]] = None,
    ):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind
        self.hints: list[str] = list(hints) if hints else list(self.default_hints)


class NotFoundError(GitRefError):
    """A named thing does not exist."""

    kind = ErrorKind.NOT_FOUND


class RepoNotFoundError(NotFoundError):
    """No cached repository matches the given name."""

    default_hints = (
        "Use 'grf add <url>' to add a repository first.",
        "Or use 'grf list' to see all cached repositories.",
    )

    def __init__(self, name: str, hints: Optional[Sequence[str]] = None):
        super().__init__(f"Repository not found: {name}", hints=hints)
        self.name = name


class LoadingRecordNotFoundError(NotFoundError):
    """No loaded reference code matches the given name or path."""

    default_hints = ("Use 'grf unload --list' to see all loaded reference code.",)

    def __init__(self, query: str):
        super().__init__(f"No matching reference code found: {query}")
        self.query = query


class SubdirNotFoundError(NotFoundError):
    """The requested subdirectory does not exist inside the cached clone."""

    def __init__(self, subdir: str, repo_name: str):
        super().__init__(
            f"Subdirectory not found: {subdir} (in {repo_name})",
            hints=[f"Check the directory layout of '{repo_name}' in the cache."],
        )
        self.subdir = subdir
        self.repo_name = repo_name


class AlreadyExistsError(GitRefError):
    """An entry with the same identity is already present."""

    kind = ErrorKind.ALREADY_EXISTS


class RepoAlreadyExistsError(AlreadyExistsError):
    """A repository with the derived name is already cached."""

    default_hints = (
        "Use 'grf update <name>' to update the existing repository.",
        "Or use 'grf clean <name>' to remove it first.",
    )

    def __init__(self, name: str):
        super().__init__(f"Repository already exists: {name}")
        self.name = name


class InvalidInputError(GitRefError):
    """User supplied input failed validation."""

    kind = ErrorKind.INVALID_INPUT


class InvalidUrlError(InvalidInputError):
    """A source URL is not in a supported format."""

    def __init__(self, url: str):
        super().__init__(
            f"Invalid Git URL: {url}",
            hints=[
                "Supported formats: https://github.com/user/repo.git "
                "or git@github.com:user/repo.git"
            ],
        )
        self.url = url


class InvalidBranchError(InvalidInputError):
    """A branch name is not a valid git ref name."""

    def __init__(self, branch: str, reason: str):
        super().__init__(f"Invalid branch name '{branch}': {reason}")
        self.branch = branch


class FileSystemError(GitRefError):
    """A filesystem operation failed."""

    kind = ErrorKind.FILESYSTEM


class PathNotFoundError(FileSystemError):
    """A path required by an operation does not exist."""

    default_hints = (
        "The source path does not exist. Please check the repository or subdirectory.",
    )


class FilePermissionError(FileSystemError):
    """The process lacks permission for a filesystem operation."""

    default_hints = ("Permission denied. Please check your file permissions.",)


class GitError(GitRefError):
    """A git subprocess exited with a non-zero status."""

    kind = ErrorKind.VERSION_CONTROL

    def __init__(
        self,
        message: str,
        command: Optional[Sequence[str]] = None,
        stderr: str = "",
        hints: Optional[Sequence[str]] = None,
    ):
        super().__init__(message, hints=hints)
        self.command = list(command) if command else []
        self.stderr = stderr


class GitNotInstalledError(GitError):
    """The git executable could not be found."""

    default_hints = ("Install git and make sure it is on your PATH.",)


class AmbiguousMatchError(GitRefError):
    """A short name matched more than one entry."""

    kind = ErrorKind.AMBIGUOUS_MATCH

    def __init__(self, query: str, candidates: Sequence[Any]):
        super().__init__(
            f"Found {len(candidates)} entries matching '{query}'",
            hints=["Please use the full name or path to select exactly one."],
        )
        self.query = query
        self.candidates = list(candidates)


class ConfigError(GitRefError):
    """Configuration is invalid or could not be written."""

    kind = ErrorKind.CONFIG
