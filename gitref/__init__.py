"""gitref - manage reference copies of git repositories in local workspaces."""

from .exceptions import (
    AlreadyExistsError,
    AmbiguousMatchError,
    ConfigError,
    ErrorKind,
    FileSystemError,
    GitError,
    GitRefError,
    InvalidInputError,
    InvalidUrlError,
    LoadingRecordNotFoundError,
    NotFoundError,
    RepoAlreadyExistsError,
    RepoNotFoundError,
)
from .repository import RepositoryCache, parse_repo_url
from .sync import LoadingRecord, LoadingStateStore, SyncEngine
from .workspace import Workspace

__version__ = "0.3.0"

__all__ = [
    "RepositoryCache",
    "Workspace",
    "SyncEngine",
    "LoadingRecord",
    "LoadingStateStore",
    "parse_repo_url",
    "ErrorKind",
    "GitRefError",
    "NotFoundError",
    "RepoNotFoundError",
    "LoadingRecordNotFoundError",
    "AlreadyExistsError",
    "RepoAlreadyExistsError",
    "InvalidInputError",
    "InvalidUrlError",
    "FileSystemError",
    "GitError",
    "AmbiguousMatchError",
    "ConfigError",
    "__version__",
]
