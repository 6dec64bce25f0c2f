"""Filesystem operations with errors mapped to gitref exceptions."""

import logging
import shutil
import stat
from pathlib import Path
from typing import Iterable, Union

from .exceptions import FileSystemError, FilePermissionError, PathNotFoundError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _translate(error: OSError, message: str) -> FileSystemError:
    if isinstance(error, FileNotFoundError):
        return PathNotFoundError(f"Path not found: {message}")
    if isinstance(error, PermissionError):
        return FilePermissionError(f"Permission denied: {message}")
    return FileSystemError(f"{message}: {error}")


def exists(path: PathLike) -> bool:
    return Path(path).exists()


def is_directory(path: PathLike) -> bool:
    """Check whether a path is a directory.

    Raises:
        PathNotFoundError: If the path does not exist
    """
    try:
        return stat.S_ISDIR(Path(path).stat().st_mode)
    except OSError as e:
        raise _translate(e, str(path)) from e


def read_dir(path: PathLike) -> list[str]:
    """List the names in a directory, sorted."""
    try:
        return sorted(entry.name for entry in Path(path).iterdir())
    except OSError as e:
        raise _translate(e, str(path)) from e


def ensure_dir(path: PathLike) -> None:
    try:
        Path(path).mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise _translate(e, f"cannot create directory {path}") from e


def remove_dir(path: PathLike) -> None:
    """Remove a directory tree (or a single file/symlink)."""
    target = Path(path)
    try:
        if target.is_symlink() or target.is_file():
            target.unlink()
        elif target.exists():
            shutil.rmtree(target)
    except OSError as e:
        raise _translate(e, f"cannot remove {path}") from e


def copy_dir(
    src: PathLike,
    dst: PathLike,
    exclude: Iterable[str] = (),
    overwrite: bool = True,
) -> None:
    """Copy a directory tree, skipping entries whose basename is excluded.

    Args:
        src: Source directory
        dst: Destination directory
        exclude: Basenames to skip at any depth (e.g. ``.git``)
        overwrite: Allow copying into an existing destination
    """
    excluded = set(exclude)

    def _ignore(_directory: str, names: list[str]) -> set[str]:
        return {name for name in names if name in excluded}

    source = Path(src)
    if not source.exists():
        raise PathNotFoundError(f"Source path does not exist: {src}")

    logger.debug(f"Copying {src} -> {dst} (exclude={sorted(excluded)})")
    try:
        shutil.copytree(
            source,
            Path(dst),
            ignore=_ignore,
            symlinks=True,
            dirs_exist_ok=overwrite,
        )
    except shutil.Error as e:
        raise FileSystemError(f"Failed to copy {src} -> {dst}: {e}") from e
    except OSError as e:
        raise _translate(e, f"copy {src} -> {dst}") from e
