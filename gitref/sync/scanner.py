"""Find and remove directories that hold no files."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Union

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass
class EmptyDirectory:
    """A directory with no files anywhere below it."""

    relative_path: str
    """Path relative to the scan root (forward slashes)"""

    absolute_path: Path
    """Absolute path to the directory"""

    @property
    def depth(self) -> int:
        return len(self.relative_path.split("/"))


def _is_real_dir(path: Path) -> bool:
    return path.is_dir() and not path.is_symlink()


def _scan(directory: Path, root: Path, found: list[EmptyDirectory]) -> bool:
    """Collect empty directories below ``directory``.

    Returns:
        True if ``directory`` itself holds no files at any depth
    """
    try:
        children = list(directory.iterdir())
    except OSError as e:
        # Unreadable subtrees count as non-empty
        logger.debug(f"Cannot read {directory}: {e}")
        return False

    is_empty = True
    for child in children:
        if _is_real_dir(child):
            if not _scan(child, root, found):
                is_empty = False
        else:
            is_empty = False

    if is_empty and directory != root:
        found.append(
            EmptyDirectory(
                relative_path=directory.relative_to(root).as_posix(),
                absolute_path=directory,
            )
        )
    return is_empty


def scan_empty(root: PathLike) -> list[EmptyDirectory]:
    """Find every empty directory below a root.

    A directory is empty when it contains no files and all of its
    subdirectories are empty. The root itself is never reported.

    Args:
        root: Directory to scan

    Returns:
        Empty directories, deepest first, then by path

    Examples:
        >>> dirs = scan_empty(Path("workspace/.gitreference"))
        >>> [d.relative_path for d in dirs]
        ['a/b/c', 'a/b', 'a']
    """
    root_path = Path(root)
    if not _is_real_dir(root_path):
        return []

    found: list[EmptyDirectory] = []
    _scan(root_path, root_path, found)
    found.sort(key=lambda d: (-d.depth, d.relative_path))
    logger.debug(f"Found {len(found)} empty director(ies) under {root_path}")
    return found


def remove_empty_ancestors(path: PathLike, stop_at: PathLike) -> int:
    """Remove empty parent directories of ``path`` up to ``stop_at``.

    ``stop_at`` itself is never removed and the walk never leaves it.

    Args:
        path: Starting path (its parent is the first candidate)
        stop_at: Boundary directory

    Returns:
        Number of directories removed
    """
    boundary = Path(stop_at).resolve()
    current = Path(path).resolve().parent
    removed = 0

    while current != boundary and boundary in current.parents:
        try:
            if not current.is_dir() or any(current.iterdir()):
                break
            current.rmdir()
        except OSError as e:
            logger.debug(f"Stopped removing ancestors at {current}: {e}")
            break
        logger.debug(f"Removed empty directory {current}")
        removed += 1
        current = current.parent

    return removed


def clean_empty(root: PathLike, dirs: Iterable[EmptyDirectory]) -> int:
    """Remove previously scanned empty directories.

    Each directory is checked again right before removal, so a directory that
    gained entries since the scan is left alone. Failures are logged and
    skipped.

    Args:
        root: Scan root; ancestors are removed up to but not including it
        dirs: Directories from :func:`scan_empty`

    Returns:
        Number of directories removed, including emptied ancestors
    """
    removed = 0
    for directory in dirs:
        path = directory.absolute_path
        try:
            if not path.is_dir():
                continue
            if any(path.iterdir()):
                logger.debug(f"Skipping {path}: no longer empty")
                continue
            path.rmdir()
        except OSError as e:
            logger.warning(f"Failed to remove {path}: {e}")
            continue
        removed += 1
        removed += remove_empty_ancestors(path, root)
    return removed
