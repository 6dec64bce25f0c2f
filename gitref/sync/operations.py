"""Copy-replace operation used for loading and re-syncing."""

import logging
from pathlib import Path
from typing import Iterable

from .. import filesystem
from ..exceptions import PathNotFoundError
from ..utils import COPY_EXCLUDES

logger = logging.getLogger(__name__)


class SyncOperations:
    """Filesystem steps that put cached content into a workspace."""

    def __init__(self, exclude: Iterable[str] = COPY_EXCLUDES):
        """Initialize sync operations.

        Args:
            exclude: Basenames never copied into a workspace
        """
        self.exclude = tuple(exclude)

    def materialize(self, source: Path, target: Path) -> None:
        """Replace ``target`` with a fresh copy of ``source``.

        The target is removed first so files deleted upstream do not linger.
        Not atomic: a failure after the removal leaves the target missing.

        Args:
            source: Directory inside the cache
            target: Absolute destination in the workspace
        """
        source = Path(source)
        target = Path(target)
        if not filesystem.exists(source):
            raise PathNotFoundError(f"Source path does not exist: {source}")

        filesystem.remove_dir(target)
        filesystem.ensure_dir(target.parent)
        filesystem.copy_dir(source, target, exclude=self.exclude)
        logger.debug(f"Materialized {source} -> {target}")

    def remove(self, target: Path) -> None:
        filesystem.remove_dir(target)
