"""Manage the tool-owned block inside a workspace ignore file.

Managed entries live below a single header comment::

    # Added by gitreference
    .gitreference/
    vendor/widgets/

The header exists exactly as long as its block has at least one entry.
"""

import logging
from pathlib import Path
from typing import Union

from .exceptions import FileSystemError, FilePermissionError

logger = logging.getLogger(__name__)

IGNORE_FILE_NAME = ".gitignore"
BLOCK_HEADER = "# Added by gitreference"

PathLike = Union[str, Path]


def _is_entry_line(line: str) -> bool:
    stripped = line.strip()
    return bool(stripped) and not stripped.startswith("#")


class IgnoreFileEditor:
    """Idempotently adds and removes lines in the managed ignore block."""

    def __init__(
        self, file_name: str = IGNORE_FILE_NAME, header: str = BLOCK_HEADER
    ):
        self.file_name = file_name
        self.header = header

    def path_for(self, workspace_root: PathLike) -> Path:
        return Path(workspace_root) / self.file_name

    def _read_lines(self, path: Path) -> list[str]:
        try:
            return path.read_text(encoding="utf-8").split("\n")
        except PermissionError as e:
            raise FilePermissionError(f"Permission denied reading {path}") from e
        except OSError as e:
            raise FileSystemError(f"Failed to read {path}: {e}") from e

    def _write(self, path: Path, content: str) -> None:
        try:
            path.write_text(content, encoding="utf-8")
        except PermissionError as e:
            raise FilePermissionError(f"Permission denied writing {path}") from e
        except OSError as e:
            raise FileSystemError(f"Failed to update {path}: {e}") from e

    def _block_end(self, lines: list[str], header_index: int) -> int:
        """Index just past the contiguous entry run following a header."""
        index = header_index + 1
        while index < len(lines) and _is_entry_line(lines[index]):
            index += 1
        return index

    def managed_entries(self, workspace_root: PathLike) -> list[str]:
        """List the entries inside every managed block of the file."""
        path = self.path_for(workspace_root)
        if not path.exists():
            return []
        lines = self._read_lines(path)
        entries: list[str] = []
        for index, line in enumerate(lines):
            if line.strip() == self.header:
                end = self._block_end(lines, index)
                entries.extend(entry.strip() for entry in lines[index + 1 : end])
        return entries

    def add_entry(self, workspace_root: PathLike, entry: str) -> bool:
        """Add an entry to the managed block.

        Args:
            workspace_root: Directory containing the ignore file
            entry: Line to add (surrounding whitespace is ignored)

        Returns:
            True if the file was written, False if the entry already existed
        """
        path = self.path_for(workspace_root)
        new_entry = entry.strip()
        content = ""
        if path.exists():
            content = "\n".join(self._read_lines(path))

        lines = content.split("\n") if content else []
        if any(line.strip() == new_entry for line in lines):
            logger.debug(f"{new_entry} already present in {path}")
            return False

        header_index = next(
            (i for i, line in enumerate(lines) if line.strip() == self.header), None
        )
        if header_index is not None:
            lines.insert(self._block_end(lines, header_index), new_entry)
            self._write(path, "\n".join(lines))
        else:
            if content and not content.endswith("\n"):
                content += "\n"
            separator = "" if content.endswith("\n\n") else "\n"
            self._write(path, f"{content}{separator}{self.header}\n{new_entry}\n")

        logger.debug(f"Added {new_entry} to {path}")
        return True

    def remove_entry(
        self, workspace_root: PathLike, entry: str, remove_header: bool = True
    ) -> bool:
        """Remove an entry from the ignore file.

        Args:
            workspace_root: Directory containing the ignore file
            entry: Line to remove (surrounding whitespace is ignored)
            remove_header: Drop a managed header once its block has no entries

        Returns:
            True if the entry was found and removed, False otherwise
        """
        path = self.path_for(workspace_root)
        if not path.exists():
            return False

        target = entry.strip()
        lines = self._read_lines(path)
        remaining = [line for line in lines if line.strip() != target]
        if len(remaining) == len(lines):
            return False

        if remove_header:
            remaining = self._drop_empty_headers(remaining)

        cleaned = self._collapse_blank_lines(remaining)
        self._write(path, "\n".join(cleaned) + "\n" if cleaned else "")
        logger.debug(f"Removed {target} from {path}")
        return True

    def _drop_empty_headers(self, lines: list[str]) -> list[str]:
        result: list[str] = []
        for index, line in enumerate(lines):
            is_header = line.strip() == self.header
            if is_header and self._block_end(lines, index) == index + 1:
                continue
            result.append(line)
        return result

    @staticmethod
    def _collapse_blank_lines(lines: list[str]) -> list[str]:
        cleaned: list[str] = []
        previous_blank = False
        for line in lines:
            blank = not line.strip()
            if blank and previous_blank:
                continue
            cleaned.append(line)
            previous_blank = blank

        while cleaned and not cleaned[0].strip():
            cleaned.pop(0)
        while cleaned and not cleaned[-1].strip():
            cleaned.pop()
        return cleaned
