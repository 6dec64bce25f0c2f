"""Console output helpers shared by all CLI commands."""

import json
from typing import Any, Optional

from rich.console import Console
from rich.table import Table
from rich.text import Text


class OutputFormatter:
    """Formats command output as text or JSON.

    Text goes to stdout through a rich console; errors always go to stderr.
    In JSON mode informational messages are suppressed so stdout only
    carries the JSON document.
    """

    def __init__(self, json_output: bool = False, quiet: bool = False):
        """Initialize output formatter.

        Args:
            json_output: Emit JSON instead of human readable text
            quiet: Suppress non-essential output
        """
        self.json_output = json_output
        self.quiet = quiet
        self.console = Console(highlight=False, soft_wrap=True)
        self.err_console = Console(stderr=True, highlight=False, soft_wrap=True)

    @property
    def _silent(self) -> bool:
        return self.quiet or self.json_output

    def print(self, message: str = "") -> None:
        """Print a plain line unless output is silenced."""
        if self._silent:
            return
        self.console.print(message, markup=False)

    def info(self, message: str) -> None:
        if self._silent:
            return
        self.console.print(message, markup=False)

    def success(self, message: str) -> None:
        if self._silent:
            return
        self.console.print(Text("✓ ", style="green") + Text(message))

    def warning(self, message: str) -> None:
        if self.json_output:
            return
        self.err_console.print(Text("Warning: ", style="yellow") + Text(message))

    def error(self, message: str, hints: Optional[list[str]] = None) -> None:
        """Print an error and optional hints to stderr."""
        self.err_console.print(Text("Error: ", style="bold red") + Text(message))
        for hint in hints or []:
            self.err_console.print(Text(f"  {hint}", style="dim"))

    def progress_message(self, message: str) -> None:
        if self._silent:
            return
        self.console.print(Text(message, style="cyan"))

    def output_json(self, data: Any) -> None:
        """Write data as indented JSON to stdout."""
        self.console.print_json(json.dumps(data, default=str))

    def output_table(
        self,
        data: list[dict[str, Any]],
        columns: list[str],
        headers: Optional[dict[str, str]] = None,
        title: Optional[str] = None,
    ) -> None:
        """Render rows as a table.

        Args:
            data: Rows keyed by column name
            columns: Column keys in display order
            headers: Optional display names for columns
            title: Optional table title
        """
        if self.json_output:
            self.output_json(data)
            return
        if not data:
            return

        headers = headers or {}
        table = Table(title=title, show_header=True, header_style="bold")
        for column in columns:
            table.add_column(headers.get(column, column), overflow="fold")
        for row in data:
            table.add_row(*(Text(str(row.get(column, ""))) for column in columns))
        self.console.print(table)

    def print_summary(self, title: str, items: list[tuple[str, Any]]) -> None:
        """Print a titled list of key/value lines."""
        if self._silent:
            return
        self.console.print()
        self.console.print(Text(title, style="bold"))
        width = max((len(key) for key, _ in items), default=0)
        for key, value in items:
            self.console.print(f"  {key.ljust(width)}  {value}", markup=False)
