"""Console output formatting for the CLI."""

import json
from typing import Any, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table


class OutputFormatter:
    """Formats user-facing output as rich text or JSON."""

    def __init__(self, json_output: bool = False, quiet: bool = False):
        """Initialize output formatter.

        Args:
            json_output: Emit machine-readable JSON instead of text
            quiet: Suppress informational output (errors are always shown)
        """
        self.json_output = json_output
        self.quiet = quiet
        self.console = Console()
        self.err_console = Console(stderr=True)

    def print(self, message: str = "") -> None:
        """Print a plain line."""
        if self.quiet or self.json_output:
            return
        self.console.print(message, highlight=False)

    def info(self, message: str) -> None:
        """Print an informational message."""
        if self.quiet or self.json_output:
            return
        self.console.print(message, highlight=False)

    def success(self, message: str) -> None:
        """Print a success message."""
        if self.quiet or self.json_output:
            return
        self.console.print(f"[green]{message}[/green]", highlight=False)

    def warning(self, message: str) -> None:
        """Print a warning to stderr."""
        if self.quiet:
            return
        self.err_console.print(
            f"[yellow]Warning:[/yellow] {escape(message)}",
            highlight=False,
            soft_wrap=True,
        )

    def error(self, message: str) -> None:
        """Print an error to stderr."""
        self.err_console.print(
            f"[red]Error:[/red] {escape(message)}", highlight=False, soft_wrap=True
        )

    def output_json(self, data: Any) -> None:
        """Print data as JSON."""
        self.console.print(
            json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False),
            soft_wrap=True,
            markup=False,
            highlight=False,
        )

    def print_summary(
        self, title: str, rows: list[tuple[str, str]], data: Optional[Any] = None
    ) -> None:
        """Print a two-column summary table.

        Args:
            title: Table title
            rows: (label, value) pairs
            data: Payload to emit instead when in JSON mode
        """
        if self.json_output:
            self.output_json(data if data is not None else dict(rows))
            return
        if self.quiet:
            return

        table = Table(title=title, show_header=False)
        table.add_column("Field", style="cyan")
        table.add_column("Value")
        for label, value in rows:
            table.add_row(label, value)
        self.console.print(table)
