"""Console output formatting built on rich."""

import json
from typing import Any, Optional

from rich.console import Console


class OutputFormatter:
    """Formats user-facing messages for the terminal.

    Informational messages go to stdout, warnings and errors to stderr.
    In JSON mode only structured output is printed to stdout.
    """

    def __init__(
        self,
        json_output: bool = False,
        quiet: bool = False,
        console: Optional[Console] = None,
        err_console: Optional[Console] = None,
    ):
        """Initialize output formatter.

        Args:
            json_output: Emit machine-readable JSON instead of text
            quiet: Suppress non-essential output
            console: Console for regular output
            err_console: Console for warnings and errors
        """
        self.json_output = json_output
        self.quiet = quiet
        self.console = console or Console(highlight=False)
        self.err_console = err_console or Console(stderr=True, highlight=False)

    def print(self, message: str = "") -> None:
        if self.quiet or self.json_output:
            return
        self.console.print(message)

    def info(self, message: str) -> None:
        if self.quiet or self.json_output:
            return
        self.console.print(message)

    def success(self, message: str) -> None:
        if self.quiet or self.json_output:
            return
        self.console.print(f"[green]✓[/green] {message}")

    def warning(self, message: str) -> None:
        if self.json_output:
            return
        self.err_console.print(f"[yellow]Warning:[/yellow] {message}")

    def error(self, message: str) -> None:
        self.err_console.print(f"[red]Error:[/red] {message}")

    def output_json(self, data: Any) -> None:
        """Print data as JSON to stdout, regardless of quiet mode."""
        self.console.print_json(json.dumps(data, default=str))
