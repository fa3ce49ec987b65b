"""Console output formatting for the repofs CLI."""

import json
from typing import Any, Optional

from rich.console import Console
from rich.markup import escape


class OutputFormatter:
    """Prints status messages, tables and JSON to the terminal.

    Messages go to stderr so that diff and JSON output on stdout stay
    machine readable.
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
            json_output: Print results as JSON instead of text
            quiet: Suppress non-essential output
            console: Console for results (stdout)
            err_console: Console for status messages (stderr)
        """
        self.json_output = json_output
        self.quiet = quiet
        self.console = console or Console(highlight=False, soft_wrap=True)
        self.err_console = err_console or Console(
            stderr=True, highlight=False, soft_wrap=True
        )

    def print(self, message: str = "") -> None:
        self.console.print(escape(message))

    def info(self, message: str) -> None:
        if not self.quiet:
            self.err_console.print(escape(message))

    def success(self, message: str) -> None:
        if not self.quiet:
            self.err_console.print(f"[green]{escape(message)}[/green]")

    def warning(self, message: str) -> None:
        self.err_console.print(f"[yellow]Warning:[/yellow] {escape(message)}")

    def error(self, message: str) -> None:
        self.err_console.print(f"[red]Error:[/red] {escape(message)}")

    def print_json(self, data: Any) -> None:
        self.console.print_json(json.dumps(data))
