"""Status messages for the into-md CLI.

Stdout carries only the markdown document, so every status line goes through
a lazily created stderr console.
"""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape

MARK_ERROR = "✗"  # Cross
MARK_WARNING = "!"
MARK_LINE = "│"  # Vertical line

_stderr_console: Console | None = None


def stderr_console() -> Console:
    global _stderr_console
    if _stderr_console is None:
        _stderr_console = Console(stderr=True)
    return _stderr_console


def reset_stderr_console() -> None:
    """Drop the cached console so the next call binds to the current stderr."""
    global _stderr_console
    _stderr_console = None


def error(
    text: str, *, detail: str | None = None, console: Console | None = None
) -> None:
    """Display an error message with cross symbol.

    Args:
        text: The error message to display.
        detail: Optional detail text shown on a separate line.
        console: Optional console for output (defaults to the stderr console).
    """
    c = console or stderr_console()
    c.print(f"[red]{MARK_ERROR}[/] {escape(text)}")
    if detail:
        c.print(f"  [dim]{MARK_LINE} {escape(detail)}[/]")


def warning(
    text: str, *, detail: str | None = None, console: Console | None = None
) -> None:
    """Display a warning message with exclamation symbol."""
    c = console or stderr_console()
    c.print(f"[yellow]{MARK_WARNING}[/] {escape(text)}")
    if detail:
        c.print(f"  [dim]{MARK_LINE} {escape(detail)}[/]")


def strategy(label: str, *, console: Console | None = None) -> None:
    """Print the ``Strategy: ...`` line."""
    c = console or stderr_console()
    c.print(f"Strategy: [cyan]{escape(label)}[/]", highlight=False)
