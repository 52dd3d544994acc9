"""Status-line helpers for imglocal CLI output.

Usage:
    from imglocal.cli import ui

    ui.title("Localizing images")
    ui.success("hero.png")
    ui.error("Download failed", detail="404 Not Found")
"""

from __future__ import annotations

from rich.console import Console

from imglocal.cli.console import get_console
from imglocal.models import RunSummary

# Symbol constants for visual markers
MARK_SUCCESS = "✓"  # Checkmark
MARK_ERROR = "✗"  # Cross
MARK_SKIPPED = "⊘"  # Circled slash
MARK_WARNING = "!"
MARK_INFO = "•"  # Bullet
MARK_TITLE = "◆"  # Diamond
MARK_LINE = "│"  # Vertical line


def truncate(text: str, max_len: int) -> str:
    """Truncate text to max_len, appending '...' if trimmed."""
    if max_len < 4:
        return text[:max_len]
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def title(text: str, *, console: Console | None = None) -> None:
    """Display a title with diamond symbol."""
    c = console or get_console()
    c.print(f"[cyan]{MARK_TITLE}[/] [bold]{text}[/]")
    c.print()


def success(text: str, *, console: Console | None = None) -> None:
    c = console or get_console()
    c.print(f"  [green]{MARK_SUCCESS}[/] {text}")


def skipped(text: str, *, console: Console | None = None) -> None:
    c = console or get_console()
    c.print(f"  [dim]{MARK_SKIPPED}[/] {text}")


def error(text: str, *, detail: str | None = None, console: Console | None = None) -> None:
    """Display an error message with cross symbol.

    Args:
        text: The error message to display.
        detail: Optional detail text shown on a separate line.
        console: Optional console for output (defaults to shared console).
    """
    c = console or get_console()
    c.print(f"  [red]{MARK_ERROR}[/] {text}")
    if detail:
        c.print(f"    [dim]{MARK_LINE} {detail}[/]")


def warning(text: str, *, detail: str | None = None, console: Console | None = None) -> None:
    c = console or get_console()
    c.print(f"  [yellow]{MARK_WARNING}[/] {text}")
    if detail:
        c.print(f"    [dim]{MARK_LINE} {detail}[/]")


def info(text: str, *, console: Console | None = None) -> None:
    c = console or get_console()
    c.print(f"  [dim]{MARK_INFO}[/] {text}")


def format_run_summary(summary: RunSummary) -> str:
    """One-line summary of a run's download counts.

    Examples:
        >>> format_run_summary(RunSummary(succeeded=2, skipped_existing=1, failed=0))
        '✓ 2 downloaded | ⊘ 1 skipped (already exist) | ✗ 0 failed'
    """
    return (
        f"{MARK_SUCCESS} {summary.succeeded} downloaded | "
        f"{MARK_SKIPPED} {summary.skipped_existing} skipped (already exist) | "
        f"{MARK_ERROR} {summary.failed} failed"
    )


def summary(text: str, *, console: Console | None = None) -> None:
    """Display a summary message with a leading blank line."""
    c = console or get_console()
    c.print()
    c.print(f"[bold]{text}[/]")
