"""Rich-based logger with cadence theming.

Generation mixes two kinds of output: the streamed completion itself
and everything around it (model loading, stats, errors). This logger
keeps them apart:
- Semantic colors (cyan=info, green=success)
- Structured output (tables, key-value pairs)
- Raw streaming for generated text, with markup disabled
- Spinners for slow steps like weight loading
"""
from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from rich.text import Text
from rich.theme import Theme


CADENCE_THEME = Theme(
    {
        "info": "bold #7dcfff",  # informational
        "success": "bold #9ece6a",
        "highlight": "bold #bb9af7",  # emphasis
        "muted": "dim #565f89",  # secondary info
        "metric": "#7aa2f7",  # numbers
    }
)


class Logger:
    """Unified logging interface with rich console output.

    Wraps Rich Console to provide semantic log levels, structured data
    display and a raw text stream for completions.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console if console is not None else Console(theme=CADENCE_THEME)

    # ─────────────────────────────────────────────────────────────────────
    # Basic Logging
    # ─────────────────────────────────────────────────────────────────────

    def info(self, message: str) -> None:
        """Log an informational message (cyan ℹ)."""
        self.console.print(f"[info]ℹ[/info] {message}")

    def success(self, message: str) -> None:
        """Log a success message (green ✓)."""
        self.console.print(f"[success]✓[/success] {message}")

    # ─────────────────────────────────────────────────────────────────────
    # Streaming
    # ─────────────────────────────────────────────────────────────────────

    def stream(self, text: str) -> None:
        """Write generated text as-is, without a trailing newline.

        Model output may contain square brackets, so markup and
        highlighting are off.
        """
        self.console.print(
            text, end="", markup=False, highlight=False, soft_wrap=True
        )
        self.console.file.flush()

    # ─────────────────────────────────────────────────────────────────────
    # Structured Output
    # ─────────────────────────────────────────────────────────────────────

    def header(self, title: str, subtitle: str | None = None) -> None:
        """Print a prominent section header."""
        header_text = Text()
        header_text.append("━" * 3 + " ", style="muted")
        header_text.append(title, style="highlight")
        if subtitle:
            header_text.append(f" • {subtitle}", style="muted")
        header_text.append(" " + "━" * 40, style="muted")
        self.console.print()
        self.console.print(header_text)
        self.console.print()

    def subheader(self, text: str) -> None:
        self.console.print(f"[muted]──[/muted] [highlight]{text}[/highlight]")

    def table(
        self,
        title: str | None = None,
        columns: list[str] | None = None,
        rows: list[list[str]] | None = None,
    ) -> Table:
        """Create and optionally populate a styled table.

        If columns and rows are provided, prints immediately. Otherwise
        returns the Table for manual population.
        """
        table = Table(
            title=title,
            title_style="highlight",
            header_style="info",
            border_style="muted",
            row_styles=["", "dim"],
        )

        if columns and rows:
            for col in columns:
                table.add_column(col)
            for row in rows:
                table.add_row(*row)
            self.console.print(table)

        return table

    def key_value(self, data: dict[str, Any], title: str | None = None) -> None:
        """Display key-value pairs in a clean format."""
        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column("Key", style="muted")
        table.add_column("Value", style="metric")

        for key, value in data.items():
            table.add_row(f"{key}:", str(value))

        if title:
            self.subheader(title)
        self.console.print(table)

    def stats(self, rows: list[list[str]]) -> None:
        """Print completion statistics as a two-column table."""
        if not rows:
            return
        self.console.print()
        self.table(title="Stats", columns=["Statistic Name", "Value"], rows=rows)

    # ─────────────────────────────────────────────────────────────────────
    # Progress Tracking
    # ─────────────────────────────────────────────────────────────────────

    def spinner(self, description: str = "Processing...") -> Progress:
        """Create a spinner for indeterminate progress.

        Usage:
            with logger.spinner("Loading weights...") as progress:
                progress.add_task("", total=None)
                # ... do work ...
        """
        return Progress(
            SpinnerColumn(style="info"),
            TextColumn("[info]{task.description}[/info]"),
            console=self.console,
            transient=True,
        )


# ─────────────────────────────────────────────────────────────────────────────
# Module-Level Singleton
# ─────────────────────────────────────────────────────────────────────────────

_logger: Logger | None = None


def get_logger() -> Logger:
    """Get or create the singleton Logger instance.

    A single Console keeps streamed text and status lines in order.
    """
    global _logger
    if _logger is None:
        _logger = Logger()
    return _logger
