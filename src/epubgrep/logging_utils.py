from __future__ import annotations

from rich.console import Console
from rich.text import Text

_DEBUG_LOG = False
_DEBUG_CONSOLE: Console | None = None

ERROR_STYLE = "bold red"
WARNING_STYLE = "bold yellow"
DEBUG_STYLE = "dim"


def set_debug_logging(enabled: bool, console: Console | None = None) -> None:
    global _DEBUG_LOG, _DEBUG_CONSOLE
    _DEBUG_LOG = enabled
    _DEBUG_CONSOLE = console


def debug_log(message: str) -> None:
    if not _DEBUG_LOG:
        return
    console = _DEBUG_CONSOLE or Console(stderr=True, highlight=False)
    console.print(Text(f"[epubgrep debug] {message}", style=DEBUG_STYLE))


def report_error(console: Console, message: str) -> None:
    """Print ``Error: message`` with a styled marker to ``console``."""
    console.print(Text.assemble(("Error", ERROR_STYLE), ": ", message))


def report_warning(console: Console, message: str) -> None:
    console.print(Text.assemble(("Warning", WARNING_STYLE), ": ", message))
