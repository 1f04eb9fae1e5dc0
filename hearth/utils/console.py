"""Console output — command output on stdout, diagnostics on stderr."""

from rich.console import Console
from rich.markup import escape

console = Console()
err_console = Console(stderr=True, highlight=False, soft_wrap=True)

_quiet = False


def set_quiet(quiet: bool) -> None:
    """Silence ``info`` diagnostics (warnings and errors are always shown)."""
    global _quiet
    _quiet = quiet


def info(message: str) -> None:
    if not _quiet:
        err_console.print(f"[blue]info:[/] {escape(message)}")


def warn(message: str) -> None:
    err_console.print(f"[yellow]warning:[/] {escape(message)}")


def error(message: str) -> None:
    err_console.print(f"[bold red]error:[/] {escape(message)}")
