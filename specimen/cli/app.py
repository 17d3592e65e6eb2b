"""Typer application, global flags and logging setup for the specimen CLI."""

import logging
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

app = typer.Typer(
    name="specimen",
    help="Generate randomized instances of Python types.",
    no_args_is_help=True,
)

console = Console()

# Set by the --json flag before any command runs
_json_mode = False


def get_json_mode() -> bool:
    return _json_mode


def setup_logging(verbose: bool = False, debug: bool = False):
    """Route specimen's log records through rich; WARNING unless asked for more."""
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, markup=False)],
        force=True,
    )
    logging.getLogger("specimen").setLevel(level)


def _print_version(requested: bool) -> None:
    if not requested:
        return
    from .. import __version__

    print(f"specimen {__version__}")
    raise typer.Exit()


@app.callback()
def main_callback(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Print one JSON document instead of rich text", is_eager=True),
    ] = False,
    version: Annotated[
        bool,
        typer.Option("--version", help="Print the specimen version", callback=_print_version, is_eager=True),
    ] = False,
):
    """Randomized test-object generation from the command line.

    Generation errors report the seed; rerun with --seed to reproduce them.
    """
    global _json_mode
    _json_mode = json_output


from .commands import generate, settings_cmd  # noqa: E402, F401
