"""Generate command: instantiate a type from the command line."""

import importlib
import logging
from pathlib import Path
from typing import Any

import typer

from ...config import Settings
from ...errors import SettingsError, SpecimenError
from ..app import app, console, get_json_mode, setup_logging
from ..utils import ExitCode, Output, to_jsonable

logger = logging.getLogger(__name__)


def resolve_target(target: str) -> Any:
    """Import ``package.module:Qualified.Name``."""
    module_name, sep, qualname = target.partition(":")
    if not sep or not module_name or not qualname:
        raise ValueError(f"Expected module:Type, got {target!r}")
    obj: Any = importlib.import_module(module_name)
    for part in qualname.split("."):
        obj = getattr(obj, part)
    return obj


def parse_overrides(pairs: list[str]) -> Settings:
    """``key=value`` pairs as a settings layer (values validated per key)."""
    settings = Settings()
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep:
            raise SettingsError(f"Expected key=value, got {pair!r}")
        settings.set(key.strip(), value.strip())
    return settings


@app.command("generate")
def generate_command(
    target: str = typer.Argument(..., help="Type to generate, as module:Type"),
    count: int = typer.Option(1, "--count", "-n", min=0, help="Number of instances"),
    seed: int | None = typer.Option(None, "--seed", help="Random seed for reproducibility"),
    settings_file: Path | None = typer.Option(
        None, "--settings", help="YAML file of settings overrides"
    ),
    overrides: list[str] = typer.Option(
        [], "--set", help="Settings override as key=value (repeatable)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show info logs"),
    debug: bool = typer.Option(False, "--debug", help="Show debug logs"),
):
    """
    Generate instances of a Python type.

    EXIT CODES:
        0 = Success
        1 = Generation error
        2 = Invalid settings
        3 = Type not found

    Examples:
        specimen generate myapp.models:Person
        specimen generate myapp.models:Person -n 5 --seed 42
        specimen --json generate myapp.models:Order --set max_depth=3
    """
    from ... import api

    setup_logging(verbose=verbose, debug=debug)
    out = Output(console=console, json_mode=get_json_mode())

    try:
        root = resolve_target(target)
    except (ImportError, AttributeError, ValueError) as e:
        out.error(f"Cannot import {target}: {e}", exit_code=ExitCode.NOT_FOUND)
        raise typer.Exit(out.finish())

    try:
        settings = Settings.from_yaml(settings_file) if settings_file else Settings()
        settings = settings.merge(parse_overrides(overrides))
    except (SettingsError, OSError) as e:
        out.error(f"Invalid settings: {e}", exit_code=ExitCode.SETTINGS_ERROR)
        raise typer.Exit(out.finish())

    try:
        model = api.of(root).with_settings(settings).lenient().to_model()
        run = api.GenerationRun(model, seed)
        values = run.batch(count)
    except SettingsError as e:
        out.error(f"Invalid settings: {e}", exit_code=ExitCode.SETTINGS_ERROR)
        raise typer.Exit(out.finish())
    except SpecimenError as e:
        out.error(str(e), seed=e.seed)
        raise typer.Exit(out.finish())

    for value in values:
        out.value(value)
    out.success(
        f"Generated {count} x {target} (seed={run.seed})",
        type=target,
        count=count,
        seed=run.seed,
        values=to_jsonable(values),
    )
    raise typer.Exit(out.finish())
