"""Settings command for viewing and managing global defaults."""

import typer

from ... import config
from ...config import Settings, SettingsValues, get_settings, reset_settings, save_settings
from ...errors import SettingsError
from ..app import app, console, get_json_mode
from ..utils import ExitCode, Output


@app.command("settings")
def settings_command(
    action: str = typer.Argument(..., help="Action: show, set, reset"),
    key: str | None = typer.Argument(None, help="Settings key (e.g. max_depth)"),
    value: str | None = typer.Argument(None, help="Value to set"),
):
    """View or modify the global default settings.

    Examples:
        specimen settings show
        specimen settings set max_depth 4
        specimen settings reset
    """
    out = Output(console=console, json_mode=get_json_mode())
    if action == "show":
        _show_settings(out)
    elif action == "set":
        if not key or value is None:
            out.error("Usage: specimen settings set <key> <value>", exit_code=ExitCode.SETTINGS_ERROR)
            out.text("Available keys:")
            for k in sorted(SettingsValues.model_fields):
                out.text(f"  {k}")
        else:
            _set_setting(out, key, value)
    elif action == "reset":
        _reset_settings(out)
    else:
        out.error(f"Unknown action: {action}", suggestion="Valid actions: show, set, reset", exit_code=ExitCode.SETTINGS_ERROR)
    raise typer.Exit(out.finish())


def _show_settings(out: Output) -> None:
    """Display the resolved global settings."""
    current = get_settings()
    defaults = SettingsValues()
    rows = []
    for name in SettingsValues.model_fields:
        value = getattr(current, name)
        origin = "default" if value == getattr(defaults, name) else "custom"
        rows.append([name, str(value), origin])
    out.table("Settings", ["Key", "Value", "Source"], rows)
    if config.CONFIG_FILE.exists():
        out.text(f"Config file: {config.CONFIG_FILE}")
    else:
        out.text(f"Config file: [dim]not created yet[/dim] ({config.CONFIG_FILE})")
    out.set_data("config_file", str(config.CONFIG_FILE))


def _set_setting(out: Output, key: str, value: str) -> None:
    """Persist one key on top of the current global settings."""
    try:
        layer = Settings({key: value})
        updated = SettingsValues.model_validate({**get_settings().model_dump(), **layer.as_dict()})
    except (SettingsError, ValueError) as e:
        out.error(f"Invalid setting: {e}", exit_code=ExitCode.SETTINGS_ERROR)
        return
    save_settings(updated)
    reset_settings()
    out.success(f"Set {key} = {layer.get(key)!r}", key=key, value=str(layer.get(key)))


def _reset_settings(out: Output) -> None:
    if config.CONFIG_FILE.exists():
        config.CONFIG_FILE.unlink()
    reset_settings()
    out.success("Settings reset to defaults")
