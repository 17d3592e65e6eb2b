"""CLI commands for specimen."""

from . import generate, settings_cmd

__all__ = ["generate", "settings_cmd"]
