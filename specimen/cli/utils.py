"""Output helpers shared by the CLI commands.

Every command writes through one ``Output``: rich text for people, or a single
JSON document (``--json``) collected while the command runs and printed by
``finish()``:

    out = Output(console=console, json_mode=get_json_mode())
    out.success("Generated 3 x app.models:Person", seed=42, values=[...])
    raise typer.Exit(out.finish())
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr
from pydantic_core import to_jsonable_python
from rich.console import Console
from rich.markup import escape
from rich.table import Table


class ExitCode:
    """Process exit status of a command.

        0 = Success
        1 = Generation error (the seed is reported)
        2 = Invalid settings
        3 = Target type not found
    """

    SUCCESS = 0
    GENERATION_ERROR = 1
    SETTINGS_ERROR = 2
    NOT_FOUND = 3


class ErrorEntry(BaseModel):
    message: str
    suggestion: str | None = None
    seed: int | None = None


class Output(BaseModel):
    """Collects a command's results for either rich or JSON rendering."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    console: Console
    json_mode: bool = False
    errors: list[ErrorEntry] = Field(default_factory=list)

    _payload: dict[str, Any] = PrivateAttr(default_factory=dict)
    _exit_code: int = PrivateAttr(default=ExitCode.SUCCESS)

    def success(self, message: str, **data: Any) -> None:
        if self.json_mode:
            self._payload.update(data)
            return
        self.console.print(f"[green]✓[/green] {escape(message)}")

    def error(
        self,
        message: str,
        *,
        suggestion: str | None = None,
        seed: int | None = None,
        exit_code: int = ExitCode.GENERATION_ERROR,
    ) -> None:
        """Record a failure; the last one decides the exit code."""
        self._exit_code = exit_code
        self.errors.append(ErrorEntry(message=message, suggestion=suggestion, seed=seed))
        if self.json_mode:
            return
        self.console.print(f"[red]✗[/red] {escape(message)}", highlight=False)
        if suggestion:
            self.console.print(f"  [dim]→ {escape(suggestion)}[/dim]")

    def text(self, message: str) -> None:
        """Rich markup line, human mode only."""
        if not self.json_mode:
            self.console.print(message)

    def value(self, value: Any) -> None:
        """Pretty-print one generated value, human mode only."""
        if not self.json_mode:
            self.console.print(value, markup=False)

    def table(self, title: str, columns: list[str], rows: list[list[str]]) -> None:
        """Rich table, or a list of row objects under the lower-cased title."""
        if self.json_mode:
            self._payload[title.lower().replace(" ", "_")] = [dict(zip(columns, row)) for row in rows]
            return
        table = Table(title=title, header_style="bold")
        for name in columns:
            table.add_column(name)
        for row in rows:
            table.add_row(*row)
        self.console.print(table)

    def set_data(self, key: str, value: Any) -> None:
        self._payload[key] = value

    def finish(self) -> int:
        """Print the JSON document in JSON mode; return the exit code."""
        if self.json_mode:
            document = {
                "status": "error" if self.errors else "success",
                "exit_code": self._exit_code,
                "errors": [e.model_dump(exclude_none=True) for e in self.errors],
                **self._payload,
            }
            print(json.dumps(document, indent=2, default=str))
        return self._exit_code


def _fallback(value: Any) -> Any:
    if hasattr(value, "__dict__"):
        return vars(value)
    return repr(value)


def to_jsonable(value: Any) -> Any:
    """Convert generated objects (dataclasses, models, plain classes) to JSON data."""
    return to_jsonable_python(value, fallback=_fallback)
