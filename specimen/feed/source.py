"""Tabular data sources for feeds.

Rows are read eagerly into memory as ``column -> value`` dicts; a source is
never re-read during generation.
"""

import csv
import io
import json
import logging
from pathlib import Path
from typing import Any, Iterable, Iterator

import yaml

from ..errors import FeedError

logger = logging.getLogger(__name__)


class DataSource:
    """Ordered rows of named columns."""

    def __init__(self, rows: Iterable[dict[str, Any]], name: str = "rows"):
        rows = list(rows)
        for i, row in enumerate(rows):
            if not isinstance(row, dict):
                raise FeedError(f"Row {i} of {name} is not a mapping: {row!r}")
        self.rows = [dict(row) for row in rows]
        self.name = name

    def __repr__(self) -> str:
        return f"DataSource({self.name!r}, rows={len(self.rows)})"

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[dict[str, Any]]:
        return iter(self.rows)

    def __getitem__(self, index: int) -> dict[str, Any]:
        return self.rows[index]

    @property
    def columns(self) -> list[str]:
        seen: dict[str, None] = {}
        for row in self.rows:
            for key in row:
                seen.setdefault(key, None)
        return list(seen)

    @classmethod
    def of_rows(cls, rows: Iterable[dict[str, Any]], name: str = "rows") -> "DataSource":
        return cls(rows, name=name)

    @classmethod
    def from_csv(cls, source: Path | str, *, text: bool = False, delimiter: str = ",") -> "DataSource":
        """Read a CSV file (or CSV text with ``text=True``); the header names the columns.

        Lines starting with ``#`` are treated as comments.
        """
        if text:
            content, name = str(source), "<csv>"
        else:
            path = Path(source)
            content, name = path.read_text(encoding="utf-8"), path.name
        lines = [line for line in content.splitlines() if not line.lstrip().startswith("#")]
        reader = csv.DictReader(io.StringIO("\n".join(lines)), delimiter=delimiter, skipinitialspace=True)
        rows = [{k.strip(): v for k, v in row.items() if k is not None} for row in reader]
        logger.debug("Loaded %d rows from %s", len(rows), name)
        return cls(rows, name=name)

    @classmethod
    def from_json(cls, path: Path | str) -> "DataSource":
        """Read a JSON array of objects."""
        path = Path(path)
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        return cls(_as_rows(data, path.name), name=path.name)

    @classmethod
    def from_yaml(cls, path: Path | str) -> "DataSource":
        """Read a YAML list of mappings."""
        path = Path(path)
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return cls(_as_rows(data, path.name), name=path.name)

    @classmethod
    def from_path(cls, path: Path | str) -> "DataSource":
        """Pick the reader from the file extension."""
        suffix = Path(path).suffix.lower()
        if suffix == ".csv":
            return cls.from_csv(path)
        if suffix == ".json":
            return cls.from_json(path)
        if suffix in (".yaml", ".yml"):
            return cls.from_yaml(path)
        raise FeedError(f"Unsupported data source format: {path}")


def _as_rows(data: Any, name: str) -> list[dict[str, Any]]:
    if not isinstance(data, list):
        raise FeedError(f"{name} must contain a list of rows")
    return data
