"""Feeds: a data source plus derived columns.

A feed exposes every raw column under its own name, renamed columns from an
explicit mapping, string templates over several columns, and functions over
raw columns:

    class PersonFeed(Feed):
        source = DataSource.from_csv("persons.csv")
        first_name = column("firstName")
        full_name = template("${firstName} ${lastName}")
        is_adult = function(lambda age: int(age) >= 18, params=["age"])
"""

import logging
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Any, Callable, ClassVar, Literal

from jinja2 import BaseLoader, Environment, StrictUndefined, UndefinedError
from pydantic import TypeAdapter, ValidationError

from ..errors import FeedError, FeedExhausted, FeedKeyNotFound
from ..generators.specs import GeneratorContext, GeneratorSpec
from .source import DataSource

logger = logging.getLogger(__name__)

ExhaustionPolicy = Literal["fail", "cycle"]


@lru_cache(maxsize=1)
def _template_env() -> Environment:
    """Jinja2 environment with ${column} placeholders; missing columns raise."""
    return Environment(
        loader=BaseLoader(),
        variable_start_string="${",
        variable_end_string="}",
        undefined=StrictUndefined,
        finalize=lambda value: "" if value is None else value,
        autoescape=False,
    )


# =============================================================================
# Derived column declarations
# =============================================================================


@dataclass(frozen=True)
class Column:
    name: str


@dataclass(frozen=True)
class TemplateColumn:
    template: str

    def render(self, row: dict[str, Any]) -> str:
        return _template_env().from_string(self.template).render(row)


@dataclass(frozen=True)
class FunctionColumn:
    fn: Callable[..., Any]
    params: tuple[str, ...]

    def compute(self, row: dict[str, Any]) -> Any:
        return self.fn(*(row.get(p) for p in self.params))


def column(name: str) -> Column:
    """Expose raw column ``name`` under the attribute's name."""
    return Column(name)


def template(text: str) -> TemplateColumn:
    """``${column}`` placeholders filled from the row."""
    return TemplateColumn(text)


def function(fn: Callable[..., Any], params: list[str] | tuple[str, ...]) -> FunctionColumn:
    """Derive a value from raw columns, passed positionally in ``params`` order."""
    return FunctionColumn(fn, tuple(params))


Derived = Column | TemplateColumn | FunctionColumn


# =============================================================================
# Coercion
# =============================================================================


@lru_cache(maxsize=256)
def _adapter(annotation: Any) -> TypeAdapter:
    return TypeAdapter(annotation)


def coerce(value: Any, annotation: Any, feed_name: str, column_name: str) -> Any:
    """Convert a raw feed value to ``annotation`` (lax pydantic validation).

    Enum members may also be given by name.
    """
    if annotation is None or annotation is Any:
        return value
    if annotation is str and value is not None and not isinstance(value, str):
        return str(value)
    try:
        adapter = _adapter(annotation)
    except TypeError:
        adapter = TypeAdapter(annotation)
    try:
        return adapter.validate_python(value)
    except ValidationError as exc:
        if _is_member_name(annotation, value):
            return annotation[value]
        raise FeedError(
            f"Feed '{feed_name}': column {column_name!r} value {value!r} "
            f"is not a valid {getattr(annotation, '__name__', annotation)} "
            f"({exc.errors()[0]['msg']})"
        ) from exc


def _is_member_name(annotation: Any, value: Any) -> bool:
    if not (isinstance(annotation, type) and issubclass(annotation, Enum)):
        return False
    return isinstance(value, str) and value in annotation.__members__


# =============================================================================
# Feed
# =============================================================================


class Feed:
    """Rows of a data source with derived columns.

    Subclasses may declare ``source``, ``exhaustion`` and derived columns as
    class attributes; the same can be passed to the constructor.
    """

    source: ClassVar[DataSource | None] = None
    exhaustion: ClassVar[ExhaustionPolicy | None] = None
    _declared: ClassVar[dict[str, Derived]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        declared: dict[str, Derived] = {}
        for klass in reversed(cls.__mro__):
            for name, value in vars(klass).items():
                if isinstance(value, (Column, TemplateColumn, FunctionColumn)):
                    declared[name] = value
        cls._declared = declared

    def __init__(
        self,
        source: DataSource | list[dict[str, Any]] | None = None,
        *,
        mapping: dict[str, str] | None = None,
        templates: dict[str, str] | None = None,
        functions: dict[str, tuple[Callable[..., Any], list[str]]] | None = None,
        exhaustion: ExhaustionPolicy | None = None,
        name: str | None = None,
    ):
        if isinstance(source, list):
            source = DataSource.of_rows(source)
        data = source if source is not None else type(self).source
        if data is None:
            raise FeedError(f"{type(self).__name__} has no data source")
        self.data: DataSource = data
        self.name = name or (type(self).__name__ if type(self) is not Feed else data.name)
        self.policy: ExhaustionPolicy | None = exhaustion or type(self).exhaustion

        self.derived: dict[str, Derived] = dict(type(self)._declared)
        for field_name, column_name in (mapping or {}).items():
            self.derived[field_name] = Column(column_name)
        for field_name, text in (templates or {}).items():
            self.derived[field_name] = TemplateColumn(text)
        for field_name, (fn, params) in (functions or {}).items():
            self.derived[field_name] = FunctionColumn(fn, tuple(params))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r}, rows={len(self.data)})"

    def __len__(self) -> int:
        return len(self.data)

    @property
    def names(self) -> list[str]:
        """Every value name a row exposes: raw columns then derived ones."""
        return list(dict.fromkeys([*self.data.columns, *self.derived]))

    def record(self, index: int) -> dict[str, Any]:
        """Row ``index`` with derived columns computed."""
        raw = self.data[index]
        values = dict(raw)
        for name, derived in self.derived.items():
            if isinstance(derived, Column):
                if derived.name not in raw:
                    raise FeedError(f"Feed '{self.name}' has no column {derived.name!r}")
                values[name] = raw[derived.name]
            elif isinstance(derived, TemplateColumn):
                try:
                    values[name] = derived.render(raw)
                except UndefinedError as exc:
                    raise FeedError(
                        f"Feed '{self.name}': template {derived.template!r} refers to missing column ({exc})"
                    ) from exc
            else:
                values[name] = derived.compute(raw)
        return values

    def row_index(self, position: int, policy: ExhaustionPolicy, seed: int | None = None) -> int:
        """Map the n-th read to a row index under ``policy``."""
        size = len(self.data)
        if position < size:
            return position
        if policy == "cycle" and size:
            return position % size
        raise FeedExhausted(self.name, size, seed=seed)

    def lookup(self, key: str, value: Any, annotation: Any = None, seed: int | None = None) -> dict[str, Any]:
        """First row whose ``key`` equals ``value`` (after coercion to ``annotation``)."""
        for i in range(len(self.data)):
            row = self.record(i)
            if key not in row:
                continue
            candidate = coerce(row[key], annotation, self.name, key) if annotation is not None else row[key]
            if candidate == value:
                return row
        raise FeedKeyNotFound(self.name, key, value, seed=seed)

    def spec(self, name: str, type: Any = None) -> "FeedSpec":
        """A generator spec reading ``name`` from successive rows."""
        if name not in self.names:
            raise FeedError(f"Feed '{self.name}' has no column {name!r}")
        return FeedSpec(self, name, type)

    def string_spec(self, name: str) -> "FeedSpec":
        return self.spec(name, str)

    def int_spec(self, name: str) -> "FeedSpec":
        return self.spec(name, int)


class FeedSpec(GeneratorSpec):
    """Successive values of one feed column."""

    def __init__(self, feed: Feed, name: str, type: Any = None):
        super().__init__()
        self.feed = feed
        self.column = name
        self.type = type

    def _generate(self, context: GeneratorContext) -> Any:
        cursor = context.state_for(self, lambda: [0])
        policy = self.feed.policy or context.settings.feed_exhaustion
        index = self.feed.row_index(cursor[0], policy, seed=context.random.seed)
        cursor[0] += 1
        value = self.feed.record(index)[self.column]
        target = self.type or context.target
        if target is None:
            return value
        return coerce(value, target, self.feed.name, self.column)

    def __repr__(self) -> str:
        return f"FeedSpec({self.feed.name!r}, {self.column!r})"
