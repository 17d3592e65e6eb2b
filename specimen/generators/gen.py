"""Shortcuts for building generator specs.

Examples:
    from specimen import gen

    gen.ints().range(18, 65)
    gen.string().digits().length(5)
    gen.text().pattern("#C#C-#d#d#d")
    gen.faker("email")
    gen.collection().size(3)
"""

import datetime
from typing import Any

from .specs import (
    BoolSpec,
    CollectionSpec,
    DecimalSpec,
    EmitSpec,
    EnumSpec,
    FakerSpec,
    FloatSpec,
    GeneratorSpec,
    IntSpec,
    MapSpec,
    OneOfSpec,
    StringSpec,
    TemporalSpec,
    TextPatternSpec,
    UuidSpec,
)


def ints(min: int | None = None, max: int | None = None) -> IntSpec:
    return IntSpec(min, max)


def floats(min: float | None = None, max: float | None = None) -> FloatSpec:
    return FloatSpec(min, max)


def decimals(min: float | None = None, max: float | None = None, scale: int = 2) -> DecimalSpec:
    return DecimalSpec(min, max, scale)


def booleans() -> BoolSpec:
    return BoolSpec()


def string() -> StringSpec:
    return StringSpec()


class _Text:
    """``gen.text().pattern(...)``"""

    def pattern(self, pattern: str) -> TextPatternSpec:
        return TextPatternSpec(pattern)


def text() -> _Text:
    return _Text()


def one_of(*values: Any) -> OneOfSpec:
    """Pick from the given values; a single iterable argument is expanded."""
    if len(values) == 1 and isinstance(values[0], (list, tuple, set, frozenset)):
        values = tuple(values[0])
    return OneOfSpec(values)


def enum(enum_cls: type) -> EnumSpec:
    return EnumSpec(enum_cls)


def emit() -> EmitSpec:
    return EmitSpec()


def collection(element: GeneratorSpec | None = None) -> CollectionSpec:
    return CollectionSpec(element)


def map(key: GeneratorSpec | None = None, value: GeneratorSpec | None = None) -> MapSpec:
    return MapSpec(key, value)


def temporal(kind: type = datetime.datetime) -> TemporalSpec:
    return TemporalSpec(kind)


def dates() -> TemporalSpec:
    return TemporalSpec(datetime.date)


def datetimes() -> TemporalSpec:
    return TemporalSpec(datetime.datetime)


def uuid() -> UuidSpec:
    return UuidSpec()


def faker(provider: str, *args: Any, locale: str = "en_US", **kwargs: Any) -> FakerSpec:
    """Values from a Faker provider method, e.g. ``faker("first_name")``."""
    return FakerSpec(provider, *args, locale=locale, **kwargs)
