"""Generator specs: configurable value generators.

A spec is a small mutable builder (``gen.ints().range(1, 5)``) whose
``generate(context)`` draws one value from the run's random source. Specs
hold no per-run state of their own; stateful specs (``emit``) keep their
cursor in ``GeneratorContext.state`` so every generation run starts fresh.
"""

import datetime
import decimal
import logging
import string
import threading
import uuid
from dataclasses import dataclass
from dataclasses import field as dc_field
from typing import Any, Callable, Iterable, Self

from ..config import SettingsValues, resolve_settings
from ..errors import SpecimenError
from ..metadata.reader import FieldNode
from ..randomness import ALPHABETS, RandomSource

logger = logging.getLogger(__name__)


@dataclass
class GeneratorContext:
    """What a spec may look at while generating one value."""

    random: RandomSource
    settings: SettingsValues
    field: FieldNode | None = None
    target: type | None = None
    state: dict[int, Any] = dc_field(default_factory=dict)

    def state_for(self, spec: "GeneratorSpec", factory: Callable[[], Any]) -> Any:
        key = id(spec)
        if key not in self.state:
            self.state[key] = factory()
        return self.state[key]


class GeneratorSpec:
    """Base class for all generator specs."""

    def __init__(self) -> None:
        self._nullable = False
        self._standalone: GeneratorContext | None = None

    def nullable(self) -> Self:
        """Let the spec produce ``None`` with the run's nullable probability."""
        self._nullable = True
        return self

    def generate(self, context: GeneratorContext) -> Any:
        if self._nullable and context.random.true_or_false(context.settings.nullable_probability):
            return None
        return self._generate(context)

    def _generate(self, context: GeneratorContext) -> Any:
        raise NotImplementedError

    @property
    def shapes_container(self) -> bool:
        """True for specs that only size a container whose elements are still populated."""
        return False

    def get(self, seed: int | None = None) -> Any:
        """Generate one value outside of any generation run."""
        if self._standalone is None or seed is not None:
            self._standalone = GeneratorContext(RandomSource(seed), resolve_settings())
        return self.generate(self._standalone)

    def list(self, size: int, seed: int | None = None) -> list[Any]:
        context = GeneratorContext(RandomSource(seed), resolve_settings())
        return [self.generate(context) for _ in range(size)]

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


# =============================================================================
# Numbers and booleans
# =============================================================================


class IntSpec(GeneratorSpec):
    def __init__(self, min: int | None = None, max: int | None = None):
        super().__init__()
        self._min = min
        self._max = max
        self._ranges: list[tuple[int, int]] = []

    def min(self, value: int) -> Self:
        self._min = value
        return self

    def max(self, value: int) -> Self:
        self._max = value
        return self

    def range(self, low: int, high: int) -> Self:
        """Add an inclusive range; with several ranges one is picked per value."""
        self._ranges.append((low, high))
        return self

    def bounds(self, settings: SettingsValues) -> tuple[int, int]:
        low = settings.int_min if self._min is None else self._min
        high = settings.int_max if self._max is None else self._max
        if self._min is not None and self._max is None and high < low:
            high = low + (settings.int_max - settings.int_min)
        if self._max is not None and self._min is None and low > high:
            low = high - (settings.int_max - settings.int_min)
        return low, high

    def _generate(self, context: GeneratorContext) -> int:
        if self._ranges:
            low, high = context.random.one_of(self._ranges)
        else:
            low, high = self.bounds(context.settings)
        return context.random.int_range(low, high)

    def __repr__(self) -> str:
        if self._ranges:
            return f"IntSpec(ranges={self._ranges})"
        return f"IntSpec(min={self._min}, max={self._max})"


class FloatSpec(GeneratorSpec):
    def __init__(self, min: float | None = None, max: float | None = None):
        super().__init__()
        self._min = min
        self._max = max
        self._ranges: list[tuple[float, float]] = []
        self._precision: int | None = None

    def min(self, value: float) -> Self:
        self._min = value
        return self

    def max(self, value: float) -> Self:
        self._max = value
        return self

    def range(self, low: float, high: float) -> Self:
        self._ranges.append((low, high))
        return self

    def precision(self, digits: int) -> Self:
        """Round generated values to ``digits`` decimal places."""
        self._precision = digits
        return self

    def _bounds(self, context: GeneratorContext) -> tuple[float, float]:
        if self._ranges:
            return context.random.one_of(self._ranges)
        settings = context.settings
        low = settings.float_min if self._min is None else self._min
        high = settings.float_max if self._max is None else self._max
        if high < low:
            if self._max is not None and self._min is None:
                low = high - (settings.float_max - settings.float_min)
            else:
                high = low + (settings.float_max - settings.float_min)
        return low, high

    def _generate(self, context: GeneratorContext) -> float:
        low, high = self._bounds(context)
        value = context.random.float_range(low, high)
        if self._precision is not None:
            value = min(max(round(value, self._precision), low), high)
        return value


class DecimalSpec(FloatSpec):
    def __init__(self, min: float | None = None, max: float | None = None, scale: int = 2):
        super().__init__(min, max)
        self._precision = scale

    def scale(self, digits: int) -> Self:
        self._precision = digits
        return self

    def _generate(self, context: GeneratorContext) -> decimal.Decimal:
        value = super()._generate(context)
        return decimal.Decimal(f"{value:.{self._precision}f}")


class BoolSpec(GeneratorSpec):
    def __init__(self, probability: float = 0.5):
        super().__init__()
        self._probability = probability

    def probability(self, p: float) -> Self:
        """Probability of ``True``."""
        if not 0.0 <= p <= 1.0:
            raise ValueError(f"Probability must be in [0, 1], got {p}")
        self._probability = p
        return self

    def _generate(self, context: GeneratorContext) -> bool:
        return context.random.true_or_false(self._probability)


# =============================================================================
# Strings
# =============================================================================


class StringSpec(GeneratorSpec):
    """Random strings over an alphabet (upper case letters by default)."""

    def __init__(self) -> None:
        super().__init__()
        self._min_length: int | None = None
        self._max_length: int | None = None
        self._alphabet = "upper"
        self._prefix = ""
        self._suffix = ""
        self._allow_empty = False

    def length(self, min_length: int, max_length: int | None = None) -> Self:
        self._min_length = min_length
        self._max_length = min_length if max_length is None else max_length
        return self

    def min_length(self, n: int) -> Self:
        self._min_length = n
        return self

    def max_length(self, n: int) -> Self:
        self._max_length = n
        return self

    def upper(self) -> Self:
        self._alphabet = "upper"
        return self

    def lower(self) -> Self:
        self._alphabet = "lower"
        return self

    def mixed_case(self) -> Self:
        self._alphabet = "alpha"
        return self

    def digits(self) -> Self:
        self._alphabet = "digits"
        return self

    def alphanumeric(self) -> Self:
        self._alphabet = "alphanumeric"
        return self

    def hex(self) -> Self:
        self._alphabet = "hex"
        return self

    def prefix(self, value: str) -> Self:
        self._prefix = value
        return self

    def suffix(self, value: str) -> Self:
        self._suffix = value
        return self

    def allow_empty(self, allow: bool = True) -> Self:
        """Occasionally produce ``""``."""
        self._allow_empty = allow
        return self

    def _generate(self, context: GeneratorContext) -> str:
        settings = context.settings
        low = settings.string_min_length if self._min_length is None else self._min_length
        high = settings.string_max_length if self._max_length is None else self._max_length
        if high < low:
            if self._max_length is not None and self._min_length is None:
                low = high
            else:
                high = low
        if self._allow_empty and context.random.true_or_false(0.1):
            return ""
        body = context.random.string(context.random.int_range(low, high), self._alphabet)
        prefix = self._prefix
        if not prefix and settings.string_field_prefix_enabled and context.field is not None:
            prefix = f"{context.field.name}_"
        return f"{prefix}{body}{self._suffix}"


class TextPatternSpec(GeneratorSpec):
    """Strings from a pattern.

    ``#a`` lower letter, ``#A`` or ``#C`` upper letter, ``#c`` lower letter,
    ``#d`` digit, ``#x`` hex digit, ``#*`` alphanumeric, ``##`` a literal ``#``.
    Other characters are copied as is.
    """

    _TOKENS = {
        "a": ALPHABETS["lower"],
        "c": ALPHABETS["lower"],
        "A": ALPHABETS["upper"],
        "C": ALPHABETS["upper"],
        "d": string.digits,
        "x": "0123456789abcdef",
        "*": ALPHABETS["alphanumeric"],
    }

    def __init__(self, pattern: str):
        super().__init__()
        self._pattern = pattern
        self._validate()

    def _validate(self) -> None:
        i = 0
        while i < len(self._pattern):
            if self._pattern[i] == "#":
                token = self._pattern[i + 1 : i + 2]
                if token != "#" and token not in self._TOKENS:
                    raise ValueError(
                        f"Invalid pattern token '#{token}' in {self._pattern!r}"
                    )
                i += 2
            else:
                i += 1

    def _generate(self, context: GeneratorContext) -> str:
        out = []
        i = 0
        pattern = self._pattern
        while i < len(pattern):
            ch = pattern[i]
            if ch == "#":
                token = pattern[i + 1]
                out.append("#" if token == "#" else context.random.one_of(self._TOKENS[token]))
                i += 2
            else:
                out.append(ch)
                i += 1
        return "".join(out)

    def __repr__(self) -> str:
        return f"TextPatternSpec({self._pattern!r})"


# =============================================================================
# Choices
# =============================================================================


class OneOfSpec(GeneratorSpec):
    def __init__(self, values: Iterable[Any]):
        super().__init__()
        self._values = list(values)
        if not self._values:
            raise ValueError("one_of() needs at least one value")

    def _generate(self, context: GeneratorContext) -> Any:
        return context.random.one_of(self._values)

    def __repr__(self) -> str:
        return f"OneOfSpec({self._values!r})"


class EnumSpec(GeneratorSpec):
    def __init__(self, enum_cls: type):
        super().__init__()
        self._enum_cls = enum_cls
        self._excluded: set[Any] = set()

    def excluding(self, *members: Any) -> Self:
        self._excluded.update(members)
        return self

    def _generate(self, context: GeneratorContext) -> Any:
        choices = [m for m in self._enum_cls if m not in self._excluded]
        if not choices:
            raise SpecimenError(f"Every member of {self._enum_cls.__name__} is excluded")
        return context.random.one_of(choices)


class EmitSpec(GeneratorSpec):
    """Emit the given items in order, one per generated value."""

    def __init__(self) -> None:
        super().__init__()
        self._items: list[Any] = []
        self._when_empty = "fail"

    def items(self, *values: Any) -> Self:
        self._items.extend(values)
        return self

    def item(self, value: Any, times: int) -> Self:
        self._items.extend([value] * times)
        return self

    def when_empty_emit_null(self) -> Self:
        self._when_empty = "null"
        return self

    def when_empty_recycle(self) -> Self:
        self._when_empty = "recycle"
        return self

    def _generate(self, context: GeneratorContext) -> Any:
        cursor = context.state_for(self, lambda: [0])
        position = cursor[0]
        cursor[0] += 1
        if position < len(self._items):
            return self._items[position]
        if self._when_empty == "null":
            return None
        if self._when_empty == "recycle" and self._items:
            return self._items[position % len(self._items)]
        raise SpecimenError(f"emit() ran out of items after {len(self._items)} values")


# =============================================================================
# Containers
# =============================================================================


class CollectionSpec(GeneratorSpec):
    """Shapes a list/set/tuple: its size and extra elements.

    Elements are generated for the declared element type unless an element
    spec is given.
    """

    def __init__(self, element: GeneratorSpec | None = None):
        super().__init__()
        self._element = element
        self._min_size: int | None = None
        self._max_size: int | None = None
        self._with: list[Any] = []
        self._kind: type = list

    @property
    def element(self) -> GeneratorSpec | None:
        return self._element

    @property
    def extra_elements(self) -> list[Any]:
        return list(self._with)

    @property
    def shapes_container(self) -> bool:
        return True

    def of(self, element: GeneratorSpec) -> Self:
        self._element = element
        return self

    def size(self, n: int) -> Self:
        if n < 0:
            raise ValueError(f"Size must be non-negative, got {n}")
        self._min_size = self._max_size = n
        return self

    def min_size(self, n: int) -> Self:
        self._min_size = n
        return self

    def max_size(self, n: int) -> Self:
        self._max_size = n
        return self

    def with_elements(self, *values: Any) -> Self:
        """Values added to the generated elements (not counted in the size)."""
        self._with.extend(values)
        return self

    def as_set(self) -> Self:
        self._kind = set
        return self

    def size_range(self, settings: SettingsValues, mapping: bool = False) -> tuple[int, int]:
        default_low = settings.map_min_size if mapping else settings.collection_min_size
        default_high = settings.map_max_size if mapping else settings.collection_max_size
        low = default_low if self._min_size is None else self._min_size
        high = default_high if self._max_size is None else self._max_size
        if self._min_size is not None and self._max_size is None:
            high = max(high, low)
        if self._max_size is not None and self._min_size is None:
            low = min(low, high)
        return low, high

    def pick_size(self, context: GeneratorContext, mapping: bool = False) -> int:
        low, high = self.size_range(context.settings, mapping)
        return context.random.int_range(low, high)

    def _generate(self, context: GeneratorContext) -> Any:
        if self._element is None:
            raise SpecimenError("collection() needs an element spec to generate on its own")
        items = [self._element.generate(context) for _ in range(self.pick_size(context))]
        items.extend(self._with)
        return self._kind(items)


class MapSpec(CollectionSpec):
    def __init__(self, key: GeneratorSpec | None = None, value: GeneratorSpec | None = None):
        super().__init__()
        self._key = key
        self._value = value
        self._entries: dict[Any, Any] = {}

    @property
    def key_spec(self) -> GeneratorSpec | None:
        return self._key

    @property
    def value_spec(self) -> GeneratorSpec | None:
        return self._value

    @property
    def extra_entries(self) -> dict[Any, Any]:
        return dict(self._entries)

    def keys(self, spec: GeneratorSpec) -> Self:
        self._key = spec
        return self

    def values(self, spec: GeneratorSpec) -> Self:
        self._value = spec
        return self

    def with_entries(self, *pairs: tuple[Any, Any], **entries: Any) -> Self:
        self._entries.update(pairs)
        self._entries.update(entries)
        return self

    def size_range(self, settings: SettingsValues, mapping: bool = True) -> tuple[int, int]:
        return super().size_range(settings, mapping=True)

    def _generate(self, context: GeneratorContext) -> dict[Any, Any]:
        if self._key is None or self._value is None:
            raise SpecimenError("map() needs key and value specs to generate on its own")
        result = {}
        target = self.pick_size(context, mapping=True)
        attempts = 0
        while len(result) < target and attempts < context.settings.max_generation_attempts:
            result[self._key.generate(context)] = self._value.generate(context)
            attempts += 1
        result.update(self._entries)
        return result


# =============================================================================
# Temporal, identifiers
# =============================================================================


class TemporalSpec(GeneratorSpec):
    """Dates, datetimes, times and durations within a range."""

    def __init__(self, kind: type = datetime.datetime):
        super().__init__()
        self._kind = kind
        self._min: datetime.datetime | None = None
        self._max: datetime.datetime | None = None
        self._anchor: datetime.datetime | None = None

    def range(self, start: datetime.date | datetime.datetime, end: datetime.date | datetime.datetime) -> Self:
        self._min = _as_datetime(start)
        self._max = _as_datetime(end)
        return self

    def past(self, now: datetime.datetime | None = None) -> Self:
        """Only values before ``now``."""
        self._anchor = now or datetime.datetime.now()
        self._max = self._anchor
        return self

    def future(self, now: datetime.datetime | None = None) -> Self:
        """Only values after ``now``."""
        self._anchor = now or datetime.datetime.now()
        self._min = self._anchor
        return self

    def _generate(self, context: GeneratorContext) -> Any:
        kind = context.target if context.target in _TEMPORAL_KINDS else self._kind
        settings = context.settings
        if kind is datetime.timedelta:
            seconds = context.random.int_range(0, 30 * 24 * 3600)
            return datetime.timedelta(seconds=seconds)
        if kind is datetime.time:
            seconds = context.random.int_range(0, 24 * 3600 - 1)
            return datetime.time(seconds // 3600, (seconds // 60) % 60, seconds % 60)

        low = self._min or settings.temporal_min
        high = self._max or settings.temporal_max
        if self._anchor is not None and self._min is None and low >= high:
            low = high - (settings.temporal_max - settings.temporal_min)
        if self._anchor is not None and self._max is None and high <= low:
            high = low + (settings.temporal_max - settings.temporal_min)
        span = int((high - low).total_seconds())
        value = low + datetime.timedelta(seconds=context.random.int_range(0, max(span, 0)))
        if kind is datetime.date:
            return value.date()
        return value


_TEMPORAL_KINDS = (datetime.datetime, datetime.date, datetime.time, datetime.timedelta)


def _as_datetime(value: datetime.date | datetime.datetime) -> datetime.datetime:
    if isinstance(value, datetime.datetime):
        return value
    return datetime.datetime(value.year, value.month, value.day)


class UuidSpec(GeneratorSpec):
    def __init__(self, as_string: bool = False):
        super().__init__()
        self._as_string = as_string

    def as_string(self) -> Self:
        self._as_string = True
        return self

    def _generate(self, context: GeneratorContext) -> Any:
        value = uuid.UUID(int=context.random.getrandbits(128), version=4)
        return str(value) if self._as_string else value


# =============================================================================
# Faker
# =============================================================================

_faker_cache: dict[str, Any] = {}
_faker_lock = threading.Lock()


def _get_faker(locale: str) -> Any:
    """Get or create the shared Faker instance for ``locale``."""
    fake = _faker_cache.get(locale)
    if fake is None:
        from faker import Faker

        with _faker_lock:
            fake = _faker_cache.setdefault(locale, Faker(locale))
    return fake


class FakerSpec(GeneratorSpec):
    """Values from a Faker provider, e.g. ``gen.faker("email")``.

    Faker instances are shared per locale; each value reseeds the instance
    from the run's random source so output stays reproducible.
    """

    def __init__(self, provider: str, *args: Any, locale: str = "en_US", **kwargs: Any):
        super().__init__()
        self._provider = provider
        self._args = args
        self._kwargs = kwargs
        self._locale = locale

    def _generate(self, context: GeneratorContext) -> Any:
        fake = _get_faker(self._locale)
        method = getattr(fake, self._provider, None)
        if method is None:
            raise SpecimenError(f"Faker has no provider {self._provider!r}")
        with _faker_lock:
            fake.seed_instance(context.random.derive_seed())
            return method(*self._args, **self._kwargs)

    def __repr__(self) -> str:
        return f"FakerSpec({self._provider!r}, locale={self._locale!r})"


# =============================================================================
# Wrappers
# =============================================================================


class CallableSpec(GeneratorSpec):
    """Adapt ``fn(random)`` to a spec."""

    def __init__(self, fn: Callable[[RandomSource], Any]):
        super().__init__()
        self._fn = fn

    def _generate(self, context: GeneratorContext) -> Any:
        return self._fn(context.random)

    def __repr__(self) -> str:
        return f"CallableSpec({getattr(self._fn, '__name__', self._fn)!r})"


class MappedSpec(GeneratorSpec):
    """Post-process another spec's values."""

    def __init__(self, inner: GeneratorSpec, fn: Callable[[Any], Any]):
        super().__init__()
        self._inner = inner
        self._fn = fn

    def _generate(self, context: GeneratorContext) -> Any:
        return self._fn(self._inner.generate(context))


def as_spec(value: GeneratorSpec | Callable[[RandomSource], Any]) -> GeneratorSpec:
    if isinstance(value, GeneratorSpec):
        return value
    if callable(value):
        return CallableSpec(value)
    raise TypeError(f"Expected a generator spec or callable, got {value!r}")
