"""Value generator registry: default generators for leaf types.

Lookups walk the MRO, so ``class Email(str)`` is generated as a string and
converted with ``Email(value)``. User registrations win over defaults.
"""

import datetime
import decimal
import logging
import pathlib
import uuid
from typing import Any, Callable

from ..errors import UnresolvableType
from ..metadata.reader import TypeNode
from ..metadata.shapes import TypeKind
from .specs import (
    BoolSpec,
    CallableSpec,
    DecimalSpec,
    EnumSpec,
    FloatSpec,
    GeneratorContext,
    GeneratorSpec,
    IntSpec,
    MappedSpec,
    OneOfSpec,
    StringSpec,
    TemporalSpec,
    UuidSpec,
)

logger = logging.getLogger(__name__)

NoneType = type(None)

GeneratorFactory = Callable[[], GeneratorSpec]

_DEFAULTS: dict[type, GeneratorFactory] = {
    bool: BoolSpec,
    int: IntSpec,
    float: FloatSpec,
    complex: lambda: CallableSpec(
        lambda r: complex(r.float_range(-100.0, 100.0), r.float_range(-100.0, 100.0))
    ),
    str: StringSpec,
    bytes: lambda: MappedSpec(StringSpec().alphanumeric(), str.encode),
    bytearray: lambda: MappedSpec(StringSpec().alphanumeric(), lambda s: bytearray(s.encode())),
    decimal.Decimal: DecimalSpec,
    datetime.datetime: lambda: TemporalSpec(datetime.datetime),
    datetime.date: lambda: TemporalSpec(datetime.date),
    datetime.time: lambda: TemporalSpec(datetime.time),
    datetime.timedelta: lambda: TemporalSpec(datetime.timedelta),
    uuid.UUID: UuidSpec,
    pathlib.PurePath: lambda: MappedSpec(StringSpec().lower(), pathlib.PurePath),
    pathlib.Path: lambda: MappedSpec(StringSpec().lower(), pathlib.Path),
    NoneType: lambda: OneOfSpec([None]),
}


class GeneratorRegistry:
    """Maps leaf types to generator specs."""

    def __init__(self) -> None:
        self._custom: dict[type, GeneratorSpec | GeneratorFactory] = {}

    def register(self, cls: type, generator: GeneratorSpec | GeneratorFactory) -> None:
        """Use ``generator`` for ``cls`` and its subclasses.

        ``generator`` is a spec instance or a zero-argument factory of specs.
        """
        logger.debug("Registered generator for %s: %r", cls.__name__, generator)
        self._custom[cls] = generator

    def unregister(self, cls: type) -> None:
        self._custom.pop(cls, None)

    def copy(self) -> "GeneratorRegistry":
        clone = GeneratorRegistry()
        clone._custom = dict(self._custom)
        return clone

    def has_custom(self, cls: type | None) -> bool:
        return cls is not None and any(k in self._custom for k in cls.__mro__)

    def spec_for(self, node: TypeNode) -> GeneratorSpec | None:
        """Default spec for ``node``, or None when it must be populated structurally."""
        if node.kind is TypeKind.LITERAL:
            return OneOfSpec(node.literal_values)
        if node.cls is None:
            return None

        for klass in node.cls.__mro__:
            if klass in self._custom:
                registered = self._custom[klass]
                return registered if isinstance(registered, GeneratorSpec) else registered()

        if node.kind is TypeKind.ENUM:
            return EnumSpec(node.cls)
        if node.kind is not TypeKind.LEAF:
            return None

        for klass in node.cls.__mro__:
            if klass in _DEFAULTS:
                spec = _DEFAULTS[klass]()
                if klass is not node.cls:
                    spec = MappedSpec(spec, node.cls)
                return spec
        return None

    def generate(self, node: TypeNode, context: GeneratorContext) -> Any:
        spec = self.spec_for(node)
        if spec is None:
            raise UnresolvableType(node.annotation, "no generator registered", seed=context.random.seed)
        return spec.generate(context)


_default_registry = GeneratorRegistry()


def default_registry() -> GeneratorRegistry:
    return _default_registry


def register_generator(cls: type, generator: GeneratorSpec | GeneratorFactory) -> None:
    """Register a generator for ``cls`` in the process-wide registry."""
    _default_registry.register(cls, generator)
