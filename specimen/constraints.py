"""External field constraints.

When ``constraints_enabled`` is set, bounds declared with ``annotated_types``
metadata (``Annotated[int, Ge(1)]``, pydantic ``Field(ge=1, max_length=5)``)
shape the generated values. They sit below every explicit customization:
any selector that targets the field wins over them.
"""

import decimal
import logging
import math
from dataclasses import dataclass
from typing import Any, Iterable, Protocol, runtime_checkable

import annotated_types as at
from pydantic.fields import FieldInfo

from .generators.specs import CollectionSpec, DecimalSpec, FloatSpec, GeneratorSpec, IntSpec, StringSpec
from .metadata.reader import FieldNode, TypeNode
from .metadata.shapes import TypeKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldConstraints:
    ge: Any = None
    gt: Any = None
    le: Any = None
    lt: Any = None
    min_length: int | None = None
    max_length: int | None = None

    @property
    def empty(self) -> bool:
        return all(v is None for v in (self.ge, self.gt, self.le, self.lt, self.min_length, self.max_length))


@runtime_checkable
class ConstraintProvider(Protocol):
    def constraints_for(self, field: FieldNode) -> FieldConstraints | None: ...


class AnnotatedConstraintProvider:
    """Reads ``annotated_types`` metadata from a field's declaration."""

    def constraints_for(self, field: FieldNode) -> FieldConstraints | None:
        values: dict[str, Any] = {}
        for item in _flatten(field.metadata):
            if isinstance(item, at.Ge):
                values["ge"] = item.ge
            elif isinstance(item, at.Gt):
                values["gt"] = item.gt
            elif isinstance(item, at.Le):
                values["le"] = item.le
            elif isinstance(item, at.Lt):
                values["lt"] = item.lt
            elif isinstance(item, at.MinLen):
                values["min_length"] = item.min_length
            elif isinstance(item, at.MaxLen):
                values["max_length"] = item.max_length
        if not values:
            return None
        return FieldConstraints(**values)


def _flatten(metadata: Iterable[Any]) -> Iterable[Any]:
    for item in metadata:
        if isinstance(item, FieldInfo):
            yield from _flatten(item.metadata)
        elif isinstance(item, (at.Interval, at.Len)):
            yield from _flatten(list(item))
        else:
            yield item


def constrained_spec(node: TypeNode, constraints: FieldConstraints) -> GeneratorSpec | None:
    """Spec honouring ``constraints`` for ``node``, or None if they do not apply."""
    cls = node.cls
    if node.kind in (TypeKind.COLLECTION, TypeKind.MAPPING):
        spec = CollectionSpec()
        if constraints.min_length is not None:
            spec.min_size(constraints.min_length)
        if constraints.max_length is not None:
            spec.max_size(constraints.max_length)
        return spec
    if node.kind is not TypeKind.LEAF or cls is None:
        return None

    if issubclass(cls, bool):
        return None
    if issubclass(cls, int):
        low = constraints.ge if constraints.gt is None else constraints.gt + 1
        high = constraints.le if constraints.lt is None else constraints.lt - 1
        return IntSpec(low, high)
    if issubclass(cls, (float, decimal.Decimal)):
        low = constraints.ge if constraints.gt is None else math.nextafter(float(constraints.gt), math.inf)
        high = constraints.le if constraints.lt is None else math.nextafter(float(constraints.lt), -math.inf)
        low = None if low is None else float(low)
        high = None if high is None else float(high)
        if issubclass(cls, decimal.Decimal):
            return DecimalSpec(low, high)
        return FloatSpec(low, high)
    if issubclass(cls, str):
        spec = StringSpec()
        if constraints.min_length is not None:
            spec.min_length(constraints.min_length)
        if constraints.max_length is not None:
            spec.max_length(constraints.max_length)
        return spec

    logger.debug("Constraints on %s are not supported, ignoring", cls.__name__)
    return None


_default_provider = AnnotatedConstraintProvider()


def default_provider() -> ConstraintProvider:
    return _default_provider
