"""Type metadata reader.

Normalizes an arbitrary annotation (class, generic alias, Optional, Literal,
TypedDict, ...) into an immutable ``TypeNode`` describing its fields or
element types. Nodes are cached per annotation; the cache is the only state
shared between concurrent generation runs.
"""

import collections
import collections.abc
import dataclasses
import datetime
import decimal
import inspect
import logging
import pathlib
import threading
import types
import typing
import uuid
from dataclasses import dataclass, replace
from enum import Enum
from typing import (
    Annotated,
    Any,
    Callable,
    ClassVar,
    Literal,
    Protocol,
    TypeVar,
    Union,
    get_args,
    get_origin,
    get_type_hints,
    is_typeddict,
    runtime_checkable,
)

from pydantic import BaseModel
from pydantic_core import PydanticUndefined

from ..errors import UnresolvableType
from .shapes import COMPOSITE_KINDS, MISSING, ClassShape, TypeKind

logger = logging.getLogger(__name__)

NoneType = type(None)

LEAF_TYPES: frozenset[type] = frozenset(
    {
        bool,
        int,
        float,
        complex,
        str,
        bytes,
        bytearray,
        decimal.Decimal,
        datetime.date,
        datetime.datetime,
        datetime.time,
        datetime.timedelta,
        uuid.UUID,
        pathlib.Path,
        pathlib.PurePath,
        NoneType,
    }
)

# origin -> concrete container class
_COLLECTION_ORIGINS: dict[Any, type] = {
    list: list,
    set: set,
    frozenset: frozenset,
    collections.deque: collections.deque,
    collections.abc.Sequence: list,
    collections.abc.MutableSequence: list,
    collections.abc.Iterable: list,
    collections.abc.Collection: list,
    collections.abc.Set: set,
    collections.abc.MutableSet: set,
}

_MAPPING_ORIGINS: dict[Any, type] = {
    dict: dict,
    collections.OrderedDict: collections.OrderedDict,
    collections.defaultdict: dict,
    collections.abc.Mapping: dict,
    collections.abc.MutableMapping: dict,
}

_TYPED_DICT_QUALIFIERS = tuple(
    q for q in (getattr(typing, "Required", None), getattr(typing, "NotRequired", None)) if q
)


# =============================================================================
# Nodes
# =============================================================================


@dataclass(frozen=True, eq=False)
class FieldNode:
    """One declared field of an object type."""

    name: str
    declared_type: Any
    owner: type
    default: Any = MISSING
    default_factory: Callable[[], Any] | None = None
    metadata: tuple[Any, ...] = ()

    @property
    def has_default(self) -> bool:
        return self.default is not MISSING or self.default_factory is not None

    def zero_value(self) -> Any:
        """Value a field keeps when it is ignored or left unpopulated."""
        if self.default_factory is not None:
            return self.default_factory()
        if self.default is not MISSING:
            return self.default
        return None

    def __repr__(self) -> str:
        return f"FieldNode({self.owner.__name__}.{self.name}: {_type_name(self.declared_type)})"


@dataclass(frozen=True, eq=False)
class TypeNode:
    """Normalized schema of one type."""

    annotation: Any
    cls: type | None
    kind: TypeKind
    shape: ClassShape | None = None
    fields: tuple[FieldNode, ...] = ()
    element_types: tuple[Any, ...] = ()
    bindings: tuple[tuple[TypeVar, Any], ...] = ()
    variadic: bool = False
    literal_values: tuple[Any, ...] = ()
    optional: bool = False
    abstract: bool = False

    @property
    def is_composite(self) -> bool:
        return self.kind in COMPOSITE_KINDS

    @property
    def signature(self) -> Any:
        """Identity used to spot self-references in the ancestor chain."""
        return self.cls if not self.bindings else (self.cls, self.bindings)

    def field(self, name: str) -> FieldNode | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def empty_container(self) -> Any:
        if self.kind in (TypeKind.COLLECTION, TypeKind.MAPPING):
            return self.cls()
        if self.kind is TypeKind.TUPLE:
            return ()
        return None

    def __repr__(self) -> str:
        return f"TypeNode({_type_name(self.annotation)}, {self.kind.value})"


def _type_name(tp: Any) -> str:
    if isinstance(tp, type):
        return tp.__qualname__
    return repr(tp).replace("typing.", "")


# =============================================================================
# Provider protocol and default implementation
# =============================================================================


@runtime_checkable
class TypeMetadataProvider(Protocol):
    """Anything that can turn an annotation into a TypeNode."""

    def read(self, annotation: Any) -> TypeNode: ...


class TypeMetadataReader:
    """Default provider based on ``typing`` introspection.

    Thread-safe: reads are lock-free, writes go through a lock and keep the
    first node stored for a key (recomputation during a race is harmless
    because nodes are pure functions of the annotation).
    """

    def __init__(self) -> None:
        self._cache: dict[Any, TypeNode] = {}
        self._lock = threading.Lock()

    def read(self, annotation: Any) -> TypeNode:
        try:
            cached = self._cache.get(annotation)
        except TypeError:
            # Unhashable annotation (e.g. Annotated with unhashable metadata)
            return self._build(annotation)
        if cached is not None:
            return cached

        node = self._build(annotation)
        with self._lock:
            return self._cache.setdefault(annotation, node)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)

    # ── Building ──

    def _build(self, annotation: Any) -> TypeNode:
        if isinstance(annotation, str):
            raise UnresolvableType(annotation, "unresolved forward reference")

        origin = get_origin(annotation)
        args = get_args(annotation)

        if origin is Annotated:
            return self.read(args[0])

        if isinstance(annotation, typing.NewType):
            return self.read(annotation.__supertype__)

        if isinstance(annotation, TypeVar):
            if annotation.__bound__ is not None:
                return self.read(annotation.__bound__)
            if annotation.__constraints__:
                return self.read(annotation.__constraints__[0])
            raise UnresolvableType(annotation, "unbound type variable")

        if annotation is Any or annotation is object:
            raise UnresolvableType(annotation, "no concrete type to generate")

        if annotation is None:
            annotation = NoneType

        if origin is Union or origin is types.UnionType:
            return self._build_union(annotation, args)

        if origin is Literal:
            if not args:
                raise UnresolvableType(annotation, "empty Literal")
            return TypeNode(
                annotation=annotation,
                cls=type(args[0]),
                kind=TypeKind.LITERAL,
                literal_values=args,
            )

        if origin is ClassVar:
            raise UnresolvableType(annotation, "ClassVar is not a field type")

        if origin is not None:
            return self._build_generic(annotation, origin, args)

        if not isinstance(annotation, type):
            raise UnresolvableType(annotation, "not a class or supported type form")

        return self._build_class(annotation)

    def _build_union(self, annotation: Any, args: tuple[Any, ...]) -> TypeNode:
        members = tuple(a for a in args if a is not NoneType)
        optional = len(members) < len(args)
        if not members:
            return self.read(NoneType)
        if len(members) == 1:
            inner = self.read(members[0])
            return replace(inner, optional=optional)
        return TypeNode(
            annotation=annotation,
            cls=None,
            kind=TypeKind.UNION,
            element_types=members,
            optional=optional,
        )

    def _build_generic(self, annotation: Any, origin: Any, args: tuple[Any, ...]) -> TypeNode:
        if origin in _COLLECTION_ORIGINS:
            if not args:
                raise UnresolvableType(annotation, "collection without element type")
            return TypeNode(
                annotation=annotation,
                cls=_COLLECTION_ORIGINS[origin],
                kind=TypeKind.COLLECTION,
                element_types=(args[0],),
            )

        if origin in _MAPPING_ORIGINS:
            if len(args) != 2:
                raise UnresolvableType(annotation, "mapping without key/value types")
            return TypeNode(
                annotation=annotation,
                cls=_MAPPING_ORIGINS[origin],
                kind=TypeKind.MAPPING,
                element_types=args,
            )

        if origin is tuple:
            if not args or args == ((),):
                raise UnresolvableType(annotation, "tuple without member types")
            variadic = len(args) == 2 and args[1] is Ellipsis
            return TypeNode(
                annotation=annotation,
                cls=tuple,
                kind=TypeKind.TUPLE,
                element_types=args[:1] if variadic else args,
                variadic=variadic,
            )

        if origin is type or origin is collections.abc.Callable:
            raise UnresolvableType(annotation, "callables and class objects are not generated")

        if isinstance(origin, type):
            params = getattr(origin, "__parameters__", ())
            bindings = dict(zip(params, args))
            return self._build_class(origin, bindings, annotation=annotation)

        raise UnresolvableType(annotation, f"unsupported generic origin {origin!r}")

    def _build_class(
        self,
        cls: type,
        bindings: dict[TypeVar, Any] | None = None,
        annotation: Any = None,
    ) -> TypeNode:
        annotation = cls if annotation is None else annotation

        if cls in LEAF_TYPES:
            return TypeNode(annotation=annotation, cls=cls, kind=TypeKind.LEAF)

        if issubclass(cls, Enum):
            members = tuple(cls)
            if not members:
                raise UnresolvableType(cls, "enum has no members")
            return TypeNode(
                annotation=annotation,
                cls=cls,
                kind=TypeKind.ENUM,
                literal_values=members,
            )

        if cls in _COLLECTION_ORIGINS or cls in _MAPPING_ORIGINS or cls is tuple:
            raise UnresolvableType(cls, "container without element types")

        for leaf in LEAF_TYPES:
            # str/int subclasses etc. are generated as their base leaf
            if leaf is not NoneType and issubclass(cls, leaf) and not _is_named_tuple(cls):
                return TypeNode(annotation=annotation, cls=cls, kind=TypeKind.LEAF)

        resolved = _collect_bindings(cls, bindings or {})
        abstract = inspect.isabstract(cls) or bool(getattr(cls, "_is_protocol", False))
        shape = _shape_of(cls)
        fields = () if abstract else self._read_fields(cls, shape, resolved)

        logger.debug("Read %s: %d fields, shape=%s", _type_name(annotation), len(fields), shape.value)

        return TypeNode(
            annotation=annotation,
            cls=cls,
            kind=TypeKind.OBJECT,
            shape=shape,
            fields=fields,
            bindings=tuple(resolved.items()),
            abstract=abstract,
        )

    def _read_fields(
        self, cls: type, shape: ClassShape, bindings: dict[TypeVar, Any]
    ) -> tuple[FieldNode, ...]:
        if shape is ClassShape.PYDANTIC:
            return _pydantic_fields(cls, bindings)

        try:
            hints = get_type_hints(cls, include_extras=True)
        except (NameError, TypeError) as exc:
            raise UnresolvableType(cls, f"cannot resolve annotations: {exc}") from exc

        if shape is ClassShape.DATACLASS:
            names = [f.name for f in dataclasses.fields(cls)]
            defaults = {f.name: f for f in dataclasses.fields(cls)}
        elif shape is ClassShape.NAMED_TUPLE:
            names = list(cls._fields)
            defaults = {}
        else:
            names = [n for n, h in hints.items() if get_origin(h) is not ClassVar]
            defaults = {}
            if not names:
                hints, names = _init_hints(cls)

        fields = []
        for name in names:
            hint = hints.get(name)
            if hint is None:
                raise UnresolvableType(cls, f"field '{name}' has no annotation")
            declared, metadata = _split_annotated(_substitute(hint, bindings))
            default: Any = MISSING
            factory = None
            if shape is ClassShape.DATACLASS:
                dc_field = defaults[name]
                if dc_field.default is not dataclasses.MISSING:
                    default = dc_field.default
                if dc_field.default_factory is not dataclasses.MISSING:
                    factory = dc_field.default_factory
            elif shape is ClassShape.NAMED_TUPLE:
                default = cls._field_defaults.get(name, MISSING)
            elif shape is ClassShape.PLAIN:
                attr = inspect.getattr_static(cls, name, MISSING)
                if attr is not MISSING and not _is_descriptor(attr):
                    default = attr
            fields.append(
                FieldNode(
                    name=name,
                    declared_type=declared,
                    owner=_declaring_class(cls, name),
                    default=default,
                    default_factory=factory,
                    metadata=metadata,
                )
            )
        return tuple(fields)


# =============================================================================
# Helpers
# =============================================================================


def _is_named_tuple(cls: type) -> bool:
    return issubclass(cls, tuple) and hasattr(cls, "_fields")


def _shape_of(cls: type) -> ClassShape:
    if issubclass(cls, BaseModel):
        return ClassShape.PYDANTIC
    if dataclasses.is_dataclass(cls):
        return ClassShape.DATACLASS
    if is_typeddict(cls):
        return ClassShape.TYPED_DICT
    if _is_named_tuple(cls):
        return ClassShape.NAMED_TUPLE
    return ClassShape.PLAIN


def _is_descriptor(attr: Any) -> bool:
    return (
        hasattr(attr, "__get__")
        or isinstance(attr, (staticmethod, classmethod, property))
        or callable(attr)
    )


def _declaring_class(cls: type, name: str) -> type:
    for klass in cls.__mro__:
        try:
            own = inspect.get_annotations(klass)
        except NameError:
            continue
        if name in own:
            return klass
    return cls


def _split_annotated(hint: Any) -> tuple[Any, tuple[Any, ...]]:
    if get_origin(hint) in _TYPED_DICT_QUALIFIERS:
        hint = get_args(hint)[0]
    if get_origin(hint) is Annotated:
        args = get_args(hint)
        return args[0], tuple(hint.__metadata__)
    return hint, ()


def _init_hints(cls: type) -> tuple[dict[str, Any], list[str]]:
    """Fallback for classes that only annotate their ``__init__`` parameters."""
    try:
        hints = get_type_hints(cls.__init__, include_extras=True)
    except (NameError, TypeError, AttributeError):
        return {}, []
    hints.pop("return", None)
    try:
        params = inspect.signature(cls.__init__).parameters
    except (TypeError, ValueError):
        return {}, []
    names = [n for n in params if n != "self" and n in hints]
    return hints, names


def _collect_bindings(cls: type, bindings: dict[TypeVar, Any]) -> dict[TypeVar, Any]:
    """Resolve type variables bound through parameterized base classes."""
    result = dict(bindings)
    for klass in cls.__mro__:
        for base in getattr(klass, "__orig_bases__", ()):
            origin = get_origin(base)
            if origin is None or origin is typing.Generic:
                continue
            params = getattr(origin, "__parameters__", ())
            for param, arg in zip(params, get_args(base)):
                result.setdefault(param, _substitute(arg, result))
    return result


def _substitute(tp: Any, bindings: dict[TypeVar, Any]) -> Any:
    """Replace type variables in ``tp`` with their bound types."""
    if not bindings:
        return tp
    if isinstance(tp, TypeVar):
        return bindings.get(tp, tp)
    params = getattr(tp, "__parameters__", ())
    if params:
        try:
            return tp[tuple(bindings.get(p, p) for p in params)]
        except TypeError:
            return tp
    return tp


def _pydantic_fields(cls: type[BaseModel], bindings: dict[TypeVar, Any]) -> tuple[FieldNode, ...]:
    fields = []
    for name, info in cls.model_fields.items():
        default = MISSING if info.default is PydanticUndefined else info.default
        factory = info.default_factory
        fields.append(
            FieldNode(
                name=name,
                declared_type=_substitute(info.annotation, bindings),
                owner=_declaring_class(cls, name),
                default=default,
                default_factory=factory,
                metadata=tuple(info.metadata),
            )
        )
    return tuple(fields)


# =============================================================================
# Shared default reader
# =============================================================================

_default_reader = TypeMetadataReader()


def default_reader() -> TypeMetadataReader:
    return _default_reader


def read_type(annotation: Any) -> TypeNode:
    """Read an annotation with the process-wide cached reader."""
    return _default_reader.read(annotation)
