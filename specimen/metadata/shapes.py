"""Kinds of type nodes and how instances of each object shape are built."""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class TypeKind(str, Enum):
    LEAF = "leaf"
    ENUM = "enum"
    LITERAL = "literal"
    UNION = "union"
    OBJECT = "object"
    COLLECTION = "collection"
    MAPPING = "mapping"
    TUPLE = "tuple"


COMPOSITE_KINDS = frozenset(
    {TypeKind.OBJECT, TypeKind.COLLECTION, TypeKind.MAPPING, TypeKind.TUPLE}
)


class ClassShape(str, Enum):
    DATACLASS = "dataclass"
    PYDANTIC = "pydantic"
    TYPED_DICT = "typed_dict"
    NAMED_TUPLE = "named_tuple"
    PLAIN = "plain"


class _Missing:
    """Sentinel for "no default declared"."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


def construct(cls: type, shape: ClassShape, values: dict[str, Any]) -> Any:
    """Build an instance from already-generated field values.

    Constructors and validators are bypassed where the shape allows it, so
    random data never trips ``__post_init__`` or pydantic validation.
    """
    if shape is ClassShape.PYDANTIC:
        return cls.model_construct(**values)
    if shape is ClassShape.TYPED_DICT:
        return dict(values)
    if shape is ClassShape.NAMED_TUPLE:
        return cls(**values)

    instance = cls.__new__(cls)
    for name, value in values.items():
        object.__setattr__(instance, name, value)
    return instance


@dataclass(frozen=True, eq=False)
class Slot:
    """Where a generated value lives: an attribute or an item of its owner."""

    owner: Any
    key: Any
    item: bool = False

    def read(self) -> Any:
        if self.item:
            return self.owner[self.key]
        return getattr(self.owner, self.key)

    def write(self, value: Any) -> None:
        if self.item:
            self.owner[self.key] = value
        elif isinstance(self.owner, tuple):
            raise TypeError(
                f"Cannot assign {type(self.owner).__name__}.{self.key}: "
                "named tuples are immutable"
            )
        else:
            object.__setattr__(self.owner, self.key, value)

    @property
    def writable(self) -> bool:
        if self.item:
            return isinstance(self.owner, (list, dict))
        return not isinstance(self.owner, tuple)


def field_slot(owner: Any, shape: ClassShape, name: str) -> Slot:
    return Slot(owner, name, item=shape is ClassShape.TYPED_DICT)
