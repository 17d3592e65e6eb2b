"""Selector values and the matching rules of the selector engine.

A selector is an immutable description of a set of positions in the object
graph. Narrowing (``at_depth``, ``within``) returns a new selector whose
constraints are conjunctive with the base match.
"""

import re
import types
from dataclasses import dataclass, field, replace
from enum import IntEnum
from typing import Any, Callable, ClassVar, Union, get_args, get_origin

from ..metadata.reader import FieldNode
from .context import Position

DepthRule = Union[int, Callable[[int], bool], None]


class SelectorTier(IntEnum):
    """Precedence tiers, highest wins."""

    EXTERNAL = 0
    GROUP = 1
    TYPE_PREDICATE = 2
    FIELD_PREDICATE = 3
    TYPE = 4
    FIELD = 5


# =============================================================================
# Base
# =============================================================================


@dataclass(frozen=True)
class Selector:
    """Base for all narrowable selectors."""

    depth: DepthRule = field(default=None, kw_only=True)
    scopes: tuple["Scope", ...] = field(default=(), kw_only=True)

    tier: ClassVar[SelectorTier]

    def matches(self, position: Position) -> bool:
        return (
            self.matches_target(position)
            and self._depth_ok(position.depth)
            and self._scopes_ok(position)
        )

    def matches_target(self, position: Position) -> bool:
        raise NotImplementedError

    @property
    def narrowing(self) -> int:
        """How many narrowing constraints are attached."""
        return (self.depth is not None) + len(self.scopes)

    def at_depth(self, depth: int | Callable[[int], bool]) -> "Selector":
        if isinstance(depth, int) and depth < 0:
            raise ValueError(f"Depth must be non-negative, got {depth}")
        return replace(self, depth=depth)

    def within(self, *scopes: "Scope | Selector") -> "Selector":
        """Require the position to sit below each scope, outermost first."""
        converted = tuple(s if isinstance(s, Scope) else s.to_scope() for s in scopes)
        return replace(self, scopes=self.scopes + converted)

    def to_scope(self) -> "Scope":
        return Scope(self)

    def _depth_ok(self, depth: int) -> bool:
        if self.depth is None:
            return True
        if isinstance(self.depth, int):
            return depth == self.depth
        return bool(self.depth(depth))

    def _scopes_ok(self, position: Position) -> bool:
        if not self.scopes:
            return True
        remaining = list(self.scopes)
        for ancestor in position.path()[:-1]:
            if remaining[0].selector.matches(ancestor):
                remaining.pop(0)
                if not remaining:
                    return True
        return False

    def _target_repr(self) -> str:
        raise NotImplementedError

    def __repr__(self) -> str:
        text = self._target_repr()
        if self.depth is not None:
            rule = self.depth if isinstance(self.depth, int) else _callable_name(self.depth)
            text += f".at_depth({rule})"
        if self.scopes:
            text += ".within(" + ", ".join(repr(s) for s in self.scopes) + ")"
        return text


@dataclass(frozen=True, repr=False)
class Scope:
    """Ancestor constraint used by ``Selector.within``."""

    selector: Selector

    def __repr__(self) -> str:
        return f"scope({self.selector!r})"


# =============================================================================
# Variants
# =============================================================================


@dataclass(frozen=True, repr=False)
class FieldSelector(Selector):
    """Matches one declared field. ``owner=None`` means the root type."""

    owner: type | None
    name: str

    tier: ClassVar[SelectorTier] = SelectorTier.FIELD

    def matches_target(self, position: Position) -> bool:
        if position.field is None or position.field.name != self.name:
            return False
        if self.owner is None:
            return position.parent is not None and position.parent.parent is None
        if position.field.owner is self.owner:
            return True
        return position.parent is not None and position.parent.cls is self.owner

    def bind(self, root: type | None) -> "FieldSelector":
        if self.owner is not None or root is None:
            return self
        return replace(self, owner=root)

    def _target_repr(self) -> str:
        if self.owner is None:
            return f"field({self.name!r})"
        return f"field({self.owner.__name__}, {self.name!r})"


@dataclass(frozen=True, repr=False)
class TypeSelector(Selector):
    """Matches positions whose effective type is exactly ``target``."""

    target: Any

    tier: ClassVar[SelectorTier] = SelectorTier.TYPE

    def matches_target(self, position: Position) -> bool:
        if isinstance(self.target, type) and get_origin(self.target) is None:
            return position.cls is self.target
        return position.node.annotation == self.target

    def _target_repr(self) -> str:
        return f"all_of({_type_repr(self.target)})"


@dataclass(frozen=True, repr=False)
class FieldPredicateSelector(Selector):
    """Matches fields satisfying every condition."""

    conditions: tuple[Callable[[FieldNode], bool], ...] = ()

    tier: ClassVar[SelectorTier] = SelectorTier.FIELD_PREDICATE

    def matches_target(self, position: Position) -> bool:
        if position.field is None:
            return False
        return all(condition(position.field) for condition in self.conditions)

    def named(self, name: str) -> "FieldPredicateSelector":
        return self._and(NameIs(name))

    def matching(self, pattern: str) -> "FieldPredicateSelector":
        return self._and(NameMatches(pattern))

    def of_type(self, tp: Any) -> "FieldPredicateSelector":
        return self._and(DeclaredTypeIs(tp))

    def declared_in(self, owner: type) -> "FieldPredicateSelector":
        return self._and(DeclaredIn(owner))

    def annotated(self, metadata_type: type) -> "FieldPredicateSelector":
        return self._and(HasMetadata(metadata_type))

    def _and(self, condition: Callable[[FieldNode], bool]) -> "FieldPredicateSelector":
        return replace(self, conditions=self.conditions + (condition,))

    def _target_repr(self) -> str:
        return "fields(" + " & ".join(_callable_name(c) for c in self.conditions) + ")"


@dataclass(frozen=True, repr=False)
class TypePredicateSelector(Selector):
    """Matches positions whose runtime class satisfies every condition."""

    conditions: tuple[Callable[[type], bool], ...] = ()

    tier: ClassVar[SelectorTier] = SelectorTier.TYPE_PREDICATE

    def matches_target(self, position: Position) -> bool:
        cls = position.cls
        if cls is None:
            return False
        return all(condition(cls) for condition in self.conditions)

    def of(self, base: type) -> "TypePredicateSelector":
        return self._and(SubclassOf(base))

    def excluding(self, *excluded: type) -> "TypePredicateSelector":
        return self._and(Excluding(excluded))

    def _and(self, condition: Callable[[type], bool]) -> "TypePredicateSelector":
        return replace(self, conditions=self.conditions + (condition,))

    def _target_repr(self) -> str:
        return "types(" + " & ".join(_callable_name(c) for c in self.conditions) + ")"


@dataclass(frozen=True, repr=False)
class RootSelector(Selector):
    """Matches the root position only."""

    tier: ClassVar[SelectorTier] = SelectorTier.FIELD

    def matches_target(self, position: Position) -> bool:
        return position.parent is None

    def _target_repr(self) -> str:
        return "root()"


@dataclass(frozen=True)
class SelectorGroup:
    """Logical OR of selectors; cannot be narrowed."""

    selectors: tuple[Selector, ...]

    tier: ClassVar[SelectorTier] = SelectorTier.GROUP
    narrowing: ClassVar[int] = 0

    def matches(self, position: Position) -> bool:
        return any(s.matches(position) for s in self.selectors)

    def __iter__(self):
        return iter(self.selectors)

    def __repr__(self) -> str:
        return "any_of(" + ", ".join(repr(s) for s in self.selectors) + ")"


AnySelector = Union[Selector, SelectorGroup]


# =============================================================================
# Conditions used by the predicate builders
# =============================================================================


@dataclass(frozen=True)
class NameIs:
    name: str

    def __call__(self, f: FieldNode) -> bool:
        return f.name == self.name


@dataclass(frozen=True)
class NameMatches:
    pattern: str

    def __call__(self, f: FieldNode) -> bool:
        return re.fullmatch(self.pattern, f.name) is not None


@dataclass(frozen=True)
class DeclaredTypeIs:
    """Declared type equality, looking through ``Optional``."""

    tp: Any

    def __call__(self, f: FieldNode) -> bool:
        declared = f.declared_type
        if declared == self.tp:
            return True
        if get_origin(declared) in (Union, types.UnionType):
            members = [a for a in get_args(declared) if a is not type(None)]
            return len(members) == 1 and members[0] == self.tp
        return False


@dataclass(frozen=True)
class DeclaredIn:
    owner: type

    def __call__(self, f: FieldNode) -> bool:
        return f.owner is self.owner


@dataclass(frozen=True)
class HasMetadata:
    metadata_type: type

    def __call__(self, f: FieldNode) -> bool:
        return any(isinstance(m, self.metadata_type) for m in f.metadata)


@dataclass(frozen=True)
class SubclassOf:
    base: type

    def __call__(self, cls: type) -> bool:
        return issubclass(cls, self.base)


@dataclass(frozen=True)
class Excluding:
    excluded: tuple[type, ...]

    def __call__(self, cls: type) -> bool:
        return cls not in self.excluded


def _callable_name(fn: Any) -> str:
    if isinstance(fn, (NameIs, NameMatches, DeclaredTypeIs, DeclaredIn, HasMetadata, SubclassOf, Excluding)):
        return repr(fn)
    return getattr(fn, "__name__", repr(fn))


def _type_repr(tp: Any) -> str:
    if isinstance(tp, type):
        return tp.__name__
    return repr(tp).replace("typing.", "")
