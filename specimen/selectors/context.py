"""Traversal state: where the population engine currently is in the graph."""

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator

from ..config import SettingsValues
from ..errors import SpecimenError
from ..metadata.reader import FieldNode, TypeMetadataProvider, TypeNode
from ..metadata.shapes import Slot
from ..randomness import RandomSource


@dataclass(frozen=True, eq=False)
class Position:
    """One frame of the traversal.

    Positions are immutable; descending creates a child whose ``parent`` is
    the current frame, so a recorded position keeps its full ancestor chain.
    """

    node: TypeNode
    field: FieldNode | None = None
    depth: int = 0
    parent: "Position | None" = None
    index: Any = None

    @property
    def cls(self) -> type | None:
        return self.node.cls

    @property
    def root(self) -> "Position":
        position = self
        while position.parent is not None:
            position = position.parent
        return position

    def ancestors(self) -> Iterator["Position"]:
        """Strict ancestors, nearest first."""
        position = self.parent
        while position is not None:
            yield position
            position = position.parent

    def path(self) -> tuple["Position", ...]:
        """Root-first chain ending with this position."""
        return tuple(reversed([self, *self.ancestors()]))

    def is_within(self, other: "Position") -> bool:
        """True when ``other`` is this position or one of its ancestors."""
        return self is other or any(a is other for a in self.ancestors())

    def child(self, node: TypeNode, field: FieldNode | None = None, index: Any = None) -> "Position":
        return Position(node=node, field=field, depth=self.depth + 1, parent=self, index=index)

    def self_references(self) -> int:
        """How many ancestors share this position's type signature."""
        signature = self.node.signature
        return sum(1 for a in self.ancestors() if a.node.signature == signature)

    def describe(self) -> str:
        parts = []
        for position in self.path():
            if position.parent is None:
                parts.append(getattr(position.cls, "__name__", repr(position.node.annotation)))
            elif position.field is not None:
                parts.append(f".{position.field.name}")
            else:
                parts.append(f"[{position.index!r}]")
        return "".join(parts)

    def __repr__(self) -> str:
        return f"Position({self.describe()}, depth={self.depth})"


@dataclass(eq=False)
class GeneratedValue:
    """A populated position and where its value was stored."""

    position: Position
    value: Any
    slot: Slot | None = None

    def current(self) -> Any:
        """Value as it is now (assignments may have replaced it)."""
        if self.slot is not None:
            try:
                return self.slot.read()
            except (AttributeError, KeyError, IndexError):
                return self.value
        return self.value


@dataclass(eq=False)
class TraversalContext:
    """Per-root mutable state of one population pass."""

    root_type: Any
    settings: SettingsValues
    random: RandomSource
    reader: TypeMetadataProvider
    current: Position | None = None
    records: list[GeneratedValue] = field(default_factory=list)
    callbacks: deque[tuple[Callable[[Any], Any], Any]] = field(default_factory=deque)

    def enter(self, node: TypeNode, field: FieldNode | None = None, index: Any = None) -> Position:
        if self.current is None:
            self.current = Position(node=node, field=field, depth=0, index=index)
        else:
            self.current = self.current.child(node, field=field, index=index)
        return self.current

    def replace_current(self, node: TypeNode) -> Position:
        """Swap the current frame's node (subtype substitution) keeping its place."""
        position = self.current
        if position is None:
            raise SpecimenError("No position to replace outside a traversal")
        self.current = Position(
            node=node,
            field=position.field,
            depth=position.depth,
            parent=position.parent,
            index=position.index,
        )
        return self.current

    def leave(self) -> None:
        if self.current is None:
            raise SpecimenError("leave() called outside a traversal")
        self.current = self.current.parent

    def record(self, position: Position, value: Any, slot: Slot | None = None) -> GeneratedValue:
        entry = GeneratedValue(position=position, value=value, slot=slot)
        self.records.append(entry)
        return entry

    def checkpoint(self) -> tuple[int, int]:
        """Mark to roll records and queued callbacks back to."""
        return len(self.records), len(self.callbacks)

    def rollback(self, mark: tuple[int, int]) -> None:
        """Forget everything recorded or queued since ``mark``."""
        records, callbacks = mark
        del self.records[records:]
        while len(self.callbacks) > callbacks:
            self.callbacks.pop()

    def defer(self, callback: Callable[[Any], Any], value: Any) -> None:
        self.callbacks.append((callback, value))

    def drain_callbacks(self) -> None:
        """Run queued callbacks in completion order (children before parents)."""
        while self.callbacks:
            callback, value = self.callbacks.popleft()
            callback(value)
