"""Assignment resolver.

Assignments derive a target position's value from a source position's value
after base population. Dependencies between assignments (one writes what
another reads) are ordered with a topological sort; cycles are rejected.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Literal, Sequence

import networkx as nx

from ..errors import CyclicAssignment, SpecimenError
from ..generators.specs import GeneratorContext
from ..selectors.context import GeneratedValue, Position, TraversalContext
from ..selectors.selector import AnySelector

logger = logging.getLogger(__name__)

BranchKind = Literal["set", "generate", "apply"]


def _always(_: Any) -> bool:
    return True


def _identity(value: Any) -> Any:
    return value


@dataclass(frozen=True, eq=False)
class Branch:
    """``predicate(source) -> value`` arm of an assignment."""

    predicate: Callable[[Any], bool]
    kind: BranchKind
    value: Any

    def derive(self, source_value: Any, context: GeneratorContext) -> Any:
        if self.kind == "set":
            return self.value
        if self.kind == "generate":
            return self.value.generate(context)
        return self.value(source_value)


@dataclass(frozen=True, eq=False)
class Assignment:
    source: AnySelector
    target: AnySelector
    branches: tuple[Branch, ...] = ()
    default: Branch | None = None
    index: int = 0

    @classmethod
    def copy(cls, source: AnySelector, target: AnySelector, fn: Callable[[Any], Any] = _identity) -> "Assignment":
        """Unconditional derivation; identity makes a plain copy."""
        return cls(source, target, branches=(Branch(_always, "apply", fn),))

    def choose(self, source_value: Any) -> Branch | None:
        for branch in self.branches:
            if branch.predicate(source_value):
                return branch
        return self.default

    def __repr__(self) -> str:
        return f"assign({self.source!r} -> {self.target!r})"


# =============================================================================
# Static check
# =============================================================================


def check_static_cycles(assignments: Sequence[Assignment]) -> None:
    """Reject assignments whose selectors form a cycle (target feeds a source)."""
    graph = nx.DiGraph()
    graph.add_nodes_from(range(len(assignments)))
    for i, writer in enumerate(assignments):
        for j, reader in enumerate(assignments):
            if i != j and writer.target == reader.source:
                graph.add_edge(i, j)
    _raise_on_cycle(graph, assignments, seed=None)


def _raise_on_cycle(graph: nx.DiGraph, assignments: Sequence[Assignment], seed: int | None) -> None:
    try:
        edges = nx.find_cycle(graph)
    except nx.NetworkXNoCycle:
        return
    chain = [assignments[u].target for u, _ in edges]
    chain.append(chain[0])
    raise CyclicAssignment(chain, seed=seed)


# =============================================================================
# Resolution
# =============================================================================


@dataclass
class _Bound:
    assignment: Assignment
    sources: list[GeneratedValue] = field(default_factory=list)
    targets: list[GeneratedValue] = field(default_factory=list)


class AssignmentResolver:
    """Applies assignments to the populated roots of one run."""

    def __init__(self, assignments: Sequence[Assignment], seed: int, state: dict[int, Any] | None = None):
        self.assignments = list(assignments)
        self.seed = seed
        self._state = state if state is not None else {}
        self._used: set[int] = set()

    def resolve(self, ctx: TraversalContext) -> None:
        if not self.assignments:
            return
        bound = [self._bind(a, ctx.records) for a in self.assignments]
        for b in bound:
            if b.sources and b.targets:
                self._used.add(id(b.assignment))

        # One memo per root
        memo: dict[tuple[Assignment, GeneratedValue], list[tuple[Any, Any]]] = {}
        for i in self._order(bound):
            self._apply(bound[i], ctx, memo)

    def unused(self) -> list[Assignment]:
        return [a for a in self.assignments if id(a) not in self._used]

    def _bind(self, assignment: Assignment, records: list[GeneratedValue]) -> _Bound:
        b = _Bound(assignment)
        for record in records:
            if assignment.source.matches(record.position):
                b.sources.append(record)
            if assignment.target.matches(record.position):
                b.targets.append(record)
        return b

    def _order(self, bound: list[_Bound]) -> list[int]:
        graph = nx.DiGraph()
        graph.add_nodes_from(range(len(bound)))
        for i, writer in enumerate(bound):
            for j, reader in enumerate(bound):
                if i != j and _writes_into(writer.targets, reader.sources):
                    graph.add_edge(i, j)
        _raise_on_cycle(graph, self.assignments, seed=self.seed)
        return list(nx.lexicographical_topological_sort(graph))

    def _apply(self, b: _Bound, ctx: TraversalContext, memo: dict) -> None:
        for target in b.targets:
            source = _closest(target.position, b.sources)
            if source is None:
                continue
            source_value = source.current()
            branch = b.assignment.choose(source_value)
            if branch is None:
                continue
            value = self._derive(b.assignment, branch, target, source_value, ctx, memo)
            if target.slot is None:
                raise SpecimenError(
                    f"Cannot assign {target.position.describe()}: the value has no writable owner",
                    seed=self.seed,
                )
            try:
                target.slot.write(value)
            except TypeError as exc:
                raise SpecimenError(f"Cannot assign {target.position.describe()}: {exc}", seed=self.seed) from exc
            target.value = value
            logger.debug("Assigned %s from %s", target.position.describe(), source.position.describe())

    def _derive(
        self,
        assignment: Assignment,
        branch: Branch,
        target: GeneratedValue,
        source_value: Any,
        ctx: TraversalContext,
        memo: dict,
    ) -> Any:
        """Derive a value, returning the earlier result for a repeated source value."""
        seen = memo.setdefault((assignment, target), [])
        for seen_source, seen_result in seen:
            if seen_source is source_value or seen_source == source_value:
                return seen_result
        context = GeneratorContext(
            random=ctx.random,
            settings=ctx.settings,
            field=target.position.field,
            target=target.position.cls,
            state=self._state,
        )
        result = branch.derive(source_value, context)
        seen.append((source_value, result))
        return result


def _writes_into(targets: list[GeneratedValue], sources: list[GeneratedValue]) -> bool:
    return any(t.position.is_within(s.position) for t in targets for s in sources)


def _closest(target: Position, sources: list[GeneratedValue]) -> GeneratedValue | None:
    """Source sharing the longest ancestor chain with ``target``."""
    best: GeneratedValue | None = None
    best_score = -1
    target_path = target.path()
    for source in sources:
        score = 0
        for a, b in zip(target_path, source.position.path()):
            if a is not b:
                break
            score += 1
        if score > best_score:
            best, best_score = source, score
    return best
