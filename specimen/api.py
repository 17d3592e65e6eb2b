"""Model composer: the fluent API for describing and running generations.

Examples:
    person = specimen.create(Person)

    people = (
        specimen.of_list(Person)
        .size(3)
        .set(field(Person, "country"), "NZ")
        .generate(field(Person, "age"), gen.ints().range(18, 65))
        .ignore(field(Person, "id"))
        .with_seed(42)
        .create()
    )

    model = specimen.of(Person).set(field("name"), "Ann").to_model()
    batch = specimen.instantiate(model, count=10, seed=7)
"""

import inspect
import itertools
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, replace
from typing import Any, Callable, Generic, Iterator, Sequence, TypeVar

from .config import Keys, Settings, SettingsValues, resolve_settings
from .constraints import default_provider
from .errors import SpecimenError, UnusedSelectorError
from .feed.binder import FeedBinder, FeedBinding
from .feed.feed import Feed
from .generators import gen as gen_module
from .generators.registry import default_registry
from .generators.specs import CollectionSpec, GeneratorSpec, MapSpec
from .metadata.reader import default_reader, read_type
from .metadata.shapes import TypeKind
from .population.assignment import Assignment, AssignmentResolver, check_static_cycles
from .population.customizations import Action, Customization, CustomizationPlan
from .population.engine import PopulationEngine, RunState
from .randomness import RandomSource, random_seed
from .selectors.select import check_field
from .selectors.selector import AnySelector, FieldSelector, RootSelector, Scope, Selector, SelectorGroup

logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================================
# Immutable model and results
# =============================================================================


@dataclass(frozen=True)
class Model(Generic[T]):
    """Immutable, reusable generation template."""

    root_type: Any
    customizations: tuple[Customization, ...] = ()
    assignments: tuple[Assignment, ...] = ()
    settings: Settings | None = None
    seed: int | None = None
    lenient: bool = False
    layers: int = 1

    def __repr__(self) -> str:
        return (
            f"Model({_type_name(self.root_type)}, customizations={len(self.customizations)}, "
            f"assignments={len(self.assignments)}, layers={self.layers})"
        )


@dataclass(frozen=True)
class Result(Generic[T]):
    """A generated value and the seed that reproduces it."""

    value: T
    seed: int


def _type_name(tp: Any) -> str:
    return tp.__name__ if isinstance(tp, type) else repr(tp).replace("typing.", "")


# =============================================================================
# Generation run
# =============================================================================


class GenerationRun:
    """One invocation: a seed, a settings snapshot, and the roots it produces.

    Each root gets its own traversal context and a seed derived from the run
    seed; unique trackers, emit cursors and feed cursors span all roots.
    """

    def __init__(self, model: Model, seed: int | None = None):
        self.model = model
        self.settings: SettingsValues = resolve_settings(model.settings)
        self.seed = _pick_seed(seed, model.seed, self.settings.seed)
        self.random = RandomSource(self.seed)
        self.plan = CustomizationPlan(model.customizations)
        self.state = RunState(
            plan=self.plan,
            settings=self.settings,
            registry=default_registry(),
            reader=default_reader(),
            seed=self.seed,
            constraints=default_provider() if self.settings.constraints_enabled else None,
        )
        self.engine = PopulationEngine(self.state)
        self.binder = FeedBinder(self.plan, self.settings.feed_exhaustion, self.seed)
        self.resolver = AssignmentResolver(model.assignments, self.seed, self.state.generator_state)
        self.count = 0

    def next(self) -> Any:
        """Populate one root, then bind feeds, apply assignments and run callbacks."""
        try:
            value, ctx = self.engine.populate_root(self.model.root_type, self.random.child())
            self.binder.bind(ctx)
            self.resolver.resolve(ctx)
            ctx.drain_callbacks()
        except SpecimenError as exc:
            if exc.seed is None:
                exc.seed = self.seed
            raise
        self.count += 1
        return value

    def batch(self, count: int) -> list[Any]:
        values = [self.next() for _ in range(count)]
        logger.debug(
            "Generated %d x %s (seed=%d)", count, _type_name(self.model.root_type), self.seed
        )
        self.report_unused()
        return values

    def unused(self) -> list[Any]:
        """Customizations and assignments that matched no position so far."""
        return [*self.plan.unused(), *self.resolver.unused()]

    def report_unused(self) -> None:
        _report_unused(
            [getattr(u, "selector", u) for u in self.unused()],
            self.settings,
            self.seed,
            self.model.lenient,
        )


def _report_unused(selectors: Sequence[Any], settings: SettingsValues, seed: int, lenient: bool) -> None:
    if not selectors or lenient:
        return
    if settings.fail_on_unused_selectors:
        raise UnusedSelectorError(list(selectors), seed=seed)
    for selector in selectors:
        logger.warning("Unused selector %r (seed=%d)", selector, seed)


def _pick_seed(explicit: int | None, model_seed: int | None, settings_seed: int | None) -> int:
    seed = next((s for s in (explicit, model_seed, settings_seed) if s is not None), None)
    if seed is None:
        source = _seed_source.get()
        seed = source.derive_seed() if source is not None else random_seed()
    log = _seed_log.get()
    if log is not None:
        log.append(seed)
    return seed


# =============================================================================
# Test-scoped seeding
# =============================================================================

_seed_source: ContextVar[RandomSource | None] = ContextVar("specimen_seed_source", default=None)
_seed_log: ContextVar[list[int] | None] = ContextVar("specimen_seed_log", default=None)


@contextmanager
def seeded(seed: int) -> Iterator[RandomSource]:
    """Derive the seed of every unseeded run in the block from ``seed``.

    Successive runs get different, reproducible seeds.
    """
    source = RandomSource(seed)
    token = _seed_source.set(source)
    try:
        yield source
    finally:
        _seed_source.reset(token)


@contextmanager
def record_seeds() -> Iterator[list[int]]:
    """Collect the seed of every run started in the block."""
    seeds: list[int] = []
    token = _seed_log.set(seeds)
    try:
        yield seeds
    finally:
        _seed_log.reset(token)


def instantiate(model: Model[T], count: int = 1, seed: int | None = None) -> list[T]:
    """Generate ``count`` instances from ``model``."""
    if count < 0:
        raise ValueError(f"count must be non-negative, got {count}")
    return GenerationRun(model, seed).batch(count)


# =============================================================================
# Blueprint (mutable layer over a model)
# =============================================================================


class Blueprint(Generic[T]):
    """Fluent builder of a generation model.

    ``Blueprint(model)`` opens a new layer: entries added here are appended
    after the model's, which is never modified.
    """

    def __init__(self, root: Any):
        if isinstance(root, Model):
            self._base: Model = root
            self._root_type = root.root_type
        else:
            self._base = Model(root_type=root, layers=0)
            self._root_type = root
        self._customizations: list[Customization] = []
        self._assignments: list[Assignment] = []
        self._settings: Settings | None = None
        self._seed: int | None = None
        self._lenient = self._base.lenient
        self._root_class = _root_class(self._root_type)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({_type_name(self._root_type)})"

    # ── Customizations ──

    def set(self, selector: AnySelector, value: Any) -> "Blueprint[T]":
        return self._add(selector, Action.SET, value)

    def supply(self, selector: AnySelector, supplier: Callable[..., Any]) -> "Blueprint[T]":
        """Value from ``supplier(random)`` or ``supplier()``, used as is."""
        return self._add(selector, Action.SUPPLY, _random_arg(supplier))

    def generate(
        self,
        selector: AnySelector,
        spec: GeneratorSpec | Callable[[Any], GeneratorSpec],
    ) -> "Blueprint[T]":
        """Generate with a spec, or ``lambda gen: gen.ints().range(1, 9)``."""
        if not isinstance(spec, GeneratorSpec):
            if not callable(spec):
                raise TypeError(f"generate() expects a generator spec, got {spec!r}")
            spec = spec(gen_module)
            if not isinstance(spec, GeneratorSpec):
                raise TypeError(f"generate() callable must return a generator spec, got {spec!r}")
        return self._add(selector, Action.GENERATE, spec)

    def ignore(self, selector: AnySelector) -> "Blueprint[T]":
        return self._add(selector, Action.IGNORE)

    def subtype(self, selector: AnySelector, subtype: Any) -> "Blueprint[T]":
        return self._add(selector, Action.SUBTYPE, subtype)

    def set_blank(self, selector: AnySelector) -> "Blueprint[T]":
        return self._add(selector, Action.BLANK)

    def with_nullable(self, selector: AnySelector) -> "Blueprint[T]":
        return self._add(selector, Action.NULLABLE)

    def with_unique(self, selector: AnySelector) -> "Blueprint[T]":
        return self._add(selector, Action.UNIQUE)

    def on_complete(self, selector: AnySelector, callback: Callable[[Any], Any]) -> "Blueprint[T]":
        return self._add(selector, Action.ON_COMPLETE, callback)

    def filter(self, selector: AnySelector, predicate: Callable[[Any], bool]) -> "Blueprint[T]":
        return self._add(selector, Action.FILTER, predicate)

    def apply_feed(self, selector: AnySelector, feed: Feed, key: str | None = None) -> "Blueprint[T]":
        """Bind successive feed rows (or rows matching ``key``) to matched instances."""
        return self._add(selector, Action.FEED, FeedBinding(feed, key))

    def assign(self, *assignments: Any) -> "Blueprint[T]":
        """Add assignments built with ``assign.value_of`` or ``assign.given``."""
        for item in assignments:
            built = [item] if isinstance(item, Assignment) else item.build()
            for a in built:
                index = len(self._base.assignments) + len(self._assignments)
                self._assignments.append(
                    replace(a, source=self._bind(a.source), target=self._bind(a.target), index=index)
                )
        check_static_cycles([*self._base.assignments, *self._assignments])
        return self

    # ── Settings and seed ──

    def with_settings(self, settings: Settings | dict[str, Any]) -> "Blueprint[T]":
        if isinstance(settings, dict):
            settings = Settings(settings)
        self._settings = settings if self._settings is None else self._settings.merge(settings)
        return self

    def with_setting(self, key: str, value: Any) -> "Blueprint[T]":
        return self.with_settings(Settings({key: value}))

    def with_max_depth(self, depth: int) -> "Blueprint[T]":
        return self.with_setting(Keys.MAX_DEPTH, depth)

    def with_seed(self, seed: int) -> "Blueprint[T]":
        self._seed = seed
        return self

    def lenient(self) -> "Blueprint[T]":
        """Do not report selectors that match nothing."""
        self._lenient = True
        return self

    # ── Terminal operations ──

    def to_model(self) -> Model[T]:
        base = self._base
        settings = base.settings.merge(self._settings) if base.settings is not None else self._settings
        model = Model(
            root_type=self._root_type,
            customizations=base.customizations + tuple(self._customizations),
            assignments=base.assignments + tuple(self._assignments),
            settings=settings,
            seed=self._seed if self._seed is not None else base.seed,
            lenient=self._lenient,
            layers=base.layers + 1,
        )
        CustomizationPlan(model.customizations).check_ambiguities()
        return model

    def create(self) -> T:
        return self.as_result().value

    def as_result(self) -> Result[T]:
        run = GenerationRun(self.to_model())
        value = run.batch(1)[0]
        return Result(value=value, seed=run.seed)

    def stream(self) -> Iterator[T]:
        """Endless generator of values sharing one run (uniqueness spans the stream)."""
        run = GenerationRun(self.to_model())
        while True:
            yield run.next()

    # ── Internals ──

    def _add(self, selector: AnySelector, action: Action, payload: Any = None) -> "Blueprint[T]":
        if not isinstance(selector, (Selector, SelectorGroup)):
            raise TypeError(f"Expected a selector, got {selector!r}")
        index = len(self._base.customizations) + len(self._customizations)
        self._customizations.append(
            Customization(
                selector=self._bind(selector),
                action=action,
                payload=payload,
                index=index,
                layer=self._base.layers,
            )
        )
        return self

    def _bind(self, selector: Any) -> Any:
        """Attach the root class to owner-less field selectors and validate them."""
        if isinstance(selector, SelectorGroup):
            return SelectorGroup(tuple(self._bind(s) for s in selector.selectors))
        if not isinstance(selector, Selector):
            return selector
        if selector.scopes:
            selector = replace(
                selector,
                scopes=tuple(Scope(self._bind(s.selector)) for s in selector.scopes),
            )
        if isinstance(selector, FieldSelector) and selector.owner is None:
            if self._root_class is None:
                raise SpecimenError(
                    f"{selector!r} needs an owner class: {_type_name(self._root_type)} has no fields"
                )
            check_field(self._root_class, selector.name)
            selector = selector.bind(self._root_class)
        return selector


def _root_class(root: Any) -> type | None:
    """Class whose fields owner-less field selectors refer to."""
    node = read_type(root)
    if node.kind is TypeKind.OBJECT:
        return node.cls
    if node.kind in (TypeKind.COLLECTION, TypeKind.MAPPING, TypeKind.TUPLE) and node.element_types:
        element = read_type(node.element_types[-1])
        if element.kind is TypeKind.OBJECT:
            return element.cls
    return None


def _random_arg(supplier: Callable[..., Any]) -> Callable[[RandomSource], Any]:
    try:
        params = inspect.signature(supplier).parameters.values()
    except (TypeError, ValueError):
        return supplier
    required = [
        p
        for p in params
        if p.default is inspect.Parameter.empty
        and p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    ]
    if not required:
        return lambda random: supplier()
    return supplier


# =============================================================================
# Collections
# =============================================================================


class CollectionBlueprint(Blueprint[T]):
    """Blueprint whose root is a collection; ``size`` shapes the root."""

    def __init__(self, root: Any, spec: CollectionSpec):
        super().__init__(root)
        self._size_spec = spec
        self._add(RootSelector(), Action.GENERATE, spec)

    def size(self, n: int) -> "CollectionBlueprint[T]":
        self._size_spec.size(n)
        return self

    def min_size(self, n: int) -> "CollectionBlueprint[T]":
        self._size_spec.min_size(n)
        return self

    def max_size(self, n: int) -> "CollectionBlueprint[T]":
        self._size_spec.max_size(n)
        return self


def of_list(element: Any) -> CollectionBlueprint[list]:
    return CollectionBlueprint(list[element], CollectionSpec())


def of_set(element: Any) -> CollectionBlueprint[set]:
    return CollectionBlueprint(set[element], CollectionSpec())


def of_map(key: Any, value: Any) -> CollectionBlueprint[dict]:
    return CollectionBlueprint(dict[key, value], MapSpec())


# =============================================================================
# Cartesian product
# =============================================================================


class CartesianBlueprint(Blueprint[T]):
    """One instance per combination of the declared values.

    ``with_values(sel_a, 1, 2).with_values(sel_b, "x", "y")`` yields four
    instances: (1, x), (1, y), (2, x), (2, y).
    """

    def __init__(self, root: Any):
        super().__init__(root)
        self._axes: list[tuple[AnySelector, tuple[Any, ...]]] = []

    def with_values(self, selector: AnySelector, *values: Any) -> "CartesianBlueprint[T]":
        if not values:
            raise ValueError("with_values() needs at least one value")
        self._axes.append((self._bind(selector), values))
        return self

    def create(self) -> list[T]:
        return self.as_result().value

    def as_result(self) -> Result[list[T]]:
        model = self.to_model()
        settings = resolve_settings(model.settings)
        seed = _pick_seed(None, model.seed, settings.seed)
        random = RandomSource(seed)

        values = []
        base = [*model.customizations, *model.assignments]
        # base entries that no combination has used yet
        unused = {id(u) for u in base}
        for combination in itertools.product(*(vals for _, vals in self._axes)):
            fixed = tuple(
                Customization(
                    selector=selector,
                    action=Action.SET,
                    payload=value,
                    index=len(model.customizations) + i,
                    layer=model.layers,
                )
                for i, ((selector, _), value) in enumerate(zip(self._axes, combination))
            )
            layered = replace(model, customizations=model.customizations + fixed, layers=model.layers + 1)
            run = GenerationRun(layered, seed=random.derive_seed())
            values.append(run.next())
            unused &= {id(u) for u in run.unused()}

        leftover = [u for u in base if id(u) in unused]
        _report_unused([getattr(u, "selector", u) for u in leftover], settings, seed, model.lenient)
        logger.debug("Generated %d combinations of %s (seed=%d)", len(values), _type_name(model.root_type), seed)
        return Result(value=values, seed=seed)


# =============================================================================
# Entry points
# =============================================================================


def of(root: Any) -> Blueprint:
    """Start a blueprint for a type, or open a new layer over a model."""
    return Blueprint(root)


def create(root: Any) -> Any:
    """Generate one fully populated instance of ``root``."""
    return Blueprint(root).create()


def of_cartesian_product(root: Any) -> CartesianBlueprint:
    return CartesianBlueprint(root)
