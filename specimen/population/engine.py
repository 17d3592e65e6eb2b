"""Population engine.

Walks type metadata depth-first from a root type and builds the instance
graph. For every position it resolves the matching customizations, applies
subtype substitution, ignore, the depth/self-reference guard, nullability and
the winning value action, and otherwise falls back to the generator registry
or structural recursion into fields, elements and entries.

Generated values are recorded with their position and storage slot so the
feed binder and the assignment resolver can revisit them after population.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, get_origin

from ..config import SettingsValues
from ..constraints import ConstraintProvider, constrained_spec
from ..errors import GenerationExhausted, UnresolvableType
from ..generators.registry import GeneratorRegistry
from ..generators.specs import CollectionSpec, GeneratorContext, GeneratorSpec, MapSpec
from ..metadata.reader import FieldNode, TypeMetadataProvider, TypeNode
from ..metadata.shapes import ClassShape, Slot, TypeKind, construct, field_slot
from ..randomness import RandomSource
from ..selectors.context import GeneratedValue, Position, TraversalContext
from .customizations import Action, Customization, CustomizationPlan, MatchSet

logger = logging.getLogger(__name__)


class _Ignored:
    def __repr__(self) -> str:
        return "IGNORED"


IGNORED: Any = _Ignored()


@dataclass
class RunState:
    """State shared by every root of one generation run (a batch)."""

    plan: CustomizationPlan
    settings: SettingsValues
    registry: GeneratorRegistry
    reader: TypeMetadataProvider
    seed: int
    constraints: ConstraintProvider | None = None
    generator_state: dict[int, Any] = field(default_factory=dict)
    unique_values: dict[int, list[Any]] = field(default_factory=dict)

    def seen_before(self, customization: Customization, value: Any) -> bool:
        seen = self.unique_values.setdefault(id(customization), [])
        return value in seen

    def remember(self, customization: Customization, value: Any) -> None:
        self.unique_values.setdefault(id(customization), []).append(value)


class PopulationEngine:
    """Builds one root value per call to ``populate_root``."""

    def __init__(self, run: RunState):
        self.run = run

    # =========================================================================
    # Entry point
    # =========================================================================

    def populate_root(self, annotation: Any, random: RandomSource) -> tuple[Any, TraversalContext]:
        ctx = TraversalContext(
            root_type=annotation,
            settings=self.run.settings,
            random=random,
            reader=self.run.reader,
        )
        entry = self._populate(ctx, annotation)
        value = None if entry is IGNORED else entry.value
        return value, ctx

    # =========================================================================
    # Positions
    # =========================================================================

    def _populate(
        self,
        ctx: TraversalContext,
        annotation: Any,
        field: FieldNode | None = None,
        index: Any = None,
    ) -> GeneratedValue | Any:
        """Populate one position below the current one.

        Returns the recorded entry (its slot is filled in by the caller once
        the owner exists) or IGNORED.
        """
        node = self._read(annotation, ctx)
        position = ctx.enter(node, field=field, index=index)
        try:
            matches = self.run.plan.match(position)
            if matches.subtype is not None:
                position = ctx.replace_current(self._substitute(position.node, matches.subtype, ctx))
                matches = self.run.plan.match(position)

            if matches.ignored:
                logger.debug("Ignored %s", position.describe())
                return IGNORED

            if matches.constrained:
                value = self._with_retries(ctx, position, matches)
            else:
                value = self._value_for(ctx, position, matches)

            position = ctx.current
            entry = ctx.record(position, value)
            if value is not None:
                for callback in matches.callbacks:
                    ctx.defer(callback.payload, value)
            return entry
        finally:
            ctx.leave()

    def _with_retries(self, ctx: TraversalContext, position: Position, matches: MatchSet) -> Any:
        """Regenerate until every unique and filter customization accepts the value."""
        limit = self.run.settings.max_generation_attempts
        for attempt in range(1, limit + 1):
            ctx.current = position
            mark = ctx.checkpoint()
            value = self._value_for(ctx, position, matches)

            rejected_by = self._rejection(value, matches)
            if rejected_by is None:
                for unique in matches.uniques:
                    self.run.remember(unique, value)
                return value

            ctx.rollback(mark)
            logger.debug("Attempt %d for %s rejected by %r", attempt, position.describe(), rejected_by)

        offender = (matches.uniques or matches.filters)[0]
        reason = "no unique value" if matches.uniques else "no value accepted by filter"
        raise GenerationExhausted(offender.selector, limit, reason, seed=self.run.seed)

    def _rejection(self, value: Any, matches: MatchSet) -> Customization | None:
        for unique in matches.uniques:
            if self.run.seen_before(unique, value):
                return unique
        for flt in matches.filters:
            if not flt.payload(value):
                return flt
        return None

    def _value_for(self, ctx: TraversalContext, position: Position, matches: MatchSet) -> Any:
        node = position.node
        winner = matches.value

        if winner is not None and winner.action is Action.SET:
            return winner.payload
        if winner is not None and winner.action is Action.SUPPLY:
            return winner.payload(ctx.random)

        if position.parent is not None and node.is_composite and self._beyond_limits(position):
            logger.debug("Depth limit reached at %s", position.describe())
            return self._zero(position)

        if matches.nullable and ctx.random.true_or_false(self.run.settings.nullable_probability):
            return None

        if winner is not None and winner.action is Action.BLANK:
            return self._blank(node)
        if winner is not None and winner.action is Action.GENERATE:
            return self._generate_with(ctx, position, winner.payload)

        return self._default(ctx, position)

    def _beyond_limits(self, position: Position) -> bool:
        settings = self.run.settings
        if position.depth >= settings.max_depth:
            return True
        limit = settings.max_self_references
        return limit is not None and position.self_references() > limit

    # =========================================================================
    # Value sources
    # =========================================================================

    def _generate_with(self, ctx: TraversalContext, position: Position, spec: GeneratorSpec) -> Any:
        node = position.node
        if spec.shapes_container and node.kind in (TypeKind.COLLECTION, TypeKind.MAPPING, TypeKind.TUPLE):
            return self._container(ctx, position, spec)

        value = spec.generate(self._gen_context(ctx, position))
        if (
            value is not None
            and node.kind is TypeKind.OBJECT
            and self.run.settings.after_generate == "populate_nulls"
        ):
            self._fill_nulls(ctx, node, value)
        return value

    def _default(self, ctx: TraversalContext, position: Position) -> Any:
        node = position.node

        if self.run.constraints is not None and position.field is not None:
            constraints = self.run.constraints.constraints_for(position.field)
            if constraints is not None and not constraints.empty:
                spec = constrained_spec(node, constraints)
                if spec is not None:
                    return self._generate_with(ctx, position, spec)

        spec = self.run.registry.spec_for(node)
        if spec is not None:
            return self._generate_with(ctx, position, spec)

        if node.kind is TypeKind.UNION:
            member = ctx.random.one_of(node.element_types)
            position = ctx.replace_current(self._read(member, ctx))
            matches = self.run.plan.match(position)
            if matches.ignored:
                return self._zero(position)
            return self._value_for(ctx, position, matches)

        if node.kind is TypeKind.OBJECT:
            return self._object(ctx, node)
        if node.kind in (TypeKind.COLLECTION, TypeKind.MAPPING, TypeKind.TUPLE):
            return self._container(ctx, position, None)

        raise UnresolvableType(node.annotation, "no generator registered", seed=self.run.seed)

    def _gen_context(self, ctx: TraversalContext, position: Position) -> GeneratorContext:
        return GeneratorContext(
            random=ctx.random,
            settings=self.run.settings,
            field=position.field,
            target=position.node.cls,
            state=self.run.generator_state,
        )

    # =========================================================================
    # Structural population
    # =========================================================================

    def _object(self, ctx: TraversalContext, node: TypeNode) -> Any:
        if node.abstract:
            raise UnresolvableType(
                node.annotation,
                "abstract type or protocol; declare a subtype for it",
                seed=self.run.seed,
            )
        values: dict[str, Any] = {}
        entries: dict[str, GeneratedValue] = {}
        for f in node.fields:
            entry = self._populate(ctx, f.declared_type, field=f)
            if entry is IGNORED:
                values[f.name] = f.zero_value()
            else:
                values[f.name] = entry.value
                entries[f.name] = entry

        instance = construct(node.cls, node.shape, values)
        for name, entry in entries.items():
            entry.slot = field_slot(instance, node.shape, name)
        return instance

    def _container(self, ctx: TraversalContext, position: Position, spec: CollectionSpec | None) -> Any:
        node = position.node
        gen_context = self._gen_context(ctx, position)
        if node.kind is TypeKind.MAPPING:
            return self._mapping(ctx, node, spec, gen_context)
        if node.kind is TypeKind.TUPLE and not node.variadic:
            return self._fixed_tuple(ctx, node)

        sizing = spec or CollectionSpec()
        size = sizing.pick_size(gen_context)
        element_type = node.element_types[0]
        element_spec = sizing.element

        if node.cls in (set, frozenset):
            items = self._unique_elements(ctx, element_type, element_spec, size, gen_context)
        else:
            items = []
            entries = []
            for i in range(size):
                if element_spec is not None:
                    items.append(element_spec.generate(gen_context))
                    continue
                entry = self._populate(ctx, element_type, index=i)
                if entry is IGNORED:
                    continue
                entries.append((len(items), entry))
                items.append(entry.value)

        items.extend(sizing.extra_elements)

        if node.kind is TypeKind.TUPLE:
            return tuple(items)
        if node.cls in (set, frozenset):
            return node.cls(items)
        container = node.cls(items)
        for i, entry in entries:
            entry.slot = Slot(container, i, item=True)
        return container

    def _unique_elements(
        self,
        ctx: TraversalContext,
        element_type: Any,
        element_spec: GeneratorSpec | None,
        size: int,
        gen_context: GeneratorContext,
    ) -> list[Any]:
        items: list[Any] = []
        attempts = 0
        limit = self.run.settings.max_generation_attempts
        while len(items) < size and attempts < limit:
            attempts += 1
            mark = ctx.checkpoint()
            if element_spec is not None:
                value = element_spec.generate(gen_context)
            else:
                entry = self._populate(ctx, element_type, index=len(items))
                if entry is IGNORED:
                    break
                value = entry.value
            if value in items:
                ctx.rollback(mark)
                continue
            items.append(value)
        if len(items) < size:
            logger.debug("Set reached %d of %d requested elements", len(items), size)
        return items

    def _mapping(
        self,
        ctx: TraversalContext,
        node: TypeNode,
        spec: CollectionSpec | None,
        gen_context: GeneratorContext,
    ) -> dict[Any, Any]:
        sizing = spec or MapSpec()
        size = sizing.pick_size(gen_context, mapping=True)
        key_type, value_type = node.element_types
        key_spec = sizing.key_spec if isinstance(sizing, MapSpec) else None
        value_spec = sizing.value_spec if isinstance(sizing, MapSpec) else None

        result = node.cls()
        attempts = 0
        limit = self.run.settings.max_generation_attempts
        while len(result) < size and attempts < limit:
            attempts += 1
            mark = ctx.checkpoint()
            if key_spec is not None:
                key = key_spec.generate(gen_context)
            else:
                key_entry = self._populate(ctx, key_type, index=len(result))
                if key_entry is IGNORED:
                    break
                key = key_entry.value
            if key in result:
                ctx.rollback(mark)
                continue

            if value_spec is not None:
                result[key] = value_spec.generate(gen_context)
                continue
            value_entry = self._populate(ctx, value_type, index=key)
            if value_entry is IGNORED:
                result[key] = None
                continue
            result[key] = value_entry.value
            value_entry.slot = Slot(result, key, item=True)

        if isinstance(sizing, MapSpec):
            result.update(sizing.extra_entries)
        return result

    def _fixed_tuple(self, ctx: TraversalContext, node: TypeNode) -> tuple[Any, ...]:
        items = []
        for i, member in enumerate(node.element_types):
            entry = self._populate(ctx, member, index=i)
            items.append(None if entry is IGNORED else entry.value)
        return tuple(items)

    def _fill_nulls(self, ctx: TraversalContext, node: TypeNode, instance: Any) -> None:
        """Populate fields a generator left as None."""
        if node.shape is ClassShape.NAMED_TUPLE:
            return
        expected = dict if node.shape is ClassShape.TYPED_DICT else node.cls
        if not isinstance(instance, expected):
            return
        for f in node.fields:
            slot = field_slot(instance, node.shape, f.name)
            try:
                current = slot.read()
            except (AttributeError, KeyError):
                current = None
            if current is not None:
                continue
            entry = self._populate(ctx, f.declared_type, field=f)
            if entry is IGNORED:
                continue
            slot.write(entry.value)
            entry.slot = slot

    # =========================================================================
    # Helpers
    # =========================================================================

    def _read(self, annotation: Any, ctx: TraversalContext) -> TypeNode:
        try:
            return self.run.reader.read(annotation)
        except UnresolvableType as exc:
            if exc.seed is None:
                exc.seed = self.run.seed
            raise

    def _substitute(self, node: TypeNode, customization: Customization, ctx: TraversalContext) -> TypeNode:
        target = customization.payload
        if node.kind in (TypeKind.COLLECTION, TypeKind.MAPPING) and isinstance(target, type):
            return replace(node, cls=target)

        params = getattr(target, "__parameters__", ())
        if params and node.bindings and len(params) == len(node.bindings):
            target = target[tuple(bound for _, bound in node.bindings)]

        substitute = self._read(target, ctx)
        target_cls = get_origin(target) or target
        if node.cls is not None and not node.abstract and not issubclass(target_cls, node.cls):
            raise UnresolvableType(
                target,
                f"subtype is not a subclass of {node.cls.__name__}",
                seed=self.run.seed,
            )
        logger.debug("Substituted %r with %r", node, substitute)
        return substitute

    def _zero(self, position: Position) -> Any:
        f = position.field
        if f is not None and f.has_default:
            return f.zero_value()
        return position.node.empty_container()

    def _blank(self, node: TypeNode) -> Any:
        """Non-null instance whose fields all hold zero values."""
        if node.kind is not TypeKind.OBJECT:
            return node.empty_container()
        values = {}
        for f in node.fields:
            if f.has_default:
                values[f.name] = f.zero_value()
                continue
            if get_origin(f.declared_type) is None:
                values[f.name] = None
                continue
            values[f.name] = self.run.reader.read(f.declared_type).empty_container()
        return construct(node.cls, node.shape, values)

