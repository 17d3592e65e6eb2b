"""Feed binder: writes feed rows into generated instances.

Runs after base population and before assignments. Matched instances across
the whole batch, in traversal order, receive successive rows, or the row whose
key column equals the instance's key field.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any

from ..errors import FeedError
from ..metadata.shapes import TypeKind, field_slot
from ..population.customizations import Action, Customization, CustomizationPlan
from ..selectors.context import GeneratedValue, TraversalContext
from .feed import ExhaustionPolicy, Feed, coerce

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeedBinding:
    feed: Feed
    key: str | None = None


class FeedBinder:
    """Binds feeds root by root; row cursors run across the whole batch."""

    def __init__(self, plan: CustomizationPlan, policy: ExhaustionPolicy, seed: int):
        self.bindings = [
            c for c in plan.of_action(Action.FEED) if isinstance(c.payload, FeedBinding)
        ]
        self.policy = policy
        self.seed = seed
        self._cursors: dict[int, int] = {}

    def bind(self, ctx: TraversalContext) -> None:
        for customization in self.bindings:
            self._bind_one(customization, ctx)

    def _bind_one(self, customization: Customization, ctx: TraversalContext) -> None:
        binding: FeedBinding = customization.payload
        feed = binding.feed
        policy = feed.policy or self.policy
        targets = list(_instances(ctx, customization))
        logger.debug("Binding %s to %d instances of %r", feed, len(targets), customization.selector)

        for record, children in targets:
            if binding.key is not None:
                row = self._lookup(feed, binding.key, record)
            else:
                n = self._cursors.get(id(customization), 0)
                self._cursors[id(customization)] = n + 1
                row = feed.record(feed.row_index(n, policy, seed=self.seed))
            self._write(feed, record, children, row)

    def _lookup(self, feed: Feed, key: str, record: GeneratedValue) -> dict[str, Any]:
        node = record.position.node
        key_field = node.field(key)
        if key_field is None:
            raise FeedError(f"{node.cls.__name__} has no key field {key!r}", seed=self.seed)
        value = field_slot(record.value, node.shape, key).read()
        return feed.lookup(key, value, key_field.declared_type, seed=self.seed)

    def _write(
        self,
        feed: Feed,
        record: GeneratedValue,
        children: dict[str, GeneratedValue],
        row: dict[str, Any],
    ) -> None:
        node = record.position.node
        for f in node.fields:
            if f.name not in row:
                continue
            value = coerce(row[f.name], f.declared_type, feed.name, f.name)
            slot = field_slot(record.value, node.shape, f.name)
            slot.write(value)
            child = children.get(f.name)
            if child is not None:
                child.value = value
                child.slot = slot


def _instances(ctx: TraversalContext, customization: Customization):
    """Object records matched by the binding, each with its field records."""
    children: dict[int, dict[str, GeneratedValue]] = defaultdict(dict)
    for record in ctx.records:
        parent = record.position.parent
        if parent is not None and record.position.field is not None:
            children[id(parent)][record.position.field.name] = record

    for record in ctx.records:
        position = record.position
        if position.node.kind is not TypeKind.OBJECT or record.value is None:
            continue
        if customization.selector.matches(position):
            yield record, children[id(position)]
