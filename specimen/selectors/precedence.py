"""Precedence between customizations that match the same position.

Order (highest first): field / root > type > field predicate > type predicate
> group > external constraint. Within a tier the more narrowed selector wins,
then the later declaration.
"""

import logging
import warnings
from typing import Any, Iterable, Protocol, Sequence, TypeVar

from ..errors import AmbiguousSelectorPrecedence
from .selector import SelectorTier

logger = logging.getLogger(__name__)


class Ranked(Protocol):
    selector: Any
    index: int
    layer: int
    external: bool

    @property
    def family(self) -> str: ...


R = TypeVar("R", bound=Ranked)

# Families where only the highest match applies; others accumulate
SINGLE_WINNER_FAMILIES = frozenset({"value", "subtype"})


def tier_of(item: Ranked) -> SelectorTier:
    if item.external:
        return SelectorTier.EXTERNAL
    return item.selector.tier


def precedence_key(item: Ranked) -> tuple[int, int, int]:
    return (tier_of(item), item.selector.narrowing, item.index)


def resolve_precedence(matches: Iterable[R]) -> list[R]:
    """Order matches from highest to lowest precedence."""
    return sorted(matches, key=precedence_key, reverse=True)


def find_ambiguities(items: Sequence[R]) -> list[tuple[R, R]]:
    """Pairs that tie on everything but declaration order.

    Only equal selectors with the same single-winner action family declared
    in the same layer count; a later layer overrides silently.
    """
    ties = []
    seen: dict[tuple[Any, str, int], R] = {}
    for item in items:
        if item.external or item.family not in SINGLE_WINNER_FAMILIES:
            continue
        try:
            key = (item.selector, item.family, item.layer)
            earlier = seen.get(key)
        except TypeError:
            # unhashable selector payload, compare pairwise
            earlier = next(
                (
                    other
                    for other in seen.values()
                    if other.selector == item.selector
                    and other.family == item.family
                    and other.layer == item.layer
                ),
                None,
            )
            key = None
        if earlier is not None:
            ties.append((earlier, item))
        if key is not None:
            seen[key] = item
    return ties


def warn_ambiguities(items: Sequence[Ranked]) -> None:
    for earlier, later in find_ambiguities(items):
        message = (
            f"{later.selector!r} is declared twice for {later.family}; "
            f"the later declaration (#{later.index}) overrides #{earlier.index}"
        )
        logger.warning(message)
        warnings.warn(message, AmbiguousSelectorPrecedence, stacklevel=4)
