"""Selector engine: selectors, traversal positions, and precedence."""

from .context import GeneratedValue, Position, TraversalContext
from .precedence import resolve_precedence
from .selector import (
    FieldPredicateSelector,
    FieldSelector,
    RootSelector,
    Scope,
    Selector,
    SelectorGroup,
    SelectorTier,
    TypePredicateSelector,
    TypeSelector,
)

__all__ = [
    "FieldPredicateSelector",
    "FieldSelector",
    "GeneratedValue",
    "Position",
    "RootSelector",
    "Scope",
    "Selector",
    "SelectorGroup",
    "SelectorTier",
    "TraversalContext",
    "TypePredicateSelector",
    "TypeSelector",
    "resolve_precedence",
]
