"""Customizations: (selector, action) pairs and their per-position resolution."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Sequence

from ..selectors.context import Position
from ..selectors.precedence import resolve_precedence, warn_ambiguities
from ..selectors.selector import AnySelector

logger = logging.getLogger(__name__)


class Action(str, Enum):
    SET = "set"
    SUPPLY = "supply"
    GENERATE = "generate"
    IGNORE = "ignore"
    SUBTYPE = "subtype"
    BLANK = "blank"
    NULLABLE = "nullable"
    UNIQUE = "unique"
    ON_COMPLETE = "on_complete"
    FILTER = "filter"
    FEED = "feed"


# Actions that decide the value of a position; one winner per position
VALUE_ACTIONS = frozenset({Action.SET, Action.SUPPLY, Action.GENERATE, Action.BLANK})


@dataclass(frozen=True, eq=False)
class Customization:
    selector: AnySelector
    action: Action
    payload: Any = None
    index: int = 0
    layer: int = 0
    external: bool = False

    @property
    def family(self) -> str:
        return "value" if self.action in VALUE_ACTIONS else self.action.value

    def __repr__(self) -> str:
        return f"{self.action.value}({self.selector!r})"


@dataclass
class MatchSet:
    """Customizations matching one position, split by action."""

    ignored: bool = False
    subtype: Customization | None = None
    value: Customization | None = None
    nullable: bool = False
    uniques: list[Customization] = field(default_factory=list)
    filters: list[Customization] = field(default_factory=list)
    callbacks: list[Customization] = field(default_factory=list)

    @property
    def constrained(self) -> bool:
        return bool(self.uniques or self.filters)


class CustomizationPlan:
    """Compiled customizations for one generation run.

    Tracks which customizations matched at least one position so unused
    selectors can be reported once the run completes.
    """

    def __init__(self, customizations: Sequence[Customization]):
        self.customizations = list(customizations)
        self._used: set[int] = set()

    def __len__(self) -> int:
        return len(self.customizations)

    def check_ambiguities(self) -> None:
        warn_ambiguities(self.customizations)

    def match(self, position: Position) -> MatchSet:
        matched = [c for c in self.customizations if c.selector.matches(position)]
        result = MatchSet()
        if not matched:
            return result

        for c in matched:
            self._used.add(id(c))

        for c in resolve_precedence(matched):
            if c.action is Action.IGNORE:
                result.ignored = True
            elif c.action is Action.SUBTYPE:
                if result.subtype is None:
                    result.subtype = c
            elif c.action in VALUE_ACTIONS:
                if result.value is None:
                    result.value = c
            elif c.action is Action.NULLABLE:
                result.nullable = True
            elif c.action is Action.UNIQUE:
                result.uniques.append(c)
            elif c.action is Action.FILTER:
                result.filters.append(c)
            elif c.action is Action.ON_COMPLETE:
                result.callbacks.append(c)

        result.callbacks.sort(key=lambda c: c.index)
        return result

    def mark_used(self, customization: Customization) -> None:
        self._used.add(id(customization))

    def unused(self) -> list[Customization]:
        return [
            c
            for c in self.customizations
            if id(c) not in self._used and not c.external
        ]

    def of_action(self, action: Action) -> list[Customization]:
        return [c for c in self.customizations if c.action is action]
