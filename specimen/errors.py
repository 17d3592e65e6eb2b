"""Error types raised by specimen.

Every fatal error carries the seed of the generation run that failed (when one
was active) so the failing data can be reproduced with ``with_seed(...)``.
"""

from typing import Any


class SpecimenError(Exception):
    """Base class for all specimen errors."""

    def __init__(self, message: str, seed: int | None = None):
        self.message = message
        self.seed = seed
        super().__init__(message)

    def __str__(self) -> str:
        if self.seed is None:
            return self.message
        return f"{self.message} (seed={self.seed})"


class UnresolvableType(SpecimenError):
    """Raised when a type has no generator and cannot be introspected further."""

    def __init__(self, annotation: Any, reason: str, seed: int | None = None):
        self.annotation = annotation
        self.reason = reason
        super().__init__(f"Cannot generate {annotation!r}: {reason}", seed=seed)


class CyclicAssignment(SpecimenError):
    """Raised when assignments depend on each other in a cycle."""

    def __init__(self, selectors: list[Any], seed: int | None = None):
        self.selectors = selectors
        chain = " -> ".join(repr(s) for s in selectors)
        super().__init__(f"Assignments form a dependency cycle: {chain}", seed=seed)


class GenerationExhausted(SpecimenError):
    """Raised when a uniqueness or filter constraint cannot be satisfied."""

    def __init__(
        self,
        selector: Any,
        attempts: int,
        reason: str = "no acceptable value",
        seed: int | None = None,
    ):
        self.selector = selector
        self.attempts = attempts
        super().__init__(
            f"{reason} for {selector!r} after {attempts} attempts", seed=seed
        )


class FeedError(SpecimenError):
    """Base class for feed binding failures."""


class FeedExhausted(FeedError):
    """Raised when a feed runs out of rows under the fail-fast policy."""

    def __init__(self, feed_name: str, rows: int, seed: int | None = None):
        self.feed_name = feed_name
        self.rows = rows
        super().__init__(
            f"Feed '{feed_name}' exhausted after {rows} rows "
            "(use exhaustion='cycle' to restart from the first row)",
            seed=seed,
        )


class FeedKeyNotFound(FeedError):
    """Raised when a keyed feed lookup finds no row."""

    def __init__(self, feed_name: str, key: str, value: Any, seed: int | None = None):
        self.feed_name = feed_name
        self.key = key
        self.value = value
        super().__init__(
            f"Feed '{feed_name}' has no row with {key}={value!r}", seed=seed
        )


class UnusedSelectorError(SpecimenError):
    """Raised in strict mode when customizations never matched any position."""

    def __init__(self, selectors: list[Any], seed: int | None = None):
        self.selectors = selectors
        listed = ", ".join(repr(s) for s in selectors)
        super().__init__(f"Unused selectors: {listed}", seed=seed)


class SettingsError(SpecimenError):
    """Raised for unknown settings keys, invalid values, or locked settings."""


class AmbiguousSelectorPrecedence(UserWarning):
    """Two customizations tie on specificity; the later declaration wins."""


class SelectorError(SpecimenError):
    """Raised when a selector refers to a field that does not exist."""
