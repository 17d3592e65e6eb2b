"""Predicates for conditional assignments and filters."""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class _Is:
    value: Any

    def __call__(self, candidate: Any) -> bool:
        return candidate == self.value


@dataclass(frozen=True)
class _IsNot:
    value: Any

    def __call__(self, candidate: Any) -> bool:
        return candidate != self.value


@dataclass(frozen=True)
class _IsIn:
    values: tuple[Any, ...]

    def __call__(self, candidate: Any) -> bool:
        return candidate in self.values


def is_(value: Any) -> _Is:
    return _Is(value)


def is_not(value: Any) -> _IsNot:
    return _IsNot(value)


def is_in(*values: Any) -> _IsIn:
    return _IsIn(values)


@dataclass(frozen=True)
class _IsNull:
    negate: bool = False

    def __call__(self, candidate: Any) -> bool:
        return (candidate is None) != self.negate


def is_null() -> _IsNull:
    return _IsNull()


def is_not_null() -> _IsNull:
    return _IsNull(negate=True)
