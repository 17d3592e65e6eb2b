"""Selector builders.

Examples:
    from specimen import select

    select.field(Person, "name")
    select.all_of(Address).within(select.scope(Person, "home"))
    select.fields().named("id").of_type(int)
    select.types().of(Shape).excluding(Circle)
    select.any_of(select.all_ints(), select.all_floats())
"""

from datetime import date, datetime
from typing import Any, Callable

from ..errors import SelectorError
from ..metadata.reader import FieldNode, read_type
from .selector import (
    FieldPredicateSelector,
    FieldSelector,
    RootSelector,
    Scope,
    Selector,
    SelectorGroup,
    TypePredicateSelector,
    TypeSelector,
)


def field(owner: type | str, name: str | None = None) -> FieldSelector:
    """Select a declared field.

    ``field("name")`` targets a field of the root type; ``field(Person, "name")``
    targets the field wherever a ``Person`` appears.
    """
    if name is None:
        if not isinstance(owner, str):
            raise TypeError("field() needs a field name")
        return FieldSelector(None, owner)
    if not isinstance(owner, type):
        raise TypeError(f"field() owner must be a class, got {owner!r}")
    check_field(owner, name)
    return FieldSelector(owner, name)


def check_field(owner: type, name: str) -> None:
    """Raise SelectorError if ``owner`` declares no field ``name``."""
    node = read_type(owner)
    if node.abstract:
        return
    if node.field(name) is None:
        known = ", ".join(f.name for f in node.fields) or "none"
        raise SelectorError(
            f"Invalid field {name!r} for {owner.__name__} (fields: {known})"
        )


def all_of(target: Any) -> TypeSelector:
    """Select every position whose type is exactly ``target``."""
    return TypeSelector(target)


def all_strings() -> TypeSelector:
    return TypeSelector(str)


def all_ints() -> TypeSelector:
    return TypeSelector(int)


def all_floats() -> TypeSelector:
    return TypeSelector(float)


def all_bools() -> TypeSelector:
    return TypeSelector(bool)


def all_dates() -> TypeSelector:
    return TypeSelector(date)


def all_datetimes() -> TypeSelector:
    return TypeSelector(datetime)


def fields(predicate: Callable[[FieldNode], bool] | None = None) -> FieldPredicateSelector:
    """Select fields by predicate, or start a predicate builder."""
    if predicate is None:
        return FieldPredicateSelector()
    return FieldPredicateSelector((predicate,))


def types(predicate: Callable[[type], bool] | None = None) -> TypePredicateSelector:
    """Select types by predicate, or start a predicate builder."""
    if predicate is None:
        return TypePredicateSelector()
    return TypePredicateSelector((predicate,))


def root() -> RootSelector:
    return RootSelector()


def scope(target: type | Selector, field_name: str | None = None) -> Scope:
    """Ancestor scope: a class, a field of a class, or any selector."""
    if isinstance(target, Selector):
        return target.to_scope()
    if field_name is None:
        return Scope(TypeSelector(target))
    return Scope(field(target, field_name))


def any_of(*selectors: Selector | SelectorGroup) -> SelectorGroup:
    """Group selectors; the group matches where any member matches."""
    flat: list[Selector] = []
    for s in selectors:
        if isinstance(s, SelectorGroup):
            flat.extend(s.selectors)
        else:
            flat.append(s)
    if not flat:
        raise ValueError("any_of() needs at least one selector")
    return SelectorGroup(tuple(flat))
