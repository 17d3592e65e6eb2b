"""Assignment builders.

Examples:
    assign.value_of(field(Person, "name")).to(field(Person, "nickname"))
    assign.value_of(field(Order, "total")).to(field(Order, "tax")).as_(lambda t: t * 0.2)

    assign.given(field(Phone, "country"), field(Phone, "code")) \\
        .set(when.is_("US"), "+1") \\
        .set(when.is_in("FR", "DE"), "+33") \\
        .else_set("+0")
"""

from typing import Any, Callable

from .generators.specs import GeneratorSpec
from .population.assignment import Assignment, Branch, _identity
from .selectors.selector import AnySelector


class ValueOf:
    """``value_of(source).to(target)`` builder."""

    def __init__(self, source: AnySelector):
        self._source = source

    def to(self, *targets: AnySelector) -> "Derivation":
        if not targets:
            raise ValueError("to() needs at least one target selector")
        return Derivation(self._source, targets)


class Derivation:
    """Unconditional derivation; identity until ``as_`` gives a function."""

    def __init__(self, source: AnySelector, targets: tuple[AnySelector, ...]):
        self._source = source
        self._targets = targets
        self._fn: Callable[[Any], Any] = _identity

    def as_(self, fn: Callable[[Any], Any]) -> "Derivation":
        self._fn = fn
        return self

    def build(self) -> list[Assignment]:
        return [Assignment.copy(self._source, target, self._fn) for target in self._targets]


class Conditional:
    """``given(source, target)`` builder with ordered branches and a default."""

    def __init__(self, source: AnySelector, target: AnySelector):
        self._source = source
        self._target = target
        self._branches: list[Branch] = []
        self._default: Branch | None = None

    def set(self, predicate: Callable[[Any], bool], value: Any) -> "Conditional":
        self._branches.append(Branch(predicate, "set", value))
        return self

    def generate(self, predicate: Callable[[Any], bool], spec: GeneratorSpec) -> "Conditional":
        self._branches.append(Branch(predicate, "generate", spec))
        return self

    def apply(self, predicate: Callable[[Any], bool], fn: Callable[[Any], Any]) -> "Conditional":
        self._branches.append(Branch(predicate, "apply", fn))
        return self

    def else_set(self, value: Any) -> "Conditional":
        self._default = Branch(_always_true, "set", value)
        return self

    def else_generate(self, spec: GeneratorSpec) -> "Conditional":
        self._default = Branch(_always_true, "generate", spec)
        return self

    def else_apply(self, fn: Callable[[Any], Any]) -> "Conditional":
        self._default = Branch(_always_true, "apply", fn)
        return self

    def build(self) -> list[Assignment]:
        if not self._branches and self._default is None:
            raise ValueError("given() needs at least one branch")
        return [Assignment(self._source, self._target, tuple(self._branches), self._default)]


def _always_true(_: Any) -> bool:
    return True


def value_of(source: AnySelector) -> ValueOf:
    return ValueOf(source)


def given(source: AnySelector, target: AnySelector) -> Conditional:
    return Conditional(source, target)
