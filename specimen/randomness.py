"""Seeded random source shared by every generator in one generation run."""

import random
import string
from typing import Any, Sequence, TypeVar

T = TypeVar("T")

MAX_SEED = 2**31 - 1

ALPHABETS = {
    "upper": string.ascii_uppercase,
    "lower": string.ascii_lowercase,
    "alpha": string.ascii_letters,
    "digits": string.digits,
    "alphanumeric": string.ascii_letters + string.digits,
    "hex": "0123456789abcdef",
}


def random_seed() -> int:
    """Pick a fresh seed for a run that did not ask for one."""
    return random.randint(0, MAX_SEED)


class RandomSource:
    """Deterministic random source.

    One instance belongs to one generation run (or one batch element).
    It is not thread-safe; concurrent runs each own their own source.
    """

    def __init__(self, seed: int | None = None):
        if seed is None:
            seed = random_seed()
        self.seed = seed
        self._rng = random.Random(seed)

    def __repr__(self) -> str:
        return f"RandomSource(seed={self.seed})"

    def int_range(self, low: int, high: int) -> int:
        """Uniform int in [low, high]."""
        if low > high:
            low, high = high, low
        return self._rng.randint(low, high)

    def float_range(self, low: float, high: float) -> float:
        """Uniform float in [low, high)."""
        if low > high:
            low, high = high, low
        return self._rng.uniform(low, high)

    def true_or_false(self, probability: float = 0.5) -> bool:
        return self._rng.random() < probability

    def one_of(self, items: Sequence[T]) -> T:
        if not items:
            raise ValueError("Cannot choose from an empty sequence")
        return items[self._rng.randrange(len(items))]

    def sample(self, items: Sequence[T], k: int) -> list[T]:
        return self._rng.sample(list(items), k)

    def shuffle(self, items: list[Any]) -> None:
        self._rng.shuffle(items)

    def string(self, length: int, alphabet: str = "upper") -> str:
        chars = ALPHABETS.get(alphabet, alphabet)
        return "".join(self._rng.choice(chars) for _ in range(length))

    def gauss(self, mean: float, std: float) -> float:
        return self._rng.gauss(mean, std)

    def derive_seed(self) -> int:
        """Draw a seed for a child source (batch element, Faker instance)."""
        return self._rng.randint(0, MAX_SEED)

    def child(self) -> "RandomSource":
        return RandomSource(self.derive_seed())

    def getrandbits(self, k: int) -> int:
        return self._rng.getrandbits(k)
