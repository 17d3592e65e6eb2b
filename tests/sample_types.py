"""Types shared by the test modules."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Annotated, Generic, Literal, NamedTuple, NewType, TypedDict, TypeVar
from uuid import UUID

import annotated_types as at
from pydantic import BaseModel, Field

T = TypeVar("T")

UserId = NewType("UserId", int)


@dataclass
class Address:
    street: str
    city: str
    zip_code: str


@dataclass
class Phone:
    country: str
    number: str


@dataclass
class Person:
    name: str
    age: int
    email: str | None
    address: Address
    phones: list[Phone]
    tags: set[str]
    nickname: str = "none"


class Status(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    BANNED = "banned"


@dataclass
class Account:
    id: UUID
    owner: Person
    status: Status
    balance: Decimal
    opened: date
    scores: dict[str, int]
    kind: Literal["basic", "premium"]


class Item(BaseModel):
    sku: str
    quantity: int = Field(ge=1, le=5)
    price: float
    notes: list[str] = Field(default_factory=list)


class Order(BaseModel):
    id: int
    items: list[Item]
    customer: Person


@dataclass
class Node(Generic[T]):
    value: T
    next: "Node[T] | None" = None


@dataclass
class TreeNode:
    label: str
    children: list["TreeNode"]


class Shape(ABC):
    @abstractmethod
    def area(self) -> float: ...


@dataclass
class Circle(Shape):
    radius: float

    def area(self) -> float:
        return 3.14159 * self.radius**2


@dataclass
class Square(Shape):
    side: float

    def area(self) -> float:
        return self.side**2


@dataclass
class Drawing:
    title: str
    shape: Shape


class Point(NamedTuple):
    x: int
    y: int


class Meta(TypedDict):
    source: str
    version: int


@dataclass
class Segment:
    start: Point
    end: Point


class Plain:
    label: str
    count: int = 0


@dataclass(frozen=True)
class Money:
    amount: Decimal
    currency: str


@dataclass
class Strict:
    value: int

    def __post_init__(self):
        raise AssertionError("constructor must not run")


@dataclass
class Mixed:
    choice: int | str
    pair: tuple[int, str]
    many: tuple[float, ...]
    user: UserId
    point: Point
    meta: Meta


@dataclass
class Bounded:
    small: Annotated[int, at.Gt(0), at.Lt(10)]
    ratio: Annotated[float, at.Ge(0.0), at.Le(1.0)]
    code: Annotated[str, at.Len(2, 4)]
    labels: Annotated[list[str], at.MinLen(1), at.MaxLen(2)]


@dataclass
class Customer:
    first_name: str
    last_name: str
    age: int
    country: str
    nickname: str = ""


@dataclass
class StatusBoard:
    statuses: set[Status]
    counts: dict[Status, int]
