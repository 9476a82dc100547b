from dataclasses import dataclass
from typing import Generic, Protocol, TypeVar

T = TypeVar("T")


class CacheKey(Protocol):
    def __hash__(self) -> int:
        ...

    def __eq__(self, __o: object) -> bool:
        ...


@dataclass
class Some(Generic[T]):
    value: T
