from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, Optional

DistanceFn = Callable[[int, int], float]


@dataclass(frozen=True)
class Neighbour:
    event_id: int
    distance: float


class NeighbourSearch(ABC):
    """Mutable set of event ids answering nearest-neighbour queries.

    ``distance_fn(i, j)`` returns the distance between events ``i`` and
    ``j``. Queries exclude the query point itself, whether or not it is
    still part of the set. Equal distances are resolved in favour of the
    smaller event id.

    Not thread-safe; the owner guarantees exclusive access.
    """

    def __init__(self, distance_fn: DistanceFn) -> None:
        self.distance_fn = distance_fn

    @abstractmethod
    def insert(self, event_id: int) -> None:
        ...

    @abstractmethod
    def remove(self, event_id: int) -> bool:
        """Remove ``event_id``; returns False if it was not present."""

    @abstractmethod
    def nearest(self, event_id: int) -> Optional[Neighbour]:
        """Closest surviving event to ``event_id``, or None if there is none."""

    @abstractmethod
    def __len__(self) -> int:
        ...

    @abstractmethod
    def __contains__(self, event_id: object) -> bool:
        ...

    @abstractmethod
    def __iter__(self) -> Iterator[int]:
        ...

    def extend(self, event_ids: Iterable[int]) -> None:
        """Insert many ids; implementations may bulk-load."""
        for i in event_ids:
            self.insert(i)


def closer(d: float, i: int, best: Optional[Neighbour]) -> bool:
    if best is None:
        return True
    if d != best.distance:
        return d < best.distance
    return i < best.event_id
