"""Brute-force neighbour search: scan every surviving event."""

from __future__ import annotations

from typing import Iterator, Optional

from .base import DistanceFn, Neighbour, NeighbourSearch, closer


class BruteForceSearch(NeighbourSearch):
    def __init__(self, distance_fn: DistanceFn) -> None:
        super().__init__(distance_fn)
        self._alive: set[int] = set()

    def insert(self, event_id: int) -> None:
        self._alive.add(event_id)

    def remove(self, event_id: int) -> bool:
        if event_id in self._alive:
            self._alive.remove(event_id)
            return True
        return False

    def nearest(self, event_id: int) -> Optional[Neighbour]:
        best: Optional[Neighbour] = None
        for other in self._alive:
            if other == event_id:
                continue
            d = self.distance_fn(event_id, other)
            if closer(d, other, best):
                best = Neighbour(other, d)
        return best

    def __len__(self) -> int:
        return len(self._alive)

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._alive

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._alive))
