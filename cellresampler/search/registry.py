from __future__ import annotations

from typing import Callable

from ..config import Search
from .base import DistanceFn, NeighbourSearch
from .naive import BruteForceSearch
from .tree import VantagePointTree

SearchFactory = Callable[[DistanceFn], NeighbourSearch]

_REGISTRY: dict[Search, SearchFactory] = {}


def register(search: Search | str, factory: SearchFactory) -> None:
    _REGISTRY[Search(search)] = factory


def get_search(search: Search | str, distance_fn: DistanceFn) -> NeighbourSearch:
    try:
        key = Search(search)
    except ValueError:
        raise ValueError(f"Unknown neighbour search: {search!r}") from None
    if key not in _REGISTRY:
        raise ValueError(f"No neighbour search registered for: {key.value}")
    return _REGISTRY[key](distance_fn)


register(Search.TREE, VantagePointTree)
register(Search.NAIVE, BruteForceSearch)
