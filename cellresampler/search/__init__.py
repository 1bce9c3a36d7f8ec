from .base import Neighbour, NeighbourSearch
from .naive import BruteForceSearch
from .registry import get_search, register
from .tree import VantagePointTree

__all__ = [
    "Neighbour",
    "NeighbourSearch",
    "BruteForceSearch",
    "VantagePointTree",
    "get_search",
    "register",
]
