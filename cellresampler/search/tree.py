"""
Vantage-point tree neighbour search.

Each node holds a vantage point ``vp`` and a radius ``mu``: every event
in the ``inside`` subtree is within ``mu`` of ``vp``, every event in the
``outside`` subtree is further away. By the triangle inequality a query
``q`` is at least ``d(q, vp) - mu`` away from anything inside and at
least ``mu - d(q, vp)`` away from anything outside, which is what the
best-first search uses to skip subtrees.

Deletion only tombstones a node and decrements the live counts on its
path to the root; subtrees without live entries are never visited. The
tree is rebuilt from the live entries once tombstones outnumber them.
All traversals are iterative, since degenerate inputs (many identical
events) can produce very deep trees.
"""

from __future__ import annotations

import heapq
import itertools
import logging
from typing import Iterable, Iterator, Optional

from .base import DistanceFn, Neighbour, NeighbourSearch, closer

logger = logging.getLogger(__name__)

# Below this many tombstones a rebuild is not worth it.
MIN_REBUILD_TOMBSTONES = 32


class _Node:
    __slots__ = ("vp", "mu", "inside", "outside", "parent", "alive", "live")

    def __init__(self, vp: int, parent: Optional["_Node"]) -> None:
        self.vp = vp
        self.mu: Optional[float] = None
        self.inside: Optional[_Node] = None
        self.outside: Optional[_Node] = None
        self.parent = parent
        self.alive = True
        # live entries in this subtree, including this node
        self.live = 1


class VantagePointTree(NeighbourSearch):
    def __init__(self, distance_fn: DistanceFn) -> None:
        super().__init__(distance_fn)
        self._root: Optional[_Node] = None
        self._nodes: dict[int, _Node] = {}
        self._n_alive = 0
        self.n_rebuilds = 0

    # --- construction ---

    def _build(self, event_ids: list[int]) -> None:
        self._nodes = {}
        self._root = None
        self._n_alive = len(event_ids)
        stack: list[tuple[list[int], Optional[_Node], str]] = [(event_ids, None, "")]
        while stack:
            ids, parent, side = stack.pop()
            if not ids:
                continue
            vp, rest = ids[0], ids[1:]
            node = _Node(vp, parent)
            node.live = len(ids)
            self._nodes[vp] = node
            if parent is None:
                self._root = node
            else:
                setattr(parent, side, node)
            if not rest:
                continue
            pairs = sorted((self.distance_fn(vp, x), x) for x in rest)
            mu = pairs[(len(pairs) - 1) // 2][0]
            node.mu = mu
            stack.append(([x for d, x in pairs if d <= mu], node, "inside"))
            stack.append(([x for d, x in pairs if d > mu], node, "outside"))

    def rebuild(self) -> None:
        alive = sorted(i for i, n in self._nodes.items() if n.alive)
        logger.debug(
            "Rebuilding vantage-point tree: %d live, %d tombstones",
            len(alive),
            len(self._nodes) - len(alive),
        )
        self._build(alive)
        self.n_rebuilds += 1

    def extend(self, event_ids: Iterable[int]) -> None:
        new = set(event_ids)
        if not new:
            return
        alive = {i for i, n in self._nodes.items() if n.alive}
        self._build(sorted(alive | new))

    # --- mutation ---

    def _bump(self, node: Optional[_Node], delta: int) -> None:
        while node is not None:
            node.live += delta
            node = node.parent

    def insert(self, event_id: int) -> None:
        node = self._nodes.get(event_id)
        if node is not None:
            if not node.alive:
                node.alive = True
                self._bump(node, 1)
                self._n_alive += 1
            return

        self._n_alive += 1
        if self._root is None:
            node = _Node(event_id, None)
            self._nodes[event_id] = node
            self._root = node
            return

        cur = self._root
        while True:
            d = self.distance_fn(event_id, cur.vp)
            if cur.mu is None:
                cur.mu = d
            side = "inside" if d <= cur.mu else "outside"
            child = getattr(cur, side)
            if child is None:
                node = _Node(event_id, cur)
                setattr(cur, side, node)
                self._nodes[event_id] = node
                self._bump(cur, 1)
                return
            cur = child

    def remove(self, event_id: int) -> bool:
        node = self._nodes.get(event_id)
        if node is None or not node.alive:
            return False
        node.alive = False
        self._bump(node, -1)
        self._n_alive -= 1
        n_dead = len(self._nodes) - self._n_alive
        if n_dead >= MIN_REBUILD_TOMBSTONES and n_dead > self._n_alive:
            self.rebuild()
        return True

    # --- queries ---

    def nearest(self, event_id: int) -> Optional[Neighbour]:
        root = self._root
        if root is None or root.live == 0:
            return None

        best: Optional[Neighbour] = None
        tie = itertools.count()
        heap: list[tuple[float, int, _Node]] = [(0.0, next(tie), root)]
        while heap:
            bound, _, node = heapq.heappop(heap)
            if best is not None and bound > best.distance:
                break
            d = self.distance_fn(event_id, node.vp)
            if node.alive and node.vp != event_id and closer(d, node.vp, best):
                best = Neighbour(node.vp, d)
            if node.mu is None:
                continue
            for child, lower in ((node.inside, d - node.mu), (node.outside, node.mu - d)):
                if child is None or child.live == 0:
                    continue
                lower = max(bound, lower)
                if best is not None and lower > best.distance:
                    continue
                heapq.heappush(heap, (lower, next(tie), child))
        return best

    def __len__(self) -> int:
        return self._n_alive

    def __contains__(self, event_id: object) -> bool:
        node = self._nodes.get(event_id)  # type: ignore[arg-type]
        return node is not None and node.alive

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(i for i, n in self._nodes.items() if n.alive))
