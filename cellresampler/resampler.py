"""
The cell resampler.

Events are pushed in, a resample pass groups phase-space neighbours into
cells and rewrites their weights, and the rewritten weights are drained
in reverse order of cell finalization::

    res = Resampler(ResamplerConfig(neighbour_search="tree", pt_weight=0.0))
    for ev in events:
        res.push_event(ev)
    res.resample(seed_id=0, max_cell_diameter=math.inf)
    while (weights := res.next_weights()) is not None:
        ...

Event ids are the push order (0, 1, 2, ...) and are never reused.
"""

from __future__ import annotations

import logging
import math
from enum import Enum
from typing import Any, Mapping, Optional, Union

from .cell import Cell, redistribute
from .config import ResamplerConfig
from .distance import Distance, EuclWithScaledPt
from .errors import SeedNotFound, StructuralMismatch
from .models import Event, EventLayout
from .pdg import describe_layout
from .report import ResampleReport
from .search import get_search

logger = logging.getLogger(__name__)

EventLike = Union[Event, Mapping[str, Any]]


class ResamplerState(str, Enum):
    EMPTY = "empty"
    COLLECTING = "collecting"
    RESAMPLED = "resampled"
    DRAINING = "draining"


def _component_sums(vectors, n_weights: int) -> list[float]:
    return [math.fsum(w[k] for w in vectors) for k in range(n_weights)]


def _column_stats(events: list[Event], n_weights: int) -> tuple[list[float], list[int]]:
    sums = _component_sums([ev.weights for ev in events], n_weights)
    negative = [sum(1 for ev in events if ev.weights[k] < 0) for k in range(n_weights)]
    return sums, negative


class Resampler:
    """Single-threaded negative-weight cell resampler.

    Args:
        config: Search strategy, pt weight and redistribution policy.
        distance: Custom metric; overrides the one built from
            ``config.pt_weight``.
    """

    def __init__(
        self,
        config: Optional[ResamplerConfig] = None,
        *,
        distance: Optional[Distance] = None,
    ) -> None:
        self.config = config if config is not None else ResamplerConfig()
        self.distance = distance if distance is not None else EuclWithScaledPt(self.config.pt_weight)
        self._events: dict[int, Event] = {}
        self._consumed: set[int] = set()
        # event ids in the order their cells were finalized
        self._queue: list[int] = []
        self._next_id = 0
        self._layout: Optional[EventLayout] = None
        self._capacity = 0
        self._draining = False

    @classmethod
    def new(cls, config: Optional[ResamplerConfig] = None) -> "Resampler":
        return cls(config)

    def __repr__(self) -> str:
        return (
            f"Resampler(search={self.config.neighbour_search.value}, "
            f"events={len(self._events)}, state={self.state.value})"
        )

    # --- introspection ---

    @property
    def state(self) -> ResamplerState:
        if not self._events:
            return ResamplerState.EMPTY
        if self._queue:
            return ResamplerState.DRAINING if self._draining else ResamplerState.RESAMPLED
        return ResamplerState.COLLECTING

    @property
    def layout(self) -> Optional[EventLayout]:
        return self._layout

    @property
    def n_events(self) -> int:
        """Events currently held (pushed and not yet drained)."""
        return len(self._events)

    @property
    def n_pending(self) -> int:
        """Events pushed but not yet consumed by a resample pass."""
        return len(self._events) - len(self._consumed)

    @property
    def n_undrained(self) -> int:
        return len(self._queue)

    def __len__(self) -> int:
        return len(self._events)

    def get_event(self, event_id: int) -> Event:
        """The stored (canonicalized) event; raises KeyError once drained."""
        return self._events[event_id]

    def is_consumed(self, event_id: int) -> bool:
        return event_id in self._consumed

    # --- ingestion ---

    def reserve(self, capacity: int) -> None:
        """Capacity hint. Has no effect on results."""
        capacity = int(capacity)
        if capacity < 0:
            raise ValueError(f"capacity must be >= 0, got {capacity}")
        self._capacity = max(self._capacity, capacity)
        logger.debug("Reserved space for %d events", self._capacity)

    def push_event(self, event: EventLike) -> int:
        """Store a copy of ``event`` and return its id.

        The first event pushed fixes the particle layout and weight count
        for this resampler; later events must match it exactly.
        """
        if isinstance(event, Mapping):
            event = Event.from_dict(event)
        elif not isinstance(event, Event):
            raise TypeError(f"Expected Event or mapping, got {type(event).__name__}")

        snapshot = event.snapshot()
        layout = snapshot.layout
        if self._layout is not None and layout != self._layout:
            raise StructuralMismatch(
                f"Event {self._next_id} does not match the stored events: "
                f"{self._layout.describe_difference(layout)}"
            )
        if self._layout is None:
            self._layout = layout
            logger.debug(
                "Event layout: %s, %d weights",
                describe_layout(layout.types),
                layout.n_weights,
            )

        event_id = self._next_id
        self._events[event_id] = snapshot
        self._next_id += 1
        self._draining = False
        return event_id

    # --- resampling ---

    def _event_distance(self, i: int, j: int) -> float:
        return self.distance(self._events[i], self._events[j])

    def _pick_seed(self, seed_id: Optional[int], surviving: list[int]) -> int:
        if seed_id is not None:
            if seed_id in self._events and seed_id not in self._consumed:
                return seed_id
            logger.warning(
                "Seed event %s is not available, using event %d instead",
                seed_id,
                surviving[0],
            )
        return surviving[0]

    def _grow_cells(self, seed: int, surviving: list[int], max_cell_diameter: float) -> list[Cell]:
        index = get_search(self.config.neighbour_search, self._event_distance)
        index.extend(i for i in surviving if i != seed)

        cells: list[Cell] = []
        cell = Cell(seed)
        while True:
            neighbour = index.nearest(cell.seed)
            if neighbour is None:
                break
            index.remove(neighbour.event_id)
            if neighbour.distance > max_cell_diameter:
                logger.debug(
                    "Closing cell %d: seed %d, %d events, radius %.6g",
                    len(cells), cell.seed, len(cell), cell.radius,
                )
                cells.append(cell)
                cell = Cell(neighbour.event_id)
            else:
                cell.add(neighbour.event_id, neighbour.distance)
        cells.append(cell)
        return cells

    def resample(
        self,
        seed_id: Optional[int] = None,
        max_cell_diameter: float = math.inf,
    ) -> ResampleReport:
        """Resample every stored event not consumed by an earlier pass.

        Cells grow from ``seed_id`` (or the oldest surviving event) by
        repeatedly adding the nearest surviving event. An event further
        than ``max_cell_diameter`` from the cell seed closes the cell and
        seeds the next one. Within each cell every weight component is
        redistributed with the configured policy, conserving its sum.

        The call is all-or-nothing: weights are only written once every
        cell has been formed.

        Raises:
            SeedNotFound: there is no surviving event.
            ValueError: ``max_cell_diameter`` is negative or NaN.
        """
        max_cell_diameter = float(max_cell_diameter)
        if math.isnan(max_cell_diameter) or max_cell_diameter < 0:
            raise ValueError(f"max_cell_diameter must be >= 0, got {max_cell_diameter}")

        surviving = [i for i in self._events if i not in self._consumed]
        if not surviving:
            raise SeedNotFound(
                f"No events left to resample (requested seed: {seed_id})"
            )
        seed = self._pick_seed(seed_id, surviving)

        cells = self._grow_cells(seed, surviving, max_cell_diameter)

        n_weights = self._layout.n_weights if self._layout is not None else 0
        policy = self.config.redistribution
        members = [self._events[i] for i in surviving]
        sum_before, neg_before = _column_stats(members, n_weights)

        new_weights: dict[int, list[float]] = {}
        n_unbalanced = 0
        for cell in cells:
            vectors = [self._events[i].weights for i in cell.members]
            resampled = redistribute(vectors, policy)
            if _component_sums(vectors, n_weights) != _component_sums(resampled, n_weights):
                n_unbalanced += 1
            for i, weights in zip(cell.members, resampled):
                new_weights[i] = weights

        for i, weights in new_weights.items():
            self._events[i].weights[:] = weights
        for cell in cells:
            self._consumed.update(cell.members)
            self._queue.extend(cell.members)
        self._draining = False

        sum_after, neg_after = _column_stats(members, n_weights)
        report = ResampleReport(
            seed=seed,
            max_cell_diameter=max_cell_diameter,
            n_events=len(surviving),
            cell_sizes=[len(c) for c in cells],
            cell_members=[list(c.members) for c in cells],
            max_radius=max((c.radius for c in cells), default=0.0),
            sum_before=sum_before,
            sum_after=sum_after,
            n_negative_before=neg_before,
            n_negative_after=neg_after,
            n_unbalanced_cells=n_unbalanced,
        )
        if n_unbalanced:
            logger.warning("%d cells did not conserve their weight sums exactly", n_unbalanced)
        logger.info("Resampled %s", report.summary())
        return report

    # --- draining ---

    def next_weights(self) -> Optional[list[float]]:
        """Weights of the most recently finalized, not yet drained event.

        Returns None once every resampled event has been drained. Each
        event is returned at most once and its slot is released.
        """
        if not self._queue:
            return None
        event_id = self._queue.pop()
        event = self._events.pop(event_id)
        self._consumed.discard(event_id)
        self._draining = True
        return list(event.weights)

    def drain(self):
        """Iterate over :meth:`next_weights` until exhausted."""
        while True:
            weights = self.next_weights()
            if weights is None:
                return
            yield weights

    # --- teardown ---

    def free(self) -> None:
        """Release all storage. Undrained weights are discarded."""
        if self._queue:
            logger.debug("Discarding %d undrained events", len(self._queue))
        self._events.clear()
        self._consumed.clear()
        self._queue.clear()
        self._draining = False

    def __enter__(self) -> "Resampler":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.free()
