"""
Core event data model for cellresampler.

Events are a weight vector plus final-state momenta grouped by particle
type. The type id is an opaque integer chosen by the caller; it is only
ever compared for equality. No physics validation happens here (no
on-shell or energy-sign checks), only the structural shape is enforced.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence, Union

from .errors import StructuralMismatch


@dataclass(frozen=True)
class FourMomentum:
    """A four-momentum ``(E, px, py, pz)``.

    Components are opaque reals; the unit is whatever the caller uses.
    """

    energy: float
    px: float
    py: float
    pz: float

    @classmethod
    def from_sequence(cls, seq: Sequence[float]) -> "FourMomentum":
        """Build from a sequence ordered ``[E, px, py, pz]``."""
        if isinstance(seq, FourMomentum):
            return seq
        values = list(seq)
        if len(values) != 4:
            raise StructuralMismatch(
                f"A four-momentum needs 4 components, got {len(values)}"
            )
        return cls(*(float(v) for v in values))

    @property
    def pt(self) -> float:
        """Transverse momentum."""
        return math.sqrt(self.px**2 + self.py**2)

    @property
    def p3(self) -> float:
        """Magnitude of the 3-momentum."""
        return math.sqrt(self.px**2 + self.py**2 + self.pz**2)

    def as_tuple(self) -> tuple[float, float, float, float]:
        return (self.energy, self.px, self.py, self.pz)


MomentumLike = Union[FourMomentum, Sequence[float]]


@dataclass(frozen=True)
class ParticleTypeGroup:
    """All particles of one type in an event.

    Attributes:
        type_id: Caller-defined particle type identifier.
        momenta: Momenta of the particles of this type.
    """

    type_id: int
    momenta: tuple[FourMomentum, ...] = ()

    def __len__(self) -> int:
        return len(self.momenta)

    def __iter__(self):
        return iter(self.momenta)

    def canonical(self) -> "ParticleTypeGroup":
        # Hardest particle first; ties keep the caller's order.
        ordered = sorted(self.momenta, key=lambda p: -p.pt)
        return ParticleTypeGroup(self.type_id, tuple(ordered))


@dataclass(frozen=True)
class EventLayout:
    """Hashable structural signature of an event.

    Two events can be compared or merged only if their layouts agree.
    ``types`` holds ``(type_id, n_particles)`` pairs in event order.
    """

    types: tuple[tuple[int, int], ...]
    n_weights: int

    def same_particles(self, other: "EventLayout") -> bool:
        return self.types == other.types

    def describe_difference(self, other: "EventLayout") -> str:
        if len(self.types) != len(other.types):
            return (
                f"expected {len(self.types)} particle types, "
                f"got {len(other.types)}"
            )
        for (tid_a, n_a), (tid_b, n_b) in zip(self.types, other.types):
            if tid_a != tid_b:
                return f"expected particle type {tid_a}, got {tid_b}"
            if n_a != n_b:
                return (
                    f"expected {n_a} particles of type {tid_a}, got {n_b}"
                )
        if self.n_weights != other.n_weights:
            return f"expected {self.n_weights} weights, got {other.n_weights}"
        return "layouts agree"


@dataclass
class Event:
    """A single weighted event.

    Attributes:
        type_sets: Particle groups, at most one per type id.
        weights: Event weights (central value and variations). This is
            the only part the resampler mutates.
    """

    type_sets: tuple[ParticleTypeGroup, ...] = ()
    weights: list[float] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.type_sets = tuple(self.type_sets)
        seen: set[int] = set()
        for group in self.type_sets:
            if group.type_id in seen:
                raise StructuralMismatch(
                    f"Particle type {group.type_id} appears more than once in an event"
                )
            seen.add(group.type_id)

    @property
    def weight(self) -> float:
        """Primary event weight."""
        return self.weights[0] if self.weights else 0.0

    @property
    def n_particles(self) -> int:
        return sum(len(g) for g in self.type_sets)

    @property
    def layout(self) -> EventLayout:
        return EventLayout(
            types=tuple((g.type_id, len(g)) for g in self.type_sets),
            n_weights=len(self.weights),
        )

    def snapshot(self) -> "Event":
        """Independent copy in canonical form.

        Groups are sorted by type id and momenta by descending pt, so
        that positional matching between events pairs like with like.
        """
        groups = sorted((g.canonical() for g in self.type_sets), key=lambda g: g.type_id)
        return Event(type_sets=tuple(groups), weights=[float(w) for w in self.weights])

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Event":
        """Build from ``{"type_sets": [{"type_id", "momenta"}], "weights"}``.

        ``pid`` is accepted as an alias of ``type_id``.
        """
        builder = EventBuilder()
        for w in data.get("weights", []):
            builder.add_weight(w)
        for ts in data.get("type_sets", []):
            if "type_id" in ts:
                type_id = ts["type_id"]
            elif "pid" in ts:
                type_id = ts["pid"]
            else:
                raise StructuralMismatch("Type set without 'type_id'")
            builder.add_type_set(int(type_id), ts.get("momenta", []))
        return builder.build()

    def to_dict(self) -> dict:
        return {
            "type_sets": [
                {"type_id": g.type_id, "momenta": [list(p.as_tuple()) for p in g.momenta]}
                for g in self.type_sets
            ],
            "weights": list(self.weights),
        }


class EventBuilder:
    """Incremental event construction.

    Particles sharing a type id are collected into one group, in the
    order they are added. Groups keep the order of first appearance.
    """

    def __init__(self) -> None:
        self._weights: list[float] = []
        self._groups: dict[int, list[FourMomentum]] = {}

    def add_weight(self, weight: float) -> "EventBuilder":
        self._weights.append(float(weight))
        return self

    def add_outgoing(self, type_id: int, momentum: MomentumLike) -> "EventBuilder":
        self._groups.setdefault(int(type_id), []).append(
            FourMomentum.from_sequence(momentum)
        )
        return self

    def add_type_set(self, type_id: int, momenta: Iterable[MomentumLike]) -> "EventBuilder":
        group = self._groups.setdefault(int(type_id), [])
        group.extend(FourMomentum.from_sequence(p) for p in momenta)
        return self

    def build(self) -> Event:
        return Event(
            type_sets=tuple(
                ParticleTypeGroup(tid, tuple(moms)) for tid, moms in self._groups.items()
            ),
            weights=list(self._weights),
        )
