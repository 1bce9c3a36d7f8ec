"""
Phase-space distance between events.

The default metric follows arXiv:2109.07851: particles are matched by
type and by position within their (pt-ordered) type group, and each pair
contributes the squared 3-momentum difference plus ``tau^2`` times the
squared difference in transverse momentum. The event distance is the
square root of the sum, i.e. a Euclidean norm in a fixed feature space.
That makes it a true metric, which the vantage-point tree relies on for
pruning.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod

from .config import check_pt_weight
from .errors import StructuralMismatch
from .models import Event


class Distance(ABC):
    """A metric on structurally compatible events."""

    @abstractmethod
    def __call__(self, a: Event, b: Event) -> float:
        ...


def check_compatible(a: Event, b: Event) -> None:
    la, lb = a.layout, b.layout
    if not la.same_particles(lb):
        raise StructuralMismatch(
            f"Cannot compare events: {la.describe_difference(lb)}"
        )


class EuclWithScaledPt(Distance):
    """Euclidean momentum distance with an extra transverse-momentum term.

    Args:
        pt_weight: Scale of the pt difference term. 0.0 gives the plain
            Euclidean distance of the 3-momenta.
    """

    def __init__(self, pt_weight: float = 0.0) -> None:
        self.pt_weight = check_pt_weight(pt_weight)

    def __repr__(self) -> str:
        return f"EuclWithScaledPt(pt_weight={self.pt_weight!r})"

    def particle_distance_sq(self, p, q) -> float:
        dx = p.px - q.px
        dy = p.py - q.py
        dz = p.pz - q.pz
        d2 = dx * dx + dy * dy + dz * dz
        if self.pt_weight:
            dpt = self.pt_weight * (p.pt - q.pt)
            d2 += dpt * dpt
        return d2

    def __call__(self, a: Event, b: Event) -> float:
        check_compatible(a, b)
        total = 0.0
        for ga, gb in zip(a.type_sets, b.type_sets):
            for p, q in zip(ga.momenta, gb.momenta):
                total += self.particle_distance_sq(p, q)
        return math.sqrt(total)


def event_distance(a: Event, b: Event, pt_weight: float = 0.0) -> float:
    """Distance between two events with the default metric."""
    return EuclWithScaledPt(pt_weight)(a, b)
