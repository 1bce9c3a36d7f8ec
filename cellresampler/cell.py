"""
Cells and weight redistribution.

A cell is a set of neighbouring events whose weights are replaced
together. Every policy here keeps the sum of each weight component over
the cell unchanged; components are treated independently. The
sums are exact as correctly rounded `math.fsum` results.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Callable, Sequence

from .config import Redistribution

# Maps the original values of one weight component to the new ones.
Policy = Callable[[Sequence[float]], list[float]]

# Upper bound on single-ulp corrections in balance()
MAX_NUDGES = 64


@dataclass
class Cell:
    """Events consumed together in one resample step.

    Attributes:
        seed: Id of the event the cell grew from.
        members: Event ids in joining order, seed first.
        radius: Largest distance of a member from the seed.
    """

    seed: int
    members: list[int] = field(default_factory=list)
    radius: float = 0.0

    def __post_init__(self) -> None:
        if not self.members:
            self.members = [self.seed]

    def __len__(self) -> int:
        return len(self.members)

    def add(self, event_id: int, distance: float) -> None:
        self.members.append(event_id)
        if distance > self.radius:
            self.radius = distance


def balance(column: list[float], weights: Sequence[float]) -> list[float]:
    """Make ``fsum(column) == fsum(weights)`` hold exactly.

    The largest entry absorbs the rounding left over by the policy, then
    is moved one ulp at a time until the correctly rounded sums agree.
    """
    target = math.fsum(weights)
    if not column or not math.isfinite(target):
        return column
    j = max(range(len(column)), key=lambda i: (abs(column[i]), i))
    column[j] = target - math.fsum(column[:j] + column[j + 1:])
    for _ in range(MAX_NUDGES):
        got = math.fsum(column)
        if got == target:
            break
        column[j] = math.nextafter(column[j], math.inf if got < target else -math.inf)
    return column


def mean_weights(weights: Sequence[float]) -> list[float]:
    mean = math.fsum(weights) / len(weights)
    return balance([mean] * len(weights), weights)


def absolute_weights(weights: Sequence[float]) -> list[float]:
    """``w_i -> |w_i| * sum(w) / sum(|w|)``.

    All members end up with the sign of the cell sum and relative sizes
    are kept. An all-zero component falls back to the mean.
    """
    norm = math.fsum(abs(w) for w in weights)
    if norm == 0:
        return mean_weights(weights)
    scale = math.fsum(weights) / norm
    return balance([abs(w) * scale for w in weights], weights)


POLICIES: dict[Redistribution, Policy] = {
    Redistribution.MEAN: mean_weights,
    Redistribution.ABSOLUTE: absolute_weights,
}


def redistribute(
    weight_vectors: Sequence[Sequence[float]],
    policy: Redistribution | str = Redistribution.MEAN,
) -> list[list[float]]:
    """New weight vectors for the members of one cell.

    ``weight_vectors[i][k]`` is component ``k`` of member ``i``; the
    result has the same shape.
    """
    if not weight_vectors:
        return []
    fn = POLICIES[Redistribution(policy)]
    n_components = len(weight_vectors[0])
    out: list[list[float]] = [[0.0] * n_components for _ in weight_vectors]
    for k in range(n_components):
        column = fn([w[k] for w in weight_vectors])
        for i, value in enumerate(column):
            out[i][k] = value
    return out
