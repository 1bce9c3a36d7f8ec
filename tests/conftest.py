"""Test fixtures.

Events are generated in code from a seeded ``random.Random`` so the
suite needs no fixture files.
"""

from __future__ import annotations

import math
import random

import pytest

from cellresampler import Event, EventBuilder

JET = 90
PHOTON = 22

DIJET = [
    (
        -1.0,
        [
            [0.86042412975e02, 0.18299527188e02, 0.50776693328e02, -0.67008593105e02],
            [0.80026513931e03, -0.18299527188e02, -0.50776693328e02, -0.79844295220e03],
        ],
    ),
    (
        1.0,
        [
            [0.49452408437e02, 0.20789583719e02, -0.23718791628e02, 0.38088749425e02],
            [0.10452662667e03, -0.20789583719e02, 0.23718791628e02, 0.99654542370e02],
        ],
    ),
]


def dijet_event(weight: float, momenta) -> Event:
    return EventBuilder().add_weight(weight).add_type_set(JET, momenta).build()


def random_momentum(rng: random.Random) -> list[float]:
    px = rng.gauss(0.0, 50.0)
    py = rng.gauss(0.0, 50.0)
    pz = rng.gauss(0.0, 200.0)
    return [math.sqrt(px * px + py * py + pz * pz), px, py, pz]


def random_event(
    rng: random.Random,
    *,
    n_weights: int = 1,
    negative_fraction: float = 0.3,
    layout=((JET, 2),),
) -> Event:
    builder = EventBuilder()
    central = rng.uniform(0.5, 1.5)
    if rng.random() < negative_fraction:
        central = -central
    builder.add_weight(central)
    for _ in range(n_weights - 1):
        builder.add_weight(central * rng.uniform(0.8, 1.2))
    for type_id, n in layout:
        builder.add_type_set(type_id, [random_momentum(rng) for _ in range(n)])
    return builder.build()


def line_event(pz: float, weight: float = 1.0) -> Event:
    """One photon along the z axis; distances between such events are |dz|."""
    return (
        EventBuilder()
        .add_weight(weight)
        .add_outgoing(PHOTON, [abs(pz), 0.0, 0.0, pz])
        .build()
    )


@pytest.fixture
def dijet_events() -> list[Event]:
    return [dijet_event(w, moms) for w, moms in DIJET]


@pytest.fixture
def make_events():
    def _make(n: int, seed: int = 1, **kwargs) -> list[Event]:
        rng = random.Random(seed)
        return [random_event(rng, **kwargs) for _ in range(n)]

    return _make
