"""cellresampler: negative-weight cancellation by cell resampling."""

from __future__ import annotations

__version__ = "0.1.0"

from .cell import Cell, redistribute
from .config import Redistribution, ResamplerConfig, Search
from .distance import Distance, EuclWithScaledPt, event_distance
from .errors import ResamplingError, SeedNotFound, StructuralMismatch
from .models import Event, EventBuilder, EventLayout, FourMomentum, ParticleTypeGroup
from .report import ResampleReport
from .resampler import Resampler, ResamplerState

__all__ = [
    "__version__",
    "Cell",
    "redistribute",
    "Redistribution",
    "ResamplerConfig",
    "Search",
    "Distance",
    "EuclWithScaledPt",
    "event_distance",
    "ResamplingError",
    "SeedNotFound",
    "StructuralMismatch",
    "Event",
    "EventBuilder",
    "EventLayout",
    "FourMomentum",
    "ParticleTypeGroup",
    "ResampleReport",
    "Resampler",
    "ResamplerState",
]
