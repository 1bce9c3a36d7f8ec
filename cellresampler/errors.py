"""Exceptions raised by cellresampler.

Every error is local to the call that raised it: stored events and
already redistributed weights are left untouched.
"""

from __future__ import annotations


class ResamplingError(ValueError):
    """Base class for resampling errors."""


class StructuralMismatch(ResamplingError):
    """An event's particle layout or weight count does not fit.

    Raised when pushing an event whose particle types, per-type
    multiplicities or number of weights differ from the events already
    stored, and when a distance is requested between incompatible events.
    """


class SeedNotFound(ResamplingError):
    """No surviving event is available to seed a resample pass."""
