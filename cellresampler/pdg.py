"""Human-readable labels for particle type ids.

Type ids are opaque to the resampler, but callers usually pass PDG ids
(or generator conventions such as 90 for jets). Labels are only used for
reports and the CLI.

- If scikit-hep "particle" is installed, it names valid PDG ids.
- Otherwise, fall back to a small built-in map.
"""

from __future__ import annotations

from typing import Iterable

_FALLBACK_NAMES = {
    11: "e-",
    -11: "e+",
    13: "mu-",
    -13: "mu+",
    15: "tau-",
    -15: "tau+",
    12: "nu_e",
    -12: "nu_ebar",
    14: "nu_mu",
    -14: "nu_mubar",
    16: "nu_tau",
    -16: "nu_taubar",
    21: "g",
    22: "gamma",
    23: "Z0",
    24: "W+",
    -24: "W-",
    25: "H",
}

# Not PDG particles, but common generator conventions for clustered objects
_PSEUDO_NAMES = {
    81: "jet",
    90: "jet",
}

try:
    from particle import Particle as _Particle  # type: ignore
except ImportError:  # pragma: no cover
    _Particle = None


def type_label(type_id: int) -> str:
    if type_id in _PSEUDO_NAMES:
        return _PSEUDO_NAMES[type_id]
    if _Particle is not None:
        try:
            return _Particle.from_pdgid(type_id).name
        except Exception:
            pass
    return _FALLBACK_NAMES.get(type_id, str(type_id))


def describe_layout(types: Iterable[tuple[int, int]]) -> str:
    """E.g. ``"2 x jet (90)"`` for a dijet layout."""
    parts = [f"{n} x {type_label(tid)} ({tid})" for tid, n in types]
    return ", ".join(parts) if parts else "no particles"
