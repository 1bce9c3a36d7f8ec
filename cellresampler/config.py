"""Resampler configuration."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping


class Search(str, Enum):
    """Nearest-neighbour search strategy."""

    TREE = "tree"
    NAIVE = "naive"

    # Linear scan, kept under its descriptive name too
    BRUTE_FORCE = "naive"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str) and value.replace("-", "_") in {"brute_force", "bruteforce"}:
            return cls.NAIVE
        return None


class Redistribution(str, Enum):
    """How the net weight of a cell is shared among its members."""

    MEAN = "mean"
    ABSOLUTE = "absolute"


def _lower(value: Any) -> Any:
    return value.lower() if isinstance(value, str) else value


def check_pt_weight(pt_weight: float) -> float:
    value = float(pt_weight)
    if not math.isfinite(value) or value < 0:
        raise ValueError(f"pt_weight must be finite and >= 0, got {pt_weight!r}")
    return value


@dataclass(frozen=True)
class ResamplerConfig:
    """Options for a :class:`~cellresampler.resampler.Resampler`.

    Attributes:
        neighbour_search: Nearest-neighbour search algorithm.
        pt_weight: Extra contribution to the distance proportional to the
            difference in transverse momentum (tau of arXiv:2109.07851).
            0.0 disables it.
        redistribution: Weight redistribution policy within a cell.
    """

    neighbour_search: Search = Search.TREE
    pt_weight: float = 0.0
    redistribution: Redistribution = Redistribution.MEAN

    def __post_init__(self) -> None:
        # frozen: go through object.__setattr__ for coercion
        try:
            search = Search(_lower(self.neighbour_search))
        except ValueError:
            raise ValueError(
                f"Unknown neighbour search: {self.neighbour_search!r} "
                f"(expected one of {sorted({s.value for s in Search})})"
            ) from None
        try:
            policy = Redistribution(_lower(self.redistribution))
        except ValueError:
            raise ValueError(
                f"Unknown redistribution policy: {self.redistribution!r} "
                f"(expected one of {[r.value for r in Redistribution]})"
            ) from None
        object.__setattr__(self, "neighbour_search", search)
        object.__setattr__(self, "redistribution", policy)
        object.__setattr__(self, "pt_weight", check_pt_weight(self.pt_weight))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ResamplerConfig":
        known = {"neighbour_search", "pt_weight", "redistribution"}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown config keys: {unknown}")
        return cls(**dict(data))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "neighbour_search": self.neighbour_search.value,
            "pt_weight": self.pt_weight,
            "redistribution": self.redistribution.value,
        }
