"""Summary of a resample pass."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class ResampleReport:
    """What one call to ``Resampler.resample`` did.

    Per-component lists are indexed like the event weight vectors.
    """

    seed: int
    max_cell_diameter: float
    n_events: int = 0
    cell_sizes: list[int] = field(default_factory=list)
    # event ids per cell, in finalization order
    cell_members: list[list[int]] = field(default_factory=list)
    max_radius: float = 0.0
    sum_before: list[float] = field(default_factory=list)
    sum_after: list[float] = field(default_factory=list)
    n_negative_before: list[int] = field(default_factory=list)
    n_negative_after: list[int] = field(default_factory=list)
    # cells where some component sum changed
    n_unbalanced_cells: int = 0

    @property
    def n_cells(self) -> int:
        return len(self.cell_sizes)

    @property
    def largest_cell(self) -> int:
        return max(self.cell_sizes, default=0)

    def is_conserved(self) -> bool:
        """True if every cell kept each component sum exactly.

        Sums are compared as ``math.fsum`` results, i.e. correctly rounded.
        """
        return self.n_unbalanced_cells == 0

    def totals_close(self, rel_tol: float = 1e-9, abs_tol: float = 1e-12) -> bool:
        """Compare the pass-wide component sums.

        Each cell is exact on its own, but the totals over several cells
        can still differ in the last bits, hence the tolerance.
        """
        return all(
            math.isclose(a, b, rel_tol=rel_tol, abs_tol=abs_tol)
            for a, b in zip(self.sum_before, self.sum_after)
        )

    def summary(self) -> str:
        """One-line summary."""
        neg_b = self.n_negative_before[0] if self.n_negative_before else 0
        neg_a = self.n_negative_after[0] if self.n_negative_after else 0
        return (
            f"{self.n_events} events in {self.n_cells} cells, "
            f"negative weights {neg_b} -> {neg_a}"
        )

    def __str__(self) -> str:
        lines = [f"Resampling: {self.summary()}"]
        diameter = "unlimited" if math.isinf(self.max_cell_diameter) else f"{self.max_cell_diameter:.6g}"
        lines.append(f"  seed event:          {self.seed}")
        lines.append(f"  max cell diameter:   {diameter}")
        lines.append(f"  largest cell:        {self.largest_cell} events")
        lines.append(f"  largest cell radius: {self.max_radius:.6g}")
        for k, (b, a) in enumerate(zip(self.sum_before, self.sum_after)):
            lines.append(f"  weight[{k}] sum:       {b:.10g} -> {a:.10g}")
            if k >= 9 and len(self.sum_before) > 10:
                lines.append(f"  ... and {len(self.sum_before) - 10} more weights")
                break
        return "\n".join(lines)

    def to_dict(self) -> dict:
        diameter: Optional[float] = None if math.isinf(self.max_cell_diameter) else self.max_cell_diameter
        return {
            "seed": self.seed,
            "max_cell_diameter": diameter,
            "n_events": self.n_events,
            "n_cells": self.n_cells,
            "cell_sizes": list(self.cell_sizes),
            "max_radius": self.max_radius,
            "sum_before": list(self.sum_before),
            "sum_after": list(self.sum_after),
            "n_negative_before": list(self.n_negative_before),
            "n_negative_after": list(self.n_negative_after),
            "n_unbalanced_cells": self.n_unbalanced_cells,
            "is_conserved": self.is_conserved(),
        }
