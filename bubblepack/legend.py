from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from bubblepack.natural_breaks import BreakMethod, classify
from bubblepack.radius import RadiusModel


@dataclass(frozen=True)
class LegendEntry:
    value: float
    radius: float


def nice_value(value: float) -> float:
    """Round to one significant digit (12345 -> 10000, 0.0372 -> 0.04)."""
    if not np.isfinite(value) or value <= 0:
        return float(value)
    return float(f"{value:.1g}")


def legend_values(weights: Sequence[float], n_classes: int = 3, nice: bool = True) -> List[float]:
    """Representative magnitudes: the upper limit of every natural-breaks class."""
    result = classify(weights, n_classes)
    boundaries = result.boundaries
    if boundaries.size == 0:
        return []
    if result.method == BreakMethod.distinct or boundaries.size == 1:
        uppers = boundaries
    else:
        uppers = boundaries[1:]
    values = [nice_value(v) if nice else float(v) for v in uppers]
    return list(dict.fromkeys(v for v in values if v > 0))


def legend_entries(
    model: RadiusModel, weights: Sequence[float], n_classes: int = 3, nice: bool = True
) -> List[LegendEntry]:
    """Legend values with their display radii under the given radius model."""
    values = legend_values(weights, n_classes, nice)
    radii = model.radii(values) if values else []
    return [LegendEntry(v, float(r)) for v, r in zip(values, radii)]
