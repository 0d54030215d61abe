from dataclasses import dataclass, replace
from typing import Optional, Sequence

import numpy as np


@dataclass(frozen=True)
class RadiusModel:
    """Weight -> display radius.

    Two forms exist and exactly one is authoritative:

    - fitted: square-root scale from [min_weight, max_weight] onto [min_radius, max_radius],
    - coefficient: ``radius = k * sqrt(weight)``, installed once a space-filling pack of all
      circles has been computed. It then holds for every view so sizes stay comparable.

    Every radius is at least ``floor``. Non-finite or non-positive weights get the floor.
    """

    min_weight: float = float("nan")
    max_weight: float = float("nan")
    min_radius: float = 6.0
    max_radius: float = 28.0
    floor: float = 2.0
    coefficient: Optional[float] = None

    @classmethod
    def fit(
        cls,
        weights: Sequence[float],
        min_radius: float = 6.0,
        max_radius: float = 28.0,
        floor: float = 2.0,
    ) -> "RadiusModel":
        w = np.asarray(weights, float)
        w = w[np.isfinite(w) & (w > 0)]
        if w.size == 0:
            return cls(min_radius=min_radius, max_radius=max_radius, floor=floor)
        return cls(
            min_weight=float(w.min()),
            max_weight=float(w.max()),
            min_radius=min_radius,
            max_radius=max_radius,
            floor=floor,
        )

    @property
    def uses_coefficient(self) -> bool:
        return self.coefficient is not None

    def with_coefficient(self, k: Optional[float]) -> "RadiusModel":
        if k is None or not np.isfinite(k) or k <= 0:
            return self
        return replace(self, coefficient=float(k))

    def radii(self, weights) -> np.ndarray:
        w = np.atleast_1d(np.asarray(weights, float))
        valid = np.isfinite(w) & (w > 0)
        root = np.sqrt(np.where(valid, w, 0.0))

        if self.coefficient is not None:
            r = self.coefficient * root
        elif not np.isfinite(self.min_weight):
            r = np.zeros_like(w)
        else:
            lo, hi = np.sqrt(self.min_weight), np.sqrt(self.max_weight)
            if hi > lo:
                t = (root - lo) / (hi - lo)
            else:
                t = np.full_like(w, 0.5)
            r = self.min_radius + t * (self.max_radius - self.min_radius)

        r = np.where(valid, r, self.floor)
        return np.maximum(self.floor, r)

    def radius(self, weight: float) -> float:
        return float(self.radii([weight])[0])

    __call__ = radius


def coefficient_from_pack(weights, radii) -> Optional[float]:
    """Median of ``radius / sqrt(weight)`` over circles with a positive finite weight."""
    w = np.asarray(weights, float)
    r = np.asarray(radii, float)
    ok = np.isfinite(w) & (w > 0) & np.isfinite(r)
    if not np.any(ok):
        return None
    return float(np.median(r[ok] / np.sqrt(w[ok])))
