from dataclasses import dataclass, field
from math import pi, sqrt
from typing import Optional, Sequence, Set, Tuple

import numpy as np

from bubblepack.data import Bounds, clamp_into

GOLDEN_ANGLE = pi * (3.0 - sqrt(5.0))  # ~137.5 degrees


@dataclass
class GreedyPlacement:
    ids: Tuple[str, ...]
    positions: np.ndarray
    fallback_ids: Set[str] = field(default_factory=set)


def _is_clear(xy: np.ndarray, r: float, placed_P: np.ndarray, placed_r: np.ndarray, clearance: float) -> bool:
    if len(placed_r) == 0:
        return True
    d = np.hypot(placed_P[:, 0] - xy[0], placed_P[:, 1] - xy[1])
    return bool(np.all(d > placed_r + r + clearance))


def _spiral_candidates(center: np.ndarray, steps: int, scale: float) -> np.ndarray:
    s = np.arange(steps, dtype=float)
    rho = scale * np.sqrt(s)
    theta = s * GOLDEN_ANGLE
    return center + np.stack([rho * np.cos(theta), rho * np.sin(theta)], axis=1)


def place_greedy(
    ids: Sequence[str],
    radii: Sequence[float],
    center: Optional[Sequence[float]] = None,
    bounds: Optional[Bounds] = None,
    clearance: float = 0.25,
    spiral_steps: int = 720,
    tries_per_circle: int = 60,
    random_state: Optional[int] = 0,
) -> GreedyPlacement:
    """
    Greedy placement of circles around a center, largest first.

    For each circle:

    1. walk an outward golden-angle spiral (radius ~ sqrt(step), reaching the half diagonal
       of the bounds at the last step), clamping candidates into the bounds; take the first
       one clear of every placed circle by r_i + r_j + clearance,
    2. else sample uniformly inside the bounds with the same test (tries_per_circle * n tries),
    3. else push the circle out from its nearest placed neighbour, along the line joining
       their centers, and clamp. Such circles are reported in `fallback_ids`; they may touch
       or overlap their neighbours.

    Always terminates with exactly one position per circle.
    """
    ids = tuple(ids)
    r = np.asarray(radii, float)
    n = len(r)
    if bounds is None:
        extent = 2.0 * float(np.sum(r)) if n else 1.0
        c = np.zeros(2) if center is None else np.asarray(center, float)
        bounds = Bounds(c[0] - extent, c[1] - extent, c[0] + extent, c[1] + extent)
    box = bounds.as_array()
    center = np.asarray(bounds.center if center is None else center, float)

    P = np.zeros((n, 2), float)
    fallback: Set[str] = set()
    if n == 0:
        return GreedyPlacement(ids, P, fallback)

    rng = np.random.RandomState(random_state)
    half_diag = 0.5 * float(np.hypot(bounds.width, bounds.height))
    steps = max(1, int(spiral_steps))
    scale = half_diag / sqrt(max(1, steps - 1))
    spiral = _spiral_candidates(center, steps, scale)
    tries = max(1, int(tries_per_circle) * n)

    order = np.argsort(-r, kind="stable")
    placed = []
    for idx in order:
        ri = r[idx]
        placed_P = P[placed]
        placed_r = r[placed]

        cand = clamp_into(spiral, np.full(steps, ri), box)
        found = None
        for xy in cand:
            if _is_clear(xy, ri, placed_P, placed_r, clearance):
                found = xy
                break

        if found is None:
            lo = box[:2] + ri
            hi = np.maximum(box[2:] - ri, lo)
            for _ in range(tries):
                xy = lo + rng.random_sample(2) * (hi - lo)
                if _is_clear(xy, ri, placed_P, placed_r, clearance):
                    found = xy
                    break

        if found is None:
            d = np.hypot(placed_P[:, 0] - center[0], placed_P[:, 1] - center[1]) - placed_r
            j = int(np.argmin(d))
            u = center - placed_P[j]
            norm = float(np.hypot(*u))
            if norm < 1e-12:
                theta = len(placed) * GOLDEN_ANGLE
                u = np.array([np.cos(theta), np.sin(theta)])
            else:
                u = u / norm
            xy = placed_P[j] + u * (placed_r[j] + ri + clearance)
            found = clamp_into(xy[None, :], np.array([ri]), box)[0]
            fallback.add(ids[idx])

        P[idx] = found
        placed.append(idx)

    return GreedyPlacement(ids, P, fallback)
