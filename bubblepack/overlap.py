from dataclasses import dataclass
from typing import Sequence, Tuple, Union

import numpy as np

from bubblepack.data import Bounds, clamp_into
from bubblepack.spiral import GOLDEN_ANGLE


@dataclass
class RelaxResult:
    positions: np.ndarray
    iterations: int
    converged: bool


def _as_box(bounds: Union[Bounds, np.ndarray, Sequence[float]], n: int) -> np.ndarray:
    if isinstance(bounds, Bounds):
        return bounds.as_array()
    B = np.asarray(bounds, float)
    if B.shape not in ((4,), (n, 4)):
        raise ValueError(f"Bounds must have shape (4,) or ({n}, 4), got {B.shape}.")
    return B


def overlapping_pairs(
    radii: Sequence[float], positions: np.ndarray, padding: float = 0.0, tol: float = 1e-6
) -> np.ndarray:
    """Index pairs (i, j), i < j, whose centers are closer than r_i + r_j + padding - tol."""
    r = np.asarray(radii, float)
    P = np.asarray(positions, float)
    n = len(r)
    if n <= 1:
        return np.empty((0, 2), int)
    iu, ju = np.triu_indices(n, k=1)
    dist = np.hypot(P[iu, 0] - P[ju, 0], P[iu, 1] - P[ju, 1])
    mask = dist < r[iu] + r[ju] + padding - tol
    return np.stack([iu[mask], ju[mask]], axis=1)


def relax(
    radii: Sequence[float],
    positions: np.ndarray,
    bounds: Union[Bounds, np.ndarray, Sequence[float]],
    max_iterations: int = 200,
    padding: float = 0.0,
    tol: float = 1e-6,
) -> RelaxResult:
    """
    Iterative pairwise de-overlap inside rectangular bounds.

    Every pass looks at all unordered pairs. A pair closer than r_i + r_j + padding is pushed
    apart along the line joining the centers, each circle moving half of the overlap.
    Coincident centers are split along a fixed per-pair direction. Afterwards every circle is
    clamped into its bounds (one box for all circles, or one per circle). The loop stops when
    a pass moves nothing, or after max_iterations.

    This is O(n^2) per pass, which is fine for groups of a few dozen circles and acceptable
    for a few hundred.
    """
    r = np.asarray(radii, float)
    P = np.asarray(positions, float).copy()
    n = len(r)
    box = _as_box(bounds, n)
    if n == 0:
        return RelaxResult(P, 0, True)

    P = clamp_into(P, r, box)
    if n == 1:
        return RelaxResult(P, 0, True)

    iu, ju = np.triu_indices(n, k=1)
    theta = np.arange(len(iu)) * GOLDEN_ANGLE
    fallback_u = np.stack([np.cos(theta), np.sin(theta)], axis=1)

    for it in range(1, max_iterations + 1):
        dvec = P[iu] - P[ju]
        dist = np.hypot(dvec[:, 0], dvec[:, 1])
        need = (r[iu] + r[ju] + padding) - dist
        mask = need > tol
        if not np.any(mask):
            return RelaxResult(P, it - 1, True)

        im, jm = iu[mask], ju[mask]
        dvm, distm, needm = dvec[mask], dist[mask], need[mask]

        u = fallback_u[mask].copy()
        nz = distm >= 1e-12
        u[nz] = dvm[nz] / distm[nz][:, None]

        half = (0.5 * needm)[:, None] * u
        step = np.zeros_like(P)
        np.add.at(step, im, half)
        np.add.at(step, jm, -half)

        P_new = clamp_into(P + step, r, box)
        moved = float(np.max(np.hypot(*(P_new - P).T)))
        P = P_new
        if moved <= tol:
            return RelaxResult(P, it, False)

    converged = overlapping_pairs(r, P, padding, tol).size == 0
    return RelaxResult(P, max_iterations, converged)
