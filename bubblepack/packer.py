# ============================================================
# Sibling circle packing
# - front-chain packing: each circle tangent to two circles of the current front
# - enclosing circle via a convex min-max fit (scipy)
# - tight per-group packs (footprint estimate + seed layout)
# - space-filling pack of every circle into a rectangle ("all" view)
# ============================================================

from dataclasses import dataclass
from math import sqrt
from typing import Optional, Sequence, Tuple

import numpy as np
from scipy.optimize import minimize

from bubblepack.data import Bounds
from bubblepack.radius import coefficient_from_pack

# ---------------- front-chain helpers ----------------


def _place(P: np.ndarray, r: np.ndarray, p: int, q: int, c: int):
    """Put circle c tangent to circles p and q (on the left of the q -> p direction)."""
    dx = P[p, 0] - P[q, 0]
    dy = P[p, 1] - P[q, 1]
    d2 = dx * dx + dy * dy
    if d2 > 0:
        a2 = (r[q] + r[c]) ** 2
        b2 = (r[p] + r[c]) ** 2
        if a2 > b2:
            x = (d2 + b2 - a2) / (2 * d2)
            y = sqrt(max(0.0, b2 / d2 - x * x))
            P[c, 0] = P[p, 0] - x * dx - y * dy
            P[c, 1] = P[p, 1] - x * dy + y * dx
        else:
            x = (d2 + a2 - b2) / (2 * d2)
            y = sqrt(max(0.0, a2 / d2 - x * x))
            P[c, 0] = P[q, 0] + x * dx - y * dy
            P[c, 1] = P[q, 1] + x * dy + y * dx
    else:
        P[c, 0] = P[q, 0] + r[c]
        P[c, 1] = P[q, 1]


def _intersects(P: np.ndarray, r: np.ndarray, a: int, b: int) -> bool:
    dr = r[a] + r[b] - 1e-6
    dx = P[b, 0] - P[a, 0]
    dy = P[b, 1] - P[a, 1]
    return dr > 0 and dr * dr > dx * dx + dy * dy


def _score(P: np.ndarray, r: np.ndarray, a: int, b: int) -> float:
    ab = r[a] + r[b]
    dx = (P[a, 0] * r[b] + P[b, 0] * r[a]) / ab
    dy = (P[a, 1] * r[b] + P[b, 1] * r[a]) / ab
    return dx * dx + dy * dy


def enclosing_circle(P: np.ndarray, r: np.ndarray) -> Tuple[float, float, float]:
    """
    Circle (cx, cy, R) enclosing all circles. The center minimises the largest reach
    ||p_i - c|| + r_i; any center gives a valid enclosure, so an inexact optimum only
    costs a little slack.
    """
    P = np.asarray(P, float)
    r = np.asarray(r, float)
    if len(r) == 0:
        return 0.0, 0.0, 0.0
    if len(r) == 1:
        return float(P[0, 0]), float(P[0, 1]), float(r[0])

    def reach(c):
        return float(np.max(np.hypot(P[:, 0] - c[0], P[:, 1] - c[1]) + r))

    lo = (P - r[:, None]).min(axis=0)
    hi = (P + r[:, None]).max(axis=0)
    c0 = 0.5 * (lo + hi)
    scale = float(max(np.max(hi - lo), 1e-12))
    res = minimize(
        reach,
        c0,
        method="Nelder-Mead",
        options={"xatol": 1e-6 * scale, "fatol": 1e-9 * scale, "maxiter": 400},
    )
    c = res.x if reach(res.x) < reach(c0) else c0
    return float(c[0]), float(c[1]), reach(c)


def pack_siblings(radii: Sequence[float]) -> Tuple[np.ndarray, float]:
    """
    Front-chain sibling packing of circles, in the given order.

    Each new circle is placed tangent to the pair of front-chain circles closest to the
    centroid; if it intersects another front circle the front is cut back and the circle
    retried. Positions are translated so the enclosing circle is centered at the origin.

    Returns
    -------
    positions : (n, 2) array
    enclosing_radius : float
    """
    r = np.asarray(radii, float)
    n = len(r)
    P = np.zeros((n, 2), float)
    if n == 0:
        return P, 0.0
    if n == 1:
        return P, float(r[0])

    P[0] = (-r[1], 0.0)
    P[1] = (r[0], 0.0)
    if n == 2:
        return P, float(r[0] + r[1])

    _place(P, r, 1, 0, 2)

    nxt = np.zeros(n, dtype=int)
    prv = np.zeros(n, dtype=int)
    a, b = 0, 1
    nxt[0], prv[2] = 1, 1
    nxt[1], prv[0] = 2, 2
    nxt[2], prv[1] = 0, 0

    i = 3
    while i < n:
        _place(P, r, a, b, i)

        j, k = nxt[b], prv[a]
        sj, sk = r[b], r[a]
        cut = False
        while True:
            if sj <= sk:
                if _intersects(P, r, j, i):
                    b = j
                    nxt[a], prv[b] = b, a
                    cut = True
                    break
                sj += r[j]
                j = nxt[j]
            else:
                if _intersects(P, r, k, i):
                    a = k
                    nxt[a], prv[b] = b, a
                    cut = True
                    break
                sk += r[k]
                k = prv[k]
            if j == nxt[k]:
                break
        if cut:
            continue

        prv[i], nxt[i] = a, b
        nxt[a], prv[b] = i, i
        b = i

        best = _score(P, r, a, nxt[a])
        c = nxt[b]
        while c != b:
            s = _score(P, r, c, nxt[c])
            if s < best:
                a, best = c, s
            c = nxt[c]
        b = nxt[a]
        i += 1

    chain = [b]
    c = nxt[b]
    while c != b:
        chain.append(c)
        c = nxt[c]
    chain = np.array(chain, dtype=int)
    cx, cy, R = enclosing_circle(P[chain], r[chain])
    P -= np.array([cx, cy])
    # the front chain encloses every circle in exact arithmetic; guard against drift
    R = max(R, float(np.max(np.hypot(P[:, 0], P[:, 1]) + r)))
    return P, R


# ---------------- tight per-group packs ----------------


@dataclass
class TightPack:
    ids: Tuple[str, ...]
    positions: np.ndarray
    radii: np.ndarray
    bounding_box: Bounds
    extent: float

    @property
    def centroid(self) -> np.ndarray:
        if len(self.ids) == 0:
            return np.zeros(2)
        return self.positions.mean(axis=0)


def pack_tight(ids: Sequence[str], radii: Sequence[float], padding: float = 0.0) -> TightPack:
    """
    Compact non-overlapping arrangement of one group of circles.

    Circles are packed largest first, each grown by padding / 2 so that neighbours keep
    at least `padding` between their boundaries. The bounding box covers the padded
    circles; its longest side is the footprint (`extent`) the group needs.
    """
    ids = tuple(ids)
    r = np.asarray(radii, float)
    n = len(r)
    if n == 0:
        return TightPack(ids, np.zeros((0, 2)), r, Bounds(0.0, 0.0, 0.0, 0.0), 0.0)

    padded = r + 0.5 * padding
    order = np.argsort(-r, kind="stable")
    P_sorted, _ = pack_siblings(padded[order])
    P = np.empty_like(P_sorted)
    P[order] = P_sorted

    lo = (P - padded[:, None]).min(axis=0)
    hi = (P + padded[:, None]).max(axis=0)
    box = Bounds(float(lo[0]), float(lo[1]), float(hi[0]), float(hi[1]))
    return TightPack(ids, P, r, box, float(max(box.width, box.height)))


# ---------------- space-filling pack ("all" view) ----------------


@dataclass
class SpacePack:
    ids: Tuple[str, ...]
    positions: np.ndarray
    radii: np.ndarray
    coefficient: Optional[float]


def _base_radii(weights: np.ndarray) -> np.ndarray:
    w = np.asarray(weights, float)
    valid = np.isfinite(w) & (w > 0)
    base = np.sqrt(np.where(valid, w, 0.0))
    fill = 0.5 * float(base[valid].min()) if np.any(valid) else 1.0
    return np.where(valid, base, fill)


def pack_all(
    ids: Sequence[str],
    weights: Sequence[float],
    width: float,
    height: float,
    padding: float = 0.25,
) -> SpacePack:
    """
    Pack every circle into one disc filling the (width, height) area.

    Base radii are sqrt(weight); the pack is scaled uniformly so its enclosing circle has
    diameter min(width, height) and is centered in the area. The padding is given in
    pixels: a first pass measures the scale, a second one packs with the padding converted
    to base units. The scale is the radius coefficient k (radius = k * sqrt(weight)).
    """
    ids = tuple(ids)
    w = np.asarray(weights, float)
    n = len(w)
    width = max(1.0, float(width))
    height = max(1.0, float(height))
    center = np.array([width / 2, height / 2])
    if n == 0:
        return SpacePack(ids, np.zeros((0, 2)), np.zeros(0), None)

    base = _base_radii(w)
    order = np.argsort(-base, kind="stable")
    side = min(width, height)

    _, R0 = pack_siblings(base[order])
    s0 = side / (2 * R0)
    pad = 0.5 * padding / s0 if padding > 0 else 0.0

    P_sorted, R = pack_siblings(base[order] + pad)
    s = side / (2 * R)
    P = np.empty_like(P_sorted)
    P[order] = P_sorted

    radii = s * base
    positions = center + s * P
    return SpacePack(ids, positions, radii, coefficient_from_pack(w, radii))
