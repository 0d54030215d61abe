from typing import Sequence

import numpy as np

from bubblepack.data import WeightedCircle

# DATASETS


def make_circles(groups_a: Sequence[str], groups_b: Sequence[str], weights: Sequence[float]):
    return [
        WeightedCircle(id=f"c{i}", group_a=a, group_b=b, weight=w)
        for i, (a, b, w) in enumerate(zip(groups_a, groups_b, weights))
    ]


def generate_members_records(n_members: int = 6, n_categories: int = 4, seed: int = 7):
    """Members with one expense per category, weights spanning several orders of magnitude."""
    rng = np.random.RandomState(seed)
    categories = [f"cat{j}" for j in range(n_categories)]
    records = []
    for m in range(n_members):
        expenses = [
            {"category": c, "value": float(np.round(10 ** rng.uniform(2, 5)))}
            for c in categories
            if rng.random_sample() < 0.8
        ]
        records.append({"id": f"m{m}", "name": f"Member {m}", "expenses": expenses})
    return records


# CHECKS


def overlap_violations(xy, radii, padding=0.0, tol=1e-6, skip=()):
    """Pairs (i, j) closer than r_i + r_j + padding - tol, ignoring pairs touching skipped indices."""
    xy = np.asarray(xy, float)
    r = np.asarray(radii, float)
    skip = set(skip)
    out = []
    for i in range(len(r)):
        for j in range(i + 1, len(r)):
            if i in skip or j in skip:
                continue
            if np.hypot(*(xy[i] - xy[j])) < r[i] + r[j] + padding - tol:
                out.append((i, j))
    return out


def outside_bounds(xy, radii, boxes, tol=1e-6):
    """Indices of circles not contained in their box [x0, y0, x1, y1] (one box or one per circle)."""
    xy = np.asarray(xy, float)
    r = np.asarray(radii, float)
    B = np.broadcast_to(np.asarray(boxes, float), (len(r), 4))
    bad = (
        (xy[:, 0] - r < B[:, 0] - tol)
        | (xy[:, 1] - r < B[:, 1] - tol)
        | (xy[:, 0] + r > B[:, 2] + tol)
        | (xy[:, 1] + r > B[:, 3] + tol)
    )
    return np.flatnonzero(bad).tolist()
