import json
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Literal, NamedTuple, Optional, Sequence, Tuple, Union

import numpy as np

GroupKey = Literal["a", "b"]


class ViewMode(str, Enum):
    all = "all"
    group_a = "group_a"
    group_b = "group_b"


_VIEW_MODE_SYNONYMS = {
    "all": ViewMode.all,
    "pack": ViewMode.all,
    "group_a": ViewMode.group_a,
    "a": ViewMode.group_a,
    "member": ViewMode.group_a,
    "owner": ViewMode.group_a,
    "group_b": ViewMode.group_b,
    "b": ViewMode.group_b,
    "category": ViewMode.group_b,
}


def normalize_view_mode(mode: Union[ViewMode, str]) -> ViewMode:
    if isinstance(mode, ViewMode):
        return mode
    v = str(mode).lower().strip()
    try:
        return _VIEW_MODE_SYNONYMS[v]
    except KeyError:
        raise ValueError(
            f"Invalid view mode: {mode}. "
            f'Please select one from: {", ".join(sorted(_VIEW_MODE_SYNONYMS))}.'
        )


class Viewport(NamedTuple):
    width: float
    height: float

    def clamped(self, minimum: float = 1.0) -> "Viewport":
        return Viewport(max(minimum, float(self.width)), max(minimum, float(self.height)))


@dataclass(frozen=True)
class WeightedCircle:
    id: str
    group_a: str
    group_b: str
    weight: float
    label: Optional[str] = None


@dataclass(frozen=True)
class Bounds:
    x0: float
    y0: float
    x1: float
    y1: float

    @property
    def width(self) -> float:
        return self.x1 - self.x0

    @property
    def height(self) -> float:
        return self.y1 - self.y0

    @property
    def center(self) -> Tuple[float, float]:
        return 0.5 * (self.x0 + self.x1), 0.5 * (self.y0 + self.y1)

    def as_array(self) -> np.ndarray:
        return np.array([self.x0, self.y0, self.x1, self.y1], float)

    def clamp(self, xy, r: float) -> np.ndarray:
        return clamp_into(np.asarray(xy, float)[None, :], np.array([r], float), self.as_array())[0]

    def contains(self, xy, r: float, tol: float = 1e-6) -> bool:
        x, y = xy
        return (
            self.x0 + r - tol <= x <= self.x1 - r + tol
            and self.y0 + r - tol <= y <= self.y1 - r + tol
        )


def clamp_into(P: np.ndarray, r: np.ndarray, bounds: np.ndarray) -> np.ndarray:
    """Clamp circle centers so every circle lies inside its bounds.

    `bounds` is either a single (4,) box [x0, y0, x1, y1] or one box per circle (n, 4).
    If a box is narrower than a circle on some axis, the circle is centered on that axis.
    """
    P = np.asarray(P, float)
    r = np.asarray(r, float)
    B = np.broadcast_to(np.asarray(bounds, float), (len(r), 4))
    lo = B[:, :2] + r[:, None]
    hi = B[:, 2:] - r[:, None]
    mid = 0.5 * (B[:, :2] + B[:, 2:])
    out = np.minimum(np.maximum(P, lo), hi)
    too_small = lo > hi
    if np.any(too_small):
        out = np.where(too_small, mid, out)
    return out


class CircleCatalog:
    """Immutable arena of weighted circles, indexed by id.

    Group keys are encoded as integer codes in order of first appearance, so that
    every layout over the same catalog visits groups in the same order.
    """

    def __init__(self, circles: Iterable[WeightedCircle]):
        self.circles: Tuple[WeightedCircle, ...] = tuple(circles)
        self.ids: Tuple[str, ...] = tuple(c.id for c in self.circles)
        self._index: Dict[str, int] = {}
        for i, cid in enumerate(self.ids):
            if cid in self._index:
                raise ValueError(f"Duplicate circle id: {cid}.")
            self._index[cid] = i

        self.weights = np.array([_as_float(c.weight) for c in self.circles], dtype=float)
        self.weights.setflags(write=False)
        self.valid_mask = np.isfinite(self.weights) & (self.weights > 0)
        self.valid_mask.setflags(write=False)

        self._keys: Dict[str, Tuple[str, ...]] = {}
        self._codes: Dict[str, np.ndarray] = {}
        for which in ("a", "b"):
            values = [getattr(c, f"group_{which}") for c in self.circles]
            keys = tuple(dict.fromkeys(values))
            lookup = {k: i for i, k in enumerate(keys)}
            codes = np.array([lookup[v] for v in values], dtype=int)
            codes.setflags(write=False)
            self._keys[which] = keys
            self._codes[which] = codes

    def __len__(self):
        return len(self.circles)

    def index_of(self, circle_id: str) -> int:
        return self._index[circle_id]

    def group_keys(self, which: GroupKey) -> Tuple[str, ...]:
        return self._keys[which]

    def group_codes(self, which: GroupKey) -> np.ndarray:
        return self._codes[which]

    def members(self, which: GroupKey, key: str) -> np.ndarray:
        code = self._keys[which].index(key)
        return np.flatnonzero(self._codes[which] == code)


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return float("nan")


def flatten(records: Sequence[Dict[str, Any]]) -> List[WeightedCircle]:
    """
    Flatten hierarchical member records into weighted circles.

    Each record looks like ``{"id": "m1", "name": "...", "expenses": [{"category": "...", "value": 12000}]}``.
    One circle is produced per expense entry, with id ``f"{id}-{category}"``, the member
    name (or id) as first partition key and the category as second.
    """
    circles = []
    for record in records:
        if "id" not in record:
            raise ValueError(f"Every record needs an `id`, got keys: {sorted(record)}.")
        member_id = str(record["id"])
        name = record.get("name")
        group_a = str(name) if name is not None else member_id
        for expense in record.get("expenses") or []:
            if "category" not in expense:
                raise ValueError(
                    f"Every expense of record {member_id} needs a `category`, got keys: {sorted(expense)}."
                )
            category = str(expense["category"])
            circles.append(
                WeightedCircle(
                    id=f"{member_id}-{category}",
                    group_a=group_a,
                    group_b=category,
                    weight=_as_float(expense.get("value")),
                    label=name,
                )
            )
    return circles


def load_records(path: Union[Path, str]) -> List[Dict[str, Any]]:
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        records = json.load(f)
    if not isinstance(records, list):
        raise ValueError(f"Expected a list of member records in {path}, got {type(records).__name__}.")
    return records


class PositionTable:
    """Mutable (n, 2) coordinate table keyed by circle id.

    Written by the layout (targets) and the smoother (live values); readers get snapshots.
    """

    def __init__(self, ids: Sequence[str], positions: Optional[np.ndarray] = None):
        self.ids = tuple(ids)
        self._index = {cid: i for i, cid in enumerate(self.ids)}
        if positions is None:
            positions = np.zeros((len(self.ids), 2), float)
        self.array = np.array(positions, dtype=float).reshape(len(self.ids), 2)

    def __len__(self):
        return len(self.ids)

    def __getitem__(self, circle_id: str) -> Tuple[float, float]:
        x, y = self.array[self._index[circle_id]]
        return float(x), float(y)

    def __setitem__(self, circle_id: str, xy):
        self.array[self._index[circle_id]] = xy

    def assign(self, positions: np.ndarray):
        self.array[...] = np.asarray(positions, float)

    def snapshot(self) -> np.ndarray:
        out = self.array.copy()
        out.setflags(write=False)
        return out

    def to_dict(self) -> Dict[str, Tuple[float, float]]:
        return {cid: (float(x), float(y)) for cid, (x, y) in zip(self.ids, self.array)}
