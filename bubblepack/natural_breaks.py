from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Union

import numpy as np


class BreakMethod(str, Enum):
    jenks = "jenks"
    distinct = "distinct"
    quantile = "quantile"
    empty = "empty"


@dataclass
class BreaksResult:
    boundaries: np.ndarray
    method: BreakMethod

    @property
    def is_optimal(self) -> bool:
        """False for quantile boundaries, which do not minimise within-class variance."""
        return self.method in (BreakMethod.jenks, BreakMethod.distinct)


def _jenks_tables(x: np.ndarray, n_classes: int):
    """
    Fill the Fisher-Jenks tables for sorted values x.

    variance[l, j]: minimal total within-class sum of squares splitting x[:l] into j classes.
    breakpoint[l, j]: 1-based index of the first value of the last class in that split.
    """
    n = len(x)
    k = n_classes
    S = np.concatenate([[0.0], np.cumsum(x)])
    S2 = np.concatenate([[0.0], np.cumsum(x * x)])

    variance = np.full((n + 1, k + 1), np.inf)
    breakpoint = np.zeros((n + 1, k + 1), dtype=int)
    variance[0, 0] = 0.0

    for l in range(1, n + 1):
        # candidate first index m (1-based) of the trailing class x[m-1:l]
        m = np.arange(1, l + 1)
        count = l - m + 1
        run_sum = S[l] - S[m - 1]
        ssd = (S2[l] - S2[m - 1]) - run_sum * run_sum / count
        ssd = np.maximum(ssd, 0.0)

        variance[l, 1] = ssd[0]
        breakpoint[l, 1] = 1
        for j in range(2, min(k, l) + 1):
            # the remainder x[:m-1] must hold j-1 classes, i.e. m-1 >= j-1
            cand = variance[m[j - 1:] - 1, j - 1] + ssd[j - 1:]
            best = int(np.argmin(cand))
            variance[l, j] = cand[best]
            breakpoint[l, j] = best + j
    return variance, breakpoint


def _jenks(x: np.ndarray, n_classes: int) -> np.ndarray:
    n = len(x)
    _, breakpoint = _jenks_tables(x, n_classes)
    boundaries = np.empty(n_classes + 1, float)
    boundaries[0] = x[0]
    boundaries[-1] = x[-1]
    l = n
    for j in range(n_classes, 1, -1):
        m = breakpoint[l, j]
        boundaries[j - 1] = x[m - 2]
        l = m - 1
    return boundaries


def classify(values: Sequence[float], n_classes: int) -> BreaksResult:
    """
    Natural breaks of positive weights into n_classes ordered classes.

    Returns the class boundaries [min, b1, ..., b_{k-1}, max] where each inner boundary is
    the largest value of its class. The method used is reported alongside:

    - ``empty``: no finite positive value, no boundaries.
    - ``quantile``: fewer finite positive values than classes although more were given;
      order-statistic boundaries, not variance-minimising.
    - ``distinct``: at most n_classes distinct values; those values are the boundaries.
    - ``jenks``: Fisher-Jenks optimum minimising the summed within-class squared deviation.
    """
    if n_classes < 1:
        raise ValueError(f"The number of classes must be at least 1, got {n_classes}.")

    raw = np.asarray(values, float).ravel()
    x = np.sort(raw[np.isfinite(raw) & (raw > 0)])

    if x.size == 0:
        return BreaksResult(np.empty(0, float), BreakMethod.empty)

    if x.size < n_classes < raw.size:
        qs = np.linspace(0.0, 1.0, n_classes + 1)
        return BreaksResult(np.quantile(x, qs), BreakMethod.quantile)

    distinct = np.unique(x)
    if distinct.size <= n_classes:
        return BreaksResult(distinct, BreakMethod.distinct)

    return BreaksResult(_jenks(x, n_classes), BreakMethod.jenks)


def natural_breaks(values: Sequence[float], n_classes: int) -> np.ndarray:
    return classify(values, n_classes).boundaries


def assign_classes(
    values: Sequence[float],
    boundaries: Union[BreaksResult, Sequence[float]],
    method: Optional[BreakMethod] = None,
) -> np.ndarray:
    """
    Class index of every value given natural-breaks boundaries (upper limits are inclusive).

    Jenks and quantile boundaries are ``[min, b1, ..., max]``. Distinct boundaries hold one
    value per class, so each value goes to the class of the first boundary not below it.
    Passing the `BreaksResult` itself selects the right reading.
    """
    if isinstance(boundaries, BreaksResult):
        method = boundaries.method if method is None else method
        boundaries = boundaries.boundaries
    b = np.asarray(boundaries, float)
    v = np.asarray(values, float)
    if method == BreakMethod.distinct:
        if b.size == 0:
            return np.zeros(v.shape, dtype=int)
        return np.clip(np.searchsorted(b, v, side="left"), 0, b.size - 1)
    if b.size < 2:
        return np.zeros(v.shape, dtype=int)
    return np.clip(np.searchsorted(b[1:-1], v, side="left"), 0, b.size - 2)
