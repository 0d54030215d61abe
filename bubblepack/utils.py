import time
from typing import Tuple

import numpy as np


def format_time(seconds):
    """Format a duration in seconds into hr:min:sec or ms."""
    if seconds < 1:
        return f"{int(seconds * 1000)} ms"
    h = int(seconds // 3600)
    m = int((seconds % 3600) // 60)
    s = int(seconds % 60)
    if h > 0:
        return f"{h}h {m}m {s}s"
    elif m > 0:
        return f"{m}m {s}s"
    else:
        return f"{s}s"


def format_count(n):
    """Format large circle counts into readable form."""
    if n >= 1_000_000:
        return f"{n / 1_000_000:.1f}M"
    elif n >= 1_000:
        return f"{n / 1_000:.1f}K"
    else:
        return str(n)


def time_function_call(fn, *args, **kwargs) -> Tuple[object, str]:
    start = time.time()
    result = fn(*args, **kwargs)
    return result, format_time(time.time() - start)


def min_pair_gap(xy: np.ndarray, radii: np.ndarray) -> float:
    """Smallest boundary-to-boundary distance over all pairs (negative when overlapping)."""
    xy = np.asarray(xy, float)
    r = np.asarray(radii, float)
    if len(r) < 2:
        return float("inf")
    iu, ju = np.triu_indices(len(r), k=1)
    d = np.hypot(xy[iu, 0] - xy[ju, 0], xy[iu, 1] - xy[ju, 1])
    return float(np.min(d - r[iu] - r[ju]))
