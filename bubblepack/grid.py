import math
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence

from bubblepack.data import Bounds


@dataclass(frozen=True)
class Cell:
    key: str
    center_x: float
    center_y: float
    width: float
    height: float

    @property
    def bounds(self) -> Bounds:
        return Bounds(
            self.center_x - self.width / 2,
            self.center_y - self.height / 2,
            self.center_x + self.width / 2,
            self.center_y + self.height / 2,
        )


@dataclass
class GridLayout:
    cells: Dict[str, Cell] = field(default_factory=dict)
    rows: int = 0
    cols: int = 1
    cell_width: float = 0.0
    cell_height: float = 0.0
    total_content_height: float = 0.0

    def bounds_of(self, key: str) -> Bounds:
        return self.cells[key].bounds


def base_cell_size(
    min_cell_size: float = 0.0,
    max_radius: float = 20.0,
    extra_gap: float = 0.0,
    min_cell: float = 68.0,
    cell_padding: float = 6.0,
) -> float:
    default = max(2 * max_radius + cell_padding + extra_gap, min_cell + extra_gap)
    return max(default, min_cell_size or 0.0)


def layout_grid(
    group_keys: Sequence[str],
    min_cell_size: float,
    viewport_width: float,
    viewport_height: float,
    extra_gap: float = 0.0,
    max_radius: float = 20.0,
    min_cell: float = 68.0,
    cell_padding: float = 6.0,
    max_inner_height: Optional[float] = None,
) -> GridLayout:
    """
    Lay out one square-ish cell per group key in a grid that fits the viewport width.

    Cells share a uniform width (viewport_width / cols) and a height equal to the base cell
    size; the grid grows downwards, so the total content height may exceed viewport_height.
    If max_inner_height is given, the grid uses the fewest columns that keep it under that
    height, never more than the width allows.
    """
    keys = list(group_keys)
    width = max(1.0, float(viewport_width))
    base = base_cell_size(min_cell_size, max_radius, extra_gap, min_cell, cell_padding)
    if not keys:
        return GridLayout(cell_height=base)

    max_cols_by_width = max(1, int(math.floor(width / base)))
    if max_inner_height:
        max_rows = max(1, int(math.floor(max(1.0, float(max_inner_height)) / base)))
        cols = max(1, math.ceil(len(keys) / max_rows))
        cols = min(cols, len(keys), max_cols_by_width)
    else:
        cols = max(1, min(len(keys), max_cols_by_width))

    rows = math.ceil(len(keys) / cols)
    cell_w = width / cols
    cell_h = base

    cells = {}
    for i, key in enumerate(keys):
        col = i % cols
        row = i // cols
        cells[key] = Cell(key, cell_w * col + cell_w / 2, cell_h * row + cell_h / 2, cell_w, cell_h)

    return GridLayout(cells, rows, cols, cell_w, cell_h, rows * cell_h)
