import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Sequence, Set, Tuple, Union

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator

from bubblepack.cool_functions import cool_area_diameter, cool_count, cool_max
from bubblepack.data import (
    Bounds,
    CircleCatalog,
    PositionTable,
    Viewport,
    ViewMode,
    WeightedCircle,
    flatten,
    normalize_view_mode,
)
from bubblepack.grid import Cell, GridLayout, layout_grid
from bubblepack.legend import LegendEntry, legend_entries
from bubblepack.natural_breaks import natural_breaks
from bubblepack.overlap import overlapping_pairs, relax
from bubblepack.packer import TightPack, pack_all, pack_tight
from bubblepack.radius import RadiusModel
from bubblepack.simulation import ForceSimulation
from bubblepack.spiral import place_greedy
from bubblepack.utils import format_count, format_time, min_pair_gap


class FootprintEstimate(str, Enum):
    tight = "tight"
    area = "area"


class AttractionAnchor(str, Enum):
    cell = "cell"
    target = "target"


def _normalize_option(value, enum_cls, what: str):
    try:
        return enum_cls(str(getattr(value, "value", value)).lower())
    except ValueError:
        raise ValueError(
            f"Invalid {what}: {value}. "
            f'Please select one from: {", ".join(f.value for f in enum_cls)}.'
        )


@dataclass
class LayoutResult:
    mode: ViewMode
    viewport: Viewport
    ids: Tuple[str, ...]
    xy: np.ndarray
    radii: np.ndarray
    boxes: np.ndarray
    content_height: float
    radius_model: RadiusModel
    margin: Tuple[float, float, float, float]
    grid: Optional[GridLayout] = None
    groups: Tuple[str, ...] = ()
    approximate_ids: Set[str] = field(default_factory=set)

    @property
    def positions(self) -> Dict[str, Tuple[float, float, float]]:
        return {
            cid: (float(x), float(y), float(r))
            for cid, (x, y), r in zip(self.ids, self.xy, self.radii)
        }

    @property
    def bounds(self) -> Dict[str, Bounds]:
        return {cid: Bounds(*map(float, b)) for cid, b in zip(self.ids, self.boxes)}

    @property
    def cells(self) -> Dict[str, Cell]:
        return {} if self.grid is None else dict(self.grid.cells)

    def group_labels(self) -> Dict[str, Tuple[float, float]]:
        """Anchor points (cell centers) for group titles; empty in the "all" view."""
        return {key: (c.center_x, c.center_y) for key, c in self.cells.items()}

    def to_frame(self) -> pd.DataFrame:
        frame = pd.DataFrame(
            {
                "id": list(self.ids),
                "group": list(self.groups) if self.groups else [""] * len(self.ids),
                "x": self.xy[:, 0],
                "y": self.xy[:, 1],
                "r": self.radii,
                "x0": self.boxes[:, 0],
                "y0": self.boxes[:, 1],
                "x1": self.boxes[:, 2],
                "y1": self.boxes[:, 3],
            }
        )
        frame["approximate"] = frame["id"].isin(self.approximate_ids)
        return frame.set_index("id")


class BubbleLayout(BaseEstimator):
    """Clustered bubble-chart layout engine.

    Lays out weighted circles either as one space-filling pack ("all") or as one cluster per
    value of a partition key (``group_a``: owner, ``group_b``: category), each cluster packed
    inside a cell of a width-fitted grid.

    Parameters
    ----------
    min_radius, max_radius: float (default 6, 28)
        Pixel range of the fitted square-root radius scale.

    floor_radius: float (default 2)
        Smallest radius ever displayed. Circles with a non-finite or non-positive weight get it.

    collide_padding: float (default 0.25)
        Clearance between circle boundaries in clustered views.

    pack_padding: float (default 0.25)
        Clearance between circle boundaries in the space-filling pack.

    cell_gap, min_cell, cell_padding: float (default 4, 68, 6)
        Grid cell sizing: the base cell is max(2 * max radius + cell_padding + cell_gap,
        min_cell + cell_gap, footprint of the largest group).

    margin: tuple (default (56, 16, 16, 16))
        Chart margin (top, right, bottom, left). Positions are relative to the inner corner.

    footprint: str (default "tight")
        How a group's footprint is estimated: "tight" measures its tight pack, "area" uses
        the diameter of a disc holding the summed circle area at `fill_efficiency`.

    attract_to: str (default "cell")
        Attraction center of the smoothing simulation in clustered views: "cell" pulls every
        circle toward its group's cell center, "target" toward its own computed position.

    relax_iterations: int (default 200)
        Passes of the overlap resolver per cluster.

    max_inner_height: Optional[float] (default None)
        Optional height limit for the grid; it gets the fewest columns that respect it.

    random_state: Optional[int] (default 0)
        Seed of the random fallback of the greedy placement. Layouts are reproducible.

    verbose: bool (default False)
        Print progress messages.
    """

    def __init__(
        self,
        min_radius: float = 6.0,
        max_radius: float = 28.0,
        floor_radius: float = 2.0,
        collide_padding: float = 0.25,
        pack_padding: float = 0.25,
        cell_gap: float = 4.0,
        min_cell: float = 68.0,
        cell_padding: float = 6.0,
        margin: Tuple[float, float, float, float] = (56.0, 16.0, 16.0, 16.0),
        footprint: str = "tight",
        attract_to: str = "cell",
        fill_efficiency: float = 0.85,
        relax_iterations: int = 200,
        max_inner_height: Optional[float] = None,
        random_state: Optional[int] = 0,
        verbose: bool = False,
    ):
        self.min_radius = min_radius
        self.max_radius = max_radius
        self.floor_radius = floor_radius
        self.collide_padding = collide_padding
        self.pack_padding = pack_padding
        self.cell_gap = cell_gap
        self.min_cell = min_cell
        self.cell_padding = cell_padding
        self.margin = margin
        self.footprint = footprint
        self.attract_to = attract_to
        self.fill_efficiency = fill_efficiency
        self.relax_iterations = relax_iterations
        self.max_inner_height = max_inner_height
        self.random_state = random_state
        self.verbose = verbose

        self.catalog: Optional[CircleCatalog] = None
        self.radius_model: Optional[RadiusModel] = None
        self.live: Optional[PositionTable] = None
        self.targets: Optional[PositionTable] = None
        self.simulation: Optional[ForceSimulation] = None
        self.mode: Optional[ViewMode] = None
        self.viewport: Optional[Viewport] = None
        self.result: Optional[LayoutResult] = None
        self._live_initialized = False

    # validated on every assignment, set_params included
    @property
    def footprint(self) -> FootprintEstimate:
        return self._footprint

    @footprint.setter
    def footprint(self, value):
        self._footprint = _normalize_option(value, FootprintEstimate, "footprint estimate")

    @property
    def attract_to(self) -> AttractionAnchor:
        return self._attract_to

    @attract_to.setter
    def attract_to(self, value):
        self._attract_to = _normalize_option(value, AttractionAnchor, "attraction anchor")

    @classmethod
    def from_records(cls, records: Sequence[Dict[str, Any]], **params) -> "BubbleLayout":
        return cls(**params).fit(flatten(records))

    def fit(self, circles: Sequence[WeightedCircle]):
        """Register the circle set and fit the radius scale over its weight extent."""
        self.catalog = CircleCatalog(circles)
        self.radius_model = RadiusModel.fit(
            self.catalog.weights,
            min_radius=self.min_radius,
            max_radius=self.max_radius,
            floor=self.floor_radius,
        )
        n = len(self.catalog)
        self.live = PositionTable(self.catalog.ids)
        self.targets = PositionTable(self.catalog.ids)
        self.simulation = ForceSimulation(
            self.radius_model.radii(self.catalog.weights),
            self.live,
            self.targets,
            clearance=self.collide_padding,
        )
        self.mode = None
        self.result = None
        self._live_initialized = False
        if self.verbose:
            print(f"Registered {format_count(n)} circles.")
        return self

    def _check_fitted(self):
        if self.catalog is None:
            raise ValueError("Unable to lay out as no circles have been registered. Call `fit` first.")

    # ---- public entry points ----

    def radius_of(self, weight: float) -> float:
        self._check_fitted()
        return self.radius_model.radius(weight)

    def legend_breaks(self, weights: Optional[Sequence[float]] = None, n_classes: int = 3) -> np.ndarray:
        if weights is None:
            self._check_fitted()
            weights = self.catalog.weights
        return natural_breaks(weights, n_classes)

    def legend(self, n_classes: int = 3) -> List[LegendEntry]:
        self._check_fitted()
        return legend_entries(self.radius_model, self.catalog.weights, n_classes)

    def compute_layout(
        self,
        mode: Union[ViewMode, str],
        viewport: Optional[Union[Viewport, Tuple[float, float]]] = None,
    ) -> LayoutResult:
        """
        Compute target positions and radii of every circle for a view mode and viewport.

        The targets are stored and handed to the smoothing simulation: in clustered views it is
        reheated so circles travel from their current positions; in the "all" view it is
        paused and the live positions jump to the (final) targets.
        """
        self._check_fitted()
        mode = normalize_view_mode(mode)
        if viewport is None:
            if self.viewport is None:
                raise ValueError("No viewport given and none set by a previous layout.")
            viewport = self.viewport
        viewport = Viewport(*viewport).clamped()

        start = time.time()
        if mode == ViewMode.all:
            result = self._layout_all(viewport)
        else:
            result = self._layout_clusters(mode, viewport)
        if self.verbose:
            print(f"Layout {mode.value} for {viewport.width:g}x{viewport.height:g} took {format_time(time.time() - start)}.")

        self.mode = mode
        self.viewport = viewport
        self.result = result
        anchors = None
        if mode != ViewMode.all and self.attract_to == AttractionAnchor.cell:
            anchors = 0.5 * (result.boxes[:, :2] + result.boxes[:, 2:])
        self.simulation.set_targets(result.xy, anchors)
        self.simulation.set_radii(result.radii)
        if mode == ViewMode.all or not self._live_initialized:
            self.simulation.sync(result.xy)
            self._live_initialized = True
        if mode == ViewMode.all:
            self.simulation.set_bounds(None)
            self.simulation.pause()
        else:
            self.simulation.set_bounds(result.boxes)
            self.simulation.reheat()
        return result

    def set_mode(self, mode: Union[ViewMode, str]) -> LayoutResult:
        return self.compute_layout(mode, self.viewport)

    def resize(self, viewport: Union[Viewport, Tuple[float, float]]) -> LayoutResult:
        if self.mode is None:
            raise ValueError("Unable to resize as no layout has been computed yet.")
        return self.compute_layout(self.mode, viewport)

    def animate(self, max_ticks: Optional[int] = 1000) -> Iterator[np.ndarray]:
        self._check_fitted()
        return self.simulation.run(max_ticks)

    def snapshot(self) -> Dict[str, Tuple[float, float]]:
        """Current live (smoothed) positions."""
        self._check_fitted()
        return self.live.to_dict()

    # ---- internals ----

    def _inner_size(self, viewport: Viewport) -> Tuple[float, float]:
        top, right, bottom, left = self.margin
        return (
            max(1.0, viewport.width - left - right),
            max(1.0, viewport.height - top - bottom),
        )

    def _layout_all(self, viewport: Viewport) -> LayoutResult:
        ids = self.catalog.ids
        weights = self.catalog.weights
        width, height = self._inner_size(viewport)
        if self.verbose:
            print(f"Packing {format_count(len(ids))} circles into {width:g}x{height:g}...")

        pack = pack_all(ids, weights, width, height, padding=self.pack_padding)
        self.radius_model = self.radius_model.with_coefficient(pack.coefficient)
        if self.verbose and pack.coefficient is not None:
            print(f"Radius coefficient set to k={pack.coefficient:.4g}.")

        r = self.radius_model.radii(weights)
        area = Bounds(0.0, 0.0, width, height)
        res = relax(r, pack.positions, area, max_iterations=self.relax_iterations)
        approximate = set()
        if not res.converged:
            pairs = overlapping_pairs(r, res.positions)
            approximate = {ids[i] for i in np.unique(pairs)}

        boxes = np.tile(area.as_array(), (len(ids), 1))
        return LayoutResult(
            mode=ViewMode.all,
            viewport=viewport,
            ids=ids,
            xy=res.positions,
            radii=r,
            boxes=boxes,
            content_height=viewport.height,
            radius_model=self.radius_model,
            margin=tuple(self.margin),
            approximate_ids=approximate,
        )

    def _seed_group(self, pack: TightPack, cell: Bounds) -> Tuple[np.ndarray, Set[str]]:
        box = pack.bounding_box
        if box.width <= cell.width + 1e-9 and box.height <= cell.height + 1e-9:
            offset = np.array(cell.center) - pack.centroid
            lo = np.array([cell.x0 - box.x0, cell.y0 - box.y0])
            hi = np.array([cell.x1 - box.x1, cell.y1 - box.y1])
            offset = np.clip(offset, lo, np.maximum(lo, hi))
            return pack.positions + offset, set()

        placement = place_greedy(
            pack.ids,
            pack.radii,
            center=cell.center,
            bounds=cell,
            clearance=self.collide_padding,
            random_state=self.random_state,
        )
        return placement.positions, placement.fallback_ids

    def _layout_clusters(self, mode: ViewMode, viewport: Viewport) -> LayoutResult:
        which = "a" if mode == ViewMode.group_a else "b"
        ids = self.catalog.ids
        r = self.radius_model.radii(self.catalog.weights)
        codes = self.catalog.group_codes(which)
        keys = self.catalog.group_keys(which)
        width, height = self._inner_size(viewport)
        pad = self.collide_padding

        counts = cool_count(codes, len(keys))
        members = [np.flatnonzero(codes == g) for g in range(len(keys))]
        present = [g for g in range(len(keys)) if counts[g] > 0]
        packs = {g: pack_tight([ids[i] for i in members[g]], r[members[g]], padding=pad) for g in present}

        if self.footprint == FootprintEstimate.area:
            footprints = cool_area_diameter(r, codes, pad, self.fill_efficiency, len(keys))[present]
        else:
            footprints = np.array([packs[g].extent for g in present])
        min_cell_size = float(np.max(footprints)) if len(footprints) else 0.0
        group_max_radius = cool_max(r, codes, len(keys))[present] if present else np.zeros(0)

        grid = layout_grid(
            [keys[g] for g in present],
            min_cell_size,
            width,
            height,
            extra_gap=self.cell_gap,
            max_radius=float(group_max_radius.max()) if len(group_max_radius) else 20.0,
            min_cell=self.min_cell,
            cell_padding=self.cell_padding,
            max_inner_height=self.max_inner_height,
        )
        if self.verbose:
            print(
                f"Laying out {len(present)} groups in {grid.rows}x{grid.cols} cells of "
                f"{grid.cell_width:.1f}x{grid.cell_height:.1f}."
            )

        xy = np.zeros((len(ids), 2), float)
        boxes = np.zeros((len(ids), 4), float)
        approximate: Set[str] = set()
        for g in present:
            idx = members[g]
            cell = grid.bounds_of(keys[g])
            seed, fallback_ids = self._seed_group(packs[g], cell)
            res = relax(r[idx], seed, cell, max_iterations=self.relax_iterations, padding=pad)
            xy[idx] = res.positions
            boxes[idx] = cell.as_array()
            approximate |= fallback_ids
            if not res.converged:
                pairs = overlapping_pairs(r[idx], res.positions)
                approximate |= {ids[idx[i]] for i in np.unique(pairs)}

        if self.verbose:
            print(f"Smallest gap between circles: {min_pair_gap(xy, r):.3f}.")
            if approximate:
                print(f"{len(approximate)} circles could not be placed without touching a neighbour.")

        top, _, bottom, _ = self.margin
        return LayoutResult(
            mode=mode,
            viewport=viewport,
            ids=ids,
            xy=xy,
            radii=r,
            boxes=boxes,
            content_height=top + grid.total_content_height + bottom,
            radius_model=self.radius_model,
            margin=tuple(self.margin),
            grid=grid,
            groups=tuple(keys[c] for c in codes),
            approximate_ids=approximate,
        )
