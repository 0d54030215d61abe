import unittest

import numpy as np
import pytest
from utils import generate_members_records, make_circles, outside_bounds, overlap_violations

from bubblepack import BubbleLayout, ViewMode
from bubblepack.layout import AttractionAnchor, FootprintEstimate
from bubblepack.packer import pack_tight


def _flagged(result):
    return [i for i, cid in enumerate(result.ids) if cid in result.approximate_ids]


class TestBubbleLayout(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.records = generate_members_records(n_members=6, n_categories=4)
        cls.viewport = (600, 420)

    def test_layout_smoke_test(self):
        engine = BubbleLayout.from_records(self.records)
        for mode in ["all", "member", "category"]:
            engine.compute_layout(mode, self.viewport)

    def test_clustered_layouts_are_non_overlapping_and_inside_their_cells(self):
        engine = BubbleLayout.from_records(self.records)
        for mode in [ViewMode.group_a, ViewMode.group_b]:
            result = engine.compute_layout(mode, self.viewport)

            self.assertEqual(
                overlap_violations(result.xy, result.radii, skip=_flagged(result)), []
            )
            self.assertEqual(outside_bounds(result.xy, result.radii, result.boxes), [])
            for cid, (x, y, r) in result.positions.items():
                self.assertTrue(result.bounds[cid].contains((x, y), r))

    def test_grid_cells_follow_group_keys(self):
        engine = BubbleLayout.from_records(self.records, margin=(56, 16, 16, 16))
        result = engine.compute_layout("member", self.viewport)

        members = [r["name"] for r in self.records if r["expenses"]]
        self.assertEqual(list(result.cells), members)
        self.assertEqual(list(result.group_labels()), members)
        grid = result.grid
        self.assertEqual(result.content_height, 56 + grid.rows * grid.cell_height + 16)
        self.assertLessEqual(grid.cols * grid.cell_width, 600 - 32 + 1e-9)

    def test_all_layout_stays_inside_the_area(self):
        engine = BubbleLayout.from_records(self.records)
        result = engine.compute_layout("all", self.viewport)

        self.assertEqual(result.content_height, 420)
        self.assertEqual(result.cells, {})
        self.assertEqual(outside_bounds(result.xy, result.radii, [0, 0, 600 - 32, 420 - 72]), [])
        self.assertEqual(overlap_violations(result.xy, result.radii, skip=_flagged(result)), [])

    def test_radii_are_consistent_after_the_all_layout(self):
        engine = BubbleLayout.from_records(self.records)
        packed = engine.compute_layout("all", self.viewport)
        by_category = engine.compute_layout("category")

        self.assertTrue(engine.radius_model.uses_coefficient)
        np.testing.assert_allclose(by_category.radii, packed.radii)
        weight = float(engine.catalog.weights[0])
        self.assertAlmostEqual(engine.radius_of(weight), float(packed.radii[0]))

    def test_layout_is_idempotent(self):
        engine = BubbleLayout.from_records(self.records)
        first = engine.compute_layout("member", self.viewport)
        for _ in engine.animate(max_ticks=20):
            pass
        second = engine.compute_layout("member", self.viewport)

        np.testing.assert_array_equal(first.xy, second.xy)
        np.testing.assert_array_equal(first.radii, second.radii)
        self.assertEqual(first.approximate_ids, second.approximate_ids)

    def test_identity_is_preserved_across_modes(self):
        engine = BubbleLayout.from_records(self.records)
        ids = [engine.compute_layout(mode, self.viewport).ids for mode in ["category", "all", "member"]]

        self.assertEqual(ids[0], ids[1])
        self.assertEqual(ids[1], ids[2])
        self.assertEqual(set(engine.snapshot()), set(ids[0]))

    def test_to_frame(self):
        engine = BubbleLayout.from_records(self.records)
        result = engine.compute_layout("category", self.viewport)
        frame = result.to_frame()

        self.assertEqual(list(frame.index), list(result.ids))
        for column in ["group", "x", "y", "r", "x0", "y0", "x1", "y1", "approximate"]:
            self.assertIn(column, frame.columns)
        np.testing.assert_allclose(frame["r"].values, result.radii)


def test_all_mode_with_three_circles():
    circles = make_circles(["a"] * 3, ["x", "y", "z"], [1000, 4000, 9000])
    engine = BubbleLayout(margin=(0, 0, 0, 0)).fit(circles)
    result = engine.compute_layout("all", (400, 300))

    np.testing.assert_allclose(result.radii / result.radii[0], [1, 2, 3])
    k = result.radius_model.coefficient
    assert np.isfinite(k) and k > 0
    np.testing.assert_allclose(result.radii, k * np.sqrt([1000, 4000, 9000]))
    assert overlap_violations(result.xy, result.radii) == []
    assert outside_bounds(result.xy, result.radii, [0, 0, 400, 300]) == []


def test_narrow_viewport_stacks_groups():
    weights = [100, 900, 2500, 4900, 8100]
    circles = make_circles(["A"] * 5 + ["B"] * 5, ["x"] * 10, weights * 2)
    engine = BubbleLayout(margin=(0, 0, 0, 0)).fit(circles)
    result = engine.compute_layout("group_a", (200, 600))

    np.testing.assert_allclose(result.radii[:5], [6, 11.5, 17, 22.5, 28])
    grid = result.grid
    assert grid.rows >= 2 and grid.cols == 1
    for key in ["A", "B"]:
        idx = [i for i, c in enumerate(circles) if c.group_a == key]
        extent = pack_tight([circles[i].id for i in idx], result.radii[idx], padding=engine.collide_padding).extent
        assert grid.cell_width >= extent
        assert grid.cell_height >= extent
    assert result.approximate_ids == set()
    assert overlap_violations(result.xy, result.radii, padding=0.25) == []
    assert outside_bounds(result.xy, result.radii, result.boxes) == []


def test_tiny_viewport_falls_back_to_greedy_placement():
    circles = make_circles(["A"] * 8, ["x"] * 8, [1000] * 8)
    engine = BubbleLayout(margin=(0, 0, 0, 0)).fit(circles)
    result = engine.compute_layout("group_a", (40, 40))

    # eight 17 px circles cannot fit a 40 px wide cell: flagged, but every circle is placed
    assert result.xy.shape == (8, 2)
    assert np.all(np.isfinite(result.xy))
    assert len(result.approximate_ids) > 0
    assert overlap_violations(result.xy, result.radii, skip=_flagged(result)) == []


def test_legend_breaks_with_an_outlier():
    engine = BubbleLayout()
    np.testing.assert_array_equal(engine.legend_breaks([10, 10, 10, 10, 1000], 3), [10, 1000])


def test_legend_entries_grow():
    engine = BubbleLayout.from_records(generate_members_records())
    entries = engine.legend(3)

    assert 1 <= len(entries) <= 3
    assert all(a.value < b.value and a.radius <= b.radius for a, b in zip(entries, entries[1:]))


def test_area_footprint():
    engine = BubbleLayout.from_records(generate_members_records(), footprint="AREA")
    result = engine.compute_layout("category", (800, 600))

    assert engine.footprint == FootprintEstimate.area
    assert outside_bounds(result.xy, result.radii, result.boxes) == []
    assert overlap_violations(result.xy, result.radii, skip=_flagged(result)) == []


def test_max_inner_height_sets_the_columns():
    records = generate_members_records(n_members=8)
    unlimited = BubbleLayout.from_records(records).compute_layout("member", (1000, 300))
    low = BubbleLayout.from_records(records, max_inner_height=1.0).compute_layout("member", (1000, 300))
    high = BubbleLayout.from_records(records, max_inner_height=1e6).compute_layout("member", (1000, 300))

    # a low limit uses every column the width allows, a high one needs a single column
    assert low.grid.cols == unlimited.grid.cols
    assert high.grid.cols == 1
    assert high.grid.rows == len(high.cells)


def test_smoothing_settles_inside_cells():
    engine = BubbleLayout.from_records(generate_members_records())
    engine.compute_layout("all", (600, 420))
    result = engine.set_mode("member")

    frames = list(engine.animate(max_ticks=2000))
    assert 0 < len(frames) < 2000
    assert engine.simulation.settled
    assert outside_bounds(frames[-1], result.radii, result.boxes) == []


def test_smoothing_anchors():
    engine = BubbleLayout.from_records(generate_members_records(), attract_to="target")
    result = engine.compute_layout("member", (600, 420))

    assert engine.attract_to == AttractionAnchor.target
    assert engine.simulation.anchors is None
    np.testing.assert_array_equal(engine.targets.array, result.xy)

    engine.attract_to = AttractionAnchor.cell
    engine.compute_layout("member", (600, 420))
    centers = 0.5 * (result.boxes[:, :2] + result.boxes[:, 2:])
    np.testing.assert_allclose(engine.simulation.anchors, centers)


def test_all_mode_pauses_the_smoothing():
    engine = BubbleLayout.from_records(generate_members_records())
    engine.compute_layout("category", (600, 420))
    result = engine.set_mode("all")

    assert list(engine.animate()) == []
    np.testing.assert_allclose(engine.live.array, result.xy)


def test_resize_recomputes_the_current_mode():
    engine = BubbleLayout.from_records(generate_members_records())
    engine.compute_layout("member", (900, 420))
    result = engine.resize((300, 420))

    assert result.mode == ViewMode.group_a
    assert result.viewport == (300, 420)
    assert result.grid.cols * result.grid.cell_width <= 300


def test_estimator_parameters():
    engine = BubbleLayout(min_radius=4, footprint="area")
    params = engine.get_params()

    assert params["min_radius"] == 4
    assert params["footprint"] == "area"
    assert engine.set_params(max_radius=40).max_radius == 40


def test_set_params_normalizes_options():
    engine = BubbleLayout.from_records(generate_members_records())
    engine.set_params(footprint="AREA", attract_to="Target")

    assert engine.footprint == FootprintEstimate.area
    assert engine.attract_to == AttractionAnchor.target
    assert engine.get_params()["footprint"] == "area"

    result = engine.compute_layout("category", (800, 600))
    assert engine.simulation.anchors is None
    assert outside_bounds(result.xy, result.radii, result.boxes) == []

    with pytest.raises(ValueError, match="Invalid attraction anchor"):
        engine.set_params(attract_to="bogus")
    assert engine.attract_to == AttractionAnchor.target


def test_grid_base_follows_the_largest_radius():
    # the base cell is sized by the largest radius of any group, above every footprint
    circles = make_circles(["A", "A", "B"], ["x", "y", "x"], [100, 100, 8100])
    engine = BubbleLayout(margin=(0, 0, 0, 0), min_cell=0, cell_gap=4, cell_padding=6).fit(circles)
    result = engine.compute_layout("group_a", (2000, 2000))

    assert result.radii.max() == pytest.approx(28)
    assert result.grid.cell_height == pytest.approx(2 * 28 + 6 + 4)


def test_caller_errors():
    with pytest.raises(ValueError, match="Call `fit` first"):
        BubbleLayout().compute_layout("all", (100, 100))
    with pytest.raises(ValueError, match="Invalid footprint estimate"):
        BubbleLayout(footprint="circle")

    engine = BubbleLayout.from_records(generate_members_records())
    with pytest.raises(ValueError, match="Invalid view mode"):
        engine.compute_layout("by-day", (100, 100))
    with pytest.raises(ValueError, match="no layout"):
        engine.resize((100, 100))
    with pytest.raises(ValueError, match="No viewport"):
        engine.compute_layout("all")


def test_degenerate_viewport_and_weights():
    circles = make_circles(["a", "a", "b"], ["x", "y", "x"], [0, float("nan"), 5])
    engine = BubbleLayout().fit(circles)
    result = engine.compute_layout("member", (0, 0))

    assert result.viewport == (1.0, 1.0)
    assert np.all(np.isfinite(result.xy))
    np.testing.assert_array_equal(result.radii[:2], [2, 2])


def test_verbose_progress_messages(capsys):
    engine = BubbleLayout.from_records(generate_members_records(), verbose=True)
    engine.compute_layout("all", (600, 420))
    engine.compute_layout("member", (600, 420))
    out = capsys.readouterr().out

    assert "Registered" in out
    assert "Radius coefficient set to" in out
    assert "Smallest gap between circles" in out
