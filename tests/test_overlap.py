import numpy as np
import pytest
from utils import outside_bounds, overlap_violations

from bubblepack.data import Bounds
from bubblepack.overlap import overlapping_pairs, relax


def test_relax_separates_overlapping_circles():
    rng = np.random.RandomState(21)
    radii = rng.uniform(3, 8, size=12)
    positions = 100 + rng.normal(scale=5, size=(12, 2))
    box = Bounds(0, 0, 200, 200)
    result = relax(radii, positions, box, max_iterations=500, padding=0.25)

    assert result.converged
    assert overlap_violations(result.positions, radii, padding=0.25) == []
    assert outside_bounds(result.positions, radii, box.as_array()) == []


def test_relax_moves_each_circle_half_the_overlap():
    result = relax([5.0, 5.0], np.array([[46.0, 50.0], [54.0, 50.0]]), Bounds(0, 0, 100, 100))

    np.testing.assert_allclose(result.positions, [[45, 50], [55, 50]])
    assert result.iterations == 1


def test_coincident_centers_are_split():
    result = relax([4.0, 4.0, 4.0], np.full((3, 2), 50.0), Bounds(0, 0, 100, 100), max_iterations=500)

    assert result.converged
    assert overlapping_pairs([4.0, 4.0, 4.0], result.positions).size == 0


def test_already_separated_input_is_untouched():
    positions = np.array([[10.0, 10.0], [30.0, 10.0]])
    result = relax([5.0, 5.0], positions, Bounds(0, 0, 100, 100))

    np.testing.assert_array_equal(result.positions, positions)
    assert result.iterations == 0 and result.converged


def test_per_circle_bounds():
    boxes = np.array([[0, 0, 50, 50], [50, 0, 100, 50]], float)
    result = relax([10.0, 10.0], np.array([[60.0, 25.0], [40.0, 25.0]]), boxes)

    assert outside_bounds(result.positions, [10.0, 10.0], boxes) == []
    assert result.converged


def test_stuck_layout_is_not_converged():
    # two circles that cannot both fit in the box
    result = relax([10.0, 10.0], np.array([[10.0, 10.0], [12.0, 10.0]]), Bounds(0, 0, 25, 20))

    assert not result.converged
    assert overlapping_pairs([10.0, 10.0], result.positions).shape == (1, 2)


def test_invalid_bounds_shape():
    with pytest.raises(ValueError, match="Bounds must have shape"):
        relax([1.0, 1.0, 1.0], np.zeros((3, 2)), np.zeros((2, 4)))
