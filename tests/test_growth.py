import numpy as np
import pytest

from poreextract.growth import (
    grow_pores,
    grow_pores_med_eqs,
    grow_pores_med_eqs_loose,
    grow_pores_med_strict,
    grow_pores_median,
    grow_pores_x2,
    median_elem,
    retreat_pores_median,
)

PAD = -300
RAW = -1
BGN, LST = 2, 20


def padded(interior):
    interior = np.asarray(interior, dtype=np.int64)
    out = np.full(tuple(s + 2 for s in interior.shape), PAD, dtype=np.int64)
    out[1:-1, 1:-1, 1:-1] = interior
    return out


def line(values):
    return padded(np.array(values).reshape(len(values), 1, 1))


def inner(velems):
    return velems[1:-1, 1:-1, 1:-1]


def plane(centre, left, right, down, up, fill=RAW):
    """A 3x3x1 interior with the given labels around its centre."""
    grid = np.full((3, 3, 1), fill, dtype=np.int64)
    grid[1, 1, 0] = centre
    grid[0, 1, 0] = left
    grid[2, 1, 0] = right
    grid[1, 0, 0] = down
    grid[1, 2, 0] = up
    return padded(grid)


def test_grow_pores_reads_snapshot_only():
    velems = line([2, RAW, RAW])
    changes = grow_pores(velems, BGN, LST, RAW)
    assert changes == 1
    assert inner(velems).ravel().tolist() == [2, 2, RAW]


def test_grow_pores_prefers_positive_i_neighbour():
    velems = line([2, RAW, 3])
    grow_pores(velems, BGN, LST, RAW)
    assert inner(velems).ravel().tolist() == [2, 3, 3]


def test_grow_pores_ignores_out_of_range_labels():
    velems = line([1, RAW, 25])
    assert grow_pores(velems, BGN, LST, RAW) == 0
    assert inner(velems).ravel().tolist() == [1, RAW, 25]


def test_grow_pores_change_count_matches_difference():
    rng = np.random.default_rng(3)
    interior = rng.choice([RAW, 2, 3, 4], size=(4, 4, 4))
    velems = padded(interior)
    before = velems.copy()
    changes = grow_pores(velems, BGN, LST, RAW)
    assert changes == int(np.count_nonzero(velems != before))


def test_grow_pores_x2_fills_line_forward():
    velems = line([2, RAW, RAW])
    last = grow_pores_x2(velems, BGN, LST, RAW)
    assert last == 0
    assert inner(velems).ravel().tolist() == [2, 2, 2]


def test_grow_pores_x2_backward_pass_counts():
    velems = line([RAW, RAW, RAW, 3])
    last = grow_pores_x2(velems, BGN, LST, RAW)
    assert last == 1
    assert inner(velems).ravel().tolist() == [3, 3, 3, 3]


def test_retreat_unlabels_voxel_touching_two_pores():
    velems = line([2, 2, 3])
    radius = np.ones((3, 1, 1))
    changes = retreat_pores_median(radius, velems, BGN, LST, RAW)
    assert changes == 1
    assert inner(velems).ravel().tolist() == [2, RAW, 3]


def test_median_takes_label_from_larger_neighbours():
    velems = line([5, RAW, 5])
    radius = np.array([2.0, 1.0, 2.0]).reshape(3, 1, 1)
    assert grow_pores_median(radius, velems, BGN, LST, RAW) == 1
    assert inner(velems)[1, 0, 0] == 5


def test_median_needs_strictly_larger_radius_but_eqs_does_not():
    radius = np.ones((3, 1, 1))
    velems = line([5, RAW, 5])
    assert grow_pores_median(radius, velems, BGN, LST, RAW) == 0
    assert inner(velems)[1, 0, 0] == RAW
    assert grow_pores_med_eqs(radius, velems, BGN, LST, RAW) == 1
    assert inner(velems)[1, 0, 0] == 5


def test_med_strict_needs_three_votes():
    radius = np.ones((3, 3, 1))
    radius[1, 1, 0] = 0.5
    two = plane(RAW, 6, 6, RAW, RAW)
    assert grow_pores_med_strict(radius, two, BGN, LST, RAW) == 0
    three = plane(RAW, 6, 6, 6, RAW)
    assert grow_pores_med_strict(radius, three, BGN, LST, RAW) == 1
    assert three[2, 2, 1] == 6


def test_loose_ignores_radius_and_breaks_ties_by_smallest_label():
    radius = np.zeros((3, 3, 1))
    radius[1, 1, 0] = 100.0
    velems = plane(RAW, 7, 7, 4, 4)
    assert grow_pores_med_eqs_loose(radius, velems, BGN, LST, RAW) == 1
    assert velems[2, 2, 1] == 4


def test_loose_needs_two_votes_for_one_label():
    radius = np.zeros((3, 3, 1))
    velems = plane(RAW, 7, 4, RAW, RAW)
    assert grow_pores_med_eqs_loose(radius, velems, BGN, LST, RAW) == 0
    assert velems[2, 2, 1] == RAW


def test_median_elem_relabels_outnumbered_voxel():
    radius = np.ones((3, 3, 1))
    velems = plane(2, 3, 3, 4, RAW)
    changes = median_elem(radius, velems, BGN, LST)
    assert velems[2, 2, 1] == 3
    assert changes >= 1


def test_median_elem_keeps_voxel_without_majority():
    radius = np.ones((3, 3, 1))
    velems = plane(2, 2, 3, RAW, RAW)
    before = velems[2, 2, 1]
    median_elem(radius, velems, BGN, LST)
    assert velems[2, 2, 1] == before


def test_radius_shape_mismatch_raises():
    velems = line([5, RAW, 5])
    with pytest.raises(ValueError):
        grow_pores_median(np.ones((2, 1, 1)), velems, BGN, LST, RAW)


def test_non_3d_velems_raises():
    with pytest.raises(ValueError):
        grow_pores(np.zeros((4, 4), dtype=np.int64), BGN, LST, RAW)