"""Region growing of pore labels over the padded element image.

The element image ``velems`` is an integer array indexed ``[i, j, k]`` with
a one-voxel border on every side, so an image of ``(nx, ny, nz)`` voxels
has shape ``(nx + 2, ny + 2, nz + 2)``. Pore labels are the values in the
inclusive range ``[bgn, lst]``. Radius arrays have the unpadded shape
``(nx, ny, nz)`` and hold the distance map of the void voxels.

Every function changes ``velems`` in place and returns the number of
voxels it changed.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Callable, Optional

import numpy as np

log = logging.getLogger(__name__)

# Neighbour order decides which label wins when several could be taken.
_OFFSETS = ((1, 0, 0), (-1, 0, 0), (0, 1, 0), (0, -1, 0), (0, 0, 1), (0, 0, -1))

_Compare = Optional[Callable[[np.ndarray, np.ndarray], np.ndarray]]


def _check(velems) -> None:
    if not isinstance(velems, np.ndarray) or velems.ndim != 3:
        raise ValueError("velems must be a three-dimensional numpy array")
    if min(velems.shape) < 3:
        raise ValueError("velems must have a border of one voxel on every side")


def _interior(a: np.ndarray, di: int = 0, dj: int = 0, dk: int = 0) -> np.ndarray:
    """The interior of ``a``, shifted by the given offset."""
    nx, ny, nz = a.shape
    return a[1 + di:nx - 1 + di, 1 + dj:ny - 1 + dj, 1 + dk:nz - 1 + dk]


def _padded_radius(radius, velems: np.ndarray) -> np.ndarray:
    radius = np.asarray(radius)
    expected = tuple(s - 2 for s in velems.shape)
    if radius.shape != expected:
        raise ValueError(f"radius has shape {radius.shape}, expected {expected}")
    padded = np.full(velems.shape, -np.inf, dtype=np.float64)
    _interior(padded)[...] = radius
    return padded


def _in_range(values: np.ndarray, bgn: int, lst: int) -> np.ndarray:
    return (bgn <= values) & (values <= lst)


def _best_label(values: np.ndarray) -> Optional[tuple[int, int]]:
    """The most frequent label and its count; the smallest label wins ties."""
    counts = Counter(values.tolist())
    if not counts:
        return None
    label = min(counts, key=lambda lab: (-counts[lab], lab))
    return label, counts[label]


def _take_first_neighbour(source: np.ndarray, target: np.ndarray,
                          candidates: np.ndarray, bgn: int, lst: int) -> int:
    """Give each candidate the first in-range neighbour label read from ``source``."""
    chosen = np.zeros_like(candidates)
    inner = _interior(target)
    for offset in _OFFSETS:
        nb = _interior(source, *offset)
        take = candidates & ~chosen & _in_range(nb, bgn, lst)
        inner[take] = nb[take]
        chosen |= take
    return int(np.count_nonzero(chosen))


def _sweep(velems: np.ndarray, bgn: int, lst: int, por_value: int,
           reverse: bool) -> int:
    """Grow labels voxel by voxel, reading labels already changed in this pass."""
    inner = _interior(velems)
    # argwhere on the (k, j, i) view lists voxels with i running fastest.
    order = np.argwhere(inner.transpose(2, 1, 0) == por_value)
    if reverse:
        order = order[::-1]
    changes = 0
    for k, j, i in order:
        ci, cj, ck = i + 1, j + 1, k + 1
        for di, dj, dk in _OFFSETS:
            label = velems[ci + di, cj + dj, ck + dk]
            if bgn <= label <= lst:
                velems[ci, cj, ck] = label
                changes += 1
                break
    return changes


def grow_pores_x2(velems, bgn, lst, por_value) -> int:
    """Grow labels into ``por_value`` voxels: one parallel and two ordered passes.

    Returns the number of changes made by the last, backward pass.
    """
    _check(velems)
    snapshot = velems.copy()
    first = _take_first_neighbour(snapshot, velems,
                                  _interior(snapshot) == por_value, bgn, lst)
    forward = _sweep(velems, bgn, lst, por_value, reverse=False)
    backward = _sweep(velems, bgn, lst, por_value, reverse=True)
    log.info("ngrowX3: %d, %d, ngrowX2: %d", first, forward, backward)
    return backward


def grow_pores(velems, bgn, lst, por_value) -> int:
    """Give every ``por_value`` voxel the label of its first labelled neighbour."""
    _check(velems)
    snapshot = velems.copy()
    changes = _take_first_neighbour(snapshot, velems,
                                    _interior(snapshot) == por_value, bgn, lst)
    log.info("ngrowPors: %d", changes)
    return changes


def retreat_pores_median(radius, velems, bgn, lst, unassigned) -> int:
    """Unlabel pore voxels that touch both their own and another pore."""
    _check(velems)
    _padded_radius(radius, velems)
    snapshot = velems.copy()
    centre = _interior(snapshot)
    n_same = np.zeros(centre.shape, dtype=np.int64)
    n_diff = np.zeros(centre.shape, dtype=np.int64)
    for offset in _OFFSETS:
        nb = _interior(snapshot, *offset)
        same = nb == centre
        n_same += same
        n_diff += ~same & _in_range(nb, bgn, lst)
    retreat = _in_range(centre, bgn, lst) & (n_same > 0) & (n_diff > 0)
    _interior(velems)[retreat] = unassigned
    changes = int(np.count_nonzero(retreat))
    log.info("nRetreat: %d", changes)
    return changes


def _grow_by_vote(radius, velems, bgn, lst, raw_value, count_cmp: _Compare,
                  vote_cmp: _Compare, threshold: int, name: str) -> int:
    """Label ``raw_value`` voxels by a majority of their labelled neighbours.

    A voxel is considered when at least ``threshold`` neighbours are labelled
    and pass ``count_cmp`` on the radii; it takes the label most voted for by
    neighbours passing ``vote_cmp``, when that label has ``threshold`` votes.
    """
    _check(velems)
    rpad = _padded_radius(radius, velems)
    snapshot = velems.copy()
    centre = _interior(snapshot)
    r_centre = _interior(rpad)
    neighbours = [_interior(snapshot, *o) for o in _OFFSETS]
    r_neighbours = [_interior(rpad, *o) for o in _OFFSETS]

    def passes(nb, r_nb, cmp: _Compare) -> np.ndarray:
        mask = _in_range(nb, bgn, lst)
        if cmp is not None:
            mask &= cmp(r_nb, r_centre)
        return mask

    count = np.zeros(centre.shape, dtype=np.int64)
    for nb, r_nb in zip(neighbours, r_neighbours):
        count += passes(nb, r_nb, count_cmp)
    idx = np.nonzero((centre == raw_value) & (count >= threshold))

    changes = 0
    if idx[0].size:
        labels = np.stack([nb[idx] for nb in neighbours], axis=1)
        votes = np.stack([(passes(nb, r_nb, vote_cmp) & (nb != centre))[idx]
                          for nb, r_nb in zip(neighbours, r_neighbours)], axis=1)
        inner = _interior(velems)
        for i, j, k, lab, vote in zip(*idx, labels, votes):
            best = _best_label(lab[vote])
            if best is not None and best[1] >= threshold:
                inner[i, j, k] = best[0]
                changes += 1
    log.info("%s: %d", name, changes)
    return changes


def grow_pores_med_strict(radius, velems, bgn, lst, raw_value) -> int:
    """Label voxels with three labelled neighbours of larger radius."""
    return _grow_by_vote(radius, velems, bgn, lst, raw_value,
                         np.greater_equal, np.greater, 3, "ngMedStrict")


def grow_pores_median(radius, velems, bgn, lst, raw_value) -> int:
    """Label voxels with two labelled neighbours of larger radius."""
    return _grow_by_vote(radius, velems, bgn, lst, raw_value,
                         np.greater, np.greater, 2, "ngMedian")


def grow_pores_med_eqs(radius, velems, bgn, lst, raw_value) -> int:
    """Label voxels with two labelled neighbours of equal or larger radius."""
    return _grow_by_vote(radius, velems, bgn, lst, raw_value,
                         np.greater_equal, np.greater_equal, 2, "ngMedEqs")


def grow_pores_med_eqs_loose(radius, velems, bgn, lst, raw_value) -> int:
    """Label voxels with two neighbours of one label, whatever their radii."""
    _padded_radius(radius, velems) if isinstance(velems, np.ndarray) else None
    return _grow_by_vote(radius, velems, bgn, lst, raw_value,
                         None, None, 2, "ngMedLoose")


def median_elem(radius, velems, bgn, lst) -> int:
    """Relabel pore voxels outnumbered by neighbours of other pores."""
    _check(velems)
    _padded_radius(radius, velems)
    snapshot = velems.copy()
    centre = _interior(snapshot)
    neighbours = [_interior(snapshot, *o) for o in _OFFSETS]

    n_same = np.zeros(centre.shape, dtype=np.int64)
    n_diff = np.zeros(centre.shape, dtype=np.int64)
    for nb in neighbours:
        same = nb == centre
        n_same += same
        n_diff += ~same & _in_range(nb, bgn, lst)
    idx = np.nonzero(_in_range(centre, bgn, lst) & (n_diff > n_same))

    changes = 0
    if idx[0].size:
        labels = np.stack([nb[idx] for nb in neighbours], axis=1)
        votes = np.stack([((nb != centre) & _in_range(nb, bgn, lst))[idx]
                          for nb in neighbours], axis=1)
        inner = _interior(velems)
        for i, j, k, same, lab, vote in zip(*idx, n_same[idx], labels, votes):
            best = _best_label(lab[vote])
            if best is not None and best[1] > same:
                inner[i, j, k] = best[0]
                changes += 1
    log.info("nMedian: %d", changes)
    return changes