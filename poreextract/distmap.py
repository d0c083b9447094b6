"""Distance map of the void space and its smoothing.

The functions here work on a *surface* object that exposes:

``nx``, ``ny``, ``nz``
    image size;
``segs``
    run-length rows, ``segs[k][j]`` being a :class:`SegmentRow` whose void
    segments (value 0) carry their :class:`Voxel` objects in ``voxels``;
``voxels``
    every void voxel, ordered by k, then j, then i;
``clip_r_out_x``, ``clip_r_out_yz``
    how strongly radii are clipped near the image faces.
"""

from __future__ import annotations

import logging
import math
from bisect import bisect_right
from operator import attrgetter
from typing import Callable, Iterator

import numpy as np

from poreextract.elements import Voxel

log = logging.getLogger(__name__)

_start = attrgetter("start")


def _segment_index(row, i: int) -> int:
    """Index of the segment of ``row`` holding ``i``, or the sentinel's index."""
    p = bisect_right(row.segments, i, key=_start) - 1
    if 0 <= p < row.count:
        return p
    return row.count


def segments_to_image(config) -> np.ndarray:
    """Expand the run-length rows back into an ``(nx, ny, nz)`` class image."""
    image = np.full((config.nx, config.ny, config.nz), 255, dtype=np.uint8)
    for k, plane in enumerate(config.segs):
        for j, row in enumerate(plane):
            for p, seg in enumerate(row):
                end = row.segments[p + 1].start
                image[seg.start:end, j, k] = seg.value
    return image


class _DistanceMapper:
    """Nearest-alien search reusing the aliens found for previous rows."""

    def __init__(self, surface, image: np.ndarray):
        self.s = surface
        self.image = image
        self.nx, self.ny, self.nz = surface.nx, surface.ny, surface.nz
        nz = self.nz
        self.old = [[(i, j, -(nz // 2) - 1) for i in range(self.nx)]
                    for j in range(self.ny + 1)]

    def _inside(self, i, j, k) -> bool:
        return 0 <= i < self.nx and 0 <= j < self.ny and 0 <= k < self.nz

    def _row_segments(self, i, j, k):
        row = self.s.segs[k][j]
        p = _segment_index(row, i)
        nxt = p + 1 if p < row.count else row.count
        return row.segments[p], row.segments[nxt]

    def assign(self, vox: Voxel, value: int = 0) -> None:
        i, j, k = vox.i, vox.j, vox.k
        nx, ny, nz = self.nx, self.ny, self.nz
        image, old = self.image, self.old

        alien = (i, j, -nz)
        eps_max = 2 * nx
        frz2 = float(eps_max * eps_max)
        frz1, fry1 = 2, 0

        if k > 0:
            if image[i, j, k - 1] != value:
                alien, frz2, frz1 = (i, j, k - 1), 1.0, 3
            else:
                if j > 0:
                    if image[i, j - 1, k] != value:
                        alien, frz2, frz1 = (i, j - 1, k), 1.0, 3
                    else:
                        oi, oj, ok = old[j - 1][i]
                        d = (oi - i) ** 2 + (oj - j) ** 2 + (ok - k) ** 2
                        frz2 = float(d)
                        frz1 = int(-math.sqrt(d) - 1)
                        fry1 = oj - j - 1
                        alien = (oi, oj, ok)
                oi, oj, ok = old[j][i]
                d = (oi - i) ** 2 + (oj - j) ** 2 + (ok - k) ** 2
                if d < frz2:
                    alien = (oi, oj, ok)
                    frz2 = float(d)
                    frz1 = ok - k - 1
                    if j == 0:
                        fry1 = int(-math.sqrt(frz2) - 1)
        elif j > 0:
            if image[i, j - 1, k] != value:
                alien, frz2, frz1 = (i, j - 1, k), 1.0, 3
            else:
                oi, oj, ok = old[j - 1][i]
                d = (oi - i) ** 2 + (oj - j) ** 2 + (ok - k) ** 2
                frz2 = float(d)
                frz1 = 0
                fry1 = oj - j - 1
                alien = (oi, oj, ok)
        else:
            seg, nxt = self._row_segments(i, j, k)
            before = seg.start - 1
            if 0 <= nxt.start < nx:
                eps_max = nxt.start - i
                if 0 <= before < nx and i - before < eps_max:
                    eps_max = i - before
                    alien = (before, j, k)
                else:
                    alien = (nxt.start, j, k)
            elif 0 <= before < nx:
                eps_max = min(i - before, eps_max)
                alien = (before, j, k)
            elif 0 <= i < nx:
                eps_max = min(nx, ny, nz) + 1
            else:
                log.error("outside voxel %d %d %d", i, j, k)
            frz2 = float(eps_max * eps_max)
            frz1 = -eps_max
            fry1 = -eps_max

        c = max(frz1 - 1, -k)
        while c <= min(int(math.sqrt(frz2)) + 1, nz - k - 1):
            rem = frz2 - c * c
            if rem >= 0:
                root = math.sqrt(rem)
                b_hi = min(int(root + 1.001), ny - j - 1)
                b = max(max(int(-root), fry1) - 1, -j)
                while b <= b_hi:
                    jj, kk = j + b, k + c
                    if image[i, jj, kk] != value:
                        d = b * b + c * c
                        if d < frz2:
                            frz2 = float(d)
                            alien = (i, jj, kk)
                    else:
                        seg, nxt = self._row_segments(i, jj, kk)
                        if seg.start > 0:
                            a = seg.start - 1 - i
                            d = a * a + b * b + c * c
                            if d < frz2:
                                frz2 = float(d)
                                alien = (i + a, jj, kk)
                        if nxt.start < nx:
                            a = nxt.start - i
                            d = a * a + b * b + c * c
                            if d < frz2:
                                frz2 = float(d)
                                alien = (i + a, jj, kk)
                    b += 1
            c += 1

        if not self._inside(*alien):
            ai = -(nx // 4) - 1 if i < nx // 2 else nx * 5 // 4 + 1
            aj = -(ny // 4) - 1 if j < ny // 2 else ny * 5 // 4 + 1
            ak = -(nz // 4) - 1 if k < nz // 2 else nz * 5 // 4 + 1
            alien = (ai, aj, ak)
            vox.R = math.sqrt((ai - i) ** 2 + (aj - j) ** 2 + (ak - k) ** 2) - 0.5
        else:
            ai, aj, ak = alien
            limit = math.sqrt((ai - i) ** 2 + (aj - j) ** 2 + (ak - k) ** 2) - 0.5
            cyz, cx = self.s.clip_r_out_yz, self.s.clip_r_out_x
            face = min(j + 2, ny - j + 1)
            if face < limit:
                limit = max((1.0 - cyz) * limit + cyz * face, 0.01)
            face = min(k + 2, nz - k + 1)
            if face < limit:
                limit = max((1.0 - cyz) * limit + cyz * face, 0.01)
            face = min(i + 2, nx - i + 1)
            if face < limit:
                limit = max((1.0 - cx) * limit + cx * face, 0.1)
            vox.R = limit

        old[j][i] = alien


def compute_distance_map(surface) -> float:
    """Set ``R`` of every void voxel to its distance map; return the average."""
    voxels = surface.voxels
    if not voxels:
        log.info("no voxels, no balls")
        return 0.0
    mapper = _DistanceMapper(surface, segments_to_image(surface))
    total = 0.0
    for vox in voxels:
        mapper.assign(vox, 0)
        total += vox.R
    average = total / len(voxels)
    log.info("average distance map = %g", average)
    return average


def _neighbour_voxels(surface, i: int, j: int, k: int) -> Iterator[Voxel]:
    """Void voxels of the 3x3x3 block around (i, j, k), clipped to the image."""
    nx_i = max(i - 1, 0)
    for kk in range(max(k - 1, 0), min(k + 2, surface.nz)):
        for jj in range(max(j - 1, 0), min(j + 2, surface.ny)):
            row = surface.segs[kk][jj]
            p = _segment_index(row, nx_i)
            ii = nx_i
            seg = row.segments[p]
            if seg.value != 0 and p < row.count and row.segments[p + 1].value == 0:
                p += 1
                seg = row.segments[p]
                ii = seg.start
            if seg.value == 0 and p < row.count:
                end = min(row.segments[p + 1].start, i + 2)
                for x in range(ii, end):
                    yield seg.voxels[x - seg.start]


def _void_voxels(surface) -> Iterator[tuple[int, int, int, Voxel]]:
    for k, plane in enumerate(surface.segs):
        for j, row in enumerate(plane):
            for p, seg in enumerate(row):
                if seg.value != 0:
                    continue
                for i in range(seg.start, row.segments[p + 1].start):
                    yield i, j, k, seg.voxels[i - seg.start]


def _block_sum(surface, i, j, k, weight: Callable[[Voxel], float]) -> tuple[float, int]:
    total, count = 0.0, 0
    for vox in _neighbour_voxels(surface, i, j, k):
        total += weight(vox)
        count += 1
    return total, count


def smooth_radius(surface) -> float:
    """Nudge each radius towards its neighbourhood; return the largest radius."""
    delta: dict[Voxel, float] = {}
    for i, j, k, vox in _void_voxels(surface):
        total, count = _block_sum(surface, i, j, k, attrgetter("R"))
        delta[vox] = 4.0 * total / (3 * count + 27) - vox.R

    for i, j, k, vox in _void_voxels(surface):
        total, count = _block_sum(surface, i, j, k, delta.__getitem__)
        change = 0.02 * (delta[vox] - 0.99 * 2.0 * total / (count + 27))
        vox.R += min(max(change, -0.005), 0.01)

    largest = max((v.R for v in surface.voxels), default=0.0)
    largest = max(largest, 0.0)
    log.info("smoothed radius, max %g", largest)
    return largest