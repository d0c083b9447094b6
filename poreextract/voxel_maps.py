"""Voxel images of radii, throat faces and maximal spheres."""

from __future__ import annotations

import logging
import math
from typing import Optional

import numpy as np

log = logging.getLogger(__name__)


def _slice_bounds(depth: int, first: Optional[int], last: Optional[int]) -> tuple[int, int]:
    first = 0 if first is None else int(first)
    last = depth if last is None else int(last)
    if last <= first:
        raise ValueError(f"empty slice range [{first}, {last})")
    return first, last


def ball_radii_to_voxel(surface, shape) -> np.ndarray:
    """The distance-map radius of every void voxel; zero elsewhere."""
    field = np.zeros(tuple(shape), dtype=np.float32)
    for vox in surface.voxels:
        field[vox.i, vox.j, vox.k] = vox.R
    if surface.voxels:
        log.info("radius [%g %g]", float(field.min()), float(field.max()))
    return field


def throat_voxels(throats, shape, begin_slice=None, end_slice=None) -> np.ndarray:
    """Mark the face voxels of each throat with its index plus one.

    ``shape`` is the padded element-image shape; voxels are stored shifted
    by one, and only slices ``begin_slice <= k + 1 < end_slice`` are kept.
    """
    nx, ny, nz = (int(s) for s in shape)
    first, last = _slice_bounds(nz, begin_slice, end_slice)
    field = np.zeros((nx, ny, last - first), dtype=np.int32)
    for tr in throats:
        value = tr.tid + 1
        for vox in tr.toxels2:
            z = vox.k + 1
            if first <= z < last:
                field[vox.i + 1, vox.j + 1, z - first] = value
    return field


def _paint_sphere(field, surface, centre, radius, value, first, last) -> None:
    """Write ``value`` into the free voxels of a sphere, within the slices."""
    x, y, z = centre
    rlim = radius * radius
    ex = int(math.sqrt(rlim))
    r = np.arange(-ex, ex + 1)
    a, b, c = np.meshgrid(r, r, r, indexing="ij")
    mask = a * a + b * b + c * c <= rlim
    xs, ys, zs = x + a[mask], y + b[mask], z + c[mask]
    keep = ((xs >= 0) & (ys >= 0) & (zs >= 0)
            & (xs < surface.nx) & (ys < surface.ny) & (zs < surface.nz)
            & (zs >= first) & (zs < last))
    xs, ys, zs = xs[keep], ys[keep], zs[keep] - first
    free = field[xs, ys, zs] == 0
    field[xs[free], ys[free], zs[free]] = value


def pore_max_balls(surface, velems, shape, first_slice=None, last_slice=None) -> np.ndarray:
    """Paint each master sphere with the element label found at its index.

    The label is read from ``velems`` at the ball's own (unshifted) index.
    Spheres painted earlier keep their voxels.
    """
    nx, ny, nz = (int(s) for s in shape)
    first, last = _slice_bounds(nz, first_slice, last_slice)
    field = np.zeros((nx, ny, last - first), dtype=np.int32)
    for ball in surface.ball_space:
        if ball.level() != 1:
            continue
        x, y, z = int(ball.fi), int(ball.fj), int(ball.fk)
        _paint_sphere(field, surface, (x, y, z), ball.R, int(velems[x, y, z]),
                      first, last)
    return field


def throat_max_balls(surface, throats, shape, first_slice=None, last_slice=None) -> np.ndarray:
    """Paint the largest sphere of each throat face with its index plus one."""
    nx, ny, nz = (int(s) for s in shape)
    first, last = _slice_bounds(nz, first_slice, last_slice)
    field = np.zeros((nx, ny, last - first), dtype=np.int32)
    for tr in throats:
        mb1, mb2 = tr.mb11(), tr.mb22()
        if mb1 is not None and mb2 is not None:
            ball = mb1 if mb1.R > mb2.R else mb2
        elif mb1 is not None:
            ball = mb1
        else:
            ball = mb2
        centre = (int(ball.fi), int(ball.fj), int(ball.fk))
        _paint_sphere(field, surface, centre, ball.R, tr.tid + 1, first, last)
    return field