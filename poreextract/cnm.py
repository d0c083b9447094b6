"""Classical network model properties and the four-file network format."""

from __future__ import annotations

import logging
import math
import os
import random
from dataclasses import dataclass, field

from poreextract.elements import Pore, Throat, dist

log = logging.getLogger(__name__)


def _mag(v) -> float:
    return math.sqrt(v[0] * v[0] + v[1] * v[1] + v[2] * v[2])


@dataclass
class NetworkProperties:
    """Per-throat and per-pore model parameters, in voxel units."""

    throat_radius: list[float] = field(default_factory=list)
    throat_shape_factor: list[float] = field(default_factory=list)
    throat_length: list[float] = field(default_factory=list)
    throat_lp1: list[float] = field(default_factory=list)
    throat_lp2: list[float] = field(default_factory=list)
    throat_length_throat: list[float] = field(default_factory=list)
    pore_radius: list[float] = field(default_factory=list)
    pore_shape_factor: list[float] = field(default_factory=list)
    n_short_length: int = 0
    below_allowed_g: float = 0.0
    above_allowed_g: float = 0.0
    total_area: float = 0.0
    check_sum: list[float] = field(default_factory=lambda: [0.0, 0.0, 0.0])


def random_shape_factor(rng: random.Random) -> float:
    """A random shape factor used where the computed one is not plausible."""
    while True:
        x1 = 2.0 * rng.random() - 1.0
        x2 = 2.0 * rng.random() - 1.0
        w = x1 * x1 + x2 * x2
        if 0.0 < w < 1.0:
            break
    w = math.sqrt(-2.0 * math.log(w) / w)
    y = 0.00625 * (x1 * w + 5.0)
    if y > 0.049:
        y = 0.0625
    return y


def compute_cnm_properties(pores: list[Pore], throats: list[Throat], nx: int,
                           rng: random.Random) -> NetworkProperties:
    """Compute radii, shape factors, lengths and volumes of the network.

    Pores 0 and 1 are the inlet and outlet. Throat and pore volumes and
    surface areas are updated in place.
    """
    nt, nn = len(throats), len(pores)
    props = NetworkProperties(
        throat_radius=[0.0] * nt, throat_shape_factor=[0.0] * nt,
        throat_length=[0.0] * nt, throat_lp1=[0.0] * nt, throat_lp2=[0.0] * nt,
        throat_length_throat=[0.0] * nt,
        pore_radius=[0.0] * nn, pore_shape_factor=[0.0] * nn)

    def half_length(e: int, mb) -> float:
        if e < 2:
            return mb.fi if e == 0 else nx - mb.fi
        return dist(pores[e].mb, mb)

    for ti, tr in enumerate(throats):
        if tr.surface_area == 0:
            tr.surface_area = 6
        if _mag(tr.cross_area) < 0.01:
            tr.cross_area[0] = 0.1
        for axis in range(3):
            props.check_sum[axis] += tr.cross_area[axis]
        area = _mag(tr.cross_area)

        mb = tr.mb22()
        lpt1 = half_length(tr.e1, mb)
        rp1 = max(mb.R if tr.e1 < 2 else pores[tr.e1].mb.R, 1.0)
        lpt2 = half_length(tr.e2, mb)
        rp2 = max(mb.R if tr.e2 < 2 else pores[tr.e2].mb.R, 1.0)

        rr = min(max(mb.R, 0.5), rp1, rp2)
        props.throat_radius[ti] = rr + 0.5 * (0.5 - rng.random())

        length = lpt1 + lpt2
        if length < 3.0:
            length = 3.01
            props.n_short_length += 1

        lp1 = 1.0 if tr.e1 < 2 else lpt1 * 0.67
        lp2 = 1.0 if tr.e2 < 2 else lpt2 * 0.67
        l_throat = length - lp1 - lp2
        if l_throat < 1e-7:
            l_throat = 1.0

        g = rr * rr / 4.0 / area
        if g >= 0.09:
            g = min(0.079, g / 2.0)
            props.above_allowed_g += area
        if g < 0.01:
            g = max(random_shape_factor(rng), 0.01)
            props.below_allowed_g += area
        props.total_area += area

        props.throat_shape_factor[ti] = g
        props.throat_length[ti] = length
        props.throat_lp1[ti] = lp1
        props.throat_lp2[ti] = lp2
        props.throat_length_throat[ti] = l_throat

    log.info("P1-to-P2 length < 3 for %d throats", props.n_short_length)

    for pid in range(2, nn):
        por = pores[pid]
        radius = por.mb.R
        props.pore_radius[pid] = radius
        if por.surface_area < 1:
            por.surface_area = 6
        if por.volume < 1:
            por.volume = 1

        shape_factor, sum_area = 5e-38, 1e-36
        for tid in por.contacts.values():
            area = _mag(throats[tid].cross_area)
            shape_factor += props.throat_shape_factor[tid] * area
            sum_area += area
        shape_factor /= sum_area

        pore_area = radius * radius / 4.0 / shape_factor
        sum_area += pore_area
        p_vol = por.volume
        # Volumes are whole voxel counts: shares are truncated.
        por.volume = int(p_vol * pore_area / sum_area)
        for tid in por.contacts.values():
            tr = throats[tid]
            tr.volume = int(tr.volume + p_vol * _mag(tr.cross_area) / sum_area)

        props.pore_shape_factor[pid] = shape_factor

    return props


def write_cnm(prefix, pores: list[Pore], throats: list[Throat], nx: int, ny: int,
              nz: int, dx: float, n_boundary: int, rng: random.Random) -> list[str]:
    """Compute the network properties and write the link and node files.

    Returns the paths written; nothing is written unless the network has
    exactly two boundary pores.
    """
    props = compute_cnm_properties(pores, throats, nx, rng)
    if n_boundary != 2:
        log.info("Skipping write of incompatible old network format.")
        return []

    prefix = os.fspath(prefix)
    paths = [prefix + suffix for suffix in
             ("_link1.dat", "_link2.dat", "_node1.dat", "_node2.dat")]
    dx3 = dx * dx * dx

    with open(paths[0], "w", encoding="ascii") as out:
        out.write("%6d\n" % len(throats))
        for ti, tr in enumerate(throats):
            out.write("%6d %6d %6d %E %E %E\n" % (
                ti + 1, tr.e1 - 1, tr.e2 - 1, tr.radius() * dx,
                props.throat_shape_factor[ti], props.throat_length[ti] * dx))

    with open(paths[1], "w", encoding="ascii") as out:
        for ti, tr in enumerate(throats):
            out.write("%6d %6d %6d %E %E %E %E %E\n" % (
                ti + 1, tr.e1 - 1, tr.e2 - 1, props.throat_lp1[ti] * dx,
                props.throat_lp2[ti] * dx, props.throat_length_throat[ti] * dx,
                tr.volume * dx3, 0.0))

    with open(paths[2], "w", encoding="ascii") as out:
        out.write("%6d  %E  %E  %E\n" % (len(pores) - 2, nx * dx, ny * dx, nz * dx))
        for pid in range(2, len(pores)):
            por = pores[pid]
            contacts = sorted(por.contacts.items())
            out.write("%6d %E %E %E %3d" % (
                pid - 1, por.mb.fi * dx, por.mb.fj * dx, por.mb.fk * dx, len(contacts)))
            inlet = outlet = 0
            for _, tid in contacts:
                tb = throats[tid]
                other = tb.e2 if tb.e1 == pid else tb.e1
                if other == 0:
                    inlet = 1
                elif other == 1:
                    outlet = 1
                out.write("\t%5d" % (other - 1))
            out.write("\t%5d" % inlet)
            out.write("\t%5d" % outlet)
            for _, tid in contacts:
                out.write("\t%5d" % (tid + 1))
            out.write("\n")

    with open(paths[3], "w", encoding="ascii") as out:
        for pid in range(2, len(pores)):
            por = pores[pid]
            out.write("%6d %E %E %E %E\n" % (
                pid - 1, por.volume * dx3, por.radius() * dx,
                props.pore_shape_factor[pid], 0.0))

    return paths