"""Throats between labelled pores and the maximal spheres of their faces."""

from __future__ import annotations

import logging
from operator import attrgetter

import numpy as np

from poreextract.elements import MedialBall, Throat

log = logging.getLogger(__name__)

# For each axis: the pairs of neighbouring labels, and the loop order
# (outer to inner) in which the interfaces are visited.
_AXIS_ORDER = ((0, 2, 1), (1, 2, 0), (2, 1, 0))

_by_radius = attrgetter("R")


def _cell(ball: MedialBall) -> tuple[int, int, int]:
    return int(ball.fi + 1), int(ball.fj + 1), int(ball.fk + 1)


def _pairs(velems: np.ndarray, axis: int) -> tuple[np.ndarray, np.ndarray]:
    """Labels on both sides of every face normal to ``axis``, in visiting order."""
    lower = [slice(1, -1)] * 3
    upper = [slice(1, -1)] * 3
    lower[axis] = slice(None, -1)
    upper[axis] = slice(1, None)
    order = _AXIS_ORDER[axis]
    a = velems[tuple(lower)].transpose(order).ravel()
    b = velems[tuple(upper)].transpose(order).ravel()
    return a, b


def _connect(pores, throats, lo: int, hi: int) -> int:
    """The throat joining pores ``lo`` and ``hi``, created when it is new."""
    tid = pores[hi].contacts.get(lo)
    if tid is not None:
        return tid
    tid = len(throats)
    pores[hi].contacts[lo] = tid
    if hi in pores[lo].contacts:
        log.error("inconsistent contacts between pores %d and %d", lo, hi)
    pores[lo].contacts[hi] = tid
    throats.append(Throat(tid=tid, e1=lo, e2=hi))
    return tid


def _add_counts(pores, labels: np.ndarray, first_pore: int, attribute: str) -> None:
    labels = labels[labels >= first_pore]
    if labels.size == 0:
        return
    counts = np.bincount(labels, minlength=len(pores))
    for pid in np.flatnonzero(counts):
        pore = pores[int(pid)]
        setattr(pore, attribute, getattr(pore, attribute) + int(counts[pid]))


def _find_connections(network) -> None:
    velems = network.velems
    pores, throats = network.pores, network.throats
    first_pore = network.first_pore
    for axis in range(3):
        a, b = _pairs(velems, axis)
        interface = (a >= 0) & (a != b) & (b >= 0)
        for p1, p2 in zip(a[interface].tolist(), b[interface].tolist()):
            lo, hi = (p1, p2) if p1 < p2 else (p2, p1)
            tid = _connect(pores, throats, lo, hi)
            throats[tid].cross_area[axis] += 1 if p2 > p1 else -1

        touching = (a >= 0) & (a != b)
        _add_counts(pores, a[touching], first_pore, "surface_area")
        _add_counts(pores, b[touching], first_pore, "surface_area")

        if axis == 0:
            # A voxel beside another pore is counted for the smaller label.
            owner = np.where(interface, np.minimum(a, b), a)[a >= 0]
            _add_counts(pores, owner, first_pore, "volume")
        log.info("looking for connections: %d throats", len(throats))


def _collect_face_voxels(network) -> None:
    velems = network.velems
    pores, throats = network.pores, network.throats
    surface = network.surface
    inner = velems[1:-1, 1:-1, 1:-1]
    neighbours = [velems[2:, 1:-1, 1:-1], velems[:-2, 1:-1, 1:-1],
                  velems[1:-1, 2:, 1:-1], velems[1:-1, :-2, 1:-1],
                  velems[1:-1, 1:-1, 2:], velems[1:-1, 1:-1, :-2]]
    touches = np.zeros(inner.shape, dtype=bool)
    for nb in neighbours:
        touches |= (nb != inner) & (nb >= 0)
    candidates = (inner >= network.first_pore) & touches

    n_multi = 0
    for k, j, i in np.argwhere(candidates.transpose(2, 1, 0)):
        p1 = int(inner[i, j, k])
        neis = sorted({int(nb[i, j, k]) for nb in neighbours
                       if nb[i, j, k] != p1 and nb[i, j, k] >= 0})
        vox = surface.vxl(i, j, k)
        if vox is None:
            raise RuntimeError(f"labelled voxel ({i}, {j}, {k}) is not a void voxel")
        for nei in neis:
            throat = throats[pores[p1].contacts[nei]]
            if p1 > nei:
                throat.toxels2.append(vox)
            else:
                throat.toxels1.append(vox)
        if len(neis) > 1:
            n_multi += 1
    if n_multi:
        log.warning("%d voxels touch more than two pores", n_multi)

    for throat in throats:
        if not throat.toxels2:
            log.error("throat %d has no face voxels on its second side", throat.tid)
        throat.toxels2.sort(key=_by_radius, reverse=True)
        throat.toxels1.sort(key=_by_radius, reverse=True)


def _face_ball(network, vox, existing_type: int, new_type: int, side: int) -> None:
    """Mark the largest face voxel's ball, creating one when there is none."""
    if vox.ball is not None:
        ball = vox.ball
        ball.type = existing_type
        master = ball.master_sphere()
        if master is not None and master is not ball:
            label = int(network.velems[_cell(master)])
            if label != side:
                log.debug("face ball of element %d lies in element %d", side, label)
        return
    ball = MedialBall(vox, new_type)
    vox.ball = ball
    network.throat_addit_balls.append(ball)
    network.surface.move_uphill(ball)


def create_throats(network) -> list[Throat]:
    """Find the throats between the labelled pores of ``network``.

    Fills ``network.throats``, pore contacts, surface areas and volumes,
    collects the face voxels of every throat and gives each face a
    maximal sphere. Returns the throats.
    """
    _find_connections(network)
    network.n_nodes = len(network.pores)
    network.n_trots = len(network.throats)
    network.n_elems = network.n_nodes + network.n_trots
    log.info("nElems: %d = %d + %d", network.n_elems, network.n_nodes, network.n_trots)

    _collect_face_voxels(network)

    for throat in network.throats:
        if throat.toxels2:
            _face_ball(network, throat.toxels2[0], 5, 15, throat.e2)
        if throat.toxels1:
            _face_ball(network, throat.toxels1[0], 6, 16, throat.e1)
    return network.throats