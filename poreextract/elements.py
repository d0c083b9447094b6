"""Voxels, maximal spheres and the pore and throat elements built from them."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional

LEVEL_MAX = 32767

# Ball centres sit in the middle of their voxel.
_CENTRE_OFFSET = 0.5


@dataclass(eq=False, slots=True)
class Voxel:
    """A void voxel with its distance-map radius and optional maximal sphere."""

    i: int = -1
    j: int = -1
    k: int = -1
    R: float = 0.0
    ball: Optional["MedialBall"] = None


class MedialBall:
    """A maximal sphere placed on a voxel of the medial surface."""

    __slots__ = ("vxl", "fi", "fj", "fk", "kind", "R", "kids", "neis",
                 "boss", "ikid", "mark", "cor_id")

    def __init__(self, voxel: Optional[Voxel] = None, kind: int = 0):
        self.vxl = voxel
        if voxel is None:
            self.fi, self.fj, self.fk = -10000.0, -0.5, -10000.0
            self.R = -10000.0
        else:
            self.fi = voxel.i + _CENTRE_OFFSET
            self.fj = voxel.j + _CENTRE_OFFSET
            self.fk = voxel.k + _CENTRE_OFFSET
            self.R = float(voxel.R)
        self.kind = kind
        self.kids: list[MedialBall] = []
        self.neis: list[MedialBall] = []
        self.boss: MedialBall = self
        self.ikid = 0
        self.mark = 0
        self.cor_id = 0

    def __repr__(self) -> str:
        return (f"MedialBall(fi={self.fi}, fj={self.fj}, fk={self.fk}, "
                f"R={self.R}, kind={self.kind})")

    def __sub__(self, other: "MedialBall") -> tuple[float, float, float]:
        return (self.fi - other.fi, self.fj - other.fj, self.fk - other.fk)

    def level(self) -> int:
        """Depth of this ball in the hierarchy; a master sphere is level 1."""
        depth = 1
        ball = self
        while ball.boss is not ball:
            ball = ball.boss
            depth += 1
        return depth

    def in_parents(self, other: "MedialBall") -> bool:
        """Whether ``other`` is this ball's boss or one of its ancestors."""
        ball = self
        while True:
            if other is ball.boss:
                return True
            if ball.boss is ball:
                return False
            ball = ball.boss

    def master_sphere(self) -> "MedialBall":
        """The root of the hierarchy this ball belongs to."""
        ball = self
        while ball.boss is not ball:
            ball = ball.boss
        return ball

    def is_nei(self, other: "MedialBall") -> bool:
        return any(n is other for n in self.neis)

    def remove_kid_boss(self, kid: "MedialBall") -> None:
        """Drop ``kid`` from the kids and hand it over to this ball's boss."""
        self.kids = [k for k in self.kids if k is not kid]
        kid.boss = self.boss

    def add_nei(self, other: "MedialBall") -> None:
        self.neis.append(other)

    def node(self) -> tuple[float, float, float]:
        return (self.fi, self.fj, self.fk)


@dataclass(eq=False)
class Pore:
    """A pore element: a master sphere plus the throats it touches."""

    mb: Optional[MedialBall] = None
    surface_area: int = 0
    volume: float = 0
    contacts: dict[int, int] = field(default_factory=dict)

    def node(self) -> tuple[float, float, float]:
        return self.mb.node()

    def contact(self, pore_id: int) -> int:
        """Index of the throat connecting this pore to ``pore_id``."""
        try:
            return self.contacts[pore_id]
        except KeyError:
            raise KeyError(f"no contact with pore {pore_id}") from None

    def radius(self) -> float:
        return self.mb.R


@dataclass(eq=False)
class Throat:
    """A throat between pores ``e1`` < ``e2`` with its face voxels."""

    tid: int
    e1: int
    e2: int
    surface_area: int = 0
    volume: float = 0
    cach_ind: int = 0
    n_corners: int = 0
    toxels2: list[Voxel] = field(default_factory=list)
    toxels1: list[Voxel] = field(default_factory=list)
    cross_area: list[float] = field(default_factory=lambda: [0.0, 0.0, 0.0])

    def n_toxel2_balls(self) -> int:
        return sum(1 for v in self.toxels2 if v.ball is not None)

    def radius(self) -> float:
        if not self.toxels1:
            return self.mb22().R
        return 0.5 * (self.mb22().R + self.mb11().R)

    def neighbour(self, i: int) -> int:
        return (self.e1, self.e2)[i]

    def node(self) -> tuple[float, float, float]:
        return self.mb22().node()

    def mb22(self) -> MedialBall:
        return self.toxels2[0].ball

    def mb11(self) -> Optional[MedialBall]:
        return self.toxels1[0].ball if self.toxels1 else None


def dist_sqr(a: MedialBall, b: MedialBall) -> float:
    return (a.fi - b.fi) ** 2 + (a.fj - b.fj) ** 2 + (a.fk - b.fk) ** 2


def dist(a: MedialBall, b: MedialBall) -> float:
    return math.sqrt(dist_sqr(a, b))


def ball_voxel_dist_sqr(ball: MedialBall, voxel: Voxel) -> float:
    """Squared distance from a ball centre to the centre of a voxel."""
    return ((ball.fi - voxel.i - _CENTRE_OFFSET) ** 2
            + (ball.fj - voxel.j - _CENTRE_OFFSET) ** 2
            + (ball.fk - voxel.k - _CENTRE_OFFSET) ** 2)


def voxel_dist_sqr(a: Voxel, b: Voxel) -> int:
    return (a.i - b.i) ** 2 + (a.j - b.j) ** 2 + (a.k - b.k) ** 2