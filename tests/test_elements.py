import math

import pytest

from poreextract.elements import (
    MedialBall, Pore, Throat, Voxel, ball_voxel_dist_sqr, dist, dist_sqr,
    voxel_dist_sqr,
)


def _ball(i, j, k, r):
    return MedialBall(Voxel(i, j, k, r))


def test_ball_centre_is_voxel_centre():
    b = _ball(1, 2, 3, 4.0)
    assert b.node() == (1.5, 2.5, 3.5)
    assert b.R == 4.0
    assert b.boss is b


def test_default_voxel():
    v = Voxel()
    assert (v.i, v.j, v.k, v.R, v.ball) == (-1, -1, -1, 0.0, None)


def test_level_and_master_sphere():
    root, mid, leaf = _ball(0, 0, 0, 5), _ball(1, 0, 0, 4), _ball(2, 0, 0, 3)
    mid.boss = root
    leaf.boss = mid
    assert root.level() == 1
    assert leaf.level() == mid.level() + 1
    assert leaf.master_sphere() is root
    assert root.master_sphere() is root


def test_in_parents():
    root, mid, leaf = _ball(0, 0, 0, 5), _ball(1, 0, 0, 4), _ball(2, 0, 0, 3)
    mid.boss = root
    leaf.boss = mid
    other = _ball(5, 5, 5, 1)
    assert leaf.in_parents(root)
    assert leaf.in_parents(mid)
    assert not leaf.in_parents(other)
    assert not root.in_parents(leaf)
    assert root.in_parents(root)


def test_neighbours():
    a, b, c = _ball(0, 0, 0, 1), _ball(1, 0, 0, 1), _ball(2, 0, 0, 1)
    a.add_nei(b)
    assert a.is_nei(b)
    assert not a.is_nei(c)
    assert a.neis == [b]


def test_remove_kid_boss():
    top, boss, kid, other = (_ball(n, 0, 0, 1) for n in range(4))
    boss.boss = top
    boss.kids = [kid, other]
    kid.boss = boss
    boss.remove_kid_boss(kid)
    assert boss.kids == [other]
    assert kid.boss is top


def test_distances():
    a, b = _ball(0, 0, 0, 1), _ball(3, 4, 0, 1)
    assert dist_sqr(a, b) == dist_sqr(b, a)
    assert math.isclose(dist(a, b), math.sqrt(dist_sqr(a, b)))
    assert ball_voxel_dist_sqr(a, a.vxl) == 0
    assert voxel_dist_sqr(a.vxl, b.vxl) == dist_sqr(a, b)
    assert a - b == tuple(x - y for x, y in zip(a.node(), b.node()))


def test_throat_radius_and_nodes():
    v2, v1 = Voxel(1, 1, 1, 4.0), Voxel(2, 1, 1, 2.0)
    v2.ball, v1.ball = MedialBall(v2), MedialBall(v1)
    tr = Throat(0, 3, 7, toxels2=[v2])
    assert tr.mb11() is None
    assert tr.radius() == v2.R
    tr.toxels1.append(v1)
    assert tr.radius() == (v1.R + v2.R) / 2
    assert tr.mb11() is v1.ball
    assert tr.node() == v2.ball.node()
    assert (tr.neighbour(0), tr.neighbour(1)) == (3, 7)
    tr.toxels2.append(Voxel(0, 0, 0, 1.0))
    assert tr.n_toxel2_balls() == 1


def test_pore_contacts():
    p = Pore(mb=_ball(0, 0, 0, 2.5))
    p.contacts[4] = 9
    assert p.contact(4) == 9
    assert p.radius() == 2.5
    with pytest.raises(KeyError):
        p.contact(5)