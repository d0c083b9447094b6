from types import SimpleNamespace

import numpy as np
import pytest

from poreextract.elements import MedialBall, Throat, Voxel
from poreextract.voxel_maps import (
    ball_radii_to_voxel, pore_max_balls, throat_max_balls, throat_voxels)


def _surface(voxels=(), balls=(), shape=(6, 6, 6)):
    nx, ny, nz = shape
    return SimpleNamespace(voxels=list(voxels), ball_space=list(balls),
                           nx=nx, ny=ny, nz=nz)


def _ball(i, j, k, r):
    return MedialBall(Voxel(i, j, k, r), 0)


def test_ball_radii_to_voxel():
    voxels = [Voxel(0, 1, 2, 1.5), Voxel(3, 3, 3, 2.25)]
    field = ball_radii_to_voxel(_surface(voxels), (5, 5, 5))
    assert field.shape == (5, 5, 5)
    assert field.dtype == np.float32
    assert field[0, 1, 2] == pytest.approx(1.5)
    assert field[3, 3, 3] == pytest.approx(2.25)
    assert np.count_nonzero(field) == 2


def test_throat_voxels_full_shifted_by_one():
    tr = Throat(4, 2, 3, toxels2=[Voxel(0, 0, 0), Voxel(1, 1, 1)])
    field = throat_voxels([tr], (5, 5, 5))
    assert field.shape == (5, 5, 5)
    assert field[1, 1, 1] == 5
    assert field[2, 2, 2] == 5
    assert np.count_nonzero(field) == 2


def test_throat_voxels_slices():
    tr = Throat(0, 2, 3, toxels2=[Voxel(0, 0, 0), Voxel(1, 1, 1)])
    field = throat_voxels([tr], (5, 5, 5), 2, 3)
    assert field.shape == (5, 5, 1)
    assert field[2, 2, 0] == 1
    assert np.count_nonzero(field) == 1


def test_empty_slice_range_rejected():
    with pytest.raises(ValueError):
        throat_voxels([], (5, 5, 5), 3, 3)


def test_pore_max_balls_paints_master_only():
    master = _ball(2, 2, 2, 1.0)
    kid = _ball(4, 4, 4, 1.0)
    kid.boss = master
    velems = np.zeros((8, 8, 8), dtype=np.int64)
    velems[2, 2, 2] = 7
    velems[4, 4, 4] = 9
    field = pore_max_balls(_surface(balls=[master, kid]), velems, (6, 6, 6))
    assert field[2, 2, 2] == 7
    assert field[3, 2, 2] == 7
    assert field[3, 3, 2] == 0
    assert np.count_nonzero(field) == 7
    assert not np.any(field == 9)


def test_pore_max_balls_first_writer_wins():
    first = _ball(2, 2, 2, 1.0)
    second = _ball(3, 2, 2, 1.0)
    velems = np.zeros((8, 8, 8), dtype=np.int64)
    velems[2, 2, 2] = 7
    velems[3, 2, 2] = 8
    field = pore_max_balls(_surface(balls=[first, second]), velems, (6, 6, 6))
    assert field[2, 2, 2] == 7
    assert field[3, 2, 2] == 7
    assert field[4, 2, 2] == 8


def test_pore_max_balls_slice_plane():
    ball = _ball(2, 2, 2, 1.0)
    velems = np.zeros((8, 8, 8), dtype=np.int64)
    velems[2, 2, 2] = 3
    full = pore_max_balls(_surface(balls=[ball]), velems, (6, 6, 6))
    part = pore_max_balls(_surface(balls=[ball]), velems, (6, 6, 6), 2, 3)
    assert part.shape == (6, 6, 1)
    assert np.array_equal(part[:, :, 0], full[:, :, 2])


def test_pore_max_balls_clipped_to_image():
    ball = _ball(0, 0, 0, 1.0)
    velems = np.zeros((8, 8, 8), dtype=np.int64)
    velems[0, 0, 0] = 5
    field = pore_max_balls(_surface(balls=[ball]), velems, (6, 6, 6))
    assert field[0, 0, 0] == 5
    assert np.count_nonzero(field) == 4


def test_throat_max_balls_uses_larger_sphere():
    v2 = Voxel(1, 1, 1, 1.0)
    v2.ball = MedialBall(v2, 5)
    v1 = Voxel(4, 4, 4, 1.5)
    v1.ball = MedialBall(v1, 6)
    tr = Throat(2, 2, 3, toxels2=[v2], toxels1=[v1])
    field = throat_max_balls(_surface(), [tr], (6, 6, 6))
    assert field[4, 4, 4] == 3
    assert field[1, 1, 1] == 0
    assert np.all(field[field != 0] == 3)


def test_throat_max_balls_without_second_face():
    v2 = Voxel(1, 1, 1, 1.0)
    v2.ball = MedialBall(v2, 5)
    tr = Throat(0, 2, 3, toxels2=[v2])
    field = throat_max_balls(_surface(), [tr], (6, 6, 6))
    assert field[1, 1, 1] == 1
    assert np.count_nonzero(field) == 7