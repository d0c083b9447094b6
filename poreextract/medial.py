"""Medial surface: maximal spheres of the void space and their hierarchy."""

from __future__ import annotations

import logging
import math
from typing import Optional

from poreextract.distmap import compute_distance_map, smooth_radius
from poreextract.elements import MedialBall, Voxel, dist, dist_sqr
from poreextract.config import Segment

log = logging.getLogger(__name__)

_AXES = ((1, 0, 0), (0, 1, 0), (0, 0, 1))


def _dot(a, b) -> float:
    return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]


def _mag(a) -> float:
    return math.sqrt(_dot(a, a))


def make_friend(vi: MedialBall, vj: MedialBall) -> None:
    """Link two balls of similar size as neighbours unless they are related."""
    if vj.R > vi.R:
        vi, vj = vj, vi
    if (vi.R < 1.5 * vj.R and not vi.is_nei(vj)
            and not vi.in_parents(vj) and not vj.in_parents(vi)):
        vi.add_nei(vj)
        vj.add_nei(vi)


class MedialSurface:
    """Void voxels of an image, their distance map and maximal spheres."""

    def __init__(self, config):
        self.config = config
        self.nx, self.ny, self.nz = config.nx, config.ny, config.nz
        self.segs = config.segs
        self.voxels: list[Voxel] = []
        self.ball_space: list[MedialBall] = []
        self.to_be_assigned = MedialBall(None, 0)
        self.invalid_seg = Segment(-10000, 255)
        self.n_balls = 0
        self.n_voxels = sum(
            row.segments[p + 1].start - seg.start
            for plane in self.segs for row in plane
            for p, seg in enumerate(row) if seg.value == 0)
        self.set_defaults(-5.0)

    def set_defaults(self, avg_radius) -> None:
        """Set the medial-surface settings from keywords or from ``avg_radius``."""
        cfg = self.config
        self.min_rp = min(1.25, avg_radius * 0.25) + 0.5
        for key in ("Rnoise0", "minRPore", "Rnoise"):
            value = cfg.get(key, None)
            if value is not None:
                self.min_rp = float(str(value).split()[0])
                log.info("minimum pore radius: %g", self.min_rp)
                break
        else:
            log.info('keyword "minRPore" not found, default value (%g) will be used',
                     abs(self.min_rp))

        self.clip_r_out_x = 0.05
        self.clip_r_out_yz = 0.98
        self.mid_r_frac = 0.7
        self.ms_noise = abs(self.min_rp) + 1.0
        self.len_nf = 0.6
        self.vmv_rad_rel_nf = 1.1
        self.n_r_smoothing = 3
        self.r_cors_f = 0.15
        self.r_cors = abs(self.min_rp)

        if cfg.n_bp6 == 6:
            self.clip_r_out_yz = self.clip_r_out_x

        text = cfg.get("medialSurfaceSettings0", None)
        if text is None:
            text = cfg.get("medialSurfaceSettings", None)
        if text is not None:
            fields = (("clip_r_out_x", float), ("clip_r_out_yz", float),
                      ("mid_r_frac", float), ("ms_noise", float), ("len_nf", float),
                      ("vmv_rad_rel_nf", float), ("n_r_smoothing", int),
                      ("r_cors_f", float), ("r_cors", float))
            for (name, kind), word in zip(fields, str(text).split()):
                try:
                    setattr(self, name, kind(word))
                except ValueError:
                    break

        log.info("medialSurfaceSettings: %g %g %g %g %g %g %d %g %g",
                 self.clip_r_out_x, self.clip_r_out_yz, self.mid_r_frac,
                 self.ms_noise, self.len_nf, self.vmv_rad_rel_nf,
                 self.n_r_smoothing, self.r_cors_f, self.r_cors)

    def build_voxel_space(self) -> None:
        """Create a voxel for every void voxel and link them to their segments."""
        self.voxels = []
        for k, plane in enumerate(self.segs):
            for j, row in enumerate(plane):
                for p, seg in enumerate(row):
                    if seg.value != 0:
                        continue
                    end = row.segments[p + 1].start
                    seg.voxels = [Voxel(i, j, k) for i in range(seg.start, end)]
                    self.voxels.extend(seg.voxels)
        if len(self.voxels) != self.n_voxels:
            log.error("created %d voxels, expected %d", len(self.voxels), self.n_voxels)
        self.n_voxels = len(self.voxels)

    def is_inside(self, i, j, k) -> bool:
        return 0 <= i < self.nx and 0 <= j < self.ny and 0 <= k < self.nz

    def vxl(self, i, j, k) -> Optional[Voxel]:
        """The void voxel at (i, j, k), coordinates truncated toward zero."""
        i, j, k = int(i), int(j), int(k)
        if not self.is_inside(i, j, k):
            return None
        row = self.segs[k][j]
        p = row._index(i)
        if p is None or row.segments[p].value != 0:
            return None
        return row.voxel_at(i)

    def calc_distmaps(self) -> float:
        """Compute the distance map; update the defaults if none were given."""
        if not self.voxels:
            log.info("no voxels, no balls")
            return 0.0
        average = compute_distance_map(self)
        if self.min_rp < 0.0:
            self.set_defaults(average)
        return average

    def pre_remove_included_balls(self) -> None:
        """Keep only the largest candidate ball in each 2x2x2 block."""
        if not self.voxels:
            return
        n_deleted = 0
        for kk in range(0, self.nz, 2):
            for jj in range(0, self.ny, 2):
                row = self.segs[kk][jj]
                for p, seg in enumerate(row):
                    if seg.value != 0:
                        continue
                    for ii in range(seg.start, row.segments[p + 1].start, 2):
                        smaller: list[Voxel] = []
                        best_r = 0.0
                        best: Optional[Voxel] = None
                        for c in range(2):
                            for b in range(2):
                                for a in range(2):
                                    vi = self.vxl(ii + a, jj + b, kk + c)
                                    if vi is None or vi.ball is not self.to_be_assigned:
                                        continue
                                    if vi.R > best_r:
                                        if best is not None:
                                            smaller.append(best)
                                        best_r, best = vi.R, vi
                                    else:
                                        smaller.append(vi)
                        n_deleted += len(smaller)
                        for vox in smaller:
                            vox.ball = None
        self.n_balls -= n_deleted
        log.info("pre-remove included balls: removed %d, remained %d",
                 n_deleted, self.n_balls)

    def remove_included_balls(self) -> None:
        """Remove balls included in larger ones; the rest are maximal spheres."""
        if not self.voxels:
            return
        candidates = sorted((v for v in self.voxels if v.ball is not None),
                            key=lambda v: v.R, reverse=True)
        n_deleted = 0
        for vi in candidates:
            if vi.ball is None:
                continue
            x, y, z = vi.i, vi.j, vi.k
            ri = vi.R
            ripinc = ri + 0.55
            mbmb_dist = self.r_cors_f * ri + self.r_cors
            ex = int(ripinc)
            for a in range(-ex, ex + 1):
                ey = int(math.sqrt(max(ripinc * ripinc - a * a, 0.0)))
                for b in range(-ey, ey + 1):
                    ez = int(math.sqrt(max(ripinc * ripinc - a * a - b * b, 0.0)))
                    for c in range(-ez, ez + 1):
                        vj = self.vxl(x + a, y + b, z + c)
                        if vj is None or vj.ball is None or vj is vi:
                            continue
                        rj = vj.R
                        if rj <= ri:
                            d = math.sqrt(a * a + b * b + c * c)
                            if d < mbmb_dist or d + rj < ripinc + self.ms_noise:
                                vj.ball = None
                                n_deleted += 1
        self.n_balls -= n_deleted
        log.info("removed %d included balls, remained %d", n_deleted, self.n_balls)

    def _voxel_of(self, ball: MedialBall) -> Voxel:
        vi = self.vxl(ball.fi, ball.fj, ball.fk)
        if vi is None:
            raise ValueError(f"ball centre ({ball.fi}, {ball.fj}, {ball.fk}) "
                             "is not in a void voxel")
        return vi

    def _slopes(self, vi: Voxel):
        """Forward and backward radius differences along each axis."""
        for di, dj, dk in _AXES:
            vm = self.vxl(vi.i - di, vi.j - dj, vi.k - dk)
            vp = self.vxl(vi.i + di, vi.j + dj, vi.k + dk)
            if vm is not None and vp is not None:
                yield vp.R - vi.R, vi.R - vm.R
            else:
                yield None

    @staticmethod
    def _remove_boss_component(ball: MedialBall, disp: list[float], factor: float) -> None:
        if ball.boss is ball:
            return
        vec = ball - ball.boss
        scale = factor * _dot(vec, disp) / (_dot(vec, vec) + 1e-12)
        for axis in range(3):
            disp[axis] -= scale * vec[axis]

    def move_uphill(self, ball: MedialBall) -> None:
        """Refine the ball centre and radius within its voxel."""
        vi = self._voxel_of(ball)
        disp = [0.0, 0.0, 0.0]
        for axis, slope in enumerate(self._slopes(vi)):
            if slope is None:
                continue
            gp, gm = slope
            if abs(gp - gm) > 0.01:
                disp[axis] = max(-0.49, min(0.49, -0.5 * (gp + gm) / (gp - gm)))
        self._remove_boss_component(ball, disp, 0.95)
        ball.fi = vi.i + 0.5 + disp[0]
        ball.fj = vi.j + 0.5 + disp[1]
        ball.fk = vi.k + 0.5 + disp[2]
        ball.R = vi.R + 0.95 * _mag(disp)

    def move_uphill_p1(self, ball: MedialBall) -> None:
        """Move the ball to a neighbouring voxel up the distance-map gradient."""
        vi = self._voxel_of(ball)
        disp = [0.0, 0.0, 0.0]
        grad = [0.0, 0.0, 0.0]
        for axis, slope in enumerate(self._slopes(vi)):
            if slope is None:
                continue
            gp, gm = slope
            grad[axis] = 0.5 * (gp + gm)
            if abs(gp - gm) > 0.01:
                disp[axis] = max(-0.59, min(0.59, -0.5 * (gp + gm) / (gp - gm)))
        disp = [d + 1.4 * g for d, g in zip(disp, grad)]
        self._remove_boss_component(ball, disp, 0.5)
        norm = 0.55 * _mag(disp) + 0.05
        disp = [d / norm for d in disp]

        vj = self.vxl(ball.fi + disp[0], ball.fj + disp[1], ball.fk + disp[2])
        if vj is not None and vj is not vi and vj.R > vi.R and vj.ball is None:
            ball.fi, ball.fj, ball.fk = vj.i + 0.5, vj.j + 0.5, vj.k + 0.5
            ball.R = vj.R
            if ball.vxl is not None:
                ball.vxl.ball = None
            ball.vxl = vj
            vj.ball = ball

    def compete_for_parent(self, vi: MedialBall, vj: MedialBall) -> None:
        """Decide the parent relation between two nearby maximal spheres."""
        noise = self.ms_noise
        vmv = self.vmv_rad_rel_nf
        ri, rj = vi.R, vj.R
        ri_sqr, rj_sqr = ri * ri, rj * rj
        d_sqr = dist_sqr(vi, vj)
        wsinv = 1.0 / (ri_sqr + rj_sqr)

        middle = self.vxl(wsinv * (vi.fi * rj_sqr + vj.fi * ri_sqr),
                          wsinv * (vi.fj * rj_sqr + vj.fj * ri_sqr),
                          wsinv * (vi.fk * rj_sqr + vj.fk * ri_sqr))
        if not (middle is not None and middle.R > min(ri, rj) * self.mid_r_frac - 0.5
                and 1.01 * math.sqrt(d_sqr) < ri + rj + 1.0 + noise):
            return

        if vj.boss is vj:
            if vi.master_sphere() is not vj:
                if ri >= rj:
                    vj.boss = vi
                elif vi.boss.R <= rj:
                    vi.boss = vj
                elif ri >= rj - noise and ri * vmv + noise >= rj:
                    vj.boss = vi
        elif vi.boss is vi:
            if vj.master_sphere() is not vi:
                if rj >= ri:
                    vi.boss = vj
                elif vj.boss.R <= ri:
                    vj.boss = vi
                elif rj >= ri - noise and rj * vmv + noise >= ri:
                    vi.boss = vj

        mvi, mvj = vi.master_sphere(), vj.master_sphere()
        if mvi is vj or mvj is vi:
            return

        if mvi is mvj:
            leveli, levelj = vi.level(), vj.level()
            if (leveli + 1 < levelj
                    and (vj.boss.R - vj.R + 2 * noise) / (dist(vj.boss, vj) + 0.25)
                    < (vi.R - vj.R + 2 * noise + 0.01) / (dist(vi, vj) + 0.2)):
                vj.boss = vi
            elif (leveli > levelj + 1
                    and (vi.boss.R - vi.R + 2 * noise) / (dist(vi.boss, vi) + 0.25)
                    < (vj.R - vi.R + 2 * noise + 0.01) / (dist(vj, vi) + 0.2)):
                vi.boss = vj
            elif (leveli > levelj
                    and (vi.boss.R - vi.R + 2 * noise) / (dist(vi.boss, vi) + 1.2)
                    < (vj.R - vi.R + 2 * noise) / (dist(vj, vi) + 1.3)
                    and not vj.in_parents(vi)):
                vi.boss = vj
            elif (leveli < levelj
                    and (vj.boss.R - vj.R + 2 * noise) / (dist(vj.boss, vj) + 1.2)
                    < (vi.R - vj.R + 2 * noise) / (dist(vi, vj) + 1.3)
                    and not vi.in_parents(vj)):
                vj.boss = vi
            elif (middle.R >= 0.45 * (ri + rj) - 1.0
                    and math.sqrt(d_sqr) < (ri + rj) * 0.5 + 2.0):
                make_friend(vi, vj)
            if vi.master_sphere() is not vj.master_sphere():
                raise RuntimeError("ball hierarchy split while reordering a tree")
            return

        reach = 0.5 * (mvi.R + mvj.R) + 2.0 * noise
        if dist_sqr(mvi, mvj) <= self.len_nf * reach * reach:
            if mvi.R < mvj.R:
                vi, vj = vj, vi
                mvi, mvj = mvj, mvi
            if (mvj.R < vmv * vj.R + noise and mvj.R < vmv * vi.R + noise
                    and mvj.R < vmv * vi.boss.R + noise):
                while vj is not vj.boss and mvj.R < vmv * vj.boss.R + noise:
                    pvj = vj.boss
                    vj.boss = vi
                    vi, vj = vj, pvj
                if vj.boss is vj and vi.master_sphere() is not vj:
                    vj.boss = vi

        if vi is vj.boss:
            return

        mvi, mvj = vi.master_sphere(), vj.master_sphere()
        leveli, levelj = vi.level(), vj.level()
        dist_avg = dist(mvj, mvi) + 0.5 * noise
        while (leveli >= levelj
               and (vi.boss.R - vi.R + 0.55 * noise) / (dist(mvi, vi) + dist_avg)
               < (vj.R - vi.R + 0.5 * noise) / (dist(mvj, vi) + dist_avg)):
            pvi = vi.boss
            vi.boss = vj
            vj, vi = vi, pvi
            levelj += 1
            leveli -= 1
        while (levelj >= leveli
               and (vj.boss.R - vj.R + 0.55 * noise) / (dist(mvj, vj) + dist_avg)
               < (vi.R - vj.R + 0.5 * noise) / (dist(mvi, vj) + dist_avg)):
            pvj = vj.boss
            vj.boss = vi
            vi, vj = vj, pvj
            leveli += 1
            levelj -= 1
        make_friend(vi, vj)

    def find_boss(self, ball: MedialBall) -> None:
        """Compete with every ball whose voxel lies near ``ball``."""
        x, y, z = ball.fi, ball.fj, ball.fk
        ripp = ball.R * 0.6 + 2.0 * self.ms_noise + 2.0
        ripp_sqr = ripp * ripp
        ex = x + ripp
        xpa = 2.0 * x - ex
        while xpa <= ex:
            rem_x = ripp_sqr - (xpa - x) ** 2
            if rem_x >= 0:
                ey = y + math.sqrt(rem_x)
                ypb = 2.0 * y - ey
                while ypb <= ey:
                    rem_y = rem_x - (y - ypb) ** 2
                    if rem_y >= 0:
                        ez = z + math.sqrt(rem_y)
                        zpc = 2.0 * z - ez
                        while zpc <= ez:
                            vj = self.vxl(xpa, ypb, zpc)
                            if (vj is not None and vj.ball is not None
                                    and (int(x) != vj.i or int(y) != vj.j
                                         or int(z) != vj.k)):
                                self.compete_for_parent(ball, vj.ball)
                            zpc += 1.0
                    ypb += 1.0
            xpa += 1.0

    def create_balls_and_hierarchy(self) -> None:
        """Build the distance map, the maximal spheres and their hierarchy."""
        self.build_voxel_space()
        self.calc_distmaps()
        for _ in range(self.n_r_smoothing):
            smooth_radius(self)

        self.n_balls = 0
        for vox in self.voxels:
            if vox.R >= self.min_rp:
                vox.ball = self.to_be_assigned
                self.n_balls += 1
            else:
                vox.ball = None
        log.info("number of potential maximal spheres: %d", self.n_balls)

        self.pre_remove_included_balls()
        self.remove_included_balls()

        chosen = [v for v in self.voxels if v.ball is not None and v.R >= self.min_rp]
        chosen.sort(key=lambda v: v.R, reverse=True)
        self.ball_space = []
        for vox in chosen:
            ball = MedialBall(vox, 0)
            vox.ball = ball
            self.ball_space.append(ball)

        for ball in self.ball_space:
            self.move_uphill(ball)
        for ball in self.ball_space:
            self.move_uphill_p1(ball)
        for ball in self.ball_space:
            self.move_uphill(ball)

        for ball in self.ball_space:
            self.find_boss(ball)
        log.info("created hierarchy of %d balls", len(self.ball_space))