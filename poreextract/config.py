"""Extraction settings, voxel classification and run-length image segments."""

from __future__ import annotations

import logging
import os
import warnings
from bisect import bisect_right
from dataclasses import dataclass
from typing import Optional

import numpy as np

from poreextract.elements import Voxel

log = logging.getLogger(__name__)

_TRUE_WORDS = {"t", "true", "yes", "y", "1", "on"}

_SAMPLE_HEADER = (
    "ObjectType =  Image\n"
    "NDims =       3\n"
    "ElementType = MET_UCHAR\n"
    "ElementByteOrderMSB = False\n"
    "ElementNumberOfChannels = 1\n"
    "CompressedData = True\n\n"
    "HeaderSize = 0\n"
    "DimSize =    \t1000\t1000\t1000\n"
    "ElementSize = \t1.6 \t1.6 \t1.6\n"
    "Offset =      \t0   \t0   \t0\n"
    "\n"
    "ElementDataFile = input_image.raw.gz\n"
    "\n\n"
    "//! The above keywords are compatible with mhd format and \n"
    "//! can be used to open the Image in Fiji/ImageJ or Paraview\n"
    "//! The following commands are optional, remove the \"//\" to activate them\n"
    "\n"
    "//DefaultImageFormat = tif\n"
    "\n"
    "//!______________  image processing  commands _________________\n"
    "\n"
    "//! crop image to  [ Nxyz_begin  Nxyz_end )"
    "//cropD                0 0 0    300 300 300 \n"
    "\n"
    "//! flip x direction with y or z \n"
    "//direction z\n"
    "\n"
    "//! manipulate voxel values:\n"
    "//!    range   [start...end] -> value \n"
    "//replaceRange   0     127       0 \n"
    "//replaceRange   128   255       1 \n"
    "\n"
    "//! threshold image: range -> 0 (void-space), rest->1 (solid) \n"
    "//threshold   0  128 \n"
    "\n\n\n"
)

_SAMPLE_NETWORK = (
    "//!_______________  network extraction keywords __________________\n"
    "//!______(should be after image processing  commands above) ______\n"
    "\n"
    "//title:   output_network"
    "\n"
    "//write_all:\ttrue; // use `write_all` is a memorable alternative to all visualization keywords "
    "// write_radius:\ttrue\n"
    "// write_statistics:\ttrue\n"
    "// write_elements:\ttrue\n"
    "// write_poreMaxBalls:\ttrue\n"
    "// write_throatMaxBalls:\ttrue\n"
    "// write_throats:\ttrue\n"
    "// write_hierarchy:\ttrue\n"
    "// write_medialSurface:\ttrue\n"
    "// write_throatHierarchy:\ttrue\n"
    "// write_vtkNetwork:\ttrue\n"
    "\n"
)


@dataclass
class PoroRange:
    """A named, inclusive range of raw voxel values."""

    name: str
    lower: int
    upper: int

    def outside(self, value: int) -> bool:
        return self.lower > value or value > self.upper


@dataclass(eq=False)
class Segment:
    """A run of equally classified voxels along x, starting at ``start``."""

    start: int
    value: int
    voxels: Optional[list[Voxel]] = None


class SegmentRow:
    """The segments of one (y, z) image row, closed by a sentinel segment."""

    __slots__ = ("segments", "count", "_starts")

    def __init__(self, segments: list[Segment]):
        self.segments = list(segments)
        self.count = len(self.segments) - 1
        self._starts = [s.start for s in self.segments]

    def __iter__(self):
        return iter(self.segments[:self.count])

    def _index(self, i: int) -> Optional[int]:
        p = bisect_right(self._starts, i) - 1
        if 0 <= p < self.count:
            return p
        return None

    def voxel_at(self, i: int) -> Optional[Voxel]:
        """The voxel at x-index ``i``, or None if it has no voxel."""
        p = self._index(i)
        if p is None:
            return None
        seg = self.segments[p]
        if seg.voxels is None:
            return None
        return seg.voxels[i - seg.start]


class ExtractionConfig:
    """Keywords and image of one extraction run.

    The image is indexed ``image[i, j, k]`` with shape ``(nx, ny, nz)``.
    """

    def __init__(self, keywords=None, image=None, name=None,
                 voxel_size=1.0, origin=(0.0, 0.0, 0.0)):
        self.keywords: dict[str, str] = dict(keywords or {})
        self.name = name or self.keywords.get("title", "network")
        self.voxel_size = float(voxel_size)
        self.origin = tuple(float(x) for x in origin)
        if image is not None:
            image = np.asarray(image, dtype=np.uint8)
            if image.ndim != 3 or image.shape[2] == 0:
                raise ValueError("no image read")
            self.nx, self.ny, self.nz = image.shape
        else:
            self.nx = self.ny = self.nz = 0
        self.image = image
        self.n_bp6 = 2
        self.image_format = ".raw.gz"
        self.flow_base_dir = ""
        self.rock_types: list[PoroRange] = [PoroRange("void", 0, 0)]
        self.seg_values: list[int] = [1] * 256
        self.segs: list[list[SegmentRow]] = []
        self.voxel_counts: list[int] = []
        self.invalid_seg = Segment(-10000, 255)
        self.vtk_resolution = 8
        self.vtk_scale_r_pore = 1.0
        self.vtk_scale_r_throat = 1.0

    def get(self, key, default):
        return self.keywords.get(key, default)

    def get_bool(self, key, default):
        value = self.keywords.get(key)
        if value is None:
            return default
        words = value.replace(";", " ").split()
        if not words:
            return default
        return words[0].lower() in _TRUE_WORDS

    def init(self) -> None:
        """Read the classification keywords and build the value lookup."""
        fmt = str(self.get("DefaultImageFormat", ".raw.gz")).strip()
        self.image_format = fmt if fmt.startswith(".") else "." + fmt
        log.info("DefaultImageFormat: %s", self.image_format)
        self.n_bp6 = 6 if self.get_bool("multiDir", False) else 2

        self.vtk_resolution = int(self.get("vtk_resolution", self.vtk_resolution))
        self.vtk_scale_r_pore = float(self.get("vtk_scaleRpore", self.vtk_scale_r_pore))
        self.vtk_scale_r_throat = float(self.get("vtk_scaleRthroat", self.vtk_scale_r_throat))

        self.rock_types = [PoroRange("void", 0, 0)]
        self.seg_values = [len(self.rock_types)] * 256
        for index, rt in enumerate(self.rock_types):
            text = self.get(f"{rt.name}_range", None)
            if text is not None:
                words = text.split()
                if len(words) < 2:
                    raise ValueError(f"keyword {rt.name}_range needs two values")
                lower, upper = int(words[0]), int(words[1])
                if not (0 <= lower <= 255 and 0 <= upper <= 255):
                    raise ValueError(f"keyword {rt.name}_range is outside 0..255")
                rt.lower, rt.upper = lower, upper
                if lower > upper:
                    warnings.warn(f'Wrong entries for keyword "{rt.name}_range": '
                                  "lower value is higher than upper value")
            for value in range(rt.lower, rt.upper + 1):
                self.seg_values[value] = index
            log.info("  %s voxel values: [%d %d]", rt.name, rt.lower, rt.upper)

    def create_segments(self) -> None:
        """Run-length encode the classified image along x."""
        if self.image is None:
            raise ValueError("no image read")
        nx, ny, nz = self.nx, self.ny, self.nz
        classes = np.asarray(self.seg_values, dtype=np.int64)[self.image]
        self.segs = []
        for iz in range(nz):
            plane = []
            for iy in range(ny):
                row = classes[:, iy, iz]
                starts = np.concatenate(([0], np.flatnonzero(np.diff(row)) + 1))
                segments = [Segment(int(s), int(row[s])) for s in starts]
                segments.append(Segment(nx, 254))
                plane.append(SegmentRow(segments))
            self.segs.append(plane)

        n_types = len(self.rock_types)
        self.voxel_counts = np.bincount(classes.ravel(), minlength=n_types + 1).tolist()
        n_inside = sum(self.voxel_counts[:n_types])
        for index, rt in enumerate(self.rock_types):
            log.info(" %d. %s: %d voxels", index, rt.name, self.voxel_counts[index])
        if not n_inside > 0.01 * nx * ny * nz:
            raise ValueError("too low porosity, set 'void_range' maybe?")

    def segment_at(self, i, j, k) -> Segment:
        """The segment holding voxel (i, j, k), or an invalid one outside."""
        if i < 0 or j < 0 or k < 0 or i >= self.nx or j >= self.ny or k >= self.nz:
            return self.invalid_seg
        row = self.segs[k][j]
        p = row._index(i)
        return row.segments[row.count if p is None else p]

    def net_name(self) -> str:
        if not self.flow_base_dir:
            suffix = "DS0"
        elif self.flow_base_dir.endswith("/"):
            suffix = "DS1"
        else:
            suffix = "DS4"
        return self.name + suffix


def write_sample_input(path="", option="-g") -> str:
    """Write a sample input file to ``path`` and return its path."""
    path = os.fspath(path) if path else "vxlImage.mhd"
    if os.path.exists(path):
        raise FileExistsError(
            f"File {path} exists, to run simulation: rerun with {path} as the only "
            "argument; to regenerate: delete it and try again, or provide a "
            "different file name")
    if option != "-g":
        raise ValueError(f"unknown option {option!r}")
    with open(path, "w", encoding="utf-8") as out:
        out.write(_SAMPLE_HEADER)
        out.write(_SAMPLE_NETWORK)
    return path