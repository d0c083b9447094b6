import numpy as np
import pytest

from poreextract.config import (
    ExtractionConfig, PoroRange, Segment, SegmentRow, write_sample_input,
)
from poreextract.elements import Voxel


def _image():
    img = np.full((6, 3, 2), 200, dtype=np.uint8)
    img[0:2, :, :] = 0
    img[4:6, 1, 0] = 0
    return img


def test_poro_range_outside():
    r = PoroRange("void", 3, 5)
    assert r.outside(2) and r.outside(6)
    assert not r.outside(3) and not r.outside(5)


def test_init_defaults():
    cfg = ExtractionConfig(image=_image())
    cfg.init()
    assert cfg.image_format == ".raw.gz"
    assert cfg.n_bp6 == 2
    assert cfg.seg_values[0] == 0
    assert all(v == 1 for v in cfg.seg_values[1:])


def test_init_keywords():
    cfg = ExtractionConfig({"void_range": "0 10", "multiDir": "true",
                            "DefaultImageFormat": "tif"}, image=_image())
    cfg.init()
    assert cfg.n_bp6 == 6
    assert cfg.image_format == ".tif"
    assert cfg.seg_values[10] == 0
    assert cfg.seg_values[11] == 1


def test_bad_range_raises():
    cfg = ExtractionConfig({"void_range": "0 999"}, image=_image())
    with pytest.raises(ValueError):
        cfg.init()


def test_get_bool():
    cfg = ExtractionConfig({"a": "T", "b": "false;"})
    assert cfg.get_bool("a", False) is True
    assert cfg.get_bool("b", True) is False
    assert cfg.get_bool("missing", True) is True
    assert cfg.get("missing", "x") == "x"


def test_segments_round_trip():
    img = _image()
    cfg = ExtractionConfig(image=img)
    cfg.init()
    cfg.create_segments()
    classes = np.asarray(cfg.seg_values)[img]
    for k in range(cfg.nz):
        for j in range(cfg.ny):
            row = cfg.segs[k][j]
            assert row.segments[-1].start == cfg.nx
            rebuilt = []
            for seg, nxt in zip(row.segments, row.segments[1:]):
                rebuilt += [seg.value] * (nxt.start - seg.start)
            assert rebuilt == classes[:, j, k].tolist()
            for i in range(cfg.nx):
                assert cfg.segment_at(i, j, k).value == classes[i, j, k]
    assert sum(cfg.voxel_counts) == img.size


def test_segment_at_outside():
    cfg = ExtractionConfig(image=_image())
    cfg.init()
    cfg.create_segments()
    assert cfg.segment_at(-1, 0, 0) is cfg.invalid_seg
    assert cfg.segment_at(0, 0, cfg.nz) is cfg.invalid_seg
    assert cfg.invalid_seg.start == -10000


def test_low_porosity_raises():
    cfg = ExtractionConfig(image=np.full((4, 4, 4), 9, dtype=np.uint8))
    cfg.init()
    with pytest.raises(ValueError, match="porosity"):
        cfg.create_segments()


def test_empty_image_raises():
    with pytest.raises(ValueError):
        ExtractionConfig(image=np.zeros((3, 3, 0), dtype=np.uint8))


def test_segment_row_voxel_at():
    voxels = [Voxel(i, 0, 0, 1.0) for i in range(2, 5)]
    row = SegmentRow([Segment(0, 1), Segment(2, 0, voxels), Segment(5, 254)])
    assert row.voxel_at(3) is voxels[1]
    assert row.voxel_at(0) is None
    assert row.voxel_at(5) is None
    assert list(row) == row.segments[:2]


def test_net_name():
    cfg = ExtractionConfig(name="rock")
    assert cfg.net_name() == "rockDS0"
    cfg.flow_base_dir = "dir/"
    assert cfg.net_name() == "rockDS1"


def test_write_sample_input(tmp_path):
    path = tmp_path / "sample.mhd"
    assert write_sample_input(path, "-g") == str(path)
    text = path.read_text()
    assert text.startswith("ObjectType =  Image\n")
    assert "ElementDataFile = input_image.raw.gz" in text
    with pytest.raises(FileExistsError):
        write_sample_input(path, "-g")


def test_write_sample_input_bad_option(tmp_path):
    path = tmp_path / "other.mhd"
    with pytest.raises(ValueError):
        write_sample_input(path, "-x")
    assert not path.exists()