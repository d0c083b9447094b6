"""Building blocks for pore-network extraction from segmented 3D voxel images."""

__version__ = "0.3.0"

__all__ = [
    "elements",
    "config",
    "distmap",
    "cnm",
    "medial",
    "growth",
    "voxel_maps",
    "throats",
]