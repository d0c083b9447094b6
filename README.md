# poreextract

Building blocks for pore-network extraction from segmented 3D voxel images
using the maximal-ball method.

The package provides the steps of the extraction as separate functions and
classes:

1. classify the voxels of an image and run-length encode them into segments
   along x,
2. compute a distance map (the radius of the largest sphere centred at each
   void voxel) and smooth it,
3. keep the maximal spheres and arrange them into a hierarchy along the
   medial surface,
4. grow and filter pore labels on a padded label image,
5. find the throats where two labelled pores touch and give each throat face
   a maximal sphere,
6. compute throat radii, shape factors, lengths and volumes and write the
   network in the four-file format (`_link1.dat`, `_link2.dat`,
   `_node1.dat`, `_node2.dat`),
7. build voxel maps of radii, throat faces and maximal spheres.

Pores 0 and 1 are the inlet and outlet boundaries.

## Installation

```
pip install .
```

The only runtime dependency is `numpy`.

## Modules

- `poreextract.elements` – `Voxel`, `MedialBall` (hierarchy through `boss`,
  `level()`, `master_sphere()`, `in_parents()`, neighbours), `Pore`, `Throat`
  and the distance helpers `dist`, `dist_sqr`, `ball_voxel_dist_sqr`,
  `voxel_dist_sqr`.
- `poreextract.config` – `ExtractionConfig` holds the keywords and an image
  array indexed `image[i, j, k]`. `init()` reads the classification keywords,
  `create_segments()` builds the run-length rows (`SegmentRow`, `Segment`) and
  raises `ValueError` when less than 1% of the image is void;
  `segment_at(i, j, k)` and `net_name()` look things up.
  `write_sample_input(path, "-g")` writes a commented sample input file and
  refuses to overwrite an existing one.
- `poreextract.distmap` – `compute_distance_map`, `smooth_radius` and
  `segments_to_image`.
- `poreextract.medial` – `MedialSurface` with
  `create_balls_and_hierarchy()`, and `make_friend`.
- `poreextract.growth` – region growing and median filters on a padded label
  array of shape `(nx + 2, ny + 2, nz + 2)`: `grow_pores`, `grow_pores_x2`,
  `grow_pores_median`, `grow_pores_med_strict`, `grow_pores_med_eqs`,
  `grow_pores_med_eqs_loose`, `retreat_pores_median` and `median_elem`. Each
  changes the array in place and returns the number of voxels it changed.
- `poreextract.throats` – `create_throats(network)` for an object carrying
  `velems`, `pores`, `throats`, `first_pore`, `surface` and
  `throat_addit_balls`.
- `poreextract.cnm` – `compute_cnm_properties` and `write_cnm`.
- `poreextract.voxel_maps` – `ball_radii_to_voxel`, `throat_voxels`,
  `pore_max_balls`, `throat_max_balls`.

### Keywords read

| keyword                 | read by           | meaning                                                         |
|-------------------------|-------------------|-----------------------------------------------------------------|
| `void_range`            | `ExtractionConfig`| lower and upper voxel values that count as void (default `0 0`) |
| `multiDir`              | `ExtractionConfig`| six boundary faces instead of two                               |
| `DefaultImageFormat`    | `ExtractionConfig`| extension used for image outputs (default `.raw.gz`)            |
| `title`                 | `ExtractionConfig`| default base name of the network                                |
| `minRPore` / `Rnoise`   | `MedialSurface`   | smallest radius kept as a maximal sphere                        |
| `medialSurfaceSettings` | `MedialSurface`   | nine advanced parameters of the medial-surface construction     |

## Example

```python
import numpy as np

from poreextract.config import ExtractionConfig
from poreextract.medial import MedialSurface
from poreextract.voxel_maps import ball_radii_to_voxel

image = np.ones((20, 20, 20), dtype=np.uint8)
image[2:18, 5:15, 5:15] = 0          # void voxels have value 0

config = ExtractionConfig(keywords={"minRPore": "1.5"}, image=image)
config.init()
config.create_segments()

surface = MedialSurface(config)
surface.create_balls_and_hierarchy()
radii = ball_radii_to_voxel(surface, image.shape)
print(len(surface.ball_space), radii.max())
```

Random choices in `poreextract.cnm` (throat radius jitter and replacement
shape factors) are drawn from a `random.Random` you pass in, so results can
be reproduced.

## What the package does not do

- It has no command-line program; everything is called from Python.
- It does not read image files; the image is passed to `ExtractionConfig`
  as an array.
- It does not run a whole extraction in one call. In particular, turning the
  maximal-sphere hierarchy into the initial padded pore-label image and the
  boundary pores is left to the caller; the growth filters, `create_throats`
  and `write_cnm` start from such a label image.
- It writes no VTK or other visualisation files.

## Tests

```
pip install .[test]
pytest
```