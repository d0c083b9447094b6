[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "poreextract"
version = "0.3.0"
description = "Building blocks for extracting pore networks from segmented 3D voxel images by the maximal-ball method"
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = [
    "pore network",
    "network extraction",
    "medial axis",
    "maximal ball",
    "distance map",
    "porous media",
    "voxel image",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Image Processing",
    "Topic :: Scientific/Engineering :: Physics",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["poreextract"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
ignore_missing_imports = true
