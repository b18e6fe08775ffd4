[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "cloudscope"
version = "0.1.0"
description = "Lidar point-cloud inspection: ground segmentation, clustering, object boxes and tracking"
requires-python = ">=3.10"
keywords = [
    "lidar",
    "point cloud",
    "pcd",
    "ground segmentation",
    "patchwork",
    "clustering",
    "object tracking",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Image Processing",
]
dependencies = [
    "numpy",
    "scipy",
    "pyyaml",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
cloudscope = "cloudscope.session:main"

[tool.hatch.build.targets.wheel]
packages = ["cloudscope"]

[tool.pytest.ini_options]
addopts = "-ra"
