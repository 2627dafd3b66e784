[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fattree_sim"
version = "0.1.0"
description = "Discrete-event simulation of a fat-tree network serving a parallel file system with compute nodes, storage servers and storage targets"
requires-python = ">=3.10"
dependencies = []
keywords = ["simulation", "discrete-event", "fat-tree", "storage", "queueing", "checkpoint"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Scientific/Engineering",
    "Topic :: System :: Distributed Computing",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["fattree_sim"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
