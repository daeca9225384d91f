[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "threemf"
version = "0.1.0"
description = "3MF geometry helpers, materials and production extension data, XML reading and writing, and an STL importer"
requires-python = ">=3.10"
dependencies = []
keywords = ["3mf", "stl", "3d-printing", "mesh", "additive-manufacturing"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Manufacturing",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Multimedia :: Graphics :: 3D Modeling",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["threemf"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
