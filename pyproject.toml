[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ndsfs"
version = "0.1.0"
description = "Browse the file system of Nintendo DS ROM images and replace files inside them"
requires-python = ">=3.10"
dependencies = []
keywords = ["nds", "rom", "filesystem", "fnt", "fat", "overlay", "romhacking"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Filesystems",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
ndsfs = "ndsfs.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["ndsfs"]

[tool.pytest.ini_options]
addopts = "-ra"
