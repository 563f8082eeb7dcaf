[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sstables"
version = "0.1.0"
description = "A small log-structured key-value store built from a logged memtable and sorted string tables."
requires-python = ">=3.10"
dependencies = [
    "pyyaml",
    "sortedcontainers",
]
keywords = ["sstable", "memtable", "lsm", "key-value", "storage", "database"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database :: Database Engines/Servers",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
sstables = "sstables.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["sstables"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
