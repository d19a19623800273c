[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "blockstream"
version = "0.1.0"
description = "Block-wise streaming pipelines for analytical queries over in-memory columnar data"
requires-python = ">=3.10"
dependencies = []
keywords = ["stream", "pipeline", "columnar", "tpc-h", "query", "threads"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database :: Database Engines/Servers",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
blockstream-q6 = "blockstream.q6:main"
blockstream-q14 = "blockstream.q14:main"

[tool.hatch.build.targets.wheel]
packages = ["blockstream"]

[tool.pytest.ini_options]
addopts = "-ra"
