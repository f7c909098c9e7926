[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "servicestats"
version = "0.1.0"
description = "In-process service statistics: callback counters, an LRU map, multi-level timeseries and quantile stats"
requires-python = ">=3.10"
dependencies = []
keywords = ["metrics", "counters", "timeseries", "quantiles", "monitoring", "statistics", "lru"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["servicestats"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
