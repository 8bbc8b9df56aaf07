[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "parquetgw"
version = "0.1.0"
description = "Query layer over day-aligned, sharded time series blocks: label lookups, series selection, quotas and block discovery."
requires-python = ">=3.10"
dependencies = []
keywords = ["time series", "tsdb", "query", "labels", "metrics", "object storage"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database :: Database Engines/Servers",
    "Topic :: System :: Monitoring",
]

[project.optional-dependencies]
test = ["pytest", "hypothesis"]

[tool.hatch.build.targets.wheel]
packages = ["parquetgw"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
