[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pipeyard"
version = "1.0.0"
description = "Tenant-aware data tooling for pipe yard inventory: MDB extraction, CSV column normalisation, tenant connection routing and business events."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "csv",
    "mdb",
    "access",
    "migration",
    "multi-tenant",
    "inventory",
    "postgresql",
    "events",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database",
    "Topic :: Utilities",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
data-tools = "pipeyard.datatools:main"
mdb-processor = "pipeyard.mdb:main"
csv-importer = "pipeyard.csvimport:main"

[tool.hatch.build.targets.wheel]
packages = ["pipeyard"]

[tool.hatch.build.targets.sdist]
include = ["pipeyard", "tests"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
