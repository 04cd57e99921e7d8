[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "diskscan"
version = "0.1.0"
description = "Scan block devices for bad and slow regions, with SCSI/ATA command building, sense decoding and SMART interpretation"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "disk",
    "scan",
    "bad sectors",
    "latency",
    "scsi",
    "ata",
    "smart",
    "sense",
    "block device",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Hardware",
    "Topic :: System :: Monitoring",
    "Topic :: System :: Recovery Tools",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["diskscan"]

[tool.hatch.build.targets.sdist]
include = ["diskscan", "tests", "README.md", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
