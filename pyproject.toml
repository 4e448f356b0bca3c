[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "psucan"
version = "0.1.0"
description = "Controller for CAN-bus rectifier power supply modules, with soft start, a line-based serial command interface and a text model of a three-button front panel."
requires-python = ">=3.10"
keywords = ["can", "canbus", "socketcan", "power-supply", "rectifier", "soft-start", "serial"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Manufacturing",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Embedded Systems :: Controller Area Network (CAN)",
    "Topic :: System :: Hardware",
]
dependencies = [
    "pyserial",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
psucan = "psucan.app:main"

[tool.hatch.build.targets.wheel]
packages = ["psucan"]

[tool.pytest.ini_options]
testpaths = ["tests"]
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
