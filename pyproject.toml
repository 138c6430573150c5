[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "btbridge"
version = "0.1.0"
description = "Serial-to-Bluetooth bridge with an in-band configuration menu and battery level helpers"
requires-python = ">=3.10"
keywords = ["serial", "bluetooth", "bridge", "gnss", "uart", "cli", "crc32"]
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
    "Topic :: Terminals :: Serial",
    "Topic :: Communications",
]
dependencies = [
    "pyserial",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
btbridge = "btbridge.bridge:main"

[tool.hatch.build.targets.wheel]
packages = ["btbridge"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
