[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "lwnx"
version = "0.1.0"
description = "Client for the LWNX serial packet protocol used by laser rangefinders"
requires-python = ">=3.10"
dependencies = [
    "pyserial",
]
keywords = ["lwnx", "serial", "lidar", "rangefinder", "protocol", "crc"]
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
    "Topic :: Software Development :: Embedded Systems",
    "Topic :: Terminals :: Serial",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
lwnx = "lwnx.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["lwnx"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
