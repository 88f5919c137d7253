[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "minimqtt"
version = "0.1.0"
description = "A small MQTT 3.1.1 client over any byte transport, plus region-of-interest and line-crossing helpers for foreground masks"
requires-python = ">=3.10"
dependencies = []
keywords = ["mqtt", "pubsub", "iot", "line-crossing", "region-of-interest"]
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
    "Topic :: Communications",
    "Topic :: Internet",
    "Topic :: Scientific/Engineering :: Image Recognition",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["minimqtt"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
