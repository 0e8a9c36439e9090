[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ffvariation"
version = "0.1.0"
description = "Typed feature-flag variation evaluation with defaults, error reporting and event tracking"
requires-python = ">=3.10"
dependencies = []
keywords = ["feature-flags", "feature-toggles", "variation", "rollout"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["ffvariation"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
