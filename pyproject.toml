[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ghaflow"
version = "0.1.0"
description = "Workflow model, planner, expression parsing and runner-command parsing for CI workflow files"
requires-python = ">=3.10"
dependencies = [
    "pyyaml",
]
keywords = ["workflow", "ci", "yaml", "expressions", "planner", "matrix"]
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
    "Topic :: Software Development :: Build Tools",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["ghaflow"]

[tool.pytest.ini_options]
addopts = "-ra"
