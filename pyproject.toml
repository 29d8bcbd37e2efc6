[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "workflowkit"
version = "0.1.0"
description = "Workflow and action models, runner commands, executable lookup and expression parsing for CI workflow files"
requires-python = ">=3.10"
dependencies = [
    "pyyaml",
]
keywords = ["ci", "workflow", "yaml", "expressions", "actions"]
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
packages = ["workflowkit"]

[tool.pytest.ini_options]
addopts = "-ra"
