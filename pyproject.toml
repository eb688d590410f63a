[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "arbiter_cli"
version = "0.1.0"
description = "Command-line tool for scaffolding EVM simulation projects, generating contract bindings with forge and forking on-chain state to disk"
requires-python = ">=3.11"
keywords = ["ethereum", "evm", "simulation", "forge", "bindings", "fork"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Build Tools",
]
dependencies = [
    "pycryptodome",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
arbiter = "arbiter_cli.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["arbiter_cli"]

[tool.pytest.ini_options]
addopts = "-ra"
