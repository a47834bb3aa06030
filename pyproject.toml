[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "symbolic_mr"
version = "0.1.0"
description = "Symbolic normal ordering and CAS reference reduction of fermionic operator strings"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "fermion",
    "second quantization",
    "normal ordering",
    "reduced density matrix",
    "multireference",
    "quantum chemistry",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Chemistry",
    "Topic :: Scientific/Engineering :: Physics",
]

[project.optional-dependencies]
test = [
    "pytest",
    "hypothesis",
]

[project.scripts]
symbolic-mr-demo = "symbolic_mr.demo:main"
symbolic-mr-update-fixtures = "symbolic_mr.fixtures:main"

[tool.hatch.build.targets.wheel]
packages = ["symbolic_mr"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
