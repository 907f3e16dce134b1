[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "vlckit"
version = "0.1.0"
description = "Logical clocks (vector, ordinary, hybrid vector and hybrid logical) and two small causally consistent UDP services: a converging accumulator network and a COPS-style key-value store."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "vector clock",
    "logical clock",
    "hybrid logical clock",
    "causal consistency",
    "distributed systems",
    "udp",
    "asyncio",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Framework :: AsyncIO",
    "Topic :: System :: Distributed Computing",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
vlckit-accumulator-client = "vlckit.accumulator_cli:client_main"
vlckit-accumulator-server = "vlckit.accumulator_cli:server_main"

[tool.hatch.build.targets.wheel]
packages = ["vlckit"]

[tool.pytest.ini_options]
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
