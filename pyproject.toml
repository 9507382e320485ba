[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fuzzkit"
version = "0.1.0"
description = "Building blocks for coverage-guided fuzzing: a deterministic data provider, corpus scheduling and corpus merging"
requires-python = ">=3.10"
dependencies = []
keywords = ["fuzzing", "corpus", "coverage", "testing", "merge"]
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
    "Topic :: Software Development :: Testing",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["fuzzkit"]

[tool.pytest.ini_options]
addopts = "-ra"
