[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "duoserve"
version = "1.0.0"
description = "A small TCP and UDP echo server on localhost with a worker thread pool and slash commands"
requires-python = ">=3.10"
dependencies = []
keywords = ["server", "tcp", "udp", "echo", "selectors", "thread-pool"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
duoserve = "duoserve.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["duoserve"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.mypy]
python_version = "3.10"
