[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rpcplug"
version = "0.1.0"
description = "Server plugins, a shared request context and small utilities for an RPC framework"
requires-python = ">=3.10"
keywords = [
    "rpc",
    "plugins",
    "service-registry",
    "rate-limiting",
    "metrics",
    "token-bucket",
]
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
    "Topic :: System :: Distributed Computing",
    "Topic :: Software Development :: Libraries :: Python Modules",
]
dependencies = [
    "psutil",
    "redis",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["rpcplug"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
