[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kadnode"
version = "0.1.0"
description = "A small Kademlia-style distributed hash table node speaking line-delimited JSON over TCP"
requires-python = ">=3.10"
dependencies = []
keywords = ["dht", "kademlia", "p2p", "asyncio", "distributed-hash-table"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Framework :: AsyncIO",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
kadnode = "kadnode.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["kadnode"]

[tool.pytest.ini_options]
addopts = "-ra"
