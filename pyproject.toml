[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "minisocks"
version = "0.1.0"
description = "A small encrypted SOCKS5 proxy made of a local relay and a remote server"
requires-python = ">=3.10"
dependencies = [
    "cryptography",
]
keywords = ["socks5", "proxy", "tunnel", "encryption", "networking", "asyncio"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Framework :: AsyncIO",
    "Intended Audience :: End Users/Desktop",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: Proxy Servers",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
ls-local = "minisocks.cli:local_main"
ls-server = "minisocks.cli:server_main"

[tool.hatch.build.targets.wheel]
packages = ["minisocks"]

[tool.pytest.ini_options]
testpaths = ["tests"]
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
