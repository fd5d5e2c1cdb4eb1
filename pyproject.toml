[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "wbe2ekit"
version = "0.1.0"
description = "Helpers for end-to-end tests of an IP address management plugin on Kubernetes: manifest builders, pollers and IP pool consistency checks"
requires-python = ">=3.10"
dependencies = []
keywords = ["kubernetes", "ipam", "cni", "e2e", "testing", "ip-pool"]
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
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["wbe2ekit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
