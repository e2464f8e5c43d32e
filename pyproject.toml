[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ociregistry"
version = "0.1.0"
description = "Abstractions for OCI registries: errors, descriptors, a registry interface and request parsing for the distribution API"
requires-python = ">=3.10"
dependencies = []
keywords = ["oci", "registry", "containers", "distribution", "manifest", "blob"]
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
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["ociregistry"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
