[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "polarmem"
version = "0.1.0"
description = "Physical and virtual address types, address translation and software-emulated page tables for kernel memory management"
requires-python = ">=3.10"
dependencies = []
keywords = ["memory-management", "paging", "page-table", "virtual-memory", "kernel", "emulation"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Operating System Kernels",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["polarmem"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
