[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "skm"
version = "1.0.0"
description = "Spec-Kit Manager: scan a directory tree for Spec-Kit projects and rank them by what needs attention"
requires-python = ">=3.11"
dependencies = [
    "tomli-w",
]
keywords = ["spec-kit", "portfolio", "projects", "status", "report", "markdown"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development",
    "Topic :: Utilities",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
skm = "skm.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["skm"]

[tool.pytest.ini_options]
addopts = "-ra"
