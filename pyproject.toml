[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "wxapkgkit"
version = "0.1.0"
description = "Decrypt and re-encrypt mini-program .wxapkg packages and map the pages and navigation routes of an unpacked project."
requires-python = ">=3.10"
dependencies = [
    "cryptography",
]
keywords = [
    "wxapkg",
    "mini-program",
    "decrypt",
    "route-analysis",
    "static-analysis",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: Information Technology",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Disassemblers",
    "Topic :: Security",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
wxapkgkit-routes = "wxapkgkit.analyzer.routes:main"

[tool.hatch.build.targets.wheel]
packages = ["wxapkgkit"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
