[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "dymolm"
version = "0.1.0"
description = "Raster command generation, status checking and option handling for DYMO LabelManager tape printers"
requires-python = ">=3.10"
dependencies = []
keywords = ["dymo", "labelmanager", "label", "printer", "raster", "tape"]
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
    "Topic :: Printing",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["dymolm"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
