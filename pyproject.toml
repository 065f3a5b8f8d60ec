[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rocoder"
version = "0.4.0"
description = "A phase vocoder for extreme time-stretching and pitch-shifting of audio"
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = ["audio", "vocoder", "time-stretch", "pitch-shift", "wav"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Multimedia :: Sound/Audio :: Sound Synthesis",
    "Topic :: Multimedia :: Sound/Audio :: Conversion",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
rocoder = "rocoder.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["rocoder"]

[tool.pytest.ini_options]
addopts = "-ra"
