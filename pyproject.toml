[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "zbplugins"
version = "0.1.0"
description = "Chat-bot plugin toolkit: group reminder timers, group management helpers, MIDI composition, holiday countdowns and small lookup utilities"
requires-python = ">=3.10"
keywords = ["chatbot", "group-management", "timer", "cron", "midi", "plugins"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Natural Language :: Chinese (Simplified)",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: Chat",
    "Topic :: Multimedia :: Sound/Audio :: MIDI",
]
dependencies = [
    "mido",
    "requests",
    "pillow",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["zbplugins"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
