"""Default configuration values and paths."""

from __future__ import annotations

from pathlib import Path

CONFIG_FILE_NAMES = [
    "cfgml.yaml",
    "cfgml.yml",
    ".cfgml.yaml",
    ".cfgml.yml",
]

CONFIG_SEARCH_PATHS = [
    Path.cwd(),
    Path.home() / ".config" / "cfgml",
    Path.home(),
]

DEFAULT_MIN_BLOCKS = 5
DEFAULT_FEATURE_SCHEME = "gemini"
DEFAULT_WORKERS = 2
MAX_FUNCTION_NAME_LENGTH = 100
TRUNCATED_FUNCTION_NAME_LENGTH = 75
