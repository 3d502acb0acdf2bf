"""YAML configuration loader with env var interpolation."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from cfgml.config.defaults import CONFIG_FILE_NAMES, CONFIG_SEARCH_PATHS
from cfgml.config.models import CfgMLConfig
from cfgml.errors import CfgMLError
from cfgml.utils.logging import get_logger

log = get_logger(__name__)

CONFIG_ENV_VAR = "CFGML_CONFIG"

_ENV_VAR_PATTERN = re.compile(r"\$\{(\w+)(?::([^}]*))?\}")


def _interpolate_env(value: str) -> str:
    """Replace ${VAR} or ${VAR:default} with environment variable values."""

    def _replace(match: re.Match[str]) -> str:
        default = match.group(2)
        return os.environ.get(match.group(1), default if default is not None else "")

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _walk_and_interpolate(obj: object) -> object:
    if isinstance(obj, str):
        return _interpolate_env(obj)
    if isinstance(obj, dict):
        return {k: _walk_and_interpolate(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_walk_and_interpolate(item) for item in obj]
    return obj


def find_config_file(explicit_path: str | Path | None = None) -> Path | None:
    """Locate a cfgml config file.

    An explicit path wins, then ``$CFGML_CONFIG``, then the standard search
    directories. Returns None when nothing is found.
    """
    if explicit_path is None:
        explicit_path = os.environ.get(CONFIG_ENV_VAR) or None

    if explicit_path is not None:
        p = Path(explicit_path)
        return p if p.is_file() else None

    for search_dir in CONFIG_SEARCH_PATHS:
        for name in CONFIG_FILE_NAMES:
            candidate = search_dir / name
            if candidate.is_file():
                return candidate
    return None


def load_config(path: str | Path | None = None) -> CfgMLConfig:
    """Load and validate configuration, falling back to defaults."""
    config_path = find_config_file(path)
    if config_path is None:
        if path is not None:
            log.warning("config_not_found", path=str(path))
        return CfgMLConfig()

    try:
        raw = yaml.safe_load(config_path.read_text()) or {}
    except yaml.YAMLError as exc:
        raise CfgMLError(f"Invalid YAML in {config_path}: {exc}") from exc

    try:
        config = CfgMLConfig.model_validate(_walk_and_interpolate(raw))
    except ValidationError as exc:
        raise CfgMLError(f"Invalid configuration in {config_path}: {exc}") from exc

    log.debug("config_loaded", path=str(config_path))
    return config


def apply_overrides(config: CfgMLConfig, section: str, **overrides: Any) -> CfgMLConfig:
    """Return a copy of ``config`` with non-None CLI overrides applied to one section."""
    values = {k: v for k, v in overrides.items() if v is not None}
    if not values:
        return config
    updated = getattr(config, section).model_copy(update=values)
    return config.model_copy(update={section: updated})
