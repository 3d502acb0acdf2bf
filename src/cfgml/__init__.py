"""cfgml — Control-flow graph and feature extraction for binary similarity datasets."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from cfgml.version import __version__

if TYPE_CHECKING:
    from cfgml.config.models import CfgMLConfig


@dataclass
class CfgMLContext:
    """Dependency-injection container shared across CLI commands."""

    config: CfgMLConfig | None = None
    workers_override: int | None = None

    def ensure_config(self) -> CfgMLConfig:
        if self.config is None:
            from cfgml.config.loader import load_config

            self.config = load_config()
        return self.config

    def workers(self) -> int:
        if self.workers_override is not None:
            return self.workers_override
        return self.ensure_config().runtime.workers


__all__ = ["CfgMLContext", "__version__"]
