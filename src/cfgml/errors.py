"""Exception hierarchy for cfgml."""

from __future__ import annotations

from pathlib import Path


class CfgMLError(Exception):
    """Base class for all cfgml errors."""


class UnsupportedArchitectureError(CfgMLError):
    def __init__(self, architecture: str) -> None:
        self.architecture = architecture
        super().__init__(f"Unsupported architecture: {architecture!r}")


class FileLoadError(CfgMLError):
    def __init__(self, path: str | Path, reason: str) -> None:
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"Unable to load {self.path}: {reason}")
