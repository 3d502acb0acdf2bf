"""Pydantic configuration models."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from cfgml.config.defaults import DEFAULT_FEATURE_SCHEME, DEFAULT_MIN_BLOCKS, DEFAULT_WORKERS


class GenerateConfig(BaseModel):
    min_blocks: int = Field(default=DEFAULT_MIN_BLOCKS, ge=0)
    feature_scheme: str = DEFAULT_FEATURE_SCHEME
    reg_norm: bool = False
    node_labels: Literal["index", "address"] = "index"


class DedupConfig(BaseModel):
    filepath_format: Literal["cisco", "binkit"] = "cisco"
    hash_just_value: bool = False
    print_stats: bool = False


class RuntimeConfig(BaseModel):
    workers: int = Field(default=DEFAULT_WORKERS, ge=1)
    log_level: str = "INFO"
    json_logs: bool = False


class CfgMLConfig(BaseModel):
    generate: GenerateConfig = Field(default_factory=GenerateConfig)
    dedup: DedupConfig = Field(default_factory=DedupConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)
