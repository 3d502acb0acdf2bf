"""Pluggable model-backed block features.

Model inference lives outside cfgml. Anything implementing these protocols
(a local transformer, a remote service) can be passed to the pipeline.
"""

from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable

import numpy as np

from cfgml.extraction.artifacts import BasicBlock
from cfgml.features.extractor import block_strings
from cfgml.features.schemes import FeatureScheme, FeatureVector


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Maps one ESIL instruction to a fixed-size vector."""

    dim: int

    def embed(self, text: str) -> Sequence[float]: ...


@runtime_checkable
class EncodingProvider(Protocol):
    """Maps one normalized instruction to token ids."""

    def encode(self, text: str) -> Sequence[int]: ...


def embed_block(block: BasicBlock, provider: EmbeddingProvider) -> FeatureVector:
    """Mean-pool the embeddings of a block's valid ESIL instructions."""
    rows = [
        provider.embed(ins.esil)
        for ins in block.instructions
        if not ins.is_invalid and ins.esil
    ]
    if not rows:
        pooled = np.zeros(provider.dim, dtype=np.float64)
    else:
        pooled = np.asarray(rows, dtype=np.float64).mean(axis=0)
    return FeatureVector(scheme=FeatureScheme.EMBEDDED, values=tuple(pooled.tolist()))


def encode_block(
    block: BasicBlock, provider: EncodingProvider, reg_norm: bool = True
) -> list[list[float]]:
    """Token ids of each normalized ESIL instruction in the block."""
    return [
        [float(token) for token in provider.encode(line)]
        for line in block_strings(block, FeatureScheme.ESIL, reg_norm)
    ]
