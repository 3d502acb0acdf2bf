"""Per-block feature vectors and per-function instruction strings."""

from __future__ import annotations

from typing import Iterator

import networkx as nx
import numpy as np

from cfgml.analysis.opcodes import Architecture, OpcodeTable
from cfgml.extraction.artifacts import NO_ADDRESS, BasicBlock, Function, Instruction
from cfgml.features.schemes import TIKNIB_FIELDS, FeatureScheme, FeatureVector
from cfgml.graph.cfg import build_cfg, is_buildable
from cfgml.normalization.normalizer import normalize_disasm, normalize_esil
from cfgml.utils.logging import get_logger

log = get_logger(__name__)


def _valid(block: BasicBlock) -> Iterator[tuple[str, Instruction]]:
    """Yield (opcode, instruction) for every instruction not marked invalid."""
    for ins in block.instructions:
        if not ins.is_invalid:
            yield ins.mnemonic, ins


def offspring_count(block: BasicBlock) -> int:
    """Fail target + jump target + switch cases. Overlapping targets are not merged."""
    count = 0
    if block.fail not in (NO_ADDRESS, 0):
        count += 1
    if block.jump not in (NO_ADDRESS, 0):
        count += 1
    return count + len(block.switch_cases)


def gemini_features(block: BasicBlock, table: OpcodeTable, reduced: bool = False) -> list[float]:
    """Gemini block attributes; ``reduced`` drops offspring, giving DiscovRE."""
    features = [0.0] * (6 if reduced else 7)
    for opcode, ins in _valid(block):
        if opcode in table.call:
            features[0] += 1
        elif opcode in table.transfer:
            features[1] += 1
        elif opcode in table.arithmetic:
            features[2] += 1

        features[3] += 1
        disasm = ins.disasm or ""
        if ", 0x" in disasm:
            features[4] += 1
        if " str." in disasm:
            features[5] += 1

    if not reduced:
        features[6] = float(offspring_count(block))
    return features


def dgis_features(block: BasicBlock, table: OpcodeTable) -> list[float]:
    """Eight exclusive instruction classes, first match wins."""
    features = [0.0] * 8
    for opcode, ins in _valid(block):
        if opcode in table.stack:
            features[0] += 1
        elif opcode in table.arithmetic:
            features[1] += 1
        elif opcode in table.logic:
            features[2] += 1
        elif opcode in table.compare:
            features[3] += 1
        elif opcode in table.call and "imp" in (ins.disasm or ""):
            features[4] += 1
        elif opcode in table.unconditional:
            features[5] += 1
        elif opcode in table.conditional:
            features[6] += 1
        else:
            features[7] += 1
    return features


def tiknib_features(block: BasicBlock, table: OpcodeTable) -> list[float]:
    """TikNib group counts; one instruction may count towards several groups."""
    features = dict.fromkeys(TIKNIB_FIELDS, 0.0)
    for opcode, _ in _valid(block):
        if opcode in table.arithmetic or opcode in table.shift:
            features["arithshift"] += 1
        if opcode in table.compare or opcode in table.float_compare:
            features["compare"] += 1
        if opcode in table.control_transfer:
            features["ctransfer"] += 1
        if opcode in table.control_transfer or opcode in table.cond_control_transfer:
            features["ctransfercond"] += 1
        if opcode in table.transfer or opcode in table.float_transfer:
            features["dtransfer"] += 1
        if (
            opcode in table.float_transfer
            or opcode in table.float_compare
            or opcode in table.float_arith
        ):
            features["float"] += 1
        features["total"] += 1
    return list(features.values())


def extract(
    block: BasicBlock, scheme: FeatureScheme | str, architecture: Architecture | str
) -> FeatureVector:
    """Compute one block's feature vector under a counting scheme.

    Raises UnsupportedArchitectureError for unknown architectures. Schemes
    without a numeric count layout yield an empty vector, which callers must
    treat as "exclude this function".
    """
    scheme = FeatureScheme.parse(scheme)
    table = Architecture.parse(architecture).opcodes

    if scheme is FeatureScheme.GEMINI:
        values = gemini_features(block, table)
    elif scheme is FeatureScheme.DISCOVRE:
        values = gemini_features(block, table, reduced=True)
    elif scheme is FeatureScheme.DGIS:
        values = dgis_features(block, table)
    elif scheme is FeatureScheme.TIKNIB:
        values = tiknib_features(block, table)
    else:
        log.warning("empty_feature_vector", scheme=scheme.value, block=block.offset)
        values = []
    return FeatureVector(scheme=scheme, values=tuple(values))


# -- Instruction strings --


def block_strings(block: BasicBlock, scheme: FeatureScheme | str, reg_norm: bool = False) -> list[str]:
    """Normalized disassembly or ESIL lines for one block.

    Entries of a single character or less are dropped.
    """
    scheme = FeatureScheme.parse(scheme)
    lines: list[str] = []
    for ins in block.instructions:
        if scheme is FeatureScheme.ESIL:
            if ins.esil and len(ins.esil) > 1:
                lines.append(normalize_esil(ins.esil, ins.type, reg_norm))
        elif scheme is FeatureScheme.DISASM:
            if ins.disasm and len(ins.disasm) > 1:
                lines.append(normalize_disasm(ins.disasm, reg_norm))
        else:
            raise ValueError(f"{scheme.value} is not an instruction-text scheme")
    return lines


def function_string(
    function: Function, scheme: FeatureScheme | str, min_blocks: int, reg_norm: bool = False
) -> str | None:
    """All of a function's normalized instructions as one space-joined string."""
    if not is_buildable(function, min_blocks):
        return None
    parts: list[str] = []
    for block in function.blocks:
        for line in block_strings(block, scheme, reg_norm):
            if line:
                parts.append(" ".join(line.split(",")))
    return " ".join(parts)


def function_instructions(
    function: Function, scheme: FeatureScheme | str, min_blocks: int, reg_norm: bool = False
) -> list[str] | None:
    """Flat list of normalized instructions, one per entry, for single-instruction corpora."""
    scheme = FeatureScheme.parse(scheme)
    if len(function.blocks) < min_blocks:
        return None
    if scheme is FeatureScheme.ESIL:
        return [line for block in function.blocks for line in block_strings(block, scheme, reg_norm)]
    return [
        normalize_disasm(ins.disasm, reg_norm)
        for block in function.blocks
        for ins in block.instructions
        if ins.disasm is not None
    ]


# Blocks visited per walk.
WALK_LENGTH = 10
PAIR_SEPARATOR = " " * 6


def random_walks(
    function: Function,
    scheme: FeatureScheme | str,
    min_blocks: int,
    reg_norm: bool = False,
    pairs: bool = False,
    walk_length: int = WALK_LENGTH,
) -> list[list[str]] | None:
    """Depth-first block walks over the CFG, one starting at every node.

    Each walk visits at most ``walk_length`` blocks and is flattened to
    their instructions. With ``pairs`` every walk becomes its consecutive
    instruction pairs instead. Functions need strictly more than
    ``min_blocks`` blocks.
    """
    if len(function.blocks) <= min_blocks:
        return None
    cfg = build_cfg(function, min_blocks)
    if cfg is None:
        return None

    blocks: dict[int, BasicBlock] = {}
    for block in function.blocks:
        blocks.setdefault(block.offset, block)

    graph = cfg.to_networkx()
    walks: list[list[str]] = []
    for start in graph.nodes:
        walk: list[str] = []
        for step, node_id in enumerate(nx.dfs_preorder_nodes(graph, start)):
            if step >= walk_length:
                break
            block = blocks.get(cfg.index.address_of(node_id))
            if block is not None:
                walk.extend(block_strings(block, scheme, reg_norm))
        if pairs:
            walk = [f"{a}{PAIR_SEPARATOR}{b}" for a, b in zip(walk, walk[1:])]
        walks.append(walk)
    return walks


# -- Function-level TikNib --


def tiknib_function_features(function: Function, architecture: Architecture | str) -> dict:
    """Average and sum of each TikNib block feature across the function."""
    table = Architecture.parse(architecture).opcodes
    matrix = np.array(
        [tiknib_features(block, table) for block in function.blocks], dtype=np.float64
    ).reshape(-1, len(TIKNIB_FIELDS))

    if len(matrix):
        averages = matrix.mean(axis=0)
        sums = matrix.sum(axis=0)
    else:
        averages = sums = np.zeros(len(TIKNIB_FIELDS))

    features: dict[str, float] = {}
    for i, name in enumerate(TIKNIB_FIELDS):
        features[f"avg_{name}"] = float(averages[i])
    for i, name in enumerate(TIKNIB_FIELDS):
        features[f"sum_{name}"] = float(sums[i])
    return {"name": function.name, "features": features}
