"""Batch generation: attributed CFGs, call graphs, instruction corpora and function-level features."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from pathlib import Path
from typing import Any, Callable, Iterable, Sequence

from cfgml.analysis.opcodes import Architecture
from cfgml.config.defaults import MAX_FUNCTION_NAME_LENGTH, TRUNCATED_FUNCTION_NAME_LENGTH
from cfgml.errors import CfgMLError
from cfgml.extraction.artifacts import BasicBlock, Function
from cfgml.extraction.loader import FunctionFile, load_function_file, load_records
from cfgml.features.embedding import EmbeddingProvider, EncodingProvider, embed_block, encode_block
from cfgml.features.extractor import (
    block_strings,
    extract,
    function_instructions,
    function_string,
    random_walks,
    tiknib_function_features,
)
from cfgml.features.metadata import metadata_subset, parse_function_info
from cfgml.features.schemes import FeatureScheme
from cfgml.graph.callgraph import (
    CallGraphRecord,
    call_graph,
    export_call_graph,
    one_hop_call_graph,
    parse_call_graph_record,
)
from cfgml.graph.cfg import CFG, build_cfg
from cfgml.graph.exporter import NodeLabel, export, write_graph
from cfgml.utils.logging import get_logger
from cfgml.utils.parallel import run_parallel

log = get_logger(__name__)


class Outcome(str, Enum):
    PROCESSED = "processed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class BatchReport:
    processed: int = 0
    skipped: int = 0
    failed: int = 0

    def record(self, outcome: Outcome) -> None:
        setattr(self, outcome.value, getattr(self, outcome.value) + 1)

    def merge(self, other: BatchReport) -> BatchReport:
        self.processed += other.processed
        self.skipped += other.skipped
        self.failed += other.failed
        return self

    @property
    def total(self) -> int:
        return self.processed + self.skipped + self.failed


@dataclass(frozen=True)
class GraphOptions:
    output_dir: Path
    scheme: FeatureScheme = FeatureScheme.GEMINI
    min_blocks: int = 5
    reg_norm: bool = False
    node_labels: NodeLabel = NodeLabel.INDEX
    # Overrides per-file architecture detection when set.
    architecture: Architecture | None = None
    embedder: EmbeddingProvider | None = field(default=None, compare=False)
    encoder: EncodingProvider | None = field(default=None, compare=False)


def safe_function_name(name: str) -> str:
    if len(name) > MAX_FUNCTION_NAME_LENGTH:
        return name[:TRUNCATED_FUNCTION_NAME_LENGTH]
    return name


def graph_output_path(output_dir: Path, file_stem: str, scheme: FeatureScheme, function_name: str) -> Path:
    """``<output>/<stem>-<scheme>/<stem>-<function>.json``; unique per function."""
    return (
        Path(output_dir)
        / f"{file_stem}-{scheme.value}"
        / f"{file_stem}-{safe_function_name(function_name)}.json"
    )


def _block_feature(
    block: BasicBlock, architecture: Architecture | None, options: GraphOptions
) -> Any | None:
    scheme = options.scheme
    if scheme.is_counting:
        if architecture is None:
            raise CfgMLError(f"{scheme.value} features need a known architecture")
        vector = extract(block, scheme, architecture)
        return None if vector.is_empty else vector
    if scheme.is_textual:
        return block_strings(block, scheme, options.reg_norm)
    if scheme is FeatureScheme.EMBEDDED and options.embedder is not None:
        return embed_block(block, options.embedder)
    if scheme is FeatureScheme.ENCODED and options.encoder is not None:
        return encode_block(block, options.encoder, options.reg_norm)
    log.warning("empty_feature_vector", scheme=scheme.value, block=block.offset)
    return None


def node_features(
    function: Function, cfg: CFG, architecture: Architecture | None, options: GraphOptions
) -> list[Any] | None:
    """Features for each CFG node, in node-id order.

    Nodes are matched to blocks by start address. Nodes with no matching
    block contribute nothing, so the exporter sees a count mismatch and
    rejects the function. Returns None when any block yields no features.
    """
    blocks: dict[int, BasicBlock] = {}
    for block in function.blocks:
        blocks.setdefault(block.offset, block)

    features: list[Any] = []
    for address in cfg.index:
        block = blocks.get(address)
        if block is None:
            continue
        feature = _block_feature(block, architecture, options)
        if feature is None:
            return None
        features.append(feature)
    return features


def generate_function_graph(
    function: Function,
    file_stem: str,
    architecture: Architecture | None,
    options: GraphOptions,
) -> Outcome:
    """Build, featurize and write one function's attributed CFG."""
    out_path = graph_output_path(options.output_dir, file_stem, options.scheme, function.name)
    if out_path.is_file():
        log.debug("already_processed", function=function.name, path=str(out_path))
        return Outcome.SKIPPED

    cfg = build_cfg(function, options.min_blocks)
    if cfg is None:
        return Outcome.SKIPPED
    if not cfg.edges:
        log.info("no_edges", function=function.name)
        return Outcome.SKIPPED

    features = node_features(function, cfg, architecture, options)
    if features is None:
        log.warning("function_excluded", function=function.name, reason="empty_features")
        return Outcome.SKIPPED

    graph = export(cfg, features, options.scheme, options.node_labels)
    if graph is None:
        return Outcome.SKIPPED

    write_graph(graph, out_path)
    log.debug("graph_written", function=function.name, nodes=graph.node_count, path=str(out_path))
    return Outcome.PROCESSED


def _isolated(task: Callable[..., BatchReport], path: Path, *args: Any) -> BatchReport:
    """Run one file's task; an unexpected error fails that file only."""
    try:
        return task(path, *args)
    except Exception as exc:
        log.error("file_failed", path=str(path), error=repr(exc))
        return BatchReport(failed=1)


def _merge_all(reports: Iterable[BatchReport]) -> BatchReport:
    total = BatchReport()
    for report in reports:
        total.merge(report)
    return total


def _resolve_architecture(loaded: FunctionFile, options: GraphOptions) -> Architecture | None:
    if options.architecture is not None:
        return options.architecture
    if loaded.architecture is None and options.scheme.is_counting:
        log.error("architecture_undetected", path=str(loaded.path))
    return loaded.architecture


def _process_file(path: Path, options: GraphOptions) -> BatchReport:
    report = BatchReport()
    loaded = load_function_file(path)
    if loaded is None:
        report.failed += 1
        return report
    report.failed += loaded.malformed

    architecture = _resolve_architecture(loaded, options)
    if architecture is None and options.scheme.is_counting:
        report.failed += len(loaded.functions)
        return report

    for function in loaded.functions:
        try:
            outcome = generate_function_graph(function, loaded.stem, architecture, options)
        except (CfgMLError, OSError, ValueError) as exc:
            log.error("function_failed", path=str(path), function=function.name, error=str(exc))
            outcome = Outcome.FAILED
        report.record(outcome)

    log.info(
        "file_processed",
        path=str(path),
        processed=report.processed,
        skipped=report.skipped,
        failed=report.failed,
    )
    return report


def process_file(path: Path, options: GraphOptions) -> BatchReport:
    """Generate graphs for every function in one file. Never raises for bad data."""
    return _isolated(_process_file, path, options)


def process_files(paths: Sequence[Path], options: GraphOptions, workers: int = 1) -> BatchReport:
    """Fan ``process_file`` out over files and sum the per-file reports."""
    return _merge_all(
        run_parallel(
            partial(process_file, options=options),
            paths,
            workers=workers,
            description=f"Generating {options.scheme.value} graphs",
        )
    )


# -- NLP corpora --

_FUNC_STRING_SUFFIX = {FeatureScheme.ESIL: "efs", FeatureScheme.DISASM: "dfs"}
_SINGLES_SUFFIX = {FeatureScheme.ESIL: "esil-singles", FeatureScheme.DISASM: "dis-singles"}


@dataclass(frozen=True)
class NlpOptions:
    output_dir: Path
    scheme: FeatureScheme = FeatureScheme.ESIL
    min_blocks: int = 5
    reg_norm: bool = False
    # "funcstring" writes one JSON map per file, "single" one instruction per line.
    output_format: str = "funcstring"
    # Single-instruction output only: sample depth-first block walks instead
    # of listing blocks in order, optionally as consecutive instruction pairs.
    random_walk: bool = False
    pairs: bool = False


def nlp_output_path(path: Path, options: NlpOptions) -> Path:
    stem = Path(path).name.split(".j")[0]
    if options.output_format == "single":
        suffix = _SINGLES_SUFFIX[options.scheme]
        if options.random_walk:
            suffix += "-rwdfs"
        return Path(options.output_dir) / f"{stem}-{suffix}.txt"
    return Path(options.output_dir) / f"{stem}-{_FUNC_STRING_SUFFIX[options.scheme]}.json"


def _single_lines(function: Function, options: NlpOptions) -> list[str] | None:
    if not options.random_walk:
        return function_instructions(function, options.scheme, options.min_blocks, options.reg_norm)
    walks = random_walks(
        function, options.scheme, options.min_blocks, options.reg_norm, pairs=options.pairs
    )
    if walks is None:
        return None
    return [line for walk in walks for line in walk]


def _write_nlp_file(path: Path, options: NlpOptions) -> BatchReport:
    report = BatchReport()
    out_path = nlp_output_path(path, options)
    if out_path.exists():
        log.debug("already_processed", path=str(out_path))
        report.skipped += 1
        return report

    loaded = load_function_file(path)
    if loaded is None:
        report.failed += 1
        return report

    out_path.parent.mkdir(parents=True, exist_ok=True)
    if options.output_format == "single":
        lines: list[str] = []
        for function in loaded.functions:
            instructions = _single_lines(function, options)
            if instructions is not None:
                lines.extend(instructions)
        out_path.write_text("".join(f"{line}\n" for line in lines))
    else:
        strings: dict[str, str] = {}
        for function in loaded.functions:
            text = function_string(function, options.scheme, options.min_blocks, options.reg_norm)
            if text is not None:
                strings[function.name] = text
        out_path.write_text(json.dumps(strings))

    report.processed += 1
    log.info("nlp_written", path=str(out_path), functions=len(loaded.functions))
    return report


def generate_nlp_file(path: Path, options: NlpOptions) -> BatchReport:
    """Write the instruction corpus of one file; an existing output is left alone."""
    if not options.scheme.is_textual:
        raise CfgMLError(f"NLP output needs the esil or disasm scheme, got {options.scheme.value}")
    if options.random_walk and options.output_format != "single":
        raise CfgMLError("random walks are only written in the single-instruction format")
    return _isolated(_write_nlp_file, path, options)


def generate_nlp_files(paths: Sequence[Path], options: NlpOptions, workers: int = 1) -> BatchReport:
    return _merge_all(
        run_parallel(
            partial(generate_nlp_file, options=options),
            paths,
            workers=workers,
            description=f"Generating {options.scheme.value} corpora",
        )
    )


# -- Function-level TikNib --


def tiknib_output_path(path: Path, output_dir: Path) -> Path:
    stem = Path(path).name.split(".j")[0]
    return Path(output_dir) / f"{stem}-tiknib.json"


def _write_tiknib_file(path: Path, output_dir: Path, architecture: Architecture | None) -> BatchReport:
    report = BatchReport()
    out_path = tiknib_output_path(path, output_dir)
    if out_path.exists():
        log.debug("already_processed", path=str(out_path))
        report.skipped += 1
        return report

    loaded = load_function_file(path)
    if loaded is None:
        report.failed += 1
        return report

    arch = architecture or loaded.architecture
    if arch is None:
        log.error("architecture_undetected", path=str(path))
        report.failed += 1
        return report

    records = [tiknib_function_features(function, arch) for function in loaded.functions]
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(json.dumps(records))
    report.processed += 1
    return report


def generate_tiknib_file(
    path: Path, output_dir: Path, architecture: Architecture | None = None
) -> BatchReport:
    """Write ``<stem>-tiknib.json`` holding avg/sum TikNib features per function."""
    return _isolated(_write_tiknib_file, path, output_dir, architecture)


# -- Call graphs --


def call_graph_output_path(
    output_dir: Path, file_stem: str, function_name: str, one_hop: bool = False
) -> Path:
    """``<output>/<stem>/<function>-cg.json``, or ``<stem>-1hop/<function>-1hopcg.json``."""
    name = safe_function_name(function_name)
    if one_hop:
        return Path(output_dir) / f"{file_stem}-1hop" / f"{name}-1hopcg.json"
    return Path(output_dir) / file_stem / f"{name}-cg.json"


def _write_call_graphs(path: Path, output_dir: Path, one_hop: bool) -> BatchReport:
    report = BatchReport()
    loaded = load_records(path, parse_call_graph_record)
    if loaded is None:
        report.failed += 1
        return report
    records, malformed = loaded
    report.failed += malformed

    by_name: dict[str, CallGraphRecord] = {}
    for record in records:
        by_name.setdefault(record.name, record)

    stem = Path(path).name.split(".j")[0]
    for record in records:
        out_path = call_graph_output_path(output_dir, stem, record.name, one_hop)
        if out_path.is_file():
            report.record(Outcome.SKIPPED)
            continue
        graph = one_hop_call_graph(record, by_name) if one_hop else call_graph(record)
        write_graph(export_call_graph(graph), out_path)
        report.record(Outcome.PROCESSED)

    log.info("call_graphs_written", path=str(path), processed=report.processed, one_hop=one_hop)
    return report


def generate_call_graph_file(path: Path, output_dir: Path, one_hop: bool = False) -> BatchReport:
    """Write one call graph per function record in ``path``."""
    return _isolated(_write_call_graphs, path, output_dir, one_hop)


# -- Function metadata --


def metadata_output_path(path: Path, output_dir: Path) -> Path:
    stem = Path(path).name.split(".j")[0]
    return Path(output_dir) / f"{stem}-finfo-subset.json"


def _write_metadata(path: Path, output_dir: Path, extended: bool) -> BatchReport:
    report = BatchReport()
    out_path = metadata_output_path(path, output_dir)
    if out_path.exists():
        log.debug("already_processed", path=str(out_path))
        report.skipped += 1
        return report

    loaded = load_records(path, parse_function_info)
    if loaded is None:
        report.failed += 1
        return report
    infos, malformed = loaded
    if not infos:
        report.failed += 1
        return report

    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(json.dumps([metadata_subset(info, extended) for info in infos]))
    report.processed += 1
    log.info("metadata_written", path=str(out_path), functions=len(infos), malformed=malformed)
    return report


def generate_metadata_file(path: Path, output_dir: Path, extended: bool = False) -> BatchReport:
    """Write ``<stem>-finfo-subset.json`` with one metadata subset per function."""
    return _isolated(_write_metadata, path, output_dir, extended)
