"""Exact deduplication of exported attributed-graph corpora."""

from __future__ import annotations

import hashlib
import json
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from pathlib import Path
from typing import Any

from cfgml.dedup.records import DedupStats
from cfgml.errors import FileLoadError
from cfgml.graph.exporter import load_graph_data
from cfgml.utils.logging import get_logger
from cfgml.utils.parallel import run_parallel

log = get_logger(__name__)


class FilepathFormat(str, Enum):
    """Corpus naming conventions; each names the binary inside the parent directory."""

    CISCO = "cisco"
    BINKIT = "binkit"


def binary_name_for(path: Path, filepath_format: FilepathFormat | str) -> str:
    """Extract the binary name from a graph file's parent directory.

    cisco: ``<arch>_<binary>_...``, token 1. binkit: ``..._<binary>_<x>``,
    second-to-last token. Raises ValueError when the directory name has too
    few tokens.
    """
    filepath_format = FilepathFormat(filepath_format)
    tokens = Path(path).parent.name.split("_")
    if len(tokens) < 2:
        raise ValueError(f"cannot parse binary name from {Path(path).parent.name!r}")
    if filepath_format is FilepathFormat.CISCO:
        return tokens[1]
    return tokens[-2]


def graph_hash(data: Any) -> str:
    """sha256 of the canonical JSON encoding of a whole graph."""
    canonical = json.dumps(data, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode()).hexdigest()


@dataclass(frozen=True)
class GraphGroupResult:
    binary_name: str
    kept: tuple[Path, ...]
    stats: DedupStats
    failed_files: tuple[Path, ...] = ()
    written: tuple[Path, ...] = ()


def dedup_graph_group(
    binary_name: str, paths: list[Path], output_dir: Path | None = None
) -> GraphGroupResult:
    """Keep the first occurrence of each distinct graph within one group.

    ``paths`` must already be in a fixed order. Survivors are written to
    ``<output_dir>/<parent dir>/<file name>``.
    """
    graphs: list[dict[str, Any]] = []
    filepaths: list[Path] = []
    failed: list[Path] = []
    for path in paths:
        try:
            graphs.append(load_graph_data(path))
        except FileLoadError as exc:
            log.error("file_load_failed", path=str(path), error=exc.reason)
            failed.append(path)
            continue
        filepaths.append(path)

    original = len(graphs)
    seen: set[str] = set()
    duplicates: list[int] = []
    for idx, graph in enumerate(graphs):
        digest = graph_hash(graph)
        if digest in seen:
            duplicates.append(idx)
        else:
            seen.add(digest)

    # Drop from both lists together so graphs[i] always belongs to filepaths[i].
    for idx in reversed(duplicates):
        del graphs[idx]
        del filepaths[idx]

    written: list[Path] = []
    if output_dir is not None:
        for graph, path in zip(graphs, filepaths):
            target = Path(output_dir) / path.parent.name / path.name
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(json.dumps(graph))
            written.append(target)

    stats = DedupStats(original=original, unique=len(graphs))
    log.info("group_deduplicated", binary=binary_name, original=stats.original, unique=stats.unique)
    return GraphGroupResult(
        binary_name=binary_name,
        kept=tuple(filepaths),
        stats=stats,
        failed_files=tuple(failed),
        written=tuple(written),
    )


@dataclass
class GraphCorpus:
    groups: dict[str, list[Path]] = field(default_factory=dict)
    unparsed: list[Path] = field(default_factory=list)

    @classmethod
    def from_directory(cls, directory: Path, filepath_format: FilepathFormat | str) -> GraphCorpus:
        """Group every ``*.json`` under ``directory`` by binary name, in sorted path order."""
        groups: dict[str, list[Path]] = defaultdict(list)
        unparsed: list[Path] = []
        for path in sorted(p for p in Path(directory).rglob("*.json") if p.is_file()):
            try:
                groups[binary_name_for(path, filepath_format)].append(path)
            except ValueError as exc:
                log.warning("unparsable_filepath", path=str(path), error=str(exc))
                unparsed.append(path)
        return cls(groups=dict(groups), unparsed=unparsed)


def _dedup_task(group: tuple[str, list[Path]], output_dir: Path | None) -> GraphGroupResult:
    binary_name, paths = group
    return dedup_graph_group(binary_name, paths, output_dir)


def dedup_graph_corpus(
    corpus: GraphCorpus, output_dir: Path | None, workers: int = 1
) -> list[GraphGroupResult]:
    return run_parallel(
        partial(_dedup_task, output_dir=output_dir),
        list(corpus.groups.items()),
        workers=workers,
        description="Deduplicating graphs",
    )
