"""Exact deduplication of function-string corpora (``{function: text}`` JSON files).

Files are named ``<arch>-<compiler>-<opt>_..._<binary>.json``: the last
``_`` token of the stem names the binary, the first is kept as the origin tag.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict, dataclass, field
from functools import partial
from pathlib import Path
from typing import Iterable

from cfgml.utils.logging import get_logger
from cfgml.utils.parallel import run_parallel

log = get_logger(__name__)


@dataclass(frozen=True)
class DedupEntry:
    name: str
    hash: str
    data: str
    triple: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


@dataclass(frozen=True)
class DedupStats:
    original: int
    unique: int

    @property
    def removed(self) -> int:
        return self.original - self.unique

    @property
    def percent_removed(self) -> float:
        if self.original == 0:
            return 0.0
        return self.removed / self.original * 100.0

    def as_row(self) -> dict[str, str | int]:
        return {
            "With Dups": self.original,
            "Without Dups": self.unique,
            "Num Removed": self.removed,
            "% diff": f"{self.percent_removed:.2f}",
        }


@dataclass(frozen=True)
class RecordFile:
    path: Path
    binary_name: str
    triple: str

    @classmethod
    def from_path(cls, path: Path) -> RecordFile:
        tokens = Path(path).stem.split("_")
        return cls(path=Path(path), binary_name=tokens[-1], triple=tokens[0])


@dataclass(frozen=True)
class DedupResult:
    binary_name: str
    entries: tuple[DedupEntry, ...]
    stats: DedupStats
    failed_files: tuple[Path, ...] = ()
    output_path: Path | None = None


def record_hash(name: str, data: str, hash_just_value: bool = False) -> str:
    """sha256 over the content, or over name and content."""
    digest = hashlib.sha256()
    if not hash_just_value:
        digest.update(name.encode())
        digest.update(b"\x00")
    digest.update(data.encode())
    return digest.hexdigest()


def deduplicate(
    records: Iterable[tuple[str, str, str]], hash_just_value: bool = False
) -> tuple[list[DedupEntry], DedupStats]:
    """Keep the first record per distinct hash. Records are (name, data, triple)."""
    seen: set[str] = set()
    unique: list[DedupEntry] = []
    original = 0
    for name, data, triple in records:
        original += 1
        digest = record_hash(name, data, hash_just_value)
        if digest in seen:
            continue
        seen.add(digest)
        unique.append(DedupEntry(name=name, hash=digest, data=data, triple=triple))
    return unique, DedupStats(original=original, unique=len(unique))


def load_records(path: Path) -> dict[str, str] | None:
    """Read one ``{function: text}`` file, or None if it is unusable."""
    try:
        data = json.loads(Path(path).read_text())
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        log.error("file_load_failed", path=str(path), error=str(exc))
        return None
    if not isinstance(data, dict) or not all(isinstance(v, str) for v in data.values()):
        log.error("file_load_failed", path=str(path), error="expected a JSON object of strings")
        return None
    return data


def dedup_group(
    binary_name: str,
    files: list[RecordFile],
    hash_just_value: bool = False,
    output_dir: Path | None = None,
) -> DedupResult:
    """Deduplicate every record of one binary across its files.

    Unreadable files are logged and left out; the rest of the group is kept.
    The unique set is written to ``<output_dir>/<binary>-dedup.json`` unless
    ``output_dir`` is None.
    """
    failed: list[Path] = []

    def _records() -> Iterable[tuple[str, str, str]]:
        for record_file in files:
            loaded = load_records(record_file.path)
            if loaded is None:
                failed.append(record_file.path)
                continue
            for name, data in loaded.items():
                yield name, data, record_file.triple

    entries, stats = deduplicate(_records(), hash_just_value)

    output_path = None
    if output_dir is not None:
        output_path = Path(output_dir) / f"{binary_name}-dedup.json"
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(json.dumps([entry.to_dict() for entry in entries]))

    log.info("group_deduplicated", binary=binary_name, original=stats.original, unique=stats.unique)
    return DedupResult(
        binary_name=binary_name,
        entries=tuple(entries),
        stats=stats,
        failed_files=tuple(failed),
        output_path=output_path,
    )


@dataclass
class RecordCorpus:
    files: list[RecordFile] = field(default_factory=list)

    @classmethod
    def from_directory(cls, directory: Path) -> RecordCorpus:
        paths = sorted(p for p in Path(directory).rglob("*.json") if p.is_file())
        return cls(files=[RecordFile.from_path(p) for p in paths])

    @property
    def binary_names(self) -> list[str]:
        return list(dict.fromkeys(f.binary_name for f in self.files))

    def files_for(self, binary_name: str) -> list[RecordFile]:
        return [f for f in self.files if f.binary_name == binary_name]

    def dedup(self, binary_name: str, hash_just_value: bool = False, output_dir: Path | None = None) -> DedupResult:
        return dedup_group(binary_name, self.files_for(binary_name), hash_just_value, output_dir)


def _dedup_task(
    group: tuple[str, list[RecordFile]], hash_just_value: bool, output_dir: Path | None
) -> DedupResult:
    binary_name, files = group
    return dedup_group(binary_name, files, hash_just_value, output_dir)


def dedup_corpus(
    corpus: RecordCorpus,
    output_dir: Path | None,
    hash_just_value: bool = False,
    workers: int = 1,
) -> list[DedupResult]:
    """Deduplicate every binary group, in parallel across groups."""
    groups = [(name, corpus.files_for(name)) for name in corpus.binary_names]
    return run_parallel(
        partial(_dedup_task, hash_just_value=hash_just_value, output_dir=output_dir),
        groups,
        workers=workers,
        description="Deduplicating records",
    )
