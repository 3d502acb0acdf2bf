"""Load backend per-function records (JSON lines or a JSON array) into artifacts."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterator, TypeVar

from cfgml.analysis.opcodes import Architecture, architecture_for_call
from cfgml.extraction.artifacts import (
    NO_ADDRESS,
    BasicBlock,
    Function,
    Instruction,
    SwitchCase,
    SwitchCaseTable,
)
from cfgml.utils.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")

_ADDRESS_LIMIT = 2**64
_INPUT_SUFFIXES = (".json", ".jsonl")


@dataclass(frozen=True)
class FunctionFile:
    """All functions recovered from one backend output file."""

    path: Path
    functions: tuple[Function, ...]
    architecture: Architecture | None = None
    malformed: int = 0

    @property
    def stem(self) -> str:
        return self.path.name.split(".j")[0]


def parse_address(value: Any) -> int:
    """Coerce a backend address to an int in [0, 2**64), else NO_ADDRESS."""
    if value is None or isinstance(value, bool):
        return NO_ADDRESS
    if isinstance(value, str):
        try:
            value = int(value, 0)
        except ValueError:
            return NO_ADDRESS
    elif isinstance(value, float):
        if not value.is_integer():
            return NO_ADDRESS
        value = int(value)
    if not isinstance(value, int):
        return NO_ADDRESS
    return value if 0 <= value < _ADDRESS_LIMIT else NO_ADDRESS


def parse_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


_TEXT_FIELDS = ("disasm", "esil", "opcode", "bytes")


def _optional_text(raw: dict[str, Any], key: str) -> str | None:
    value = raw.get(key)
    if value is not None and not isinstance(value, str):
        raise TypeError(f"instruction field {key!r} must be a string, got {type(value).__name__}")
    return value


def _parse_instruction(raw: dict[str, Any]) -> Instruction:
    text = {key: _optional_text(raw, key) for key in _TEXT_FIELDS}
    return Instruction(
        offset=parse_address(raw["offset"]),
        type=str(raw["type"]),
        size=parse_int(raw.get("size")),
        **text,
    )


def _parse_switch(raw: dict[str, Any]) -> SwitchCaseTable:
    cases = tuple(
        SwitchCase(
            jump=parse_address(case.get("jump")),
            offset=parse_address(case.get("offset")),
            value=str(case.get("value", "")),
        )
        for case in raw.get("cases") or ()
    )
    return SwitchCaseTable(
        offset=parse_address(raw.get("offset")),
        defval=parse_int(raw.get("defval")),
        minval=parse_int(raw.get("minval")),
        maxval=parse_int(raw.get("maxval")),
        cases=cases,
    )


def _parse_block(raw: dict[str, Any]) -> BasicBlock:
    switch = raw.get("switchop")
    return BasicBlock(
        offset=parse_address(raw.get("offset")),
        size=parse_int(raw.get("size")),
        jump=parse_address(raw.get("jump")),
        fail=parse_address(raw.get("fail")),
        instructions=tuple(_parse_instruction(op) for op in raw["ops"]),
        switch=_parse_switch(switch) if isinstance(switch, dict) else None,
    )


def parse_function(record: Any) -> Function:
    """Build a Function from one decoded record.

    Accepts either the function object itself or a single-element list
    wrapping it. Raises KeyError, TypeError or ValueError on malformed input,
    including instruction text fields that are not strings.
    """
    if isinstance(record, list):
        if len(record) != 1:
            raise ValueError(f"expected a single function per record, got {len(record)}")
        record = record[0]
    if not isinstance(record, dict):
        raise TypeError(f"expected a JSON object, got {type(record).__name__}")

    size = record.get("size")
    return Function(
        name=str(record["name"]),
        offset=parse_address(record["offset"]),
        size=parse_int(size) if size is not None else None,
        blocks=tuple(_parse_block(block) for block in record["blocks"]),
    )


def _iter_records(text: str) -> Iterator[tuple[int, Any]]:
    """Yield (record number, decoded value); undecodable lines yield an exception."""
    stripped = text.lstrip()
    if stripped.startswith("["):
        for idx, record in enumerate(json.loads(stripped)):
            yield idx, record
        return

    for lineno, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            yield lineno, json.loads(line)
        except json.JSONDecodeError as exc:
            yield lineno, exc


def detect_architecture(functions: tuple[Function, ...] | list[Function]) -> Architecture | None:
    """Infer the architecture from the first recognisable call instruction."""
    for function in functions:
        for block in function.blocks:
            for ins in block.instructions:
                if ins.type not in ("call", "rcall") or not ins.disasm:
                    continue
                opcode = ins.disasm.split(maxsplit=1)[0] if ins.disasm.strip() else ""
                arch = architecture_for_call(opcode)
                if arch is not None:
                    return arch
    return None


def load_records(path: Path, parse: Callable[[Any], T]) -> tuple[list[T], int] | None:
    """Decode and parse every record in one backend output file.

    Returns the parsed records and the number of malformed ones, or None
    when the file cannot be read or is not JSON at all. Malformed records
    are logged and skipped.
    """
    path = Path(path)
    try:
        text = path.read_text()
    except (OSError, UnicodeDecodeError) as exc:
        log.error("file_load_failed", path=str(path), error=str(exc))
        return None

    parsed: list[T] = []
    malformed = 0
    try:
        for number, record in _iter_records(text):
            if isinstance(record, Exception):
                malformed += 1
                log.warning("malformed_record", path=str(path), record=number, error=str(record))
                continue
            try:
                parsed.append(parse(record))
            except (AttributeError, KeyError, TypeError, ValueError) as exc:
                malformed += 1
                log.warning("malformed_function", path=str(path), record=number, error=repr(exc))
    except json.JSONDecodeError as exc:
        log.error("file_load_failed", path=str(path), error=str(exc))
        return None
    return parsed, malformed


def load_function_file(path: Path) -> FunctionFile | None:
    """Load every function in one backend output file.

    Returns None when the file cannot be read or is not JSON at all.
    Individual malformed records are logged and skipped.
    """
    path = Path(path)
    loaded = load_records(path, parse_function)
    if loaded is None:
        return None
    functions, malformed = loaded

    log.debug("loaded_functions", path=str(path), functions=len(functions), malformed=malformed)
    return FunctionFile(
        path=path,
        functions=tuple(functions),
        architecture=detect_architecture(functions),
        malformed=malformed,
    )


def find_input_files(path: Path, recursive: bool = False) -> list[Path]:
    """Sorted list of backend output files under ``path`` (or ``path`` itself)."""
    path = Path(path)
    if path.is_file():
        return [path]
    pattern = "**/*" if recursive else "*"
    return sorted(p for p in path.glob(pattern) if p.is_file() and p.suffix in _INPUT_SUFFIXES)
