"""Shared test fixtures."""

from __future__ import annotations

import json

import pytest

from cfgml.config.models import CfgMLConfig, GenerateConfig, RuntimeConfig
from cfgml.extraction.artifacts import BasicBlock, Instruction
from cfgml.extraction.loader import parse_function

BASE = 0x401000
STEP = 0x10

# Scenario C layout: block address -> (jump, fail), listed in backend order.
# Indexing the addresses in this order assigns a0..a8 the ids 0..8.
DIAMOND_EDGES = [
    (0, 1, 2),
    (2, 3, None),
    (1, 3, None),
    (3, 4, 5),
    (5, 6, None),
    (4, 7, 8),
    (8, 6, None),
    (7, 6, None),
    (6, None, None),
]


def addr(n: int) -> int:
    return BASE + n * STEP


def _op(offset, disasm, optype, esil):
    return {
        "offset": offset,
        "type": optype,
        "size": 4,
        "disasm": disasm,
        "esil": esil,
        "opcode": disasm,
    }


def _block_record(n, jump, fail):
    start = addr(n)
    ops = [
        _op(start, "mov eax, 0x1", "mov", "1,eax,="),
        _op(start + 4, "add rax, rbx", "add", "rbx,rax,+="),
    ]
    if n == 0:
        ops.append(_op(start + 8, "call sym.imp.puts", "call", "4198400,rip,8,rsp,-=,rsp,=[8],rip,="))
    if n == 6:
        ops.append(_op(start + 8, "ret", "ret", "rsp,[8],rip,=,8,rsp,+="))
    record = {"offset": start, "size": STEP, "ops": ops}
    if jump is not None:
        record["jump"] = addr(jump)
    if fail is not None:
        record["fail"] = addr(fail)
    return record


@pytest.fixture
def sample_config() -> CfgMLConfig:
    return CfgMLConfig(
        generate=GenerateConfig(min_blocks=5, feature_scheme="gemini"),
        runtime=RuntimeConfig(workers=1),
    )


@pytest.fixture
def diamond_record() -> dict:
    """Raw backend record for the nine-block, eleven-edge function."""
    return {
        "name": "main",
        "offset": BASE,
        "size": 9 * STEP,
        "blocks": [_block_record(n, jump, fail) for n, jump, fail in DIAMOND_EDGES],
    }


@pytest.fixture
def diamond_function(diamond_record):
    return parse_function(diamond_record)


@pytest.fixture
def tiny_record() -> dict:
    """Two-block function, below the default block threshold."""
    return {
        "name": "sym.tiny",
        "offset": 0x402000,
        "size": 0x20,
        "blocks": [
            {
                "offset": 0x402000,
                "size": 0x10,
                "jump": 0x402010,
                "ops": [_op(0x402000, "push rbp", "push", "rbp,8,rsp,-,=[8],8,rsp,-=")],
            },
            {
                "offset": 0x402010,
                "size": 0x10,
                "ops": [_op(0x402010, "ret", "ret", "rsp,[8],rip,=,8,rsp,+=")],
            },
        ],
    }


@pytest.fixture
def x86_block() -> BasicBlock:
    """One block exercising every Gemini counter."""
    ins = (
        Instruction(offset=0x1000, type="push", disasm="push rbp", opcode="push rbp"),
        Instruction(offset=0x1001, type="mov", disasm="mov rbp, rsp", opcode="mov rbp, rsp"),
        Instruction(offset=0x1004, type="call", disasm="call sym.imp.puts", opcode="call sym.imp.puts"),
        Instruction(offset=0x1009, type="add", disasm="add rax, 0x10", opcode="add rax, 0x10"),
        Instruction(offset=0x100d, type="lea", disasm="lea rdi, str.hello", opcode="lea rdi, str.hello"),
        Instruction(offset=0x1014, type="cmp", disasm="cmp eax, 0x3", opcode="cmp eax, 0x3"),
        Instruction(offset=0x1017, type="cjmp", disasm="je 0x1020", opcode="je 0x1020"),
        Instruction(offset=0x1019, type="invalid", disasm="invalid", opcode="invalid"),
    )
    return BasicBlock(offset=0x1000, size=0x1a, jump=0x1020, fail=0x101a, instructions=ins)


@pytest.fixture
def function_file(tmp_path, diamond_record, tiny_record):
    """JSON-lines backend output with one usable and one too-small function."""
    path = tmp_path / "inputs" / "demo.json"
    path.parent.mkdir()
    path.write_text("\n".join(json.dumps(r) for r in (diamond_record, tiny_record)) + "\n")
    return path
