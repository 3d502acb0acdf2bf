"""Tests for block feature extraction and function strings."""

import pytest

from cfgml.analysis.opcodes import Architecture, architecture_for_call
from cfgml.errors import CfgMLError, UnsupportedArchitectureError
from cfgml.extraction.artifacts import BasicBlock, Instruction, SwitchCase, SwitchCaseTable
from cfgml.features.extractor import (
    block_strings,
    extract,
    function_instructions,
    function_string,
    offspring_count,
    random_walks,
    tiknib_function_features,
)
from cfgml.features.schemes import GEMINI_FIELDS, FeatureScheme


def test_gemini_counts(x86_block):
    vector = extract(x86_block, "gemini", "x86")
    assert vector.as_dict() == {
        "numCalls": 1,
        "numTransfer": 3,
        "numArith": 1,
        "numIns": 7,
        "numericConsts": 2,
        "stringConsts": 1,
        "numOffspring": 2,
    }


def test_gemini_single_call_instruction():
    block = BasicBlock(
        offset=0x10,
        instructions=(Instruction(offset=0x10, type="call", disasm="bl sym.foo", opcode="bl sym.foo"),),
    )
    values = dict(zip(GEMINI_FIELDS, extract(block, FeatureScheme.GEMINI, Architecture.ARM).values))
    assert values["numCalls"] == 1
    assert values["numIns"] == 1
    assert all(values[k] == 0 for k in GEMINI_FIELDS if k not in ("numCalls", "numIns"))


def test_discovre_is_gemini_without_offspring(x86_block):
    gemini = extract(x86_block, "gemini", "x86").values
    discovre = extract(x86_block, "discovre", "x86").values
    assert discovre == gemini[:6]


def test_dgis_counts(x86_block):
    vector = extract(x86_block, "dgis", "x86")
    assert vector.as_dict() == {
        "numStackOps": 1,
        "numArithOps": 1,
        "numLogicOps": 0,
        "numCmpOps": 1,
        "numLibCalls": 1,
        "numUnconJumps": 0,
        "numConJumps": 1,
        "numGenericIns": 2,
    }


@pytest.mark.parametrize("arch, disasm", [("x86", "ret"), ("arm", "ret"), ("mips", "jr ra")])
def test_return_counts_as_unconditional_jump(arch, disasm):
    block = BasicBlock(
        offset=0x10,
        instructions=(Instruction(offset=0x10, type="ret", disasm=disasm, opcode=disasm),),
    )
    assert extract(block, "dgis", arch).as_dict()["numUnconJumps"] == 1


def test_tiknib_counts_overlap(x86_block):
    vector = extract(x86_block, "tiknib", "x86")
    assert vector.as_dict() == {
        "arithshift": 1,
        "compare": 1,
        "ctransfer": 1,
        "ctransfercond": 2,
        "dtransfer": 3,
        "float": 0,
        "total": 7,
    }


def test_empty_block_still_counts_offspring():
    block = BasicBlock(offset=0x10, jump=0x20, fail=0x30)
    assert extract(block, "gemini", "mips").values == (0, 0, 0, 0, 0, 0, 2)


def test_offspring_includes_switch_cases():
    cases = tuple(SwitchCase(jump=0x40 + i, offset=0x100 + i, value=str(i)) for i in range(3))
    block = BasicBlock(offset=0x10, jump=0x20, switch=SwitchCaseTable(cases=cases))
    assert offspring_count(block) == 4


def test_textual_scheme_gives_empty_vector(x86_block):
    assert extract(x86_block, "esil", "x86").is_empty


def test_unknown_architecture_raises(x86_block):
    with pytest.raises(UnsupportedArchitectureError) as exc_info:
        extract(x86_block, "gemini", "sparc")
    assert exc_info.value.architecture == "sparc"


def test_unknown_scheme_raises(x86_block):
    with pytest.raises(CfgMLError):
        extract(x86_block, "nonsense", "x86")


def test_architecture_aliases():
    assert Architecture.parse("x86_64") is Architecture.X86
    assert Architecture.parse("AArch64") is Architecture.ARM
    assert Architecture.parse("mipsel") is Architecture.MIPS


def test_architecture_for_call():
    assert architecture_for_call("callq") is Architecture.X86
    assert architecture_for_call("blx") is Architecture.ARM
    assert architecture_for_call("jalr") is Architecture.MIPS
    assert architecture_for_call("nop") is None


def test_block_strings(x86_block):
    lines = block_strings(x86_block, "disasm", reg_norm=True)
    assert lines[0] == "push fp"
    assert "lea reg64 STR" in lines
    with pytest.raises(ValueError):
        block_strings(x86_block, "gemini")


def test_function_string_joins_esil(diamond_function):
    text = function_string(diamond_function, "esil", min_blocks=5)
    assert text.startswith("1 eax = rbx rax += FUNC rip 8 rsp -= rsp =[8] rip =")
    assert "," not in text


def test_function_string_respects_min_blocks(diamond_function):
    assert function_string(diamond_function, "esil", min_blocks=20) is None


def test_function_instructions_disasm(diamond_function):
    lines = function_instructions(diamond_function, "disasm", min_blocks=5)
    # Two instructions per block plus the call and the return.
    assert len(lines) == 20
    assert lines[:3] == ["mov eax 0x1", "add rax rbx", "call FUNC"]


def test_tiknib_function_features(diamond_function):
    record = tiknib_function_features(diamond_function, "x86")
    assert record["name"] == "main"
    features = record["features"]
    assert features["sum_total"] == 20
    assert features["sum_arithshift"] == 9
    assert features["avg_arithshift"] == pytest.approx(1.0)
    assert features["sum_ctransfer"] == 2
    assert len(features) == 14


def test_random_walks_start_at_every_block(diamond_function):
    walks = random_walks(diamond_function, "disasm", min_blocks=5)
    assert len(walks) == 9
    # The first walk reaches all nine blocks.
    assert len(walks[0]) == 20
    assert walks[6] == ["mov eax 0x1", "add rax rbx", "ret"]


def test_random_walks_as_pairs(diamond_function):
    walks = random_walks(diamond_function, "disasm", min_blocks=5, pairs=True)
    assert walks[6] == ["mov eax 0x1      add rax rbx", "add rax rbx      ret"]


def test_random_walks_limit_length(diamond_function):
    walks = random_walks(diamond_function, "esil", min_blocks=5, walk_length=2)
    assert all(len(walk) <= 5 for walk in walks)
    assert len(walks[6]) == 3


def test_random_walks_need_more_than_min_blocks(diamond_function):
    assert random_walks(diamond_function, "disasm", min_blocks=9) is None
