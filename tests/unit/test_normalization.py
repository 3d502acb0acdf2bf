"""Tests for disassembly and ESIL normalization."""

import pytest

from cfgml.normalization.normalizer import normalize_disasm, normalize_esil
from cfgml.normalization.registers import register_width


@pytest.mark.parametrize(
    "esil, expected",
    [
        ("0x30,rbp,-,[8],rax,=", "IMM,rbp,-,[8],rax,="),
        ("0x8,rbp,-,[8],rcx,=", "IMM,rbp,-,[8],rcx,="),
        ("0x74,rcx,+,[4],rdx,=", "IMM,rcx,+,[4],rdx,="),
    ],
)
def test_esil_small_immediates(esil, expected):
    assert normalize_esil(esil, "not_call") == expected


def test_esil_large_constant_is_mem():
    esil = "rcx,rax,-=,rcx,0x8000000000000000,-,!,63,$o,^,of,:=,63,$s,sf,:=,$z,zf,:="
    assert normalize_esil(esil, "not_call") == (
        "rcx,rax,-=,rcx,MEM,-,!,63,$o,^,of,:=,63,$s,sf,:=,$z,zf,:="
    )


@pytest.mark.parametrize(
    "esil, expected",
    [
        ("0x70d388,rcx,8,*,+,[8],rcx,=", "MEM,rcx,8,*,+,[8],rcx,="),
        ("0x2e822a,rip,+,[8],rax,=", "MEM,rip,+,[8],rax,="),
    ],
)
def test_esil_addresses_are_mem(esil, expected):
    assert normalize_esil(esil, "not_call") == expected


def test_esil_all_ones_mask_is_imm():
    esil = "eax,rax,^,0xffffffff,&,rax,=,$z,zf,:="
    assert normalize_esil(esil, "not_call") == "eax,rax,^,IMM,&,rax,=,$z,zf,:="


def test_esil_long_decimal_depends_on_call():
    esil = "4269168,rip,8,rsp,-=,rsp,=[8],rip,="
    assert normalize_esil(esil, "call") == "FUNC,rip,8,rsp,-=,rsp,=[8],rip,="
    assert normalize_esil(esil, "not_call") == "DATA,rip,8,rsp,-=,rsp,=[8],rip,="


def test_esil_riscv_register_masking():
    esil = "a0,4,+,[4],a3,=,0,a4,=,a0,a5,=,0,ra,==,$z,,!,?{,MEM,pc,:=,}"
    assert normalize_esil(esil, "not_call", True) == (
        "reg32 4 + [4] reg32 = 0 reg32 = reg32 reg32 = 0 ra == $z ! ?{ MEM pc := }"
    )


def test_esil_riscv_saved_registers_and_stack():
    esil = "sp,-16,+,sp,=,s0,sp,8,+,=[4],a0,s0,=,ra,sp,12,+,=[4],s0,12"
    assert normalize_esil(esil, "not_call", True) == (
        "sp -16 + sp = reg32 sp 8 + =[4] reg32 reg32 = ra sp 12 + =[4] reg32 12"
    )


def test_esil_arm32_register_masking():
    esil = "r4,r5,=,DATA,pc,:=,IMM,fp,-,IMM,&,[4],IMM,&,r0,=,r0,sb,|"
    assert normalize_esil(esil, "no_call", True) == (
        "reg32 reg32 = DATA pc := IMM fp - IMM & [4] IMM & reg32 = reg32 sb |"
    )
    esil = "924,r4,+,IMM,&,[4],IMM,&,r8,=,0,r4,+,IMM,&,[4],IMM,&"
    assert normalize_esil(esil, "not_call", True) == (
        "924 reg32 + IMM & [4] IMM & reg32 = 0 reg32 + IMM & [4] IMM &"
    )


def test_esil_arm64_register_masking():
    esil = "0,MEM,w8,&,==,31,$s,nf,:=,xzr,16,sp,+,DUP,tmp,=,=[8],DATA"
    assert normalize_esil(esil, "not_call", True) == (
        "0 MEM reg32 & == 31 $s nf := xzr 16 sp + DUP tmp = =[8] DATA"
    )


@pytest.mark.parametrize(
    "disasm, reg_norm, expected",
    [
        ("add byte [rax + 0x3d], bh", False, "add byte [rax + IMM] bh"),
        ("add byte [rax + 0x3d], bh", True, "add byte [reg64 + IMM] bh"),
        ("je 0x11b9", False, "je MEM"),
        ("je 0x121b9", False, "je MEM"),
        ("add byte [rax + 0x4532522d], bh", False, "add byte [rax + MEM] bh"),
        ("lea rdi, str.This_is_a_very_silly_program_", False, "lea rdi STR"),
        ("str.This_is_a_very_silly_program_ something", False, "STR something"),
        ("mov eax str.This_is_a_very_silly_program_s", True, "mov reg32 STR"),
        ("mov eax str.AnotherOne", True, "mov reg32 STR"),
        ("movzx ecx word [obj.DNS::Factory::progressiveId]", True, "movzx reg32 word DATA"),
        ("mov reg64 qword [reloc.stderr]", True, "mov reg64 qword FUNC"),
        ("cmp qword [reloc.__cxa_finalize] 0", True, "cmp qword FUNC 0"),
        ("xmmword [r12 + 0x224]", True, "xmmword [reg64 + IMM]"),
        ("mov qword [rax + rcx*8 + 0x643]", True, "mov qword [reg64 + reg64*8 + IMM]"),
        ("cmp word [rax + rcx*2]", True, "cmp word [reg64 + reg64*2]"),
        ("nop word cs:[rax + rax]", True, "nop"),
        ("nop dword [rax + rax]", True, "nop"),
        ("lea reg64 obj.__func__.7896", True, "lea reg64 DATA"),
        ("call loc.imp.__cxa_finalize", True, "call FUNC"),
    ],
)
def test_disasm_x86(disasm, reg_norm, expected):
    assert normalize_disasm(disasm, reg_norm) == expected


@pytest.mark.parametrize(
    "disasm, reg_norm, expected",
    [
        (
            "jal method std::__cxx11::_List_base<FingerTest const*, "
            "std::allocator<FingerTest const*> >::~_List_base()",
            False,
            "jal FUNC",
        ),
        ("jal method std::__cxx11::basic_STRtraits<char>", False, "jal FUNC"),
        ("sw fp 0x60(sp)", False, "sw fp IMM(sp)"),
        ("sw fp 0x60c(sp)", False, "sw fp IMM(sp)"),
        ("jal fcn.001f79f0", False, "jal FUNC"),
        ("jal sym.safe_zalloc", False, "jal FUNC"),
        ("lw reg32 -obj.__DTOR_END__(gp)", False, "lw reg32 DATA"),
        ("addiu a2 reg32 obj.__func__.6741", True, "addiu reg32 reg32 DATA"),
        ("daddiu a2 a2 obj.__func__.7160", True, "daddiu reg32 reg32 DATA"),
        ("ja case.0x74543.3", False, "ja MEM"),
    ],
)
def test_disasm_mips(disasm, reg_norm, expected):
    assert normalize_disasm(disasm, reg_norm) == expected


@pytest.mark.parametrize(
    "disasm, reg_norm, expected",
    [
        ("ldr x8 [r2]", True, "ldr reg64 [reg32]"),
        ("ldr x2 [x4]", True, "ldr reg64 [reg64]"),
        ("ldr x8 r2", True, "ldr reg64 reg32"),
        ("ldr w12 w21", True, "ldr reg32 reg32"),
        ("mov x0 x20", True, "mov reg64 reg64"),
        ("mov x0 w20", True, "mov reg64 reg32"),
        ("adrp reg64 obj.completed.8887", True, "adrp reg64 DATA"),
        (
            "sub sp sp 0x70 stp x29 x30 [sp IMM] add x29 sp 0x60",
            True,
            "sub sp sp 0x70 stp fp reg64 [sp IMM] add fp sp 0x60",
        ),
        ("ldr reg32 aav.0x24633", False, "ldr reg32 MEM"),
    ],
)
def test_disasm_arm(disasm, reg_norm, expected):
    assert normalize_disasm(disasm, reg_norm) == expected


def test_normalization_is_idempotent_on_output():
    once = normalize_disasm("mov qword [rax + rcx*8 + 0x643]", True)
    assert normalize_disasm(once, True) == once


def test_register_width_prefers_32_bit():
    # r8 is an ARM 32-bit register and an x86-64 register.
    assert register_width("r8") == "reg32"
    assert register_width("r12") == "reg64"
    assert register_width("w3") == "reg32"
    assert register_width("sp") is None
