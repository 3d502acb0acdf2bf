"""Architecture tags and per-architecture opcode groups used for feature counting."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from cfgml.errors import UnsupportedArchitectureError


class Architecture(str, Enum):
    ARM = "ARM"
    X86 = "X86"
    MIPS = "MIPS"

    @classmethod
    def parse(cls, value: str | Architecture) -> Architecture:
        """Map a backend or user architecture string onto a supported tag."""
        if isinstance(value, Architecture):
            return value
        key = value.strip().lower()
        try:
            return _ALIASES[key]
        except KeyError:
            raise UnsupportedArchitectureError(value) from None

    @property
    def opcodes(self) -> OpcodeTable:
        return OPCODE_TABLES[self]


_ALIASES: dict[str, Architecture] = {
    **dict.fromkeys(("x86", "x86_64", "x86-64", "x64", "amd64", "i386", "i686"), Architecture.X86),
    **dict.fromkeys(
        ("arm", "arm32", "arm64", "aarch64", "armv7", "armel", "armhf", "thumb"), Architecture.ARM
    ),
    **dict.fromkeys(("mips", "mips32", "mips64", "mipsel", "mips64el"), Architecture.MIPS),
}


@dataclass(frozen=True)
class OpcodeTable:
    """Opcode groups for one architecture.

    The first block of groups drives the Gemini/DiscovRE and DGIS schemes,
    where an instruction lands in the first matching group. The second block
    holds the TikNib groups, which may overlap.
    """

    call: frozenset[str]
    transfer: frozenset[str]
    arithmetic: frozenset[str]
    logic: frozenset[str]
    compare: frozenset[str]
    stack: frozenset[str]
    unconditional: frozenset[str]
    conditional: frozenset[str]

    shift: frozenset[str]
    float_compare: frozenset[str]
    control_transfer: frozenset[str]
    cond_control_transfer: frozenset[str]
    float_transfer: frozenset[str]
    float_arith: frozenset[str]


# -- x86 / x86-64 --

_X86_CALL = frozenset({"call", "callq", "lcall"})
_X86_TRANSFER = frozenset({
    "mov", "movabs", "movzx", "movsx", "movsxd", "movsb", "movsw", "movsd", "movsq",
    "movd", "movq", "movaps", "movups", "movapd", "movupd", "movdqa", "movdqu",
    "lea", "push", "pop", "pushal", "popal", "pushfd", "popfd", "pushfq", "popfq",
    "xchg", "cmpxchg", "bswap", "cbw", "cwde", "cdqe", "cwd", "cdq", "cqo",
    "in", "out", "lodsb", "lodsd", "stosb", "stosd", "stosq", "lahf", "sahf",
    "cmove", "cmovne", "cmova", "cmovae", "cmovb", "cmovbe", "cmovg", "cmovge",
    "cmovl", "cmovle", "cmovs", "cmovns",
})
_X86_ARITHMETIC = frozenset({
    "add", "adc", "sub", "sbb", "mul", "imul", "div", "idiv", "inc", "dec", "neg", "xadd",
})
_X86_SHIFT = frozenset({"shl", "shr", "sal", "sar", "rol", "ror", "rcl", "rcr", "shld", "shrd"})
_X86_LOGIC = frozenset({
    "and", "or", "xor", "not", "andn", "bt", "bts", "btr", "btc", "pand", "por", "pxor",
    "andps", "orps", "xorps",
}) | _X86_SHIFT
_X86_COMPARE = frozenset({"cmp", "test", "cmpsb", "cmpsw", "cmpsd", "cmpsq", "scasb", "scasd"})
_X86_FLOAT_COMPARE = frozenset({
    "ucomiss", "ucomisd", "comiss", "comisd", "fcom", "fcomp", "fcompp", "fucom",
    "fucomp", "fucomi", "fcomi", "ftst",
})
_X86_STACK = frozenset({
    "push", "pop", "pushal", "popal", "pushfd", "popfd", "pushfq", "popfq", "enter", "leave",
})
_X86_RETURN = frozenset({"ret", "retn", "retf", "iret"})
# Returns count as unconditional jumps on every architecture.
_X86_UNCONDITIONAL = frozenset({"jmp", "ljmp"}) | _X86_RETURN
_X86_CONDITIONAL = frozenset({
    "je", "jne", "jz", "jnz", "ja", "jae", "jb", "jbe", "jg", "jge", "jl", "jle",
    "js", "jns", "jo", "jno", "jp", "jnp", "jpe", "jpo", "jc", "jnc",
    "jcxz", "jecxz", "jrcxz", "loop", "loope", "loopne",
})
_X86_FLOAT_TRANSFER = frozenset({
    "fld", "fld1", "fldz", "fild", "fst", "fstp", "fist", "fistp", "fxch",
    "movss", "movsd", "movaps", "movapd", "cvtsi2sd", "cvtsi2ss", "cvttsd2si", "cvttss2si",
})
_X86_FLOAT_ARITH = frozenset({
    "fadd", "faddp", "fsub", "fsubp", "fmul", "fmulp", "fdiv", "fdivp", "fsqrt", "fabs", "fchs",
    "addss", "addsd", "subss", "subsd", "mulss", "mulsd", "divss", "divsd", "sqrtss", "sqrtsd",
})

# -- ARM / AArch64 --

_ARM_CALL = frozenset({"bl", "blx", "blr"})
_ARM_TRANSFER = frozenset({
    "mov", "movs", "movw", "movt", "movk", "movz", "movn", "mvn", "mvns",
    "ldr", "ldrb", "ldrh", "ldrsb", "ldrsh", "ldrsw", "ldrd", "ldur", "ldurb", "ldurh",
    "ldp", "ldm", "ldmia", "ldmfd", "ldmdb",
    "str", "strb", "strh", "strd", "stur", "sturb", "sturh",
    "stp", "stm", "stmia", "stmfd", "stmdb",
    "push", "pop", "adr", "adrp",
})
_ARM_ARITHMETIC = frozenset({
    "add", "adds", "adc", "adcs", "sub", "subs", "sbc", "sbcs", "rsb", "rsbs", "rsc",
    "mul", "muls", "mla", "mls", "umull", "umlal", "smull", "smlal", "madd", "msub",
    "sdiv", "udiv", "neg", "negs",
})
_ARM_SHIFT = frozenset({"lsl", "lsls", "lsr", "lsrs", "asr", "asrs", "ror", "rors", "rrx"})
_ARM_LOGIC = frozenset({
    "and", "ands", "orr", "orrs", "eor", "eors", "bic", "bics", "orn", "eon",
}) | _ARM_SHIFT
_ARM_COMPARE = frozenset({"cmp", "cmn", "tst", "teq", "ccmp", "ccmn"})
_ARM_FLOAT_COMPARE = frozenset({"vcmp", "vcmpe", "fcmp", "fcmpe"})
_ARM_STACK = frozenset({"push", "pop", "vpush", "vpop"})
_ARM_UNCONDITIONAL = frozenset({"b", "bx", "br", "ret", "b.al"})
_ARM_CONDITIONAL = frozenset({
    "beq", "bne", "bcs", "bhs", "bcc", "blo", "bmi", "bpl", "bvs", "bvc",
    "bhi", "bls", "bge", "blt", "bgt", "ble",
    "b.eq", "b.ne", "b.cs", "b.hs", "b.cc", "b.lo", "b.mi", "b.pl", "b.vs", "b.vc",
    "b.hi", "b.ls", "b.ge", "b.lt", "b.gt", "b.le",
    "cbz", "cbnz", "tbz", "tbnz",
})
_ARM_FLOAT_TRANSFER = frozenset({
    "vldr", "vstr", "vmov", "vldm", "vstm", "vpush", "vpop", "fmov", "scvtf", "ucvtf",
    "fcvtzs", "fcvtzu", "vcvt",
})
_ARM_FLOAT_ARITH = frozenset({
    "vadd", "vsub", "vmul", "vdiv", "vneg", "vabs", "vsqrt", "vmla",
    "fadd", "fsub", "fmul", "fdiv", "fneg", "fabs", "fsqrt", "fmadd", "fmsub",
})

# -- MIPS --

_MIPS_CALL = frozenset({"jal", "jalr", "bal", "bgezal", "bltzal"})
_MIPS_TRANSFER = frozenset({
    "lw", "sw", "lb", "lbu", "sb", "lh", "lhu", "sh", "ld", "sd", "lwl", "lwr",
    "swl", "swr", "ldl", "ldr", "sdl", "sdr", "ll", "sc",
    "move", "lui", "li", "la", "mfhi", "mflo", "mthi", "mtlo", "movn", "movz",
})
_MIPS_ARITHMETIC = frozenset({
    "add", "addu", "addi", "addiu", "sub", "subu", "mult", "multu", "div", "divu",
    "mul", "madd", "maddu", "msub", "msubu", "neg", "negu",
    "dadd", "daddu", "daddi", "daddiu", "dsub", "dsubu", "dmult", "dmultu", "ddiv", "ddivu",
})
_MIPS_SHIFT = frozenset({
    "sll", "sllv", "srl", "srlv", "sra", "srav",
    "dsll", "dsllv", "dsrl", "dsrlv", "dsra", "dsrav", "dsll32", "dsrl32", "dsra32",
})
_MIPS_LOGIC = frozenset({"and", "andi", "or", "ori", "xor", "xori", "nor", "not"}) | _MIPS_SHIFT
_MIPS_COMPARE = frozenset({"slt", "sltu", "slti", "sltiu"})
_MIPS_FLOAT_COMPARE = frozenset({
    "c.eq.s", "c.eq.d", "c.lt.s", "c.lt.d", "c.le.s", "c.le.d", "c.un.s", "c.un.d",
})
_MIPS_UNCONDITIONAL = frozenset({"j", "jr", "b"})
_MIPS_CONDITIONAL = frozenset({
    "beq", "bne", "beqz", "bnez", "bgez", "bgtz", "blez", "bltz",
    "beql", "bnel", "bgezl", "bltzl", "bc1t", "bc1f",
})
_MIPS_FLOAT_TRANSFER = frozenset({
    "lwc1", "swc1", "ldc1", "sdc1", "mov.s", "mov.d", "mfc1", "mtc1", "cvt.s.d", "cvt.d.s",
})
_MIPS_FLOAT_ARITH = frozenset({
    "add.s", "add.d", "sub.s", "sub.d", "mul.s", "mul.d", "div.s", "div.d",
    "abs.s", "abs.d", "neg.s", "neg.d", "sqrt.s", "sqrt.d",
})


OPCODE_TABLES: dict[Architecture, OpcodeTable] = {
    Architecture.X86: OpcodeTable(
        call=_X86_CALL,
        transfer=_X86_TRANSFER,
        arithmetic=_X86_ARITHMETIC,
        logic=_X86_LOGIC,
        compare=_X86_COMPARE | _X86_FLOAT_COMPARE,
        stack=_X86_STACK,
        unconditional=_X86_UNCONDITIONAL,
        conditional=_X86_CONDITIONAL,
        shift=_X86_SHIFT,
        float_compare=_X86_FLOAT_COMPARE,
        control_transfer=_X86_CALL | _X86_UNCONDITIONAL,
        cond_control_transfer=_X86_CONDITIONAL,
        float_transfer=_X86_FLOAT_TRANSFER,
        float_arith=_X86_FLOAT_ARITH,
    ),
    Architecture.ARM: OpcodeTable(
        call=_ARM_CALL,
        transfer=_ARM_TRANSFER,
        arithmetic=_ARM_ARITHMETIC,
        logic=_ARM_LOGIC,
        compare=_ARM_COMPARE | _ARM_FLOAT_COMPARE,
        stack=_ARM_STACK,
        unconditional=_ARM_UNCONDITIONAL,
        conditional=_ARM_CONDITIONAL,
        shift=_ARM_SHIFT,
        float_compare=_ARM_FLOAT_COMPARE,
        control_transfer=_ARM_CALL | _ARM_UNCONDITIONAL,
        cond_control_transfer=_ARM_CONDITIONAL,
        float_transfer=_ARM_FLOAT_TRANSFER,
        float_arith=_ARM_FLOAT_ARITH,
    ),
    Architecture.MIPS: OpcodeTable(
        call=_MIPS_CALL,
        transfer=_MIPS_TRANSFER,
        arithmetic=_MIPS_ARITHMETIC,
        logic=_MIPS_LOGIC,
        compare=_MIPS_COMPARE | _MIPS_FLOAT_COMPARE,
        # MIPS has no dedicated push/pop instructions.
        stack=frozenset(),
        unconditional=_MIPS_UNCONDITIONAL,
        conditional=_MIPS_CONDITIONAL,
        shift=_MIPS_SHIFT,
        float_compare=_MIPS_FLOAT_COMPARE,
        control_transfer=_MIPS_CALL | _MIPS_UNCONDITIONAL,
        cond_control_transfer=_MIPS_CONDITIONAL,
        float_transfer=_MIPS_FLOAT_TRANSFER,
        float_arith=_MIPS_FLOAT_ARITH,
    ),
}

# Order matters for detection: x86 first, then ARM, then MIPS.
_DETECTION_ORDER = (Architecture.X86, Architecture.ARM, Architecture.MIPS)


def architecture_for_call(opcode: str) -> Architecture | None:
    """Return the architecture whose call group contains ``opcode``, if any."""
    for arch in _DETECTION_ORDER:
        if opcode in OPCODE_TABLES[arch].call:
            return arch
    return None
