"""Register name tables used when masking registers during normalization."""

from __future__ import annotations

# Frame-pointer aliases, rewritten to ``fp`` in disassembly.
FRAME_POINTERS = frozenset({"rbp", "ebp", "x29", "s8"})

_X86_32 = {"eax", "ebx", "ecx", "edx", "esi", "edi"} | {f"r{i}d" for i in range(8, 16)}
_ARM64_32 = {f"w{i}" for i in range(31)}
# radare2 prints r9-r12 as sb, sl, fp and ip, none of which are masked.
_ARM32 = {f"r{i}" for i in range(9)}
_MIPS_32 = (
    {"v0", "v1"}
    | {f"a{i}" for i in range(4)}
    | {f"t{i}" for i in range(10)}
    | {f"s{i}" for i in range(8)}
)

GENERAL_PURPOSE_32 = frozenset(_X86_32 | _ARM64_32 | _ARM32 | _MIPS_32)

GENERAL_PURPOSE_64 = frozenset(
    {"rax", "rbx", "rcx", "rdx", "rsi", "rdi", "rbp"}
    | {f"r{i}" for i in range(8, 16)}
    | {f"x{i}" for i in range(29)}
    | {"x30"}
)

# RISC-V argument, temporary and saved registers; masked in ESIL only.
RISCV_32 = frozenset(
    {f"a{i}" for i in range(8)} | {f"t{i}" for i in range(7)} | {f"s{i}" for i in range(12)}
)


def register_width(name: str) -> str | None:
    """Return ``reg32``/``reg64`` for a general-purpose register, else None.

    32-bit names are checked first, so ``r8`` resolves to the ARM reading.
    """
    if name in GENERAL_PURPOSE_32:
        return "reg32"
    if name in GENERAL_PURPOSE_64:
        return "reg64"
    return None
