"""Frozen dataclasses for per-function disassembly records."""

from __future__ import annotations

from dataclasses import dataclass

# Marker used for missing, unparsable or out-of-range addresses.
NO_ADDRESS = -1


@dataclass(frozen=True)
class Instruction:
    offset: int
    type: str
    size: int = 0
    disasm: str | None = None
    esil: str | None = None
    opcode: str | None = None
    bytes: str | None = None

    @property
    def is_invalid(self) -> bool:
        return self.type == "invalid"

    @property
    def mnemonic(self) -> str:
        """First whitespace token of the opcode text, or of the disassembly."""
        text = self.opcode or self.disasm or ""
        parts = text.split(maxsplit=1)
        return parts[0] if parts else ""


@dataclass(frozen=True)
class SwitchCase:
    jump: int
    offset: int
    # Case values can exceed 64 bits, so they are kept as text.
    value: str


@dataclass(frozen=True)
class SwitchCaseTable:
    offset: int = NO_ADDRESS
    defval: int = 0
    minval: int = 0
    maxval: int = 0
    cases: tuple[SwitchCase, ...] = ()


@dataclass(frozen=True)
class BasicBlock:
    offset: int
    size: int = 0
    jump: int = NO_ADDRESS
    fail: int = NO_ADDRESS
    instructions: tuple[Instruction, ...] = ()
    switch: SwitchCaseTable | None = None

    @property
    def switch_cases(self) -> tuple[SwitchCase, ...]:
        return self.switch.cases if self.switch is not None else ()

    @property
    def end(self) -> int:
        return self.offset + self.size


@dataclass(frozen=True)
class Function:
    name: str
    offset: int
    size: int | None = None
    blocks: tuple[BasicBlock, ...] = ()

    @property
    def upper_bound(self) -> int:
        """Exclusive end address used to bound control-flow targets.

        Falls back to the end of the furthest block when the backend did not
        report a function size.
        """
        if self.size is not None:
            return self.offset + self.size
        if not self.blocks:
            return self.offset
        return max(block.end for block in self.blocks)
