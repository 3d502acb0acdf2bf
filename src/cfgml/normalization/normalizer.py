"""Lexical normalization of disassembly and ESIL instruction text.

Every substitution is a fixed regular expression applied in a fixed order.
Downstream models are trained on the exact token stream these rules
produce, so the patterns and their order must not change.
"""

from __future__ import annotations

import re

from cfgml.normalization.registers import (
    FRAME_POINTERS,
    GENERAL_PURPOSE_32,
    GENERAL_PURPOSE_64,
    RISCV_32,
    register_width,
)

# (pattern, replacement) applied in order to disassembly text.
_DISASM_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"(0xffff[0-9a-fA-F]{1,})"), "IMM"),
    (re.compile(r"(0[xX][0-9a-fA-F]{1,3}])"), "IMM]"),
    (re.compile(r"(0[xX][0-9a-fA-F]{1,4})\("), "IMM("),
    (re.compile(r"(case\.|0x|aav\.){0,1}0x[0-9a-fA-F]{3,}(.[0-9]){0,}"), "MEM"),
    (re.compile(r"(str\S*[^!\s][_|s]{0,1})"), "STR"),
    (re.compile(r"method.*[^!\s]\(*.*(\)|>*)"), "FUNC"),
    (re.compile(r"(fcn|sym).*[^!\s]"), "FUNC"),
    (re.compile(r"[-]{0,1}[\[]{0,1}obj\S*[\]]{0,1}"), "DATA"),
    (re.compile(r"\[reloc\S*\]"), "FUNC"),
    (re.compile(r"loc.[a-z]+.[a-z_]+"), "FUNC"),
    (re.compile(r"nop.*"), "nop"),
)

_ESIL_IMM_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"(0xffff[0-9a-fA-F]{1,},)"), "IMM,"),
    (re.compile(r"(0[xX][0-9a-fA-F]{1,3},)"), "IMM,"),
    (re.compile(r"(0[xX][0-9a-fA-F]{4,},)"), "MEM,"),
)
_ESIL_DECIMAL = re.compile(r"([0-9]{4,}?,)")


def _mask_disasm_token(token: str) -> str:
    if token in FRAME_POINTERS:
        return "fp"

    width = register_width(token)
    if width is not None:
        return width

    if token.startswith("["):
        closed = token.endswith("]") and len(token) > 1
        inner = token[1:-1] if closed else token[1:]
        width = register_width(inner)
        if width is not None:
            return f"[{width}]" if closed else f"[{width}"
        return token

    if "*" in token:
        return "*".join(
            "reg64" if part in GENERAL_PURPOSE_64 else part for part in token.split("*")
        )

    return token


def _mask_esil_token(token: str) -> str:
    if token in GENERAL_PURPOSE_32 or token in RISCV_32:
        return "reg32"
    if token in GENERAL_PURPOSE_64:
        return "reg64"
    return token


def normalize_disasm(text: str, register_normalize: bool = False) -> str:
    """Canonicalize one line of disassembly.

    >>> normalize_disasm("add byte [rax + 0x3d], bh", True)
    'add byte [reg64 + IMM] bh'
    """
    normalized = text.replace(",", " ").replace("  ", " ")
    for pattern, replacement in _DISASM_RULES:
        normalized = pattern.sub(replacement, normalized)

    if register_normalize:
        tokens = [tok for tok in normalized.split(" ") if tok]
        normalized = " ".join(_mask_disasm_token(tok) for tok in tokens)

    return normalized


def normalize_esil(text: str, op_kind: str, register_normalize: bool = False) -> str:
    """Canonicalize one ESIL expression.

    Long decimal literals become ``FUNC`` for call instructions and ``DATA``
    otherwise. With register masking the comma-delimited expression is
    returned space-delimited.
    """
    normalized = text
    for pattern, replacement in _ESIL_IMM_RULES:
        normalized = pattern.sub(replacement, normalized)

    normalized = _ESIL_DECIMAL.sub("FUNC," if op_kind == "call" else "DATA,", normalized)

    if register_normalize:
        tokens = [tok for tok in normalized.split(",") if tok]
        normalized = " ".join(_mask_esil_token(tok) for tok in tokens)

    return normalized
