"""Feature scheme tags, their fixed field layouts and the vector type."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from cfgml.errors import CfgMLError

GEMINI_FIELDS = (
    "numCalls",
    "numTransfer",
    "numArith",
    "numIns",
    "numericConsts",
    "stringConsts",
    "numOffspring",
)
DISCOVRE_FIELDS = GEMINI_FIELDS[:6]
DGIS_FIELDS = (
    "numStackOps",
    "numArithOps",
    "numLogicOps",
    "numCmpOps",
    "numLibCalls",
    "numUnconJumps",
    "numConJumps",
    "numGenericIns",
)
TIKNIB_FIELDS = (
    "arithshift",
    "compare",
    "ctransfer",
    "ctransfercond",
    "dtransfer",
    "float",
    "total",
)


class FeatureScheme(str, Enum):
    GEMINI = "gemini"
    DISCOVRE = "discovre"
    DGIS = "dgis"
    TIKNIB = "tiknib"
    DISASM = "disasm"
    ESIL = "esil"
    EMBEDDED = "embedded"
    ENCODED = "encoded"

    @classmethod
    def parse(cls, value: str | FeatureScheme) -> FeatureScheme:
        if isinstance(value, FeatureScheme):
            return value
        try:
            return cls(value.strip().lower())
        except ValueError:
            choices = ", ".join(s.value for s in cls)
            raise CfgMLError(f"Unknown feature scheme {value!r} (choose from {choices})") from None

    @property
    def field_names(self) -> tuple[str, ...] | None:
        """Named node fields for counting schemes, None for the others."""
        return _FIELDS.get(self)

    @property
    def is_counting(self) -> bool:
        return self in _FIELDS

    @property
    def is_textual(self) -> bool:
        return self in (FeatureScheme.DISASM, FeatureScheme.ESIL)


_FIELDS: dict[FeatureScheme, tuple[str, ...]] = {
    FeatureScheme.GEMINI: GEMINI_FIELDS,
    FeatureScheme.DISCOVRE: DISCOVRE_FIELDS,
    FeatureScheme.DGIS: DGIS_FIELDS,
    FeatureScheme.TIKNIB: TIKNIB_FIELDS,
}


@dataclass(frozen=True)
class FeatureVector:
    scheme: FeatureScheme
    values: tuple[float, ...] = ()

    def __len__(self) -> int:
        return len(self.values)

    @property
    def is_empty(self) -> bool:
        return not self.values

    def as_dict(self) -> dict[str, float]:
        names = self.scheme.field_names
        if names is None:
            raise CfgMLError(f"Scheme {self.scheme.value} has no named fields")
        return dict(zip(names, self.values))
