"""Function-level metadata subsets from the backend's function-info records."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class FunctionInfo(BaseModel):
    """The fields of one function-info record that the subsets draw on."""

    model_config = ConfigDict(extra="ignore")

    name: str
    ninstrs: int = 0
    edges: int = 0
    nbbs: int = 0
    indegree: Optional[int] = None
    outdegree: Optional[int] = None
    nlocals: Optional[int] = None
    nargs: Optional[int] = None
    signature: str = ""


def parse_function_info(record: Any) -> FunctionInfo:
    """Raises ValueError (pydantic's ValidationError) on malformed records."""
    return FunctionInfo.model_validate(record)


def metadata_subset(info: FunctionInfo, extended: bool = False) -> dict[str, Any]:
    """Counts used as function-level features; missing counts become 0.

    The extended subset swaps the signature for the block count and the
    mean number of instructions per block.
    """
    subset: dict[str, Any] = {
        "name": info.name,
        "ninstrs": info.ninstrs,
        "edges": info.edges,
        "indegree": info.indegree or 0,
        "outdegree": info.outdegree or 0,
        "nlocals": info.nlocals or 0,
        "nargs": info.nargs or 0,
    }
    if extended:
        subset["nbbs"] = info.nbbs
        subset["avg_ins_bb"] = info.ninstrs / info.nbbs if info.nbbs else 0.0
    else:
        subset["signature"] = info.signature
    return subset
