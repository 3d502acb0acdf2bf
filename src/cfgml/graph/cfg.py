"""Build per-function control-flow graphs from basic-block records."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Iterator, NamedTuple

import networkx as nx

from cfgml.extraction.artifacts import NO_ADDRESS, BasicBlock, Function
from cfgml.utils.logging import get_logger

log = get_logger(__name__)

# Offset the backend reports for a first block it failed to analyse.
UNANALYSED_BLOCK_OFFSET = 1


class EdgeKind(IntEnum):
    JUMP = 1
    FAIL = 2
    SWITCH = 3


class Edge(NamedTuple):
    src: int
    dst: int
    kind: EdgeKind


class AddressIndex:
    """Dense, zero-based node ids assigned to addresses in first-seen order."""

    def __init__(self) -> None:
        self._addresses: list[int] = []
        self._ids: dict[int, int] = {}

    def add(self, address: int) -> int:
        """Return the id for ``address``, assigning the next id if unseen."""
        node_id = self._ids.get(address)
        if node_id is None:
            node_id = len(self._addresses)
            self._ids[address] = node_id
            self._addresses.append(address)
        return node_id

    def get(self, address: int) -> int | None:
        return self._ids.get(address)

    def address_of(self, node_id: int) -> int:
        return self._addresses[node_id]

    @property
    def addresses(self) -> tuple[int, ...]:
        return tuple(self._addresses)

    def __contains__(self, address: object) -> bool:
        return address in self._ids

    def __len__(self) -> int:
        return len(self._addresses)

    def __iter__(self) -> Iterator[int]:
        return iter(self._addresses)


@dataclass(frozen=True)
class CFG:
    function_name: str
    index: AddressIndex
    edges: tuple[Edge, ...] = field(default_factory=tuple)

    @property
    def node_count(self) -> int:
        return len(self.index)

    def to_networkx(self) -> nx.MultiDiGraph:
        """MultiDiGraph over node ids with the edge kind as ``weight``.

        Parallel edges between the same pair are all kept.
        """
        graph = nx.MultiDiGraph(name=self.function_name)
        for node_id, address in enumerate(self.index):
            graph.add_node(node_id, address=address)
        for edge in self.edges:
            graph.add_edge(edge.src, edge.dst, weight=int(edge.kind))
        return graph


def _bounded(address: int, lower: int, upper: int) -> int:
    return address if lower <= address < upper else NO_ADDRESS


def block_edges(block: BasicBlock, index: AddressIndex, lower: int, upper: int) -> list[Edge]:
    """Index one block's addresses and return its outgoing edges.

    Jump and fail targets outside ``[lower, upper)`` are dropped. Switch
    targets are indexed without a bounds check. A case whose target could
    not be parsed is skipped rather than indexed as an address; this departs
    from the backend's own graph, which would add a node for the sentinel.
    """
    addr = _bounded(block.offset, lower, upper)
    jump = _bounded(block.jump, lower, upper)
    fail = _bounded(block.fail, lower, upper)

    for candidate in (addr, jump, fail):
        if candidate != NO_ADDRESS:
            index.add(candidate)

    src = index.get(addr) if addr != NO_ADDRESS else None
    if src is None:
        return []

    edges: list[Edge] = []
    if jump != NO_ADDRESS:
        edges.append(Edge(src, index.add(jump), EdgeKind.JUMP))
    if fail != NO_ADDRESS:
        edges.append(Edge(src, index.add(fail), EdgeKind.FAIL))
    for case in block.switch_cases:
        if case.jump == NO_ADDRESS:
            continue
        edges.append(Edge(src, index.add(case.jump), EdgeKind.SWITCH))
    return edges


def is_buildable(function: Function, min_blocks: int) -> bool:
    """Whether the function has enough blocks and was analysed by the backend."""
    if len(function.blocks) < min_blocks or not function.blocks:
        return False
    return function.blocks[0].offset != UNANALYSED_BLOCK_OFFSET


def build_cfg(function: Function, min_blocks: int) -> CFG | None:
    """Build the address index and typed edge list for one function.

    Returns None when the function is skipped.
    """
    if not is_buildable(function, min_blocks):
        log.debug("cfg_skipped", function=function.name, blocks=len(function.blocks))
        return None

    lower, upper = function.offset, function.upper_bound
    index = AddressIndex()
    edges: list[Edge] = []
    for block in function.blocks:
        edges.extend(block_edges(block, index, lower, upper))

    return CFG(function_name=function.name, index=index, edges=tuple(edges))
