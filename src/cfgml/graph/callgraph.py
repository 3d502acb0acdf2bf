"""Per-function call graphs from the backend's call-graph records."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

import networkx as nx

from cfgml.extraction.loader import parse_int
from cfgml.graph.exporter import AttributedGraph

# Call edges carry no kind; every one is written with this weight.
CALL_EDGE_WEIGHT = 0


@dataclass(frozen=True)
class CallGraphRecord:
    """One function and the functions it calls."""

    name: str
    size: int = 0
    imports: tuple[str, ...] = ()


def parse_call_graph_record(record: Any) -> CallGraphRecord:
    if not isinstance(record, dict):
        raise TypeError(f"expected a JSON object, got {type(record).__name__}")
    imports = record.get("imports") or []
    if not isinstance(imports, list) or not all(isinstance(name, str) for name in imports):
        raise TypeError("imports must be a list of function names")
    return CallGraphRecord(
        name=str(record["name"]),
        size=parse_int(record.get("size")),
        imports=tuple(imports),
    )


def _add_function(graph: nx.DiGraph, name: str) -> int:
    node_id = graph.number_of_nodes()
    graph.add_node(node_id, func_name=name)
    return node_id


def call_graph(record: CallGraphRecord) -> nx.DiGraph:
    """The function plus one node per callee, each linked from the caller.

    A callee listed twice gets two nodes.
    """
    graph = nx.DiGraph(name=record.name)
    caller = _add_function(graph, record.name)
    for callee in record.imports:
        graph.add_edge(caller, _add_function(graph, callee), weight=CALL_EDGE_WEIGHT)
    return graph


def one_hop_call_graph(record: CallGraphRecord, records: Mapping[str, CallGraphRecord]) -> nx.DiGraph:
    """``call_graph`` extended with the callees of each callee found in ``records``.

    Second-hop edges start from the first node carrying the callee's name.
    """
    graph = call_graph(record)
    for callee in record.imports:
        callee_record = records.get(callee)
        if callee_record is None:
            continue
        source = next(n for n, name in graph.nodes(data="func_name") if name == callee)
        for name in callee_record.imports:
            graph.add_edge(source, _add_function(graph, name), weight=CALL_EDGE_WEIGHT)
    return graph


def export_call_graph(graph: nx.DiGraph) -> AttributedGraph:
    """Adjacency exchange format with ``func_name`` on every node."""
    nodes = [{"id": node_id, "func_name": name} for node_id, name in graph.nodes(data="func_name")]
    adjacency = [
        [{"weight": data["weight"], "id": dst} for _, dst, data in graph.out_edges(node_id, data=True)]
        for node_id in graph.nodes
    ]
    return AttributedGraph(adjacency=adjacency, nodes=nodes)
