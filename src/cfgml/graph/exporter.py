"""Serialize CFGs plus node features into networkx adjacency JSON."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Sequence

import networkx as nx

from cfgml.errors import FileLoadError
from cfgml.features.schemes import FeatureScheme, FeatureVector
from cfgml.graph.cfg import CFG
from cfgml.utils.logging import get_logger

log = get_logger(__name__)


class NodeLabel(str, Enum):
    INDEX = "index"
    ADDRESS = "address"


@dataclass
class AttributedGraph:
    """One function's graph in networkx adjacency exchange format."""

    adjacency: list[list[dict[str, Any]]]
    nodes: list[dict[str, Any]]
    directed: bool = True
    multigraph: bool = False
    graph: list[Any] = field(default_factory=list)

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    @property
    def edge_count(self) -> int:
        return sum(len(targets) for targets in self.adjacency)

    def to_dict(self) -> dict[str, Any]:
        return {
            "adjacency": self.adjacency,
            "directed": self.directed,
            "multigraph": self.multigraph,
            "nodes": self.nodes,
            "graph": self.graph,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AttributedGraph:
        return cls(
            adjacency=[list(targets) for targets in data["adjacency"]],
            nodes=list(data["nodes"]),
            directed=bool(data.get("directed", True)),
            multigraph=bool(data.get("multigraph", False)),
            graph=list(data.get("graph", [])),
        )


def node_label(node_id: int, address: int, mode: NodeLabel) -> int | str:
    if mode is NodeLabel.ADDRESS:
        return f"{address:#x} / {address}"
    return node_id


def _plain(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def _node_attributes(item: Any, scheme: FeatureScheme | None) -> dict[str, Any]:
    if isinstance(item, FeatureVector):
        scheme, values = item.scheme, item.values
    else:
        values = item

    names = scheme.field_names if scheme is not None else None
    if names is None:
        return {"features": _plain(values)}
    if len(values) != len(names):
        raise ValueError(f"expected {len(names)} {scheme.value} features, got {len(values)}")
    return {name: float(v) for name, v in zip(names, values)}


def export(
    cfg: CFG,
    features: Sequence[Any] | None = None,
    scheme: FeatureScheme | None = None,
    node_labels: NodeLabel = NodeLabel.INDEX,
) -> AttributedGraph | None:
    """Attach per-node features to a CFG and convert it to exchange format.

    ``features`` holds one entry per node in node-id order: FeatureVectors,
    raw vectors, vectors of vectors or instruction strings. Counting-scheme
    vectors are written as named fields, everything else under ``features``.
    Every edge gets its own adjacency entry, so a jump and a fail to the same
    block appear twice. Self-loops are dropped. Returns None when the feature
    count does not match the node count.
    """
    if features is not None and len(features) != cfg.node_count:
        log.warning(
            "feature_count_mismatch",
            function=cfg.function_name,
            nodes=cfg.node_count,
            features=len(features),
        )
        return None

    labels = [node_label(i, addr, node_labels) for i, addr in enumerate(cfg.index)]

    nodes: list[dict[str, Any]] = []
    for node_id, label in enumerate(labels):
        attrs: dict[str, Any] = {}
        if features is not None:
            try:
                attrs = _node_attributes(features[node_id], scheme)
            except ValueError as exc:
                log.warning("feature_length_mismatch", function=cfg.function_name, error=str(exc))
                return None
        nodes.append({"id": label, **attrs})

    adjacency: list[list[dict[str, Any]]] = [[] for _ in labels]
    for edge in cfg.edges:
        if edge.src == edge.dst:
            continue
        adjacency[edge.src].append({"weight": int(edge.kind), "id": labels[edge.dst]})

    return AttributedGraph(adjacency=adjacency, nodes=nodes)


def write_graph(graph: AttributedGraph, path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(graph.to_dict()))
    return path


def load_graph_data(path: Path) -> dict[str, Any]:
    """Raw JSON of an exported graph. Raises FileLoadError."""
    try:
        data = json.loads(Path(path).read_text())
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise FileLoadError(path, str(exc)) from exc
    if not isinstance(data, dict) or "nodes" not in data or "adjacency" not in data:
        raise FileLoadError(path, "not an adjacency graph")
    return data


def read_graph(path: Path) -> nx.MultiDiGraph:
    """Load an exported graph back into networkx, keeping parallel edges."""
    data = load_graph_data(path)
    graph = nx.MultiDiGraph()
    for node in data["nodes"]:
        attrs = dict(node)
        graph.add_node(attrs.pop("id"), **attrs)
    for node, targets in zip(data["nodes"], data["adjacency"]):
        for target in targets:
            attrs = dict(target)
            graph.add_edge(node["id"], attrs.pop("id"), **attrs)
    return graph
