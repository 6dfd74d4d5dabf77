from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterable

if TYPE_CHECKING:
    from kg_expander.core.domains.catalog import DomainCatalog


@dataclass(frozen=True)
class Node:
    id: str
    label: str
    kind: str
    depth: int

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "label": self.label, "kind": self.kind, "depth": self.depth}


@dataclass(frozen=True)
class Edge:
    id: str
    source: str
    target: str
    label: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "source": self.source, "target": self.target, "label": self.label}


@dataclass(frozen=True)
class Position:
    x: float
    y: float


@dataclass(frozen=True)
class ExpansionBatch:
    nodes: list[Node]
    edges: list[Edge]

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }


@dataclass
class KnowledgeGraph:
    """Mutable graph aggregate owned by the caller.

    Grows monotonically. The only elements ever removed are pending
    placeholders, tracked per batch key in ``pending``.
    """

    root_id: str
    nodes: dict[str, Node] = field(default_factory=dict)
    edges: dict[str, Edge] = field(default_factory=dict)
    positions: dict[str, Position] = field(default_factory=dict)
    expanded: set[str] = field(default_factory=set)
    pending: dict[str, list[str]] = field(default_factory=dict)
    in_flight: bool = False

    @classmethod
    def create(cls, catalog: DomainCatalog) -> KnowledgeGraph:
        root = Node(id=catalog.root.id, label=catalog.root.label, kind=catalog.root.kind, depth=0)
        graph = cls(root_id=root.id)
        graph.nodes[root.id] = root
        graph.positions[root.id] = Position(0.0, 0.0)
        return graph

    @property
    def root(self) -> Node:
        return self.nodes[self.root_id]

    def node_ids(self) -> list[str]:
        return list(self.nodes.keys())

    def element_ids(self) -> list[str]:
        """Every node id and edge id currently in the graph."""
        return list(self.nodes.keys()) + list(self.edges.keys())

    def merge_batch(self, nodes: Iterable[Node], edges: Iterable[Edge]) -> tuple[list[Node], list[Edge]]:
        """Insert elements whose ids are not present yet; return what was added."""
        added_nodes: list[Node] = []
        added_edges: list[Edge] = []
        for n in nodes:
            if n.id in self.nodes or n.id in self.edges:
                continue
            self.nodes[n.id] = n
            added_nodes.append(n)
        for e in edges:
            if e.id in self.edges or e.id in self.nodes:
                continue
            self.edges[e.id] = e
            added_edges.append(e)
        return added_nodes, added_edges

    def add_pending(self, key: str, nodes: list[Node], edges: list[Edge]) -> None:
        added_nodes, added_edges = self.merge_batch(nodes, edges)
        self.pending.setdefault(key, []).extend(
            [n.id for n in added_nodes] + [e.id for e in added_edges]
        )

    def retract_pending(self, key: str) -> list[str]:
        """Remove every element tagged with ``key``. Safe to call repeatedly."""
        ids = self.pending.pop(key, [])
        for element_id in ids:
            self.nodes.pop(element_id, None)
            self.edges.pop(element_id, None)
            self.positions.pop(element_id, None)
        return ids

    def is_pending(self, element_id: str) -> bool:
        return any(element_id in ids for ids in self.pending.values())

    def inbound_edges(self, node_id: str) -> list[Edge]:
        return [e for e in self.edges.values() if e.target == node_id]

    def mark_expanded(self, node_id: str) -> None:
        self.expanded.add(node_id)

    def is_expanded(self, node_id: str) -> bool:
        return node_id in self.expanded

    def to_dict(self) -> dict[str, Any]:
        nodes_out: list[dict[str, Any]] = []
        for n in self.nodes.values():
            item = n.to_dict()
            pos = self.positions.get(n.id)
            item["position"] = {"x": pos.x, "y": pos.y} if pos else None
            item["expanded"] = n.id in self.expanded
            nodes_out.append(item)
        return {
            "root_id": self.root_id,
            "nodes": nodes_out,
            "edges": [e.to_dict() for e in self.edges.values()],
        }
