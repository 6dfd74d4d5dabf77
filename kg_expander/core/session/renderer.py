from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from kg_expander.core.model import Edge, Node, Position


class Renderer(Protocol):
    def add_elements(self, nodes: list[Node], edges: list[Edge], pending_key: Optional[str] = None) -> None: ...

    def remove_elements(self, ids: list[str]) -> None: ...

    def set_positions(self, positions: dict[str, Position]) -> None: ...


@dataclass
class RecordingRenderer:
    """Renderer that only keeps an ordered log of what it was asked to do."""

    calls: list[tuple[str, Any]] = field(default_factory=list)

    def add_elements(self, nodes: list[Node], edges: list[Edge], pending_key: Optional[str] = None) -> None:
        self.calls.append(("add", {"nodes": [n.id for n in nodes], "edges": [e.id for e in edges], "pending_key": pending_key}))

    def remove_elements(self, ids: list[str]) -> None:
        self.calls.append(("remove", list(ids)))

    def set_positions(self, positions: dict[str, Position]) -> None:
        self.calls.append(("position", sorted(positions)))

    def kinds(self) -> list[str]:
        return [name for name, _ in self.calls]
