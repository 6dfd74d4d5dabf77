from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Literal, Optional, Protocol

from kg_expander.core.ai.contracts import ExpandRequest, parse_expansion_json
from kg_expander.core.domains.catalog import DomainCatalog
from kg_expander.core.errors import GeneratorError
from kg_expander.core.layout.layout_graph import DEFAULT_LAYOUT, LayoutConfig, place_new_children
from kg_expander.core.model import Edge, ExpansionBatch, KnowledgeGraph, Node
from kg_expander.core.sanitize.sanitize_expansion import sanitize_for_catalog
from kg_expander.core.session.renderer import Renderer


logger = logging.getLogger(__name__)

PENDING_COUNT = 3
PENDING_NODE_LABEL = "生成中…"
PENDING_EDGE_LABEL = "生成中"

ExpandStatus = Literal["expanded", "busy", "already_expanded", "unknown_node"]


class Generator(Protocol):
    def propose_expansion(self, *, request: ExpandRequest, catalog: DomainCatalog, model: str) -> str: ...


@dataclass(frozen=True)
class ExpandOutcome:
    status: ExpandStatus
    node_id: str
    batch: Optional[ExpansionBatch] = None


@contextmanager
def pending_batch(
    graph: KnowledgeGraph,
    focus: Node,
    catalog: DomainCatalog,
    *,
    renderer: Renderer | None = None,
    layout: LayoutConfig = DEFAULT_LAYOUT,
) -> Iterator[str]:
    """Insert placeholder children for ``focus`` and always retract them on exit."""
    key = f"{focus.id}__pending__{time.time_ns()}"
    kind = catalog.pending_kind()

    nodes = [
        Node(id=f"{key}__n{i}", label=PENDING_NODE_LABEL, kind=kind, depth=focus.depth + 1)
        for i in range(1, PENDING_COUNT + 1)
    ]
    edges = [
        Edge(id=f"{key}__e{i}", source=focus.id, target=n.id, label=PENDING_EDGE_LABEL)
        for i, n in enumerate(nodes, start=1)
    ]

    try:
        graph.add_pending(key, nodes, edges)
        if renderer is not None:
            renderer.add_elements(nodes, edges, pending_key=key)
        positions = place_new_children(graph, focus.id, [n.id for n in nodes], layout)
        if renderer is not None:
            renderer.set_positions(positions)
        yield key
    finally:
        retract_pending(graph, key, renderer=renderer)


def retract_pending(graph: KnowledgeGraph, key: str, *, renderer: Renderer | None = None) -> None:
    removed = graph.retract_pending(key)
    if removed and renderer is not None:
        renderer.remove_elements(removed)


class ExpansionSession:
    """Drives one graph through generator -> sanitizer -> merge -> layout."""

    def __init__(
        self,
        *,
        catalog: DomainCatalog,
        generator: Generator,
        model: str,
        layout: LayoutConfig | None = None,
        renderer: Renderer | None = None,
        graph: KnowledgeGraph | None = None,
    ) -> None:
        self.catalog = catalog
        self.generator = generator
        self.model = model
        self.layout = layout or DEFAULT_LAYOUT
        self.renderer = renderer
        self.graph = graph or KnowledgeGraph.create(catalog)
        if renderer is not None and graph is None:
            renderer.add_elements([self.graph.root], [])
            renderer.set_positions(dict(self.graph.positions))

    async def expand(self, node_id: str) -> ExpandOutcome:
        """Expand ``node_id`` once.

        Busy, unknown and already-expanded requests return without touching the
        graph. Generator failures raise GeneratorError after the placeholders
        are gone and the busy flag is cleared; the node stays unexpanded.
        """
        graph = self.graph
        if graph.in_flight:
            logger.debug("ignoring expand(%s): another expansion is in flight", node_id)
            return ExpandOutcome(status="busy", node_id=node_id)

        focus = graph.nodes.get(node_id)
        if focus is None or graph.is_pending(node_id):
            return ExpandOutcome(status="unknown_node", node_id=node_id)
        if graph.is_expanded(node_id):
            return ExpandOutcome(status="already_expanded", node_id=node_id)

        graph.in_flight = True
        try:
            request = ExpandRequest(focus_node=focus, existing_element_ids=graph.element_ids())

            with pending_batch(graph, focus, self.catalog, renderer=self.renderer, layout=self.layout) as key:
                text = await self._propose(request)
                raw = parse_expansion_json(text)
                batch = sanitize_for_catalog(self.catalog, focus, request.existing_element_ids, raw)
                retract_pending(graph, key, renderer=self.renderer)

            added_nodes, added_edges = graph.merge_batch(batch.nodes, batch.edges)
            if self.renderer is not None:
                self.renderer.add_elements(added_nodes, added_edges)

            positions = place_new_children(graph, focus.id, [n.id for n in added_nodes], self.layout)
            if self.renderer is not None:
                self.renderer.set_positions(positions)

            graph.mark_expanded(focus.id)
            logger.info(
                "expanded %s: %d nodes, %d edges", focus.id, len(added_nodes), len(added_edges)
            )
            return ExpandOutcome(status="expanded", node_id=node_id, batch=batch)
        finally:
            graph.in_flight = False

    async def _propose(self, request: ExpandRequest) -> str:
        try:
            return await asyncio.to_thread(
                self.generator.propose_expansion,
                request=request,
                catalog=self.catalog,
                model=self.model,
            )
        except GeneratorError:
            raise
        except Exception as e:
            raise GeneratorError(code="E_GENERATOR_CALL_FAILED", message=str(e)) from e


async def explore(session: ExpansionSession, max_expansions: int) -> list[ExpandOutcome]:
    """Breadth-first expansion from the root, children visited in id order."""
    outcomes: list[ExpandOutcome] = []
    queue: deque[str] = deque([session.graph.root_id])

    while queue and len(outcomes) < max_expansions:
        node_id = queue.popleft()
        outcome = await session.expand(node_id)
        if outcome.status != "expanded":
            continue
        outcomes.append(outcome)
        assert outcome.batch is not None
        queue.extend(sorted(n.id for n in outcome.batch.nodes))

    return outcomes
