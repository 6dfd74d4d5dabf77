from __future__ import annotations

import logging
import math
from collections import defaultdict
from dataclasses import dataclass

from kg_expander.core.model import KnowledgeGraph, Position


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LayoutConfig:
    ring_gap: float = 170.0
    # forward fan-out
    step: float = 190.0
    side_gap: float = 120.0
    fan_depth: float = 30.0
    # collision repair
    min_separation: float = 80.0
    push_step: float = 60.0
    max_retries: int = 6


DEFAULT_LAYOUT = LayoutConfig()


def place_new_children(
    graph: KnowledgeGraph,
    focus_id: str,
    child_ids: list[str],
    config: LayoutConfig = DEFAULT_LAYOUT,
) -> dict[str, Position]:
    """Position freshly merged children of ``focus_id``.

    Root expansions use ring placement; everything else fans out along the
    parent -> focus direction. Returns the positions that were assigned.
    """
    if focus_id == graph.root_id:
        return place_rings(graph, config)
    return place_forward(graph, focus_id, child_ids, config)


def place_rings(graph: KnowledgeGraph, config: LayoutConfig = DEFAULT_LAYOUT) -> dict[str, Position]:
    root_pos = graph.positions.get(graph.root_id)
    if root_pos is None:
        root_pos = Position(0.0, 0.0)
        graph.positions[graph.root_id] = root_pos

    by_depth: dict[int, list[str]] = defaultdict(list)
    for n in graph.nodes.values():
        if n.depth > 0:
            by_depth[n.depth].append(n.id)

    assigned: dict[str, Position] = {}
    for depth in sorted(by_depth):
        ids = sorted(by_depth[depth])
        radius = config.ring_gap * depth
        count = len(ids)
        for i, node_id in enumerate(ids):
            theta = 2 * math.pi * i / count
            pos = Position(
                root_pos.x + radius * math.cos(theta),
                root_pos.y + radius * math.sin(theta),
            )
            graph.positions[node_id] = pos
            assigned[node_id] = pos
    return assigned


def forward_direction(graph: KnowledgeGraph, focus_id: str) -> tuple[float, float]:
    """Unit vector from the focus's parent to the focus; +x when unknown."""
    focus_pos = graph.positions.get(focus_id)
    if focus_pos is None:
        return (1.0, 0.0)

    for edge in sorted(graph.inbound_edges(focus_id), key=lambda e: e.id):
        if graph.is_pending(edge.id):
            continue
        parent_pos = graph.positions.get(edge.source)
        if parent_pos is None:
            continue
        vx = focus_pos.x - parent_pos.x
        vy = focus_pos.y - parent_pos.y
        length = math.hypot(vx, vy)
        if length == 0:
            break
        return (vx / length, vy / length)
    return (1.0, 0.0)


def _too_close(candidate: Position, others: list[Position], min_separation: float) -> bool:
    for other in others:
        if math.hypot(candidate.x - other.x, candidate.y - other.y) < min_separation:
            return True
    return False


def place_forward(
    graph: KnowledgeGraph,
    focus_id: str,
    child_ids: list[str],
    config: LayoutConfig = DEFAULT_LAYOUT,
) -> dict[str, Position]:
    focus_pos = graph.positions.get(focus_id)
    if focus_pos is None:
        logger.warning("focus %s has no position; skipping forward placement", focus_id)
        return {}

    vx, vy = forward_direction(graph, focus_id)
    px, py = -vy, vx

    ids = sorted(set(child_ids))
    new_ids = set(ids)
    # Obstacles: everything already placed except the nodes being positioned.
    obstacles = [pos for nid, pos in graph.positions.items() if nid not in new_ids]

    assigned: dict[str, Position] = {}
    k = len(ids)
    for i, child_id in enumerate(ids):
        if child_id not in graph.nodes:
            continue
        t = i - (k - 1) / 2
        lateral = t * config.side_gap
        forward = config.step + abs(t) * config.fan_depth

        candidate = Position(
            focus_pos.x + vx * forward + px * lateral,
            focus_pos.y + vy * forward + py * lateral,
        )
        retries = 0
        while retries < config.max_retries and _too_close(candidate, obstacles, config.min_separation):
            candidate = Position(candidate.x + vx * config.push_step, candidate.y + vy * config.push_step)
            retries += 1
        if retries:
            logger.debug("pushed %s forward %d times to clear neighbours", child_id, retries)

        graph.positions[child_id] = candidate
        assigned[child_id] = candidate
        obstacles.append(candidate)
    return assigned
