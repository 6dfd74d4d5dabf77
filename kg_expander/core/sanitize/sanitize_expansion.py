"""Repair untrusted expansion payloads into a consistent batch.

``sanitize_expansion`` is total: whatever JSON-shaped value the generator
returned, it produces a batch where every node hangs off the focus by at least
one edge. Anomalies are dropped, coerced, or papered over with synthetic
edges; nothing is raised.

The language rule is a script-membership heuristic, not language detection:
a label from a non-exempt kind is rejected only when it is 100% ASCII.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable, Mapping

from kg_expander.core.model import Edge, ExpansionBatch, Node

if TYPE_CHECKING:
    from kg_expander.core.domains.catalog import DomainCatalog


logger = logging.getLogger(__name__)

MAX_CHILDREN = 3
DEFAULT_RELATION_LABEL = "関連"

# Hiragana, katakana, CJK extension A and unified ideographs.
_JAPANESE_RANGES: tuple[tuple[int, int], ...] = ((0x3040, 0x30FF), (0x3400, 0x9FFF))


def looks_ascii_only(s: str) -> bool:
    return bool(s) and all(ord(ch) < 0x80 for ch in s)


def has_japanese_char(s: str) -> bool:
    for ch in s:
        cp = ord(ch)
        for lo, hi in _JAPANESE_RANGES:
            if lo <= cp <= hi:
                return True
    return False


def passes_language_policy(label: str, *, exempt: bool) -> bool:
    if exempt:
        return True
    if has_japanese_char(label):
        return True
    return not looks_ascii_only(label)


def allocate_unique_id(used: set[str], base: str) -> str:
    """Return ``base`` or ``base__N`` not in ``used``, and register it."""
    candidate = base
    i = 1
    while candidate in used:
        candidate = f"{base}__{i}"
        i += 1
    used.add(candidate)
    return candidate


def _fallback_kind(allowed_kinds: list[str]) -> str:
    for kind in reversed(allowed_kinds):
        if kind != "root":
            return kind
    return allowed_kinds[-1] if allowed_kinds else "node"


def _as_list(raw: Any, key: str) -> list[Any]:
    if not isinstance(raw, dict):
        return []
    value = raw.get(key)
    return value if isinstance(value, list) else []


def sanitize_expansion(
    focus_id: str,
    focus_depth: int,
    used_identifiers: Iterable[str],
    allowed_kinds: list[str],
    raw: Any,
    *,
    exempt_kinds: Iterable[str] = (),
    relation_labels: Mapping[str, str] | None = None,
) -> ExpansionBatch:
    allowed = set(allowed_kinds)
    exempt = set(exempt_kinds)
    relations = dict(relation_labels or {})
    fallback = _fallback_kind(allowed_kinds)

    def relation_for(kind: str) -> str:
        return relations.get(kind, DEFAULT_RELATION_LABEL)

    # One pool for node and edge ids; the caller's collection is never touched.
    used: set[str] = set(used_identifiers)

    # 1. extraction and normalization
    candidates: list[Node] = []
    for item in _as_list(raw, "nodes"):
        if not isinstance(item, dict) or not isinstance(item.get("id"), str):
            continue
        node_id = item["id"].strip()
        if not node_id:
            continue
        label_raw = item.get("label")
        label = str(label_raw).strip() if label_raw is not None else ""
        if not label:
            label = node_id
        kind = str(item.get("kind"))
        if kind not in allowed:
            logger.debug("coercing kind %r of %s to %s", kind, node_id, fallback)
            kind = fallback
        candidates.append(Node(id=node_id, label=label, kind=kind, depth=focus_depth + 1))

    # 2. collision resolution, in payload order
    resolved: list[Node] = []
    for n in candidates:
        new_id = allocate_unique_id(used, n.id)
        if new_id != n.id:
            logger.debug("node id %s collides; using %s", n.id, new_id)
        resolved.append(Node(id=new_id, label=n.label, kind=n.kind, depth=n.depth))

    # 3. cardinality cap
    if len(resolved) > MAX_CHILDREN:
        logger.debug("truncating %d candidate nodes to %d", len(resolved), MAX_CHILDREN)
        resolved = resolved[:MAX_CHILDREN]

    # 4. language policy
    nodes: list[Node] = []
    for n in resolved:
        if passes_language_policy(n.label, exempt=n.kind in exempt):
            nodes.append(n)
        else:
            logger.debug("dropping node %s: untranslated label %r", n.id, n.label)

    kind_by_id = {n.id: n.kind for n in nodes}

    # 5. edges from the model, restricted to focus -> new node
    kept_raw: list[dict[str, Any]] = []
    for item in _as_list(raw, "edges"):
        if not isinstance(item, dict):
            continue
        if item.get("source") is None or item.get("target") is None:
            continue
        if str(item["source"]) != focus_id:
            continue
        if str(item["target"]) not in kind_by_id:
            logger.debug("dropping edge to %r: not a node of this batch", item["target"])
            continue
        kept_raw.append(item)

    edges: list[Edge] = []
    for i, item in enumerate(kept_raw):
        target = str(item["target"])
        raw_id = item.get("id")
        base = str(raw_id) if raw_id is not None else f"{focus_id}--{target}--{i}"
        edge_id = allocate_unique_id(used, base)

        label_raw = item.get("label")
        label = str(label_raw).strip() if label_raw is not None else ""
        if not label:
            label = DEFAULT_RELATION_LABEL
        elif not has_japanese_char(label) and looks_ascii_only(label):
            label = relation_for(kind_by_id[target])
        edges.append(Edge(id=edge_id, source=focus_id, target=target, label=label))

    # 6. every node gets at least one inbound edge from the focus
    targeted = {e.target for e in edges}
    for n in nodes:
        if n.id in targeted:
            continue
        edges.append(
            Edge(
                id=allocate_unique_id(used, f"{focus_id}--{n.id}--auto"),
                source=focus_id,
                target=n.id,
                label=relation_for(n.kind),
            )
        )

    # 7. guard
    if nodes and not edges:
        first = nodes[0]
        edges.append(
            Edge(
                id=allocate_unique_id(used, f"{focus_id}--{first.id}--forced"),
                source=focus_id,
                target=first.id,
                label=relation_for(first.kind),
            )
        )

    return ExpansionBatch(nodes=nodes, edges=edges)


def sanitize_for_catalog(
    catalog: DomainCatalog,
    focus: Node,
    used_identifiers: Iterable[str],
    raw: Any,
) -> ExpansionBatch:
    return sanitize_expansion(
        focus.id,
        focus.depth,
        used_identifiers,
        catalog.allowed_kinds,
        raw,
        exempt_kinds=catalog.exempt_kinds,
        relation_labels=catalog.relation_labels,
    )
