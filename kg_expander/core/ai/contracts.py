from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from kg_expander.core.errors import GeneratorError, RequestError
from kg_expander.core.model import Node


@dataclass(frozen=True)
class ExpandRequest:
    focus_node: Node
    # Every node id and edge id in the graph. Legacy clients send node ids only.
    existing_element_ids: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "focusNode": self.focus_node.to_dict(),
            "existingElementIds": list(self.existing_element_ids),
        }


def parse_expand_request(obj: Any) -> ExpandRequest:
    """Parse the request envelope.

    Accepts both ``existingElementIds`` and the older ``existingNodeIds``;
    the latter is only consulted when the former is absent or empty.
    """
    if not isinstance(obj, dict):
        raise RequestError(code="E_REQUEST_INVALID", message="request must be an object")

    focus = obj.get("focusNode")
    if not isinstance(focus, dict) or not isinstance(focus.get("id"), str) or not focus["id"]:
        raise RequestError(
            code="E_REQUEST_NO_FOCUS",
            message="focusNode is required and must carry a string id",
            path="focusNode",
        )

    depth = focus.get("depth", 0)
    if isinstance(depth, bool) or not isinstance(depth, int) or depth < 0:
        raise RequestError(
            code="E_REQUEST_INVALID_DEPTH",
            message="focusNode.depth must be a non-negative integer",
            path="focusNode.depth",
        )

    focus_node = Node(
        id=focus["id"],
        label=str(focus.get("label") or focus["id"]),
        kind=str(focus.get("kind") or ""),
        depth=depth,
    )

    element_ids = obj.get("existingElementIds")
    if isinstance(element_ids, list) and element_ids:
        ids = element_ids
    else:
        legacy = obj.get("existingNodeIds")
        ids = legacy if isinstance(legacy, list) else []

    return ExpandRequest(
        focus_node=focus_node,
        existing_element_ids=[x for x in ids if isinstance(x, str)],
    )


def _strip_json_fences(text: str) -> str:
    stripped = text.strip()
    if stripped.startswith("```"):
        lines = stripped.splitlines()
        lines = lines[1:]
        if lines and lines[-1].strip().startswith("```"):
            lines = lines[:-1]
        stripped = "\n".join(lines).strip()
    return stripped


def parse_expansion_json(text: str) -> Any:
    """Decode generator output. Only undecodable text is an error here;
    shape problems are left to the sanitizer."""
    try:
        return json.loads(_strip_json_fences(text))
    except (TypeError, ValueError) as e:
        snippet = str(text)[:800]
        raise GeneratorError(
            code="E_GENERATOR_INVALID_JSON",
            message=f"invalid json from model: {e}. First 800 chars: {snippet}",
        ) from e
