from __future__ import annotations

import logging
import os
import re
from typing import Any

from kg_expander.core.ai.contracts import ExpandRequest
from kg_expander.core.ai.prompts import system_prompt, user_prompt
from kg_expander.core.domains.catalog import DomainCatalog
from kg_expander.core.errors import GeneratorError


logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"


# OpenAI Structured Outputs requirements:
# - For ALL object schemas, `additionalProperties` MUST be present and MUST be false.
# - For ALL object schemas, `required` MUST include EVERY key in `properties`.
# kind stays a free string; the sanitizer coerces unknown kinds.

NODE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "id": {"type": "string"},
        "label": {"type": "string"},
        "kind": {"type": "string"},
        "depth": {"type": "integer"},
    },
    "required": ["id", "label", "kind", "depth"],
}


EDGE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "id": {"type": "string"},
        "source": {"type": "string"},
        "target": {"type": "string"},
        "label": {"type": "string"},
    },
    "required": ["id", "source", "target", "label"],
}


EXPANSION_JSON_SCHEMA: dict[str, Any] = {
    "name": "graph_expansion",
    "schema": {
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "nodes": {"type": "array", "items": NODE_SCHEMA},
            "edges": {"type": "array", "items": EDGE_SCHEMA},
        },
        "required": ["nodes", "edges"],
    },
}


def _role_env_key(role: str) -> str:
    """Map a role name to a role-specific env var key.

    Examples:
      - expand -> OPENAI_MODEL_EXPAND
      - wine-expand -> OPENAI_MODEL_WINE_EXPAND
    """
    role_key = re.sub(r"[^A-Za-z0-9]+", "_", role).strip("_").upper()
    return f"OPENAI_MODEL_{role_key}"


def model_for_role(role: str, default_model: str = DEFAULT_MODEL) -> str:
    """Resolution order: OPENAI_MODEL_<ROLE>, OPENAI_MODEL, default_model."""
    override = (os.getenv(_role_env_key(role), "") or "").strip()
    if override:
        return override
    return (os.getenv("OPENAI_MODEL", "") or "").strip() or default_model


class OpenAIExpansionClient:
    def __init__(self, *, base_url: str | None = None) -> None:
        self._base_url = base_url
        self.calls = 0

    def propose_expansion(self, *, request: ExpandRequest, catalog: DomainCatalog, model: str) -> str:
        """Ask the model for a one-hop expansion; returns the raw response text."""
        api_key = os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise GeneratorError(
                code="E_GENERATOR_NO_API_KEY",
                message="OPENAI_API_KEY is not set",
                path="OPENAI_API_KEY",
            )

        try:
            from openai import OpenAI
        except ImportError as e:
            raise GeneratorError(
                code="E_GENERATOR_CALL_FAILED",
                message="openai package not installed; install with: pip install openai",
            ) from e

        client = OpenAI(base_url=self._base_url) if self._base_url else OpenAI()

        logger.info("requesting expansion of %s with %s", request.focus_node.id, model)
        try:
            resp = client.responses.create(
                model=model,
                input=[
                    {"role": "system", "content": system_prompt(catalog)},
                    {"role": "user", "content": user_prompt(request)},
                ],
                text={
                    "format": {
                        "type": "json_schema",
                        "name": EXPANSION_JSON_SCHEMA["name"],
                        "schema": EXPANSION_JSON_SCHEMA["schema"],
                        "strict": True,
                    }
                },
            )
        except Exception as e:
            raise GeneratorError(code="E_GENERATOR_CALL_FAILED", message=str(e)) from e
        finally:
            self.calls += 1

        return _extract_output_text(resp)


def _extract_output_text(resp: Any) -> str:
    """Extract response text robustly across OpenAI SDK response shapes."""
    raw = getattr(resp, "output_text", None)
    if isinstance(raw, str) and raw.strip():
        return raw

    out = getattr(resp, "output", None)
    if isinstance(out, list):
        texts: list[str] = []
        for item in out:
            content = getattr(item, "content", None)
            if isinstance(content, list):
                for c in content:
                    t = getattr(c, "text", None)
                    if isinstance(t, str) and t.strip():
                        texts.append(t)
        if texts:
            return "\n".join(texts)

    return str(resp)
