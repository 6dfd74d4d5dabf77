from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from kg_expander.core.errors import CatalogConfigError
from kg_expander.core.sanitize.sanitize_expansion import DEFAULT_RELATION_LABEL


ROOT_KIND = "root"


@dataclass(frozen=True)
class RootSpec:
    id: str
    label: str
    kind: str = ROOT_KIND


@dataclass(frozen=True)
class DomainCatalog:
    key: str
    title: str
    root: RootSpec
    allowed_kinds: list[str]
    # Kinds whose labels are proper nouns (brands, products, people) and may
    # stay in any script.
    exempt_kinds: list[str] = field(default_factory=list)
    relation_labels: dict[str, str] = field(default_factory=dict)
    kind_icons: dict[str, str] = field(default_factory=dict)
    subtitle: str = ""
    prompt_hints: list[str] = field(default_factory=list)

    def fallback_kind(self) -> str:
        for kind in reversed(self.allowed_kinds):
            if kind != ROOT_KIND:
                return kind
        return self.allowed_kinds[-1] if self.allowed_kinds else "node"

    def pending_kind(self) -> str:
        if "style" in self.allowed_kinds:
            return "style"
        for kind in self.allowed_kinds:
            if kind != ROOT_KIND:
                return kind
        return self.root.kind

    def is_exempt(self, kind: str) -> bool:
        return kind in self.exempt_kinds

    def relation_label(self, kind: str) -> str:
        return self.relation_labels.get(kind, DEFAULT_RELATION_LABEL)

    def label_with_icon(self, kind: str, label: str) -> str:
        icon = self.kind_icons.get(kind, "")
        return f"{icon}\n{label}" if icon else label


DEFAULT_CATALOGS: dict[str, DomainCatalog] = {
    "perfume": DomainCatalog(
        key="perfume",
        title="Perfume Knowledge Graph",
        subtitle="ノードをタップすると階層が展開されます",
        root=RootSpec(id="perfume_root", label="香水"),
        allowed_kinds=["root", "brand", "perfume", "note", "accord", "perfumer", "style", "category"],
        exempt_kinds=["brand", "perfume", "perfumer"],
        relation_labels={
            "brand": "ブランド",
            "perfume": "香水",
            "note": "ノート",
            "accord": "アコード",
            "perfumer": "調香師",
            "style": "スタイル",
            "category": "カテゴリ",
            "root": "関連",
        },
        kind_icons={
            "root": "✨",
            "brand": "🏷️",
            "perfume": "🧴",
            "note": "🌿",
            "accord": "🧪",
            "perfumer": "👤",
            "style": "🎛️",
            "category": "📦",
        },
        prompt_hints=["ブランド名・商品名・調香師名など固有名詞は原語（英字）でも可"],
    ),
    "wine": DomainCatalog(
        key="wine",
        title="Wine Knowledge Graph",
        subtitle="ノードをタップすると階層が展開されます",
        root=RootSpec(id="wine_root", label="ワイン"),
        allowed_kinds=["root", "producer", "wine", "region", "appellation", "grape", "vintage", "style"],
        exempt_kinds=["producer", "wine", "grape", "vintage", "appellation"],
        relation_labels={
            "producer": "生産者",
            "wine": "ワイン",
            "region": "地域",
            "appellation": "呼称",
            "grape": "品種",
            "vintage": "ヴィンテージ",
            "style": "スタイル",
            "root": "関連",
        },
        kind_icons={
            "root": "✨",
            "producer": "🏰",
            "wine": "🍷",
            "region": "🗺️",
            "appellation": "📍",
            "grape": "🍇",
            "vintage": "🗓️",
            "style": "🎛️",
        },
        prompt_hints=["生産者名・キュヴェ名など固有名詞は原語（英字）でも可"],
    ),
}


def _str_list(key: str, field_name: str, v: Any, *, required: bool) -> list[str]:
    if v is None and not required:
        return []
    if not isinstance(v, list) or (required and not v):
        raise CatalogConfigError(f"catalog '{key}' {field_name} must be a non-empty list")
    out: list[str] = []
    for item in v:
        if not isinstance(item, str) or not item.strip():
            raise CatalogConfigError(f"catalog '{key}' {field_name} items must be non-empty strings")
        out.append(item.strip())
    return out


def _str_map(key: str, field_name: str, v: Any) -> dict[str, str]:
    if v is None:
        return {}
    if not isinstance(v, dict):
        raise CatalogConfigError(f"catalog '{key}' {field_name} must be a mapping")
    out: dict[str, str] = {}
    for k, val in v.items():
        if not isinstance(k, str) or not isinstance(val, str):
            raise CatalogConfigError(f"catalog '{key}' {field_name} must map strings to strings")
        out[k] = val
    return out


def _parse_catalog(key: str, raw: Any) -> DomainCatalog:
    if not isinstance(raw, dict):
        raise CatalogConfigError(f"catalog '{key}' must be a mapping")

    root_raw = raw.get("root")
    if not isinstance(root_raw, dict):
        raise CatalogConfigError(f"catalog '{key}' root must be a mapping with id and label")
    root_id = root_raw.get("id")
    root_label = root_raw.get("label")
    if not isinstance(root_id, str) or not root_id.strip():
        raise CatalogConfigError(f"catalog '{key}' root.id must be a non-empty string")
    if not isinstance(root_label, str) or not root_label.strip():
        raise CatalogConfigError(f"catalog '{key}' root.label must be a non-empty string")

    allowed = _str_list(key, "allowed_kinds", raw.get("allowed_kinds"), required=True)
    if ROOT_KIND not in allowed:
        allowed = [ROOT_KIND] + allowed

    exempt = _str_list(key, "exempt_kinds", raw.get("exempt_kinds"), required=False)
    unknown = sorted(set(exempt) - set(allowed))
    if unknown:
        raise CatalogConfigError(f"catalog '{key}' exempt_kinds not in allowed_kinds: {unknown}")

    title = raw.get("title", key)
    if not isinstance(title, str):
        raise CatalogConfigError(f"catalog '{key}' title must be a string")

    return DomainCatalog(
        key=key,
        title=title,
        subtitle=str(raw.get("subtitle") or ""),
        root=RootSpec(id=root_id.strip(), label=root_label.strip()),
        allowed_kinds=allowed,
        exempt_kinds=exempt,
        relation_labels=_str_map(key, "relation_labels", raw.get("relation_labels")),
        kind_icons=_str_map(key, "kind_icons", raw.get("kind_icons")),
        prompt_hints=_str_list(key, "prompt_hints", raw.get("prompt_hints"), required=False),
    )


def load_catalog_file(path: str | Path) -> dict[str, DomainCatalog]:
    """Load domain catalogs from a YAML file.

    Format:
      <key>:
        title: "..."
        root: {id: "...", label: "..."}
        allowed_kinds: [root, ...]
        exempt_kinds: [...]
        relation_labels: {kind: label}
        kind_icons: {kind: icon}
    """
    p = Path(path)
    raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise CatalogConfigError("catalog file must be a mapping of key -> catalog")

    out: dict[str, DomainCatalog] = {}
    for k, v in raw.items():
        if not isinstance(k, str) or not k.strip():
            raise CatalogConfigError("catalog keys must be non-empty strings")
        out[k.strip()] = _parse_catalog(k.strip(), v)
    return out


def merged_catalogs(overrides: dict[str, DomainCatalog] | None = None) -> dict[str, DomainCatalog]:
    """Return DEFAULT_CATALOGS merged with optional overrides (same key replaces)."""
    merged = dict(DEFAULT_CATALOGS)
    if overrides:
        merged.update(overrides)
    return merged


def load_and_merge(catalog_file: str | None) -> dict[str, DomainCatalog]:
    if not catalog_file:
        return merged_catalogs()
    return merged_catalogs(load_catalog_file(catalog_file))
