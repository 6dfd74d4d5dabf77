from __future__ import annotations

import json

from kg_expander.core.ai.contracts import ExpandRequest
from kg_expander.core.domains.catalog import DomainCatalog


def system_prompt(catalog: DomainCatalog) -> str:
    kinds = ", ".join(catalog.allowed_kinds)
    exempt = ", ".join(catalog.exempt_kinds) or "なし"
    relation_examples = ", ".join(
        f'"{label}"' for kind, label in catalog.relation_labels.items() if kind != "root"
    )
    hints = "".join(f"  - {h}\n" for h in catalog.prompt_hints)

    return (
        f"あなたは「{catalog.title}」を1ホップだけ拡張する生成器です。\n"
        "必ず **JSONだけ** を返してください（Markdown、説明文、コードフェンス禁止）。\n"
        "\n"
        "出力スキーマ（厳守）:\n"
        "{\n"
        '  "nodes":[{"id":"string","label":"string","kind":"string","depth":number}],\n'
        '  "edges":[{"id":"string","source":"string","target":"string","label":"string"}]\n'
        "}\n"
        "\n"
        "ルール（厳守）:\n"
        "- focusNode から直接の子ノード（1ホップ）のみ生成する\n"
        "- 新規ノードは 3 個\n"
        "- node.id は必ずユニーク、かつ existingElementIds と衝突しない\n"
        "- すべての edge は source = focusNode.id、target = 新規ノードのいずれか\n"
        f"- node.kind は allowedKinds のみ: {kinds}\n"
        "- node.depth は必ず focusNode.depth + 1\n"
        "- nodes を返すなら edges も必ず返す（edge 0本は禁止）\n"
        "- label（ノード/エッジ）は原則 日本語。\n"
        f"  - 例外 kind（固有名詞は原語でも可）: {exempt}\n"
        f"{hints}"
        f"- エッジ label は日本語の関係ラベルにする（例: {relation_examples}）\n"
        "- JSON以外のテキストを絶対に出力しない\n"
    )


def user_prompt(request: ExpandRequest) -> str:
    return (
        "入力:\n"
        f"focusNode = {json.dumps(request.focus_node.to_dict(), ensure_ascii=False)}\n"
        f"existingElementIds = {json.dumps(request.existing_element_ids, ensure_ascii=False)}\n"
        "注意: 返すのはJSONのみ。スキーマ厳守。"
    )
