import pytest

from kg_expander.core.model import Node
from kg_expander.core.sanitize.sanitize_expansion import sanitize_expansion, sanitize_for_catalog


def _assert_invariants(batch, focus_id, focus_depth, used):
    node_ids = [n.id for n in batch.nodes]
    edge_ids = [e.id for e in batch.edges]

    assert len(batch.nodes) <= 3
    assert all(n.depth == focus_depth + 1 for n in batch.nodes)
    assert all(e.source == focus_id for e in batch.edges)
    assert all(e.target in node_ids for e in batch.edges)
    assert not (set(node_ids) | set(edge_ids)) & set(used)
    assert len(set(node_ids + edge_ids)) == len(node_ids) + len(edge_ids)
    if batch.nodes:
        assert batch.edges
        assert set(node_ids) <= {e.target for e in batch.edges}


def test_collision_suffix_then_language_filter():
    raw = {
        "nodes": [
            {"id": "a", "label": "Example", "kind": "unknownkind"},
            {"id": "a", "label": "別の例", "kind": "concept"},
        ],
        "edges": [],
    }
    batch = sanitize_expansion("root", 0, ["root"], ["root", "concept"], raw)

    assert [n.id for n in batch.nodes] == ["a__1"]
    assert batch.nodes[0].kind == "concept"
    assert batch.nodes[0].depth == 1
    assert len(batch.edges) == 1
    edge = batch.edges[0]
    assert (edge.source, edge.target) == ("root", "a__1")
    assert edge.id == "root--a__1--auto"
    assert edge.label == "関連"


def test_missing_edges_are_synthesized_with_kind_labels(perfume):
    focus = Node(id="perfume_root", label="香水", kind="root", depth=0)
    raw = {
        "nodes": [
            {"id": "dior", "label": "Dior", "kind": "brand", "depth": 5},
            {"id": "citrus", "label": "シトラス", "kind": "note"},
        ]
    }
    batch = sanitize_for_catalog(perfume, focus, ["perfume_root"], raw)

    assert [n.id for n in batch.nodes] == ["dior", "citrus"]
    assert [(e.source, e.target, e.label) for e in batch.edges] == [
        ("perfume_root", "dior", "ブランド"),
        ("perfume_root", "citrus", "ノート"),
    ]
    assert all(n.depth == 1 for n in batch.nodes)


def test_dangling_edge_is_replaced(perfume):
    focus = Node(id="f", label="フォーカス", kind="note", depth=2)
    raw = {
        "nodes": [
            {"id": "x", "label": "ローズ", "kind": "note"},
            {"id": "y", "label": "ジャスミン", "kind": "note"},
        ],
        "edges": [
            {"id": "e1", "source": "f", "target": "x", "label": "主な香り"},
            {"id": "e2", "source": "f", "target": "ghost", "label": "主な香り"},
        ],
    }
    batch = sanitize_for_catalog(perfume, focus, ["f"], raw)

    assert [(e.id, e.target, e.label) for e in batch.edges] == [
        ("e1", "x", "主な香り"),
        ("f--y--auto", "y", "ノート"),
    ]
    assert all(n.depth == 3 for n in batch.nodes)


def test_edges_not_from_focus_are_dropped(perfume):
    focus = Node(id="f", label="フォーカス", kind="note", depth=1)
    raw = {
        "nodes": [{"id": "x", "label": "ローズ", "kind": "note"}],
        "edges": [
            {"id": "bad", "source": "other", "target": "x", "label": "関係"},
            {"id": "nul", "source": None, "target": "x"},
        ],
    }
    batch = sanitize_for_catalog(perfume, focus, ["f", "other"], raw)
    assert [e.id for e in batch.edges] == ["f--x--auto"]


def test_edge_to_existing_node_is_dropped(perfume):
    focus = Node(id="f", label="フォーカス", kind="note", depth=1)
    raw = {
        "nodes": [{"id": "old", "label": "ムスク", "kind": "note"}],
        "edges": [{"id": "e", "source": "f", "target": "old", "label": "関係"}],
    }
    batch = sanitize_for_catalog(perfume, focus, ["f", "old"], raw)

    assert [n.id for n in batch.nodes] == ["old__1"]
    assert [(e.id, e.target) for e in batch.edges] == [("f--old__1--auto", "old__1")]


def test_ascii_edge_label_replaced_by_relation(perfume):
    focus = Node(id="f", label="フォーカス", kind="brand", depth=1)
    raw = {
        "nodes": [{"id": "x", "label": "アンバー", "kind": "accord"}],
        "edges": [{"source": "f", "target": "x", "label": "has accord"}],
    }
    batch = sanitize_for_catalog(perfume, focus, ["f"], raw)

    assert batch.edges[0].label == "アコード"
    assert batch.edges[0].id == "f--x--0"


def test_edge_ids_share_namespace_with_nodes():
    raw = {
        "nodes": [{"id": "n1", "label": "ノード", "kind": "concept"}],
        "edges": [
            {"id": "n1", "source": "root", "target": "n1", "label": "関係"},
            {"id": "used-edge", "source": "root", "target": "n1", "label": "関係"},
        ],
    }
    batch = sanitize_expansion("root", 0, ["root", "used-edge"], ["root", "concept"], raw)

    assert [e.id for e in batch.edges] == ["n1__1", "used-edge__1"]
    _assert_invariants(batch, "root", 0, ["root", "used-edge"])


def test_cap_keeps_first_three_in_payload_order():
    raw = {"nodes": [{"id": f"n{i}", "label": f"概念{i}", "kind": "concept"} for i in range(6)]}
    batch = sanitize_expansion("root", 0, ["root"], ["root", "concept"], raw)

    assert [n.id for n in batch.nodes] == ["n0", "n1", "n2"]
    assert len(batch.edges) == 3


def test_cap_applies_before_language_filter():
    raw = {
        "nodes": [
            {"id": "a", "label": "Alpha", "kind": "concept"},
            {"id": "b", "label": "Beta", "kind": "concept"},
            {"id": "c", "label": "Gamma", "kind": "concept"},
            {"id": "d", "label": "デルタ", "kind": "concept"},
        ]
    }
    batch = sanitize_expansion("root", 0, ["root"], ["root", "concept"], raw)
    assert batch.nodes == []
    assert batch.edges == []


def test_exempt_kind_keeps_ascii_label(perfume):
    focus = Node(id="perfume_root", label="香水", kind="root", depth=0)
    raw = {
        "nodes": [
            {"id": "chanel", "label": "Chanel", "kind": "brand"},
            {"id": "fresh", "label": "Fresh", "kind": "style"},
            {"id": "cafe", "label": "Café", "kind": "style"},
        ]
    }
    batch = sanitize_for_catalog(perfume, focus, ["perfume_root"], raw)
    assert [n.id for n in batch.nodes] == ["chanel", "cafe"]


def test_normalizes_ids_labels_and_kinds():
    raw = {
        "nodes": [
            {"id": "  spaced  ", "label": "  空白  ", "kind": "concept"},
            {"id": "ラベルなし", "kind": "concept"},
            {"id": "   ", "label": "空", "kind": "concept"},
        ]
    }
    batch = sanitize_expansion("root", 0, ["root"], ["root", "brand", "concept"], raw)

    assert [(n.id, n.label) for n in batch.nodes] == [("spaced", "空白"), ("ラベルなし", "ラベルなし")]


def test_unknown_kind_falls_back_to_last_non_root_kind():
    raw = {"nodes": [{"id": "x", "label": "何か", "kind": 42}]}
    batch = sanitize_expansion("f", 1, ["f"], ["root", "brand", "note", "root"], raw)
    assert batch.nodes[0].kind == "note"


def test_used_identifiers_are_not_mutated():
    used = {"root", "a"}
    raw = {"nodes": [{"id": "a", "label": "あ", "kind": "concept"}]}
    sanitize_expansion("root", 0, used, ["root", "concept"], raw)
    assert used == {"root", "a"}


@pytest.mark.parametrize(
    "raw",
    [
        None,
        "not an object",
        42,
        [],
        {"nodes": "oops", "edges": {"a": 1}},
        {"nodes": [None, 1, "x", {"id": 3}, {"label": "no id"}]},
        {"nodes": [{"id": "root", "label": "根"}], "edges": [None, 5, {"source": "root"}]},
        {
            "nodes": [{"id": "a", "label": "あ", "kind": "concept"}] * 5,
            "edges": [{"id": "root", "source": "root", "target": "a"}] * 3,
        },
        {"edges": [{"source": "root", "target": "a", "label": "関係"}]},
    ],
)
def test_total_over_malformed_payloads(raw):
    used = ["root", "a", "edge-1"]
    batch = sanitize_expansion("root", 0, used, ["root", "concept"], raw)
    _assert_invariants(batch, "root", 0, used)


def test_wine_proper_nouns_pass_but_styles_need_japanese(wine):
    focus = Node(id="wine_root", label="ワイン", kind="root", depth=0)
    raw = {
        "nodes": [
            {"id": "pinot", "label": "Pinot Noir", "kind": "grape"},
            {"id": "red", "label": "Red", "kind": "style"},
            {"id": "burgundy", "label": "ブルゴーニュ", "kind": "region"},
        ],
        "edges": [{"id": "w-pinot", "source": "wine_root", "target": "pinot", "label": "grape"}],
    }
    batch = sanitize_for_catalog(wine, focus, ["wine_root"], raw)

    assert [n.id for n in batch.nodes] == ["pinot", "burgundy"]
    assert [(e.id, e.label) for e in batch.edges] == [
        ("w-pinot", "品種"),
        ("wine_root--burgundy--auto", "地域"),
    ]
