import pytest

from kg_expander.core.ai.contracts import parse_expand_request, parse_expansion_json
from kg_expander.core.errors import GeneratorError, RequestError


def test_parse_request_with_element_ids():
    req = parse_expand_request(
        {
            "focusNode": {"id": "a", "label": "あ", "kind": "note", "depth": 1},
            "existingElementIds": ["root", "a", "root--a"],
            "existingNodeIds": ["root"],
        }
    )
    assert req.focus_node.id == "a"
    assert req.focus_node.depth == 1
    assert req.existing_element_ids == ["root", "a", "root--a"]


def test_parse_request_legacy_node_ids():
    req = parse_expand_request(
        {"focusNode": {"id": "a", "depth": 1}, "existingElementIds": [], "existingNodeIds": ["root", "a"]}
    )
    assert req.existing_element_ids == ["root", "a"]
    assert req.focus_node.label == "a"


def test_parse_request_requires_focus():
    with pytest.raises(RequestError) as excinfo:
        parse_expand_request({"existingElementIds": []})
    assert excinfo.value.code == "E_REQUEST_NO_FOCUS"


def test_parse_request_rejects_negative_depth():
    with pytest.raises(RequestError) as excinfo:
        parse_expand_request({"focusNode": {"id": "a", "depth": -1}})
    assert excinfo.value.code == "E_REQUEST_INVALID_DEPTH"


def test_request_round_trips_to_wire_shape():
    wire = {
        "focusNode": {"id": "a", "label": "あ", "kind": "note", "depth": 1},
        "existingElementIds": ["root", "a"],
    }
    assert parse_expand_request(wire).to_dict() == wire


def test_parse_expansion_json_strips_fences():
    assert parse_expansion_json('```json\n{"nodes": []}\n```') == {"nodes": []}


def test_parse_expansion_json_passes_any_json_through():
    assert parse_expansion_json("[1, 2]") == [1, 2]


def test_parse_expansion_json_rejects_text():
    with pytest.raises(GeneratorError) as excinfo:
        parse_expansion_json("not json at all")
    assert excinfo.value.code == "E_GENERATOR_INVALID_JSON"
    assert "E_GENERATOR_INVALID_JSON" in str(excinfo.value)
