import json

import pytest

from flowday.defaults import default_app_data
from flowday.models import (
    AppData, BlockNode, BranchNode, Layout, LeafNode, NodeKind, node_from_dict, node_to_dict,
)


def test_app_data_round_trip() -> None:
    data = default_app_data()
    assert AppData.from_json(data.to_json()) == data


def test_wire_format_uses_camel_case_and_omits_absent_fields() -> None:
    block = BlockNode(id="b", title="Focus", custom_width=150, side_events=(
        LeafNode(id="s", kind=NodeKind.TIME, title="11:10", subtitle="lunch"),
    ))
    data = node_to_dict(block)
    assert data["type"] == "block"
    assert data["customWidth"] == 150
    assert "customHeight" not in data
    assert "subtitle" not in data
    assert "isDashedConnection" not in data
    assert data["sideEvents"] == [{"id": "s", "type": "time", "title": "11:10", "subtitle": "lunch"}]


def test_dashed_connection_flag() -> None:
    place = LeafNode(id="p", kind=NodeKind.PLACE, title="Home", dashed=True)
    data = node_to_dict(place)
    assert data["isDashedConnection"] is True
    assert node_from_dict(data).dashed is True


def test_non_ascii_text_is_stored_verbatim() -> None:
    text = default_app_data().to_json()
    assert "工作日" in text
    assert json.loads(text)["activeLayoutId"] == "layout_weekday"


def test_leaf_rejects_container_kind() -> None:
    with pytest.raises(ValueError):
        LeafNode(id="x", kind=NodeKind.BRANCH, title="bad")


def test_leaf_kind_is_coerced_from_string() -> None:
    assert LeafNode(id="x", kind="place", title="Office").kind is NodeKind.PLACE


def test_children_must_be_leaves() -> None:
    inner = BranchNode(id="inner", title="inner")
    with pytest.raises(TypeError):
        BranchNode(id="outer", title="outer", branches=(inner,))
    with pytest.raises(TypeError):
        BlockNode(id="blk", title="blk", side_events=[inner])


def test_children_are_stored_as_tuples() -> None:
    leaf = LeafNode(id="a", title="a")
    assert BranchNode(id="b", title="b", branches=[leaf]).branches == (leaf,)


def test_nested_container_in_json_is_rejected() -> None:
    data = {
        "id": "b", "type": "branch", "title": "group",
        "branches": [{"id": "c", "type": "block", "title": "nested"}],
    }
    with pytest.raises(ValueError):
        node_from_dict(data)


@pytest.mark.parametrize("data", [
    {"id": "x", "type": "meeting", "title": "?"},
    {"id": "", "type": "task", "title": "no id"},
    {"id": "x", "type": "task"},
    {"id": "x", "type": "task", "title": "t", "icon": 5},
    {"id": "x", "type": "block", "title": "t", "customWidth": True},
    {"id": "x", "type": "branch", "title": "t", "branches": "nope"},
    ["not", "an", "object"],
])
def test_malformed_nodes_raise_value_error(data) -> None:
    with pytest.raises(ValueError):
        node_from_dict(data)


def test_stale_active_layout_falls_back_to_first() -> None:
    data = {"layouts": [{"id": "a", "name": "A", "nodes": []}], "activeLayoutId": "gone"}
    app_data = AppData.from_dict(data)
    assert app_data.active_layout_id == "a"
    assert app_data.active_layout().name == "A"


def test_app_data_requires_layouts() -> None:
    with pytest.raises(ValueError):
        AppData.from_dict({"layouts": [], "activeLayoutId": "a"})
    with pytest.raises(ValueError):
        AppData.from_json("{not json")


def test_layout_from_dict_defaults_to_empty_nodes() -> None:
    assert Layout.from_dict({"id": "l", "name": "Empty"}).nodes == ()
