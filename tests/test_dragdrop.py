import json

import pytest

from flowday.dragdrop import (
    DragDropCoordinator, DragPayload, DragSource, Dragging, DropResult, Hovering, Idle, OverTrash,
    resolve_drop_position,
)
from flowday.models import NodeKind
from flowday.tree import DropPosition

TOOL = DragPayload(source=DragSource.SIDEBAR, kind=NodeKind.TASK)
MOVE = DragPayload(source=DragSource.CANVAS, kind=NodeKind.PLACE, node_id="p1")


class _Recorder:
    def __init__(self) -> None:
        self.drops = []
        self.deletes = []

    def attach(self, coordinator: DragDropCoordinator) -> DragDropCoordinator:
        coordinator.on_drop_node = lambda payload, target, pos: self.drops.append((payload, target, pos))
        coordinator.on_delete_node = self.deletes.append
        return coordinator


@pytest.fixture
def recorder() -> _Recorder:
    return _Recorder()


@pytest.fixture
def coordinator(recorder) -> DragDropCoordinator:
    return recorder.attach(DragDropCoordinator())


def test_payload_json_keys() -> None:
    assert json.loads(MOVE.to_json()) == {"source": "canvas", "type": "place", "id": "p1"}
    assert json.loads(TOOL.to_json()) == {"source": "sidebar", "type": "task"}
    assert DragPayload.from_json(MOVE.to_json()) == MOVE


@pytest.mark.parametrize("text", [
    None, "", "not json", "[]", '{"source": "sidebar"}',
    '{"source": "desk", "type": "task"}', '{"source": "canvas", "type": "task"}',
])
def test_unreadable_payloads(text) -> None:
    assert DragPayload.from_json(text) is None


def test_resolve_drop_position_uses_midpoint() -> None:
    assert resolve_drop_position(10, 0, 40) is DropPosition.BEFORE
    assert resolve_drop_position(20, 0, 40) is DropPosition.AFTER
    assert resolve_drop_position(39, 0, 40) is DropPosition.AFTER


def test_hover_is_ignored_without_a_drag(coordinator) -> None:
    coordinator.hover_node("a", DropPosition.BEFORE)
    coordinator.enter_trash()
    assert coordinator.state == Idle()
    assert not coordinator.is_dragging


def test_state_transitions(coordinator) -> None:
    seen = []
    coordinator.on_state_changed = seen.append

    assert coordinator.begin_drag(MOVE) == MOVE.to_json()
    coordinator.hover_node("a", DropPosition.AFTER)
    coordinator.enter_trash()
    coordinator.leave_trash()
    coordinator.cancel()

    assert seen == [
        Dragging(MOVE), Hovering(MOVE, "a", DropPosition.AFTER), OverTrash(MOVE), Dragging(MOVE), Idle(),
    ]


def test_trash_drop_deletes_canvas_node(coordinator, recorder) -> None:
    coordinator.begin_drag(MOVE)
    coordinator.enter_trash()
    assert coordinator.drop() is DropResult.DELETED
    assert recorder.deletes == ["p1"]
    assert recorder.drops == []
    assert coordinator.state == Idle()


def test_trash_drop_of_palette_tool_is_ignored(coordinator, recorder) -> None:
    coordinator.begin_drag(TOOL)
    coordinator.enter_trash()
    assert coordinator.drop() is DropResult.IGNORED
    assert recorder.deletes == [] and recorder.drops == []


def test_drop_on_node(coordinator, recorder) -> None:
    coordinator.begin_drag(TOOL)
    coordinator.hover_node("b", DropPosition.BEFORE)
    assert coordinator.drop() is DropResult.INSERTED
    assert recorder.drops == [(TOOL, "b", DropPosition.BEFORE)]


def test_drop_on_itself_is_ignored(coordinator, recorder) -> None:
    coordinator.begin_drag(MOVE)
    coordinator.hover_node("p1", DropPosition.AFTER)
    assert coordinator.drop() is DropResult.IGNORED
    assert recorder.drops == []


def test_empty_canvas_drop(coordinator, recorder) -> None:
    coordinator.begin_drag(TOOL)
    coordinator.hover_node("b", DropPosition.AFTER)
    coordinator.hover_canvas()
    assert coordinator.drop() is DropResult.INSERTED
    assert recorder.drops == [(TOOL, None, DropPosition.APPEND)]

    coordinator.begin_drag(MOVE)
    assert coordinator.drop() is DropResult.IGNORED
    assert len(recorder.drops) == 1


def test_drop_reads_channel_data(coordinator, recorder) -> None:
    coordinator.begin_drag(TOOL)
    coordinator.hover_node("b", DropPosition.AFTER)
    assert coordinator.drop(MOVE.to_json()) is DropResult.INSERTED
    assert recorder.drops == [(MOVE, "b", DropPosition.AFTER)]


def test_drop_with_garbage_channel_data(coordinator, recorder) -> None:
    coordinator.begin_drag(TOOL)
    assert coordinator.drop("garbage") is DropResult.IGNORED
    assert coordinator.state == Idle()
