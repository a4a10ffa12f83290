import sqlite3

import pytest

from conftest import FakeScheduler, fixed_clock
from flowday.config import EditorConfig, VIEW_MAP, VIEW_VERTICAL
from flowday.controller import EditorController
from flowday.database import APP_DATA_KEY, Database
from flowday.defaults import WEEKDAY_NODES, WEEKEND_NODES
from flowday.dragdrop import DragPayload, DragSource
from flowday.factory import IdSource
from flowday.geometry import Viewport
from flowday.models import AppData, BlockNode, NodeKind
from flowday.persistence import SaveStatus
from flowday.tree import DropPosition


class _NoCancelScheduler(FakeScheduler):
    def cancel(self, handle) -> None:
        pass


def _controller(db, scheduler) -> EditorController:
    controller = EditorController(
        db, scheduler, config=EditorConfig(), ids=IdSource(clock=lambda: 1000), clock=fixed_clock,
    )
    controller.start()
    return controller


@pytest.fixture
def controller(db, scheduler) -> EditorController:
    return _controller(db, scheduler)


def _ids(controller):
    return [node.id for node in controller.nodes]


def _stored(db) -> AppData:
    return AppData.from_json(db.get_item(APP_DATA_KEY))


def test_first_start_shows_weekday_defaults(controller) -> None:
    assert controller.nodes == WEEKDAY_NODES
    assert controller.active_layout.id == "layout_weekday"
    assert [l.id for l in controller.layouts] == ["layout_weekday", "layout_weekend"]
    assert controller.view_mode == VIEW_VERTICAL
    assert controller.persistence.status is SaveStatus.SAVED


def test_start_restores_saved_record(db, scheduler, controller) -> None:
    controller.switch_layout("layout_weekend")
    scheduler.advance(1000)

    reopened = _controller(db, FakeScheduler())
    assert reopened.active_layout_id == "layout_weekend"
    assert reopened.nodes == WEEKEND_NODES


def test_add_node_inserts_after_selection(controller, scheduler) -> None:
    controller.select("1")
    controller.add_node(NodeKind.PLACE)

    assert _ids(controller)[:3] == ["1", "1000", "2"]
    assert controller.selected_id == "1000"
    assert controller.persistence.status is SaveStatus.UNSAVED

    scheduler.advance(1000)
    assert controller.persistence.status is SaveStatus.SAVED


def test_add_node_without_selection_appends(controller) -> None:
    controller.add_node(NodeKind.BLOCK)
    assert _ids(controller)[-1] == "1000"
    assert isinstance(controller.selected_node(), BlockNode)


def test_sidebar_drop_inserts_before_target(controller) -> None:
    controller.drag.begin_drag(DragPayload(source=DragSource.SIDEBAR, kind=NodeKind.TIME))
    controller.drag.hover_node("2", DropPosition.BEFORE)
    controller.drag.drop()

    assert _ids(controller)[:3] == ["1", "1000", "2"]
    assert controller.selected_id == "1000"


def test_canvas_drop_moves_node(controller) -> None:
    controller.drag.begin_drag(DragPayload(source=DragSource.CANVAS, kind=NodeKind.TIME, node_id="1"))
    controller.drag.hover_node("place_office", DropPosition.AFTER)
    controller.drag.drop()

    assert _ids(controller)[0] == "2"
    assert _ids(controller)[-1] == "1"
    assert len(controller.nodes) == len(WEEKDAY_NODES)


def test_trash_drop_deletes_and_clears_selection(controller) -> None:
    controller.select("task_lunch")
    controller.drag.begin_drag(
        DragPayload(source=DragSource.CANVAS, kind=NodeKind.TASK, node_id="task_lunch"))
    controller.drag.enter_trash()
    controller.drag.drop()

    assert "task_lunch" not in _ids(controller)
    assert controller.selected_id is None


def test_request_delete_needs_confirmation(controller) -> None:
    pending = []
    controller.on_pending_delete_changed = pending.append
    controller.select("1")

    assert controller.request_delete() is False
    assert controller.pending_delete_id == "1"
    assert "1" in _ids(controller)

    assert controller.request_delete() is True
    assert "1" not in _ids(controller)
    assert controller.selected_id is None
    assert pending == ["1", None]


def test_request_delete_without_selection(controller) -> None:
    assert controller.request_delete() is False
    assert controller.pending_delete_id is None


def test_delete_confirmation_expires(controller, scheduler) -> None:
    controller.select("1")
    controller.request_delete()
    scheduler.advance(3000)

    assert controller.pending_delete_id is None
    assert controller.request_delete() is False
    assert "1" in _ids(controller)


def test_selection_change_disarms_delete(controller, scheduler) -> None:
    controller.select("1")
    controller.request_delete()
    controller.select("task_lunch")

    assert controller.pending_delete_id is None
    assert controller.request_delete() is False
    assert len(controller.nodes) == len(WEEKDAY_NODES)


def test_stale_delete_timer_is_ignored(db) -> None:
    scheduler = _NoCancelScheduler()
    controller = _controller(db, scheduler)
    controller.select("1")
    controller.request_delete()
    scheduler.advance(2000)

    controller.select(None)
    controller.select("1")
    controller.request_delete()
    scheduler.advance(1500)

    assert controller.pending_delete_id == "1"
    scheduler.advance(1500)
    assert controller.pending_delete_id is None


def test_switch_layout_saves_outgoing_work(controller, db, scheduler) -> None:
    controller.add_node(NodeKind.TASK)
    controller.switch_layout("layout_weekend")

    weekday = [l for l in _stored(db).layouts if l.id == "layout_weekday"][0]
    assert weekday.nodes[-1].id == "1000"
    assert controller.nodes == WEEKEND_NODES
    assert controller.selected_id is None

    scheduler.advance(1000)
    assert _stored(db).active_layout_id == "layout_weekend"


def test_switch_to_unknown_or_current_layout_is_ignored(controller, db) -> None:
    controller.switch_layout("layout_weekday")
    controller.switch_layout("nope")
    assert controller.active_layout_id == "layout_weekday"
    assert db.get_item(APP_DATA_KEY) is None


def test_create_layout(controller, db) -> None:
    assert controller.create_layout("   ") is None

    layout = controller.create_layout(" Trip ")
    assert layout.id == "layout_1000"
    assert layout.name == "Trip"
    assert controller.active_layout_id == "layout_1000"
    assert controller.nodes == ()

    stored = _stored(db)
    assert len(stored.layouts) == 3
    assert stored.active_layout_id == "layout_1000"
    assert controller.persistence.status is SaveStatus.SAVED


def test_reset_data_restores_defaults(controller, db, scheduler) -> None:
    controller.add_node(NodeKind.TASK)
    controller.manual_save()
    controller.reset_data()

    assert db.get_item(APP_DATA_KEY) is None
    assert controller.nodes == WEEKDAY_NODES
    assert controller.persistence.status is SaveStatus.SAVED
    assert scheduler.pending == 0


def test_visibility_lost_writes_immediately(controller, db) -> None:
    controller.add_node(NodeKind.TASK)
    assert controller.visibility_lost()
    assert _stored(db).active_layout().nodes[-1].id == "1000"


def test_toggle_view_resets_viewport(controller) -> None:
    changes = []
    controller.on_view_changed = lambda: changes.append(controller.view_mode)
    controller.pan_by(30, 40)
    controller.toggle_view_mode()

    assert controller.view_mode == VIEW_MAP
    assert controller.viewport == Viewport()
    assert changes == [VIEW_VERTICAL, VIEW_MAP]

    with pytest.raises(ValueError):
        controller.set_view_mode("grid")


def test_wheel_and_zoom_buttons(controller) -> None:
    controller.wheel(0, -500, 100, 100, True)
    assert controller.viewport.zoom == pytest.approx(1.5)
    controller.zoom_out()
    assert controller.viewport.zoom == pytest.approx(1.4)
    controller.reset_view()
    assert controller.viewport == Viewport()


def test_branch_count_edits(controller) -> None:
    controller.set_branch_count("2", 3)
    branch = [n for n in controller.nodes if n.id == "2"][0]
    assert [c.id for c in branch.branches][:2] == ["2a", "2b"]
    assert len(branch.branches) == 3
    assert controller.persistence.status is SaveStatus.UNSAVED


def test_noop_edits_do_not_mark_unsaved(controller, scheduler) -> None:
    changes = []
    controller.on_nodes_changed = lambda: changes.append(True)

    controller.set_branch_count("2", 2)
    controller.update_branch_child("2", 0, title="洗漱")
    controller.edit_side_event_text("block_1", "side_1", "11:10 点外卖")
    controller.remove_side_event("block_1", "missing")
    controller.set_branch_count("block_1", 3)

    assert changes == []
    assert controller.persistence.status is SaveStatus.SAVED
    assert scheduler.pending == 0


def test_side_events_through_controller(controller) -> None:
    event = controller.add_side_event("block_1", NodeKind.TASK)
    assert event.id == "block_1_side_1000"

    controller.edit_side_event_text("block_1", event.id, "13:00 散步")
    block = [n for n in controller.nodes if n.id == "block_1"][0]
    assert block.side_events[-1].title == "13:00 散步"

    controller.remove_side_event("block_1", event.id)
    block = [n for n in controller.nodes if n.id == "block_1"][0]
    assert [e.id for e in block.side_events] == ["side_1"]
    assert controller.add_side_event("1", NodeKind.TIME) is None


def test_resize_block(controller, scheduler) -> None:
    controller.resize_block("block_1", 200, 150)
    block = [n for n in controller.nodes if n.id == "block_1"][0]
    assert (block.custom_width, block.custom_height) == (200, 150)

    scheduler.advance(1000)
    controller.resize_block("block_1", 200, 150)
    assert controller.persistence.status is SaveStatus.SAVED


class _FullDatabase(Database):
    def set_item(self, key, value) -> None:
        raise sqlite3.OperationalError("database or disk is full")


def test_hiding_after_failed_save_does_not_alert_again(tmp_path, scheduler) -> None:
    db = _FullDatabase(tmp_path / "full.db")
    controller = _controller(db, scheduler)
    messages = []
    controller.persistence.on_save_failed = messages.append

    controller.add_node(NodeKind.TASK)
    assert controller.manual_save() is False
    assert controller.visibility_lost() is False
    assert len(messages) == 1
    db.close()
