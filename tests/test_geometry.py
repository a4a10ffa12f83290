import pytest

from flowday.defaults import WEEKDAY_NODES
from flowday.geometry import (
    BLOCK_DEFAULT_SIZE, LEAF_SIZE, VERTICAL_CENTER_X, VERTICAL_GAP, VERTICAL_TOP, Viewport,
    branch_child_boxes, map_layout, node_size, resize_block, snake_cell, snake_layout,
    vertical_layout,
)
from flowday.models import BlockNode, BranchNode, LeafNode


def test_wheel_zoom_is_centered_on_pointer() -> None:
    view = Viewport().wheel(0, -500, 100, 100, True)
    assert view.zoom == pytest.approx(1.5)
    assert view.pan_x == pytest.approx(-50)
    assert view.pan_y == pytest.approx(-50)


def test_world_point_under_pointer_stays_fixed() -> None:
    view = Viewport(zoom=0.8, pan_x=30, pan_y=-12)
    before = view.screen_to_world(240, 310)
    after = view.wheel(0, 120, 240, 310, True).screen_to_world(240, 310)
    assert after == pytest.approx(before)


def test_wheel_zoom_is_clamped() -> None:
    assert Viewport().wheel(0, -10_000, 0, 0, True).zoom == pytest.approx(3.0)
    assert Viewport().wheel(0, 10_000, 0, 0, True).zoom == pytest.approx(0.2)
    assert Viewport().wheel(0, -10_000, 0, 0, True, zoom_max=2.0).zoom == pytest.approx(2.0)


def test_wheel_without_modifier_pans() -> None:
    assert Viewport(zoom=2).wheel(10, 25, 0, 0, False) == Viewport(zoom=2, pan_x=-10, pan_y=-25)


def test_zoom_buttons_step_and_clamp() -> None:
    assert Viewport().zoom_in().zoom == pytest.approx(1.1)
    assert Viewport(zoom=2.95).zoom_in().zoom == pytest.approx(3.0)
    assert Viewport(zoom=0.25).zoom_out().zoom == pytest.approx(0.2)


def test_screen_world_round_trip() -> None:
    view = Viewport(zoom=1.7, pan_x=14, pan_y=-9)
    assert view.screen_to_world(*view.world_to_screen(33, 44)) == pytest.approx((33, 44))


def test_resize_block_divides_by_zoom_and_enforces_minimum() -> None:
    assert resize_block(128, 128, 40, 20, 2.0) == (148, 138)
    assert resize_block(128, 128, -100, -200, 1.0) == (100, 100)


def test_snake_cells_alternate_direction() -> None:
    first = snake_cell(0)
    assert (first.x, first.y, first.row, first.col) == (150, 150, 0, 0)
    assert snake_cell(3).is_right_end
    fifth = snake_cell(4)
    assert (fifth.x, fifth.y, fifth.col) == (3 * 260 + 150, 370, 3)
    assert snake_cell(7).col == 0 and snake_cell(7).is_left_end


def test_snake_path_curves_between_rows() -> None:
    layout = snake_layout(5)
    assert [cmd[0] for cmd in layout.path] == ["M", "L", "L", "L", "C"]
    curve = layout.path[-1]
    assert curve == ("C", 1010, 150, 1010, 370, 930, 370)


def test_snake_layout_size() -> None:
    empty = snake_layout(0)
    assert (empty.width, empty.height, empty.path) == (800, 800, ())
    layout = snake_layout(9)
    assert layout.width == 930 + 250
    assert layout.height == 2 * 220 + 150 + 300


def test_snake_layout_is_memoized_on_count() -> None:
    assert snake_layout(6) is snake_layout(6)


def test_node_sizes() -> None:
    assert node_size(LeafNode(id="a", title="a")) == (LEAF_SIZE, LEAF_SIZE)
    assert node_size(BlockNode(id="b", title="b")) == (BLOCK_DEFAULT_SIZE, BLOCK_DEFAULT_SIZE)
    assert node_size(BlockNode(id="b", title="b", custom_width=200, custom_height=150)) == (200, 150)
    two = node_size(BranchNode(id="c", title="c", branches=(LeafNode(id="x", title="x"),) * 2))
    three = node_size(BranchNode(id="c", title="c", branches=(LeafNode(id="x", title="x"),) * 3))
    assert three[0] > two[0]


def test_vertical_layout_stacks_nodes() -> None:
    boxes, width, height = vertical_layout(WEEKDAY_NODES)
    assert [b.node_id for b in boxes] == [n.id for n in WEEKDAY_NODES]
    assert boxes[0].y == VERTICAL_TOP
    for box, nxt in zip(boxes, boxes[1:]):
        assert nxt.y == pytest.approx(box.y + box.height + VERTICAL_GAP)
        assert box.center[0] == pytest.approx(VERTICAL_CENTER_X)
    assert height > boxes[-1].y + boxes[-1].height
    assert width >= VERTICAL_CENTER_X * 2


def test_map_layout_centers_boxes_on_cells() -> None:
    boxes, snake = map_layout(WEEKDAY_NODES)
    for box, cell in zip(boxes, snake.cells):
        assert box.center == pytest.approx((cell.x, cell.y))


def test_branch_child_boxes_fit_inside_parent() -> None:
    branch = WEEKDAY_NODES[1]
    boxes, _, _ = vertical_layout(WEEKDAY_NODES)
    parent = boxes[1]
    children = branch_child_boxes(parent, branch)
    assert [c.node_id for c in children] == ["2a", "2b"]
    for child in children:
        assert parent.contains(child.x, child.y)
        assert parent.contains(child.x + child.width, child.y + child.height)
