"""Viewport transform and map-view layout math."""

from dataclasses import dataclass, replace
from functools import lru_cache
from typing import List, Tuple

from flowday.models import BlockNode, BranchNode

ZOOM_MIN = 0.2
ZOOM_MAX = 3.0
ZOOM_STEP = 0.1
WHEEL_ZOOM_RATE = 0.001

# Snake (map view) grid
SNAKE_COLS = 4
SNAKE_GRID_W = 260
SNAKE_GRID_H = 220
SNAKE_OFFSET_X = 150
SNAKE_OFFSET_Y = 150
SNAKE_CURVE_OUT = 80

# Block footprint
BLOCK_DEFAULT_SIZE = 128.0
BLOCK_MIN_SIZE = 100.0


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


@dataclass(frozen=True)
class Viewport:
    """Zoom and pan of the canvas. screen = world * zoom + pan."""
    zoom: float = 1.0
    pan_x: float = 0.0
    pan_y: float = 0.0

    def screen_to_world(self, x: float, y: float) -> Tuple[float, float]:
        return (x - self.pan_x) / self.zoom, (y - self.pan_y) / self.zoom

    def world_to_screen(self, x: float, y: float) -> Tuple[float, float]:
        return x * self.zoom + self.pan_x, y * self.zoom + self.pan_y

    def panned(self, dx: float, dy: float) -> "Viewport":
        return replace(self, pan_x=self.pan_x + dx, pan_y=self.pan_y + dy)

    def zoomed_at(self, screen_x: float, screen_y: float, new_zoom: float) -> "Viewport":
        """Change zoom keeping the world point under (screen_x, screen_y) fixed."""
        world_x, world_y = self.screen_to_world(screen_x, screen_y)
        return Viewport(
            zoom=new_zoom,
            pan_x=screen_x - world_x * new_zoom,
            pan_y=screen_y - world_y * new_zoom,
        )

    def wheel(self, dx: float, dy: float, pointer_x: float, pointer_y: float,
              zoom_modifier: bool, *, zoom_min: float = ZOOM_MIN, zoom_max: float = ZOOM_MAX,
              rate: float = WHEEL_ZOOM_RATE) -> "Viewport":
        """Apply one wheel event.

        Without the zoom modifier the wheel scrolls the canvas 1:1. With it,
        the vertical delta zooms around the pointer.
        """
        if not zoom_modifier:
            return self.panned(-dx, -dy)
        new_zoom = clamp(self.zoom - dy * rate, zoom_min, zoom_max)
        return self.zoomed_at(pointer_x, pointer_y, new_zoom)

    def zoom_in(self, step: float = ZOOM_STEP, zoom_max: float = ZOOM_MAX) -> "Viewport":
        return replace(self, zoom=min(self.zoom + step, zoom_max))

    def zoom_out(self, step: float = ZOOM_STEP, zoom_min: float = ZOOM_MIN) -> "Viewport":
        return replace(self, zoom=max(self.zoom - step, zoom_min))

    @staticmethod
    def identity() -> "Viewport":
        return Viewport()


def resize_block(start_width: float, start_height: float, dx: float, dy: float,
                 zoom: float) -> Tuple[float, float]:
    """New block size for a resize drag of (dx, dy) screen pixels."""
    return (
        max(BLOCK_MIN_SIZE, start_width + dx / zoom),
        max(BLOCK_MIN_SIZE, start_height + dy / zoom),
    )


# ==================== Snake Layout ====================

@dataclass(frozen=True)
class SnakeCell:
    x: float
    y: float
    row: int
    col: int
    is_right_end: bool
    is_left_end: bool


@dataclass(frozen=True)
class SnakeLayout:
    cells: Tuple[SnakeCell, ...]
    # Path commands: ("M", x, y), ("L", x, y) or ("C", c1x, c1y, c2x, c2y, x, y)
    path: Tuple[tuple, ...]
    width: float
    height: float


def snake_cell(index: int, cols: int = SNAKE_COLS) -> SnakeCell:
    """Grid cell of the index-th node, rows alternating direction."""
    row = index // cols
    even = row % 2 == 0
    col = index % cols if even else cols - 1 - (index % cols)
    return SnakeCell(
        x=col * SNAKE_GRID_W + SNAKE_OFFSET_X,
        y=row * SNAKE_GRID_H + SNAKE_OFFSET_Y,
        row=row,
        col=col,
        is_right_end=even and col == cols - 1,
        is_left_end=not even and col == 0,
    )


def snake_path(cells: Tuple[SnakeCell, ...]) -> Tuple[tuple, ...]:
    """Connector path: straight within a row, a bulging curve between rows."""
    if not cells:
        return ()
    path: List[tuple] = [("M", cells[0].x, cells[0].y)]
    for curr, nxt in zip(cells, cells[1:]):
        if curr.row == nxt.row:
            path.append(("L", nxt.x, nxt.y))
            continue
        if curr.x == nxt.x:
            # Bulge outward in the direction the row was travelling.
            bulge = SNAKE_CURVE_OUT if curr.row % 2 == 0 else -SNAKE_CURVE_OUT
        else:
            bulge = SNAKE_CURVE_OUT
        path.append(("C", curr.x + bulge, curr.y, curr.x + bulge, nxt.y, nxt.x, nxt.y))
    return tuple(path)


@lru_cache(maxsize=32)
def snake_layout(count: int, cols: int = SNAKE_COLS) -> SnakeLayout:
    """Positions, path and content size for `count` nodes in the map view."""
    cells = tuple(snake_cell(i, cols) for i in range(count))
    max_x = max((c.x for c in cells), default=0)
    max_y = max((c.y for c in cells), default=0)
    return SnakeLayout(
        cells=cells,
        path=snake_path(cells),
        width=max(max_x + 250, 800),
        height=max(max_y + 300, 800),
    )


# ==================== Node Boxes ====================

# Vertical (timeline) view
VERTICAL_CENTER_X = 400.0
VERTICAL_TOP = 80.0
VERTICAL_GAP = 40.0
VERTICAL_BOTTOM_PAD = 160.0

LEAF_SIZE = 56.0
LEAF_LABEL_WIDTH = 180.0
BRANCH_CHILD_W = 150.0
BRANCH_CHILD_H = 84.0
BRANCH_PAD = 12.0
BRANCH_HEADER_H = 28.0


@dataclass(frozen=True)
class NodeBox:
    """World-space rectangle of a drawn node. (x, y) is the top-left."""
    node_id: str
    x: float
    y: float
    width: float
    height: float

    @property
    def center(self) -> Tuple[float, float]:
        return self.x + self.width / 2, self.y + self.height / 2

    def contains(self, px: float, py: float) -> bool:
        return self.x <= px <= self.x + self.width and self.y <= py <= self.y + self.height


def node_size(node) -> Tuple[float, float]:
    """Footprint of a top-level node's shape, without its side labels."""
    if isinstance(node, BranchNode):
        count = max(len(node.branches), 1)
        width = count * BRANCH_CHILD_W + (count + 1) * BRANCH_PAD
        return width, BRANCH_HEADER_H + BRANCH_CHILD_H + BRANCH_PAD * 2
    if isinstance(node, BlockNode):
        return (
            node.custom_width if node.custom_width is not None else BLOCK_DEFAULT_SIZE,
            node.custom_height if node.custom_height is not None else BLOCK_DEFAULT_SIZE,
        )
    return LEAF_SIZE, LEAF_SIZE


def vertical_layout(nodes) -> Tuple[Tuple[NodeBox, ...], float, float]:
    """Stack nodes top to bottom around a shared center line.

    Returns the boxes plus the content width and height.
    """
    boxes: List[NodeBox] = []
    y = VERTICAL_TOP
    right = VERTICAL_CENTER_X * 2
    for node in nodes:
        w, h = node_size(node)
        boxes.append(NodeBox(node.id, VERTICAL_CENTER_X - w / 2, y, w, h))
        right = max(right, VERTICAL_CENTER_X + w / 2 + LEAF_LABEL_WIDTH)
        y += h + VERTICAL_GAP
    return tuple(boxes), right, y + VERTICAL_BOTTOM_PAD


def map_layout(nodes) -> Tuple[Tuple[NodeBox, ...], SnakeLayout]:
    """Center each node's shape on its snake grid cell."""
    snake = snake_layout(len(nodes))
    boxes = []
    for node, cell in zip(nodes, snake.cells):
        w, h = node_size(node)
        boxes.append(NodeBox(node.id, cell.x - w / 2, cell.y - h / 2, w, h))
    return tuple(boxes), snake


def branch_child_boxes(box: NodeBox, branch: BranchNode) -> Tuple[NodeBox, ...]:
    """Boxes of a branch's children, side by side under its header."""
    top = box.y + BRANCH_HEADER_H + BRANCH_PAD
    return tuple(
        NodeBox(child.id, box.x + BRANCH_PAD + i * (BRANCH_CHILD_W + BRANCH_PAD), top,
                BRANCH_CHILD_W, BRANCH_CHILD_H)
        for i, child in enumerate(branch.branches)
    )
