"""Canvas widget for rendering a day's flow and handling drag and drop."""

import math
from typing import Optional, Tuple

import gi

gi.require_version("Gtk", "4.0")
gi.require_version("Gdk", "4.0")
from gi.repository import Gtk, Gdk, GObject

import cairo

from flowday.config import VIEW_MAP
from flowday.controller import EditorController
from flowday.dragdrop import DragPayload, DragSource, OverTrash, resolve_drop_position
from flowday.geometry import (
    BRANCH_HEADER_H, VERTICAL_GAP, NodeBox, branch_child_boxes, map_layout,
    resize_block, vertical_layout,
)
from flowday.icons import get_color, get_icon
from flowday.models import BlockNode, BranchNode, LeafNode, Node, NodeKind
from flowday.tree import DropPosition, find_node


class FlowCanvas(Gtk.DrawingArea):
    """Custom canvas widget for the vertical flow and the map view."""

    COLORS = {
        'bg_primary': (0.973, 0.976, 0.984),      # #f8f9fb
        'grid_dots': (0.820, 0.835, 0.859),       # #d1d5db
        'surface': (1.0, 1.0, 1.0),
        'border_subtle': (0.898, 0.906, 0.922),   # #e5e7eb
        'text_primary': (0.122, 0.161, 0.216),    # #1f2937
        'text_secondary': (0.420, 0.447, 0.502),  # #6b7280
        'connector': (0.820, 0.835, 0.859),
        'accent_primary': (0.388, 0.400, 0.945),  # #6366f1
        'danger': (0.937, 0.267, 0.267),          # #ef4444
        'sticky': (1.0, 0.976, 0.769),            # #fff9c4
        'sticky_edge': (0.996, 0.941, 0.541),     # #fef08a
    }

    # Screen-space trash zone
    TRASH_WIDTH = 192
    TRASH_HEIGHT = 64
    TRASH_MARGIN = 32

    GRID_SIZE = 24
    HANDLE_SIZE = 22
    WHEEL_STEP_PX = 100

    def __init__(self, controller: EditorController):
        super().__init__()

        self.controller = controller
        self.boxes: Tuple[NodeBox, ...] = ()
        self.snake = None

        self.last_mouse_x = 0.0
        self.last_mouse_y = 0.0

        # Pan / resize gesture state
        self.is_panning = False
        self.pan_start: Tuple[float, float] = (0.0, 0.0)
        self.resizing_block: Optional[BlockNode] = None
        self.resize_start: Tuple[float, float] = (0.0, 0.0)

        # Setup widget
        self.set_draw_func(self._on_draw)
        self.set_focusable(True)
        self.set_can_focus(True)
        self.set_hexpand(True)
        self.set_vexpand(True)

        self._setup_event_controllers()

        self.controller.drag.on_state_changed = lambda state: self.queue_draw()
        self.refresh()

    def _setup_event_controllers(self):
        """Setup mouse, scroll and drag-and-drop controllers."""
        click_ctrl = Gtk.GestureClick()
        click_ctrl.set_button(1)
        click_ctrl.connect("pressed", self._on_click)
        self.add_controller(click_ctrl)

        motion_ctrl = Gtk.EventControllerMotion()
        motion_ctrl.connect("motion", self._on_motion)
        self.add_controller(motion_ctrl)

        scroll_ctrl = Gtk.EventControllerScroll()
        scroll_ctrl.set_flags(Gtk.EventControllerScrollFlags.BOTH_AXES)
        scroll_ctrl.connect("scroll", self._on_scroll)
        self.add_controller(scroll_ctrl)

        # Right/middle drag pans, left drag on a block handle resizes
        drag_ctrl = Gtk.GestureDrag()
        drag_ctrl.set_button(0)
        drag_ctrl.connect("drag-begin", self._on_drag_begin)
        drag_ctrl.connect("drag-update", self._on_drag_update)
        drag_ctrl.connect("drag-end", self._on_drag_end)
        self.add_controller(drag_ctrl)

        drag_source = Gtk.DragSource()
        drag_source.set_actions(Gdk.DragAction.MOVE)
        drag_source.connect("prepare", self._on_dnd_prepare)
        drag_source.connect("drag-end", self._on_dnd_end)
        self.add_controller(drag_source)

        drop_target = Gtk.DropTarget.new(GObject.TYPE_STRING, Gdk.DragAction.COPY | Gdk.DragAction.MOVE)
        drop_target.connect("motion", self._on_dnd_motion)
        drop_target.connect("drop", self._on_dnd_drop)
        self.add_controller(drop_target)

    # ==================== Layout ====================

    def refresh(self):
        """Recompute node boxes from the controller's sequence and redraw."""
        nodes = self.controller.nodes
        if self.controller.view_mode == VIEW_MAP:
            self.boxes, self.snake = map_layout(nodes)
            width, height = self.snake.width, self.snake.height
        else:
            self.boxes, width, height = vertical_layout(nodes)
            self.snake = None
        self.set_content_width(int(width))
        self.set_content_height(int(height))
        self.queue_draw()

    def _node_for(self, box: NodeBox) -> Optional[Node]:
        return find_node(self.controller.nodes, box.node_id)

    def _box_at(self, x: float, y: float) -> Optional[NodeBox]:
        """Find the top-level node box at the given screen coordinates."""
        wx, wy = self.controller.viewport.screen_to_world(x, y)
        for box in reversed(self.boxes):
            if box.contains(wx, wy):
                return box
        return None

    def _drop_zone_at(self, x: float, y: float) -> Optional[Tuple[str, DropPosition]]:
        """Which node a drag at (x, y) targets, and on which side."""
        wx, wy = self.controller.viewport.screen_to_world(x, y)
        if self.controller.view_mode == VIEW_MAP:
            for box in self.boxes:
                if box.contains(wx, wy):
                    return box.node_id, DropPosition.AFTER
            return None
        half_gap = VERTICAL_GAP / 2
        for box in self.boxes:
            if box.y - half_gap <= wy <= box.y + box.height + half_gap:
                return box.node_id, resolve_drop_position(wy, box.y, box.height)
        return None

    def _trash_rect(self) -> Tuple[float, float, float, float]:
        width, height = self.get_width(), self.get_height()
        x = (width - self.TRASH_WIDTH) / 2
        y = height - self.TRASH_HEIGHT - self.TRASH_MARGIN
        return x, y, self.TRASH_WIDTH, self.TRASH_HEIGHT

    def _in_trash(self, x: float, y: float) -> bool:
        tx, ty, tw, th = self._trash_rect()
        return tx <= x <= tx + tw and ty <= y <= ty + th

    def _handle_hit(self, x: float, y: float) -> Optional[BlockNode]:
        """The selected block whose resize handle is under the pointer."""
        selected = self.controller.selected_node()
        if not isinstance(selected, BlockNode):
            return None
        wx, wy = self.controller.viewport.screen_to_world(x, y)
        for box in self.boxes:
            if box.node_id == selected.id:
                if (box.x + box.width - self.HANDLE_SIZE <= wx <= box.x + box.width and
                        box.y + box.height - self.HANDLE_SIZE <= wy <= box.y + box.height):
                    return selected
        return None

    # ==================== Drawing ====================

    def _on_draw(self, area, cr, width, height):
        """Main drawing function."""
        cr.save()

        cr.set_source_rgb(*self.COLORS['bg_primary'])
        cr.paint()
        self._draw_grid(cr, width, height)

        viewport = self.controller.viewport
        cr.translate(viewport.pan_x, viewport.pan_y)
        cr.scale(viewport.zoom, viewport.zoom)

        if self.snake is not None:
            self._draw_snake_path(cr)
        else:
            self._draw_vertical_connections(cr)

        for box in self.boxes:
            node = self._node_for(box)
            if node is not None:
                self._draw_node(cr, box, node)

        self._draw_drop_indicator(cr)
        cr.restore()

        if self.controller.drag.is_dragging:
            self._draw_trash(cr)

    def _draw_grid(self, cr, width: float, height: float):
        """Draw dot grid pattern following pan and zoom."""
        cr.save()
        cr.set_source_rgb(*self.COLORS['grid_dots'])

        viewport = self.controller.viewport
        effective_grid = self.GRID_SIZE * viewport.zoom
        x = viewport.pan_x % effective_grid
        while x < width:
            y = viewport.pan_y % effective_grid
            while y < height:
                cr.arc(x, y, 1.0, 0, 2 * math.pi)
                cr.fill()
                y += effective_grid
            x += effective_grid

        cr.restore()

    def _set_dash(self, cr, dashed: bool):
        if dashed:
            cr.set_dash([10, 7])
        else:
            cr.set_dash([])

    def _draw_vertical_connections(self, cr):
        """Straight connectors between consecutive nodes."""
        cr.save()
        cr.set_source_rgb(*self.COLORS['connector'])
        cr.set_line_width(4)
        cr.set_line_cap(cairo.LINE_CAP_ROUND)
        for box, nxt in zip(self.boxes, self.boxes[1:]):
            node = self._node_for(box)
            self._set_dash(cr, bool(node and node.dashed))
            cx, _ = box.center
            cr.move_to(cx, box.y + box.height)
            cr.line_to(cx, nxt.y)
            cr.stroke()
        cr.restore()

    def _draw_snake_path(self, cr):
        """The connector path of the map view."""
        if not self.snake.path:
            return
        cr.save()
        cr.set_source_rgb(*self.COLORS['connector'])
        cr.set_line_width(6)
        cr.set_line_cap(cairo.LINE_CAP_ROUND)
        cr.set_dash([12, 8])
        for command in self.snake.path:
            op, *args = command
            if op == "M":
                cr.move_to(*args)
            elif op == "L":
                cr.line_to(*args)
            else:
                cr.curve_to(*args)
        cr.stroke()
        cr.restore()

    def _draw_rounded_rect(self, cr, x: float, y: float, w: float, h: float, radius: float):
        """Draw a rounded rectangle path."""
        radius = min(radius, w / 2, h / 2)
        cr.new_path()
        cr.arc(x + w - radius, y + radius, radius, -math.pi / 2, 0)
        cr.arc(x + w - radius, y + h - radius, radius, 0, math.pi / 2)
        cr.arc(x + radius, y + h - radius, radius, math.pi / 2, math.pi)
        cr.arc(x + radius, y + radius, radius, math.pi, 3 * math.pi / 2)
        cr.close_path()

    def _draw_text(self, cr, text: str, x: float, y: float, size: float,
                   color, bold: bool = False, center: bool = False, max_width: float = 0):
        if not text:
            return
        cr.select_font_face("Sans", cairo.FONT_SLANT_NORMAL,
                            cairo.FONT_WEIGHT_BOLD if bold else cairo.FONT_WEIGHT_NORMAL)
        cr.set_font_size(size)
        extents = cr.text_extents(text)
        while max_width and extents.width > max_width and len(text) > 2:
            text = text[:-2] + "…"
            extents = cr.text_extents(text)
        if center:
            x -= extents.width / 2 + extents.x_bearing
        cr.set_source_rgb(*color)
        cr.move_to(x, y)
        cr.show_text(text)

    def _outline(self, cr, node: Node):
        """Stroke the current path by selection state."""
        if node.id == self.controller.pending_delete_id:
            cr.set_source_rgb(*self.COLORS['danger'])
            cr.set_line_width(3)
        elif node.id == self.controller.selected_id:
            cr.set_source_rgb(*self.COLORS['accent_primary'])
            cr.set_line_width(3)
        else:
            cr.set_source_rgb(*self.COLORS['border_subtle'])
            cr.set_line_width(1)
        cr.stroke()

    def _draw_node(self, cr, box: NodeBox, node: Node):
        """Draw a single top-level node."""
        cr.save()
        if isinstance(node, BranchNode):
            self._draw_branch(cr, box, node)
        elif isinstance(node, BlockNode):
            self._draw_block(cr, box, node)
        else:
            self._draw_leaf(cr, box, node)
            self._draw_leaf_label(cr, box, node)
        cr.restore()

    def _draw_leaf(self, cr, box: NodeBox, node: LeafNode):
        x, y, w, h = box.x, box.y, box.width, box.height
        cx, cy = box.center

        if node.kind == NodeKind.TIME:
            self._draw_rounded_rect(cr, x, y, w, h, h / 2)
            cr.set_source_rgb(*get_color(node.color or "rose"))
            cr.fill_preserve()
            self._outline(cr, node)
            self._draw_text(cr, node.title, cx, cy + 5, 13, (1, 1, 1), bold=True,
                            center=True, max_width=w - 6)
            return

        if node.kind == NodeKind.PLACE:
            cr.new_path()
            cr.move_to(cx, y)
            cr.line_to(x + w, cy)
            cr.line_to(cx, y + h)
            cr.line_to(x, cy)
            cr.close_path()
            cr.set_source_rgb(*get_color(node.color or "yellow"))
            cr.fill_preserve()
            self._outline(cr, node)
            self._draw_text(cr, get_icon("MapPin"), cx, cy + 7, 18, (1, 1, 1), center=True)
            return

        self._draw_rounded_rect(cr, x, y, w, h, 12)
        cr.set_source_rgb(*self.COLORS['surface'])
        cr.fill_preserve()
        self._outline(cr, node)
        self._draw_text(cr, get_icon(node.icon), cx, cy + 8, 22, get_color(node.color), center=True)

    def _draw_leaf_label(self, cr, box: NodeBox, node: LeafNode):
        x = box.x + box.width + 16
        cy = box.center[1]
        if node.kind == NodeKind.TIME:
            self._draw_text(cr, node.subtitle, x, cy + 5, 14, self.COLORS['text_primary'], bold=True)
            return
        self._draw_text(cr, node.title, x, cy - 2, 14, self.COLORS['text_primary'], bold=True, max_width=170)
        detail = " · ".join(part for part in (node.subtitle, node.duration) if part)
        self._draw_text(cr, detail, x, cy + 16, 11, self.COLORS['text_secondary'], max_width=170)

    def _draw_branch(self, cr, box: NodeBox, node: BranchNode):
        selected = node.id == self.controller.selected_id
        self._draw_rounded_rect(cr, box.x, box.y, box.width, box.height, 20)
        if selected:
            cr.set_source_rgba(*self.COLORS['accent_primary'], 0.06)
            cr.fill_preserve()
            cr.set_dash([6, 4])
        self._outline(cr, node)
        cr.set_dash([])

        self._draw_text(cr, node.title, box.center[0], box.y + BRANCH_HEADER_H - 8, 12,
                        self.COLORS['text_secondary'], bold=True, center=True, max_width=box.width - 16)

        for child_box, child in zip(branch_child_boxes(box, node), node.branches):
            self._draw_rounded_rect(cr, child_box.x, child_box.y, child_box.width, child_box.height, 12)
            cr.set_source_rgb(*self.COLORS['surface'])
            cr.fill_preserve()
            cr.set_source_rgb(*self.COLORS['border_subtle'])
            cr.set_line_width(1)
            cr.stroke()
            cx = child_box.center[0]
            self._draw_text(cr, get_icon(child.icon), cx, child_box.y + 28, 18,
                            get_color(child.color), center=True)
            self._draw_text(cr, child.title, cx, child_box.y + 50, 12, self.COLORS['text_primary'],
                            bold=True, center=True, max_width=child_box.width - 12)
            self._draw_text(cr, child.duration, cx, child_box.y + 68, 10, self.COLORS['text_secondary'],
                            center=True, max_width=child_box.width - 12)

    def _draw_block(self, cr, box: NodeBox, node: BlockNode):
        x, y, w, h = box.x, box.y, box.width, box.height
        cx = box.center[0]

        self._draw_rounded_rect(cr, x, y, w, h, 16)
        cr.set_source_rgb(*self.COLORS['surface'])
        cr.fill_preserve()
        self._outline(cr, node)

        self._draw_text(cr, get_icon(node.icon), cx, y + 34, 22, get_color(node.color), center=True)
        self._draw_text(cr, node.title, cx, y + 58, 13, self.COLORS['text_primary'],
                        bold=True, center=True, max_width=w - 12)
        self._draw_text(cr, node.subtitle, cx, y + 76, 10, self.COLORS['text_secondary'],
                        center=True, max_width=w - 12)
        self._draw_text(cr, node.duration, cx, y + h - 14, 10, self.COLORS['text_secondary'],
                        center=True, max_width=w - 12)

        # Side-event count badge
        count = len(node.side_events)
        cr.arc(x + w, y, 11, 0, 2 * math.pi)
        cr.set_source_rgb(*(self.COLORS['sticky_edge'] if count else self.COLORS['border_subtle']))
        cr.fill()
        self._draw_text(cr, str(count), x + w, y + 4, 11, self.COLORS['text_primary'], bold=True, center=True)

        if node.side_events and self.controller.view_mode != VIEW_MAP:
            self._draw_side_events(cr, box, node)

        if node.id == self.controller.selected_id:
            size = self.HANDLE_SIZE / 2
            cr.move_to(x + w - 4, y + h - 4 - size)
            cr.line_to(x + w - 4, y + h - 4)
            cr.line_to(x + w - 4 - size, y + h - 4)
            cr.set_source_rgb(*self.COLORS['accent_primary'])
            cr.set_line_width(2)
            cr.stroke()

    def _draw_side_events(self, cr, box: NodeBox, node: BlockNode):
        """Sticky note listing a block's side events."""
        x = box.x + box.width + 24
        line_h = 20
        h = 28 + line_h * len(node.side_events)
        cr.rectangle(x, box.y, 200, h)
        cr.set_source_rgb(*self.COLORS['sticky'])
        cr.fill()
        cr.rectangle(x, box.y, 200, 6)
        cr.set_source_rgb(*self.COLORS['sticky_edge'])
        cr.fill()
        for index, event in enumerate(node.side_events):
            text = f"{event.title} {event.subtitle or ''}".strip()
            self._draw_text(cr, text, x + 12, box.y + 28 + index * line_h, 12,
                            self.COLORS['text_primary'], max_width=176)

    def _draw_drop_indicator(self, cr):
        """Insertion line before or after the hovered node."""
        state = self.controller.drag.state
        target_id = getattr(state, "target_id", None)
        if target_id is None:
            return
        for box in self.boxes:
            if box.node_id != target_id:
                continue
            cr.save()
            cr.set_source_rgb(*self.COLORS['accent_primary'])
            cr.set_line_width(4)
            cr.set_line_cap(cairo.LINE_CAP_ROUND)
            if self.controller.view_mode == VIEW_MAP:
                self._draw_rounded_rect(cr, box.x - 8, box.y - 8, box.width + 16, box.height + 16, 18)
            else:
                edge = box.y - VERTICAL_GAP / 2 if state.position == DropPosition.BEFORE \
                    else box.y + box.height + VERTICAL_GAP / 2
                cr.move_to(box.x - 60, edge)
                cr.line_to(box.x + box.width + 60, edge)
            cr.stroke()
            cr.restore()
            return

    def _draw_trash(self, cr):
        """Trash zone at the bottom centre, in screen space."""
        over = isinstance(self.controller.drag.state, OverTrash)
        x, y, w, h = self._trash_rect()
        cr.save()
        self._draw_rounded_rect(cr, x, y, w, h, 12)
        if over:
            cr.set_source_rgba(1, 0.95, 0.95, 0.95)
        else:
            cr.set_source_rgba(1, 1, 1, 0.85)
        cr.fill_preserve()
        cr.set_source_rgb(*(self.COLORS['danger'] if over else self.COLORS['text_secondary']))
        cr.set_line_width(2)
        cr.set_dash([6, 4])
        cr.stroke()
        cr.set_dash([])
        color = self.COLORS['danger'] if over else self.COLORS['text_secondary']
        self._draw_text(cr, get_icon("Trash") + "  拖到这里删除", x + w / 2, y + h / 2 + 5, 13,
                        color, bold=True, center=True)
        cr.restore()

    # ==================== Pointer Input ====================

    def _on_click(self, gesture, n_press, x, y):
        """Left click selects the node under the pointer."""
        self.grab_focus()
        box = self._box_at(x, y)
        self.controller.select(box.node_id if box else None)

    def _on_motion(self, controller, x, y):
        self.last_mouse_x = x
        self.last_mouse_y = y

    def _on_scroll(self, controller, dx, dy):
        """Wheel pans; with Ctrl or the right button held it zooms."""
        if controller.get_unit() == Gdk.ScrollUnit.WHEEL:
            dx *= self.WHEEL_STEP_PX
            dy *= self.WHEEL_STEP_PX
        state = controller.get_current_event_state()
        zoom = bool(state & (Gdk.ModifierType.CONTROL_MASK | Gdk.ModifierType.BUTTON3_MASK))
        self.controller.wheel(dx, dy, self.last_mouse_x, self.last_mouse_y, zoom)
        return True

    def _on_drag_begin(self, gesture, start_x, start_y):
        """Start a pan (right/middle button) or a block resize (left on handle)."""
        button = gesture.get_current_button()
        if button in (2, 3):
            self.is_panning = True
            viewport = self.controller.viewport
            self.pan_start = (viewport.pan_x, viewport.pan_y)
            gesture.set_state(Gtk.EventSequenceState.CLAIMED)
            return

        block = self._handle_hit(start_x, start_y) if button == 1 else None
        if block is None:
            gesture.set_state(Gtk.EventSequenceState.DENIED)
            return
        self.resizing_block = block
        box = next(b for b in self.boxes if b.node_id == block.id)
        self.resize_start = (box.width, box.height)
        gesture.set_state(Gtk.EventSequenceState.CLAIMED)

    def _on_drag_update(self, gesture, offset_x, offset_y):
        if self.is_panning:
            start_x, start_y = self.pan_start
            viewport = self.controller.viewport
            self.controller.pan_by(start_x + offset_x - viewport.pan_x,
                                   start_y + offset_y - viewport.pan_y)
        elif self.resizing_block is not None:
            width, height = resize_block(*self.resize_start, offset_x, offset_y,
                                         self.controller.viewport.zoom)
            self.controller.resize_block(self.resizing_block.id, width, height)

    def _on_drag_end(self, gesture, offset_x, offset_y):
        self.is_panning = False
        self.resizing_block = None

    # ==================== Drag and Drop ====================

    def _on_dnd_prepare(self, source, x, y):
        """Begin dragging the node under the pointer, if any."""
        if self._handle_hit(x, y) is not None:
            return None
        box = self._box_at(x, y)
        node = self._node_for(box) if box else None
        if node is None:
            return None
        payload = DragPayload(source=DragSource.CANVAS, kind=node.kind, node_id=node.id)
        text = self.controller.drag.begin_drag(payload)
        return Gdk.ContentProvider.new_for_value(GObject.Value(GObject.TYPE_STRING, text))

    def _on_dnd_end(self, source, drag, delete_data):
        if self.controller.drag.is_dragging:
            self.controller.drag.cancel()

    def _on_dnd_motion(self, target, x, y):
        drag = self.controller.drag
        if self._in_trash(x, y):
            drag.enter_trash()
            return Gdk.DragAction.MOVE
        drag.leave_trash()
        zone = self._drop_zone_at(x, y)
        if zone is None:
            drag.hover_canvas()
        else:
            drag.hover_node(*zone)
        payload = drag.payload
        if payload is not None and payload.source == DragSource.CANVAS:
            return Gdk.DragAction.MOVE
        return Gdk.DragAction.COPY

    def _on_dnd_drop(self, target, value, x, y):
        self.controller.drag.drop(value)
        return True
