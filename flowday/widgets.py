"""Custom widgets for the FlowDay window."""

from dataclasses import replace
from typing import Optional, Tuple

import gi

gi.require_version("Gtk", "4.0")
gi.require_version("Gdk", "4.0")
from gi.repository import Gtk, Gdk, GObject, Pango

from flowday.controller import EditorController
from flowday.dragdrop import DragPayload, DragSource
from flowday.icons import PALETTE_TOOLS, PICKER_COLORS, subtitle_label, title_label
from flowday.models import BlockNode, BranchNode, LeafNode, Node, NodeKind


class PaletteTool(Gtk.Box):
    """A tile in the palette: click adds the node, dragging drops it."""

    def __init__(self, controller: EditorController, kind: NodeKind, label: str,
                 glyph: str, color: str):
        super().__init__(orientation=Gtk.Orientation.VERTICAL, spacing=4)
        self.controller = controller
        self.kind = kind

        self.add_css_class("palette-tool")
        self.set_tooltip_text(label)

        badge = Gtk.Label(label=glyph)
        badge.add_css_class("palette-badge")
        badge.add_css_class(f"tool-{color}")
        badge.set_size_request(40, 40)
        self.append(badge)

        caption = Gtk.Label(label=label)
        caption.add_css_class("caption")
        caption.add_css_class("dim-label")
        self.append(caption)

        click = Gtk.GestureClick()
        click.set_button(1)
        click.connect("released", self._on_released)
        self.add_controller(click)

        drag_source = Gtk.DragSource()
        drag_source.set_actions(Gdk.DragAction.COPY)
        drag_source.connect("prepare", self._on_prepare)
        drag_source.connect("drag-end", self._on_drag_end)
        self.add_controller(drag_source)

    def _on_released(self, gesture, n_press, x, y):
        self.controller.add_node(self.kind)

    def _on_prepare(self, source, x, y):
        payload = DragPayload(source=DragSource.SIDEBAR, kind=self.kind)
        text = self.controller.drag.begin_drag(payload)
        return Gdk.ContentProvider.new_for_value(GObject.Value(GObject.TYPE_STRING, text))

    def _on_drag_end(self, source, drag, delete_data):
        if self.controller.drag.is_dragging:
            self.controller.drag.cancel()


class Palette(Gtk.Box):
    """Left sidebar with one tool per node kind."""

    def __init__(self, controller: EditorController):
        super().__init__(orientation=Gtk.Orientation.VERTICAL, spacing=20)
        self.add_css_class("sidebar")
        self.set_size_request(88, -1)
        self.set_margin_top(24)
        self.set_margin_bottom(24)

        for kind, label, glyph, color in PALETTE_TOOLS:
            self.append(PaletteTool(controller, kind, label, glyph, color))


def _section_label(text: str) -> Gtk.Label:
    label = Gtk.Label(label=text)
    label.set_halign(Gtk.Align.START)
    label.add_css_class("heading")
    label.add_css_class("dim-label")
    return label


class PropertiesPanel(Gtk.Box):
    """Right sidebar for editing the selected node."""

    def __init__(self, controller: EditorController):
        super().__init__(orientation=Gtk.Orientation.VERTICAL)
        self.controller = controller
        self._shown: Optional[Tuple] = None

        self.add_css_class("properties-panel")
        self.set_size_request(320, -1)

        # Header
        header = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=2)
        header.set_margin_start(16)
        header.set_margin_end(16)
        header.set_margin_top(12)
        header.set_margin_bottom(12)

        title = Gtk.Label(label="节点属性")
        title.set_halign(Gtk.Align.START)
        title.add_css_class("title-4")
        header.append(title)

        self.id_label = Gtk.Label(label="")
        self.id_label.set_halign(Gtk.Align.START)
        self.id_label.set_ellipsize(Pango.EllipsizeMode.END)
        self.id_label.add_css_class("dim-label")
        self.id_label.add_css_class("caption")
        header.append(self.id_label)

        self.append(header)
        self.append(Gtk.Separator(orientation=Gtk.Orientation.HORIZONTAL))

        scrolled = Gtk.ScrolledWindow()
        scrolled.set_vexpand(True)
        scrolled.set_policy(Gtk.PolicyType.NEVER, Gtk.PolicyType.AUTOMATIC)
        self.form = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=12)
        self.form.set_margin_start(16)
        self.form.set_margin_end(16)
        self.form.set_margin_top(16)
        self.form.set_margin_bottom(16)
        scrolled.set_child(self.form)
        self.append(scrolled)

        # Footer
        footer = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=8)
        footer.set_margin_start(16)
        footer.set_margin_end(16)
        footer.set_margin_top(8)
        footer.set_margin_bottom(12)

        done_btn = Gtk.Button(label="完成")
        done_btn.set_hexpand(True)
        done_btn.add_css_class("suggested-action")
        done_btn.connect("clicked", lambda b: self.controller.select(None))
        footer.append(done_btn)

        delete_btn = Gtk.Button()
        delete_btn.set_icon_name("user-trash-symbolic")
        delete_btn.set_tooltip_text("删除节点")
        delete_btn.add_css_class("destructive-action")
        delete_btn.connect("clicked", self._on_delete_clicked)
        footer.append(delete_btn)

        self.append(footer)

    # ==================== Refresh ====================

    @staticmethod
    def _shape(node: Node) -> Tuple:
        """Identity of what the form shows; a change forces a rebuild."""
        if isinstance(node, BranchNode):
            children = tuple(c.id for c in node.branches)
        elif isinstance(node, BlockNode):
            children = tuple(c.id for c in node.side_events)
        else:
            children = ()
        return node.id, children

    def refresh(self):
        """Rebuild the form when the selected node or its children changed."""
        node = self.controller.selected_node()
        if node is None:
            self._shown = None
            self._clear_form()
            return
        shape = self._shape(node)
        if shape == self._shown:
            return
        self._shown = shape
        self._build_form(node)

    def _clear_form(self):
        child = self.form.get_first_child()
        while child is not None:
            nxt = child.get_next_sibling()
            self.form.remove(child)
            child = nxt

    def _selected(self) -> Optional[Node]:
        return self.controller.selected_node()

    def _update_field(self, field: str, value):
        node = self._selected()
        if node is not None and getattr(node, field) != value:
            self.controller.update_node(replace(node, **{field: value}))

    def _entry(self, text: Optional[str], placeholder: str = "") -> Gtk.Entry:
        entry = Gtk.Entry()
        entry.set_text(text or "")
        entry.set_placeholder_text(placeholder)
        return entry

    def _field(self, label: str, field: str, value: Optional[str], placeholder: str = ""):
        self.form.append(_section_label(label))
        entry = self._entry(value, placeholder)
        entry.connect("changed", lambda e: self._update_field(field, e.get_text()))
        self.form.append(entry)

    # ==================== Form ====================

    def _build_form(self, node: Node):
        self._clear_form()
        self.id_label.set_label(f"ID: {node.id}")

        self._field(title_label(node.kind), "title", node.title)
        self._field(subtitle_label(node.kind), "subtitle", node.subtitle)

        if isinstance(node, BranchNode):
            self._build_branch_section(node)
        if isinstance(node, BlockNode):
            self._build_block_section(node)

        if not isinstance(node, BranchNode):
            self._field("持续时间", "duration", node.duration, "例如: 30 mins")

        if isinstance(node, LeafNode):
            self._build_color_picker(node)

        if not isinstance(node, BranchNode):
            dashed = Gtk.CheckButton(label="使用虚线连接 (通勤/移动)")
            dashed.set_active(node.dashed)
            dashed.connect("toggled", lambda b: self._update_field("dashed", b.get_active()))
            self.form.append(dashed)

    def _build_branch_section(self, node: BranchNode):
        self.form.append(Gtk.Separator(orientation=Gtk.Orientation.HORIZONTAL))
        self.form.append(_section_label(f"并行任务数量  {len(node.branches)}"))

        counts = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL)
        counts.add_css_class("linked")
        group: Optional[Gtk.ToggleButton] = None
        for count in (2, 3):
            button = Gtk.ToggleButton(label=str(count))
            button.set_hexpand(True)
            if group is not None:
                button.set_group(group)
            group = group or button
            button.set_active(len(node.branches) == count)
            button.connect("toggled", self._on_branch_count_toggled, node.id, count)
            counts.append(button)
        self.form.append(counts)

        for index, child in enumerate(node.branches):
            frame = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=6)
            frame.add_css_class("card")
            frame.set_margin_top(4)
            for field, placeholder in (("title", "任务标题"), ("subtitle", "描述"),
                                       ("duration", "时长 (例如 15 mins)")):
                entry = self._entry(getattr(child, field), placeholder)
                entry.set_margin_start(8)
                entry.set_margin_end(8)
                entry.connect("changed", self._on_branch_child_changed, node.id, index, field)
                frame.append(entry)
            self.form.append(frame)

    def _build_block_section(self, node: BlockNode):
        self.form.append(Gtk.Separator(orientation=Gtk.Orientation.HORIZONTAL))
        self.form.append(_section_label("插入事件"))

        buttons = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=8, homogeneous=True)
        for kind, label in ((NodeKind.TIME, "+ 时间点"), (NodeKind.TASK, "+ 任务")):
            button = Gtk.Button(label=label)
            button.connect("clicked", lambda b, k=kind: self.controller.add_side_event(node.id, k))
            buttons.append(button)
        self.form.append(buttons)

        if not node.side_events:
            empty = Gtk.Label(label="暂无插入事件")
            empty.add_css_class("dim-label")
            self.form.append(empty)

        for event in node.side_events:
            row = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=6)
            text = f"{event.title} {event.subtitle or ''}".strip()
            placeholder = "例如: 12:00 吃饭" if event.kind == NodeKind.TIME else "任务内容..."
            entry = self._entry(text, placeholder)
            entry.set_hexpand(True)
            entry.connect("activate", self._on_side_event_commit, node.id, event.id)
            focus = Gtk.EventControllerFocus()
            focus.connect("leave", lambda c, e=entry, eid=event.id: self._on_side_event_commit(e, node.id, eid))
            entry.add_controller(focus)
            row.append(entry)

            remove = Gtk.Button()
            remove.set_icon_name("list-remove-symbolic")
            remove.set_tooltip_text("删除")
            remove.add_css_class("flat")
            remove.connect("clicked", lambda b, eid=event.id: self.controller.remove_side_event(node.id, eid))
            row.append(remove)
            self.form.append(row)

    def _build_color_picker(self, node: LeafNode):
        self.form.append(_section_label("样式风格"))
        row = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=8)
        for color in PICKER_COLORS:
            swatch = Gtk.Button()
            swatch.set_size_request(32, 32)
            swatch.add_css_class("swatch")
            swatch.add_css_class(f"tool-{color}")
            if node.color == color:
                swatch.add_css_class("swatch-selected")
            swatch.connect("clicked", self._on_color_clicked, color)
            row.append(swatch)
        self.form.append(row)

    # ==================== Handlers ====================

    def _on_color_clicked(self, button, color: str):
        self._update_field("color", color)
        self._shown = None
        self.refresh()

    def _on_branch_count_toggled(self, button, branch_id: str, count: int):
        if button.get_active():
            self.controller.set_branch_count(branch_id, count)

    def _on_branch_child_changed(self, entry, branch_id: str, index: int, field: str):
        self.controller.update_branch_child(branch_id, index, **{field: entry.get_text()})

    def _on_side_event_commit(self, entry, block_id: str, event_id: str):
        self.controller.edit_side_event_text(block_id, event_id, entry.get_text())

    def _on_delete_clicked(self, button):
        node = self._selected()
        if node is not None:
            self.controller.delete_node(node.id)
