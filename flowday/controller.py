"""Editor state owner.

`EditorController` holds the layouts, the working node sequence, selection,
the pending delete confirmation, the view mode and viewport. Widgets read
its attributes and call its methods; they never mutate state directly. Each
method triggers at most one tree operation and then notifies through the
`on_*` callbacks.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Optional, Tuple

from flowday import tree
from flowday.config import EditorConfig, VIEW_MAP, VIEW_VERTICAL, load_config
from flowday.database import Database
from flowday.defaults import default_app_data
from flowday.dragdrop import DragDropCoordinator, DragPayload, DragSource
from flowday.factory import IdSource, create_node
from flowday.geometry import Viewport
from flowday.models import (
    AppData, BlockNode, BranchNode, Layout, LeafNode, Node, NodeKind, NodeSeq,
)
from flowday.persistence import PersistenceAdapter
from flowday.tree import DropPosition

logger = logging.getLogger(__name__)


class EditorController:
    """Single owner of the editor's mutable state."""

    def __init__(self, db: Database, scheduler: Any,
                 config: Optional[EditorConfig] = None,
                 ids: Optional[IdSource] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.db = db
        self.scheduler = scheduler
        self.config = config or load_config(db)
        self.ids = ids or IdSource()

        self.persistence = PersistenceAdapter(
            db, scheduler, debounce_ms=self.config.save_debounce_ms, clock=clock
        )
        self.persistence.snapshot = self.app_data

        self.drag = DragDropCoordinator()
        self.drag.on_drop_node = self.drop_node
        self.drag.on_delete_node = self.delete_node

        data = default_app_data()
        self.layouts: Tuple[Layout, ...] = data.layouts
        self.active_layout_id: str = data.active_layout_id
        self.nodes: NodeSeq = data.active_layout().nodes

        self.selected_id: Optional[str] = None
        self.pending_delete_id: Optional[str] = None
        self._delete_generation = 0
        self._delete_timer: Any = None

        self.view_mode: str = self.config.default_view_mode
        self.viewport = Viewport()

        # Callbacks
        self.on_nodes_changed: Optional[Callable[[], None]] = None
        self.on_selection_changed: Optional[Callable[[Optional[str]], None]] = None
        self.on_layouts_changed: Optional[Callable[[], None]] = None
        self.on_view_changed: Optional[Callable[[], None]] = None
        self.on_pending_delete_changed: Optional[Callable[[Optional[str]], None]] = None

    # ==================== State Helpers ====================

    def start(self):
        """Load persisted data into the working state."""
        data = self.persistence.load()
        self._activate(data.layouts, data.active_layout().id)

    @property
    def active_layout(self) -> Layout:
        for layout in self.layouts:
            if layout.id == self.active_layout_id:
                return layout
        return self.layouts[0]

    def app_data(self) -> AppData:
        """The full record with the working sequence merged into its layout."""
        layouts = tuple(
            replace(l, nodes=self.nodes) if l.id == self.active_layout_id else l
            for l in self.layouts
        )
        return AppData(layouts=layouts, active_layout_id=self.active_layout_id)

    def selected_node(self) -> Optional[Node]:
        if self.selected_id is None:
            return None
        return tree.find_node(self.nodes, self.selected_id)

    def _activate(self, layouts: Tuple[Layout, ...], layout_id: str):
        self.layouts = layouts
        self.active_layout_id = layout_id
        self.nodes = self.active_layout.nodes
        self.active_layout_id = self.active_layout.id
        self._set_selection(None)
        self._notify(self.on_layouts_changed)
        self._notify(self.on_nodes_changed)

    def _commit(self, nodes: NodeSeq):
        if nodes is self.nodes:
            return
        self.nodes = nodes
        self.layouts = self.app_data().layouts
        self.persistence.mark_changed()
        self._notify(self.on_nodes_changed)

    @staticmethod
    def _notify(callback: Optional[Callable[[], None]]):
        if callback:
            callback()

    def _set_selection(self, node_id: Optional[str]):
        if node_id == self.selected_id:
            return
        self.selected_id = node_id
        self._disarm_delete()
        if self.on_selection_changed:
            self.on_selection_changed(node_id)

    # ==================== Node Callbacks ====================

    def select(self, node_id: Optional[str]):
        self._set_selection(node_id)

    def add_node(self, kind: NodeKind):
        """Palette click: insert after the selected top-level node, else append."""
        node = create_node(kind, self.ids.next_id())
        self._commit(tree.insert_node(self.nodes, node, self.selected_id, DropPosition.AFTER))
        self._set_selection(node.id)

    def update_node(self, node: Node):
        self._commit(tree.update_node(self.nodes, node))

    def delete_node(self, node_id: str):
        self._commit(tree.delete_node(self.nodes, node_id))
        if self.selected_id == node_id:
            self._set_selection(None)

    def drop_node(self, payload: DragPayload, target_id: Optional[str], position: DropPosition):
        """Insert a palette tool or move a canvas node relative to `target_id`."""
        if payload.node_id is not None and payload.node_id == target_id:
            return

        if payload.source == DragSource.SIDEBAR:
            node = create_node(payload.kind, self.ids.next_id())
            anchor = None if position == DropPosition.APPEND else target_id
            self._commit(tree.insert_node(self.nodes, node, anchor, position))
            self._set_selection(node.id)
        elif payload.node_id is not None:
            if position == DropPosition.APPEND:
                target_id = None
            self._commit(tree.move_node(self.nodes, payload.node_id, target_id, position))

    # ==================== Container Edits ====================

    def _find(self, node_id: str, cls):
        node = tree.find_node(self.nodes, node_id)
        return node if isinstance(node, cls) else None

    def _apply(self, old: Node, new: Node):
        if new is not old:
            self.update_node(new)

    def set_branch_count(self, branch_id: str, count: int):
        branch = self._find(branch_id, BranchNode)
        if branch is not None:
            self._apply(branch, tree.set_branch_count(branch, count, self.ids))

    def update_branch_child(self, branch_id: str, index: int, **fields):
        branch = self._find(branch_id, BranchNode)
        if branch is not None:
            self._apply(branch, tree.update_branch_child(branch, index, **fields))

    def add_side_event(self, block_id: str, kind: NodeKind) -> Optional[LeafNode]:
        block = self._find(block_id, BlockNode)
        if block is None:
            return None
        updated, event = tree.add_side_event(block, kind, self.ids)
        self._apply(block, updated)
        return event

    def remove_side_event(self, block_id: str, event_id: str):
        block = self._find(block_id, BlockNode)
        if block is not None:
            self._apply(block, tree.remove_side_event(block, event_id))

    def edit_side_event_text(self, block_id: str, event_id: str, raw: str):
        block = self._find(block_id, BlockNode)
        if block is not None:
            self._apply(block, tree.edit_side_event_text(block, event_id, raw))

    def resize_block(self, block_id: str, width: float, height: float):
        block = self._find(block_id, BlockNode)
        if block is not None and (block.custom_width, block.custom_height) != (width, height):
            self.update_node(replace(block, custom_width=width, custom_height=height))

    # ==================== Delete Confirmation ====================

    def _disarm_delete(self):
        self._delete_generation += 1
        if self._delete_timer is not None:
            self.scheduler.cancel(self._delete_timer)
            self._delete_timer = None
        if self.pending_delete_id is not None:
            self.pending_delete_id = None
            if self.on_pending_delete_changed:
                self.on_pending_delete_changed(None)

    def request_delete(self) -> bool:
        """Backspace on the selection: the first press arms, the second deletes."""
        node_id = self.selected_id
        if node_id is None:
            return False

        if self.pending_delete_id == node_id:
            self._disarm_delete()
            self.delete_node(node_id)
            return True

        self._disarm_delete()
        self.pending_delete_id = node_id
        generation = self._delete_generation
        self._delete_timer = self.scheduler.schedule(
            self.config.delete_confirm_ms, lambda: self._expire_delete(node_id, generation)
        )
        if self.on_pending_delete_changed:
            self.on_pending_delete_changed(node_id)
        return False

    def _expire_delete(self, node_id: str, generation: int):
        if generation != self._delete_generation or self.pending_delete_id != node_id:
            return
        self._delete_timer = None
        self.pending_delete_id = None
        if self.on_pending_delete_changed:
            self.on_pending_delete_changed(None)

    # ==================== Layouts ====================

    def switch_layout(self, layout_id: str):
        """Save the outgoing layout, then make `layout_id` active."""
        if layout_id == self.active_layout_id:
            return
        if not any(l.id == layout_id for l in self.layouts):
            logger.debug("Ignoring switch to unknown layout %s", layout_id)
            return

        self.persistence.save_now()
        layouts = self.app_data().layouts
        logger.info("Switching layout %s -> %s", self.active_layout_id, layout_id)
        self._activate(layouts, layout_id)
        # Persist the new active id once the user settles.
        self.persistence.mark_changed()

    def create_layout(self, name: str) -> Optional[Layout]:
        """Save the outgoing layout, then add and activate an empty one."""
        name = (name or "").strip()
        if not name:
            return None

        self.persistence.save_now()
        layout = Layout(id=f"layout_{self.ids.next_stamp()}", name=name, nodes=())
        self._activate(self.app_data().layouts + (layout,), layout.id)
        self.persistence.save_now()
        return layout

    def manual_save(self) -> bool:
        return self.persistence.save_now()

    def visibility_lost(self) -> bool:
        """Emergency save when the window is hidden or closing."""
        return self.persistence.emergency_save()

    def reset_data(self):
        """Drop all persisted state and restore the built-in layouts."""
        self.persistence.clear()
        data = default_app_data()
        self._activate(data.layouts, data.active_layout_id)

    # ==================== View ====================

    def set_view_mode(self, mode: str):
        if mode not in (VIEW_VERTICAL, VIEW_MAP):
            raise ValueError(f"Unknown view mode {mode!r}")
        self.view_mode = mode
        self.viewport = Viewport.identity()
        self._notify(self.on_view_changed)

    def toggle_view_mode(self):
        self.set_view_mode(VIEW_MAP if self.view_mode == VIEW_VERTICAL else VIEW_VERTICAL)

    def _set_viewport(self, viewport: Viewport):
        if viewport != self.viewport:
            self.viewport = viewport
            self._notify(self.on_view_changed)

    def wheel(self, dx: float, dy: float, pointer_x: float, pointer_y: float, zoom_modifier: bool):
        self._set_viewport(self.viewport.wheel(
            dx, dy, pointer_x, pointer_y, zoom_modifier,
            zoom_min=self.config.zoom_min, zoom_max=self.config.zoom_max,
            rate=self.config.wheel_zoom_rate,
        ))

    def pan_by(self, dx: float, dy: float):
        self._set_viewport(self.viewport.panned(dx, dy))

    def zoom_in(self):
        self._set_viewport(self.viewport.zoom_in(self.config.zoom_step, self.config.zoom_max))

    def zoom_out(self):
        self._set_viewport(self.viewport.zoom_out(self.config.zoom_step, self.config.zoom_min))

    def reset_view(self):
        self._set_viewport(Viewport.identity())
