"""Drag-and-drop protocol for reordering, adding and trashing nodes.

The coordinator is a small state machine::

    Idle -> Dragging -> (Hovering | OverTrash) -> Idle

Each state is its own immutable class, so a drag can never be both over the
trash zone and hovering a node. Dropping always returns the machine to
`Idle`; the actual tree change is delegated to the `on_drop_node` /
`on_delete_node` callbacks owned by the editor controller.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Union

from flowday.models import NodeKind
from flowday.tree import DropPosition

logger = logging.getLogger(__name__)

# Mime type the payload travels under on the native drag channel.
DRAG_MIME_TYPE = "application/x-flowday-node"


class DragSource(str, Enum):
    SIDEBAR = "sidebar"
    CANVAS = "canvas"


@dataclass(frozen=True)
class DragPayload:
    """What is being dragged: a palette tool or an existing canvas node."""
    source: DragSource
    kind: NodeKind
    node_id: Optional[str] = None

    def to_json(self) -> str:
        data = {"source": self.source.value, "type": self.kind.value}
        if self.node_id is not None:
            data["id"] = self.node_id
        return json.dumps(data)

    @classmethod
    def from_json(cls, text: Optional[str]) -> Optional["DragPayload"]:
        """Parse a payload read back from the drag channel, or None."""
        if not text:
            return None
        try:
            data = json.loads(text)
            source = DragSource(data["source"])
            kind = NodeKind(data["type"])
        except (json.JSONDecodeError, KeyError, TypeError, ValueError):
            logger.debug("Ignoring unreadable drag payload %r", text)
            return None
        node_id = data.get("id")
        if source == DragSource.CANVAS and not isinstance(node_id, str):
            return None
        return cls(source=source, kind=kind, node_id=node_id if isinstance(node_id, str) else None)


def resolve_drop_position(pointer: float, zone_start: float, zone_extent: float) -> DropPosition:
    """Before the zone's midpoint means BEFORE, at or past it AFTER."""
    midpoint = zone_start + zone_extent / 2
    return DropPosition.BEFORE if pointer < midpoint else DropPosition.AFTER


# ==================== States ====================

@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Dragging:
    payload: DragPayload


@dataclass(frozen=True)
class Hovering:
    payload: DragPayload
    target_id: str
    position: DropPosition


@dataclass(frozen=True)
class OverTrash:
    payload: DragPayload


DragState = Union[Idle, Dragging, Hovering, OverTrash]


class DropResult(Enum):
    IGNORED = "ignored"
    INSERTED = "inserted"
    DELETED = "deleted"


class DragDropCoordinator:
    """Tracks the in-flight drag and resolves what a drop does."""

    def __init__(self):
        self.state: DragState = Idle()

        # Callbacks
        self.on_drop_node: Optional[Callable[[DragPayload, Optional[str], DropPosition], None]] = None
        self.on_delete_node: Optional[Callable[[str], None]] = None
        self.on_state_changed: Optional[Callable[[DragState], None]] = None

    @property
    def is_dragging(self) -> bool:
        return not isinstance(self.state, Idle)

    @property
    def payload(self) -> Optional[DragPayload]:
        return self.payload_of(self.state)

    def _set_state(self, state: DragState):
        if state != self.state:
            self.state = state
            if self.on_state_changed:
                self.on_state_changed(state)

    def begin_drag(self, payload: DragPayload) -> str:
        """Start a drag and return the text to put on the drag channel."""
        self._set_state(Dragging(payload))
        return payload.to_json()

    def hover_node(self, target_id: str, position: DropPosition):
        """Pointer is over a node's drop zone."""
        if isinstance(self.state, Idle):
            return
        self._set_state(Hovering(self.state.payload, target_id, DropPosition(position)))

    def hover_canvas(self):
        """Pointer is over empty canvas space."""
        if isinstance(self.state, Idle):
            return
        self._set_state(Dragging(self.state.payload))

    def enter_trash(self):
        if isinstance(self.state, Idle):
            return
        self._set_state(OverTrash(self.state.payload))

    def leave_trash(self):
        if isinstance(self.state, OverTrash):
            self._set_state(Dragging(self.state.payload))

    def cancel(self):
        """Drag ended without a drop."""
        self._set_state(Idle())

    def drop(self, channel_data: Optional[str] = None) -> DropResult:
        """Finish the drag.

        The payload is read from `channel_data` when given (the text that came
        back through the platform drag channel), otherwise from the state.
        The machine is back in `Idle` afterwards whatever the outcome.
        """
        state = self.state
        self._set_state(Idle())

        payload = DragPayload.from_json(channel_data) if channel_data is not None else self.payload_of(state)
        if payload is None:
            return DropResult.IGNORED

        if isinstance(state, OverTrash):
            if payload.source == DragSource.CANVAS and payload.node_id:
                if self.on_delete_node:
                    self.on_delete_node(payload.node_id)
                return DropResult.DELETED
            logger.debug("Ignoring palette tool dropped on trash")
            return DropResult.IGNORED

        if isinstance(state, Hovering):
            if payload.node_id == state.target_id:
                return DropResult.IGNORED
            if self.on_drop_node:
                self.on_drop_node(payload, state.target_id, state.position)
            return DropResult.INSERTED

        # Empty canvas: only palette tools may append.
        if payload.source == DragSource.SIDEBAR:
            if self.on_drop_node:
                self.on_drop_node(payload, None, DropPosition.APPEND)
            return DropResult.INSERTED
        logger.debug("Ignoring canvas node %s dropped on empty space", payload.node_id)
        return DropResult.IGNORED

    @staticmethod
    def payload_of(state: DragState) -> Optional[DragPayload]:
        return getattr(state, "payload", None)
