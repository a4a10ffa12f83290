"""Pure operations on a schedule's node sequence.

Every function takes a sequence (or a container node) and returns a new one;
inputs are never mutated and untouched nodes keep their identity. Unknown ids
and anchors never raise: updates and deletes become no-ops, inserts append.
"""

import logging
import re
from dataclasses import replace
from enum import Enum
from typing import Iterator, Optional, Tuple

from flowday.factory import IdSource, create_branch_child, create_side_event
from flowday.models import (
    BlockNode, BranchNode, LeafNode, Node, NodeKind, NodeSeq, children_of,
)

logger = logging.getLogger(__name__)

_TIME_PREFIX = re.compile(r"^(\d{1,2}[:：]\d{2})\s*(.*)$", re.DOTALL)


class DropPosition(str, Enum):
    """Where an inserted node lands relative to its anchor."""
    BEFORE = "before"
    AFTER = "after"
    APPEND = "append"


# ==================== Lookup ====================

def iter_nodes(seq: NodeSeq) -> Iterator[Node]:
    """Yield every node, top level first then its children, in order."""
    for node in seq:
        yield node
        yield from children_of(node)


def find_node(seq: NodeSeq, node_id: str) -> Optional[Node]:
    """Find a node anywhere in the tree."""
    for node in iter_nodes(seq):
        if node.id == node_id:
            return node
    return None


def top_level_index(seq: NodeSeq, node_id: Optional[str]) -> int:
    """Index of a top-level node, or -1."""
    if node_id is None:
        return -1
    for index, node in enumerate(seq):
        if node.id == node_id:
            return index
    return -1


def has_unique_ids(seq: NodeSeq) -> bool:
    seen = set()
    for node in iter_nodes(seq):
        if node.id in seen:
            return False
        seen.add(node.id)
    return True


# ==================== Update / Delete / Insert ====================

def _replace_child(children: Tuple[LeafNode, ...], updated: Node) -> Optional[Tuple[LeafNode, ...]]:
    for index, child in enumerate(children):
        if child.id == updated.id:
            if not isinstance(updated, LeafNode) or updated.kind != child.kind:
                logger.debug("Refusing to change nested node %s into %s", child.id, updated.kind.value)
                return None
            return children[:index] + (updated,) + children[index + 1:]
    return None


def update_node(seq: NodeSeq, updated: Node) -> NodeSeq:
    """Replace the node whose id matches `updated.id`.

    Top-level nodes are searched first, then the children of every branch and
    block. A node's kind cannot change, so an update carrying a different kind
    is ignored, as is an unknown id.
    """
    for index, node in enumerate(seq):
        if node.id == updated.id:
            if node.kind != updated.kind:
                logger.debug("Refusing to change node %s from %s to %s",
                             node.id, node.kind.value, updated.kind.value)
                return seq
            return seq[:index] + (updated,) + seq[index + 1:]

    for index, node in enumerate(seq):
        if isinstance(node, BranchNode):
            children = _replace_child(node.branches, updated)
            if children is not None:
                return seq[:index] + (replace(node, branches=children),) + seq[index + 1:]
        elif isinstance(node, BlockNode):
            children = _replace_child(node.side_events, updated)
            if children is not None:
                return seq[:index] + (replace(node, side_events=children),) + seq[index + 1:]
    return seq


def delete_node(seq: NodeSeq, node_id: str) -> NodeSeq:
    """Remove the node with this id, wherever it sits in the tree."""
    changed = False
    result = []
    for node in seq:
        if node.id == node_id:
            changed = True
            continue
        if isinstance(node, BranchNode) and any(c.id == node_id for c in node.branches):
            node = replace(node, branches=tuple(c for c in node.branches if c.id != node_id))
            changed = True
        elif isinstance(node, BlockNode) and any(c.id == node_id for c in node.side_events):
            node = replace(node, side_events=tuple(c for c in node.side_events if c.id != node_id))
            changed = True
        result.append(node)
    return tuple(result) if changed else seq


def insert_node(seq: NodeSeq, node: Node, anchor_id: Optional[str],
                position: DropPosition) -> NodeSeq:
    """Insert a node at the top level relative to an anchor.

    `APPEND`, a missing anchor or an anchor that is not a top-level node all
    put the node at the end.
    """
    position = DropPosition(position)
    anchor = top_level_index(seq, anchor_id)
    if position == DropPosition.APPEND or anchor == -1:
        return seq + (node,)
    at = anchor if position == DropPosition.BEFORE else anchor + 1
    return seq[:at] + (node,) + seq[at:]


def move_node(seq: NodeSeq, node_id: str, anchor_id: Optional[str],
              position: DropPosition) -> NodeSeq:
    """Reorder a top-level node: delete it, then insert it at the new spot."""
    if node_id == anchor_id:
        return seq
    index = top_level_index(seq, node_id)
    if index == -1:
        logger.debug("Ignoring move of unknown node %s", node_id)
        return seq
    node = seq[index]
    remaining = seq[:index] + seq[index + 1:]
    return insert_node(remaining, node, anchor_id, position)


# ==================== Branch Children ====================

def set_branch_count(branch: BranchNode, count: int, ids: IdSource) -> BranchNode:
    """Grow a branch with default tasks or truncate it to `count` children."""
    branches = branch.branches
    if count > len(branches):
        stamp = ids.next_stamp()
        added = tuple(create_branch_child(branch.id, i, stamp) for i in range(len(branches), count))
        return replace(branch, branches=branches + added)
    if count < len(branches):
        return replace(branch, branches=branches[:max(count, 0)])
    return branch


def update_branch_child(branch: BranchNode, index: int, **fields) -> BranchNode:
    """Edit fields of the child at `index`; out-of-range indexes are ignored."""
    if not 0 <= index < len(branch.branches):
        return branch
    current = branch.branches[index]
    if all(getattr(current, name) == value for name, value in fields.items()):
        return branch
    child = replace(current, **fields)
    return replace(branch, branches=branch.branches[:index] + (child,) + branch.branches[index + 1:])


# ==================== Block Side Events ====================

def add_side_event(block: BlockNode, kind: NodeKind, ids: IdSource) -> Tuple[BlockNode, LeafNode]:
    """Append a default side event; returns the new block and the event."""
    event = create_side_event(block.id, kind, ids.next_stamp())
    return replace(block, side_events=block.side_events + (event,)), event


def remove_side_event(block: BlockNode, event_id: str) -> BlockNode:
    if not any(e.id == event_id for e in block.side_events):
        return block
    return replace(block, side_events=tuple(e for e in block.side_events if e.id != event_id))


def split_time_label(raw: str, kind: NodeKind) -> Tuple[str, str]:
    """Split "11:10 lunch" into ("11:10", "lunch") for time events.

    Anything else, and any text without a leading HH:MM, becomes the whole
    title with an empty subtitle.
    """
    if NodeKind(kind) == NodeKind.TIME:
        match = _TIME_PREFIX.match(raw)
        if match:
            return match.group(1), match.group(2)
    return raw, ""


def edit_side_event_text(block: BlockNode, event_id: str, raw: str) -> BlockNode:
    """Set a side event's title and subtitle from one line of text."""
    events = []
    changed = False
    for event in block.side_events:
        if event.id == event_id:
            title, subtitle = split_time_label(raw, event.kind)
            if (event.title, event.subtitle or "") != (title, subtitle):
                event = replace(event, title=title, subtitle=subtitle)
                changed = True
        events.append(event)
    if not changed:
        return block
    return replace(block, side_events=tuple(events))
