"""Fresh node construction with default field values."""

import time
from typing import Callable, Optional

from flowday.models import BlockNode, BranchNode, LeafNode, Node, NodeKind


class IdSource:
    """Time-based id generator.

    Ids are millisecond timestamps, bumped when the clock has not advanced
    so that two ids handed out by the same source never collide.
    """

    def __init__(self, clock: Optional[Callable[[], int]] = None):
        self._clock = clock or (lambda: time.time_ns() // 1_000_000)
        self._last = 0

    def next_stamp(self) -> int:
        stamp = int(self._clock())
        if stamp <= self._last:
            stamp = self._last + 1
        self._last = stamp
        return stamp

    def next_id(self) -> str:
        return str(self.next_stamp())


def create_node(kind: NodeKind, node_id: str) -> Node:
    """Build a new node of the given kind as dropped from the palette."""
    kind = NodeKind(kind)

    if kind == NodeKind.BLOCK:
        return BlockNode(
            id=node_id,
            title="新时间段",
            subtitle="专注任务...",
            color="violet",
            duration="60 mins",
            icon="Hourglass",
        )

    if kind == NodeKind.BRANCH:
        return BranchNode(
            id=node_id,
            title="并行组",
            subtitle="",
            branches=(
                LeafNode(id=f"{node_id}_1", kind=NodeKind.TASK, title="任务 A", subtitle="",
                         color="white", duration="15 mins", icon="Square"),
                LeafNode(id=f"{node_id}_2", kind=NodeKind.TASK, title="任务 B", subtitle="",
                         color="white", duration="15 mins", icon="Square"),
            ),
        )

    if kind == NodeKind.TIME:
        return LeafNode(id=node_id, kind=kind, title="00:00", subtitle="", color="rose")
    if kind == NodeKind.PLACE:
        return LeafNode(id=node_id, kind=kind, title="新节点", subtitle="", color="yellow")
    return LeafNode(id=node_id, kind=kind, title="新节点", subtitle="", color="white", icon="Square")


def create_branch_child(branch_id: str, index: int, stamp: int) -> LeafNode:
    """Default task added when a branch grows."""
    return LeafNode(
        id=f"{branch_id}_task_{stamp}_{index}",
        kind=NodeKind.TASK,
        title="主任务" if index == 0 else "并行任务",
        subtitle="任务描述...",
        color="white",
        duration="15 mins",
        icon="CheckSquare",
    )


def create_side_event(block_id: str, kind: NodeKind, stamp: int) -> LeafNode:
    """Default side event appended to a block."""
    kind = NodeKind(kind)
    node_id = f"{block_id}_side_{stamp}"
    if kind == NodeKind.TIME:
        return LeafNode(id=node_id, kind=kind, title="12:00", subtitle="事项...", color="rose")
    return LeafNode(id=node_id, kind=NodeKind.TASK, title="新任务", subtitle="", color="white",
                    duration="15 mins", icon="Square")
