"""Schedule node model and its persisted wire format.

A schedule is an ordered tuple of nodes. Three node shapes exist:

- `LeafNode` for time markers, tasks and places.
- `BranchNode`, whose `branches` are leaf nodes running in parallel.
- `BlockNode`, a resizable time span whose `side_events` are leaf nodes.

Children are always `LeafNode` instances, so nesting is exactly one level
deep. All node classes are frozen; edits produce new objects via
`dataclasses.replace`.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union


class NodeKind(str, Enum):
    """Discriminant for the node variants."""
    TIME = "time"
    TASK = "task"
    PLACE = "place"
    BRANCH = "branch"
    BLOCK = "block"


LEAF_KINDS = frozenset({NodeKind.TIME, NodeKind.TASK, NodeKind.PLACE})


@dataclass(frozen=True)
class _BaseNode:
    id: str
    title: str
    subtitle: Optional[str] = None
    duration: Optional[str] = None  # free-form label such as "30 mins"
    icon: Optional[str] = None
    color: Optional[str] = None
    dashed: bool = False


@dataclass(frozen=True)
class LeafNode(_BaseNode):
    """A time, task or place entry with no children."""
    kind: NodeKind = NodeKind.TASK

    def __post_init__(self):
        kind = NodeKind(self.kind)
        if kind not in LEAF_KINDS:
            raise ValueError(f"LeafNode cannot have kind {kind.value!r}")
        object.__setattr__(self, "kind", kind)


def _leaf_tuple(children: Iterable[Any], owner: str) -> Tuple[LeafNode, ...]:
    items = tuple(children)
    for child in items:
        if not isinstance(child, LeafNode):
            raise TypeError(f"{owner} children must be LeafNode, got {type(child).__name__}")
    return items


@dataclass(frozen=True)
class BranchNode(_BaseNode):
    """A group of leaf activities that happen concurrently."""
    branches: Tuple[LeafNode, ...] = ()
    kind: NodeKind = field(default=NodeKind.BRANCH, init=False)

    def __post_init__(self):
        object.__setattr__(self, "branches", _leaf_tuple(self.branches, "BranchNode"))


@dataclass(frozen=True)
class BlockNode(_BaseNode):
    """A time span that can host interrupting side events."""
    side_events: Tuple[LeafNode, ...] = ()
    custom_width: Optional[float] = None
    custom_height: Optional[float] = None
    kind: NodeKind = field(default=NodeKind.BLOCK, init=False)

    def __post_init__(self):
        object.__setattr__(self, "side_events", _leaf_tuple(self.side_events, "BlockNode"))


Node = Union[LeafNode, BranchNode, BlockNode]
NodeSeq = Tuple[Node, ...]


def children_of(node: Node) -> Tuple[LeafNode, ...]:
    """Return the nested children of a node (empty for leaves)."""
    if isinstance(node, BranchNode):
        return node.branches
    if isinstance(node, BlockNode):
        return node.side_events
    return ()


# ==================== Wire Format ====================

_OPTIONAL_TEXT = (
    ("subtitle", "subtitle"),
    ("duration", "duration"),
    ("icon", "icon"),
    ("color", "color"),
)


def node_to_dict(node: Node) -> Dict[str, Any]:
    """Serialize a node to its camelCase JSON-ready dict."""
    data: Dict[str, Any] = {
        "id": node.id,
        "type": node.kind.value,
        "title": node.title,
    }
    for attr, key in _OPTIONAL_TEXT:
        value = getattr(node, attr)
        if value is not None:
            data[key] = value
    if node.dashed:
        data["isDashedConnection"] = True

    if isinstance(node, BranchNode):
        data["branches"] = [node_to_dict(child) for child in node.branches]
    elif isinstance(node, BlockNode):
        data["sideEvents"] = [node_to_dict(child) for child in node.side_events]
        if node.custom_width is not None:
            data["customWidth"] = node.custom_width
        if node.custom_height is not None:
            data["customHeight"] = node.custom_height
    return data


def _base_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    node_id = data.get("id")
    title = data.get("title")
    if not isinstance(node_id, str) or not node_id:
        raise ValueError(f"Node id must be a non-empty string, got {node_id!r}")
    if not isinstance(title, str):
        raise ValueError(f"Node {node_id!r} has no title")
    fields = {"id": node_id, "title": title, "dashed": bool(data.get("isDashedConnection", False))}
    for attr, key in _OPTIONAL_TEXT:
        value = data.get(key)
        if value is not None and not isinstance(value, str):
            raise ValueError(f"Node {node_id!r} field {key!r} must be text")
        fields[attr] = value
    return fields


def _optional_number(data: Dict[str, Any], key: str) -> Optional[float]:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number, got {value!r}")
    return value


def _leaf_from_dict(data: Dict[str, Any]) -> LeafNode:
    node = node_from_dict(data)
    if not isinstance(node, LeafNode):
        raise ValueError(f"Nested node {node.id!r} must be a leaf, got {node.kind.value!r}")
    return node


def node_from_dict(data: Any) -> Node:
    """Deserialize a node. Raises ValueError on malformed input."""
    if not isinstance(data, dict):
        raise ValueError(f"Node must be an object, got {type(data).__name__}")
    try:
        kind = NodeKind(data.get("type"))
    except ValueError:
        raise ValueError(f"Unknown node type {data.get('type')!r}") from None

    fields = _base_fields(data)
    if kind == NodeKind.BRANCH:
        children = data.get("branches", [])
        if not isinstance(children, list):
            raise ValueError("branches must be a list")
        return BranchNode(branches=tuple(_leaf_from_dict(c) for c in children), **fields)
    if kind == NodeKind.BLOCK:
        children = data.get("sideEvents", [])
        if not isinstance(children, list):
            raise ValueError("sideEvents must be a list")
        return BlockNode(
            side_events=tuple(_leaf_from_dict(c) for c in children),
            custom_width=_optional_number(data, "customWidth"),
            custom_height=_optional_number(data, "customHeight"),
            **fields,
        )
    return LeafNode(kind=kind, **fields)


@dataclass(frozen=True)
class Layout:
    """A named schedule."""
    id: str
    name: str
    nodes: NodeSeq = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "nodes": [node_to_dict(n) for n in self.nodes],
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Layout":
        if not isinstance(data, dict):
            raise ValueError("Layout must be an object")
        layout_id = data.get("id")
        name = data.get("name")
        nodes = data.get("nodes", [])
        if not isinstance(layout_id, str) or not layout_id:
            raise ValueError(f"Layout id must be a non-empty string, got {layout_id!r}")
        if not isinstance(name, str):
            raise ValueError(f"Layout {layout_id!r} has no name")
        if not isinstance(nodes, list):
            raise ValueError(f"Layout {layout_id!r} nodes must be a list")
        return cls(id=layout_id, name=name, nodes=tuple(node_from_dict(n) for n in nodes))


@dataclass(frozen=True)
class AppData:
    """The persisted root: every layout plus the active layout id."""
    layouts: Tuple[Layout, ...]
    active_layout_id: str

    def active_layout(self) -> Layout:
        """Return the active layout, or the first one if the id is stale."""
        for layout in self.layouts:
            if layout.id == self.active_layout_id:
                return layout
        return self.layouts[0]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "layouts": [layout.to_dict() for layout in self.layouts],
            "activeLayoutId": self.active_layout_id,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Any) -> "AppData":
        if not isinstance(data, dict):
            raise ValueError("App data must be an object")
        raw_layouts = data.get("layouts")
        if not isinstance(raw_layouts, list) or not raw_layouts:
            raise ValueError("App data has no layouts")
        layouts: List[Layout] = [Layout.from_dict(item) for item in raw_layouts]

        active_id = data.get("activeLayoutId")
        if not isinstance(active_id, str) or not any(l.id == active_id for l in layouts):
            active_id = layouts[0].id
        return cls(layouts=tuple(layouts), active_layout_id=active_id)

    @classmethod
    def from_json(cls, text: str) -> "AppData":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValueError(f"App data is not valid JSON: {exc}") from exc
        return cls.from_dict(data)
