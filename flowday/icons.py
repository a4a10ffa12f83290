"""Built-in glyphs, colors and labels for FlowDay nodes."""

from typing import Tuple

from flowday.models import NodeKind

# Icon keys as stored on nodes, drawn as Unicode symbols
ICONS = {
    "Square": "☐",
    "CheckSquare": "☑",
    "Hourglass": "⌛",
    "Mail": "✉",
    "Layout": "▦",
    "Coffee": "☕",
    "Film": "🎞",
    "MapPin": "📍",
    "Clock": "🕒",
    "GitFork": "⑂",
    "Trash": "🗑",
}

# Color keys as stored on nodes, as RGB in the 0..1 range cairo expects
COLORS = {
    "white": (0.886, 0.910, 0.941),
    "rose": (0.957, 0.247, 0.369),
    "teal": (0.176, 0.831, 0.749),
    "yellow": (0.980, 0.800, 0.082),
    "violet": (0.486, 0.227, 0.929),
    "indigo": (0.388, 0.400, 0.945),
    "gradient": (0.459, 0.427, 0.871),
}

DEFAULT_COLOR = (0.420, 0.447, 0.502)

# Colors offered in the properties panel for leaf nodes
PICKER_COLORS = ("white", "rose", "teal", "yellow", "gradient")

# Palette tools: kind, label, glyph, color key
PALETTE_TOOLS = (
    (NodeKind.TIME, "时间", ICONS["Clock"], "rose"),
    (NodeKind.TASK, "任务", ICONS["CheckSquare"], "teal"),
    (NodeKind.PLACE, "地点", ICONS["MapPin"], "yellow"),
    (NodeKind.BRANCH, "并行", ICONS["GitFork"], "indigo"),
    (NodeKind.BLOCK, "时间段", ICONS["Hourglass"], "violet"),
)

TITLE_LABELS = {
    NodeKind.TIME: "时间点",
    NodeKind.BRANCH: "分组名称",
    NodeKind.BLOCK: "专注主题",
}

SUBTITLE_LABELS = {
    NodeKind.TIME: "活动名称",
    NodeKind.BLOCK: "详细目标",
}


def get_icon(name: str) -> str:
    """Get a glyph by icon key; unknown keys draw nothing."""
    return ICONS.get(name or "", "")


def get_color(name: str) -> Tuple[float, float, float]:
    """Get an RGB triple by color key."""
    return COLORS.get(name or "", DEFAULT_COLOR)


def title_label(kind: NodeKind) -> str:
    return TITLE_LABELS.get(kind, "标题")


def subtitle_label(kind: NodeKind) -> str:
    return SUBTITLE_LABELS.get(kind, "副标题 / 描述")
