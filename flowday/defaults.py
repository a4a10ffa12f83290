"""Built-in sample layouts."""

from flowday.models import AppData, BlockNode, BranchNode, Layout, LeafNode, NodeKind

WEEKDAY_NODES = (
    LeafNode(id="1", kind=NodeKind.TIME, title="08:00", subtitle="起床",
             color="rose", duration="0 MINS"),
    BranchNode(
        id="2",
        title="晨间惯例",
        branches=(
            LeafNode(id="2a", kind=NodeKind.TASK, title="洗漱", subtitle="洗漱",
                     icon="Mail", color="white", duration="15 mins"),
            LeafNode(id="2b", kind=NodeKind.TASK, title="刷早报", subtitle="刷早报",
                     icon="Layout", color="white", duration="10 mins"),
        ),
    ),
    BlockNode(
        id="block_1",
        title="深度工作",
        subtitle="专注不受打扰的时间",
        color="violet",
        duration="60 mins",
        icon="Hourglass",
        side_events=(
            LeafNode(id="side_1", kind=NodeKind.TIME, title="11:10", subtitle="点外卖",
                     color="rose"),
        ),
    ),
    LeafNode(id="task_lunch", kind=NodeKind.TASK, title="中饭", subtitle="",
             icon="Square", color="white", duration="30 mins"),
    BlockNode(id="block_2", title="饭后消遣", subtitle="放松休息时间", color="violet",
              duration="60 mins", icon="Hourglass"),
    LeafNode(id="place_home", kind=NodeKind.PLACE, title="家", subtitle="开始通勤 (地铁)",
             color="yellow", dashed=True, duration="5 mins"),
    LeafNode(id="place_office", kind=NodeKind.PLACE, title="公司", subtitle="到达办公室",
             color="teal", duration="45 mins"),
)

WEEKEND_NODES = (
    LeafNode(id="w1", kind=NodeKind.TIME, title="10:00", subtitle="自然醒",
             color="teal", duration="0 MINS"),
    LeafNode(id="w2", kind=NodeKind.TASK, title="Brunch", subtitle="自制早午餐",
             icon="Coffee", color="white", duration="45 mins"),
    BlockNode(
        id="w_block_1",
        title="户外活动",
        subtitle="爬山 / 逛公园",
        color="yellow",
        duration="3 hours",
        icon="MapPin",
        side_events=(
            LeafNode(id="w_side_1", kind=NodeKind.TIME, title="14:00", subtitle="喝咖啡",
                     color="rose"),
        ),
    ),
    LeafNode(id="w3", kind=NodeKind.TIME, title="18:00", subtitle="聚餐",
             color="rose", duration="0 MINS"),
    BlockNode(id="w_block_2", title="电影之夜", subtitle="Netflix / 投影仪", color="violet",
              duration="2 hours", icon="Film"),
)

DEFAULT_LAYOUTS = (
    Layout(id="layout_weekday", name="工作日 (Weekday)", nodes=WEEKDAY_NODES),
    Layout(id="layout_weekend", name="周末 (Weekend)", nodes=WEEKEND_NODES),
)


def default_app_data() -> AppData:
    """The state used on first start and after a reset."""
    return AppData(layouts=DEFAULT_LAYOUTS, active_layout_id=DEFAULT_LAYOUTS[0].id)
