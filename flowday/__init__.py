"""FlowDay - a visual day-schedule flow editor."""

__version__ = "1.0.0"
__app_id__ = "io.github.flowday.FlowDay"
