"""Editor configuration for FlowDay."""

import json
import logging
from dataclasses import dataclass, asdict, fields
from typing import Optional

from flowday.database import Database

logger = logging.getLogger(__name__)

CONFIG_SETTING_KEY = "editor_config"

VIEW_VERTICAL = "vertical"
VIEW_MAP = "map"


def _valid_value(value, default) -> bool:
    """Same type as the default; numbers must also be positive."""
    if isinstance(default, str):
        return isinstance(value, str)
    if isinstance(value, bool):
        return False
    if isinstance(default, int):
        return isinstance(value, int) and value > 0
    return isinstance(value, (int, float)) and value > 0


@dataclass
class EditorConfig:
    """Tunable editor behaviour, stored in the settings table."""
    save_debounce_ms: int = 1000
    delete_confirm_ms: int = 3000
    zoom_min: float = 0.2
    zoom_max: float = 3.0
    zoom_step: float = 0.1
    wheel_zoom_rate: float = 0.001
    default_view_mode: str = VIEW_VERTICAL

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, data: Optional[str]) -> "EditorConfig":
        if not data:
            return cls()
        try:
            d = json.loads(data)
            # Filter to only known fields to handle schema evolution
            known = {f.name for f in cls.__dataclass_fields__.values()}
            config = cls(**{k: v for k, v in d.items() if k in known})
        except (json.JSONDecodeError, TypeError, AttributeError):
            logger.warning("Ignoring malformed editor config")
            return cls()
        for f in fields(cls):
            if not _valid_value(getattr(config, f.name), f.default):
                logger.warning("Ignoring invalid %s=%r", f.name, getattr(config, f.name))
                setattr(config, f.name, f.default)
        if config.default_view_mode not in (VIEW_VERTICAL, VIEW_MAP):
            config.default_view_mode = VIEW_VERTICAL
        if config.zoom_min > config.zoom_max:
            logger.warning("Ignoring invalid zoom range %s..%s", config.zoom_min, config.zoom_max)
            config.zoom_min, config.zoom_max = cls.zoom_min, cls.zoom_max
        return config


def load_config(db: Database) -> EditorConfig:
    """Read the editor configuration, falling back to defaults."""
    raw = db.get_setting(CONFIG_SETTING_KEY)
    if raw is None:
        return EditorConfig()
    if not isinstance(raw, str):
        raw = json.dumps(raw)
    return EditorConfig.from_json(raw)


def save_config(db: Database, config: EditorConfig):
    """Persist the editor configuration."""
    db.set_setting(CONFIG_SETTING_KEY, config.to_json())
