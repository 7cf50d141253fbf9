"""
交互事件定义
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class AnalyticsEventType(str, Enum):
    """查看器交互事件类型"""
    SCENE_LOADED = "scene_loaded"
    SCENE_CHANGE = "scene_change"
    HOTSPOT_CLICK = "hotspot_click"
    FULLSCREEN_ENTER = "fullscreen_enter"
    FULLSCREEN_EXIT = "fullscreen_exit"
    AUTO_ROTATE_START = "auto_rotate_start"
    AUTO_ROTATE_STOP = "auto_rotate_stop"
    INTERACTION = "interaction"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class InteractionEvent(BaseModel):
    """单个交互事件"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        use_enum_values=True,
    )

    type: AnalyticsEventType
    tour_id: Optional[str] = None
    scene_id: Optional[str] = None
    hotspot_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)
    data: Dict[str, Any] = Field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
