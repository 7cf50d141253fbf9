"""
版本限额策略

Lite 版与无限制版的区别全部集中在 TierLimits 里，
校验引擎与服务层只读取注入的策略对象
"""

from dataclasses import dataclass, replace
from typing import FrozenSet, Optional

from panotour.core.config import Settings


SCENE_TYPES: FrozenSet[str] = frozenset(
    {"equirectangular", "cubemap", "multires", "flat", "little-planet"}
)
HOTSPOT_TYPES: FrozenSet[str] = frozenset(
    {"info", "link", "scene", "image", "video", "audio"}
)
ICONS: FrozenSet[str] = frozenset(
    {
        "info",
        "link",
        "arrow",
        "home",
        "star",
        "heart",
        "eye",
        "camera",
        "map-pin",
        "question",
    }
)
LOGO_POSITIONS: FrozenSet[str] = frozenset(
    {"top-left", "top-right", "bottom-left", "bottom-right"}
)


@dataclass(frozen=True)
class TierLimits:
    """版本限额（None 表示不限）"""

    name: str
    max_scenes: Optional[int]
    max_hotspots_per_scene: Optional[int]
    max_tours: Optional[int]
    scene_types: FrozenSet[str] = SCENE_TYPES
    hotspot_types: FrozenSet[str] = HOTSPOT_TYPES
    icons: FrozenSet[str] = ICONS
    autorotate_speed_min: float = 0.1
    autorotate_speed_max: float = 2.0
    fov_min: float = 30.0
    fov_max: float = 120.0

    def can_add_scene(self, current_count: int) -> bool:
        return self.max_scenes is None or current_count < self.max_scenes

    def can_add_hotspot(self, current_count: int) -> bool:
        return self.max_hotspots_per_scene is None or current_count < self.max_hotspots_per_scene

    def can_create_tour(self, current_count: int) -> bool:
        return self.max_tours is None or current_count < self.max_tours

    def is_hotspot_type_allowed(self, hotspot_type: str) -> bool:
        return hotspot_type in self.hotspot_types

    def clamp_autorotate_speed(self, speed: float) -> float:
        return min(max(speed, self.autorotate_speed_min), self.autorotate_speed_max)

    def clamp_fov(self, fov: float) -> float:
        return min(max(fov, self.fov_min), self.fov_max)


LITE_LIMITS = TierLimits(
    name="lite",
    max_scenes=5,
    max_hotspots_per_scene=5,
    max_tours=10,
    scene_types=frozenset({"equirectangular", "flat", "little-planet"}),
    hotspot_types=frozenset({"info", "link", "scene"}),
)

PRO_LIMITS = TierLimits(
    name="pro",
    max_scenes=None,
    max_hotspots_per_scene=None,
    max_tours=None,
)


def get_tier_limits(settings: Settings) -> TierLimits:
    """根据配置生成限额策略"""
    if settings.EDITION == "pro":
        return PRO_LIMITS
    return replace(
        LITE_LIMITS,
        max_scenes=settings.LITE_MAX_SCENES,
        max_hotspots_per_scene=settings.LITE_MAX_HOTSPOTS_PER_SCENE,
        max_tours=settings.LITE_MAX_TOURS,
    )
