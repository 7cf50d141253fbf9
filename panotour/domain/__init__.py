"""
领域模型

Tour → Scene → Hotspot，以及只读的查找/导航操作
"""

from panotour.domain.navigation import (
    default_scene,
    find_scene,
    next_scene,
    previous_scene,
    scene_index,
)
from panotour.domain.tour import (
    HOTSPOT_CLASSES,
    AudioHotspot,
    Hotspot,
    HotspotBase,
    ImageHotspot,
    InfoHotspot,
    InitialView,
    LinkHotspot,
    MediaHotspot,
    Position,
    Scene,
    SceneHotspot,
    SceneImage,
    Tour,
    TourSettings,
    VideoHotspot,
)

__all__ = [
    "HOTSPOT_CLASSES",
    "AudioHotspot",
    "Hotspot",
    "HotspotBase",
    "ImageHotspot",
    "InfoHotspot",
    "InitialView",
    "LinkHotspot",
    "MediaHotspot",
    "Position",
    "Scene",
    "SceneHotspot",
    "SceneImage",
    "Tour",
    "TourSettings",
    "VideoHotspot",
    "default_scene",
    "find_scene",
    "next_scene",
    "previous_scene",
    "scene_index",
]
