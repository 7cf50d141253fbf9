"""
Tour → 引擎描述对象

字段名沿用常见全景引擎的配置约定（panorama / hotSpots / sceneId / hfov）
"""

from typing import Any, Callable, Dict, Optional

from panotour.domain.tour import HotspotBase, LinkHotspot, MediaHotspot, Scene, SceneHotspot, Tour

SCENE_FADE_DURATION_MS = 1000

ClickHandler = Callable[[], None]


def hotspot_descriptor(hotspot: HotspotBase, on_click: Optional[ClickHandler] = None) -> Dict[str, Any]:
    """
    热点描述

    引擎只区分两种标记：场景跳转（scene）与其他（info），
    具体行为由 on_click 回调决定
    """
    descriptor: Dict[str, Any] = {
        "id": hotspot.id,
        "pitch": hotspot.position.pitch,
        "yaw": hotspot.position.yaw,
        "type": "scene" if isinstance(hotspot, SceneHotspot) else "info",
        "text": hotspot.title or hotspot.text or "",
        "cssClass": f"panotour-hotspot panotour-hotspot-{hotspot.type}",
    }
    if hotspot.icon:
        descriptor["icon"] = hotspot.icon

    if isinstance(hotspot, SceneHotspot):
        descriptor["sceneId"] = hotspot.target_scene_id
        if hotspot.target_yaw is not None:
            descriptor["targetYaw"] = hotspot.target_yaw
        if hotspot.target_pitch is not None:
            descriptor["targetPitch"] = hotspot.target_pitch
    elif isinstance(hotspot, (LinkHotspot, MediaHotspot)):
        descriptor["URL"] = hotspot.url

    if on_click is not None:
        descriptor["clickHandler"] = on_click
    return descriptor


def scene_descriptor(scene: Scene) -> Dict[str, Any]:
    """场景描述：投影类型、图片来源、初始视角与热点"""
    descriptor: Dict[str, Any] = {
        "title": scene.title,
        "type": scene.type,
        "hotSpots": [hotspot_descriptor(hotspot) for hotspot in scene.hotspots],
    }
    if scene.image.url:
        descriptor["panorama"] = scene.image.url
    if scene.image.id:
        descriptor["panoramaId"] = scene.image.id

    view = scene.initial_view
    if view is not None:
        if view.yaw is not None:
            descriptor["yaw"] = view.yaw
        if view.pitch is not None:
            descriptor["pitch"] = view.pitch
        if view.fov is not None:
            descriptor["hfov"] = view.fov
    return descriptor


def build_engine_config(tour: Tour, first_scene: Scene) -> Dict[str, Any]:
    """引擎初始化配置"""
    ui = tour.settings.ui
    return {
        "default": {
            "firstScene": first_scene.id,
            "author": tour.title,
            "sceneFadeDuration": SCENE_FADE_DURATION_MS,
            "autoLoad": True,
            "showZoomCtrl": ui.show_zoom,
            "showFullscreenCtrl": ui.show_fullscreen,
            "compass": ui.show_compass,
            "orientationOnByDefault": tour.settings.mobile.gyro,
            "draggable": tour.settings.mobile.touch,
        },
        "scenes": {scene.id: scene_descriptor(scene) for scene in tour.scenes},
    }
