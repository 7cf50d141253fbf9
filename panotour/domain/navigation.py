"""
场景查找与循环导航

只读操作，不修改 Tour
"""

from typing import Optional

from panotour.core.errors import EmptyTourError, NotFoundError
from panotour.domain.tour import Scene, Tour


def find_scene(tour: Tour, scene_id: str) -> Optional[Scene]:
    """按 id 查找场景，不存在时返回 None"""
    return tour.find_scene(scene_id)


def scene_index(tour: Tour, scene_id: str) -> int:
    """场景在顺序中的位置"""
    for index, scene in enumerate(tour.scenes):
        if scene.id == scene_id:
            return index
    raise NotFoundError(f"Scene not found: {scene_id}")


def default_scene(tour: Tour) -> Scene:
    """
    默认场景

    优先取 isDefault 标记的场景，否则取第一个场景
    """
    if not tour.scenes:
        raise EmptyTourError("Tour has no scenes")
    for scene in tour.scenes:
        if scene.is_default:
            return scene
    return tour.scenes[0]


def next_scene(tour: Tour, current_scene_id: str) -> Scene:
    """下一个场景（最后一个之后回到第一个）"""
    index = scene_index(tour, current_scene_id)
    return tour.scenes[(index + 1) % len(tour.scenes)]


def previous_scene(tour: Tour, current_scene_id: str) -> Scene:
    """上一个场景（第一个之前回到最后一个）"""
    index = scene_index(tour, current_scene_id)
    return tour.scenes[(index - 1) % len(tour.scenes)]
