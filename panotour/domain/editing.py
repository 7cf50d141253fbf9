"""
Tour 编辑操作

每个操作都在 Tour 文档的副本上修改，然后重新校验整个 Tour：
通过则返回新的 Tour，失败则抛出 TourValidationFailed，原 Tour 不受影响
"""

import copy
from typing import Any, Dict, Mapping, Optional, Sequence, Union

import structlog
from pydantic import BaseModel

from panotour.core.errors import NotFoundError, TourValidationFailed
from panotour.core.limits import LITE_LIMITS, TierLimits
from panotour.domain.tour import Tour
from panotour.validation import MediaResolver, ValidationError, ValidationErrorCode, validate_tour

logger = structlog.get_logger(__name__)

Draft = Union[BaseModel, Mapping[str, Any]]


def _as_document(value: Draft) -> Dict[str, Any]:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    return copy.deepcopy(dict(value))


def _scene_position(document: Dict[str, Any], scene_id: str) -> int:
    for index, scene in enumerate(document.get("scenes", [])):
        if scene.get("id") == scene_id:
            return index
    raise NotFoundError(f"Scene not found: {scene_id}")


def _hotspot_position(scene: Dict[str, Any], hotspot_id: str) -> int:
    for index, hotspot in enumerate(scene.get("hotspots", [])):
        if hotspot.get("id") == hotspot_id:
            return index
    raise NotFoundError(f"Hotspot not found: {hotspot_id}")


def commit(
    document: Mapping[str, Any],
    limits: TierLimits = LITE_LIMITS,
    media_resolver: Optional[MediaResolver] = None,
) -> Tour:
    """校验文档并生成新的 Tour"""
    errors = validate_tour(document, limits, media_resolver)
    if errors:
        logger.info("tour_validation_failed", error_count=len(errors))
        raise TourValidationFailed(errors)
    return Tour.from_document(document)


# ============================================================
# Scene 操作
# ============================================================

def add_scene(
    tour: Tour,
    scene: Draft,
    position: Optional[int] = None,
    limits: TierLimits = LITE_LIMITS,
    media_resolver: Optional[MediaResolver] = None,
) -> Tour:
    """添加场景（默认追加到末尾）"""
    document = tour.to_document()
    scenes = document.setdefault("scenes", [])
    scene_document = _as_document(scene)
    if position is None:
        scenes.append(scene_document)
    else:
        scenes.insert(position, scene_document)
    return commit(document, limits, media_resolver)


def update_scene(
    tour: Tour,
    scene_id: str,
    changes: Mapping[str, Any],
    limits: TierLimits = LITE_LIMITS,
    media_resolver: Optional[MediaResolver] = None,
) -> Tour:
    """修改场景字段（changes 使用文档字段名，浅合并）"""
    document = tour.to_document()
    index = _scene_position(document, scene_id)
    document["scenes"][index].update(copy.deepcopy(dict(changes)))
    return commit(document, limits, media_resolver)


def remove_scene(
    tour: Tour,
    scene_id: str,
    limits: TierLimits = LITE_LIMITS,
    media_resolver: Optional[MediaResolver] = None,
) -> Tour:
    """
    删除场景

    同时删除其他场景中指向它的跳转热点；删除最后一个场景会被校验拒绝
    """
    document = tour.to_document()
    index = _scene_position(document, scene_id)
    del document["scenes"][index]
    for scene in document["scenes"]:
        scene["hotspots"] = [
            hotspot
            for hotspot in scene.get("hotspots", [])
            if not (hotspot.get("type") == "scene" and hotspot.get("targetSceneId") == scene_id)
        ]
    return commit(document, limits, media_resolver)


def reorder_scenes(
    tour: Tour,
    scene_ids: Sequence[str],
    limits: TierLimits = LITE_LIMITS,
    media_resolver: Optional[MediaResolver] = None,
) -> Tour:
    """按给定 id 顺序重排场景，必须是现有场景 id 的一个排列"""
    document = tour.to_document()
    current = {scene["id"]: scene for scene in document.get("scenes", [])}
    if sorted(scene_ids) != sorted(current) or len(set(scene_ids)) != len(scene_ids):
        raise TourValidationFailed(
            [
                ValidationError(
                    ValidationErrorCode.INVALID_VALUE.value,
                    "tour",
                    "Scene order must list every scene exactly once",
                )
            ]
        )
    document["scenes"] = [current[scene_id] for scene_id in scene_ids]
    return commit(document, limits, media_resolver)


def set_default_scene(
    tour: Tour,
    scene_id: str,
    limits: TierLimits = LITE_LIMITS,
    media_resolver: Optional[MediaResolver] = None,
) -> Tour:
    """把指定场景设为默认场景"""
    document = tour.to_document()
    _scene_position(document, scene_id)
    for scene in document["scenes"]:
        scene["isDefault"] = scene["id"] == scene_id
    return commit(document, limits, media_resolver)


# ============================================================
# Hotspot 操作
# ============================================================

def add_hotspot(
    tour: Tour,
    scene_id: str,
    hotspot: Draft,
    limits: TierLimits = LITE_LIMITS,
    media_resolver: Optional[MediaResolver] = None,
) -> Tour:
    document = tour.to_document()
    scene = document["scenes"][_scene_position(document, scene_id)]
    scene.setdefault("hotspots", []).append(_as_document(hotspot))
    return commit(document, limits, media_resolver)


def update_hotspot(
    tour: Tour,
    scene_id: str,
    hotspot_id: str,
    changes: Mapping[str, Any],
    limits: TierLimits = LITE_LIMITS,
    media_resolver: Optional[MediaResolver] = None,
) -> Tour:
    document = tour.to_document()
    scene = document["scenes"][_scene_position(document, scene_id)]
    index = _hotspot_position(scene, hotspot_id)
    scene["hotspots"][index].update(copy.deepcopy(dict(changes)))
    return commit(document, limits, media_resolver)


def remove_hotspot(
    tour: Tour,
    scene_id: str,
    hotspot_id: str,
    limits: TierLimits = LITE_LIMITS,
    media_resolver: Optional[MediaResolver] = None,
) -> Tour:
    document = tour.to_document()
    scene = document["scenes"][_scene_position(document, scene_id)]
    del scene["hotspots"][_hotspot_position(scene, hotspot_id)]
    return commit(document, limits, media_resolver)


def reorder_hotspots(
    tour: Tour,
    scene_id: str,
    hotspot_ids: Sequence[str],
    limits: TierLimits = LITE_LIMITS,
    media_resolver: Optional[MediaResolver] = None,
) -> Tour:
    document = tour.to_document()
    scene = document["scenes"][_scene_position(document, scene_id)]
    current = {hotspot["id"]: hotspot for hotspot in scene.get("hotspots", [])}
    if sorted(hotspot_ids) != sorted(current) or len(set(hotspot_ids)) != len(hotspot_ids):
        raise TourValidationFailed(
            [
                ValidationError(
                    ValidationErrorCode.INVALID_VALUE.value,
                    "tour",
                    "Hotspot order must list every hotspot of the scene exactly once",
                )
            ]
        )
    scene["hotspots"] = [current[hotspot_id] for hotspot_id in hotspot_ids]
    return commit(document, limits, media_resolver)
