"""
Tour 校验引擎

纯函数，无 I/O，无副作用。校验分两轮：
1. 字段校验：必填、类型、数值范围、长度、id 字符集、URL、枚举
2. 结构校验（所有字段校验完成后）：重复 id、数量上限、场景引用

返回全部错误而不是遇错即停，方便界面一次展示完整错误列表
"""

import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Protocol

from pydantic import AnyUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from panotour.core.limits import HOTSPOT_TYPES, LITE_LIMITS, LOGO_POSITIONS, TierLimits
from panotour.domain.tour import Tour


ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
MAX_TITLE_LENGTH = 255
MAX_TEXT_LENGTH = 1000
ALLOWED_IMAGE_MIME_TYPES = frozenset({"image/jpeg", "image/png", "image/webp"})
SUPPORTED_DOCUMENT_VERSIONS = frozenset({"1.0"})

MEDIA_HOTSPOT_TYPES = frozenset({"image", "video", "audio"})
UI_FLAGS = ("showThumbnails", "showZoom", "showFullscreen", "showCompass")
MOBILE_FLAGS = ("gyro", "touch")

_URL_ADAPTER = TypeAdapter(AnyUrl)


# ============================================================
# 错误码定义
# ============================================================

class ValidationErrorCode(str, Enum):
    """校验错误码"""
    INVALID_DOCUMENT = "invalid_document"
    REQUIRED = "required"
    INVALID_ID = "invalid_id"
    INVALID_VALUE = "invalid_value"
    TOO_LONG = "too_long"
    OUT_OF_RANGE = "out_of_range"
    NOT_ALLOWED = "not_allowed"
    INVALID_URL = "invalid_url"
    INVALID_MEDIA = "invalid_media"
    SCENE_LIMIT = "scene_limit"
    TOUR_LIMIT = "tour_limit"
    HOTSPOT_LIMIT = "hotspot_limit"
    DUPLICATE_ID = "duplicate_id"
    MULTIPLE_DEFAULT_SCENES = "multiple_default_scenes"
    UNRESOLVED_REFERENCE = "unresolved_reference"
    MISSING_VERSION = "missing_version"
    UNSUPPORTED_VERSION = "unsupported_version"
    MISSING_TOURS = "missing_tours"
    MISSING_CONFIG = "missing_config"


# ============================================================
# 校验结果
# ============================================================

@dataclass(frozen=True)
class ValidationError:
    """
    单个校验错误

    path 指向出错的实体，例如 "scene 2 (Lobby): hotspot 4"；
    index 是批量导入文档中 Tour 的下标
    """
    code: str
    path: str
    message: str
    index: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"code": self.code, "path": self.path, "message": self.message}
        if self.index is not None:
            data["index"] = self.index
        return data

    def __str__(self) -> str:
        if self.path:
            return f"{self.path}: {self.message}"
        return self.message


class MediaResolver(Protocol):
    """媒体库查询：返回附件的 MIME 类型，不存在时返回 None"""

    def mime_type(self, media_id: int) -> Optional[str]:
        ...


# ============================================================
# 工具函数
# ============================================================

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _in_range(value: Any, low: float, high: float) -> bool:
    return _is_number(value) and low <= value <= high


def _is_one_of(value: Any, choices: FrozenSet[str]) -> bool:
    return isinstance(value, str) and value in choices


def is_valid_url(value: Any) -> bool:
    """绝对 URL（带 scheme 与 host）"""
    if not isinstance(value, str) or not value:
        return False
    try:
        url = _URL_ADAPTER.validate_python(value)
    except PydanticValidationError:
        return False
    return bool(url.host)


def _scene_label(index: int, scene: Any) -> str:
    title = scene.get("title") if isinstance(scene, Mapping) else None
    if not isinstance(title, str) or not title:
        title = "Untitled"
    return f"scene {index + 1} ({title})"


def _hotspot_label(scene_label: str, index: int) -> str:
    return f"{scene_label}: hotspot {index + 1}"


def _prefix(prefix: str, path: str) -> str:
    return f"{prefix}: {path}" if path else prefix


# ============================================================
# 校验器
# ============================================================

class TourValidator:
    """Tour 校验器"""

    def __init__(
        self,
        limits: TierLimits = LITE_LIMITS,
        media_resolver: Optional[MediaResolver] = None,
    ):
        self.limits = limits
        self.media_resolver = media_resolver

    def validate(self, draft: Any) -> List[ValidationError]:
        """
        校验 Tour 草稿

        Args:
            draft: Tour 实例或原始 JSON 字典

        Returns:
            错误列表，为空表示通过
        """
        if isinstance(draft, Tour):
            draft = draft.to_document()
        if not isinstance(draft, Mapping):
            return [
                ValidationError(
                    ValidationErrorCode.INVALID_DOCUMENT.value,
                    "tour",
                    "Tour configuration must be an object",
                )
            ]

        errors: List[ValidationError] = []

        # 1. 字段校验
        self._check_tour_fields(draft, errors)
        if "settings" in draft:
            self._check_settings(draft["settings"], errors)

        scenes = draft.get("scenes")
        if not isinstance(scenes, list) or not scenes:
            errors.append(
                ValidationError(
                    ValidationErrorCode.REQUIRED.value,
                    "tour",
                    "Tour must have at least one scene",
                )
            )
            scenes = scenes if isinstance(scenes, list) else []

        for index, scene in enumerate(scenes):
            self._check_scene_fields(index, scene, errors)

        # 2. 结构校验
        self._check_structure(scenes, errors)

        return errors

    # ------------------------------------------------------------
    # 字段校验
    # ------------------------------------------------------------

    def _check_tour_fields(self, draft: Mapping[str, Any], errors: List[ValidationError]) -> None:
        tour_id = draft.get("id")
        if tour_id is not None and (not isinstance(tour_id, str) or not tour_id):
            errors.append(ValidationError(ValidationErrorCode.INVALID_ID.value, "tour", "Tour ID must be a non-empty string"))

        title = draft.get("title")
        if not isinstance(title, str) or not title.strip():
            errors.append(ValidationError(ValidationErrorCode.REQUIRED.value, "tour", "Tour title is required"))
        elif len(title) > MAX_TITLE_LENGTH:
            errors.append(ValidationError(ValidationErrorCode.TOO_LONG.value, "tour", "Tour title is too long (max 255 characters)"))

        description = draft.get("description")
        if description is not None and not isinstance(description, str):
            errors.append(ValidationError(ValidationErrorCode.INVALID_VALUE.value, "tour", "Tour description must be text"))

    def _check_settings(self, settings: Any, errors: List[ValidationError]) -> None:
        path = "settings"
        if not isinstance(settings, Mapping):
            errors.append(ValidationError(ValidationErrorCode.INVALID_VALUE.value, path, "Settings must be an object"))
            return

        def section(name: str) -> Optional[Mapping[str, Any]]:
            value = settings.get(name)
            if value is None:
                return None
            if not isinstance(value, Mapping):
                errors.append(ValidationError(ValidationErrorCode.INVALID_VALUE.value, path, f'"{name}" settings must be an object'))
                return None
            return value

        ui = section("ui")
        if ui is not None:
            for key in UI_FLAGS:
                if key in ui and not isinstance(ui[key], bool):
                    errors.append(ValidationError(ValidationErrorCode.INVALID_VALUE.value, path, f'UI setting "{key}" must be boolean'))

        autorotate = section("autorotate")
        if autorotate is not None:
            if "enabled" in autorotate and not isinstance(autorotate["enabled"], bool):
                errors.append(ValidationError(ValidationErrorCode.INVALID_VALUE.value, path, "Autorotate enabled setting must be boolean"))
            if "speed" in autorotate and not _in_range(
                autorotate["speed"], self.limits.autorotate_speed_min, self.limits.autorotate_speed_max
            ):
                errors.append(
                    ValidationError(
                        ValidationErrorCode.OUT_OF_RANGE.value,
                        path,
                        f"Autorotate speed must be between {self.limits.autorotate_speed_min} "
                        f"and {self.limits.autorotate_speed_max}",
                    )
                )
            if "pauseOnHover" in autorotate and not isinstance(autorotate["pauseOnHover"], bool):
                errors.append(ValidationError(ValidationErrorCode.INVALID_VALUE.value, path, "Autorotate pause on hover setting must be boolean"))

        mobile = section("mobile")
        if mobile is not None:
            for key in MOBILE_FLAGS:
                if key in mobile and not isinstance(mobile[key], bool):
                    errors.append(ValidationError(ValidationErrorCode.INVALID_VALUE.value, path, f'Mobile setting "{key}" must be boolean'))

        branding = section("branding")
        if branding is not None:
            logo_id = branding.get("logoId")
            if logo_id is not None and (not isinstance(logo_id, int) or isinstance(logo_id, bool) or logo_id < 0):
                errors.append(ValidationError(ValidationErrorCode.INVALID_VALUE.value, path, "Logo ID must be a positive number"))
            logo_url = branding.get("logoUrl")
            if logo_url and not is_valid_url(logo_url):
                errors.append(ValidationError(ValidationErrorCode.INVALID_URL.value, path, "Invalid logo URL"))
            if "position" in branding and not _is_one_of(branding["position"], LOGO_POSITIONS):
                errors.append(ValidationError(ValidationErrorCode.NOT_ALLOWED.value, path, "Invalid logo position"))

    def _check_scene_fields(self, index: int, scene: Any, errors: List[ValidationError]) -> None:
        path = _scene_label(index, scene)
        if not isinstance(scene, Mapping):
            errors.append(ValidationError(ValidationErrorCode.INVALID_VALUE.value, path, "Scene must be an object"))
            return

        def add(code: ValidationErrorCode, message: str) -> None:
            errors.append(ValidationError(code.value, path, message))

        scene_id = scene.get("id")
        if not isinstance(scene_id, str) or not scene_id:
            add(ValidationErrorCode.REQUIRED, "Scene ID is required")
        elif not ID_PATTERN.match(scene_id):
            add(ValidationErrorCode.INVALID_ID, "Scene ID contains invalid characters")

        title = scene.get("title")
        if not isinstance(title, str) or not title.strip():
            add(ValidationErrorCode.REQUIRED, "Scene title is required")
        elif len(title) > MAX_TITLE_LENGTH:
            add(ValidationErrorCode.TOO_LONG, "Scene title is too long (max 255 characters)")

        scene_type = scene.get("type", "equirectangular")
        if not _is_one_of(scene_type, self.limits.scene_types):
            add(ValidationErrorCode.NOT_ALLOWED, "Invalid scene type")

        self._check_scene_image(scene.get("image"), add)

        initial_view = scene.get("initialView")
        if initial_view is not None:
            if not isinstance(initial_view, Mapping):
                add(ValidationErrorCode.INVALID_VALUE, "Initial view must be an object")
            else:
                if initial_view.get("yaw") is not None and not _in_range(initial_view["yaw"], -180, 180):
                    add(ValidationErrorCode.OUT_OF_RANGE, "Initial yaw must be between -180 and 180 degrees")
                if initial_view.get("pitch") is not None and not _in_range(initial_view["pitch"], -90, 90):
                    add(ValidationErrorCode.OUT_OF_RANGE, "Initial pitch must be between -90 and 90 degrees")
                if initial_view.get("fov") is not None and not _in_range(initial_view["fov"], 10, 120):
                    add(ValidationErrorCode.OUT_OF_RANGE, "Initial field of view must be between 10 and 120 degrees")

        if "isDefault" in scene and not isinstance(scene["isDefault"], bool):
            add(ValidationErrorCode.INVALID_VALUE, "Scene default flag must be boolean")

        hotspots = scene.get("hotspots")
        if hotspots is None:
            return
        if not isinstance(hotspots, list):
            add(ValidationErrorCode.INVALID_VALUE, "Scene hotspots must be a list")
            return
        for hotspot_index, hotspot in enumerate(hotspots):
            self._check_hotspot_fields(_hotspot_label(path, hotspot_index), hotspot, errors)

    def _check_scene_image(self, image: Any, add) -> None:
        # id 为 0 视为未设置
        if not isinstance(image, Mapping) or (not image.get("id") and not image.get("url")):
            add(ValidationErrorCode.REQUIRED, "Scene image is required")
            return

        media_id = image.get("id")
        if media_id:
            if not isinstance(media_id, int) or isinstance(media_id, bool) or media_id < 0:
                add(ValidationErrorCode.INVALID_MEDIA, "Invalid image attachment ID")
            elif self.media_resolver is not None:
                mime_type = self.media_resolver.mime_type(media_id)
                if mime_type is None:
                    add(ValidationErrorCode.INVALID_MEDIA, "Invalid image attachment ID")
                elif mime_type not in ALLOWED_IMAGE_MIME_TYPES:
                    add(ValidationErrorCode.INVALID_MEDIA, "Invalid image format. Only JPEG, PNG, and WebP are allowed")

        url = image.get("url")
        if url and not is_valid_url(url):
            add(ValidationErrorCode.INVALID_URL, "Invalid image URL")

    def _check_hotspot_fields(self, path: str, hotspot: Any, errors: List[ValidationError]) -> None:
        if not isinstance(hotspot, Mapping):
            errors.append(ValidationError(ValidationErrorCode.INVALID_VALUE.value, path, "Hotspot must be an object"))
            return

        def add(code: ValidationErrorCode, message: str) -> None:
            errors.append(ValidationError(code.value, path, message))

        hotspot_id = hotspot.get("id")
        if not isinstance(hotspot_id, str) or not hotspot_id:
            add(ValidationErrorCode.REQUIRED, "Hotspot ID is required")
        elif not ID_PATTERN.match(hotspot_id):
            add(ValidationErrorCode.INVALID_ID, "Hotspot ID contains invalid characters")

        hotspot_type = hotspot.get("type")
        if not _is_one_of(hotspot_type, HOTSPOT_TYPES):
            add(ValidationErrorCode.NOT_ALLOWED, "Invalid hotspot type")
        elif not self.limits.is_hotspot_type_allowed(hotspot_type):
            add(
                ValidationErrorCode.NOT_ALLOWED,
                f'Hotspot type "{hotspot_type}" is not available in the {self.limits.name} edition',
            )

        position = hotspot.get("position")
        if not isinstance(position, Mapping):
            position = {}
        if not _in_range(position.get("yaw"), -180, 180):
            add(ValidationErrorCode.OUT_OF_RANGE, "Hotspot yaw must be between -180 and 180 degrees")
        if not _in_range(position.get("pitch"), -90, 90):
            add(ValidationErrorCode.OUT_OF_RANGE, "Hotspot pitch must be between -90 and 90 degrees")

        title = hotspot.get("title")
        if title is not None:
            if not isinstance(title, str):
                add(ValidationErrorCode.INVALID_VALUE, "Hotspot title must be text")
            elif len(title) > MAX_TITLE_LENGTH:
                add(ValidationErrorCode.TOO_LONG, "Hotspot title is too long (max 255 characters)")

        text = hotspot.get("text", hotspot.get("description"))
        if text is not None:
            if not isinstance(text, str):
                add(ValidationErrorCode.INVALID_VALUE, "Hotspot text must be text")
            elif len(text) > MAX_TEXT_LENGTH:
                add(ValidationErrorCode.TOO_LONG, "Hotspot text is too long (max 1000 characters)")

        if hotspot_type == "link":
            url = hotspot.get("url")
            if not url:
                add(ValidationErrorCode.REQUIRED, "URL is required for link hotspots")
            elif not is_valid_url(url):
                add(ValidationErrorCode.INVALID_URL, "Invalid URL format")
        elif hotspot_type == "scene":
            target = hotspot.get("targetSceneId")
            if not isinstance(target, str) or not target:
                add(ValidationErrorCode.REQUIRED, "Target scene is required for scene navigation hotspots")
            if hotspot.get("targetYaw") is not None and not _in_range(hotspot["targetYaw"], -180, 180):
                add(ValidationErrorCode.OUT_OF_RANGE, "Target yaw must be between -180 and 180 degrees")
            if hotspot.get("targetPitch") is not None and not _in_range(hotspot["targetPitch"], -90, 90):
                add(ValidationErrorCode.OUT_OF_RANGE, "Target pitch must be between -90 and 90 degrees")
        elif _is_one_of(hotspot_type, MEDIA_HOTSPOT_TYPES):
            url = hotspot.get("url")
            if not url:
                add(ValidationErrorCode.REQUIRED, f"Media URL is required for {hotspot_type} hotspots")
            elif not is_valid_url(url):
                add(ValidationErrorCode.INVALID_URL, "Invalid media URL")

        icon = hotspot.get("icon")
        if icon is not None and not _is_one_of(icon, self.limits.icons):
            add(ValidationErrorCode.NOT_ALLOWED, "Invalid hotspot icon")

    # ------------------------------------------------------------
    # 结构校验
    # ------------------------------------------------------------

    def _check_structure(self, scenes: List[Any], errors: List[ValidationError]) -> None:
        limits = self.limits

        if limits.max_scenes is not None and len(scenes) > limits.max_scenes:
            errors.append(
                ValidationError(
                    ValidationErrorCode.SCENE_LIMIT.value,
                    "tour",
                    f"Maximum {limits.max_scenes} scenes allowed per tour in the {limits.name} edition "
                    f"({len(scenes)} given)",
                )
            )

        scene_positions: Dict[str, int] = {}
        default_count = 0
        for index, scene in enumerate(scenes):
            if not isinstance(scene, Mapping):
                continue
            path = _scene_label(index, scene)
            scene_id = scene.get("id")
            if isinstance(scene_id, str) and scene_id:
                if scene_id in scene_positions:
                    errors.append(
                        ValidationError(
                            ValidationErrorCode.DUPLICATE_ID.value,
                            path,
                            f'Duplicate scene ID "{scene_id}" '
                            f"(scenes {scene_positions[scene_id] + 1} and {index + 1})",
                        )
                    )
                else:
                    scene_positions[scene_id] = index
            if scene.get("isDefault") is True:
                default_count += 1

            hotspots = scene.get("hotspots")
            if not isinstance(hotspots, list):
                continue
            if limits.max_hotspots_per_scene is not None and len(hotspots) > limits.max_hotspots_per_scene:
                errors.append(
                    ValidationError(
                        ValidationErrorCode.HOTSPOT_LIMIT.value,
                        path,
                        f"Maximum {limits.max_hotspots_per_scene} hotspots allowed per scene in the "
                        f"{limits.name} edition ({len(hotspots)} given)",
                    )
                )
            hotspot_positions: Dict[str, int] = {}
            for hotspot_index, hotspot in enumerate(hotspots):
                if not isinstance(hotspot, Mapping):
                    continue
                hotspot_id = hotspot.get("id")
                if not isinstance(hotspot_id, str) or not hotspot_id:
                    continue
                if hotspot_id in hotspot_positions:
                    errors.append(
                        ValidationError(
                            ValidationErrorCode.DUPLICATE_ID.value,
                            _hotspot_label(path, hotspot_index),
                            f'Duplicate hotspot ID "{hotspot_id}" '
                            f"(hotspots {hotspot_positions[hotspot_id] + 1} and {hotspot_index + 1})",
                        )
                    )
                else:
                    hotspot_positions[hotspot_id] = hotspot_index

        if default_count > 1:
            errors.append(
                ValidationError(
                    ValidationErrorCode.MULTIPLE_DEFAULT_SCENES.value,
                    "tour",
                    "Only one scene can be marked as default",
                )
            )

        # 场景跳转热点必须指向同一 Tour 内的场景
        for index, scene in enumerate(scenes):
            if not isinstance(scene, Mapping) or not isinstance(scene.get("hotspots"), list):
                continue
            path = _scene_label(index, scene)
            for hotspot_index, hotspot in enumerate(scene["hotspots"]):
                if not isinstance(hotspot, Mapping) or hotspot.get("type") != "scene":
                    continue
                target = hotspot.get("targetSceneId")
                if isinstance(target, str) and target and target not in scene_positions:
                    errors.append(
                        ValidationError(
                            ValidationErrorCode.UNRESOLVED_REFERENCE.value,
                            _hotspot_label(path, hotspot_index),
                            f'Hotspot references non-existent scene "{target}"',
                        )
                    )


# ============================================================
# 导入文档
# ============================================================

def check_import_envelope(document: Any) -> Optional[ValidationError]:
    """
    校验批量导入文档的外层结构

    外层有问题时只返回一个顶层错误，不再逐个校验 Tour
    """
    if not isinstance(document, Mapping):
        return ValidationError(ValidationErrorCode.INVALID_DOCUMENT.value, "", "Import data must be valid JSON")
    version = document.get("version")
    if version is None:
        return ValidationError(ValidationErrorCode.MISSING_VERSION.value, "", "Import data missing version information")
    if not _is_one_of(version, SUPPORTED_DOCUMENT_VERSIONS):
        return ValidationError(
            ValidationErrorCode.UNSUPPORTED_VERSION.value,
            "",
            f'Unsupported import format version "{version}"',
        )
    if not isinstance(document.get("tours"), list):
        return ValidationError(ValidationErrorCode.MISSING_TOURS.value, "", "Import data must contain tours array")
    return None


def validate_tour(
    draft: Any,
    limits: TierLimits = LITE_LIMITS,
    media_resolver: Optional[MediaResolver] = None,
) -> List[ValidationError]:
    """
    校验单个 Tour

    便捷函数，供编辑与导入路径调用
    """
    return TourValidator(limits, media_resolver).validate(draft)


def validate_import_document(
    document: Any,
    limits: TierLimits = LITE_LIMITS,
    media_resolver: Optional[MediaResolver] = None,
) -> List[ValidationError]:
    """
    校验批量导入文档 {version, tours: [{config}]}

    每个 Tour 的错误带上 index 并以 "tour N" 作为路径前缀
    """
    envelope_error = check_import_envelope(document)
    if envelope_error is not None:
        return [envelope_error]

    validator = TourValidator(limits, media_resolver)
    errors: List[ValidationError] = []
    for index, entry in enumerate(document["tours"]):
        prefix = f"tour {index + 1}"
        config = entry.get("config") if isinstance(entry, Mapping) else None
        if not isinstance(config, Mapping):
            errors.append(
                ValidationError(
                    ValidationErrorCode.MISSING_CONFIG.value,
                    prefix,
                    f"Tour {index + 1} missing configuration",
                    index=index,
                )
            )
            continue
        for error in validator.validate(config):
            errors.append(replace(error, path=_prefix(prefix, error.path), index=index))
    return errors
