"""
导入 / 导出

格式：
- 单个 Tour：直接是 TourDocument
- 批量：{"version": "1.0", "tours": [{"config": TourDocument}, ...]}

批量导入逐个校验，不合格的 Tour 被跳过并附带错误（index 为源文档下标）；
单个 Tour 导入（import_tour）遇到任何错误直接拒绝
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Union

import structlog
from pydantic import ValidationError as PydanticValidationError

from panotour.core.config import settings
from panotour.core.errors import MalformedDocumentError, TourValidationFailed
from panotour.core.limits import LITE_LIMITS, TierLimits
from panotour.domain.tour import Tour
from panotour.validation import (
    MediaResolver,
    ValidationError,
    ValidationErrorCode,
    check_import_envelope,
    validate_import_document,
)

logger = structlog.get_logger(__name__)

RawDocument = Union[str, bytes, bytearray]


@dataclass
class ImportResult:
    """导入结果：通过校验的 Tour 与被跳过 Tour 的错误"""
    tours: List[Tour] = field(default_factory=list)
    errors: List[ValidationError] = field(default_factory=list)
    source_indices: List[int] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def skipped(self) -> int:
        return len({e.index for e in self.errors if e.index is not None})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "imported": len(self.tours),
            "skipped": self.skipped,
            "errors": [e.to_dict() for e in self.errors],
        }


# ============================================================
# 导出
# ============================================================

def _dumps(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


def export_tour(tour: Tour) -> str:
    """导出单个 Tour 为 JSON 文本（字段顺序固定，多次导出结果逐字节相同）"""
    return _dumps(tour.to_document())


def export_tours(tours: Iterable[Tour], version: Optional[str] = None) -> str:
    """导出多个 Tour 为批量文档"""
    envelope = {
        "version": version or settings.EXPORT_FORMAT_VERSION,
        "tours": [{"config": tour.to_document()} for tour in tours],
    }
    return _dumps(envelope)


# ============================================================
# 导入
# ============================================================

def parse_document(raw: Union[RawDocument, Dict[str, Any]]) -> Dict[str, Any]:
    """
    解析导入文本

    单个 TourDocument（没有 version/tours 外层）会被包装为一个 Tour 的批量文档
    """
    if isinstance(raw, (str, bytes, bytearray)):
        try:
            document = json.loads(raw)
        except (ValueError, UnicodeDecodeError) as e:
            raise MalformedDocumentError(f"Import data must be valid JSON: {e}") from e
    else:
        document = raw

    if not isinstance(document, dict):
        raise MalformedDocumentError("Import data must be a JSON object")

    if "tours" not in document and "version" not in document:
        document = {
            "version": settings.EXPORT_FORMAT_VERSION,
            "tours": [{"config": document}],
        }

    envelope_error = check_import_envelope(document)
    if envelope_error is not None:
        raise MalformedDocumentError(envelope_error.message)
    return document


def import_document(
    raw: Union[RawDocument, Dict[str, Any]],
    limits: TierLimits = LITE_LIMITS,
    media_resolver: Optional[MediaResolver] = None,
) -> ImportResult:
    """
    批量导入

    Raises:
        MalformedDocumentError: JSON 无法解析或外层结构缺失（整个导入中止）
    """
    document = parse_document(raw)
    errors = validate_import_document(document, limits, media_resolver)
    rejected = {e.index for e in errors if e.index is not None}

    result = ImportResult(errors=list(errors))
    for index, entry in enumerate(document["tours"]):
        if index in rejected:
            continue
        try:
            tour = Tour.from_document(entry["config"])
        except PydanticValidationError as e:
            result.errors.extend(_model_errors(e, index))
            continue
        result.tours.append(tour)
        result.source_indices.append(index)

    log = logger.bind(total=len(document["tours"]), imported=len(result.tours))
    if result.ok:
        log.info("import_document_completed")
    else:
        log.warning("import_document_partial", skipped=result.skipped, error_count=len(result.errors))
    return result


def import_tour(
    raw: Union[RawDocument, Dict[str, Any]],
    limits: TierLimits = LITE_LIMITS,
    media_resolver: Optional[MediaResolver] = None,
) -> Tour:
    """
    单个 Tour 导入

    任何错误都拒绝整个导入
    """
    document = parse_document(raw)
    if len(document["tours"]) != 1:
        raise MalformedDocumentError("Import data must contain exactly one tour")
    result = import_document(document, limits, media_resolver)
    if result.errors:
        raise TourValidationFailed(result.errors)
    return result.tours[0]


def _model_errors(exc: PydanticValidationError, index: int) -> List[ValidationError]:
    errors = []
    for item in exc.errors():
        location = ".".join(str(part) for part in item["loc"])
        errors.append(
            ValidationError(
                ValidationErrorCode.INVALID_VALUE.value,
                f"tour {index + 1}: {location}",
                item["msg"],
                index=index,
            )
        )
    return errors


def tour_statistics(tours: Iterable[Tour]) -> Dict[str, int]:
    """导入导出页面的统计数据"""
    stats = {"total_tours": 0, "total_scenes": 0, "total_hotspots": 0}
    for tour in tours:
        stats["total_tours"] += 1
        stats["total_scenes"] += len(tour.scenes)
        stats["total_hotspots"] += tour.hotspot_count
    return stats
