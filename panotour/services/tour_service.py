"""
Tour 服务

编排校验、编辑、导入导出与仓储：
- 保存前必须通过校验，失败时仓储不会被写入
- Tour 数量上限按仓储中的现有数量检查
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

import structlog

from panotour.core.errors import LimitExceededError, TourValidationFailed
from panotour.core.limits import LITE_LIMITS, TierLimits
from panotour.domain.tour import Tour
from panotour.portability import (
    RawDocument,
    export_tour,
    export_tours,
    import_document,
    tour_statistics,
)
from panotour.repository import TourFilter, TourRepository
from panotour.validation import (
    MediaResolver,
    ValidationError,
    ValidationErrorCode,
    validate_tour,
)

logger = structlog.get_logger(__name__)

Draft = Union[Tour, Mapping[str, Any]]
EditOperation = Callable[..., Tour]


@dataclass
class ImportReport:
    """批量导入报告"""

    imported_ids: List[str] = field(default_factory=list)
    errors: List[ValidationError] = field(default_factory=list)
    skipped: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "imported": len(self.imported_ids),
            "imported_ids": self.imported_ids,
            "skipped": self.skipped,
            "errors": [e.to_dict() for e in self.errors],
        }


class TourService:
    """Tour 编辑与导入导出服务"""

    def __init__(
        self,
        repository: TourRepository,
        limits: TierLimits = LITE_LIMITS,
        media_resolver: Optional[MediaResolver] = None,
    ):
        self.repository = repository
        self.limits = limits
        self.media_resolver = media_resolver

    # ========== 校验 ==========

    def validate(self, draft: Any) -> List[ValidationError]:
        """只校验不保存"""
        return validate_tour(draft, self.limits, self.media_resolver)

    def _build(self, draft: Draft) -> Tour:
        errors = self.validate(draft)
        if errors:
            logger.info("tour_validation_failed", error_count=len(errors))
            raise TourValidationFailed(errors)
        if isinstance(draft, Tour):
            return draft
        return Tour.from_document(draft)

    async def _ensure_capacity(self) -> None:
        count = await self.repository.count()
        if not self.limits.can_create_tour(count):
            raise LimitExceededError(
                f"Maximum {self.limits.max_tours} tours allowed in the {self.limits.name} edition"
            )

    # ========== CRUD ==========

    async def create(self, draft: Draft) -> Tour:
        """创建 Tour（忽略草稿中的 id，由仓储分配）"""
        tour = self._build(draft).model_copy(update={"id": None})
        await self._ensure_capacity()
        tour = await self.repository.save(tour)
        logger.info("tour_created", tour_id=tour.id, scenes=len(tour.scenes))
        return tour

    async def update(self, tour_id: str, draft: Draft) -> Tour:
        """整体替换 Tour 内容，id 不变"""
        await self.repository.get(tour_id)
        tour = self._build(draft).with_id(tour_id)
        tour = await self.repository.save(tour)
        logger.info("tour_updated", tour_id=tour_id, scenes=len(tour.scenes))
        return tour

    async def get(self, tour_id: str) -> Tour:
        return await self.repository.get(tour_id)

    async def list(self, tour_filter: Optional[TourFilter] = None) -> List[Tour]:
        return await self.repository.list(tour_filter)

    async def delete(self, tour_id: str) -> None:
        await self.repository.delete(tour_id)
        logger.info("tour_deleted", tour_id=tour_id)

    async def edit(self, tour_id: str, operation: EditOperation, *args: Any, **kwargs: Any) -> Tour:
        """
        对已保存的 Tour 执行编辑操作并保存

        operation 是 panotour.domain.editing 中的函数，按服务的限额与媒体库重新校验；
        失败时仓储保持原状
        """
        tour = await self.repository.get(tour_id)
        kwargs.setdefault("limits", self.limits)
        kwargs.setdefault("media_resolver", self.media_resolver)
        edited = operation(tour, *args, **kwargs)
        saved = await self.repository.save(edited.with_id(tour_id))
        logger.info("tour_edited", tour_id=tour_id, operation=getattr(operation, "__name__", "edit"))
        return saved

    # ========== 导入导出 ==========

    async def import_document(self, raw: Union[RawDocument, Mapping[str, Any]]) -> ImportReport:
        """
        批量导入

        不合格的 Tour 被跳过；达到 Tour 数量上限后剩余的 Tour 也被跳过
        """
        result = import_document(raw, self.limits, self.media_resolver)
        report = ImportReport(errors=list(result.errors))
        rejected = {e.index for e in result.errors if e.index is not None}

        count = await self.repository.count()
        for index, tour in zip(result.source_indices, result.tours):
            if not self.limits.can_create_tour(count):
                report.errors.append(
                    ValidationError(
                        ValidationErrorCode.TOUR_LIMIT.value,
                        f"tour {index + 1}",
                        f"Maximum {self.limits.max_tours} tours allowed in the {self.limits.name} edition",
                        index=index,
                    )
                )
                rejected.add(index)
                continue
            saved = await self.repository.save(tour.model_copy(update={"id": None}))
            report.imported_ids.append(saved.id)
            count += 1

        report.skipped = len(rejected)
        logger.info(
            "tours_imported",
            imported=len(report.imported_ids),
            skipped=report.skipped,
        )
        return report

    async def export(self, tour_id: str) -> str:
        return export_tour(await self.repository.get(tour_id))

    async def export_all(self) -> str:
        tours = await self.repository.list(TourFilter(limit=None))
        return export_tours(tours)

    async def statistics(self) -> Dict[str, int]:
        return tour_statistics(await self.repository.list(TourFilter(limit=None)))
