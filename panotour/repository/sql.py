"""
SQLAlchemy Tour 仓储

事务由调用方管理（FastAPI 中由 get_db 依赖提交或回滚），
这里只 flush 以尽早暴露约束冲突
"""

from typing import List, Optional
from uuid import uuid4

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from panotour.core.errors import ConflictError, NotFoundError
from panotour.database.models import TourRecord
from panotour.domain.tour import Tour
from panotour.repository.base import TourFilter, TourRepository

logger = structlog.get_logger(__name__)


def _to_tour(record: TourRecord) -> Tour:
    return Tour.from_document(record.config).with_id(record.id)


class SqlAlchemyTourRepository(TourRepository):
    """一行一个 Tour，完整文档保存在 config 列"""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _get_record(self, tour_id: str) -> TourRecord:
        record = await self.session.get(TourRecord, tour_id)
        if record is None:
            raise NotFoundError(f"Tour not found: {tour_id}")
        return record

    async def get(self, tour_id: str) -> Tour:
        return _to_tour(await self._get_record(tour_id))

    async def save(self, tour: Tour) -> Tour:
        if tour.id is None:
            tour = tour.with_id(str(uuid4()))
            record = TourRecord(id=tour.id)
            self.session.add(record)
        else:
            record = await self._get_record(tour.id)

        document = tour.to_document()
        document.pop("id", None)
        record.title = tour.title
        record.description = tour.description
        record.config = document

        try:
            await self.session.flush()
        except IntegrityError as e:
            logger.warning("tour_save_conflict", tour_id=tour.id, error=str(e.orig))
            raise ConflictError(f"Tour could not be saved: {tour.id}") from e

        logger.debug("tour_saved", tour_id=tour.id, scenes=len(tour.scenes))
        return tour

    async def delete(self, tour_id: str) -> None:
        record = await self._get_record(tour_id)
        await self.session.delete(record)
        await self.session.flush()
        logger.debug("tour_deleted", tour_id=tour_id)

    async def list(self, tour_filter: Optional[TourFilter] = None) -> List[Tour]:
        tour_filter = tour_filter or TourFilter()
        query = select(TourRecord)
        if tour_filter.search:
            query = query.where(TourRecord.title.ilike(f"%{tour_filter.search}%"))
        query = query.order_by(TourRecord.title, TourRecord.id).offset(tour_filter.offset)
        if tour_filter.limit is not None:
            query = query.limit(tour_filter.limit)

        result = await self.session.execute(query)
        return [_to_tour(record) for record in result.scalars().all()]

    async def count(self) -> int:
        result = await self.session.execute(select(func.count()).select_from(TourRecord))
        return result.scalar_one()
