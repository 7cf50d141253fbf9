"""
内存 Tour 仓储

用于预览、脚本的 dry-run 与测试
"""

import asyncio
from typing import Dict, List, Optional
from uuid import uuid4

import structlog

from panotour.core.errors import NotFoundError
from panotour.domain.tour import Tour
from panotour.repository.base import TourFilter, TourRepository

logger = structlog.get_logger(__name__)


class InMemoryTourRepository(TourRepository):
    """基于字典的仓储，写操作由 asyncio.Lock 串行化"""

    def __init__(self) -> None:
        self._tours: Dict[str, Tour] = {}
        self._lock = asyncio.Lock()

    async def get(self, tour_id: str) -> Tour:
        tour = self._tours.get(tour_id)
        if tour is None:
            raise NotFoundError(f"Tour not found: {tour_id}")
        return tour

    async def save(self, tour: Tour) -> Tour:
        async with self._lock:
            if tour.id is None:
                tour = tour.with_id(str(uuid4()))
            elif tour.id not in self._tours:
                raise NotFoundError(f"Tour not found: {tour.id}")
            self._tours[tour.id] = tour
        logger.debug("tour_saved", tour_id=tour.id, scenes=len(tour.scenes))
        return tour

    async def delete(self, tour_id: str) -> None:
        async with self._lock:
            if self._tours.pop(tour_id, None) is None:
                raise NotFoundError(f"Tour not found: {tour_id}")
        logger.debug("tour_deleted", tour_id=tour_id)

    async def list(self, tour_filter: Optional[TourFilter] = None) -> List[Tour]:
        tour_filter = tour_filter or TourFilter()
        tours = sorted(
            (tour for tour in self._tours.values() if tour_filter.matches(tour)),
            key=lambda tour: (tour.title, tour.id),
        )
        end = None if tour_filter.limit is None else tour_filter.offset + tour_filter.limit
        return tours[tour_filter.offset:end]

    async def count(self) -> int:
        return len(self._tours)
