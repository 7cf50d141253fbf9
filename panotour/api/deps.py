"""
API 依赖注入
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from panotour.analytics.store import AnalyticsStore
from panotour.core.config import settings
from panotour.core.limits import TierLimits, get_tier_limits
from panotour.database.engine import get_db
from panotour.repository import SqlAlchemyTourRepository
from panotour.services import TourService


def get_limits() -> TierLimits:
    """当前版本的限额策略"""
    return get_tier_limits(settings)


async def get_tour_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    limits: Annotated[TierLimits, Depends(get_limits)],
) -> TourService:
    return TourService(SqlAlchemyTourRepository(db), limits)


async def get_analytics_store(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> AnalyticsStore:
    return AnalyticsStore(db)


TourServiceDep = Annotated[TourService, Depends(get_tour_service)]
AnalyticsStoreDep = Annotated[AnalyticsStore, Depends(get_analytics_store)]
