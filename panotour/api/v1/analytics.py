"""
分析事件 API

查看器事件接收与按 Tour 汇总
"""

from typing import Any, Dict, List

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from panotour.analytics import InteractionEvent
from panotour.api.deps import AnalyticsStoreDep

router = APIRouter()


class EventBatch(BaseModel):
    """事件批次"""

    events: List[InteractionEvent] = Field(..., max_length=500)


@router.post("/events", status_code=status.HTTP_202_ACCEPTED)
async def ingest_events(batch: EventBatch, store: AnalyticsStoreDep) -> Dict[str, int]:
    accepted = await store.record_many(batch.events)
    return {"accepted": accepted}


@router.get("/tours/{tour_id}/summary")
async def tour_summary(tour_id: str, store: AnalyticsStoreDep) -> Dict[str, Any]:
    """Tour 浏览与交互汇总"""
    return await store.tour_summary(tour_id)
