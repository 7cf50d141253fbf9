"""
分析事件存储

接收接口写入 analytics_events 表，并按 Tour 汇总
"""

from typing import Any, Dict, Sequence

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from panotour.analytics.events import AnalyticsEventType, InteractionEvent
from panotour.database.models import AnalyticsEventRecord

logger = structlog.get_logger(__name__)


class AnalyticsStore:
    """analytics_events 表的读写"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def record_many(self, events: Sequence[InteractionEvent]) -> int:
        for event in events:
            self.session.add(
                AnalyticsEventRecord(
                    event_type=event.type,
                    tour_id=event.tour_id,
                    scene_id=event.scene_id,
                    hotspot_id=event.hotspot_id,
                    event_data=dict(event.data),
                    occurred_at=event.timestamp,
                )
            )
        await self.session.flush()
        logger.info("analytics_events_stored", event_count=len(events))
        return len(events)

    async def tour_summary(self, tour_id: str) -> Dict[str, Any]:
        """
        Tour 汇总

        views 为 scene_loaded 事件数（每次查看器就绪或切换完成各计一次）
        """
        by_type = await self.session.execute(
            select(AnalyticsEventRecord.event_type, func.count())
            .where(AnalyticsEventRecord.tour_id == tour_id)
            .group_by(AnalyticsEventRecord.event_type)
        )
        counts = {event_type: count for event_type, count in by_type.all()}

        by_scene = await self.session.execute(
            select(AnalyticsEventRecord.scene_id, func.count())
            .where(
                AnalyticsEventRecord.tour_id == tour_id,
                AnalyticsEventRecord.event_type == AnalyticsEventType.SCENE_LOADED.value,
                AnalyticsEventRecord.scene_id.is_not(None),
            )
            .group_by(AnalyticsEventRecord.scene_id)
        )

        return {
            "tour_id": tour_id,
            "views": counts.get(AnalyticsEventType.SCENE_LOADED.value, 0),
            "hotspot_clicks": counts.get(AnalyticsEventType.HOTSPOT_CLICK.value, 0),
            "events": counts,
            "scenes": {scene_id: count for scene_id, count in by_scene.all()},
        }
