"""
分析事件模型

记录查看器交互事件
"""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from panotour.database.base import Base, JSONDocument


class AnalyticsEventRecord(Base):
    """
    分析事件实体

    不对 tours 建外键：Tour 删除后历史事件仍然保留
    """

    __tablename__ = "analytics_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # 事件信息
    event_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    tour_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)
    scene_id: Mapped[Optional[str]] = mapped_column(String(100))
    hotspot_id: Mapped[Optional[str]] = mapped_column(String(100))
    event_data: Mapped[Dict[str, Any]] = mapped_column(JSONDocument, nullable=False, default=dict)

    # 时间
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<AnalyticsEventRecord(id={self.id}, event_type={self.event_type})>"
