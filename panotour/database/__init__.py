"""
数据库模块

提供 SQLAlchemy 2.0 异步数据库支持
"""

from panotour.database.base import Base, JSONDocument, TimestampMixin
from panotour.database.engine import (
    async_session_maker,
    close_db,
    engine,
    get_db,
    init_db,
)
from panotour.database.models import AnalyticsEventRecord, TourRecord

__all__ = [
    # Engine
    "engine",
    "async_session_maker",
    "get_db",
    "init_db",
    "close_db",
    # Base
    "Base",
    "JSONDocument",
    "TimestampMixin",
    # Models
    "AnalyticsEventRecord",
    "TourRecord",
]
