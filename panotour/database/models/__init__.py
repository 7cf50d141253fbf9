"""
数据库模型
"""

from panotour.database.models.analytics_event import AnalyticsEventRecord
from panotour.database.models.tour import TourRecord

__all__ = [
    "AnalyticsEventRecord",
    "TourRecord",
]
