"""
分析事件

查看器只依赖 AnalyticsSink.record()，投递方式由集成方选择
"""

from panotour.analytics.events import AnalyticsEventType, InteractionEvent
from panotour.analytics.sink import (
    AnalyticsSink,
    HttpAnalyticsSink,
    MemoryAnalyticsSink,
    NullAnalyticsSink,
    SafeAnalyticsSink,
    build_sink,
)

__all__ = [
    "AnalyticsEventType",
    "AnalyticsSink",
    "HttpAnalyticsSink",
    "InteractionEvent",
    "MemoryAnalyticsSink",
    "NullAnalyticsSink",
    "SafeAnalyticsSink",
    "build_sink",
]
