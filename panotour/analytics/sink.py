"""
分析事件接收端

record() 必须立即返回且不向调用方抛出异常：
投递失败只记日志，不影响查看器状态机
"""

import asyncio
from collections import deque
from typing import Deque, List, Optional, Protocol, Set

import httpx
import structlog

from panotour.analytics.events import AnalyticsEventType, InteractionEvent
from panotour.core.config import Settings

logger = structlog.get_logger(__name__)

DEFAULT_MAX_PENDING = 1000


class AnalyticsSink(Protocol):
    """分析事件接收端接口"""

    def record(self, event: InteractionEvent) -> None:
        ...


class NullAnalyticsSink:
    """丢弃所有事件"""

    def record(self, event: InteractionEvent) -> None:
        return None


class MemoryAnalyticsSink:
    """在内存中保留事件（预览与测试）"""

    def __init__(self) -> None:
        self.events: List[InteractionEvent] = []

    def record(self, event: InteractionEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: AnalyticsEventType) -> List[InteractionEvent]:
        return [e for e in self.events if e.type == event_type.value]

    def clear(self) -> None:
        self.events.clear()


class SafeAnalyticsSink:
    """包装任意接收端，吞掉并记录投递异常"""

    def __init__(self, inner: AnalyticsSink):
        self.inner = inner

    def record(self, event: InteractionEvent) -> None:
        try:
            self.inner.record(event)
        except Exception as e:
            logger.warning("analytics_record_failed", event_type=event.type, error=str(e))


class HttpAnalyticsSink:
    """
    通过 HTTP 投递到事件接收接口

    有运行中的事件循环时在后台任务里发送；
    否则先缓存，由 flush() 统一发送。缓存最多 max_pending 条，满了丢弃最旧的事件
    """

    def __init__(
        self,
        endpoint: str,
        timeout: float = 2.0,
        client: Optional[httpx.AsyncClient] = None,
        max_pending: int = DEFAULT_MAX_PENDING,
    ):
        self.endpoint = endpoint
        self.timeout = timeout
        self.max_pending = max_pending
        self.dropped = 0
        self._client = client
        self._pending: Deque[InteractionEvent] = deque(maxlen=max_pending)
        self._tasks: Set[asyncio.Task] = set()

    def record(self, event: InteractionEvent) -> None:
        if len(self._pending) == self.max_pending:
            self.dropped += 1
            logger.warning("analytics_buffer_full", max_pending=self.max_pending, dropped=self.dropped)
        self._pending.append(event)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(self.flush())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def flush(self) -> bool:
        """发送缓存的事件，返回是否成功"""
        if not self._pending:
            return True
        batch = list(self._pending)
        self._pending.clear()
        payload = {"events": [e.to_payload() for e in batch]}

        try:
            if self._client is not None:
                response = await self._client.post(self.endpoint, json=payload, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.endpoint, json=payload)
            response.raise_for_status()
        except Exception as e:
            logger.warning("analytics_delivery_failed", event_count=len(batch), error=str(e))
            return False

        logger.debug("analytics_delivered", event_count=len(batch))
        return True

    async def aclose(self) -> None:
        """等待后台发送完成并发送剩余事件"""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        await self.flush()


def build_sink(settings: Settings) -> AnalyticsSink:
    """根据配置创建接收端"""
    if not settings.ANALYTICS_ENABLED:
        return NullAnalyticsSink()
    return SafeAnalyticsSink(
        HttpAnalyticsSink(
            settings.ANALYTICS_ENDPOINT,
            settings.ANALYTICS_TIMEOUT_SECONDS,
            max_pending=settings.ANALYTICS_MAX_PENDING,
        )
    )
