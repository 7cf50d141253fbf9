"""
Tour 仓储接口

仓储只负责持久化，假设传入的 Tour 已经通过校验；
同一 Tour 的并发写由存储本身串行化，这里不做乐观锁
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from panotour.domain.tour import Tour


@dataclass
class TourFilter:
    """列表查询条件"""

    search: Optional[str] = None
    offset: int = 0
    limit: Optional[int] = 50

    def matches(self, tour: Tour) -> bool:
        if not self.search:
            return True
        return self.search.lower() in tour.title.lower()


class TourRepository(ABC):
    """Tour 仓储"""

    @abstractmethod
    async def get(self, tour_id: str) -> Tour:
        """获取 Tour，不存在时抛出 NotFoundError"""

    @abstractmethod
    async def save(self, tour: Tour) -> Tour:
        """
        保存 Tour

        首次保存（id 为空）时分配 id；更新不存在的 id 抛出 NotFoundError，
        存储冲突抛出 ConflictError
        """

    @abstractmethod
    async def delete(self, tour_id: str) -> None:
        """删除 Tour 及其全部场景与热点"""

    @abstractmethod
    async def list(self, tour_filter: Optional[TourFilter] = None) -> List[Tour]:
        """按标题排序列出 Tour"""

    @abstractmethod
    async def count(self) -> int:
        """Tour 总数"""
