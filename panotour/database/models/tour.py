"""
Tour 存储模型

一行一个 Tour，场景与热点作为整体文档保存在 config 列中，
删除 Tour 即删除其全部场景与热点
"""

from typing import Any, Dict, Optional

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from panotour.database.base import Base, JSONDocument, TimestampMixin


class TourRecord(Base, TimestampMixin):
    """Tour 实体"""

    __tablename__ = "tours"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text)

    # 完整 TourDocument（camelCase）
    config: Mapped[Dict[str, Any]] = mapped_column(JSONDocument, nullable=False, default=dict)

    def __repr__(self) -> str:
        return f"<TourRecord(id={self.id}, title={self.title})>"
