"""
错误类型

- 校验错误以数据返回（见 panotour.validation），仅在提交失败时包装为 TourValidationFailed
- 引擎/运行时错误进入查看器 Error 状态，不向宿主页面抛出
- 只有调用契约被违反时才是硬错误
"""

from typing import TYPE_CHECKING, List, Sequence

if TYPE_CHECKING:
    from panotour.validation.tour_validator import ValidationError


class PanotourError(Exception):
    """所有业务错误的基类"""

    code = "panotour_error"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "detail": self.message}


class NotFoundError(PanotourError):
    """Tour / Scene / Hotspot 不存在"""

    code = "not_found"


class EmptyTourError(PanotourError):
    """Tour 没有任何场景"""

    code = "empty_tour"


class ConflictError(PanotourError):
    """存储层并发写冲突"""

    code = "conflict"


class LimitExceededError(PanotourError):
    """超出版本限额（例如 Lite 版的 Tour 数量）"""

    code = "limit_exceeded"


class MalformedDocumentError(PanotourError):
    """导入文档无法解析或缺少必需的外层字段"""

    code = "malformed_document"


class TourValidationFailed(PanotourError):
    """
    提交被拒绝

    携带校验引擎返回的完整错误列表，调用方保留原状态
    """

    code = "validation_failed"

    def __init__(self, errors: Sequence["ValidationError"]):
        self.errors: List["ValidationError"] = list(errors)
        summary = "; ".join(str(e) for e in self.errors[:3])
        if len(self.errors) > 3:
            summary += f" (+{len(self.errors) - 3} more)"
        super().__init__(summary or "Validation failed")

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "detail": self.message,
            "errors": [e.to_dict() for e in self.errors],
        }


class EngineLoadError(PanotourError):
    """全景图或渲染引擎加载失败"""

    code = "engine_load_error"


class DestroyedViewerError(PanotourError):
    """在 destroy() 之后继续操作查看器"""

    code = "destroyed_viewer"


class ViewerConfigurationError(PanotourError):
    """集成方传入了无效的容器或 Tour"""

    code = "viewer_configuration"
