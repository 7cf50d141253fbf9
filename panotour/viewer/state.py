"""
查看器状态
"""

from enum import Enum


class ViewerState(str, Enum):
    """
    查看器状态机

    UNINITIALIZED → LOADING → READY ⇄ SCENE_TRANSITION
    LOADING / READY / SCENE_TRANSITION → ERROR（可再次 initialize 重试）
    任意状态 → DESTROYED
    """
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    SCENE_TRANSITION = "scene_transition"
    ERROR = "error"
    DESTROYED = "destroyed"


# 可以切换场景 / 控制引擎的状态
ACTIVE_STATES = frozenset({ViewerState.READY, ViewerState.SCENE_TRANSITION})
