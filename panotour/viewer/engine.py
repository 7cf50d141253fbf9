"""
全景渲染引擎接口

查看器只通过这些协议与外部引擎交互，引擎适配器由集成方提供
"""

from typing import Any, Callable, Dict, Protocol, Union

# 引擎事件
ENGINE_LOAD = "load"
ENGINE_ERROR = "error"
ENGINE_SCENE_CHANGE = "scenechange"
ENGINE_MOUSEDOWN = "mousedown"

EngineCallback = Callable[..., None]


class EngineHandle(Protocol):
    """
    引擎实例

    事件回调参数：
    - load: 无
    - error: 错误信息
    - scenechange: 切换完成的场景 id
    - mousedown: 无

    标记只通过 add_marker 渲染，config 中场景的 hotSpots 仅作描述
    """

    def on(self, event: str, callback: EngineCallback) -> None:
        ...

    def off(self, event: str, callback: EngineCallback) -> None:
        ...

    def load_scene(self, scene_id: str, descriptor: Dict[str, Any]) -> None:
        ...

    def add_marker(self, descriptor: Dict[str, Any]) -> None:
        ...

    def clear_markers(self) -> None:
        ...

    def set_auto_rotate(self, speed: Union[float, bool]) -> None:
        ...

    def get_hfov(self) -> float:
        ...

    def set_hfov(self, hfov: float) -> None:
        ...

    def resize(self) -> None:
        ...

    def destroy(self) -> None:
        ...


class EngineFactory(Protocol):
    """在容器中创建引擎实例"""

    def __call__(self, container: Any, config: Dict[str, Any]) -> EngineHandle:
        ...
