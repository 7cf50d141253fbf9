"""
宿主平台接口

全屏、新窗口、弹窗等浏览器能力由宿主页面提供
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

FullscreenDone = Callable[[bool], None]
FullscreenListener = Callable[[bool], None]
Unsubscribe = Callable[[], None]


@dataclass(frozen=True)
class HotspotModal:
    """信息 / 媒体热点弹窗内容"""

    hotspot_id: str
    hotspot_type: str
    title: Optional[str] = None
    text: Optional[str] = None
    media_url: Optional[str] = None


class HostPlatform(Protocol):
    """宿主页面能力"""

    def request_fullscreen(self, container: Any, done: FullscreenDone) -> None:
        """请求全屏，完成后以是否成功回调 done"""
        ...

    def exit_fullscreen(self, done: FullscreenDone) -> None:
        ...

    def add_fullscreen_listener(self, listener: FullscreenListener) -> Unsubscribe:
        """平台级全屏变化（例如用户按 Esc），返回取消订阅函数"""
        ...

    def open_window(self, url: str) -> None:
        """在新的、无 opener / referrer 的浏览上下文中打开 URL"""
        ...

    def show_modal(self, modal: HotspotModal) -> None:
        ...

    def close_modal(self) -> None:
        ...
