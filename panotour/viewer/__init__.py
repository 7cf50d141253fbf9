"""
查看器运行时

状态机 + 引擎 / 宿主平台协议 + Tour 到引擎描述的映射
"""

from panotour.viewer.descriptors import build_engine_config, hotspot_descriptor, scene_descriptor
from panotour.viewer.engine import EngineFactory, EngineHandle
from panotour.viewer.platform import HostPlatform, HotspotModal
from panotour.viewer.runtime import TourViewer, create_viewer
from panotour.viewer.state import ViewerState

__all__ = [
    "EngineFactory",
    "EngineHandle",
    "HostPlatform",
    "HotspotModal",
    "TourViewer",
    "ViewerState",
    "build_engine_config",
    "create_viewer",
    "hotspot_descriptor",
    "scene_descriptor",
]
