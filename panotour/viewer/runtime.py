"""
查看器运行时

每个容器一个 TourViewer 实例，独占一个引擎实例，没有共享的全局状态。

并发模型：单线程、事件驱动
- 场景切换采用"最后一次请求生效"：被取代的切换完成回调会被忽略
- 所有引擎 / 平台回调都绑定在 generation 上，destroy() 或重新 initialize()
  之后旧回调不再修改状态
- 引擎加载失败进入 ERROR 状态而不是向宿主抛出；再次 initialize() 即重试
"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

import structlog

from panotour.analytics import (
    AnalyticsEventType,
    AnalyticsSink,
    InteractionEvent,
    NullAnalyticsSink,
    SafeAnalyticsSink,
)
from panotour.analytics.events import utc_now
from panotour.core.errors import (
    DestroyedViewerError,
    EmptyTourError,
    EngineLoadError,
    ViewerConfigurationError,
)
from panotour.core.limits import LITE_LIMITS, TierLimits
from panotour.domain import navigation
from panotour.domain.tour import (
    AudioHotspot,
    HotspotBase,
    ImageHotspot,
    InfoHotspot,
    LinkHotspot,
    MediaHotspot,
    Scene,
    SceneHotspot,
    Tour,
    VideoHotspot,
)
from panotour.viewer.descriptors import (
    SCENE_FADE_DURATION_MS,
    build_engine_config,
    hotspot_descriptor,
    scene_descriptor,
)
from panotour.viewer.engine import (
    ENGINE_ERROR,
    ENGINE_LOAD,
    ENGINE_MOUSEDOWN,
    ENGINE_SCENE_CHANGE,
    EngineCallback,
    EngineFactory,
    EngineHandle,
)
from panotour.viewer.platform import HostPlatform, HotspotModal, Unsubscribe
from panotour.viewer.state import ACTIVE_STATES, ViewerState

logger = structlog.get_logger(__name__)

ZOOM_STEP = 10.0

# 宿主事件
VIEWER_EVENTS = frozenset(
    {"statechange", "ready", "scenechange", "hotspotclick", "fullscreenchange", "error"}
)


class TourViewer:
    """全景 Tour 查看器"""

    def __init__(
        self,
        platform: HostPlatform,
        analytics: Optional[AnalyticsSink] = None,
        clock: Optional[Callable[[], datetime]] = None,
        limits: TierLimits = LITE_LIMITS,
    ):
        self.platform = platform
        self.analytics: AnalyticsSink = SafeAnalyticsSink(analytics) if analytics is not None else NullAnalyticsSink()
        self.clock = clock or utc_now
        self.limits = limits

        self.state = ViewerState.UNINITIALIZED
        self.tour: Optional[Tour] = None
        self.container: Any = None
        self.engine: Optional[EngineHandle] = None
        self.current_scene_id: Optional[str] = None
        self.pending_scene_id: Optional[str] = None
        self.is_fullscreen = False
        self.is_auto_rotating = False
        self.auto_rotate_speed: Optional[float] = None
        self.modal_open = False
        self.last_error: Optional[EngineLoadError] = None

        self._generation = 0
        self._engine_listeners: List[Tuple[str, EngineCallback]] = []
        self._unsubscribe_fullscreen: Optional[Unsubscribe] = None
        self._handlers: Dict[str, List[Callable[..., None]]] = {}
        self._auto_rotate_started = False

        self._hotspot_handlers = {
            SceneHotspot: self._follow_scene_hotspot,
            LinkHotspot: self._open_link_hotspot,
            InfoHotspot: self._show_hotspot_modal,
            ImageHotspot: self._show_hotspot_modal,
            VideoHotspot: self._show_hotspot_modal,
            AudioHotspot: self._show_hotspot_modal,
        }

    # ============================================================
    # 宿主事件
    # ============================================================

    def on(self, event: str, callback: Callable[..., None]) -> None:
        self._ensure_alive()
        if event not in VIEWER_EVENTS:
            raise ViewerConfigurationError(f"Unknown viewer event: {event}")
        self._handlers.setdefault(event, []).append(callback)

    def off(self, event: str, callback: Callable[..., None]) -> None:
        self._ensure_alive()
        handlers = self._handlers.get(event, [])
        if callback in handlers:
            handlers.remove(callback)

    def _emit(self, event: str, *args: Any) -> None:
        for callback in list(self._handlers.get(event, [])):
            try:
                callback(*args)
            except Exception as e:
                logger.warning("viewer_handler_failed", event=event, error=str(e))

    def _set_state(self, state: ViewerState) -> None:
        if state == self.state:
            return
        previous, self.state = self.state, state
        logger.debug("viewer_state_changed", previous=previous.value, state=state.value)
        self._emit("statechange", state, previous)

    def _track(self, event_type: AnalyticsEventType, **fields: Any) -> None:
        self.analytics.record(
            InteractionEvent(
                type=event_type,
                tour_id=self.tour.id if self.tour else None,
                timestamp=self.clock(),
                **fields,
            )
        )

    def _guard(self, callback: Callable[..., None]) -> Callable[..., None]:
        """绑定当前 generation，过期的回调直接丢弃"""
        generation = self._generation

        def guarded(*args: Any) -> None:
            if generation != self._generation or self.state == ViewerState.DESTROYED:
                logger.debug("viewer_stale_callback_ignored", callback=callback.__name__)
                return
            callback(*args)

        guarded.__name__ = callback.__name__
        return guarded

    def _ensure_alive(self) -> None:
        if self.state == ViewerState.DESTROYED:
            raise DestroyedViewerError("Viewer has been destroyed")

    # ============================================================
    # 生命周期
    # ============================================================

    def initialize(self, container: Any, tour: Tour, engine_factory: EngineFactory) -> None:
        """
        在容器中创建引擎并开始加载默认场景

        Raises:
            ViewerConfigurationError: 容器不存在或 Tour 没有场景
        """
        if container is None:
            raise ViewerConfigurationError("Viewer container not found")
        if not isinstance(tour, Tour):
            raise ViewerConfigurationError("Viewer requires a Tour")
        try:
            first_scene = navigation.default_scene(tour)
        except EmptyTourError as e:
            raise ViewerConfigurationError("Tour has no scenes") from e

        self._release()
        self._generation += 1
        self.container = container
        self.tour = tour
        self.current_scene_id = first_scene.id
        self.pending_scene_id = None
        self.last_error = None
        self._auto_rotate_started = False
        self._set_state(ViewerState.LOADING)

        log = logger.bind(tour_id=tour.id, first_scene=first_scene.id)
        try:
            engine = engine_factory(container, build_engine_config(tour, first_scene))
        except Exception as e:
            log.warning("viewer_engine_create_failed", error=str(e))
            self._fail(f"Failed to initialize 360° viewer: {e}")
            return

        self.engine = engine
        self._listen(ENGINE_LOAD, self._on_load)
        self._listen(ENGINE_ERROR, self._on_error)
        self._listen(ENGINE_SCENE_CHANGE, self._on_scene_change)
        self._listen(ENGINE_MOUSEDOWN, self._on_mousedown)
        self._unsubscribe_fullscreen = self.platform.add_fullscreen_listener(
            self._guard(self._on_platform_fullscreen_change)
        )
        log.info("viewer_initialized", scenes=len(tour.scenes))

    def destroy(self) -> None:
        """释放引擎与所有监听器，可在任意状态调用"""
        if self.state == ViewerState.DESTROYED:
            return
        self._generation += 1
        self._release()
        self.tour = None
        self.container = None
        self.current_scene_id = None
        self.pending_scene_id = None
        self.last_error = None
        self._set_state(ViewerState.DESTROYED)
        self._handlers.clear()
        logger.info("viewer_destroyed")

    def _release(self) -> None:
        engine = self.engine
        if engine is not None:
            for event, callback in self._engine_listeners:
                engine.off(event, callback)
        self._engine_listeners = []

        if self._unsubscribe_fullscreen is not None:
            self._unsubscribe_fullscreen()
            self._unsubscribe_fullscreen = None

        if self.modal_open:
            self.platform.close_modal()
            self.modal_open = False

        self.engine = None
        if engine is not None:
            try:
                engine.destroy()
            except Exception as e:
                logger.warning("viewer_engine_destroy_failed", error=str(e))

        self.is_fullscreen = False
        self.is_auto_rotating = False
        self.auto_rotate_speed = None

    def _listen(self, event: str, callback: Callable[..., None]) -> None:
        guarded = self._guard(callback)
        self.engine.on(event, guarded)
        self._engine_listeners.append((event, guarded))

    def _fail(self, message: str) -> None:
        self.last_error = EngineLoadError(message)
        self.pending_scene_id = None
        self._set_state(ViewerState.ERROR)
        self._emit("error", self.last_error)

    # ============================================================
    # 引擎回调
    # ============================================================

    def _on_load(self, *args: Any) -> None:
        if self.state != ViewerState.LOADING:
            return
        self._set_state(ViewerState.READY)
        self._render_markers()
        self._track(AnalyticsEventType.SCENE_LOADED, scene_id=self.current_scene_id)
        self._emit("ready", self.current_scene)

        autorotate = self.tour.settings.autorotate
        if autorotate.enabled and not self._auto_rotate_started:
            self.start_auto_rotate(autorotate.speed)

    def _on_error(self, message: Any = None, *args: Any) -> None:
        logger.warning(
            "viewer_engine_error",
            state=self.state.value,
            scene_id=self.pending_scene_id or self.current_scene_id,
            error=str(message) if message else None,
        )
        self._fail(str(message) if message else "Panorama failed to load")

    def _on_scene_change(self, scene_id: str, *args: Any) -> None:
        if self.state == ViewerState.SCENE_TRANSITION:
            if scene_id != self.pending_scene_id:
                logger.debug("scene_load_superseded", scene_id=scene_id, pending=self.pending_scene_id)
                return
            self.current_scene_id = scene_id
            self.pending_scene_id = None
            self._set_state(ViewerState.READY)
            self._render_markers()
            self._track(AnalyticsEventType.SCENE_LOADED, scene_id=scene_id)
            self._emit("scenechange", self.current_scene)
        elif self.state == ViewerState.READY and scene_id != self.current_scene_id:
            # 引擎显示的场景与当前场景不一致，切回当前场景
            logger.debug("scene_change_steered_back", reported=scene_id, current=self.current_scene_id)
            self._request_scene(self.current_scene)

    def _on_mousedown(self, *args: Any) -> None:
        self._track(AnalyticsEventType.INTERACTION, scene_id=self.current_scene_id, data={"kind": "mousedown"})
        if self.is_auto_rotating:
            self.stop_auto_rotate()

    def _on_platform_fullscreen_change(self, active: bool) -> None:
        self._set_fullscreen(bool(active))

    def _render_markers(self) -> None:
        scene = self.current_scene
        if self.engine is None or scene is None:
            return
        self.engine.clear_markers()
        for hotspot in scene.hotspots:
            self.engine.add_marker(
                hotspot_descriptor(hotspot, self._guard(self._click_handler(hotspot.id)))
            )

    def _click_handler(self, hotspot_id: str) -> Callable[[], None]:
        def on_click() -> None:
            self.activate_hotspot(hotspot_id)

        on_click.__name__ = f"hotspot_click_{hotspot_id}"
        return on_click

    # ============================================================
    # 场景
    # ============================================================

    @property
    def current_scene(self) -> Optional[Scene]:
        if self.tour is None or self.current_scene_id is None:
            return None
        return self.tour.find_scene(self.current_scene_id)

    def load_scene(
        self,
        scene_id: str,
        target_yaw: Optional[float] = None,
        target_pitch: Optional[float] = None,
    ) -> bool:
        """
        切换场景

        切换过程中再次调用会取代进行中的切换。
        返回是否发起了切换（未就绪或场景不存在时返回 False）
        """
        self._ensure_alive()
        if self.state not in ACTIVE_STATES:
            logger.warning("load_scene_not_ready", scene_id=scene_id, state=self.state.value)
            return False

        scene = self.tour.find_scene(scene_id)
        if scene is None:
            logger.warning("scene_not_found", scene_id=scene_id, tour_id=self.tour.id)
            return False

        if self.state == ViewerState.READY and scene_id == self.current_scene_id:
            return True

        previous = self.pending_scene_id or self.current_scene_id
        if not self._request_scene(scene, target_yaw, target_pitch):
            return False
        self._track(AnalyticsEventType.SCENE_CHANGE, scene_id=scene_id, data={"from": previous})
        return True

    def _request_scene(
        self,
        scene: Scene,
        target_yaw: Optional[float] = None,
        target_pitch: Optional[float] = None,
    ) -> bool:
        descriptor = scene_descriptor(scene)
        descriptor["sceneFadeDuration"] = SCENE_FADE_DURATION_MS
        if target_yaw is not None:
            descriptor["yaw"] = target_yaw
        if target_pitch is not None:
            descriptor["pitch"] = target_pitch

        self.pending_scene_id = scene.id
        self._set_state(ViewerState.SCENE_TRANSITION)
        try:
            self.engine.load_scene(scene.id, descriptor)
        except Exception as e:
            logger.warning("viewer_scene_load_failed", scene_id=scene.id, error=str(e))
            self._fail(f"Failed to load scene {scene.id}: {e}")
            return False
        return True

    def next_scene(self) -> bool:
        self._ensure_alive()
        if self.state not in ACTIVE_STATES:
            return False
        base = self.pending_scene_id or self.current_scene_id
        return self.load_scene(navigation.next_scene(self.tour, base).id)

    def previous_scene(self) -> bool:
        self._ensure_alive()
        if self.state not in ACTIVE_STATES:
            return False
        base = self.pending_scene_id or self.current_scene_id
        return self.load_scene(navigation.previous_scene(self.tour, base).id)

    # ============================================================
    # 热点
    # ============================================================

    def activate_hotspot(self, hotspot_id: str) -> bool:
        """执行当前场景中某个热点的动作"""
        self._ensure_alive()
        if self.state != ViewerState.READY:
            logger.debug("hotspot_ignored_not_ready", hotspot_id=hotspot_id, state=self.state.value)
            return False

        scene = self.current_scene
        hotspot = scene.find_hotspot(hotspot_id) if scene else None
        if hotspot is None:
            logger.warning("hotspot_not_found", hotspot_id=hotspot_id, scene_id=self.current_scene_id)
            return False

        self._track(
            AnalyticsEventType.HOTSPOT_CLICK,
            scene_id=scene.id,
            hotspot_id=hotspot.id,
            data={"type": hotspot.type},
        )
        self._emit("hotspotclick", hotspot)
        self._hotspot_handlers[type(hotspot)](hotspot)
        return True

    def _follow_scene_hotspot(self, hotspot: SceneHotspot) -> None:
        self.load_scene(hotspot.target_scene_id, hotspot.target_yaw, hotspot.target_pitch)

    def _open_link_hotspot(self, hotspot: LinkHotspot) -> None:
        self.platform.open_window(hotspot.url)

    def _show_hotspot_modal(self, hotspot: HotspotBase) -> None:
        media_url = hotspot.url if isinstance(hotspot, MediaHotspot) else None
        self.platform.show_modal(
            HotspotModal(
                hotspot_id=hotspot.id,
                hotspot_type=hotspot.type,
                title=hotspot.title,
                text=hotspot.text,
                media_url=media_url,
            )
        )
        self.modal_open = True

    def close_modal(self) -> None:
        self._ensure_alive()
        if self.modal_open:
            self.platform.close_modal()
            self.modal_open = False

    # ============================================================
    # 自动旋转
    # ============================================================

    def start_auto_rotate(self, speed: Optional[float] = None) -> bool:
        """开始自动旋转，速度限制在配置范围内"""
        self._ensure_alive()
        if self.engine is None or self.state not in ACTIVE_STATES:
            return False
        if speed is None:
            speed = self.tour.settings.autorotate.speed
        speed = self.limits.clamp_autorotate_speed(speed)

        self.engine.set_auto_rotate(speed)
        self._auto_rotate_started = True
        was_rotating = self.is_auto_rotating
        self.is_auto_rotating = True
        self.auto_rotate_speed = speed
        if not was_rotating:
            self._track(AnalyticsEventType.AUTO_ROTATE_START, scene_id=self.current_scene_id, data={"speed": speed})
        return True

    def stop_auto_rotate(self) -> bool:
        self._ensure_alive()
        if self.engine is None or not self.is_auto_rotating:
            return False
        self.engine.set_auto_rotate(False)
        self.is_auto_rotating = False
        self._track(AnalyticsEventType.AUTO_ROTATE_STOP, scene_id=self.current_scene_id)
        return True

    def toggle_auto_rotate(self) -> bool:
        if self.is_auto_rotating:
            return self.stop_auto_rotate()
        return self.start_auto_rotate()

    def pause(self) -> None:
        """页面不可见时暂停"""
        self._ensure_alive()
        self.stop_auto_rotate()

    # ============================================================
    # 全屏与尺寸
    # ============================================================

    def enter_fullscreen(self) -> None:
        self._ensure_alive()
        if self.engine is None or self.is_fullscreen:
            return
        self.platform.request_fullscreen(self.container, self._guard(self._on_enter_done))

    def exit_fullscreen(self) -> None:
        self._ensure_alive()
        if self.engine is None or not self.is_fullscreen:
            return
        self.platform.exit_fullscreen(self._guard(self._on_exit_done))

    def toggle_fullscreen(self) -> None:
        if self.is_fullscreen:
            self.exit_fullscreen()
        else:
            self.enter_fullscreen()

    def _on_enter_done(self, success: bool) -> None:
        if success:
            self._set_fullscreen(True)
        else:
            logger.info("fullscreen_request_denied")

    def _on_exit_done(self, success: bool) -> None:
        if success:
            self._set_fullscreen(False)

    def _set_fullscreen(self, active: bool) -> None:
        if active == self.is_fullscreen:
            return
        self.is_fullscreen = active
        if self.engine is not None:
            self.engine.resize()
        self._track(
            AnalyticsEventType.FULLSCREEN_ENTER if active else AnalyticsEventType.FULLSCREEN_EXIT,
            scene_id=self.current_scene_id,
        )
        self._emit("fullscreenchange", active)

    def resize(self) -> None:
        self._ensure_alive()
        if self.engine is not None:
            self.engine.resize()

    def zoom_in(self) -> None:
        self._zoom(-ZOOM_STEP)

    def zoom_out(self) -> None:
        self._zoom(ZOOM_STEP)

    def _zoom(self, delta: float) -> None:
        self._ensure_alive()
        if self.engine is None or self.state not in ACTIVE_STATES:
            return
        self.engine.set_hfov(self.limits.clamp_fov(self.engine.get_hfov() + delta))

    # ============================================================
    # 键盘
    # ============================================================

    def handle_key(self, key: str) -> bool:
        """键盘快捷键，返回是否处理"""
        self._ensure_alive()
        actions = {
            "ArrowLeft": self.previous_scene,
            "ArrowRight": self.next_scene,
            "ArrowUp": self.zoom_in,
            "ArrowDown": self.zoom_out,
            " ": self.toggle_auto_rotate,
            "f": self.toggle_fullscreen,
            "F": self.toggle_fullscreen,
            "Escape": self.exit_fullscreen,
        }
        action = actions.get(key)
        if action is None:
            return False
        action()
        return True

    def tour_info(self) -> Dict[str, Any]:
        """当前 Tour 与查看器状态摘要"""
        self._ensure_alive()
        return {
            "tourId": self.tour.id if self.tour else None,
            "title": self.tour.title if self.tour else None,
            "sceneCount": len(self.tour.scenes) if self.tour else 0,
            "currentSceneId": self.current_scene_id,
            "pendingSceneId": self.pending_scene_id,
            "state": self.state.value,
            "isFullscreen": self.is_fullscreen,
            "isAutoRotating": self.is_auto_rotating,
        }


def create_viewer(
    container: Any,
    tour: Tour,
    engine_factory: EngineFactory,
    platform: HostPlatform,
    analytics: Optional[AnalyticsSink] = None,
    limits: TierLimits = LITE_LIMITS,
    clock: Optional[Callable[[], datetime]] = None,
) -> TourViewer:
    """为一个容器创建并初始化查看器"""
    viewer = TourViewer(platform, analytics=analytics, clock=clock, limits=limits)
    viewer.initialize(container, tour, engine_factory)
    return viewer
