"""
查看器运行时测试

用假的引擎与宿主平台驱动状态机
"""

from collections import defaultdict
from datetime import datetime, timezone

import pytest

from panotour.analytics import AnalyticsEventType, MemoryAnalyticsSink
from panotour.core.errors import DestroyedViewerError, EngineLoadError, ViewerConfigurationError
from panotour.domain import Tour
from panotour.viewer import HotspotModal, TourViewer, ViewerState, build_engine_config, create_viewer

FIXED_NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
CONTAINER = "#tour-1"

# destroy() 之后除 initialize 外的所有公开调用
DESTROYED_VIEWER_CALLS = [
    ("load_scene", lambda v: v.load_scene("s1")),
    ("next_scene", lambda v: v.next_scene()),
    ("previous_scene", lambda v: v.previous_scene()),
    ("activate_hotspot", lambda v: v.activate_hotspot("about")),
    ("close_modal", lambda v: v.close_modal()),
    ("start_auto_rotate", lambda v: v.start_auto_rotate()),
    ("stop_auto_rotate", lambda v: v.stop_auto_rotate()),
    ("toggle_auto_rotate", lambda v: v.toggle_auto_rotate()),
    ("pause", lambda v: v.pause()),
    ("enter_fullscreen", lambda v: v.enter_fullscreen()),
    ("exit_fullscreen", lambda v: v.exit_fullscreen()),
    ("toggle_fullscreen", lambda v: v.toggle_fullscreen()),
    ("resize", lambda v: v.resize()),
    ("zoom_in", lambda v: v.zoom_in()),
    ("zoom_out", lambda v: v.zoom_out()),
    ("handle_key", lambda v: v.handle_key("ArrowRight")),
    ("tour_info", lambda v: v.tour_info()),
    ("on", lambda v: v.on("ready", print)),
    ("off", lambda v: v.off("ready", print)),
]


# ============================================================
# 测试替身
# ============================================================

class FakeEngine:
    def __init__(self, container, config):
        self.container = container
        self.config = config
        self.listeners = defaultdict(list)
        self.loads = []
        self.markers = []
        self.auto_rotate = False
        self.hfov = 100.0
        self.resizes = 0
        self.destroyed = False

    def on(self, event, callback):
        self.listeners[event].append(callback)

    def off(self, event, callback):
        self.listeners[event].remove(callback)

    def fire(self, event, *args):
        for callback in list(self.listeners[event]):
            callback(*args)

    def load_scene(self, scene_id, descriptor):
        self.loads.append((scene_id, descriptor))

    def add_marker(self, descriptor):
        self.markers.append(descriptor)

    def clear_markers(self):
        self.markers = []

    def set_auto_rotate(self, speed):
        self.auto_rotate = speed

    def get_hfov(self):
        return self.hfov

    def set_hfov(self, hfov):
        self.hfov = hfov

    def resize(self):
        self.resizes += 1

    def destroy(self):
        self.destroyed = True


class FakeEngineFactory:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.engines = []

    def __call__(self, container, config):
        if self.fail:
            raise RuntimeError("WebGL not supported")
        engine = FakeEngine(container, config)
        self.engines.append(engine)
        return engine

    @property
    def engine(self) -> FakeEngine:
        return self.engines[-1]


class FakePlatform:
    def __init__(self, grant_fullscreen: bool = True):
        self.grant_fullscreen = grant_fullscreen
        self.fullscreen_listeners = []
        self.opened = []
        self.modals = []
        self.closed_modals = 0

    def request_fullscreen(self, container, done):
        done(self.grant_fullscreen)

    def exit_fullscreen(self, done):
        done(True)

    def add_fullscreen_listener(self, listener):
        self.fullscreen_listeners.append(listener)
        return lambda: self.fullscreen_listeners.remove(listener)

    def user_left_fullscreen(self):
        for listener in list(self.fullscreen_listeners):
            listener(False)

    def open_window(self, url):
        self.opened.append(url)

    def show_modal(self, modal):
        self.modals.append(modal)

    def close_modal(self):
        self.closed_modals += 1


class BrokenSink:
    def record(self, event):
        raise ConnectionError("analytics down")


# ============================================================
# fixtures
# ============================================================

@pytest.fixture
def tour(linked_tour) -> Tour:
    return Tour.from_document(dict(linked_tour, id="tour-1"))


@pytest.fixture
def factory() -> FakeEngineFactory:
    return FakeEngineFactory()


@pytest.fixture
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture
def sink() -> MemoryAnalyticsSink:
    return MemoryAnalyticsSink()


@pytest.fixture
def viewer(platform, sink) -> TourViewer:
    return TourViewer(platform, analytics=sink, clock=lambda: FIXED_NOW)


@pytest.fixture
def ready_viewer(viewer, tour, factory) -> TourViewer:
    viewer.initialize(CONTAINER, tour, factory)
    factory.engine.fire("load")
    return viewer


# ============================================================
# 生命周期
# ============================================================

def test_viewer_lifecycle(viewer, tour, factory, sink):
    viewer.initialize(CONTAINER, tour, factory)
    assert viewer.state == ViewerState.LOADING
    engine = factory.engine
    assert engine.container == CONTAINER

    engine.fire("load")
    assert viewer.state == ViewerState.READY
    assert viewer.current_scene.id == "s1"
    assert [m["id"] for m in engine.markers] == ["to-s2", "about", "site"]

    assert viewer.load_scene("s2") is True
    assert viewer.state == ViewerState.SCENE_TRANSITION
    assert engine.loads[-1][0] == "s2"
    assert engine.loads[-1][1]["sceneFadeDuration"] == 1000

    engine.fire("scenechange", "s2")
    assert viewer.state == ViewerState.READY
    assert viewer.current_scene.id == "s2"
    assert [m["id"] for m in engine.markers] == ["to-s3"]

    viewer.destroy()
    assert viewer.state == ViewerState.DESTROYED
    assert engine.destroyed
    assert not any(engine.listeners.values())
    for _, call in DESTROYED_VIEWER_CALLS:
        with pytest.raises(DestroyedViewerError):
            call(viewer)

    assert [e.type for e in sink.events] == ["scene_loaded", "scene_change", "scene_loaded"]
    assert all(e.tour_id == "tour-1" and e.timestamp == FIXED_NOW for e in sink.events)


def test_destroy_is_idempotent(ready_viewer, factory):
    ready_viewer.destroy()
    ready_viewer.destroy()
    assert ready_viewer.state == ViewerState.DESTROYED
    with pytest.raises(DestroyedViewerError):
        ready_viewer.activate_hotspot("about")
    with pytest.raises(DestroyedViewerError):
        ready_viewer.start_auto_rotate()


@pytest.mark.parametrize(
    "call",
    [call for _, call in DESTROYED_VIEWER_CALLS],
    ids=[name for name, _ in DESTROYED_VIEWER_CALLS],
)
def test_calls_after_destroy_fail(ready_viewer, platform, call):
    ready_viewer.activate_hotspot("about")
    ready_viewer.destroy()
    with pytest.raises(DestroyedViewerError):
        call(ready_viewer)
    assert platform.closed_modals == 1


def test_stale_callbacks_after_destroy_are_ignored(ready_viewer, factory):
    engine = factory.engine
    on_scene_change = engine.listeners["scenechange"][0]
    ready_viewer.load_scene("s2")

    ready_viewer.destroy()
    on_scene_change("s2")

    assert ready_viewer.state == ViewerState.DESTROYED
    assert ready_viewer.current_scene_id is None


def test_reinitialize_ignores_previous_engine(viewer, tour, factory):
    viewer.initialize(CONTAINER, tour, factory)
    first_engine = factory.engine
    stale_load = first_engine.listeners["load"][0]

    viewer.initialize(CONTAINER, tour, factory)
    assert first_engine.destroyed
    stale_load()
    assert viewer.state == ViewerState.LOADING

    factory.engine.fire("load")
    assert viewer.state == ViewerState.READY


def test_destroyed_viewer_can_be_initialized_again(ready_viewer, tour, factory):
    ready_viewer.destroy()
    ready_viewer.initialize(CONTAINER, tour, factory)
    factory.engine.fire("load")
    assert ready_viewer.state == ViewerState.READY


def test_engine_creation_failure_enters_error_and_retries(viewer, tour):
    errors = []
    viewer.on("error", errors.append)

    viewer.initialize(CONTAINER, tour, FakeEngineFactory(fail=True))
    assert viewer.state == ViewerState.ERROR
    assert isinstance(viewer.last_error, EngineLoadError)
    assert "WebGL not supported" in viewer.last_error.message
    assert errors == [viewer.last_error]

    factory = FakeEngineFactory()
    viewer.initialize(CONTAINER, tour, factory)
    assert viewer.state == ViewerState.LOADING
    assert viewer.last_error is None
    factory.engine.fire("load")
    assert viewer.state == ViewerState.READY


def test_engine_error_event_enters_error(ready_viewer, factory):
    ready_viewer.load_scene("s2")
    factory.engine.fire("error", "404 panorama")
    assert ready_viewer.state == ViewerState.ERROR
    assert ready_viewer.last_error.message == "404 panorama"
    assert ready_viewer.pending_scene_id is None


def test_initialize_requires_container_and_scenes(viewer, tour, factory):
    with pytest.raises(ViewerConfigurationError):
        viewer.initialize(None, tour, factory)
    with pytest.raises(ViewerConfigurationError):
        viewer.initialize(CONTAINER, Tour(title="Empty"), factory)
    assert viewer.state == ViewerState.UNINITIALIZED
    assert factory.engines == []


def test_initialize_starts_at_default_scene(viewer, linked_tour, factory):
    linked_tour["scenes"][2]["isDefault"] = True
    viewer.initialize(CONTAINER, Tour.from_document(linked_tour), factory)
    assert viewer.current_scene_id == "s3"
    assert factory.engine.config["default"]["firstScene"] == "s3"


# ============================================================
# 场景切换
# ============================================================

def test_superseded_transition_keeps_latest_scene(ready_viewer, factory):
    engine = factory.engine
    ready_viewer.load_scene("s2")
    ready_viewer.load_scene("s3")

    engine.fire("scenechange", "s2")
    assert ready_viewer.state == ViewerState.SCENE_TRANSITION
    assert ready_viewer.current_scene_id == "s1"

    engine.fire("scenechange", "s3")
    assert ready_viewer.state == ViewerState.READY
    assert ready_viewer.current_scene.id == "s3"


def test_late_completion_of_superseded_scene_is_steered_back(ready_viewer, factory):
    engine = factory.engine
    ready_viewer.load_scene("s2")
    ready_viewer.load_scene("s3")

    engine.fire("scenechange", "s3")
    assert ready_viewer.current_scene_id == "s3"

    engine.fire("scenechange", "s2")
    assert ready_viewer.current_scene_id == "s3"
    assert engine.loads[-1][0] == "s3"

    engine.fire("scenechange", "s3")
    assert ready_viewer.state == ViewerState.READY
    assert ready_viewer.current_scene.id == "s3"


def test_load_scene_before_ready_is_ignored(viewer, tour, factory):
    viewer.initialize(CONTAINER, tour, factory)
    assert viewer.load_scene("s2") is False
    assert factory.engine.loads == []


def test_load_unknown_scene_is_ignored(ready_viewer, factory):
    assert ready_viewer.load_scene("ghost") is False
    assert ready_viewer.state == ViewerState.READY
    assert factory.engine.loads == []


def test_load_current_scene_is_noop(ready_viewer, factory):
    assert ready_viewer.load_scene("s1") is True
    assert ready_viewer.state == ViewerState.READY
    assert factory.engine.loads == []


def test_next_and_previous_scene_wrap(ready_viewer, factory):
    engine = factory.engine
    assert ready_viewer.previous_scene() is True
    assert engine.loads[-1][0] == "s3"
    engine.fire("scenechange", "s3")

    ready_viewer.next_scene()
    assert engine.loads[-1][0] == "s1"


def test_navigation_during_transition_uses_pending_scene(ready_viewer, factory):
    engine = factory.engine
    ready_viewer.next_scene()
    ready_viewer.next_scene()
    assert [scene_id for scene_id, _ in engine.loads] == ["s2", "s3"]
    engine.fire("scenechange", "s3")
    assert ready_viewer.current_scene_id == "s3"


# ============================================================
# 热点
# ============================================================

def test_scene_hotspot_loads_target(ready_viewer, factory, sink):
    assert ready_viewer.activate_hotspot("to-s2") is True
    scene_id, descriptor = factory.engine.loads[-1]
    assert scene_id == "s2"
    assert descriptor["yaw"] == 90

    clicks = sink.of_type(AnalyticsEventType.HOTSPOT_CLICK)
    assert [(e.scene_id, e.hotspot_id) for e in clicks] == [("s1", "to-s2")]


def test_link_hotspot_opens_window(ready_viewer, platform):
    ready_viewer.activate_hotspot("site")
    assert platform.opened == ["https://example.com/"]
    assert ready_viewer.state == ViewerState.READY


def test_info_hotspot_shows_modal(ready_viewer, platform):
    ready_viewer.activate_hotspot("about")
    assert platform.modals == [
        HotspotModal(hotspot_id="about", hotspot_type="info", title="About", text="Welcome to the lobby")
    ]
    ready_viewer.close_modal()
    assert platform.closed_modals == 1


def test_marker_click_handler_dispatches(ready_viewer, factory, platform):
    marker = next(m for m in factory.engine.markers if m["id"] == "site")
    marker["clickHandler"]()
    assert platform.opened == ["https://example.com/"]


def test_unknown_hotspot_is_ignored(ready_viewer, sink):
    assert ready_viewer.activate_hotspot("ghost") is False
    assert sink.of_type(AnalyticsEventType.HOTSPOT_CLICK) == []


def test_hotspot_ignored_during_transition(ready_viewer, platform):
    ready_viewer.load_scene("s2")
    assert ready_viewer.activate_hotspot("site") is False
    assert platform.opened == []


def test_destroy_closes_open_modal(ready_viewer, platform):
    ready_viewer.activate_hotspot("about")
    ready_viewer.destroy()
    assert platform.closed_modals == 1


# ============================================================
# 自动旋转、全屏、缩放、键盘
# ============================================================

def test_auto_rotate_speed_is_clamped(ready_viewer, factory, sink):
    ready_viewer.start_auto_rotate(5.0)
    assert factory.engine.auto_rotate == 2.0
    assert ready_viewer.is_auto_rotating

    ready_viewer.stop_auto_rotate()
    assert factory.engine.auto_rotate is False
    assert not ready_viewer.is_auto_rotating

    types = [e.type for e in sink.events]
    assert types[-2:] == ["auto_rotate_start", "auto_rotate_stop"]


def test_auto_rotate_from_settings_starts_when_ready(viewer, linked_tour, factory):
    linked_tour["settings"] = {"autorotate": {"enabled": True, "speed": 0.01}}
    viewer.initialize(CONTAINER, Tour.from_document(linked_tour), factory)
    assert factory.engine.auto_rotate is False

    factory.engine.fire("load")
    assert viewer.is_auto_rotating
    assert factory.engine.auto_rotate == 0.1


def test_mousedown_stops_auto_rotate(ready_viewer, factory, sink):
    ready_viewer.toggle_auto_rotate()
    factory.engine.fire("mousedown")
    assert not ready_viewer.is_auto_rotating
    assert sink.of_type(AnalyticsEventType.INTERACTION)[0].data == {"kind": "mousedown"}


def test_fullscreen_resizes_and_resyncs(ready_viewer, factory, platform, sink):
    changes = []
    ready_viewer.on("fullscreenchange", changes.append)

    ready_viewer.enter_fullscreen()
    assert ready_viewer.is_fullscreen
    assert factory.engine.resizes == 1

    platform.user_left_fullscreen()
    assert not ready_viewer.is_fullscreen
    assert factory.engine.resizes == 2
    assert changes == [True, False]

    types = [e.type for e in sink.events]
    assert "fullscreen_enter" in types and "fullscreen_exit" in types


def test_fullscreen_denied(tour, factory):
    viewer = TourViewer(FakePlatform(grant_fullscreen=False))
    viewer.initialize(CONTAINER, tour, factory)
    factory.engine.fire("load")
    viewer.enter_fullscreen()
    assert not viewer.is_fullscreen
    assert factory.engine.resizes == 0


def test_exit_fullscreen(ready_viewer, factory):
    ready_viewer.toggle_fullscreen()
    ready_viewer.toggle_fullscreen()
    assert not ready_viewer.is_fullscreen
    assert factory.engine.resizes == 2


def test_zoom_is_clamped(ready_viewer, factory):
    ready_viewer.zoom_in()
    assert factory.engine.hfov == 90.0
    for _ in range(5):
        ready_viewer.zoom_out()
    assert factory.engine.hfov == 120.0


def test_keyboard_shortcuts(ready_viewer, factory):
    assert ready_viewer.handle_key("ArrowRight") is True
    assert factory.engine.loads[-1][0] == "s2"
    assert ready_viewer.handle_key("ArrowUp") is True
    assert factory.engine.hfov == 90.0
    assert ready_viewer.handle_key(" ") is True
    assert ready_viewer.is_auto_rotating
    assert ready_viewer.handle_key("q") is False


def test_pause_stops_rotation(ready_viewer):
    ready_viewer.start_auto_rotate()
    ready_viewer.pause()
    assert not ready_viewer.is_auto_rotating


# ============================================================
# 宿主事件与分析
# ============================================================

def test_host_events(viewer, tour, factory):
    states = []
    ready = []
    viewer.on("statechange", lambda state, previous: states.append(state))
    viewer.on("ready", ready.append)

    viewer.initialize(CONTAINER, tour, factory)
    factory.engine.fire("load")
    assert states == [ViewerState.LOADING, ViewerState.READY]
    assert ready[0].id == "s1"

    viewer.off("ready", ready.append)
    with pytest.raises(ViewerConfigurationError):
        viewer.on("unknown", print)


def test_failing_handler_does_not_break_viewer(ready_viewer, factory):
    def explode(*args):
        raise RuntimeError("host bug")

    ready_viewer.on("scenechange", explode)
    ready_viewer.load_scene("s2")
    factory.engine.fire("scenechange", "s2")
    assert ready_viewer.state == ViewerState.READY


def test_analytics_failures_are_swallowed(tour, factory, platform):
    viewer = TourViewer(platform, analytics=BrokenSink())
    viewer.initialize(CONTAINER, tour, factory)
    factory.engine.fire("load")
    viewer.activate_hotspot("to-s2")
    assert viewer.state == ViewerState.SCENE_TRANSITION


def test_tour_info(ready_viewer):
    info = ready_viewer.tour_info()
    assert info["tourId"] == "tour-1"
    assert info["sceneCount"] == 3
    assert info["currentSceneId"] == "s1"
    assert info["state"] == "ready"


def test_create_viewer(tour, factory, platform):
    viewer = create_viewer(CONTAINER, tour, factory, platform)
    assert viewer.state == ViewerState.LOADING
    factory.engine.fire("load")
    assert viewer.state == ViewerState.READY


def test_independent_viewers(tour, platform):
    first_factory, second_factory = FakeEngineFactory(), FakeEngineFactory()
    first = create_viewer("#a", tour, first_factory, platform)
    second = create_viewer("#b", tour, second_factory, platform)
    first_factory.engine.fire("load")
    first.destroy()
    second_factory.engine.fire("load")
    assert second.state == ViewerState.READY


# ============================================================
# 引擎描述
# ============================================================

def test_engine_config_descriptors(tour):
    config = build_engine_config(tour, tour.scenes[0])
    assert config["default"]["firstScene"] == "s1"
    assert config["default"]["author"] == "Campus"
    assert list(config["scenes"]) == ["s1", "s2", "s3"]

    lobby = config["scenes"]["s1"]
    assert lobby["panorama"] == "https://x/s1.jpg"
    assert lobby["type"] == "equirectangular"
    assert lobby["hfov"] == 100
    assert [h["type"] for h in lobby["hotSpots"]] == ["scene", "info", "info"]
    assert lobby["hotSpots"][0]["sceneId"] == "s2"
    assert lobby["hotSpots"][2]["URL"] == "https://example.com/"
