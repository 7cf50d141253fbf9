"""
Tour 编辑操作测试

每个操作要么返回完整有效的新 Tour，要么整体被拒绝且原 Tour 不变
"""

import pytest

from panotour.core.errors import NotFoundError, TourValidationFailed
from panotour.core.limits import PRO_LIMITS
from panotour.domain import InfoHotspot, Position, Tour
from panotour.domain import editing


class FakeMediaLibrary:
    def __init__(self, mime_types):
        self.mime_types = mime_types

    def mime_type(self, media_id):
        return self.mime_types.get(media_id)


MEDIA = FakeMediaLibrary({41: "image/jpeg", 42: "application/pdf"})
BAD_FORMAT = "Invalid image format. Only JPEG, PNG, and WebP are allowed"


@pytest.fixture
def tour(linked_tour) -> Tour:
    return Tour.from_document(linked_tour)


def test_add_scene_appends(tour, build_scene):
    updated = editing.add_scene(tour, build_scene("s4", "Roof"))
    assert [s.id for s in updated.scenes] == ["s1", "s2", "s3", "s4"]
    assert [s.id for s in tour.scenes] == ["s1", "s2", "s3"]


def test_add_scene_at_position(tour, build_scene):
    updated = editing.add_scene(tour, build_scene("s0", "Gate"), position=0)
    assert updated.scenes[0].id == "s0"


def test_add_scene_over_limit_is_rejected(tour, build_scene):
    tour = editing.add_scene(tour, build_scene("s4"))
    tour = editing.add_scene(tour, build_scene("s5"))
    with pytest.raises(TourValidationFailed) as exc_info:
        editing.add_scene(tour, build_scene("s6"))
    assert exc_info.value.errors[0].code == "scene_limit"
    assert len(tour.scenes) == 5

    unlimited = editing.add_scene(tour, build_scene("s6"), limits=PRO_LIMITS)
    assert len(unlimited.scenes) == 6


def test_edits_recheck_managed_media(tour, build_scene):
    """编辑后按媒体库重新检查场景图片格式"""
    updated = editing.add_scene(tour, build_scene("s4", image={"id": 41}), media_resolver=MEDIA)
    assert updated.find_scene("s4").image.id == 41

    with pytest.raises(TourValidationFailed) as exc_info:
        editing.add_scene(tour, build_scene("s4", image={"id": 42}), media_resolver=MEDIA)
    assert [e.message for e in exc_info.value.errors] == [BAD_FORMAT]

    with pytest.raises(TourValidationFailed) as exc_info:
        editing.update_scene(tour, "s2", {"image": {"id": 42}}, media_resolver=MEDIA)
    assert [e.message for e in exc_info.value.errors] == [BAD_FORMAT]
    assert tour.find_scene("s2").image.id is None

    # 没有媒体库时只检查 id 本身
    assert editing.update_scene(tour, "s2", {"image": {"id": 42}}).find_scene("s2").image.id == 42


def test_update_scene(tour):
    updated = editing.update_scene(tour, "s2", {"title": "Great Hall"})
    assert updated.find_scene("s2").title == "Great Hall"
    assert tour.find_scene("s2").title == "Hall"


def test_update_unknown_scene(tour):
    with pytest.raises(NotFoundError):
        editing.update_scene(tour, "ghost", {"title": "x"})


def test_remove_scene_drops_references(tour):
    updated = editing.remove_scene(tour, "s2")
    assert [s.id for s in updated.scenes] == ["s1", "s3"]
    assert updated.find_scene("s1").find_hotspot("to-s2") is None
    assert updated.find_scene("s1").find_hotspot("about") is not None


def test_remove_last_scene_is_rejected(minimal_tour):
    tour = Tour.from_document(minimal_tour)
    with pytest.raises(TourValidationFailed) as exc_info:
        editing.remove_scene(tour, "s1")
    assert exc_info.value.errors[0].message == "Tour must have at least one scene"


def test_reorder_scenes(tour):
    updated = editing.reorder_scenes(tour, ["s3", "s1", "s2"])
    assert [s.id for s in updated.scenes] == ["s3", "s1", "s2"]


def test_reorder_scenes_requires_permutation(tour):
    with pytest.raises(TourValidationFailed):
        editing.reorder_scenes(tour, ["s1", "s2"])
    with pytest.raises(TourValidationFailed):
        editing.reorder_scenes(tour, ["s1", "s1", "s2"])


def test_set_default_scene(tour):
    updated = editing.set_default_scene(tour, "s3")
    assert [s.is_default for s in updated.scenes] == [False, False, True]


def test_add_hotspot_model(tour):
    hotspot = InfoHotspot(id="note", position=Position(yaw=5, pitch=5), text="Hello")
    updated = editing.add_hotspot(tour, "s2", hotspot)
    assert updated.find_scene("s2").find_hotspot("note").text == "Hello"


def test_add_invalid_hotspot_is_rejected(tour):
    with pytest.raises(TourValidationFailed) as exc_info:
        editing.add_hotspot(tour, "s2", {"id": "h9", "type": "link", "position": {"yaw": 0, "pitch": 0}})
    assert [e.message for e in exc_info.value.errors] == ["URL is required for link hotspots"]
    assert exc_info.value.to_dict()["errors"][0]["path"] == "scene 2 (Hall): hotspot 2"


def test_add_hotspot_with_dangling_target_is_rejected(tour):
    with pytest.raises(TourValidationFailed) as exc_info:
        editing.add_hotspot(
            tour,
            "s2",
            {"id": "h9", "type": "scene", "position": {"yaw": 0, "pitch": 0}, "targetSceneId": "ghost"},
        )
    assert exc_info.value.errors[0].code == "unresolved_reference"


def test_update_and_remove_hotspot(tour):
    updated = editing.update_hotspot(tour, "s1", "about", {"text": "Updated"})
    assert updated.find_scene("s1").find_hotspot("about").text == "Updated"

    removed = editing.remove_hotspot(updated, "s1", "about")
    assert removed.find_scene("s1").find_hotspot("about") is None

    with pytest.raises(NotFoundError):
        editing.remove_hotspot(removed, "s1", "about")


def test_reorder_hotspots(tour):
    updated = editing.reorder_hotspots(tour, "s1", ["site", "about", "to-s2"])
    assert [h.id for h in updated.find_scene("s1").hotspots] == ["site", "about", "to-s2"]

    with pytest.raises(TourValidationFailed):
        editing.reorder_hotspots(tour, "s1", ["site"])
