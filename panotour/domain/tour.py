"""
Tour 数据模型

Tour → Scene → Hotspot 三层结构：
- Scene 按顺序排列，顺序决定默认导航与缩略图顺序
- Hotspot 按 type 区分为带标签的变体，每种变体只携带自己需要的字段
- 模型只读（frozen），编辑操作见 panotour.domain.editing

字段名在 JSON 文档中使用 camelCase（targetSceneId、initialView 等）
"""

from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class TourModel(BaseModel):
    """Tour 文档模型基类"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


# ============================================================
# 坐标与视角
# ============================================================

class Position(TourModel):
    """热点在球面上的位置（度）"""

    yaw: float
    pitch: float


class InitialView(TourModel):
    """场景初始视角，未设置的值由引擎决定"""

    yaw: Optional[float] = None
    pitch: Optional[float] = None
    fov: Optional[float] = None


class SceneImage(TourModel):
    """全景图来源：媒体库引用或直接 URL"""

    id: Optional[int] = None
    url: Optional[str] = None


# ============================================================
# Hotspot 变体
# ============================================================

class HotspotBase(TourModel):
    """热点公共字段"""

    id: str
    type: str
    position: Position
    title: Optional[str] = None
    text: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("text", "description"),
    )
    icon: Optional[str] = None


class InfoHotspot(HotspotBase):
    """信息热点：点击后弹出文字说明"""

    type: Literal["info"] = "info"


class LinkHotspot(HotspotBase):
    """外链热点：在新窗口打开 URL"""

    type: Literal["link"] = "link"
    url: str


class SceneHotspot(HotspotBase):
    """场景跳转热点：targetSceneId 必须指向同一 Tour 内的场景"""

    type: Literal["scene"] = "scene"
    target_scene_id: str
    target_yaw: Optional[float] = None
    target_pitch: Optional[float] = None


class MediaHotspot(HotspotBase):
    """媒体热点基类（图片/视频/音频）"""

    url: str


class ImageHotspot(MediaHotspot):
    type: Literal["image"] = "image"


class VideoHotspot(MediaHotspot):
    type: Literal["video"] = "video"


class AudioHotspot(MediaHotspot):
    type: Literal["audio"] = "audio"


Hotspot = Annotated[
    Union[InfoHotspot, LinkHotspot, SceneHotspot, ImageHotspot, VideoHotspot, AudioHotspot],
    Field(discriminator="type"),
]

HOTSPOT_CLASSES: Dict[str, type] = {
    "info": InfoHotspot,
    "link": LinkHotspot,
    "scene": SceneHotspot,
    "image": ImageHotspot,
    "video": VideoHotspot,
    "audio": AudioHotspot,
}


# ============================================================
# Scene
# ============================================================

class Scene(TourModel):
    """场景：一张全景图 + 初始视角 + 所属热点"""

    id: str
    title: str
    type: str = "equirectangular"
    image: SceneImage
    initial_view: Optional[InitialView] = None
    is_default: bool = False
    hotspots: List[Hotspot] = Field(default_factory=list)

    def find_hotspot(self, hotspot_id: str) -> Optional[HotspotBase]:
        for hotspot in self.hotspots:
            if hotspot.id == hotspot_id:
                return hotspot
        return None

    @property
    def image_source(self) -> Optional[str]:
        return self.image.url


# ============================================================
# Tour 设置
# ============================================================

class UiSettings(TourModel):
    show_thumbnails: bool = True
    show_zoom: bool = True
    show_fullscreen: bool = True
    show_compass: bool = False


class AutorotateSettings(TourModel):
    enabled: bool = False
    speed: float = 0.5
    pause_on_hover: bool = True


class MobileSettings(TourModel):
    gyro: bool = True
    touch: bool = True


class BrandingSettings(TourModel):
    logo_id: Optional[int] = None
    logo_url: Optional[str] = None
    position: str = "bottom-right"


class TourSettings(TourModel):
    """查看器设置"""

    ui: UiSettings = Field(default_factory=UiSettings)
    autorotate: AutorotateSettings = Field(default_factory=AutorotateSettings)
    mobile: MobileSettings = Field(default_factory=MobileSettings)
    branding: BrandingSettings = Field(default_factory=BrandingSettings)


# ============================================================
# Tour
# ============================================================

class Tour(TourModel):
    """
    Tour 实体

    id 由仓储在首次保存时分配，之后不可变
    """

    id: Optional[str] = None
    title: str
    description: Optional[str] = None
    settings: TourSettings = Field(default_factory=TourSettings)
    scenes: List[Scene] = Field(default_factory=list)

    def to_document(self) -> Dict[str, Any]:
        """导出为 JSON 文档（camelCase，省略空值，字段顺序固定）"""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "Tour":
        return cls.model_validate(document)

    def with_id(self, tour_id: str) -> "Tour":
        return self.model_copy(update={"id": tour_id})

    def find_scene(self, scene_id: str) -> Optional[Scene]:
        for scene in self.scenes:
            if scene.id == scene_id:
                return scene
        return None

    @property
    def hotspot_count(self) -> int:
        return sum(len(scene.hotspots) for scene in self.scenes)
