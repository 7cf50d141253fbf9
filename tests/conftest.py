"""
测试配置和 fixtures
"""

import os

os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["EDITION"] = "lite"
os.environ["ANALYTICS_ENABLED"] = "false"

from typing import Any, AsyncGenerator, Callable, Dict, List, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from panotour.database.base import Base
from panotour.database.engine import get_db
from panotour.main import app

TEST_DATABASE_URL = "sqlite+aiosqlite://"


# ============================================================
# Tour 文档
# ============================================================

def _scene(
    scene_id: str,
    title: Optional[str] = None,
    hotspots: Optional[List[Dict[str, Any]]] = None,
    **extra: Any,
) -> Dict[str, Any]:
    scene = {
        "id": scene_id,
        "title": title or f"Scene {scene_id}",
        "type": "equirectangular",
        "image": {"url": f"https://x/{scene_id}.jpg"},
        "hotspots": hotspots or [],
    }
    scene.update(extra)
    return scene


def _tour(scenes: List[Dict[str, Any]], title: str = "Demo", **extra: Any) -> Dict[str, Any]:
    tour = {"title": title, "scenes": scenes}
    tour.update(extra)
    return tour


@pytest.fixture
def build_scene() -> Callable[..., Dict[str, Any]]:
    """场景文档构造器"""
    return _scene


@pytest.fixture
def build_tour() -> Callable[..., Dict[str, Any]]:
    """Tour 文档构造器"""
    return _tour


@pytest.fixture
def minimal_tour() -> Dict[str, Any]:
    """只有一个场景的最小 Tour"""
    return {
        "title": "Demo",
        "scenes": [
            {
                "id": "s1",
                "title": "Lobby",
                "type": "equirectangular",
                "image": {"url": "https://x/img.jpg"},
                "hotspots": [],
            }
        ],
    }


@pytest.fixture
def linked_tour() -> Dict[str, Any]:
    """三个场景，互相有跳转热点，另带信息与外链热点"""
    return _tour(
        [
            _scene(
                "s1",
                "Lobby",
                hotspots=[
                    {
                        "id": "to-s2",
                        "type": "scene",
                        "position": {"yaw": 10, "pitch": 0},
                        "title": "Go to hall",
                        "targetSceneId": "s2",
                        "targetYaw": 90,
                    },
                    {
                        "id": "about",
                        "type": "info",
                        "position": {"yaw": -30, "pitch": 5},
                        "title": "About",
                        "text": "Welcome to the lobby",
                        "icon": "info",
                    },
                    {
                        "id": "site",
                        "type": "link",
                        "position": {"yaw": 45, "pitch": -5},
                        "url": "https://example.com/",
                    },
                ],
                initialView={"yaw": 0, "pitch": 0, "fov": 100},
            ),
            _scene(
                "s2",
                "Hall",
                hotspots=[
                    {
                        "id": "to-s3",
                        "type": "scene",
                        "position": {"yaw": 0, "pitch": 0},
                        "targetSceneId": "s3",
                    },
                ],
            ),
            _scene(
                "s3",
                "Garden",
                hotspots=[
                    {
                        "id": "back",
                        "type": "scene",
                        "position": {"yaw": 180, "pitch": 0},
                        "targetSceneId": "s1",
                    },
                ],
            ),
        ],
        title="Campus",
        description="A short walk",
    )


# ============================================================
# 数据库与 API 客户端
# ============================================================

@pytest_asyncio.fixture
async def test_engine():
    """内存 SQLite 引擎，所有会话共享同一连接"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(test_engine) -> async_sessionmaker:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """创建测试数据库会话"""
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def client(session_maker) -> AsyncGenerator[AsyncClient, None]:
    """创建测试客户端"""

    async def override_get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
