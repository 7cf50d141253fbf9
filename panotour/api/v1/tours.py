"""
Tour API

Tour 的 CRUD、校验与导入导出
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Query, Request, Response, status
from pydantic import BaseModel

from panotour.api.deps import TourServiceDep
from panotour.domain.tour import Tour
from panotour.repository import TourFilter

router = APIRouter()

JSON_MEDIA_TYPE = "application/json"


class TourSummary(BaseModel):
    """Tour 列表项"""

    id: str
    title: str
    description: Optional[str]
    scene_count: int
    hotspot_count: int

    @classmethod
    def from_tour(cls, tour: Tour) -> "TourSummary":
        return cls(
            id=tour.id,
            title=tour.title,
            description=tour.description,
            scene_count=len(tour.scenes),
            hotspot_count=tour.hotspot_count,
        )


class TourStatistics(BaseModel):
    """导入导出统计"""

    total_tours: int
    total_scenes: int
    total_hotspots: int


@router.get("", response_model=List[TourSummary])
async def list_tours(
    service: TourServiceDep,
    search: Optional[str] = Query(None, description="按标题搜索"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
) -> List[TourSummary]:
    """获取 Tour 列表"""
    tours = await service.list(TourFilter(search=search, offset=skip, limit=limit))
    return [TourSummary.from_tour(tour) for tour in tours]


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_tour(
    service: TourServiceDep,
    draft: Dict[str, Any] = Body(...),
) -> Dict[str, Any]:
    """创建 Tour（请求体为 TourDocument）"""
    tour = await service.create(draft)
    return tour.to_document()


@router.post("/validate")
async def validate_tour(
    service: TourServiceDep,
    draft: Any = Body(...),
) -> Dict[str, Any]:
    """只校验不保存，返回完整错误列表"""
    errors = service.validate(draft)
    return {"valid": not errors, "errors": [e.to_dict() for e in errors]}


@router.get("/stats", response_model=TourStatistics)
async def tour_stats(service: TourServiceDep) -> Dict[str, int]:
    return await service.statistics()


@router.get("/export")
async def export_all_tours(service: TourServiceDep) -> Response:
    """导出全部 Tour（批量格式）"""
    return Response(
        content=await service.export_all(),
        media_type=JSON_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="tours-export.json"'},
    )


@router.post("/import")
async def import_tours(request: Request, service: TourServiceDep) -> Dict[str, Any]:
    """
    导入 Tour

    请求体为批量文档或单个 TourDocument；不合格的 Tour 被跳过并在报告中列出
    """
    report = await service.import_document(await request.body())
    return report.to_dict()


@router.get("/{tour_id}")
async def get_tour(tour_id: str, service: TourServiceDep) -> Dict[str, Any]:
    tour = await service.get(tour_id)
    return tour.to_document()


@router.put("/{tour_id}")
async def update_tour(
    tour_id: str,
    service: TourServiceDep,
    draft: Dict[str, Any] = Body(...),
) -> Dict[str, Any]:
    """整体替换 Tour 内容"""
    tour = await service.update(tour_id, draft)
    return tour.to_document()


@router.delete("/{tour_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_tour(tour_id: str, service: TourServiceDep) -> Response:
    await service.delete(tour_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{tour_id}/export")
async def export_tour(tour_id: str, service: TourServiceDep) -> Response:
    """导出单个 Tour（TourDocument，无外层）"""
    return Response(
        content=await service.export(tour_id),
        media_type=JSON_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="tour-{tour_id}.json"'},
    )
