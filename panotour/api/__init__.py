"""
API 路由模块

统一注册所有 API 路由
"""

from fastapi import APIRouter

from panotour.api.v1 import analytics, tours

router = APIRouter()

router.include_router(tours.router, prefix="/v1/tours", tags=["Tour"])
router.include_router(analytics.router, prefix="/v1/analytics", tags=["分析"])
