"""
Panotour 主入口

职责:
- Tour 编辑与校验
- 导入导出
- 查看器分析事件接收
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Type

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from panotour import __version__
from panotour.api import router as api_router
from panotour.core.config import settings
from panotour.core.errors import (
    ConflictError,
    LimitExceededError,
    MalformedDocumentError,
    NotFoundError,
    PanotourError,
    TourValidationFailed,
)
from panotour.core.logging import setup_logging
from panotour.database.engine import close_db

logger = structlog.get_logger(__name__)

ERROR_STATUS: Dict[Type[PanotourError], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    TourValidationFailed: status.HTTP_422_UNPROCESSABLE_ENTITY,
    LimitExceededError: status.HTTP_403_FORBIDDEN,
    MalformedDocumentError: status.HTTP_400_BAD_REQUEST,
    ConflictError: status.HTTP_409_CONFLICT,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理"""
    setup_logging()
    logger.info("app_started", env=settings.ENV, edition=settings.EDITION)
    yield
    await close_db()


async def handle_panotour_error(request: Request, exc: PanotourError) -> JSONResponse:
    """业务错误 → HTTP 状态码"""
    status_code = status.HTTP_400_BAD_REQUEST
    for error_type in type(exc).__mro__:
        if error_type in ERROR_STATUS:
            status_code = ERROR_STATUS[error_type]
            break
    logger.info(
        "request_rejected",
        path=request.url.path,
        code=exc.code,
        status_code=status_code,
    )
    return JSONResponse(status_code=status_code, content=exc.to_dict())


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="Panotour",
        description="360° 全景虚拟漫游：Tour 编辑、校验、导入导出与分析",
        version=__version__,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(PanotourError, handle_panotour_error)
    app.include_router(api_router, prefix="/api")

    @app.get("/health")
    async def health_check() -> dict:
        """健康检查端点"""
        return {"status": "healthy", "service": "panotour", "version": __version__}

    return app


app = create_app()
