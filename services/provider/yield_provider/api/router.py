"""API 总路由配置：作业类型目录挂载在版本前缀下，资源目录保持根路径。"""

from __future__ import annotations

from fastapi import APIRouter

from yield_provider.api.v1.offerings import router as offerings_router
from yield_provider.api.v1.resources import router as resources_router
from yield_provider.config import get_settings

settings = get_settings()

api_router = APIRouter(prefix=settings.api_prefix)
api_router.include_router(offerings_router, tags=["offerings"])

resources_api_router = APIRouter()
resources_api_router.include_router(resources_router, tags=["resources"])
