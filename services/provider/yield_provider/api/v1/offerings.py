"""作业类型目录接口：列出支持的作业类型并查询其输入契约。"""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from yield_provider.api.v1.envelope import make_error, make_response
from yield_provider.api.v1.schemas import OfferingResponse
from yield_provider.application.container import get_deliverable_registry
from yield_provider.domain.deliverables.registry import DeliverableRegistry

router = APIRouter()


def _registry() -> DeliverableRegistry:
    """依赖注入辅助函数，返回交付物注册中心实例。"""
    return get_deliverable_registry()


@router.get("/offerings")
def list_offerings(registry: DeliverableRegistry = Depends(_registry)) -> JSONResponse:
    """返回全部作业类型描述。"""
    offerings = [OfferingResponse(**item).model_dump(exclude_none=True) for item in registry.list_descriptors()]
    return make_response(offerings)


@router.get("/offerings/{kind}")
def get_offering(kind: str, registry: DeliverableRegistry = Depends(_registry)) -> JSONResponse:
    """返回指定作业类型描述；未知类型返回 404。"""
    try:
        deliverable = registry.get(kind)
    except KeyError:
        return make_error(f"unknown offering: {kind}", 404, input={"kind": kind})
    return make_response(OfferingResponse(**asdict(deliverable.descriptor())).model_dump(exclude_none=True))
