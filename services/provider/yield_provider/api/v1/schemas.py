"""API 响应数据模型定义，约束资源目录与作业类型接口的信封结构。"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class EnvelopeMeta(BaseModel):
    """响应元信息；resource 与 input 仅在资源接口中出现。"""
    model_config = ConfigDict(extra="allow")

    generated_at_utc: str
    service: str | None = None
    resource: str | None = None
    input: dict[str, Any] | None = None


class Envelope(BaseModel):
    """统一响应信封：成功时携带 data，失败时携带 error。"""
    ok: bool
    data: Any | None = None
    error: str | None = None
    meta: EnvelopeMeta


class FieldDescriptor(BaseModel):
    """作业输入字段描述。"""
    field: str
    kind: str
    required: bool
    children: list[FieldDescriptor] | None = None


class OfferingResponse(BaseModel):
    """作业类型描述响应模型。"""
    code: str
    name: str
    version: str
    description: str
    input_schema: list[FieldDescriptor]
