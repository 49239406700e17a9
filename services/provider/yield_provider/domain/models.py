"""领域数据结构定义：作业元数据、校验错误与阶段事件等核心值对象。"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from yield_provider.domain.enums import JobKind, MemoStatus


@dataclass(slots=True, frozen=True)
class ValidationError:
    """字段级校验错误，field 为点分路径。"""
    message: str
    field: str

    def as_dict(self) -> dict[str, str]:
        return {"message": self.message, "field": self.field}


@dataclass(slots=True, frozen=True)
class JobMetadata:
    """协商阶段确定的作业元数据：作业类型名与需求载荷。"""
    kind: str
    requirement: dict[str, Any] = field(default_factory=dict)

    @property
    def job_kind(self) -> JobKind:
        return JobKind.resolve(self.kind)

    @classmethod
    def from_payload(cls, payload: Any) -> JobMetadata | None:
        """从 memo 结构化内容构建元数据；未声明作业名时返回 None。"""
        if not isinstance(payload, dict):
            return None
        name = payload.get("name")
        if not name:
            return None
        requirement = payload.get("requirement")
        return cls(kind=str(name), requirement=requirement if isinstance(requirement, dict) else {})

    @classmethod
    def from_content(cls, content: Any) -> JobMetadata | None:
        """尽力解析 memo 的序列化 content 字符串，解析失败返回 None。"""
        if not isinstance(content, str):
            return None
        try:
            parsed = json.loads(content)
        except json.JSONDecodeError:
            return None
        return cls.from_payload(parsed)

    def to_payload(self) -> dict[str, Any]:
        return {"name": self.kind, "requirement": self.requirement}


def _phase_number(value: Any) -> int | None:
    """阶段编号允许整数或整值浮点（如 1.0），其余取值视为缺失。"""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


@dataclass(slots=True)
class PhaseEvent:
    """传输层推送的阶段变更事件（待签名 memo）。"""
    status: str | None
    next_phase: int | None
    structured_content: dict[str, Any] | None = None
    content: str | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == MemoStatus.pending.value

    @classmethod
    def from_wire(cls, payload: Any) -> PhaseEvent | None:
        """将网关下发的 memoToSign JSON 转为事件对象。"""
        if not isinstance(payload, dict):
            return None
        next_phase = payload.get("nextPhase")
        structured = payload.get("structuredContent")
        content = payload.get("content")
        return cls(
            status=payload.get("status"),
            next_phase=_phase_number(next_phase),
            structured_content=structured if isinstance(structured, dict) else None,
            content=content if isinstance(content, str) else None,
        )


@dataclass(slots=True)
class OfferingDescriptor:
    """作业类型元信息描述对象，用于接口返回与目录展示。"""
    code: str
    name: str
    version: str
    description: str
    input_schema: list[dict[str, Any]]
