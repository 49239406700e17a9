"""交付物计算抽象基类，约束输入 schema、计算逻辑与交付物公共字段。"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from yield_provider.domain.enums import JobKind
from yield_provider.domain.heuristics import now_iso
from yield_provider.domain.models import OfferingDescriptor, ValidationError
from yield_provider.domain.validation import Schema, validate


class BaseDeliverable(ABC):
    """交付物计算器基类；子类只需声明 schema 并实现 compute。"""
    kind: JobKind
    name: str
    version: str = "1.0.0"
    description: str = ""
    schema: Schema = ()

    @abstractmethod
    def compute(self, requirement: dict[str, Any]) -> dict[str, Any]:
        """基于（可能不合法的）需求计算交付物主体，缺失字段使用默认值。"""

    def validate(self, requirement: Any) -> list[ValidationError]:
        """按声明式 schema 校验需求载荷。"""
        return validate(requirement, self.schema)

    def build(self, requirement: Any) -> dict[str, Any]:
        """校验并计算完整交付物；校验失败不阻断计算，仅随结果上报。"""
        payload = requirement if isinstance(requirement, dict) else {}
        errors = self.validate(payload)
        deliverable: dict[str, Any] = {"job_name": self.kind.value, "timestamp_utc": now_iso()}
        deliverable.update(self.compute(payload))
        deliverable["validation_passed"] = not errors
        deliverable["validation_errors"] = [error.as_dict() for error in errors]
        return deliverable

    def descriptor(self) -> OfferingDescriptor:
        """返回作业类型描述对象。"""
        return OfferingDescriptor(
            code=self.kind.value,
            name=self.name,
            version=self.version,
            description=self.description,
            input_schema=[spec.describe() for spec in self.schema],
        )
