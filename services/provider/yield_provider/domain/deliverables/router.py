"""作业路由器：按作业元数据分派到对应计算器，未知或缺失元数据时生成最小交付物。"""

from __future__ import annotations

from typing import Any

from yield_provider.domain.deliverables.registry import DeliverableRegistry
from yield_provider.domain.enums import JobKind
from yield_provider.domain.heuristics import now_iso
from yield_provider.domain.models import JobMetadata, ValidationError

UNKNOWN_JOB_MESSAGE = "Unknown job type. Please ensure the job name matches one of the supported offerings."


def minimal_deliverable(job_name: str, errors: list[ValidationError], **extra: Any) -> dict[str, Any]:
    """构建仅含公共字段的最小交付物。"""
    payload: dict[str, Any] = {"job_name": job_name, "timestamp_utc": now_iso()}
    payload.update(extra)
    payload["validation_passed"] = False
    payload["validation_errors"] = [error.as_dict() for error in errors]
    return payload


def fallback_deliverable(exc: BaseException) -> dict[str, Any]:
    """交付失败时的内部错误交付物。"""
    return minimal_deliverable(
        JobKind.unknown.value,
        [
            ValidationError("Delivery failed internally", "internal"),
            ValidationError(str(exc), "exception"),
        ],
    )


class JobRouter:
    """作业路由器；对任何输入都返回交付物而不抛出分派异常。"""
    def __init__(self, registry: DeliverableRegistry) -> None:
        self._registry = registry

    def route(self, metadata: JobMetadata | None) -> dict[str, Any]:
        """按元数据分派并计算交付物。"""
        if metadata is None:
            return minimal_deliverable(JobKind.unknown.value, [ValidationError("Missing job metadata", "metadata")])

        deliverable = self._registry.find(metadata.job_kind)
        if deliverable is None:
            return minimal_deliverable(
                JobKind.unknown.value,
                [ValidationError(f"No handler implemented for job name: {metadata.kind}", "job_name")],
                message=UNKNOWN_JOB_MESSAGE,
            )
        return deliverable.build(metadata.requirement)
