"""作业协商状态机：处理接单与交付两个阶段，并维护作业元数据缓存的生命周期。"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from yield_provider.domain.deliverables.router import JobRouter, fallback_deliverable
from yield_provider.domain.enums import JobPhase
from yield_provider.domain.models import JobMetadata, PhaseEvent
from yield_provider.infra.acp.job import JobHandle
from yield_provider.infra.logging.context import bind_log_context
from yield_provider.infra.store.base import JobMetadataStore

logger = logging.getLogger(__name__)

ACCEPT_REASON = "Auto-accepting job from DeFi Yield Optimizer provider"


class NegotiationOutcome(str, Enum):
    """单个阶段事件的处理结果。"""
    ignored = "ignored"
    accepted = "accepted"
    rejected = "rejected"
    delivered = "delivered"
    fallback_delivered = "fallback_delivered"
    delivery_failed = "delivery_failed"


class NegotiationStateMachine:
    """按 memo 的目标阶段驱动接单与交付；只处理 PENDING 状态的 memo。"""
    def __init__(self, store: JobMetadataStore, router: JobRouter) -> None:
        self._store = store
        self._router = router

    def handle(self, job: JobHandle, event: PhaseEvent | None) -> NegotiationOutcome:
        """处理一次阶段事件；任何失败都转为日志与结果枚举，不向外抛出。"""
        phase = str(event.next_phase) if event is not None and event.next_phase is not None else None
        with bind_log_context(job_id=str(job.id), phase=phase):
            if event is None or not event.is_pending:
                logger.info(
                    "no pending memo to act on",
                    extra={"event": "negotiation.ignored", "op": "memo.status", "payload_preview": {"phase": job.phase}},
                )
                return NegotiationOutcome.ignored
            if event.next_phase == JobPhase.negotiation:
                return self._accept(job, event)
            if event.next_phase == JobPhase.evaluation:
                return self._deliver(job, event)
            logger.info(
                "memo next phase not handled",
                extra={"event": "negotiation.ignored", "op": "memo.next_phase", "payload_preview": {"next_phase": event.next_phase}},
            )
            return NegotiationOutcome.ignored

    def on_evaluate(self, job: JobHandle) -> None:
        """评估回调，目前仅记录日志。"""
        with bind_log_context(job_id=str(job.id)):
            logger.info("evaluate callback received", extra={"event": "evaluation.received", "payload_preview": {"phase": job.phase}})

    def _accept(self, job: JobHandle, event: PhaseEvent) -> NegotiationOutcome:
        try:
            metadata = JobMetadata.from_payload(event.structured_content)
            if metadata is not None:
                self._store.put(job.id, metadata)
                logger.info(
                    "job metadata stored",
                    extra={
                        "event": "metadata.stored",
                        "op": "store.put",
                        "payload_preview": {"kind": metadata.kind, "requirement_keys": sorted(metadata.requirement)},
                    },
                )
            job.respond(True, ACCEPT_REASON)
        except Exception as exc:
            logger.exception(
                "negotiation failed",
                extra={"event": "negotiation.failed", "error_type": type(exc).__name__, "error": str(exc)},
            )
            try:
                job.respond(False, f"Error during negotiation: {exc}")
            except Exception as reject_exc:
                logger.error(
                    "rejection response failed",
                    extra={
                        "event": "negotiation.reject.failed",
                        "error_type": type(reject_exc).__name__,
                        "error": str(reject_exc),
                    },
                )
            return NegotiationOutcome.rejected
        logger.info("job accepted", extra={"event": "negotiation.accepted"})
        return NegotiationOutcome.accepted

    def resolve_metadata(self, job_id: str, event: PhaseEvent) -> JobMetadata | None:
        """按 缓存 -> 结构化内容 -> content JSON 的顺序解析元数据；缓存读取失败时跳过缓存。"""
        try:
            metadata = self._store.get(job_id)
        except Exception as exc:
            logger.error(
                "job metadata lookup failed",
                extra={
                    "event": "metadata.lookup.failed",
                    "op": "store.get",
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            metadata = None
        if metadata is not None:
            return metadata
        metadata = JobMetadata.from_payload(event.structured_content)
        if metadata is not None:
            return metadata
        return JobMetadata.from_content(event.content)

    def _deliver(self, job: JobHandle, event: PhaseEvent) -> NegotiationOutcome:
        metadata = self.resolve_metadata(job.id, event)
        if metadata is None:
            logger.warning("no job metadata found; delivering unknown job response", extra={"event": "metadata.missing"})
        else:
            logger.info(
                "job metadata loaded",
                extra={
                    "event": "metadata.loaded",
                    "payload_preview": {"kind": metadata.kind, "requirement_keys": sorted(metadata.requirement)},
                },
            )

        try:
            deliverable = self._router.route(metadata)
            job.deliver(deliverable)
        except Exception as exc:
            logger.exception(
                "delivery failed",
                extra={"event": "delivery.failed", "error_type": type(exc).__name__, "error": str(exc)},
            )
            return self._deliver_fallback(job, exc)

        try:
            self._store.remove(job.id)
        except Exception as exc:
            # 交付已提交，清理失败只留下孤立缓存条目。
            logger.error(
                "job metadata removal failed",
                extra={
                    "event": "metadata.remove.failed",
                    "op": "store.remove",
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
        logger.info(
            "job delivered",
            extra={"event": "delivery.submitted", "payload_preview": _deliverable_preview(deliverable)},
        )
        return NegotiationOutcome.delivered

    def _deliver_fallback(self, job: JobHandle, exc: Exception) -> NegotiationOutcome:
        # 元数据保留在缓存中，不做清理。
        try:
            job.deliver(fallback_deliverable(exc))
        except Exception as fallback_exc:
            logger.error(
                "fallback delivery failed",
                extra={
                    "event": "delivery.fallback.failed",
                    "error_type": type(fallback_exc).__name__,
                    "error": str(fallback_exc),
                },
            )
            return NegotiationOutcome.delivery_failed
        logger.warning("fallback deliverable submitted", extra={"event": "delivery.fallback.submitted"})
        return NegotiationOutcome.fallback_delivered


def _deliverable_preview(deliverable: dict[str, Any]) -> dict[str, Any]:
    return {
        "job_name": deliverable.get("job_name"),
        "validation_passed": deliverable.get("validation_passed"),
        "validation_error_count": len(deliverable.get("validation_errors") or []),
    }
