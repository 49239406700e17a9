"""Provider 进程入口：校验卖方凭据，订阅 ACP 事件流并驱动协商状态机。"""

from __future__ import annotations

import logging
import signal
import threading
from typing import Any

import httpx

from yield_provider.application.container import (
    get_acp_client,
    get_event_bridge,
    get_state_machine,
    shutdown_container_resources,
)
from yield_provider.application.negotiation import NegotiationStateMachine
from yield_provider.config import Settings, get_settings
from yield_provider.domain.models import PhaseEvent
from yield_provider.infra.acp.client import AcpClient
from yield_provider.infra.acp.event_bridge import EVALUATE_EVENT, AcpEventBridge, AcpStreamEvent
from yield_provider.infra.acp.job import AcpJob
from yield_provider.infra.logging.setup import configure_logging, shutdown_logging

logger = logging.getLogger(__name__)


class Heartbeat:
    """后台心跳线程，按固定间隔记录存活日志，不触碰任何业务状态。"""
    def __init__(self, interval_seconds: float, stop_event: threading.Event) -> None:
        self._interval_seconds = interval_seconds
        self._stop_event = stop_event
        self._thread = threading.Thread(target=self._run, name="provider-heartbeat", daemon=True)

    def start(self) -> None:
        self._thread.start()

    def _run(self) -> None:
        while not self._stop_event.wait(self._interval_seconds):
            logger.info("provider is still running", extra={"event": "provider.heartbeat"})


class ProviderRuntime:
    """单线程事件循环：逐个处理事件，处理完一帧才读取下一帧。"""
    def __init__(
        self,
        *,
        client: AcpClient,
        bridge: AcpEventBridge,
        state_machine: NegotiationStateMachine,
        reconnect_backoff_seconds: float,
        stop_event: threading.Event | None = None,
    ) -> None:
        self._client = client
        self._bridge = bridge
        self._state_machine = state_machine
        self._reconnect_backoff_seconds = reconnect_backoff_seconds
        self._stop_event = stop_event or threading.Event()

    @property
    def stop_event(self) -> threading.Event:
        return self._stop_event

    def stop(self) -> None:
        self._stop_event.set()

    def dispatch(self, event: AcpStreamEvent) -> None:
        """将一帧事件交给状态机。"""
        job = AcpJob.from_wire(self._client, event.job)
        if event.name == EVALUATE_EVENT:
            self._state_machine.on_evaluate(job)
            return
        logger.info(
            "new job event received",
            extra={
                "event": "provider.job.received",
                "op": event.name,
                "payload_preview": {
                    "job_id": job.id,
                    "phase": job.phase,
                    "input_keys": sorted(job.input or {}),
                    "memo": _memo_preview(event.memo),
                },
            },
        )
        self._state_machine.handle(job, PhaseEvent.from_wire(event.memo))

    def run(self) -> None:
        """持续消费事件流；断流后按退避间隔重连，读超时直接重试。"""
        logger.info("waiting for jobs", extra={"event": "provider.stream.started", "external_service": "acp"})
        while not self._stop_event.is_set():
            try:
                for event in self._bridge.iter_job_events():
                    try:
                        self.dispatch(event)
                    except Exception as exc:
                        logger.exception(
                            "job event dispatch failed",
                            extra={
                                "event": "provider.dispatch.failed",
                                "op": event.name,
                                "error_type": type(exc).__name__,
                                "error": str(exc),
                            },
                        )
                    if self._stop_event.is_set():
                        return
            except httpx.ReadTimeout:
                continue
            except (httpx.TransportError, httpx.HTTPStatusError) as exc:
                logger.warning(
                    "acp event stream disconnected",
                    extra={
                        "event": "provider.stream.disconnected",
                        "external_service": "acp",
                        "error_type": type(exc).__name__,
                        "error": str(exc),
                    },
                )
            else:
                logger.info("acp event stream closed", extra={"event": "provider.stream.closed", "external_service": "acp"})
            self._stop_event.wait(self._reconnect_backoff_seconds)


def _memo_preview(memo: dict[str, Any] | None) -> dict[str, Any] | None:
    if memo is None:
        return None
    return {"status": memo.get("status"), "nextPhase": memo.get("nextPhase")}


def build_runtime(settings: Settings) -> ProviderRuntime:
    return ProviderRuntime(
        client=get_acp_client(),
        bridge=get_event_bridge(),
        state_machine=get_state_machine(),
        reconnect_backoff_seconds=settings.acp_reconnect_backoff_seconds,
    )


def main() -> None:
    settings = get_settings()
    configure_logging(settings, process_role="provider")

    missing = settings.missing_seller_credentials()
    if missing:
        logger.error(
            "missing seller credentials",
            extra={"event": "provider.startup.failed", "error_type": "MissingCredentials", "error": ", ".join(missing)},
        )
        shutdown_logging()
        raise SystemExit(1)

    logger.info(
        "provider starting",
        extra={
            "event": "provider.startup.started",
            "payload_preview": {
                "seller_entity_id": settings.seller_entity_id,
                "seller_wallet": settings.seller_agent_wallet_address,
                "acp_base_url": settings.acp_base_url,
                "metadata_store_backend": settings.metadata_store_backend,
            },
        },
    )
    try:
        runtime = build_runtime(settings)
    except Exception as exc:
        logger.exception(
            "provider startup failed",
            extra={"event": "provider.startup.failed", "error_type": type(exc).__name__, "error": str(exc)},
        )
        shutdown_container_resources()
        shutdown_logging()
        raise SystemExit(1) from exc

    signal.signal(signal.SIGTERM, lambda *_: runtime.stop())
    Heartbeat(settings.heartbeat_interval_seconds, runtime.stop_event).start()
    logger.info("provider ready", extra={"event": "provider.startup.succeeded"})
    try:
        runtime.run()
    except KeyboardInterrupt:
        runtime.stop()
    finally:
        logger.info("provider shutdown", extra={"event": "provider.shutdown"})
        shutdown_container_resources()
        shutdown_logging()


if __name__ == "__main__":
    main()
