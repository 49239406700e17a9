"""ACP 事件桥接器：消费网关 SSE 事件流并转换为作业事件。"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Iterator

import httpx

from yield_provider.infra.acp.client import AcpCredentials

NEW_TASK_EVENT = "newTask"
EVALUATE_EVENT = "evaluate"


@dataclass(slots=True)
class AcpStreamEvent:
    """网关推送的一帧作业事件。"""
    name: str
    job: dict[str, Any]
    memo: dict[str, Any] | None


class AcpEventBridge:
    """ACP 事件桥接器，负责解析 SSE 事件流。"""

    def __init__(
        self,
        base_url: str,
        credentials: AcpCredentials,
        timeout_seconds: int = 300,
        stream_read_timeout_seconds: int = 30,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._credentials = credentials
        self._closed = False
        self._client = httpx.Client(
            base_url=self._base_url,
            timeout=httpx.Timeout(
                timeout=timeout_seconds,
                connect=min(10.0, timeout_seconds),
                read=float(stream_read_timeout_seconds),
            ),
            limits=httpx.Limits(max_connections=5, max_keepalive_connections=2),
            transport=transport,
        )

    def _client_or_raise(self) -> httpx.Client:
        """返回可用客户端；若已关闭则抛出异常。"""
        if self._closed:
            raise RuntimeError("AcpEventBridge is already closed")
        return self._client

    def close(self) -> None:
        """关闭底层 HTTP 客户端连接池。"""
        if self._closed:
            return
        self._client.close()
        self._closed = True

    def iter_events(self) -> Iterator[dict[str, Any]]:
        """持续读取 SSE 流并组装为事件字典。"""
        headers = self._credentials.headers()
        with self._client_or_raise().stream("GET", "/events", headers=headers) as response:
            response.raise_for_status()
            yield from parse_sse_lines(response.iter_lines())

    def iter_job_events(self) -> Iterator[AcpStreamEvent]:
        """仅输出携带作业对象的事件帧。"""
        for event in self.iter_events():
            stream_event = to_stream_event(event)
            if stream_event is not None:
                yield stream_event


def parse_sse_lines(lines: Iterator[str]) -> Iterator[dict[str, Any]]:
    """把 SSE 文本行组装为 `{event, data}` 字典。"""
    event_name: str | None = None
    data_lines: list[str] = []
    for raw_line in lines:
        line = raw_line.strip()
        if not line:
            if data_lines:
                # SSE 以空行分隔事件，累积 data 行后统一组装 payload。
                yield {"event": event_name or "message", "data": _parse_json("\n".join(data_lines))}
            event_name = None
            data_lines = []
            continue
        if line.startswith(":"):
            # keep-alive 注释帧。
            continue
        if line.startswith("event:"):
            event_name = line.split(":", 1)[1].strip()
        elif line.startswith("data:"):
            data_lines.append(line.split(":", 1)[1].strip())
    if data_lines:
        yield {"event": event_name or "message", "data": _parse_json("\n".join(data_lines))}


def to_stream_event(event: dict[str, Any]) -> AcpStreamEvent | None:
    """将 `{event, data}` 转为作业事件；缺少作业对象的帧返回 None。"""
    data = event.get("data")
    if not isinstance(data, dict):
        return None
    job = data.get("job")
    if not isinstance(job, dict) or "id" not in job:
        return None
    memo = data.get("memoToSign")
    return AcpStreamEvent(
        name=str(event.get("event") or NEW_TASK_EVENT),
        job=job,
        memo=memo if isinstance(memo, dict) else None,
    )


def _parse_json(value: str) -> Any:
    """尽量将字符串解析为 JSON，失败时返回原始字符串。"""
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value
