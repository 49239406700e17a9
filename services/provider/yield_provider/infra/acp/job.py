"""ACP 作业句柄：向状态机暴露作业标识与响应/交付操作。"""

from __future__ import annotations

from typing import Any, Protocol

from yield_provider.infra.acp.client import AcpClient


class JobHandle(Protocol):
    """状态机依赖的最小作业接口。"""
    id: str
    phase: int | None
    input: dict[str, Any] | None

    def respond(self, accept: bool, reason: str) -> None:
        ...

    def deliver(self, payload: dict[str, Any]) -> None:
        ...


class AcpJob:
    """绑定到网关客户端的作业句柄。"""
    def __init__(
        self,
        client: AcpClient,
        job_id: str,
        phase: int | None = None,
        input: dict[str, Any] | None = None,
    ) -> None:
        self._client = client
        self.id = job_id
        self.phase = phase
        self.input = input

    @classmethod
    def from_wire(cls, client: AcpClient, payload: dict[str, Any]) -> AcpJob:
        phase = payload.get("phase")
        job_input = payload.get("input")
        return cls(
            client,
            job_id=str(payload["id"]),
            phase=phase if isinstance(phase, int) and not isinstance(phase, bool) else None,
            input=job_input if isinstance(job_input, dict) else None,
        )

    def respond(self, accept: bool, reason: str) -> None:
        self._client.respond(self.id, accept, reason)

    def deliver(self, payload: dict[str, Any]) -> None:
        self._client.deliver(self.id, payload)
