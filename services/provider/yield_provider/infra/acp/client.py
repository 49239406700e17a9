"""ACP 网关 HTTP 客户端：封装作业响应与交付接口，并对请求体做 HMAC 签名。"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import time
from dataclasses import dataclass
from typing import Any

import httpx

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Acp-Signature"
TIMESTAMP_HEADER = "X-Acp-Timestamp"
ENTITY_HEADER = "X-Acp-Entity-Id"
WALLET_HEADER = "X-Acp-Wallet-Address"


@dataclass(slots=True)
class AcpCredentials:
    """卖方身份凭据；私钥只用于本地签名，不随请求发送。"""
    private_key: str
    entity_id: str
    wallet_address: str

    def sign(self, body: bytes, timestamp: str) -> str:
        """对 `<timestamp>.<body>` 计算 HMAC-SHA256 十六进制签名。"""
        message = timestamp.encode("utf-8") + b"." + body
        return hmac.new(self.private_key.encode("utf-8"), message, hashlib.sha256).hexdigest()

    def headers(self, body: bytes = b"") -> dict[str, str]:
        timestamp = str(int(time.time() * 1000))
        return {
            ENTITY_HEADER: self.entity_id,
            WALLET_HEADER: self.wallet_address,
            TIMESTAMP_HEADER: timestamp,
            SIGNATURE_HEADER: self.sign(body, timestamp),
        }


def encode_body(payload: dict[str, Any]) -> bytes:
    """以紧凑且稳定的形式序列化请求体，保证签名与发送内容一致。"""
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, sort_keys=True).encode("utf-8")


class AcpClient:
    """ACP 网关同步 HTTP 客户端封装。"""
    def __init__(
        self,
        base_url: str,
        credentials: AcpCredentials,
        timeout_seconds: int = 30,
        rpc_url: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._credentials = credentials
        self._rpc_url = rpc_url
        self._closed = False
        self._client = httpx.Client(
            base_url=self._base_url,
            timeout=httpx.Timeout(timeout_seconds),
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=5),
            transport=transport,
        )

    @property
    def credentials(self) -> AcpCredentials:
        return self._credentials

    def _client_or_raise(self) -> httpx.Client:
        """返回可用客户端；若已关闭则抛出异常。"""
        if self._closed:
            raise RuntimeError("AcpClient is already closed")
        return self._client

    def close(self) -> None:
        """关闭底层 HTTP 客户端连接池。"""
        if self._closed:
            return
        self._client.close()
        self._closed = True

    def _request(
        self,
        *,
        method: str,
        path: str,
        op: str,
        json_body: dict[str, Any] | None = None,
        payload_preview: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """发送签名请求并记录结构化日志。"""
        body = encode_body(json_body) if json_body is not None else b""
        headers = self._credentials.headers(body)
        if json_body is not None:
            headers["Content-Type"] = "application/json"
        if self._rpc_url:
            # 自定义 RPC 由网关代为使用，这里只透传。
            headers["X-Acp-Rpc-Url"] = self._rpc_url
        started = time.perf_counter()
        try:
            response = self._client_or_raise().request(method, path, content=body or None, headers=headers)
            duration_ms = round((time.perf_counter() - started) * 1000, 2)
            response.raise_for_status()
        except Exception as exc:
            duration_ms = round((time.perf_counter() - started) * 1000, 2)
            status_code = None
            if isinstance(exc, httpx.HTTPStatusError) and exc.response is not None:
                status_code = exc.response.status_code
            logger.error(
                "acp request failed",
                extra={
                    "event": "acp.request.failed",
                    "external_service": "acp",
                    "op": op,
                    "duration_ms": duration_ms,
                    "status_code": status_code,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                    "payload_preview": payload_preview,
                },
            )
            raise
        logger.debug(
            "acp request succeeded",
            extra={
                "event": "acp.request.succeeded",
                "external_service": "acp",
                "op": op,
                "duration_ms": duration_ms,
                "status_code": response.status_code,
            },
        )
        return response

    def respond(self, job_id: str, accept: bool, reason: str) -> None:
        """对协商阶段 memo 给出接受或拒绝响应。"""
        body = {"accept": accept, "reason": reason}
        self._request(
            method="POST",
            path=f"/jobs/{job_id}/respond",
            op="job.respond",
            json_body=body,
            payload_preview={"job_id": job_id, **body},
        )

    def deliver(self, job_id: str, deliverable: dict[str, Any]) -> None:
        """提交作业交付物。"""
        self._request(
            method="POST",
            path=f"/jobs/{job_id}/deliver",
            op="job.deliver",
            json_body={"deliverable": deliverable},
            payload_preview={"job_id": job_id, "job_name": deliverable.get("job_name")},
        )
