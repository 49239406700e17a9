"""日志初始化测试：覆盖脱敏规则、预览截断与 JSONL 落盘字段。"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from yield_provider.config import Settings
from yield_provider.infra.logging.context import bind_log_context, get_log_context
from yield_provider.infra.logging.setup import (
    configure_logging,
    redact_text,
    render_payload_preview,
    shutdown_logging,
)


def test_redaction_masks_private_key_and_signature() -> None:
    """验证标准模式脱敏私钥与签名，严格模式额外抹掉十六进制长串。
    返回:
    - 按函数签名返回对应结果；异常场景会抛出业务异常。
    """
    text = "private_key=abc123 X-Acp-Signature: deadbeef"
    assert redact_text(text, "standard") == "private_key=*** X-Acp-Signature: ***"
    assert redact_text(text, "off") == text
    assert redact_text(None, "standard") is None

    wallet_key = "0x" + "ab" * 32
    assert redact_text(f"bad key {wallet_key}", "strict") == "bad key 0x***"


def test_payload_preview_truncates() -> None:
    preview = render_payload_preview({"text": "x" * 50}, max_chars=20, redaction_mode="standard")
    assert preview is not None
    assert preview.endswith("...(truncated)")
    assert render_payload_preview(None, max_chars=20, redaction_mode="standard") is None


def test_log_context_is_restored() -> None:
    with bind_log_context(job_id="job-1", phase="1"):
        assert get_log_context()["job_id"] == "job-1"
        with bind_log_context(phase="3"):
            assert get_log_context() == {"request_id": None, "job_id": "job-1", "phase": "3"}
        assert get_log_context()["phase"] == "1"
    assert get_log_context()["job_id"] is None


def test_configure_logging_writes_jsonl(tmp_path: Path) -> None:
    """验证日志写入 `<log_dir>/<role>/provider.jsonl` 且携带上下文字段。
    参数:
    - tmp_path: 临时日志目录。
    返回:
    - 按函数签名返回对应结果；异常场景会抛出业务异常。
    """
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        log_file = configure_logging(Settings(log_dir=tmp_path), process_role="provider")
        with bind_log_context(job_id="job-9", phase="3"):
            logging.getLogger("yield_provider.test").info(
                "job delivered",
                extra={"event": "delivery.submitted", "payload_preview": {"job_name": "unknown"}},
            )
            logging.getLogger("yield_provider.test").debug("hidden", extra={"event": "debug.hidden"})
        shutdown_logging()
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)

    assert log_file == tmp_path / "provider" / "provider.jsonl"
    entries = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
    assert [entry["event"] for entry in entries] == ["delivery.submitted"]
    entry = entries[0]
    assert entry["job_id"] == "job-9"
    assert entry["phase"] == "3"
    assert entry["process_role"] == "provider"
    assert entry["payload_preview"] == '{"job_name": "unknown"}'
