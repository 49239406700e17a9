"""日志上下文：基于 contextvars 透传 request/job 标识与当前协议阶段。"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar, Token
from typing import Any, Iterator

_UNSET = object()

_request_id_var: ContextVar[str | None] = ContextVar("log_request_id", default=None)
_job_id_var: ContextVar[str | None] = ContextVar("log_job_id", default=None)
_phase_var: ContextVar[str | None] = ContextVar("log_phase", default=None)


def get_log_context() -> dict[str, str | None]:
    """返回当前线程下的日志上下文字段。"""
    return {
        "request_id": _request_id_var.get(),
        "job_id": _job_id_var.get(),
        "phase": _phase_var.get(),
    }


@contextmanager
def bind_log_context(
    *,
    request_id: str | None | object = _UNSET,
    job_id: str | None | object = _UNSET,
    phase: str | None | object = _UNSET,
) -> Iterator[None]:
    """在上下文范围内绑定日志字段，并在退出时自动恢复。"""
    tokens: list[tuple[ContextVar[Any], Token[Any]]] = []
    if request_id is not _UNSET:
        tokens.append((_request_id_var, _request_id_var.set(request_id)))
    if job_id is not _UNSET:
        tokens.append((_job_id_var, _job_id_var.set(job_id)))
    if phase is not _UNSET:
        tokens.append((_phase_var, _phase_var.set(phase)))
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)
