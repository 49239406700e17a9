"""响应信封构造辅助函数。"""

from __future__ import annotations

from typing import Any

from fastapi.responses import JSONResponse

from yield_provider.api.v1.schemas import Envelope, EnvelopeMeta
from yield_provider.domain.heuristics import now_iso


def make_response(data: Any, **meta: Any) -> JSONResponse:
    envelope = Envelope(ok=True, data=data, meta=EnvelopeMeta(generated_at_utc=now_iso(), **meta))
    return JSONResponse(envelope.model_dump(mode="json", exclude_unset=True))


def make_error(message: str, status_code: int = 400, **meta: Any) -> JSONResponse:
    envelope = Envelope(ok=False, error=message, meta=EnvelopeMeta(generated_at_utc=now_iso(), **meta))
    return JSONResponse(envelope.model_dump(mode="json", exclude_unset=True), status_code=status_code)
