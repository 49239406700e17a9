"""FastAPI 应用入口：资源目录服务的生命周期、中间件、健康检查与路由挂载。"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
import logging
import time
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from yield_provider.api.router import api_router, resources_api_router
from yield_provider.api.v1.envelope import make_response
from yield_provider.application.container import shutdown_container_resources
from yield_provider.config import get_settings
from yield_provider.infra.logging.context import bind_log_context
from yield_provider.infra.logging.setup import configure_logging, shutdown_logging

settings = get_settings()
logger = logging.getLogger(__name__)

SERVICE_NAME = "defi-yield-resources"


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """应用生命周期：启动时初始化日志，关闭时释放依赖资源。"""
    configure_logging(settings, process_role="api")
    logger.info("api startup ready", extra={"event": "api.startup.succeeded", "payload_preview": {"port": settings.port}})
    try:
        yield
    finally:
        logger.info("api shutdown begin", extra={"event": "api.shutdown.started"})
        shutdown_container_resources()
        shutdown_logging()


app = FastAPI(title=settings.app_name, lifespan=lifespan)

if settings.cors_allowed_origins_list():
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins_list(),
        allow_methods=settings.cors_allowed_methods_list(),
        allow_headers=settings.cors_allowed_headers_list(),
        allow_credentials=settings.cors_allow_credentials,
    )


@app.middleware("http")
async def attach_request_id(request: Request, call_next):
    """透传或生成 X-Request-Id，并回写到响应头。"""
    request_id = request.headers.get("X-Request-Id") or str(uuid4())
    started = time.perf_counter()
    with bind_log_context(request_id=request_id):
        try:
            response = await call_next(request)
        except Exception as exc:
            duration_ms = round((time.perf_counter() - started) * 1000, 2)
            logger.exception(
                "http request failed",
                extra={
                    "event": "http.request.failed",
                    "op": f"{request.method} {request.url.path}",
                    "duration_ms": duration_ms,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            raise
        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        logger.info(
            "http request completed",
            extra={
                "event": "http.request.completed",
                "op": f"{request.method} {request.url.path}",
                "duration_ms": duration_ms,
                "status_code": response.status_code,
            },
        )
    response.headers["X-Request-Id"] = request_id
    return response


@app.get("/healthz")
def healthz() -> JSONResponse:
    return make_response({"status": "ok"}, service=SERVICE_NAME)


app.include_router(resources_api_router)
app.include_router(api_router)


def run() -> None:
    """以 uvicorn 启动资源目录服务。"""
    uvicorn.run("yield_provider.main:app", host="0.0.0.0", port=settings.port)
