"""依赖容器模块，负责单例化创建元数据存储、网关客户端与协商状态机。"""

from __future__ import annotations

from functools import lru_cache

from sqlalchemy import Engine

from yield_provider.application.negotiation import NegotiationStateMachine
from yield_provider.config import get_settings
from yield_provider.domain.deliverables.registry import DeliverableRegistry
from yield_provider.domain.deliverables.router import JobRouter
from yield_provider.infra.acp.client import AcpClient, AcpCredentials
from yield_provider.infra.acp.event_bridge import AcpEventBridge
from yield_provider.infra.db.session import build_engine, build_session_factory, init_db
from yield_provider.infra.store.base import JobMetadataStore
from yield_provider.infra.store.memory import InMemoryJobMetadataStore
from yield_provider.infra.store.sql import SqlJobMetadataStore


@lru_cache(maxsize=1)
def get_deliverable_registry() -> DeliverableRegistry:
    """获取交付物注册中心单例。
    返回:
    - 按函数签名返回对应结果；异常场景会抛出业务异常。
    """
    return DeliverableRegistry()


@lru_cache(maxsize=1)
def get_job_router() -> JobRouter:
    return JobRouter(get_deliverable_registry())


@lru_cache(maxsize=1)
def get_db_engine() -> Engine:
    """获取数据库引擎单例，首次创建时建表。"""
    engine = build_engine(get_settings().database_url)
    init_db(engine)
    return engine


@lru_cache(maxsize=1)
def get_metadata_store() -> JobMetadataStore:
    """按配置选择作业元数据存储后端。
    返回:
    - 按函数签名返回对应结果；未知后端名抛出 ValueError。
    """
    backend = get_settings().metadata_store_backend.strip().lower()
    if backend == "memory":
        return InMemoryJobMetadataStore()
    if backend == "sql":
        return SqlJobMetadataStore(build_session_factory(get_db_engine()))
    raise ValueError(f"unsupported metadata_store_backend: {backend}")


@lru_cache(maxsize=1)
def get_acp_credentials() -> AcpCredentials:
    """获取卖方凭据单例；调用前需确认凭据齐全。
    返回:
    - 按函数签名返回对应结果；异常场景会抛出业务异常。
    """
    settings = get_settings()
    missing = settings.missing_seller_credentials()
    if missing:
        raise RuntimeError(f"Missing environment variables: {', '.join(missing)}")
    return AcpCredentials(
        private_key=settings.whitelisted_wallet_private_key or "",
        entity_id=settings.seller_entity_id or "",
        wallet_address=settings.seller_agent_wallet_address or "",
    )


@lru_cache(maxsize=1)
def get_acp_client() -> AcpClient:
    """获取 ACP 网关客户端单例。
    返回:
    - 按函数签名返回对应结果；异常场景会抛出业务异常。
    """
    settings = get_settings()
    return AcpClient(
        base_url=settings.acp_base_url,
        credentials=get_acp_credentials(),
        timeout_seconds=settings.acp_request_timeout_seconds,
        rpc_url=settings.custom_rpc_url,
    )


@lru_cache(maxsize=1)
def get_event_bridge() -> AcpEventBridge:
    """获取 ACP 事件桥接器单例。
    返回:
    - 按函数签名返回对应结果；异常场景会抛出业务异常。
    """
    settings = get_settings()
    return AcpEventBridge(
        base_url=settings.acp_base_url,
        credentials=get_acp_credentials(),
        timeout_seconds=settings.acp_request_timeout_seconds,
        # 读超时只用于周期性唤醒，空闲流不会因此被判定为失败。
        stream_read_timeout_seconds=settings.acp_stream_read_timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_state_machine() -> NegotiationStateMachine:
    """获取协商状态机单例。"""
    return NegotiationStateMachine(store=get_metadata_store(), router=get_job_router())


def shutdown_container_resources() -> None:
    """关闭共享客户端并清理依赖容器缓存。
    返回:
    - 按函数签名返回对应结果；异常场景会抛出业务异常。
    """
    if get_acp_client.cache_info().currsize:
        get_acp_client().close()
    if get_event_bridge.cache_info().currsize:
        get_event_bridge().close()
    if get_db_engine.cache_info().currsize:
        get_db_engine().dispose()

    # 按依赖顺序清理缓存，确保后续调用可重新构建全新实例。
    for provider in (
        get_state_machine,
        get_event_bridge,
        get_acp_client,
        get_acp_credentials,
        get_metadata_store,
        get_db_engine,
        get_job_router,
        get_deliverable_registry,
    ):
        provider.cache_clear()
