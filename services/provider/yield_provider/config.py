"""全局配置加载模块：从环境变量构建运行参数并提供缓存访问。"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _csv_to_list(value: str) -> list[str]:
    """将逗号分隔字符串转换为去空白列表。"""
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """系统运行配置对象，从环境变量读取并提供类型化访问。"""
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "DeFi Yield Optimizer Resources"
    api_prefix: str = "/api/v1"
    environment: str = "dev"
    port: int = 4000
    cors_allowed_origins: str = "*"
    cors_allowed_methods: str = "GET,OPTIONS"
    cors_allowed_headers: str = "Content-Type,X-Request-Id"
    cors_allow_credentials: bool = False

    # 卖方身份凭据；缺失任意一项时 provider 进程拒绝启动。
    whitelisted_wallet_private_key: str | None = None
    seller_entity_id: str | None = None
    seller_agent_wallet_address: str | None = None
    custom_rpc_url: str | None = None

    acp_base_url: str = "http://127.0.0.1:8787"
    acp_request_timeout_seconds: int = 30
    acp_stream_read_timeout_seconds: int = 30
    acp_reconnect_backoff_seconds: float = 5.0
    heartbeat_interval_seconds: float = 60.0

    metadata_store_backend: str = "memory"
    database_url: str = "sqlite:///./provider.db"

    log_dir: Path = Field(default=Path("./logs"))
    log_level: str = "INFO"
    log_debug_modules: str = ""
    log_debug_job_ids: str = ""
    log_redaction_mode: str = "standard"
    log_payload_preview_chars: int = 512
    log_max_bytes: int = 20 * 1024 * 1024
    log_backup_count: int = 5

    def cors_allowed_origins_list(self) -> list[str]:
        return _csv_to_list(self.cors_allowed_origins)

    def cors_allowed_methods_list(self) -> list[str]:
        return _csv_to_list(self.cors_allowed_methods)

    def cors_allowed_headers_list(self) -> list[str]:
        return _csv_to_list(self.cors_allowed_headers)

    def log_debug_modules_list(self) -> list[str]:
        return _csv_to_list(self.log_debug_modules)

    def log_debug_job_ids_list(self) -> list[str]:
        return _csv_to_list(self.log_debug_job_ids)

    def missing_seller_credentials(self) -> list[str]:
        """返回缺失的卖方凭据环境变量名列表。"""
        required = {
            "WHITELISTED_WALLET_PRIVATE_KEY": self.whitelisted_wallet_private_key,
            "SELLER_ENTITY_ID": self.seller_entity_id,
            "SELLER_AGENT_WALLET_ADDRESS": self.seller_agent_wallet_address,
        }
        return [name for name, value in required.items() if not value]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """构建并缓存 Settings，相对日志目录统一按当前工作目录解析。"""
    settings = Settings()
    if not settings.log_dir.is_absolute():
        settings.log_dir = (Path.cwd() / settings.log_dir).resolve()
    return settings
