"""作业元数据存储接口：按作业 ID 缓存协商阶段确定的作业类型与需求。"""

from __future__ import annotations

from typing import Protocol

from yield_provider.domain.models import JobMetadata


class JobMetadataStore(Protocol):
    """作业元数据存储协议；同一作业 ID 至多保留一条记录，后写覆盖先写。"""

    def put(self, job_id: str, metadata: JobMetadata) -> None:
        ...

    def get(self, job_id: str) -> JobMetadata | None:
        ...

    def remove(self, job_id: str) -> None:
        ...

    def job_ids(self) -> list[str]:
        ...
