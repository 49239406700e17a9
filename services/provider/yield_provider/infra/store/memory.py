"""进程内作业元数据存储。"""

from __future__ import annotations

from yield_provider.domain.models import JobMetadata


class InMemoryJobMetadataStore:
    """基于字典的元数据存储；事件串行处理，无需加锁。"""
    def __init__(self) -> None:
        self._items: dict[str, JobMetadata] = {}

    def put(self, job_id: str, metadata: JobMetadata) -> None:
        self._items[job_id] = metadata

    def get(self, job_id: str) -> JobMetadata | None:
        return self._items.get(job_id)

    def remove(self, job_id: str) -> None:
        self._items.pop(job_id, None)

    def job_ids(self) -> list[str]:
        return list(self._items)
