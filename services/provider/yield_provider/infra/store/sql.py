"""基于 SQLAlchemy 的作业元数据存储，进程重启后仍可完成交付。"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from yield_provider.domain.models import JobMetadata
from yield_provider.infra.db.models import JobMetadataORM


class SqlJobMetadataStore:
    """作业元数据仓储实现，封装 job_metadata 表读写。"""
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def put(self, job_id: str, metadata: JobMetadata) -> None:
        """写入或覆盖作业元数据。"""
        with self._session_factory.begin() as db:
            row = db.get(JobMetadataORM, job_id)
            if row is None:
                db.add(JobMetadataORM(job_id=job_id, kind=metadata.kind, requirement_json=dict(metadata.requirement)))
                return
            row.kind = metadata.kind
            row.requirement_json = dict(metadata.requirement)

    def get(self, job_id: str) -> JobMetadata | None:
        with self._session_factory() as db:
            row = db.get(JobMetadataORM, job_id)
            if row is None:
                return None
            return JobMetadata(kind=row.kind, requirement=dict(row.requirement_json or {}))

    def remove(self, job_id: str) -> None:
        with self._session_factory.begin() as db:
            row = db.get(JobMetadataORM, job_id)
            if row is not None:
                db.delete(row)

    def job_ids(self) -> list[str]:
        """按写入时间升序返回全部作业 ID。"""
        with self._session_factory() as db:
            stmt = select(JobMetadataORM.job_id).order_by(JobMetadataORM.created_at)
            return list(db.execute(stmt).scalars().all())
