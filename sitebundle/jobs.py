"""Job records, processing logs and the per-job log handle used by the pipeline."""
from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import UTC, datetime

from sitebundle.models import JobStatus, MappingEntry, ProcessingLog, UploadJob
from sitebundle.storage.supabase import SupabaseClient

logger = logging.getLogger(__name__)

LEVELS = {"INFO": logging.INFO, "WARNING": logging.WARNING, "ERROR": logging.ERROR}


class JobSink(ABC):
    @abstractmethod
    async def record(self, job_id: str, message: str, level: str = "INFO") -> None:
        raise NotImplementedError

    async def record_file(self, job_id: str, entry: MappingEntry) -> None:
        return None


class JobStore(JobSink):
    @abstractmethod
    async def create_job(self, original_zip_name: str) -> UploadJob:
        raise NotImplementedError

    @abstractmethod
    async def update_job(self, job_id: str, **values) -> None:
        raise NotImplementedError

    @abstractmethod
    async def get_job(self, job_id: str) -> UploadJob | None:
        raise NotImplementedError

    @abstractmethod
    async def get_logs(self, job_id: str) -> list[ProcessingLog]:
        raise NotImplementedError


class JobLog:
    """Writes a job's messages to the local log and to its sink.

    Sink failures never reach the caller.
    """

    def __init__(self, job_id: str, sink: JobSink | None = None):
        self.job_id = job_id
        self.sink = sink

    async def record(self, message: str, level: str = "INFO") -> None:
        logger.log(LEVELS.get(level, logging.INFO), "[Job %s] %s", self.job_id, message)
        if self.sink is None:
            return
        try:
            await self.sink.record(self.job_id, message, level)
        except Exception as exc:
            logger.error("[Job %s] Failed to write log to job store: %s (%s)", self.job_id, message, exc)

    async def info(self, message: str) -> None:
        await self.record(message, "INFO")

    async def warning(self, message: str) -> None:
        await self.record(message, "WARNING")

    async def error(self, message: str) -> None:
        await self.record(message, "ERROR")

    async def file(self, entry: MappingEntry) -> None:
        if self.sink is None:
            return
        try:
            await self.sink.record_file(self.job_id, entry)
        except Exception as exc:
            logger.error("[Job %s] Failed to record processed file %s: %s", self.job_id, entry.original_path, exc)


class MemoryJobStore(JobStore):
    def __init__(self):
        self.jobs: dict[str, UploadJob] = {}
        self.logs: dict[str, list[ProcessingLog]] = {}
        self.files: dict[str, list[MappingEntry]] = {}

    async def create_job(self, original_zip_name: str) -> UploadJob:
        job = UploadJob(id=str(uuid.uuid4()), original_zip_name=original_zip_name, created_at=datetime.now(UTC))
        self.jobs[job.id] = job
        return job

    async def update_job(self, job_id: str, **values) -> None:
        job = self.jobs[job_id]
        for key, value in values.items():
            setattr(job, key, value)

    async def get_job(self, job_id: str) -> UploadJob | None:
        return self.jobs.get(job_id)

    async def get_logs(self, job_id: str) -> list[ProcessingLog]:
        return list(self.logs.get(job_id, []))

    async def record(self, job_id: str, message: str, level: str = "INFO") -> None:
        self.logs.setdefault(job_id, []).append(
            ProcessingLog(job_id=job_id, message=message, level=level, created_at=datetime.now(UTC))
        )

    async def record_file(self, job_id: str, entry: MappingEntry) -> None:
        self.files.setdefault(job_id, []).append(entry)


class SupabaseJobStore(JobStore):
    """Job records in the ``upload_jobs``, ``processing_logs`` and ``processed_files`` tables."""

    def __init__(self, client: SupabaseClient):
        self.client = client

    async def create_job(self, original_zip_name: str) -> UploadJob:
        job = UploadJob(id=str(uuid.uuid4()), original_zip_name=original_zip_name, created_at=datetime.now(UTC))
        await self.client.insert("upload_jobs", {
            "id": job.id,
            "original_zip_name": job.original_zip_name,
            "status": job.status.value,
            "created_at": job.created_at.isoformat(),
        })
        return job

    async def update_job(self, job_id: str, **values) -> None:
        row = {}
        for key, value in values.items():
            if isinstance(value, JobStatus):
                value = value.value
            elif isinstance(value, datetime):
                value = value.isoformat()
            row[key] = value
        await self.client.update("upload_jobs", {"id": job_id}, row)

    async def get_job(self, job_id: str) -> UploadJob | None:
        rows = await self.client.select("upload_jobs", {"id": job_id})
        if not rows:
            return None
        row = rows[0]
        return UploadJob(
            id=row["id"],
            original_zip_name=row.get("original_zip_name", ""),
            status=JobStatus(row.get("status", JobStatus.PENDING.value)),
            created_at=_parse_ts(row.get("created_at")),
            completed_at=_parse_ts(row.get("completed_at")),
            html_content=row.get("html_content"),
            mapping_json=row.get("mapping_json"),
            final_html_url=row.get("final_html_url"),
            error=row.get("error"),
        )

    async def get_logs(self, job_id: str) -> list[ProcessingLog]:
        rows = await self.client.select("processing_logs", {"upload_job_id": job_id}, order="created_at.asc")
        return [
            ProcessingLog(
                job_id=job_id,
                message=row.get("message", ""),
                level=row.get("level", "INFO"),
                created_at=_parse_ts(row.get("created_at")),
            )
            for row in rows
        ]

    async def record(self, job_id: str, message: str, level: str = "INFO") -> None:
        await self.client.insert("processing_logs", {
            "upload_job_id": job_id,
            "message": message,
            "level": level,
        })

    async def record_file(self, job_id: str, entry: MappingEntry) -> None:
        await self.client.insert("processed_files", {
            "upload_job_id": job_id,
            "original_path": entry.original_path,
            "published_url": entry.published_url,
            "md5_hash": entry.content_hash,
        })


def _parse_ts(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))
