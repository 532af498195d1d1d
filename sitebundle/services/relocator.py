"""
Content relocation: hashes each asset, uploads it to object storage and
builds the original → published mapping.
"""
from __future__ import annotations

import asyncio
import hashlib
import logging
import posixpath
from dataclasses import dataclass, field

from sitebundle.errors import AssetProcessingError
from sitebundle.jobs import JobLog
from sitebundle.models import AssetRecord, KeyDerivationPolicy, MappingDocument
from sitebundle.storage.base import ObjectStore

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".svg", ".webp"}


def content_hash(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()


def content_type_for(path: str) -> str:
    ext = posixpath.splitext(path)[1].lower()
    if ext == ".css":
        return "text/css"
    if ext == ".js":
        return "application/javascript"
    if ext in IMAGE_EXTENSIONS:
        return f"image/{ext[1:]}"
    return DEFAULT_CONTENT_TYPE


def storage_key(policy: KeyDerivationPolicy, job_id: str, record: AssetRecord) -> str:
    if policy is KeyDerivationPolicy.JOB_SCOPED:
        return f"{job_id}/{record.relative_path}"
    if policy is KeyDerivationPolicy.CONTENT_ADDRESSED:
        ext = posixpath.splitext(record.relative_path)[1].lower()
        return f"{record.content_hash}{ext}"
    raise ValueError(f"Unknown key derivation policy: {policy}")


@dataclass
class RelocationOutcome:
    mapping: MappingDocument = field(default_factory=MappingDocument)
    succeeded: list[AssetRecord] = field(default_factory=list)
    failed: list[AssetProcessingError] = field(default_factory=list)

    @property
    def processed_count(self) -> int:
        return len(self.succeeded)


class ContentRelocator:
    def __init__(
        self,
        store: ObjectStore,
        policy: KeyDerivationPolicy = KeyDerivationPolicy.JOB_SCOPED,
        concurrency: int = 8,
    ):
        self.store = store
        self.policy = policy
        self.concurrency = max(1, concurrency)

    async def relocate_one(self, record: AssetRecord, job_id: str) -> AssetRecord:
        try:
            data = record.entry.read()
            record.content_hash = content_hash(data)
            record.content_type = content_type_for(record.relative_path)
            record.storage_key = storage_key(self.policy, job_id, record)
            record.published_url = await self.store.put(record.storage_key, data, record.content_type)
        except Exception as exc:
            raise AssetProcessingError(record.original_path, exc) from exc
        return record

    async def relocate(self, assets: list[AssetRecord], log: JobLog) -> RelocationOutcome:
        """Upload every asset; failures are collected, never raised.

        Returns only after every attempt has finished.
        """
        semaphore = asyncio.Semaphore(self.concurrency)

        async def bounded(record: AssetRecord) -> AssetRecord:
            async with semaphore:
                return await self.relocate_one(record, log.job_id)

        results = await asyncio.gather(*(bounded(r) for r in assets), return_exceptions=True)

        outcome = RelocationOutcome()
        for record, result in zip(assets, results):
            if isinstance(result, AssetProcessingError):
                outcome.failed.append(result)
                await log.error(str(result))
                continue
            if isinstance(result, BaseException):
                raise result
            outcome.succeeded.append(record)
            entry = outcome.mapping.add(record)
            await log.info(f"Uploaded {record.original_path} to {record.published_url} (key: {record.storage_key})")
            await log.file(entry)
        return outcome
