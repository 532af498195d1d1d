from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable


class AssetSelectionPolicy(str, Enum):
    DIRECTORY_RELATIVE = "directory-relative"
    FIXED_FOLDER = "fixed-folder"


class KeyDerivationPolicy(str, Enum):
    JOB_SCOPED = "job-scoped"
    CONTENT_ADDRESSED = "content-addressed"


class JobStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class ArchiveEntry:
    raw_name: str
    normalized_name: str
    is_directory: bool = False
    opener: Callable[[], bytes] | None = field(default=None, repr=False, compare=False)

    def read(self) -> bytes:
        if self.opener is None:
            return b""
        return self.opener()


@dataclass(frozen=True)
class AnchorDocument:
    entry: ArchiveEntry
    anchor_directory: str       # "" means archive root

    @property
    def file_name(self) -> str:
        return self.entry.normalized_name.rsplit("/", 1)[-1]


@dataclass(frozen=True)
class AnchorResolution:
    anchor: AnchorDocument
    ignored_documents: tuple[str, ...] = ()


@dataclass
class AssetRecord:
    original_path: str          # literal text expected in the document
    relative_path: str          # path used to build the storage key
    archive_path: str           # normalized name inside the archive
    entry: ArchiveEntry = field(repr=False)
    content_hash: str = ""
    content_type: str = "application/octet-stream"
    storage_key: str = ""
    published_url: str = ""


@dataclass(frozen=True)
class MappingEntry:
    original_path: str
    published_url: str
    content_hash: str

    def to_json(self) -> dict[str, str]:
        # field names are part of the public API
        return {
            "caminho_original": self.original_path,
            "caminho_bucket": self.published_url,
            "hash_md5": self.content_hash,
        }


class MappingDocument:
    """Ordered original path → published location record for one job."""

    def __init__(self) -> None:
        self._entries: dict[str, MappingEntry] = {}

    def add(self, record: AssetRecord) -> MappingEntry:
        entry = MappingEntry(record.original_path, record.published_url, record.content_hash)
        # a later duplicate moves to the end so it is also rewritten last
        self._entries.pop(record.original_path, None)
        self._entries[record.original_path] = entry
        return entry

    def get(self, original_path: str) -> MappingEntry | None:
        return self._entries.get(original_path)

    def __iter__(self):
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, original_path: object) -> bool:
        return original_path in self._entries

    def to_json(self) -> dict[str, dict[str, str]]:
        return {path: entry.to_json() for path, entry in self._entries.items()}


@dataclass(frozen=True)
class PipelineResult:
    final_html: str
    mapping: MappingDocument
    processed_count: int
    final_document_url: str
    failures: tuple[str, ...] = ()
    ignored_documents: tuple[str, ...] = ()

    def to_response(self) -> dict:
        return {
            "htmlContent": self.final_html,
            "mappingJson": self.mapping.to_json(),
            "processedFileCount": self.processed_count,
            "finalHtmlUrl": self.final_document_url,
            "failedAssets": list(self.failures),
        }


@dataclass
class UploadJob:
    id: str
    original_zip_name: str
    status: JobStatus = JobStatus.PENDING
    created_at: datetime | None = None
    completed_at: datetime | None = None
    html_content: str | None = None
    mapping_json: dict | None = None
    final_html_url: str | None = None
    error: str | None = None

    def to_json(self) -> dict:
        return {
            "id": self.id,
            "originalZipName": self.original_zip_name,
            "status": self.status.value,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
            "htmlContent": self.html_content,
            "mappingJson": self.mapping_json,
            "finalHtmlUrl": self.final_html_url,
            "error": self.error,
        }


@dataclass(frozen=True)
class ProcessingLog:
    job_id: str
    message: str
    level: str = "INFO"
    created_at: datetime | None = None

    def to_json(self) -> dict:
        return {
            "message": self.message,
            "level": self.level,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
