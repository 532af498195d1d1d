from __future__ import annotations

import io
import zipfile

import pytest

from sitebundle.errors import StorageError
from sitebundle.jobs import MemoryJobStore
from sitebundle.storage.base import ObjectStore


class FakeObjectStore(ObjectStore):
    name = "fake"

    def __init__(self, fail_keys: set[str] | None = None, fail_all: bool = False):
        self.objects: dict[str, tuple[bytes, str]] = {}
        self.fail_keys = fail_keys or set()
        self.fail_all = fail_all

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        if self.fail_all or key in self.fail_keys:
            raise StorageError(f"simulated failure for {key}")
        self.objects[key] = (data, content_type)
        return f"https://cdn.test/{key}"


def make_zip(files: dict[str, bytes | str]) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, content in files.items():
            if isinstance(content, str):
                content = content.encode("utf-8")
            zf.writestr(name, content)
    return buf.getvalue()


@pytest.fixture
def store():
    return FakeObjectStore()


@pytest.fixture
def job_store():
    return MemoryJobStore()
