from __future__ import annotations

from datetime import UTC, datetime

from sitebundle.models import AnchorDocument, KeyDerivationPolicy
from sitebundle.storage.base import ObjectStore

FIXED_DOCUMENT_KEY = "index.html"


def build_timestamp() -> str:
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def render_footer(version: str, timestamp: str) -> str:
    return f"\n<footer><p>Version: {version} | Build: {timestamp}</p></footer>"


def inject_footer(html: str, version: str, timestamp: str | None = None) -> tuple[str, bool]:
    """Add the version footer before the first </body>, or at the end.

    Returns the new document and whether a closing body tag was found. A
    document that already has a footer gets a second one.
    """
    footer = render_footer(version, timestamp or build_timestamp())
    if "</body>" in html:
        return html.replace("</body>", f"{footer}\n</body>", 1), True
    return html + footer, False


def document_key(policy: KeyDerivationPolicy, job_id: str, anchor: AnchorDocument) -> str:
    if policy is KeyDerivationPolicy.CONTENT_ADDRESSED:
        return FIXED_DOCUMENT_KEY
    return f"{job_id}/{anchor.file_name}"


class Publisher:
    def __init__(self, store: ObjectStore, policy: KeyDerivationPolicy = KeyDerivationPolicy.JOB_SCOPED):
        self.store = store
        self.policy = policy

    async def publish(self, html: str, job_id: str, anchor: AnchorDocument) -> str:
        """Upload the final document. StorageError propagates."""
        key = document_key(self.policy, job_id, anchor)
        return await self.store.put(key, html.encode("utf-8"), "text/html")
