"""
Archive inspection: entry names, the anchor HTML document and the asset set.
"""
from __future__ import annotations

import io
import logging
import re
import zipfile
import zlib
from contextlib import contextmanager
from functools import partial
from typing import Iterable, Iterator
from urllib.parse import unquote

from sitebundle.errors import InvalidArchiveError, MalformedEntryError, NoAnchorDocumentError
from sitebundle.models import (
    AnchorDocument,
    AnchorResolution,
    ArchiveEntry,
    AssetRecord,
    AssetSelectionPolicy,
)

logger = logging.getLogger(__name__)

METADATA_PREFIX = "__MACOSX/"
_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def normalize_entry_name(raw_name: str, is_directory: bool = False) -> str | None:
    """Canonical name for an archive entry, or None when it should be ignored."""
    if is_directory or raw_name.endswith("/") or raw_name.startswith(METADATA_PREFIX):
        return None
    name = raw_name[2:] if raw_name.startswith("./") else raw_name
    if _BAD_ESCAPE.search(name):
        raise MalformedEntryError(raw_name, "invalid percent-escape")
    try:
        return unquote(name, errors="strict")
    except UnicodeDecodeError as exc:
        raise MalformedEntryError(raw_name, str(exc)) from exc


def is_html(name: str) -> bool:
    return name.lower().endswith(".html")


@contextmanager
def open_archive(data: bytes) -> Iterator[tuple[list[ArchiveEntry], list[MalformedEntryError]]]:
    """Open a ZIP buffer and yield its usable entries in archive order.

    Entries whose names cannot be decoded are yielded separately so the caller
    can log them; they never abort the read. Entry bytes stay readable until
    the block exits.
    """
    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except (zipfile.BadZipFile, ValueError) as exc:
        raise InvalidArchiveError(f"Upload is not a valid ZIP archive: {exc}") from exc

    with archive:
        entries: list[ArchiveEntry] = []
        malformed: list[MalformedEntryError] = []
        for info in archive.infolist():
            try:
                name = normalize_entry_name(info.filename, info.is_dir())
            except MalformedEntryError as exc:
                malformed.append(exc)
                continue
            if name is None:
                continue
            entries.append(ArchiveEntry(
                raw_name=info.filename,
                normalized_name=name,
                is_directory=False,
                opener=partial(_read_member, archive, info),
            ))
        yield entries, malformed


def _read_member(archive: zipfile.ZipFile, info: zipfile.ZipInfo) -> bytes:
    # bad CRC, encrypted members and truncated data all surface here
    try:
        return archive.read(info)
    except (zipfile.BadZipFile, RuntimeError, ValueError, EOFError, zlib.error) as exc:
        raise InvalidArchiveError(f"Cannot read '{info.filename}' from the ZIP: {exc}") from exc


def resolve_anchor(entries: Iterable[ArchiveEntry]) -> AnchorResolution:
    anchor: AnchorDocument | None = None
    ignored: list[str] = []
    for entry in entries:
        if not is_html(entry.normalized_name):
            continue
        if anchor is not None:
            ignored.append(entry.normalized_name)
            continue
        directory = entry.normalized_name.rpartition("/")[0]
        anchor = AnchorDocument(entry=entry, anchor_directory=f"{directory}/" if directory else "")

    if anchor is None:
        raise NoAnchorDocumentError()
    return AnchorResolution(anchor=anchor, ignored_documents=tuple(ignored))


def select_assets(
    entries: Iterable[ArchiveEntry],
    resolution: AnchorResolution,
    policy: AssetSelectionPolicy = AssetSelectionPolicy.DIRECTORY_RELATIVE,
    folders: Iterable[str] = (),
) -> list[AssetRecord]:
    """Pick the relocatable assets. HTML documents are never assets."""
    prefix = resolution.anchor.anchor_directory
    top_level = {f.strip("/") for f in folders}
    assets: list[AssetRecord] = []

    for entry in entries:
        name = entry.normalized_name
        if is_html(name):
            continue
        if policy is AssetSelectionPolicy.DIRECTORY_RELATIVE:
            if not name.startswith(prefix):
                continue
            relative = name[len(prefix):]
            assets.append(AssetRecord(
                original_path=relative,
                relative_path=relative,
                archive_path=name,
                entry=entry,
            ))
        elif policy is AssetSelectionPolicy.FIXED_FOLDER:
            folder, sep, _ = name.partition("/")
            if not sep or folder not in top_level:
                continue
            assets.append(AssetRecord(
                original_path=name,
                relative_path=name,
                archive_path=name,
                entry=entry,
            ))
        else:
            raise ValueError(f"Unknown asset selection policy: {policy}")

    logger.debug("Selected %d assets with policy %s", len(assets), policy.value)
    return assets
