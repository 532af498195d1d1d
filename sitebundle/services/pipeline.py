"""
Site pipeline: turns an uploaded ZIP bundle into a published page:

  1. read entries, pick the anchor HTML document and the asset set
  2. upload every asset (bounded concurrency, failures skipped)
  3. rewrite asset references in the document and add the version footer
  4. publish the final document
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sitebundle.config import Settings, settings
from sitebundle.errors import InvalidArchiveError, NoAnchorDocumentError
from sitebundle.jobs import JobLog, JobSink
from sitebundle.models import ArchiveEntry, AssetSelectionPolicy, KeyDerivationPolicy, PipelineResult
from sitebundle.services.bundle import open_archive, resolve_anchor, select_assets
from sitebundle.services.publisher import Publisher, inject_footer
from sitebundle.services.relocator import ContentRelocator
from sitebundle.services.rewriter import PatternReferenceRewriter, ReferenceRewriter
from sitebundle.storage.base import ObjectStore

logger = logging.getLogger(__name__)


@dataclass
class PipelineOptions:
    selection: AssetSelectionPolicy = AssetSelectionPolicy.DIRECTORY_RELATIVE
    key_derivation: KeyDerivationPolicy = KeyDerivationPolicy.JOB_SCOPED
    asset_folders: list[str] = field(default_factory=lambda: ["css", "js", "img", "images", "fonts"])
    concurrency: int = 8
    version: str = "1.0.0"
    build_timestamp: str | None = None

    @classmethod
    def from_settings(cls, cfg: Settings = settings) -> PipelineOptions:
        return cls(
            selection=cfg.asset_selection_policy,
            key_derivation=cfg.key_derivation_policy,
            asset_folders=list(cfg.asset_folders),
            concurrency=cfg.relocation_concurrency,
            version=cfg.app_version,
            build_timestamp=cfg.build_timestamp or None,
        )


class SitePipeline:
    def __init__(
        self,
        store: ObjectStore,
        sink: JobSink | None = None,
        options: PipelineOptions | None = None,
        rewriter: ReferenceRewriter | None = None,
    ):
        self.options = options or PipelineOptions()
        self.sink = sink
        self.relocator = ContentRelocator(store, self.options.key_derivation, self.options.concurrency)
        self.rewriter = rewriter or PatternReferenceRewriter()
        self.publisher = Publisher(store, self.options.key_derivation)

    async def run(self, zip_bytes: bytes, job_id: str) -> PipelineResult:
        log = JobLog(job_id, self.sink)
        opts = self.options
        await log.info(
            f"Starting ZIP file processing (selection: {opts.selection.value}, keys: {opts.key_derivation.value})."
        )

        with open_archive(zip_bytes) as (entries, malformed):
            for exc in malformed:
                await log.warning(f"Skipping entry: {exc}")
            return await self._process(entries, log)

    async def _process(self, entries: list[ArchiveEntry], log: JobLog) -> PipelineResult:
        job_id = log.job_id
        opts = self.options

        try:
            resolution = resolve_anchor(entries)
        except NoAnchorDocumentError:
            await log.error("No HTML file found in the ZIP.")
            raise
        anchor = resolution.anchor
        for name in resolution.ignored_documents:
            await log.warning(
                f"Multiple HTML files found. Using '{anchor.entry.normalized_name}'. Ignoring '{name}'."
            )
        await log.info(
            f"Identified HTML file: {anchor.entry.normalized_name} "
            f"(base directory: '{anchor.anchor_directory}')"
        )

        assets = select_assets(entries, resolution, opts.selection, opts.asset_folders)
        await log.info(f"Found {len(assets)} static assets.")

        outcome = await self.relocator.relocate(assets, log)

        try:
            raw_html = anchor.entry.read()
        except InvalidArchiveError as exc:
            await log.error(str(exc))
            raise
        html = raw_html.decode("utf-8", errors="replace")
        html, substitutions = self.rewriter.rewrite(html, outcome.mapping)
        for sub in substitutions:
            await log.info(f"HTML Path Update: Replaced '{sub.original_path}' with '{sub.published_url}'")

        html, had_body = inject_footer(html, opts.version, opts.build_timestamp)
        if not had_body:
            await log.warning("No </body> tag found. Appended footer to the end of HTML.")
        await log.info("HTML content updated with published paths and footer.")

        final_url = await self.publisher.publish(html, job_id, anchor)
        await log.info(f"Uploaded modified HTML to {final_url}")

        return PipelineResult(
            final_html=html,
            mapping=outcome.mapping,
            processed_count=outcome.processed_count,
            final_document_url=final_url,
            failures=tuple(f.original_path for f in outcome.failed),
            ignored_documents=resolution.ignored_documents,
        )
