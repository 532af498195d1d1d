from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from pathlib import Path

from fastapi import Depends, FastAPI, File, Request, UploadFile
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from sitebundle.config import settings
from sitebundle.errors import InvalidArchiveError, NoAnchorDocumentError
from sitebundle.jobs import JobLog, JobStore, MemoryJobStore, SupabaseJobStore
from sitebundle.models import JobStatus
from sitebundle.services.pipeline import PipelineOptions, SitePipeline
from sitebundle.storage.base import ObjectStore
from sitebundle.storage.local import LocalObjectStore
from sitebundle.storage.supabase import SupabaseObjectStore, get_supabase
from sitebundle.utils import is_zip_upload

logger = logging.getLogger(__name__)
BASE_DIR = Path(__file__).resolve().parent

app = FastAPI(title=settings.app_name)
app.mount("/files", StaticFiles(directory=settings.base_storage_dir, check_dir=False), name="files")
templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))

_job_store: JobStore | None = None


def get_job_store() -> JobStore:
    global _job_store
    if _job_store is None:
        sb = get_supabase()
        _job_store = SupabaseJobStore(sb) if sb else MemoryJobStore()
    return _job_store


def get_object_store() -> ObjectStore:
    if settings.storage_backend == "supabase":
        sb = get_supabase()
        if sb is None:
            raise RuntimeError("Supabase storage selected but SUPABASE_URL/SUPABASE_KEY are not set")
        return SupabaseObjectStore(sb)
    return LocalObjectStore()


def get_pipeline_options() -> PipelineOptions:
    return PipelineOptions.from_settings(settings)


@app.get("/", response_class=HTMLResponse)
async def index(request: Request):
    return templates.TemplateResponse(
        request,
        "index.html",
        {"app_name": settings.app_name, "max_mb": settings.max_upload_bytes // (1024 * 1024)},
    )


@app.post("/api/uploads")
async def upload_bundle(
    zipfile: UploadFile = File(...),
    jobs: JobStore = Depends(get_job_store),
    store: ObjectStore = Depends(get_object_store),
    options: PipelineOptions = Depends(get_pipeline_options),
):
    if not is_zip_upload(zipfile.filename, zipfile.content_type):
        return JSONResponse({"message": "Invalid file type. Only .zip files are allowed."}, status_code=400)

    data = await zipfile.read(settings.max_upload_bytes + 1)
    if len(data) > settings.max_upload_bytes:
        return JSONResponse({"message": "ZIP file is too large."}, status_code=413)

    original_zip_name = zipfile.filename or "upload.zip"
    job = await jobs.create_job(original_zip_name)
    log = JobLog(job.id, jobs)
    await log.info(f"Starting processing for file: {original_zip_name}")

    try:
        await jobs.update_job(job.id, status=JobStatus.PROCESSING)
        pipeline = SitePipeline(store, jobs, options)
        result = await asyncio.wait_for(pipeline.run(data, job.id), timeout=settings.pipeline_timeout)
        await jobs.update_job(
            job.id,
            status=JobStatus.COMPLETED,
            completed_at=datetime.now(UTC),
            html_content=result.final_html,
            mapping_json=result.mapping.to_json(),
            final_html_url=result.final_document_url,
        )
    except Exception as exc:
        logger.exception("Processing failed for job %s", job.id)
        if isinstance(exc, TimeoutError):
            reason = f"Processing timed out after {settings.pipeline_timeout:g}s."
        else:
            reason = str(exc) or "Failed to process the ZIP file."
        try:
            await jobs.update_job(job.id, status=JobStatus.FAILED, error=reason)
        except Exception as db_exc:
            logger.error("Failed to mark job %s as FAILED: %s", job.id, db_exc)
        await log.error(f"Processing failed: {reason}")
        status_code = 422 if isinstance(exc, (NoAnchorDocumentError, InvalidArchiveError)) else 500
        return JSONResponse({"message": reason, "jobId": job.id}, status_code=status_code)

    await log.info(f"Processing completed successfully for: {original_zip_name}")

    return JSONResponse({
        "message": "ZIP file processed successfully!",
        "jobId": job.id,
        **result.to_response(),
    })


@app.get("/api/uploads/{job_id}")
async def job_status(job_id: str, jobs: JobStore = Depends(get_job_store)):
    job = await jobs.get_job(job_id)
    if job is None:
        return JSONResponse({"message": "Job not found."}, status_code=404)
    logs = await jobs.get_logs(job_id)
    return JSONResponse({**job.to_json(), "logs": [entry.to_json() for entry in logs]})


def serve() -> None:
    import uvicorn

    uvicorn.run("sitebundle.main:app", host=settings.host, port=settings.port)
