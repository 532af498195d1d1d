from fastapi.testclient import TestClient

from conftest import FakeObjectStore, make_zip
from sitebundle.config import settings
from sitebundle.jobs import MemoryJobStore
from sitebundle.main import app, get_job_store, get_object_store, get_pipeline_options, serve
from sitebundle.models import JobStatus
from sitebundle.services.pipeline import PipelineOptions
from sitebundle.utils import is_zip_upload


def test_zip_content_type_accepted():
    assert is_zip_upload("site.zip", "application/zip")
    assert is_zip_upload("site.bin", "application/x-zip-compressed")


def test_zip_extension_accepted_with_generic_type():
    assert is_zip_upload("Site.ZIP", "application/octet-stream")


def test_non_zip_rejected():
    assert not is_zip_upload("site.tar.gz", "application/gzip")
    assert not is_zip_upload(None, None)


def _client(store=None, jobs=None):
    jobs = jobs or MemoryJobStore()
    store = store or FakeObjectStore()
    app.dependency_overrides[get_job_store] = lambda: jobs
    app.dependency_overrides[get_object_store] = lambda: store
    app.dependency_overrides[get_pipeline_options] = lambda: PipelineOptions(version="9.9.9")
    return TestClient(app), jobs, store


def teardown_function():
    app.dependency_overrides.clear()


def test_index_page_renders():
    client, _, _ = _client()
    res = client.get("/")
    assert res.status_code == 200
    assert 'name="zipfile"' in res.text


def test_upload_publishes_site():
    client, jobs, store = _client()
    bundle = make_zip({
        "index.html": '<html><body><img src="img/logo.png"></body></html>',
        "img/logo.png": b"PNG",
    })
    res = client.post("/api/uploads", files={"zipfile": ("site.zip", bundle, "application/zip")})

    assert res.status_code == 200
    body = res.json()
    assert body["processedFileCount"] == 1
    assert body["mappingJson"]["img/logo.png"]["caminho_bucket"].startswith("https://cdn.test/")
    assert "Version: 9.9.9" in body["htmlContent"]

    job = jobs.jobs[body["jobId"]]
    assert job.status.value == "COMPLETED"
    assert job.final_html_url == body["finalHtmlUrl"]

    status = client.get(f"/api/uploads/{body['jobId']}").json()
    assert status["status"] == "COMPLETED"
    assert any("Processing completed" in entry["message"] for entry in status["logs"])


def test_upload_without_html_fails_job():
    client, jobs, _ = _client()
    bundle = make_zip({"style.css": "body{}"})
    res = client.post("/api/uploads", files={"zipfile": ("site.zip", bundle, "application/zip")})

    assert res.status_code == 422
    job = jobs.jobs[res.json()["jobId"]]
    assert job.status.value == "FAILED"
    assert job.mapping_json is None


def test_upload_rejects_non_zip():
    client, jobs, _ = _client()
    res = client.post("/api/uploads", files={"zipfile": ("notes.txt", b"hello", "text/plain")})
    assert res.status_code == 400
    assert not jobs.jobs


def test_upload_publish_failure_is_reported():
    client, jobs, _ = _client(store=FakeObjectStore(fail_all=True))
    bundle = make_zip({"index.html": "<html><body></body></html>"})
    res = client.post("/api/uploads", files={"zipfile": ("site.zip", bundle, "application/zip")})

    assert res.status_code == 500
    assert jobs.jobs[res.json()["jobId"]].status.value == "FAILED"


def test_unknown_job_returns_404():
    client, _, _ = _client()
    assert client.get("/api/uploads/missing").status_code == 404


def test_completion_write_failure_marks_job_failed():
    class CompletionFails(MemoryJobStore):
        async def update_job(self, job_id, **values):
            if values.get("status") is JobStatus.COMPLETED:
                raise ConnectionError("job table unavailable")
            await super().update_job(job_id, **values)

    client, jobs, _ = _client(jobs=CompletionFails())
    bundle = make_zip({"index.html": "<html><body></body></html>"})
    res = client.post("/api/uploads", files={"zipfile": ("site.zip", bundle, "application/zip")})

    assert res.status_code == 500
    body = res.json()
    assert "job table unavailable" in body["message"]
    job = jobs.jobs[body["jobId"]]
    assert job.status is JobStatus.FAILED
    assert job.error == body["message"]


def test_corrupt_archive_member_is_rejected():
    client, jobs, _ = _client()
    bundle = make_zip({"index.html": "<html><body>hello</body></html>"}).replace(b"hello", b"jello")
    res = client.post("/api/uploads", files={"zipfile": ("site.zip", bundle, "application/zip")})

    assert res.status_code == 422
    assert jobs.jobs[res.json()["jobId"]].status is JobStatus.FAILED


def test_serve_runs_uvicorn(monkeypatch):
    import uvicorn

    calls = []
    monkeypatch.setattr(uvicorn, "run", lambda target, **kwargs: calls.append((target, kwargs)))
    serve()

    assert calls == [("sitebundle.main:app", {"host": settings.host, "port": settings.port})]
