"""End-to-end tests through the FastAPI app with fake collaborators."""

import asyncio
import io
import time
import zipfile

import pytest
from fastapi.testclient import TestClient

from conftest import VALID_URLS
from tubeaudio.config import Settings
from tubeaudio.main import create_app


@pytest.fixture
def settings(tmp_path):
    return Settings(downloads_dir=str(tmp_path / "downloads"), max_concurrent_jobs=4)


@pytest.fixture
def client(settings, source, transcoder):
    app = create_app(settings=settings, source=source, transcoder=transcoder)
    with TestClient(app) as test_client:
        yield test_client


def wait_for(client, job_id, statuses=("completed", "failed"), timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        response = client.get(f"/api/conversions/{job_id}")
        assert response.status_code == 200
        body = response.json()
        if body["status"] in statuses:
            return body
        time.sleep(0.02)
    raise AssertionError(f"job {job_id} never reached {statuses}")


def test_single_conversion_lifecycle(client, transcoder):
    created = client.post("/api/conversions", json={"url": VALID_URLS[0]})
    assert created.status_code == 200
    job = created.json()
    assert job["status"] == "pending"
    assert job["progress"] == 0
    assert job["title"] is None

    done = wait_for(client, job["id"])
    assert done["status"] == "completed"
    assert done["progress"] == 100
    assert done["file_name"] == f"Video dQw4w9WgXcQ_{job['id']}.mp3"
    assert done["file_size"] == 3 + 2048
    assert done["file_path"] and done["completed_at"]

    download = client.get(f"/api/download/{job['id']}")
    assert download.status_code == 200
    assert download.headers["content-type"] == "audio/mpeg"
    assert f"dQw4w9WgXcQ_{job['id']}.mp3" in download.headers["content-disposition"]
    assert download.content.startswith(b"ID3")

    deleted = client.delete(f"/api/conversions/{job['id']}")
    assert deleted.status_code == 200
    assert client.get(f"/api/conversions/{job['id']}").status_code == 404
    assert client.get(f"/api/download/{job['id']}").status_code == 404
    assert client.post("/api/download/bulk", json={"ids": [job["id"]]}).status_code == 404
    assert client.delete(f"/api/conversions/{job['id']}").status_code == 404
    assert client.get("/api/conversions").json() == []


def test_invalid_single_url(client):
    response = client.post("/api/conversions", json={"url": "https://example.com/clip"})
    assert response.status_code == 400
    assert "Invalid YouTube URL" in response.json()["detail"]
    assert client.get("/api/conversions").json() == []


def test_bulk_of_eleven_rejected(client):
    response = client.post("/api/conversions/bulk", json={"urls": VALID_URLS[:11]})
    assert response.status_code == 400
    assert client.get("/api/conversions").json() == []


def test_bulk_with_malformed_url_rejected(client):
    urls = [VALID_URLS[0], "youtube dot com", VALID_URLS[1], VALID_URLS[2]]
    response = client.post("/api/conversions/bulk", json={"urls": urls})
    assert response.status_code == 400
    assert client.get("/api/conversions").json() == []


def test_bulk_with_blank_entry_rejected(client):
    response = client.post("/api/conversions/bulk", json={"urls": VALID_URLS[:10] + [""]})
    assert response.status_code == 400
    assert client.get("/api/conversions").json() == []


def test_bulk_conversion_and_zip_download(client, source):
    source.unavailable.add(VALID_URLS[1])
    response = client.post("/api/conversions/bulk", json={"urls": VALID_URLS[:3]})
    assert response.status_code == 200
    jobs = response.json()
    assert [j["url"] for j in jobs] == VALID_URLS[:3]

    final = {j["id"]: wait_for(client, j["id"]) for j in jobs}
    statuses = [final[j["id"]]["status"] for j in jobs]
    assert statuses == ["completed", "failed", "completed"]
    failed = final[jobs[1]["id"]]
    assert failed["error_message"] == "Video unavailable"
    assert failed["file_path"] is None

    ids = [jobs[0]["id"], jobs[1]["id"], 9999, jobs[2]["id"]]
    archive = client.post("/api/download/bulk", json={"ids": ids})
    assert archive.status_code == 200
    assert archive.headers["content-type"] == "application/zip"
    assert 'filename="converted_files.zip"' in archive.headers["content-disposition"]
    names = zipfile.ZipFile(io.BytesIO(archive.content)).namelist()
    assert names == [final[jobs[0]["id"]]["file_name"], final[jobs[2]["id"]]["file_name"]]


def test_bulk_download_validation(client):
    assert client.post("/api/download/bulk", json={"ids": []}).status_code == 400
    assert client.post("/api/download/bulk", json={"ids": [1, 2]}).status_code == 404


def test_list_filter_and_stats(client, source):
    source.unavailable.add(VALID_URLS[1])
    jobs = client.post("/api/conversions/bulk", json={"urls": VALID_URLS[:2]}).json()
    for job in jobs:
        wait_for(client, job["id"])

    listed = client.get("/api/conversions").json()
    assert [j["id"] for j in listed] == sorted((j["id"] for j in jobs), reverse=True)
    completed = client.get("/api/conversions", params={"status": "completed"}).json()
    assert [j["url"] for j in completed] == [VALID_URLS[0]]
    assert client.get("/api/conversions", params={"status": "bogus"}).status_code == 422

    stats = client.get("/api/conversions/stats").json()
    assert stats == {"total": 2, "today": 2, "success_rate": 50, "avg_size_bytes": 2051}

    health = client.get("/api/health").json()
    assert health["status"] == "healthy"
    assert health["poll_interval_seconds"] == 2.0
    assert health["jobs"] == {"pending": 0, "processing": 0, "completed": 1, "failed": 1}


def test_waiting_jobs_stay_pending(tmp_path, source, transcoder):
    settings = Settings(downloads_dir=str(tmp_path / "d"), max_concurrent_jobs=1)
    source.info_gate = asyncio.Event()
    app = create_app(settings=settings, source=source, transcoder=transcoder)

    with TestClient(app) as client:
        first = client.post("/api/conversions", json={"url": VALID_URLS[0]}).json()
        second = client.post("/api/conversions", json={"url": VALID_URLS[1]}).json()

        wait_for(client, first["id"], statuses=("processing",))
        waiting = client.get(f"/api/conversions/{second['id']}").json()
        assert waiting["status"] == "pending"
        assert waiting["progress"] == 0

        client.portal.call(source.info_gate.set)
        assert wait_for(client, first["id"])["status"] == "completed"
        assert wait_for(client, second["id"])["status"] == "completed"
