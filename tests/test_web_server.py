"""Tests for the JSON API (/api/download) and the SSE feed."""

import json
from datetime import datetime

import pytest

from anifin.download_manager import DownloadManager
from anifin.exceptions import ExtractionError
from anifin.models import LogEntry, VideoInfo
from anifin.web_server import DownloadServer


class StubDownloader:
    def __init__(self):
        self.calls = []
        self.info_error = None
        self.info_calls = []
        self.running = False

    def download(self, url, options=None):
        self.calls.append((url, options))
        return "/downloads/x.mp4"

    def get_video_info(self, url, provider=None, language=None):
        self.info_calls.append((url, provider, language))
        if self.info_error:
            raise self.info_error
        return VideoInfo(title="my show S1E1", url=url, thumbnail="https://p/x.jpg")

    def get_logs(self):
        return [LogEntry(datetime(2024, 1, 1, 8, 0), "info", "Processing: x")]

    def terminate(self):
        return self.running


@pytest.fixture
def stub():
    return StubDownloader()


@pytest.fixture
def manager(stub):
    m = DownloadManager(auto_start=False)
    m.register_downloader("aniworld", stub)
    return m


@pytest.fixture
def client(test_config, manager):
    server = DownloadServer(test_config, manager)
    return server.app.test_client()


def _decode(chunk):
    if isinstance(chunk, bytes):
        chunk = chunk.decode("utf-8")
    assert chunk.startswith("data: ")
    return json.loads(chunk[len("data: "):].strip())


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.get_json() == {"ok": True, "app": "AniFin", "version": "0.2.0"}


class TestEnqueueRoute:
    def test_adds_job(self, client, manager):
        resp = client.post(
            "/api/download/",
            json={"url": "https://aniworld.to/anime/stream/x", "language": "German Sub"},
        )

        assert resp.status_code == 202
        body = resp.get_json()
        assert body["success"] is True
        assert body["message"] == "Added to queue"
        assert body["status"]["queue_length"] == 1
        job = manager.get_queue()[0]
        assert job.options.language == "German Sub"

    def test_missing_url(self, client):
        resp = client.post("/api/download/", json={"language": "German Sub"})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "URL is required"

    def test_blank_url(self, client):
        resp = client.post("/api/download/", json={"url": "   "})
        assert resp.status_code == 400

    def test_non_json_body(self, client):
        resp = client.post("/api/download/", data="url=x")
        assert resp.status_code == 400


class TestQueueRoutes:
    def test_status(self, client, manager):
        manager.enqueue("https://a")
        resp = client.get("/api/download/queue")
        data = resp.get_json()["data"]
        assert data["is_processing"] is False
        assert data["queue"] == [{"url": "https://a", "options": {}}]

    def test_clear(self, client, manager):
        manager.enqueue("https://a")
        manager.enqueue("https://b")
        resp = client.delete("/api/download/queue")
        assert resp.get_json()["removed"] == 2
        assert manager.queue_length() == 0

    def test_cancel_when_idle(self, client):
        resp = client.delete("/api/download/current")
        assert resp.status_code == 409

    def test_logs(self, client):
        data = client.get("/api/download/logs").get_json()["data"]
        assert data == [
            {
                "timestamp": "2024-01-01T08:00:00",
                "level": "info",
                "message": "Processing: x",
                "downloader": "aniworld",
            }
        ]


class TestInfoRoute:
    def test_info(self, client):
        resp = client.get("/api/download/info", query_string={"url": "https://ep"})
        assert resp.status_code == 200
        assert resp.get_json()["data"]["thumbnail"] == "https://p/x.jpg"

    def test_info_forwards_provider_and_language(self, client, stub):
        resp = client.get(
            "/api/download/info",
            query_string={"url": "https://ep", "provider": "voe", "language": "German Sub"},
        )

        assert resp.status_code == 200
        assert stub.info_calls == [("https://ep", "voe", "German Sub")]

    def test_info_defaults_provider_and_language(self, client, stub):
        client.get("/api/download/info", query_string={"url": "https://ep"})
        assert stub.info_calls == [("https://ep", None, None)]

    def test_missing_url(self, client):
        assert client.get("/api/download/info").status_code == 400

    def test_unknown_downloader(self, client):
        resp = client.get("/api/download/info", query_string={"url": "x", "downloader": "nope"})
        assert resp.status_code == 404

    def test_extraction_error(self, client, stub):
        stub.info_error = ExtractionError("voe URL not found for language: German Dub")
        resp = client.get("/api/download/info", query_string={"url": "https://ep"})
        assert resp.status_code == 400
        assert "voe URL not found" in resp.get_json()["error"]

    def test_unexpected_error_returns_json_500(self, client, stub):
        stub.info_error = RuntimeError("kaboom")
        resp = client.get("/api/download/info", query_string={"url": "https://ep"})
        assert resp.status_code == 500
        assert resp.get_json() == {"success": False, "error": "Internal Server Error"}


def test_stream_sends_status_then_events(client, manager):
    resp = client.get("/api/download/stream", buffered=False)
    assert resp.mimetype == "text/event-stream"
    chunks = iter(resp.response)

    first = _decode(next(chunks))
    assert first["type"] == "status"
    assert first["data"]["queue_length"] == 0

    manager.enqueue("https://a")
    second = _decode(next(chunks))
    assert second == {"type": "queued", "data": {"url": "https://a", "queue_length": 1}}
    resp.close()
