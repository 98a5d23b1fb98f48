import time

import pytest
from fastapi.testclient import TestClient

from ai_providers import ProviderProtocolError, ProviderRejected, ProviderUnavailable
from config import Settings
from conftest import FakeProvider, completed, in_progress
from main import create_app


def _settings(**overrides):
    values = dict(
        FREEPIK_API_KEY="test-key",
        POLL_INTERVAL_SECONDS=0.01,
        MAX_POLL_ATTEMPTS=50,
        JOB_TTL_SECONDS=3600,
        REAPER_INTERVAL_SECONDS=600,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def make_client(store):
    clients = []

    def _make(provider, **overrides):
        app = create_app(_settings(**overrides), store=store, provider=provider)
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.__exit__(None, None, None)


def _wait_for_status(client, job_id, status, timeout=3.0):
    deadline = time.monotonic() + timeout
    while True:
        payload = client.get(f"/status/{job_id}").json()
        if payload["status"] == status or time.monotonic() > deadline:
            return payload
        time.sleep(0.01)


def test_health(make_client):
    client = make_client(FakeProvider())
    assert client.get("/").json() == {"status": "ok"}
    assert client.get("/health").json() == {"ok": True}


def test_generate_then_poll_until_completed(make_client, store):
    provider = FakeProvider([in_progress(), in_progress(), completed("url1")])
    client = make_client(provider)

    resp = client.post("/generate-image", json={"prompt": "a cat"})

    assert resp.status_code == 202
    body = resp.json()
    assert body["ok"] is True
    assert body["status"] == "PENDING"
    assert body["message"] == "Task accepted"
    job_id = body["job_id"]

    final = _wait_for_status(client, job_id, "COMPLETED")
    assert final["status"] == "COMPLETED"
    assert final["results"] == ["url1"]
    assert final["message"] == "Completed"
    assert final["created_at"].endswith("Z")
    assert provider.submitted == [{"prompt": "a cat", "options": None}]


def test_status_right_after_submit_is_pending(make_client):
    client = make_client(FakeProvider([completed("url1")]), POLL_INTERVAL_SECONDS=60)

    job_id = client.post("/generate-image", json={"prompt": "a cat"}).json()["job_id"]
    resp = client.get(f"/status/{job_id}")

    assert resp.status_code == 200
    assert resp.json()["status"] == "PENDING"
    assert resp.json()["results"] == []


@pytest.mark.parametrize("payload", [{}, {"prompt": ""}, {"prompt": "   "}, {"options": {"model": "fluid"}}])
def test_missing_prompt_is_client_error(make_client, store, payload):
    provider = FakeProvider()
    client = make_client(provider)

    resp = client.post("/generate-image", json=payload)

    assert resp.status_code == 400
    assert resp.json()["error"] == "Prompt is required"
    assert resp.json()["ok"] is False
    assert "job_id" not in resp.json()
    assert provider.submitted == []
    assert len(store) == 0


def test_empty_body_is_client_error(make_client):
    resp = make_client(FakeProvider()).post("/generate-image")
    assert resp.status_code == 400


@pytest.mark.parametrize(
    "error",
    [
        ProviderUnavailable("Provider 401", status_code=401, details="invalid api key"),
        ProviderProtocolError("submit: response is not JSON"),
    ],
)
def test_provider_failure_is_bad_gateway(make_client, store, error):
    client = make_client(FakeProvider(submit_error=error))

    resp = client.post("/generate-image", json={"prompt": "a cat"})

    assert resp.status_code == 502
    body = resp.json()
    assert body["error"] == "Failed to start generation"
    assert body["stage"] == "provider"
    assert body["details"]
    assert len(store) == 0


def test_provider_rejection_is_server_error(make_client, store):
    client = make_client(FakeProvider(submit_error=ProviderRejected("No task_id")))

    resp = client.post("/generate-image", json={"prompt": "a cat"})

    assert resp.status_code == 500
    assert resp.json()["error"] == "Failed to start generation"
    assert len(store) == 0


def test_unexpected_submit_error_is_generic(make_client, store):
    client = make_client(FakeProvider(submit_error=KeyError("boom")))

    resp = client.post("/generate-image", json={"prompt": "a cat"})

    assert resp.status_code == 500
    assert resp.json() == {"ok": False, "error": "Server error starting generation"}


def test_unknown_job_is_not_found(make_client):
    resp = make_client(FakeProvider()).get("/status/unknown-id")

    assert resp.status_code == 404
    assert resp.json() == {
        "ok": False,
        "job_id": "unknown-id",
        "status": "NOT_FOUND",
        "results": [],
        "message": "Task not found",
    }


def test_parse_errors_end_in_timeout(make_client):
    provider = FakeProvider([ProviderProtocolError("status: response is not JSON")])
    client = make_client(provider, MAX_POLL_ATTEMPTS=3)

    job_id = client.post("/generate-image", json={"prompt": "a cat"}).json()["job_id"]
    final = _wait_for_status(client, job_id, "FAILED")

    assert final["status"] == "FAILED"
    assert final["message"] == "Timeout polling provider"
    assert final["results"] == []
    assert len(provider.queried) == 3


def test_reaper_evicts_old_jobs(make_client, store):
    client = make_client(
        FakeProvider([completed("url1")]),
        JOB_TTL_SECONDS=0.05,
        REAPER_INTERVAL_SECONDS=0.02,
    )

    job_id = client.post("/generate-image", json={"prompt": "a cat"}).json()["job_id"]
    final = _wait_for_status(client, job_id, "NOT_FOUND")

    assert final["status"] == "NOT_FOUND"
    assert len(store) == 0
