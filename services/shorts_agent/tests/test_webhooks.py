from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from shorts_agent.models import RenderJob
from shorts_agent.storage import JobStore
from shorts_agent.webhooks import create_app, extract_job_id, save_webhook


@pytest.fixture
def data_dir_env(monkeypatch: pytest.MonkeyPatch, data_dir: Path) -> Path:
    monkeypatch.setenv("DATA_DIR", str(data_dir))
    monkeypatch.setenv("API_VERSION", "2.0.0")
    return data_dir


def test_health(data_dir_env: Path) -> None:
    with TestClient(create_app()) as client:
        response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "api_version": "2.0.0"}


def test_webhook_payload_is_stored_verbatim(data_dir_env: Path) -> None:
    body = b'{"event_type": "avatar_video.success", "event_data": {"video_id": "v-1"}}'

    with TestClient(create_app()) as client:
        response = client.post("/webhooks/heygen", content=body, headers={"Content-Type": "application/json"})

    assert response.status_code == 200
    assert response.json() == {"ok": True}
    [stored] = list((data_dir_env / "webhooks").glob("heygen_*.json"))
    assert stored.read_bytes() == body


def test_unknown_provider_is_rejected(data_dir_env: Path) -> None:
    with TestClient(create_app()) as client:
        response = client.post("/webhooks/synthesia", json={"id": "x"})

    assert response.status_code == 404
    assert not (data_dir_env / "webhooks").exists() or not any((data_dir_env / "webhooks").iterdir())


def test_invalid_json_is_still_acknowledged(data_dir_env: Path) -> None:
    with TestClient(create_app()) as client:
        response = client.post("/webhooks/did", content=b"not json")

    assert response.status_code == 200
    assert response.json() == {"ok": True}
    [stored] = list((data_dir_env / "webhooks").glob("did_*.json"))
    assert stored.read_bytes() == b"not json"


def test_known_job_is_resolved_to_client(data_dir_env: Path, caplog: pytest.LogCaptureFixture) -> None:
    now = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)
    JobStore(data_dir_env).save(
        RenderJob(id="tlk_1", client_id="acme", provider="did", status="processing", created_at=now, updated_at=now)
    )
    caplog.set_level(logging.INFO, logger="shorts_agent.webhooks")

    with TestClient(create_app()) as client:
        response = client.post("/webhooks/did", json={"id": "tlk_1", "status": "done"})

    assert response.status_code == 200
    assert "job tlk_1 -> client acme" in caplog.text
    # the webhook does not change job state
    assert JobStore(data_dir_env).get("tlk_1").status == "processing"


def test_jobs_saved_after_startup_are_resolved(data_dir_env: Path, caplog: pytest.LogCaptureFixture) -> None:
    now = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)
    writer = JobStore(data_dir_env)
    writer.save(RenderJob(id="j-1", client_id="acme", provider="heygen", status="processing", created_at=now, updated_at=now))
    caplog.set_level(logging.INFO, logger="shorts_agent.webhooks")

    with TestClient(create_app()) as client:
        client.post("/webhooks/heygen", json={"video_id": "j-1"})
        # saved by a separate run process while the receiver is up
        writer.save(
            RenderJob(id="j-2", client_id="acme", provider="heygen", status="processing", created_at=now, updated_at=now)
        )
        response = client.post("/webhooks/heygen", json={"video_id": "j-2"})

    assert response.status_code == 200
    assert "job j-1 -> client acme" in caplog.text
    assert "job j-2 -> client acme" in caplog.text
    assert "unknown job j-2" not in caplog.text


def test_job_store_reload_sees_other_writers(data_dir: Path) -> None:
    reader = JobStore(data_dir)
    assert reader.get("j-1") is None

    now = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)
    JobStore(data_dir).save(RenderJob(id="j-1", client_id="acme", provider="did", status="queued", created_at=now, updated_at=now))

    assert reader.get("j-1") is None
    reader.reload()
    assert reader.get("j-1").client_id == "acme"


@pytest.mark.parametrize(
    ("payload", "expected"),
    [
        ({"job_id": "a"}, "a"),
        ({"videoId": "b"}, "b"),
        ({"talk_id": 42}, "42"),
        ({"data": {"video_id": "c"}}, "c"),
        ({"event_data": {"jobId": "d"}}, "d"),
        ({"status": "done"}, None),
        (["not", "a", "dict"], None),
    ],
)
def test_extract_job_id(payload: object, expected: str | None) -> None:
    assert extract_job_id(payload) == expected


def test_save_webhook_never_overwrites(tmp_path: Path) -> None:
    paths = {save_webhook(tmp_path, "heygen", json.dumps({"n": n}).encode()) for n in range(3)}

    assert len(paths) == 3
    assert all(path.parent == tmp_path / "webhooks" for path in paths)
