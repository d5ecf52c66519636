from __future__ import annotations

import json
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import pytest

from shorts_agent.exceptions import (
    DuplicateJobError,
    JobNotFoundError,
    JobTransitionError,
    QuotaExceededError,
    RunNotFoundError,
    ShortsAgentError,
)
from shorts_agent.models import MetricEvent, RenderJob, RunRecord
from shorts_agent.storage import JobStore, MetricsStore, QuotaStore, RunStore
from shorts_agent.storage.metrics import DEFAULT_CAPACITY

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def _job(job_id: str = "job-1", client_id: str = "acme", status: str = "queued", minutes: int = 0) -> RenderJob:
    moment = T0 + timedelta(minutes=minutes)
    return RenderJob(
        id=job_id,
        client_id=client_id,
        provider="stub",
        status=status,
        created_at=moment,
        updated_at=moment,
    )


def _run(run_id: str, client_id: str = "acme", minutes: int = 0, status: str = "completed") -> RunRecord:
    moment = T0 + timedelta(minutes=minutes)
    return RunRecord(
        run_id=run_id,
        client_id=client_id,
        topic="Feature flags",
        status=status,
        started_at=moment,
        finished_at=moment,
        timestamp=moment,
        duration_ms=0,
    )


# --- jobs ---


def test_job_store_persists_and_hydrates(data_dir: Path) -> None:
    store = JobStore(data_dir)
    store.save(_job())

    reloaded = JobStore(data_dir).get("job-1")

    assert reloaded is not None
    assert reloaded.client_id == "acme"
    assert json.loads(store.path.read_text(encoding="utf-8"))["job-1"]["clientId"] == "acme"


def test_job_store_rejects_duplicates_and_unknown_updates(data_dir: Path) -> None:
    store = JobStore(data_dir)
    store.save(_job())

    with pytest.raises(DuplicateJobError):
        store.save(_job())
    with pytest.raises(JobNotFoundError):
        store.update(_job("missing", status="processing"))


def test_job_store_moves_forward_only(data_dir: Path) -> None:
    store = JobStore(data_dir)
    store.save(_job(status="processing"))

    with pytest.raises(JobTransitionError):
        store.update(_job(status="queued"))

    done = store.update(_job(status="completed", minutes=5))
    assert done.status == "completed"
    assert done.created_at == T0

    with pytest.raises(JobTransitionError):
        store.update(_job(status="failed"))
    # same terminal status is a no-op
    again = store.update(_job(status="completed", minutes=9))
    assert again.updated_at == T0 + timedelta(minutes=5)


def test_job_store_refuses_client_change(data_dir: Path) -> None:
    store = JobStore(data_dir)
    store.save(_job())

    with pytest.raises(JobTransitionError):
        store.update(_job(client_id="globex", status="processing"))


def test_job_store_lists_recent_per_client(data_dir: Path) -> None:
    store = JobStore(data_dir)
    store.save(_job("a", minutes=1))
    store.save(_job("b", minutes=3))
    store.save(_job("c", client_id="globex", minutes=2))

    assert [job.id for job in store.list_recent(10)] == ["b", "c", "a"]
    assert [job.id for job in store.list_recent(1, client_id="acme")] == ["b"]
    assert store.list_recent(10, client_id="nobody") == []


# --- quota ---


def test_quota_counts_per_day(data_dir: Path) -> None:
    store = QuotaStore(data_dir)

    assert store.get_daily_count("acme", date(2026, 3, 1)) == 0
    assert store.increment_daily_count("acme", date(2026, 3, 1)) == 1
    assert store.increment_daily_count("acme", "2026-03-01") == 2
    assert store.get_daily_count("acme", "2026-03-02") == 0
    assert store.get_daily_count("globex", "2026-03-01") == 0
    assert store.path_for("acme", "2026-03-01").name == "quota_2026-03-01.json"


def test_quota_ensure_available_raises_at_limit(data_dir: Path) -> None:
    store = QuotaStore(data_dir)
    assert store.ensure_available("acme", "2026-03-01", 1) == 0
    store.increment_daily_count("acme", "2026-03-01")

    with pytest.raises(QuotaExceededError) as excinfo:
        store.ensure_available("acme", "2026-03-01", 1)

    assert "quota exceeded" in str(excinfo.value)
    assert excinfo.value.limit == 1


def test_corrupt_quota_record_counts_as_zero(data_dir: Path) -> None:
    store = QuotaStore(data_dir)
    store.path_for("acme", "2026-03-01").write_text("{not json", encoding="utf-8")
    assert store.get_daily_count("acme", "2026-03-01") == 0

    store.path_for("acme", "2026-03-02").write_text(json.dumps({"date": "2026-01-01", "count": 4}), encoding="utf-8")
    assert store.get_daily_count("acme", "2026-03-02") == 0


# --- runs ---


def test_run_log_is_never_overwritten(data_dir: Path) -> None:
    store = RunStore(data_dir)
    path = store.write_run_log("acme", _run("r1"))

    assert path == data_dir / "clients" / "acme" / "runs" / "run_r1.json"
    with pytest.raises(ShortsAgentError):
        store.write_run_log("acme", _run("r1"))
    with pytest.raises(ValueError):
        store.write_run_log("globex", _run("r2"))


def test_runs_are_listed_newest_first(data_dir: Path) -> None:
    store = RunStore(data_dir)
    store.write_run_log("acme", _run("r1", minutes=1))
    store.write_run_log("acme", _run("r2", minutes=3, status="failed"))
    store.write_run_log("acme", _run("r3", minutes=2))
    (data_dir / "clients" / "acme" / "runs" / "run_broken.json").write_text("[]", encoding="utf-8")

    runs = store.list_runs("acme")

    assert [run.run_id for run in runs] == ["r2", "r3", "r1"]
    assert runs[0].run_log_path is not None
    assert store.list_runs("nobody") == []
    assert store.get_run("acme", "r3").topic == "Feature flags"
    with pytest.raises(RunNotFoundError):
        store.get_run("acme", "missing")


# --- metrics ---


def test_metrics_are_bounded_and_read_newest_first(data_dir: Path) -> None:
    store = MetricsStore(data_dir, capacity=5)
    for index in range(8):
        store.append_metric("run_started", client_id="acme", run_id=f"r{index}")

    events = store.read_metrics(limit=10)

    assert DEFAULT_CAPACITY == 2000
    assert [event.run_id for event in events] == ["r7", "r6", "r5", "r4", "r3"]
    assert len(json.loads(store.path.read_text(encoding="utf-8"))) == 5


def test_default_capacity_evicts_oldest_first(data_dir: Path) -> None:
    store = MetricsStore(data_dir)
    for index in range(DEFAULT_CAPACITY + 5):
        store.append_metric("run_started", run_id=f"r{index}")

    kept = json.loads(store.path.read_text(encoding="utf-8"))

    assert len(kept) == DEFAULT_CAPACITY
    assert kept[0]["runId"] == "r5"
    assert kept[-1]["runId"] == f"r{DEFAULT_CAPACITY + 4}"


def test_metrics_keep_extra_fields(data_dir: Path) -> None:
    store = MetricsStore(data_dir)
    store.append_metric(MetricEvent(event="run_failed", clientId="acme", error="boom", durationMs=12))

    raw = json.loads(store.path.read_text(encoding="utf-8"))[0]

    assert raw["event"] == "run_failed"
    assert raw["clientId"] == "acme"
    assert raw["error"] == "boom"
    assert raw["durationMs"] == 12


def test_corrupt_metrics_file_is_reset(data_dir: Path) -> None:
    store = MetricsStore(data_dir)
    store.path.write_text("{oops", encoding="utf-8")

    assert store.read_metrics() == []
    store.append_metric("run_started", client_id="acme")
    assert [event.event for event in store.read_metrics()] == ["run_started"]
