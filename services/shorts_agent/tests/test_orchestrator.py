from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from shorts_agent.exceptions import RenderFailedError, RenderTimeoutError, RetryableProviderError, RunFailedError
from shorts_agent.models import Script
from shorts_agent.orchestrator import RunOrchestrator, make_run_id
from shorts_agent.providers import (
    Providers,
    StubAvatarRenderer,
    StubScriptWriter,
    StubUploader,
    StubVoiceSynth,
)
from shorts_agent.quality import validate_script
from shorts_agent.storage import JobStore, MetricsStore, QuotaStore, RunStore


class Harness:
    def __init__(self, data_dir: Path, clock, *, fail_rate: float = 0.0, delay_s: float = 2.0) -> None:
        self.clock = clock
        self.data_dir = data_dir
        self.jobs = JobStore(data_dir)
        self.quota = QuotaStore(data_dir)
        self.runs = RunStore(data_dir)
        self.metrics = MetricsStore(data_dir)
        self.orchestrator = RunOrchestrator(
            job_store=self.jobs,
            quota_store=self.quota,
            run_store=self.runs,
            metrics_store=self.metrics,
            clock=clock,
            sleep=clock.sleep,
            poll_interval_s=1.0,
            poll_timeout_s=30.0,
        )
        self.providers = Providers(
            writer=StubScriptWriter(),
            voice=StubVoiceSynth(data_dir, clock=clock),
            renderer=StubAvatarRenderer(
                self.jobs,
                data_dir,
                completion_delay_s=delay_s,
                fail_rate=fail_rate,
                clock=clock,
                rng=lambda: 0.0,
            ),
            uploader=StubUploader(data_dir, clock=clock, rng=lambda: 0.99),
        )

    async def run(self, client, providers: Providers | None = None, **kwargs):
        # distinct run ids for back-to-back runs
        self.clock.advance(1)
        return await self.orchestrator.run_once(client, providers or self.providers, **kwargs)

    def events(self, name: str) -> list:
        return [event for event in self.metrics.read_metrics(limit=1000) if event.event == name]


class ShortScriptWriter:
    async def write_script(self, client, topic: str) -> Script:
        return Script(
            topic=topic,
            niche=client.niche,
            language=client.language,
            tone=client.tone,
            hook="Tiny hook.",
            body="Too short to publish.",
            cta="Bye.",
            duration_sec_target=90,
        )


class FlakyVoice:
    def __init__(self, inner, failures: int) -> None:
        self.inner = inner
        self.failures = failures
        self.calls = 0

    async def synthesize(self, client, script):
        self.calls += 1
        if self.calls <= self.failures:
            raise RetryableProviderError("voice service busy")
        return await self.inner.synthesize(client, script)


@pytest.fixture
def harness(data_dir: Path, clock) -> Harness:
    return Harness(data_dir, clock)


def test_run_id_format(clock) -> None:
    assert make_run_id(clock()) == "2026-03-01T09-00-00-000000"


@pytest.mark.asyncio
async def test_successful_run_writes_log_and_metrics(harness: Harness, make_client) -> None:
    client = make_client(publishing={"defaultPrivacyStatus": "unlisted"})

    record = await harness.run(client)

    assert record.status == "completed"
    assert record.topic in client.topic_bank
    assert record.upload is not None and record.upload.external_id.startswith("stub_")
    assert record.job is not None and record.job.status == "completed"
    assert validate_script(record.script).ok

    stored = harness.runs.get_run("acme", record.run_id)
    assert stored.status == "completed"
    assert record.run_log_path == stored.run_log_path
    assert [e.event for e in reversed(harness.metrics.read_metrics())] == [
        "run_started",
        "upload_attempted",
        "run_completed",
    ]
    log = json.loads(Path(record.upload.meta["uploadLogPath"]).read_text(encoding="utf-8"))
    assert log["opts"]["privacyStatus"] == "unlisted"
    assert harness.quota.get_daily_count("acme", "2026-03-01") == 1
    assert harness.jobs.get(record.job.id).status == "completed"


@pytest.mark.asyncio
async def test_overrides_take_precedence(harness: Harness, make_client) -> None:
    record = await harness.run(make_client(), topic_override="Custom topic", privacy_override="public")

    assert record.topic == "Custom topic"
    assert record.script.topic == "Custom topic"
    log = json.loads(Path(record.upload.meta["uploadLogPath"]).read_text(encoding="utf-8"))
    assert log["opts"]["privacyStatus"] == "public"


@pytest.mark.asyncio
async def test_quality_gate_rewrites_weak_scripts(harness: Harness, make_client) -> None:
    providers = Providers(
        writer=ShortScriptWriter(),
        voice=harness.providers.voice,
        renderer=harness.providers.renderer,
        uploader=harness.providers.uploader,
    )

    record = await harness.run(make_client(), providers)

    assert validate_script(record.script).ok
    assert record.script.duration_sec_target == 60


@pytest.mark.asyncio
async def test_second_run_over_quota_fails_without_retry(harness: Harness, make_client) -> None:
    client = make_client(limits={"maxUploadsPerDay": 1})
    await harness.run(client)
    harness.clock.sleeps.clear()

    with pytest.raises(RunFailedError) as excinfo:
        await harness.run(client)

    # only render polling slept; the upload backoff never ran
    assert 0.5 not in harness.clock.sleeps
    assert set(harness.clock.sleeps) == {1.0}
    assert "quota exceeded" in str(excinfo.value)
    assert excinfo.value.run_log_path.exists()
    assert len(harness.events("run_completed")) == 1
    assert len(harness.events("run_failed")) == 1
    assert harness.quota.get_daily_count("acme", "2026-03-01") == 1
    [failed] = [run for run in harness.runs.list_runs("acme") if run.status == "failed"]
    assert "quota exceeded" in failed.error.message
    assert failed.upload is None


@pytest.mark.asyncio
async def test_render_failure_is_recorded(data_dir: Path, clock, make_client) -> None:
    harness = Harness(data_dir, clock, fail_rate=1.0)

    with pytest.raises(RunFailedError) as excinfo:
        await harness.run(make_client())

    assert isinstance(excinfo.value.__cause__, RenderFailedError)
    [run] = harness.runs.list_runs("acme")
    assert run.status == "failed"
    assert "Simulated render failure" in run.error.message
    assert run.error.stack
    assert run.job.status == "failed"
    assert harness.events("upload_attempted") == []
    [failed] = harness.events("run_failed")
    assert "Simulated render failure" in failed.model_extra["error"]


@pytest.mark.asyncio
async def test_render_poll_times_out(data_dir: Path, clock, make_client) -> None:
    harness = Harness(data_dir, clock, delay_s=1000)

    with pytest.raises(RunFailedError) as excinfo:
        await harness.run(make_client())

    assert isinstance(excinfo.value.__cause__, RenderTimeoutError)
    assert sum(clock.sleeps) >= 30


@pytest.mark.asyncio
async def test_voice_is_retried(harness: Harness, make_client) -> None:
    voice = FlakyVoice(harness.providers.voice, failures=2)
    providers = Providers(
        writer=harness.providers.writer,
        voice=voice,
        renderer=harness.providers.renderer,
        uploader=harness.providers.uploader,
    )

    record = await harness.run(make_client(), providers)

    assert record.status == "completed"
    assert voice.calls == 3
    assert harness.clock.sleeps[:2] == [0.25, 0.5]


@pytest.mark.asyncio
async def test_failed_upload_does_not_count_against_quota(data_dir: Path, clock, make_client) -> None:
    harness = Harness(data_dir, clock)
    failing = StubUploader(data_dir, fail_rate=1.0, clock=clock, rng=lambda: 0.0)
    providers = Providers(
        writer=harness.providers.writer,
        voice=harness.providers.voice,
        renderer=harness.providers.renderer,
        uploader=failing,
    )

    with pytest.raises(RunFailedError, match="Simulated uploader failure"):
        await harness.run(make_client(limits={"maxUploadsPerDay": 3}), providers)

    assert harness.quota.get_daily_count("acme", "2026-03-01") == 0
    assert len(list((data_dir / "clients" / "acme" / "uploads").glob("uploaded_*.json"))) >= 1


@pytest.mark.asyncio
async def test_clients_are_isolated(harness: Harness, make_client) -> None:
    await harness.run(make_client("acme"))
    await harness.run(make_client("globex"))

    assert len(harness.runs.list_runs("acme")) == 1
    assert len(harness.runs.list_runs("globex")) == 1
    assert (harness.data_dir / "clients" / "globex" / "audio").is_dir()
    completed = harness.events("run_completed")
    assert sorted(event.client_id for event in completed) == ["acme", "globex"]
    assert harness.jobs.list_recent(10, client_id="globex")[0].client_id == "globex"


class StalledRenderer:
    def __init__(self, inner) -> None:
        self.inner = inner
        self.polling = asyncio.Event()

    async def render(self, client, audio, script):
        return await self.inner.render(client, audio, script)

    async def get_status(self, client, job_id: str):
        self.polling.set()
        await asyncio.Event().wait()

    async def download(self, client, job_id: str):
        return await self.inner.download(client, job_id)


@pytest.mark.asyncio
async def test_cancelled_run_is_still_recorded(harness: Harness, make_client) -> None:
    renderer = StalledRenderer(harness.providers.renderer)
    providers = Providers(
        writer=harness.providers.writer,
        voice=harness.providers.voice,
        renderer=renderer,
        uploader=harness.providers.uploader,
    )

    task = asyncio.create_task(harness.run(make_client(), providers))
    await asyncio.wait_for(renderer.polling.wait(), timeout=5)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    [run] = harness.runs.list_runs("acme")
    assert run.status == "failed"
    assert run.error.message == "run cancelled"
    assert run.job.status == "failed"
    assert harness.jobs.get(run.job.id).status == "failed"
    [failed] = harness.events("run_failed")
    assert failed.model_extra["error"] == "run cancelled"
    assert harness.events("run_completed") == []
