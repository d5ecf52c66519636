"""Stage pipeline producing one short for one client."""

from __future__ import annotations

import asyncio
import logging
import traceback
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from .clients import ClientProfile
from .config import Settings
from .exceptions import RenderFailedError, RenderTimeoutError, RunFailedError, is_quota_exceeded
from .models import (
    AudioAsset,
    PrivacyStatus,
    RenderJob,
    RunError,
    RunRecord,
    RunStatus,
    Script,
    UploadOptions,
    UploadResult,
    VideoAsset,
    utc_now,
)
from .providers.base import AvatarRenderer, Providers
from .quality import ensure_quality
from .retry import RetryPolicy, Sleep
from .storage import JobStore, MetricsStore, QuotaStore, RunStore
from .topics import select_topic, today_in_timezone

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

VOICE_RETRY = RetryPolicy(attempts=3, min_delay=0.25, max_delay=2.0)
RENDER_RETRY = RetryPolicy(attempts=2, min_delay=0.5, max_delay=2.0)
UPLOAD_RETRY = RetryPolicy(attempts=2, min_delay=0.5, max_delay=2.0)


def make_run_id(started_at: datetime) -> str:
    """``YYYY-MM-DDTHH-MM-SS-ffffff`` in UTC."""

    return started_at.astimezone(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%f")


@dataclass
class _RunContext:
    topic: str = ""
    script: Optional[Script] = None
    audio: Optional[AudioAsset] = None
    job: Optional[RenderJob] = None
    video: Optional[VideoAsset] = None
    upload: Optional[UploadResult] = None


class RunOrchestrator:
    """Runs topic → script → gate → voice → render → poll → download → upload.

    Every invocation ends with exactly one run log and exactly one of the
    ``run_completed``/``run_failed`` metrics, written before ``run_once``
    returns or raises.
    """

    def __init__(
        self,
        *,
        job_store: JobStore,
        quota_store: QuotaStore,
        run_store: RunStore,
        metrics_store: MetricsStore,
        clock: Clock = utc_now,
        sleep: Optional[Sleep] = None,
        poll_interval_s: float = 1.0,
        poll_timeout_s: float = 120.0,
        voice_retry: RetryPolicy = VOICE_RETRY,
        render_retry: RetryPolicy = RENDER_RETRY,
        upload_retry: RetryPolicy = UPLOAD_RETRY,
    ) -> None:
        self._jobs = job_store
        self._quota = quota_store
        self._runs = run_store
        self._metrics = metrics_store
        self._clock = clock
        self._sleep = sleep or asyncio.sleep
        self._poll_interval_s = poll_interval_s
        self._poll_timeout_s = poll_timeout_s
        self._voice_retry = voice_retry
        self._render_retry = render_retry
        self._upload_retry = upload_retry

    @classmethod
    def from_settings(cls, settings: Settings, job_store: Optional[JobStore] = None) -> "RunOrchestrator":
        data_dir = settings.data_dir
        return cls(
            job_store=job_store or JobStore(data_dir),
            quota_store=QuotaStore(data_dir),
            run_store=RunStore(data_dir),
            metrics_store=MetricsStore(data_dir),
            poll_interval_s=settings.render_poll_interval_s,
            poll_timeout_s=settings.effective_render_timeout_s,
        )

    @property
    def job_store(self) -> JobStore:
        return self._jobs

    @property
    def metrics_store(self) -> MetricsStore:
        return self._metrics

    async def run_once(
        self,
        client: ClientProfile,
        providers: Providers,
        *,
        topic_override: Optional[str] = None,
        privacy_override: Optional[PrivacyStatus] = None,
    ) -> RunRecord:
        started_at = self._clock()
        run_id = make_run_id(started_at)
        day = today_in_timezone(client.schedule.timezone, started_at)
        ctx = _RunContext(topic=topic_override or "")

        logger.info("Run %s started for client %s", run_id, client.id)
        self._metrics.append_metric(
            "run_started",
            timestamp=started_at,
            client_id=client.id,
            run_id=run_id,
            topic=topic_override,
        )

        try:
            await self._run_stages(client, providers, ctx, run_id, day, privacy_override)
        except asyncio.CancelledError as exc:
            self._abandon_job(ctx)
            self._record_failure(client, run_id, started_at, ctx, exc, "run cancelled")
            logger.warning("Run %s cancelled for client %s", run_id, client.id)
            raise
        except Exception as exc:
            path = self._record_failure(client, run_id, started_at, ctx, exc, str(exc))
            logger.error("Run %s failed for client %s: %s", run_id, client.id, exc)
            raise RunFailedError(client.id, path, cause=exc) from exc

        record, _ = self._finish(client, run_id, started_at, ctx, "completed", None)
        self._metrics.append_metric(
            "run_completed",
            timestamp=record.finished_at,
            client_id=client.id,
            run_id=run_id,
            topic=ctx.topic,
            durationMs=record.duration_ms,
        )
        logger.info("Run %s completed for client %s in %d ms", run_id, client.id, record.duration_ms)
        return record

    async def _run_stages(
        self,
        client: ClientProfile,
        providers: Providers,
        ctx: _RunContext,
        run_id: str,
        day: date,
        privacy_override: Optional[PrivacyStatus],
    ) -> None:
        if not ctx.topic:
            ctx.topic = select_topic(client, day)
        logger.info("Writing script for client %s topic=%r", client.id, ctx.topic)
        draft = await providers.writer.write_script(client, ctx.topic)
        script, report = ensure_quality(draft)
        if not report.ok:
            logger.info("Script for client %s rewritten by quality gate: %s", client.id, "; ".join(report.issues))
        ctx.script = script

        logger.info("Synthesizing voice for client %s", client.id)
        ctx.audio = audio = await self._voice_retry.run(
            lambda: providers.voice.synthesize(client, script),
            sleep=self._sleep,
            label=f"voice synthesis for {client.id}",
        )

        logger.info("Submitting render job for client %s", client.id)
        submitted = await self._render_retry.run(
            lambda: providers.renderer.render(client, audio, script),
            sleep=self._sleep,
            label=f"render submit for {client.id}",
        )
        ctx.job = self._jobs.save(submitted)
        ctx.job = await self._poll(client, providers.renderer, ctx, submitted.id)

        logger.info("Downloading rendered video job=%s", ctx.job.id)
        ctx.video = video = await providers.renderer.download(client, ctx.job.id)

        self._metrics.append_metric(
            "upload_attempted",
            timestamp=self._clock(),
            client_id=client.id,
            run_id=run_id,
            topic=ctx.topic,
        )
        options = UploadOptions(
            privacy_status=privacy_override or client.publishing.default_privacy_status,
            made_for_kids=client.publishing.made_for_kids,
        )
        limit = client.limits.max_uploads_per_day

        async def upload() -> UploadResult:
            if limit is not None:
                self._quota.ensure_available(client.id, day, limit)
            return await providers.uploader.upload_short(client, video, script, options)

        logger.info("Uploading short for client %s privacy=%s", client.id, options.privacy_status)
        ctx.upload = await self._upload_retry.run(
            upload,
            should_retry=lambda exc: not is_quota_exceeded(exc),
            sleep=self._sleep,
            label=f"upload for {client.id}",
        )
        self._quota.increment_daily_count(client.id, day)

    async def _poll(self, client: ClientProfile, renderer: AvatarRenderer, ctx: _RunContext, job_id: str) -> RenderJob:
        started = self._clock()
        while True:
            ctx.job = job = self._jobs.update(await renderer.get_status(client, job_id))
            if job.status == "completed":
                return job
            if job.status == "failed":
                raise RenderFailedError(job.id, job.error)
            if (self._clock() - started).total_seconds() >= self._poll_timeout_s:
                raise RenderTimeoutError(job_id, self._poll_timeout_s)
            await self._sleep(self._poll_interval_s)

    def _abandon_job(self, ctx: _RunContext) -> None:
        job = ctx.job
        if job is None or job.is_terminal:
            return
        ctx.job = self._jobs.update(
            job.model_copy(update={"status": "failed", "error": "run cancelled", "updated_at": self._clock()})
        )

    def _record_failure(
        self,
        client: ClientProfile,
        run_id: str,
        started_at: datetime,
        ctx: _RunContext,
        exc: BaseException,
        message: str,
    ) -> Path:
        record, path = self._finish(client, run_id, started_at, ctx, "failed", exc, message)
        self._metrics.append_metric(
            "run_failed",
            timestamp=record.finished_at,
            client_id=client.id,
            run_id=run_id,
            topic=ctx.topic,
            durationMs=record.duration_ms,
            error=message,
        )
        return path

    def _finish(
        self,
        client: ClientProfile,
        run_id: str,
        started_at: datetime,
        ctx: _RunContext,
        status: RunStatus,
        exc: Optional[BaseException],
        message: Optional[str] = None,
    ) -> tuple[RunRecord, Path]:
        finished_at = self._clock()
        error = None
        if exc is not None:
            error = RunError(
                message=message if message is not None else str(exc),
                stack="".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
            )
        record = RunRecord(
            run_id=run_id,
            client_id=client.id,
            topic=ctx.topic,
            status=status,
            started_at=started_at,
            finished_at=finished_at,
            timestamp=finished_at,
            duration_ms=max(0, int((finished_at - started_at).total_seconds() * 1000)),
            script=ctx.script,
            audio=ctx.audio,
            job=ctx.job,
            video=ctx.video,
            upload=ctx.upload,
            error=error,
        )
        path = self._runs.write_run_log(client.id, record)
        return record.model_copy(update={"run_log_path": str(path)}), path


__all__ = ["RunOrchestrator", "make_run_id", "VOICE_RETRY", "RENDER_RETRY", "UPLOAD_RETRY"]
