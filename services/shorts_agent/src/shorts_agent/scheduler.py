"""Cron-driven scheduler running each client's daily short."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Callable, Literal, Optional
from zoneinfo import ZoneInfo

from croniter import croniter

from .clients import ClientProfile
from .models import RunRecord, utc_now
from .orchestrator import RunOrchestrator
from .providers.factory import ProviderResolver
from .retry import Sleep

logger = logging.getLogger(__name__)

Outcome = Literal["completed", "failed", "skipped_locked", "skipped_quota"]


def next_fire_time(expression: str, tz: str, now: datetime) -> datetime:
    """Next time ``expression`` fires after ``now``, evaluated in ``tz``."""

    local_now = now.astimezone(ZoneInfo(tz))
    return croniter(expression, local_now).get_next(datetime)


class ClientScheduler:
    """One asyncio task per client plus a manual ``run_all_now``.

    A per-client in-memory lock keeps runs of the same client from
    overlapping; a firing that finds the lock held is skipped, not queued.
    """

    def __init__(
        self,
        clients: list[ClientProfile],
        orchestrator: RunOrchestrator,
        resolve_providers: ProviderResolver,
        *,
        clock: Callable[[], datetime] = utc_now,
        sleep: Optional[Sleep] = None,
    ) -> None:
        self._clients = list(clients)
        self._orchestrator = orchestrator
        self._resolve = resolve_providers
        self._clock = clock
        self._sleep = sleep or asyncio.sleep
        self._running: set[str] = set()
        self._tasks: list[asyncio.Task[None]] = []
        self._runs: set[asyncio.Task[Outcome]] = set()

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    def is_locked(self, client_id: str) -> bool:
        return client_id in self._running

    async def start(self) -> None:
        """Validate every cron expression, then start one loop per client."""

        if self._tasks:
            return
        now = self._clock()
        for client in self._clients:
            try:
                next_fire_time(client.schedule.run_daily_at, client.schedule.timezone, now)
            except (ValueError, KeyError) as exc:
                raise ValueError(
                    f"Invalid schedule for client {client.id}: {client.schedule.run_daily_at!r} "
                    f"in {client.schedule.timezone}: {exc}"
                ) from exc
        for client in self._clients:
            task = asyncio.create_task(self._client_loop(client), name=f"schedule-{client.id}")
            self._tasks.append(task)
        logger.info("Scheduler started for %d clients", len(self._tasks))

    async def stop(self) -> None:
        """Cancel the cron loops, then wait for runs already in flight."""

        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks.clear()
        if self._runs:
            logger.info("Waiting for %d in-flight runs to finish", len(self._runs))
            await asyncio.gather(*self._runs, return_exceptions=True)
        self._runs.clear()
        logger.info("Scheduler stopped")

    async def run_client(self, client: ClientProfile) -> Outcome:
        """Run ``client`` once under the lock; failures are logged, never raised."""

        if client.id in self._running:
            logger.info("Skipping client %s: a run is already in progress", client.id)
            self._orchestrator.metrics_store.append_metric("scheduler_skipped_locked", client_id=client.id)
            return "skipped_locked"
        if client.schedule.max_per_day <= 0:
            logger.info("Skipping client %s: max_per_day is %d", client.id, client.schedule.max_per_day)
            self._orchestrator.metrics_store.append_metric(
                "scheduler_skipped_quota",
                client_id=client.id,
                maxPerDay=client.schedule.max_per_day,
            )
            return "skipped_quota"

        self._running.add(client.id)
        outcome: Outcome = "failed"
        record: Optional[RunRecord] = None
        try:
            logger.info("Scheduler start client=%s", client.id)
            record = await self._orchestrator.run_once(client, self._resolve(client))
            outcome = "completed"
        except Exception:
            logger.exception("Scheduled run failed for client %s", client.id)
        finally:
            self._running.discard(client.id)

        self._orchestrator.metrics_store.append_metric(
            "scheduler_run_finished",
            client_id=client.id,
            run_id=record.run_id if record else None,
            outcome=outcome,
        )
        logger.info("Scheduler end client=%s outcome=%s", client.id, outcome)
        return outcome

    async def run_all_now(self) -> dict[str, Outcome]:
        outcomes: dict[str, Outcome] = {}
        for client in self._clients:
            outcomes[client.id] = await self.run_client(client)
        return outcomes

    async def _client_loop(self, client: ClientProfile) -> None:
        schedule = client.schedule
        last_fire: Optional[datetime] = None
        try:
            while True:
                now = max(self._clock(), last_fire) if last_fire else self._clock()
                fire_at = next_fire_time(schedule.run_daily_at, schedule.timezone, now)
                delay = max(0.0, (fire_at - self._clock()).total_seconds())
                logger.debug("Client %s next run at %s (in %.0fs)", client.id, fire_at.isoformat(), delay)
                await self._sleep(delay)
                last_fire = fire_at
                # a firing while the previous run is still going is skipped by run_client
                task = asyncio.create_task(self.run_client(client), name=f"run-{client.id}")
                self._runs.add(task)
                task.add_done_callback(self._runs.discard)
        except asyncio.CancelledError:
            logger.debug("Schedule loop for client %s cancelled", client.id)
            raise


__all__ = ["ClientScheduler", "Outcome", "next_fire_time"]
