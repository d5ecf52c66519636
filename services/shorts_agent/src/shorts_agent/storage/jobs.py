"""Durable render-job table with a per-client index."""

from __future__ import annotations

import json
import logging
import threading
from collections import defaultdict
from pathlib import Path

from ..exceptions import DuplicateJobError, JobNotFoundError, JobTransitionError
from ..models import RenderJob
from .paths import jobs_file, write_json

logger = logging.getLogger(__name__)


class JobStore:
    """Render jobs keyed by id, hydrated lazily from ``jobs.json``.

    One instance is created per process and handed to every consumer. The
    whole table is rewritten after each mutation.
    """

    def __init__(self, data_dir: Path) -> None:
        self._path = jobs_file(Path(data_dir))
        self._jobs: dict[str, RenderJob] = {}
        self._by_client: dict[str, set[str]] = defaultdict(set)
        self._loaded = False
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def save(self, job: RenderJob) -> RenderJob:
        with self._lock:
            self._ensure_loaded_locked()
            if job.id in self._jobs:
                raise DuplicateJobError(f"Render job already exists: {job.id}")
            self._jobs[job.id] = job
            self._by_client[job.client_id].add(job.id)
            self._persist_locked()
        logger.debug("Saved render job %s for client %s status=%s", job.id, job.client_id, job.status)
        return job

    def update(self, job: RenderJob) -> RenderJob:
        with self._lock:
            self._ensure_loaded_locked()
            existing = self._jobs.get(job.id)
            if existing is None:
                raise JobNotFoundError(f"Render job not found: {job.id}")
            if existing.client_id != job.client_id:
                raise JobTransitionError(
                    f"Render job {job.id} belongs to client {existing.client_id}, not {job.client_id}"
                )
            if not existing.can_transition_to(job.status):
                raise JobTransitionError(
                    f"Render job {job.id} cannot move from {existing.status} to {job.status}"
                )
            if existing.is_terminal:
                return existing
            stored = job.model_copy(update={"created_at": existing.created_at})
            self._jobs[job.id] = stored
            self._persist_locked()
        logger.debug("Updated render job %s status=%s", stored.id, stored.status)
        return stored

    def reload(self) -> None:
        """Forget the cached table; the next access re-reads ``jobs.json``."""

        with self._lock:
            self._jobs.clear()
            self._by_client.clear()
            self._loaded = False

    def get(self, job_id: str) -> RenderJob | None:
        with self._lock:
            self._ensure_loaded_locked()
            return self._jobs.get(job_id)

    def list_recent(self, limit: int, client_id: str | None = None) -> list[RenderJob]:
        with self._lock:
            self._ensure_loaded_locked()
            if client_id is None:
                jobs = list(self._jobs.values())
            else:
                jobs = [self._jobs[job_id] for job_id in self._by_client.get(client_id, ())]
        jobs.sort(key=lambda job: job.updated_at, reverse=True)
        return jobs[: max(0, limit)]

    def _ensure_loaded_locked(self) -> None:
        if self._loaded:
            return
        if self._path.exists():
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            if not isinstance(raw, dict):
                raise ValueError(f"Job table must be a mapping: {self._path}")
            for job_id, payload in raw.items():
                job = RenderJob.model_validate(payload)
                self._jobs[job_id] = job
                self._by_client[job.client_id].add(job_id)
            logger.debug("Loaded %d render jobs from %s", len(self._jobs), self._path)
        self._loaded = True

    def _persist_locked(self) -> None:
        write_json(self._path, {job_id: job.to_json_dict() for job_id, job in self._jobs.items()})


__all__ = ["JobStore"]
