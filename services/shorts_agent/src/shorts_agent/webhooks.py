"""Webhook receiver for avatar render providers."""

from __future__ import annotations

import json
import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, status

from .config import HealthPayload, Settings, get_settings
from .storage.jobs import JobStore
from .storage.paths import webhooks_dir, write_json
from .version import __version__

logger = logging.getLogger(__name__)

WEBHOOK_PROVIDERS = frozenset({"heygen", "did"})
_JOB_ID_KEYS = ("job_id", "jobId", "video_id", "videoId", "id", "talk_id")
_NESTED_KEYS = ("data", "event_data")

router = APIRouter()


def extract_job_id(payload: Any) -> Optional[str]:
    """Find a job id at the top level or one level down under ``data``/``event_data``."""

    if not isinstance(payload, dict):
        return None
    for key in _JOB_ID_KEYS:
        value = payload.get(key)
        if isinstance(value, (str, int)) and str(value):
            return str(value)
    for nested in _NESTED_KEYS:
        found = extract_job_id(payload.get(nested))
        if found:
            return found
    return None


def save_webhook(data_dir: Path, provider: str, body: bytes) -> Path:
    """Persist the payload verbatim as ``webhooks/<provider>_<ms>.json``."""

    directory = webhooks_dir(data_dir)
    stamp = int(time.time() * 1000)
    path = directory / f"{provider}_{stamp}.json"
    suffix = 1
    while path.exists():
        path = directory / f"{provider}_{stamp}_{suffix}.json"
        suffix += 1
    tmp = path.with_name(f".{path.name}.tmp")
    tmp.write_bytes(body)
    tmp.replace(path)
    return path


def get_job_store(request: Request) -> JobStore:
    store = getattr(request.app.state, "job_store", None)
    if store is None:
        raise RuntimeError("JobStore is not initialised")
    return store


@router.get("/health", response_model=HealthPayload, tags=["system"])
async def read_health(settings: Settings = Depends(get_settings)) -> HealthPayload:
    return HealthPayload(status="ok", api_version=settings.api_version)


@router.post("/webhooks/{provider}", tags=["webhooks"])
async def receive_webhook(
    provider: str,
    request: Request,
    settings: Settings = Depends(get_settings),
) -> dict[str, bool]:
    if provider not in WEBHOOK_PROVIDERS:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown webhook provider: {provider}")

    body = await request.body()
    path = save_webhook(settings.data_dir, provider, body)
    logger.info("Stored %s webhook at %s (%d bytes)", provider, path, len(body))

    try:
        payload = json.loads(body) if body else None
    except ValueError:
        logger.warning("Webhook %s is not valid JSON; stored without job lookup", path)
        return {"ok": True}

    job_id = extract_job_id(payload)
    if job_id is None:
        logger.info("No job id found in %s webhook", provider)
        return {"ok": True}
    store = get_job_store(request)
    # runs happen in other processes; pick up jobs saved since the last webhook
    store.reload()
    job = store.get(job_id)
    if job is None:
        logger.info("Webhook %s refers to unknown job %s", provider, job_id)
    else:
        logger.info("Webhook %s job %s -> client %s (status %s)", provider, job_id, job.client_id, job.status)
    return {"ok": True}


@asynccontextmanager
async def _lifespan(app: FastAPI):
    settings = get_settings()
    app.state.job_store = JobStore(settings.data_dir)
    yield


def create_app() -> FastAPI:
    """Build the webhook FastAPI app with lifespan hooks."""

    settings = get_settings()
    app = FastAPI(
        title="Shorts Agent Webhooks",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=_lifespan,
    )
    app.include_router(router)
    logger.info("Webhook receiver initialised with API version %s", settings.api_version)
    return app


__all__ = ["WEBHOOK_PROVIDERS", "create_app", "extract_job_id", "router", "save_webhook"]
