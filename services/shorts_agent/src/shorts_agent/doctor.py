"""Configuration checks run by ``shorts-agent doctor``."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field

from .clients import ClientProfile, ensure_clients_file, load_clients
from .config import Settings
from .exceptions import ClientConfigError

logger = logging.getLogger(__name__)


class DoctorClient(BaseModel):
    id: str
    providers: dict[str, str]


class DoctorCheck(BaseModel):
    label: str
    status: Literal["set", "not set"]


class DoctorResult(BaseModel):
    ok: bool
    mode: Literal["stubs", "live"]
    clients: list[DoctorClient] = Field(default_factory=list)
    checks: list[DoctorCheck] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


def _is_set(value: Optional[str]) -> bool:
    return bool(value and value.strip())


def _check(result: DoctorResult, name: str, value: Optional[str], reason: str) -> None:
    present = _is_set(value)
    result.checks.append(DoctorCheck(label=name, status="set" if present else "not set"))
    if not present:
        result.errors.append(f"{name} is not set ({reason}).")


def run_doctor(settings: Settings, clients_file: Path, client_id: Optional[str] = None) -> DoctorResult:
    mode: Literal["stubs", "live"] = "stubs" if settings.use_stubs else "live"
    ensure_clients_file(clients_file)
    try:
        clients = load_clients(clients_file)
    except ClientConfigError as exc:
        return DoctorResult(ok=False, mode=mode, errors=[f"clients file validation failed: {exc}"])

    selected: list[ClientProfile] = [c for c in clients if client_id is None or c.id == client_id]
    if client_id is not None and not selected:
        return DoctorResult(ok=False, mode=mode, errors=[f"Client not found: {client_id}"])

    result = DoctorResult(
        ok=True,
        mode=mode,
        clients=[
            DoctorClient(
                id=client.id,
                providers={
                    "voice": client.voice.provider,
                    "avatar": client.avatar.provider,
                    "youtube": client.youtube.provider,
                },
            )
            for client in selected
        ],
    )
    if settings.use_stubs:
        return result

    voice = {client.voice.provider for client in selected}
    avatar = {client.avatar.provider for client in selected}
    youtube = {client.youtube.provider for client in selected}

    if selected:
        _check(result, "OPENAI_API_KEY", settings.openai_api_key, "required by the live script writer")
    if "elevenlabs" in voice:
        _check(result, "ELEVENLABS_API_KEY", settings.elevenlabs_api_key, "required by clients using voice.provider=elevenlabs")
    if "heygen" in avatar:
        _check(result, "HEYGEN_API_KEY", settings.heygen_api_key, "required by clients using avatar.provider=heygen")
    if "did" in avatar:
        _check(result, "DID_API_KEY", settings.did_api_key, "required by clients using avatar.provider=did")
    if youtube - {"stub"}:
        reason = "required by clients using youtube.provider!=stub"
        _check(result, "YOUTUBE_CLIENT_ID", settings.youtube_client_id, reason)
        _check(result, "YOUTUBE_CLIENT_SECRET", settings.youtube_client_secret, reason)
        _check(result, "YOUTUBE_REDIRECT_URI", settings.youtube_redirect_uri, reason)
        _check(result, "YOUTUBE_REFRESH_TOKEN", settings.youtube_refresh_token, reason)

    for client in selected:
        if client.avatar.provider == "did" and not _is_set(client.avatar.image_url):
            result.errors.append(f"Client {client.id}: set avatar.imageUrl for did.")
        if client.voice.provider not in {"stub", "elevenlabs"}:
            result.errors.append(f"Client {client.id}: unsupported voice provider {client.voice.provider}.")
        if client.avatar.provider not in {"stub", "heygen", "did"}:
            result.errors.append(f"Client {client.id}: unsupported avatar provider {client.avatar.provider}.")

    result.ok = not result.errors
    logger.debug("Doctor finished ok=%s errors=%d", result.ok, len(result.errors))
    return result


__all__ = ["DoctorCheck", "DoctorClient", "DoctorResult", "run_doctor"]
