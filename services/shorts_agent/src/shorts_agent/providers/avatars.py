"""HeyGen and D-ID avatar renderers."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import httpx

from ..clients import ClientProfile
from ..exceptions import ProviderError
from ..models import AudioAsset, JobStatus, RenderJob, Script, VideoAsset, utc_now
from ..storage.jobs import JobStore
from ..storage.paths import video_dir
from .http import HttpProvider, require_key

logger = logging.getLogger(__name__)

HEYGEN_API_URL = "https://api.heygen.com"
HEYGEN_UPLOAD_URL = "https://upload.heygen.com"
DID_API_URL = "https://api.d-id.com"

_HEYGEN_STATUS: dict[str, JobStatus] = {
    "pending": "queued",
    "waiting": "queued",
    "processing": "processing",
    "completed": "completed",
    "failed": "failed",
}
_DID_STATUS: dict[str, JobStatus] = {
    "created": "queued",
    "started": "processing",
    "done": "completed",
    "error": "failed",
    "rejected": "failed",
}


class _AvatarRenderer(HttpProvider):
    """Common job bookkeeping: statuses are merged into the stored job."""

    def __init__(
        self,
        *,
        api_key: str | None,
        data_dir: Path,
        job_store: JobStore,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(client=client)
        self._api_key = api_key
        self._data_dir = Path(data_dir)
        self._jobs = job_store

    def _job_from_status(
        self,
        client: ClientProfile,
        job_id: str,
        status: JobStatus,
        *,
        error: Optional[str] = None,
        meta: Optional[dict[str, Any]] = None,
    ) -> RenderJob:
        now = utc_now()
        stored = self._jobs.get(job_id)
        if stored is not None and stored.client_id == client.id:
            if not stored.can_transition_to(status):
                return stored
            return stored.model_copy(
                update={
                    "status": status,
                    "updated_at": now,
                    "error": error,
                    "meta": {**stored.meta, **(meta or {})},
                }
            )
        return RenderJob(
            id=job_id,
            client_id=client.id,
            provider=self.name,
            status=status,
            created_at=now,
            updated_at=now,
            error=error,
            meta=meta or {},
        )

    async def _save_video(self, client: ClientProfile, job_id: str, url: str) -> VideoAsset:
        path = video_dir(self._data_dir, client.id) / f"video_{job_id}.mp4"
        size = await self._download_to(url, path)
        return VideoAsset(
            path=str(path),
            mime_type="video/mp4",
            width=1080,
            height=1920,
            meta={"provider": self.name, "sourceUrl": url, "bytes": size},
        )


class HeyGenAvatarRenderer(_AvatarRenderer):
    name = "heygen"

    def _headers(self) -> dict[str, str]:
        return {"X-Api-Key": require_key(self._api_key, "HEYGEN_API_KEY", self.name)}

    async def _audio_url(self, audio: AudioAsset) -> str:
        if audio.meta.get("url"):
            return str(audio.meta["url"])
        response = await self._request(
            "POST",
            f"{HEYGEN_UPLOAD_URL}/v1/asset",
            headers={**self._headers(), "Content-Type": audio.mime_type},
            content=Path(audio.path).read_bytes(),
        )
        return response.json()["data"]["url"]

    async def render(self, client: ClientProfile, audio: AudioAsset, script: Script) -> RenderJob:
        audio_url = await self._audio_url(audio)
        body = {
            "title": script.title_suggestions[0] if script.title_suggestions else script.topic,
            "video_inputs": [
                {
                    "character": {
                        "type": "avatar",
                        "avatar_id": client.avatar.avatar_id,
                        "avatar_style": "normal",
                    },
                    "voice": {"type": "audio", "audio_url": audio_url},
                }
            ],
            "dimension": {"width": 1080, "height": 1920},
        }
        response = await self._request("POST", f"{HEYGEN_API_URL}/v2/video/generate", headers=self._headers(), json=body)
        video_id = response.json().get("data", {}).get("video_id")
        if not video_id:
            raise ProviderError(f"HeyGen did not return a video id: {response.text[:200]}", provider=self.name)
        logger.info("HeyGen render submitted client=%s video_id=%s", client.id, video_id)
        now = utc_now()
        return RenderJob(
            id=video_id,
            client_id=client.id,
            provider=self.name,
            status="queued",
            created_at=now,
            updated_at=now,
            meta={"audioUrl": audio_url},
        )

    async def _status_payload(self, job_id: str) -> dict[str, Any]:
        response = await self._request(
            "GET",
            f"{HEYGEN_API_URL}/v1/video_status.get",
            params={"video_id": job_id},
            headers=self._headers(),
        )
        return response.json().get("data", {})

    async def get_status(self, client: ClientProfile, job_id: str) -> RenderJob:
        data = await self._status_payload(job_id)
        status = _HEYGEN_STATUS.get(str(data.get("status", "")).lower(), "processing")
        error = data.get("error")
        if isinstance(error, dict):
            error = error.get("message") or error.get("detail") or str(error)
        meta = {"videoUrl": data["video_url"]} if data.get("video_url") else None
        return self._job_from_status(client, job_id, status, error=error, meta=meta)

    async def download(self, client: ClientProfile, job_id: str) -> VideoAsset:
        data = await self._status_payload(job_id)
        url = data.get("video_url")
        if not url:
            raise ProviderError(f"HeyGen video {job_id} has no download url yet", provider=self.name)
        return await self._save_video(client, job_id, url)


class DIDAvatarRenderer(_AvatarRenderer):
    name = "did"

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Basic {require_key(self._api_key, 'DID_API_KEY', self.name)}"}

    async def _audio_url(self, audio: AudioAsset) -> str:
        if audio.meta.get("url"):
            return str(audio.meta["url"])
        path = Path(audio.path)
        response = await self._request(
            "POST",
            f"{DID_API_URL}/audios",
            headers=self._headers(),
            files={"audio": (path.name, path.read_bytes(), audio.mime_type)},
        )
        return response.json()["url"]

    async def render(self, client: ClientProfile, audio: AudioAsset, script: Script) -> RenderJob:
        if not client.avatar.image_url:
            raise ProviderError(f"Client {client.id} has no avatar image_url for D-ID", provider=self.name)
        audio_url = await self._audio_url(audio)
        body = {
            "source_url": client.avatar.image_url,
            "script": {"type": "audio", "audio_url": audio_url},
            "config": {"result_format": "mp4"},
        }
        response = await self._request("POST", f"{DID_API_URL}/talks", headers=self._headers(), json=body)
        payload = response.json()
        talk_id = payload.get("id")
        if not talk_id:
            raise ProviderError(f"D-ID did not return a talk id: {response.text[:200]}", provider=self.name)
        logger.info("D-ID talk submitted client=%s talk_id=%s", client.id, talk_id)
        now = utc_now()
        return RenderJob(
            id=talk_id,
            client_id=client.id,
            provider=self.name,
            status=_DID_STATUS.get(str(payload.get("status", "created")), "queued"),
            created_at=now,
            updated_at=now,
            meta={"audioUrl": audio_url},
        )

    async def _talk(self, job_id: str) -> dict[str, Any]:
        response = await self._request("GET", f"{DID_API_URL}/talks/{job_id}", headers=self._headers())
        return response.json()

    async def get_status(self, client: ClientProfile, job_id: str) -> RenderJob:
        talk = await self._talk(job_id)
        status = _DID_STATUS.get(str(talk.get("status", "")).lower(), "processing")
        error = talk.get("error")
        if isinstance(error, dict):
            error = error.get("description") or error.get("kind") or str(error)
        meta = {"resultUrl": talk["result_url"]} if talk.get("result_url") else None
        return self._job_from_status(client, job_id, status, error=error, meta=meta)

    async def download(self, client: ClientProfile, job_id: str) -> VideoAsset:
        talk = await self._talk(job_id)
        url = talk.get("result_url")
        if not url:
            raise ProviderError(f"D-ID talk {job_id} has no result url yet", provider=self.name)
        return await self._save_video(client, job_id, url)


__all__ = ["DIDAvatarRenderer", "HeyGenAvatarRenderer"]
