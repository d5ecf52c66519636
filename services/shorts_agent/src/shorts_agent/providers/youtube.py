"""YouTube Data API uploader (OAuth refresh token + resumable upload)."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import httpx

from ..clients import ClientProfile
from ..exceptions import ProviderError, QuotaExceededError
from ..models import Script, UploadOptions, UploadResult, VideoAsset, utc_now
from .http import HttpProvider, require_key

logger = logging.getLogger(__name__)

TOKEN_URL = "https://oauth2.googleapis.com/token"
UPLOAD_URL = "https://www.googleapis.com/upload/youtube/v3/videos"
_QUOTA_REASONS = {"quotaExceeded", "uploadLimitExceeded", "dailyLimitExceeded"}
_SHORTS_CATEGORY = "27"


def _error_reasons(response: httpx.Response) -> set[str]:
    try:
        payload = response.json()
    except ValueError:
        return set()
    errors = payload.get("error", {}).get("errors", []) if isinstance(payload, dict) else []
    return {str(item.get("reason")) for item in errors if isinstance(item, dict)}


class YouTubeUploader(HttpProvider):
    name = "youtube"

    def __init__(
        self,
        *,
        client_id: str | None,
        client_secret: str | None,
        refresh_token: str | None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(client=client, timeout=300.0)
        self._client_id = client_id
        self._client_secret = client_secret
        self._refresh_token = refresh_token

    def _check_upload(self, client: ClientProfile, response: httpx.Response) -> None:
        if response.status_code == 403 and _error_reasons(response) & _QUOTA_REASONS:
            raise QuotaExceededError(client.id, utc_now().date().isoformat())
        self._raise_for_status(response)

    async def _access_token(self) -> str:
        data = {
            "client_id": require_key(self._client_id, "YOUTUBE_CLIENT_ID", self.name),
            "client_secret": require_key(self._client_secret, "YOUTUBE_CLIENT_SECRET", self.name),
            "refresh_token": require_key(self._refresh_token, "YOUTUBE_REFRESH_TOKEN", self.name),
            "grant_type": "refresh_token",
        }
        response = await self._request("POST", TOKEN_URL, data=data)
        token = response.json().get("access_token")
        if not token:
            raise ProviderError("OAuth token response has no access_token", provider=self.name)
        return token

    @staticmethod
    def _metadata(script: Script, options: UploadOptions) -> dict[str, Any]:
        status: dict[str, Any] = {
            "privacyStatus": options.privacy_status,
            "selfDeclaredMadeForKids": options.made_for_kids,
        }
        if options.publish_at is not None:
            # scheduled publishing requires a private video
            status["privacyStatus"] = "private"
            status["publishAt"] = options.publish_at.isoformat()
        title = script.title_suggestions[0] if script.title_suggestions else script.topic
        return {
            "snippet": {
                "title": title[:100],
                "description": script.description,
                "tags": script.tags,
                "categoryId": _SHORTS_CATEGORY,
                "defaultLanguage": script.language,
            },
            "status": status,
        }

    async def upload_short(
        self,
        client: ClientProfile,
        video: VideoAsset,
        script: Script,
        options: UploadOptions,
    ) -> UploadResult:
        token = await self._access_token()
        content = Path(video.path).read_bytes()
        auth = {"Authorization": f"Bearer {token}"}

        session = await self._request(
            "POST",
            UPLOAD_URL,
            check=False,
            params={"uploadType": "resumable", "part": "snippet,status"},
            headers={
                **auth,
                "X-Upload-Content-Type": video.mime_type,
                "X-Upload-Content-Length": str(len(content)),
            },
            json=self._metadata(script, options),
        )
        self._check_upload(client, session)
        location = session.headers.get("location")
        if not location:
            raise ProviderError("Resumable upload session has no Location header", provider=self.name)

        response = await self._request(
            "PUT",
            location,
            check=False,
            headers={**auth, "Content-Type": video.mime_type},
            content=content,
        )
        self._check_upload(client, response)
        video_id = response.json().get("id")
        if not video_id:
            raise ProviderError("YouTube upload response has no video id", provider=self.name)

        logger.info("Uploaded short for client %s channel=%s video=%s", client.id, client.youtube.channel_id, video_id)
        return UploadResult(
            external_id=video_id,
            url=f"https://youtube.com/shorts/{video_id}",
            provider=self.name,
            meta={"channelId": client.youtube.channel_id, "privacyStatus": options.privacy_status},
        )


__all__ = ["YouTubeUploader"]
