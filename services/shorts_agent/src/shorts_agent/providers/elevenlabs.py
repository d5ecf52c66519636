"""ElevenLabs text-to-speech."""

from __future__ import annotations

import logging
from pathlib import Path

import httpx

from ..clients import ClientProfile
from ..models import AudioAsset, Script, utc_now
from ..storage.paths import audio_dir
from .http import HttpProvider, require_key

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.elevenlabs.io"
DEFAULT_MODEL = "eleven_multilingual_v2"
OUTPUT_FORMAT = "mp3_44100_128"


class ElevenLabsVoiceSynth(HttpProvider):
    name = "elevenlabs"

    def __init__(
        self,
        *,
        api_key: str | None,
        data_dir: Path,
        model_id: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(client=client)
        self._api_key = api_key
        self._data_dir = Path(data_dir)
        self._model_id = model_id
        self._base_url = base_url.rstrip("/")

    async def synthesize(self, client: ClientProfile, script: Script) -> AudioAsset:
        api_key = require_key(self._api_key, "ELEVENLABS_API_KEY", self.name)
        voice_id = client.voice.voice_id
        logger.info("ElevenLabs synthesize client=%s voice=%s chars=%d", client.id, voice_id, len(script.narration))
        response = await self._request(
            "POST",
            f"{self._base_url}/v1/text-to-speech/{voice_id}",
            params={"output_format": OUTPUT_FORMAT},
            headers={"xi-api-key": api_key, "accept": "audio/mpeg"},
            json={"text": script.narration, "model_id": self._model_id},
        )
        stamp = utc_now().strftime("%Y-%m-%dT%H-%M-%S-%f")
        path = audio_dir(self._data_dir, client.id) / f"audio_{stamp}_{voice_id}.mp3"
        path.write_bytes(response.content)
        return AudioAsset(
            path=str(path),
            mime_type="audio/mpeg",
            meta={"provider": self.name, "voiceId": voice_id, "modelId": self._model_id},
        )


__all__ = ["ElevenLabsVoiceSynth"]
