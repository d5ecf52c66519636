"""Per-client provider selection."""

from __future__ import annotations

import logging
from typing import Callable

from ..clients import ClientProfile
from ..config import Settings
from ..storage.jobs import JobStore
from .avatars import DIDAvatarRenderer, HeyGenAvatarRenderer
from .base import AvatarRenderer, Providers
from .elevenlabs import ElevenLabsVoiceSynth
from .openai_writer import OpenAIScriptWriter
from .stub import StubAvatarRenderer, StubScriptWriter, StubUploader, StubVoiceSynth
from .youtube import YouTubeUploader

logger = logging.getLogger(__name__)

ProviderResolver = Callable[[ClientProfile], Providers]


def uses_stub(settings: Settings, provider: str) -> bool:
    return settings.use_stubs or provider == "stub"


class ProviderRegistry:
    """Maps each client to stub or live providers and owns the live ones.

    Provider instances are shared between clients; live ones are created on
    first use so that a stub-only setup never needs API keys. ``aclose``
    releases the HTTP clients of every live provider created so far.
    """

    def __init__(self, settings: Settings, job_store: JobStore) -> None:
        self._settings = settings
        self._job_store = job_store
        data_dir = settings.data_dir
        self._stubs = Providers(
            writer=StubScriptWriter(),
            voice=StubVoiceSynth(data_dir),
            renderer=StubAvatarRenderer(
                job_store,
                data_dir,
                completion_delay_s=settings.stub_render_ms / 1000,
                fail_rate=settings.stub_fail_rate,
            ),
            uploader=StubUploader(data_dir, fail_rate=settings.stub_fail_rate),
        )
        self._live: dict[str, object] = {}

    @property
    def live_providers(self) -> dict[str, object]:
        return dict(self._live)

    def __call__(self, client: ClientProfile) -> Providers:
        settings = self._settings
        stubs = self._stubs
        writer = stubs.writer if settings.use_stubs else self._get("openai", self._openai)
        voice = stubs.voice if uses_stub(settings, client.voice.provider) else self._get("elevenlabs", self._elevenlabs)
        renderer = stubs.renderer if uses_stub(settings, client.avatar.provider) else self._renderer(client.avatar.provider)
        uploader = stubs.uploader if uses_stub(settings, client.youtube.provider) else self._get("youtube", self._youtube)
        return Providers(writer=writer, voice=voice, renderer=renderer, uploader=uploader)  # type: ignore[arg-type]

    async def aclose(self) -> None:
        while self._live:
            key, provider = self._live.popitem()
            logger.debug("Closing live %s provider", key)
            await provider.aclose()  # type: ignore[attr-defined]

    def _get(self, key: str, factory: Callable[[], object]) -> object:
        if key not in self._live:
            logger.info("Creating live %s provider", key)
            self._live[key] = factory()
        return self._live[key]

    def _renderer(self, provider: str) -> AvatarRenderer:
        if provider == "did":
            return self._get("did", self._did)  # type: ignore[return-value]
        return self._get("heygen", self._heygen)  # type: ignore[return-value]

    def _openai(self) -> OpenAIScriptWriter:
        return OpenAIScriptWriter(model=self._settings.openai_model, api_key=self._settings.openai_api_key)

    def _elevenlabs(self) -> ElevenLabsVoiceSynth:
        return ElevenLabsVoiceSynth(api_key=self._settings.elevenlabs_api_key, data_dir=self._settings.data_dir)

    def _did(self) -> DIDAvatarRenderer:
        return DIDAvatarRenderer(
            api_key=self._settings.did_api_key, data_dir=self._settings.data_dir, job_store=self._job_store
        )

    def _heygen(self) -> HeyGenAvatarRenderer:
        return HeyGenAvatarRenderer(
            api_key=self._settings.heygen_api_key, data_dir=self._settings.data_dir, job_store=self._job_store
        )

    def _youtube(self) -> YouTubeUploader:
        return YouTubeUploader(
            client_id=self._settings.youtube_client_id,
            client_secret=self._settings.youtube_client_secret,
            refresh_token=self._settings.youtube_refresh_token,
        )


def build_provider_resolver(settings: Settings, job_store: JobStore) -> ProviderRegistry:
    return ProviderRegistry(settings, job_store)


__all__ = ["ProviderRegistry", "ProviderResolver", "build_provider_resolver", "uses_stub"]
