"""Provider contracts consumed by the run orchestrator."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from ..clients import ClientProfile
from ..models import AudioAsset, RenderJob, Script, UploadOptions, UploadResult, VideoAsset


@runtime_checkable
class ScriptWriter(Protocol):
    async def write_script(self, client: ClientProfile, topic: str) -> Script:
        """Produce a narration script for ``topic``."""


@runtime_checkable
class VoiceSynth(Protocol):
    async def synthesize(self, client: ClientProfile, script: Script) -> AudioAsset:
        """Render the narration to an audio file."""


@runtime_checkable
class AvatarRenderer(Protocol):
    async def render(self, client: ClientProfile, audio: AudioAsset, script: Script) -> RenderJob:
        """Submit a render job and return it in its initial state."""

    async def get_status(self, client: ClientProfile, job_id: str) -> RenderJob:
        """Fetch the current state of ``job_id``."""

    async def download(self, client: ClientProfile, job_id: str) -> VideoAsset:
        """Store the finished video locally."""


@runtime_checkable
class Uploader(Protocol):
    async def upload_short(
        self,
        client: ClientProfile,
        video: VideoAsset,
        script: Script,
        options: UploadOptions,
    ) -> UploadResult:
        """Publish ``video`` and return the external id."""


@dataclass(frozen=True)
class Providers:
    writer: ScriptWriter
    voice: VoiceSynth
    renderer: AvatarRenderer
    uploader: Uploader


__all__ = ["AvatarRenderer", "Providers", "ScriptWriter", "Uploader", "VoiceSynth"]
