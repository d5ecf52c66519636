"""Deterministic local providers used in development and tests."""

from __future__ import annotations

import json
import logging
import random
import re
import secrets
from datetime import datetime
from pathlib import Path
from typing import Callable
from uuid import uuid4

from ..clients import ClientProfile
from ..exceptions import JobNotFoundError, ProviderError
from ..models import AudioAsset, RenderJob, Script, UploadOptions, UploadResult, VideoAsset, utc_now
from ..storage.jobs import JobStore
from ..storage.paths import audio_dir, uploads_dir, video_dir
from ..topics import fnv1a_32

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

_STYLE = "YouTube Shorts tech explainer"
_PLACEHOLDER_MP3 = b"ID3\x04\x00\x00\x00\x00\x00\x00"
_PLACEHOLDER_MP4 = b"stub video placeholder"
_LANGUAGE_LABELS = {
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "pt": "Portuguese",
    "hi": "Hindi",
    "ja": "Japanese",
}


def _slugify(value: str, limit: int = 80) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")[:limit]


def _file_stamp(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%dT%H-%M-%S-%f")


class StubScriptWriter:
    """Template script seeded by the client id and topic."""

    async def write_script(self, client: ClientProfile, topic: str) -> Script:
        seed = fnv1a_32(f"{client.id}{topic}")
        niche = client.niche
        hooks = (
            f"Stop scrolling: here's {topic} explained in under a minute using a {_STYLE} vibe.",
            f"In the next 55 seconds, you'll finally understand {topic} like a pro creator.",
            f"If {topic} sounds confusing, this quick breakdown will make it click fast.",
            f"Let's decode {topic} with a fast, practical {_STYLE} format.",
        )
        bodies = (
            (
                f"{topic} matters because it directly shapes how modern apps feel and perform.",
                "Think of it as a shortcut that removes friction before users even notice it.",
                "Step one is identifying the core problem instead of chasing flashy tools.",
                "Step two is applying a simple rule you can repeat every single project.",
                "Step three is validating results with one metric that actually reflects user impact.",
                f"That sequence turns {topic} from theory into a practical habit.",
            ),
            (
                f"Most people overcomplicate {topic}, but the core idea is surprisingly simple.",
                "You start by mapping inputs, then outputs, then the bottleneck in between.",
                "Once that bottleneck is visible, the right fix becomes much easier to choose.",
                "A tiny improvement here can create a huge difference at scale.",
                "The real win is consistency, not perfection on day one.",
                f"Run this loop weekly and you'll build serious momentum with {topic}.",
            ),
            (
                f"{topic} is basically the bridge between good ideas and real-world execution.",
                "First, define success in one sentence so decisions stay focused.",
                "Then remove one unnecessary step from your current workflow.",
                "Next, automate one repetitive action to save time every day.",
                "Finally, review outcomes and keep only what clearly improves results.",
                f"That's how creators and teams level up {topic} quickly.",
            ),
        )
        ctas = (
            f"Follow for more {niche} explainers and drop your next topic in the comments.",
            f"Like and subscribe for daily {niche} Shorts that turn complex ideas into action.",
            f"Save this Short, share it with a friend, and follow for more {niche} breakdowns.",
        )
        language = _LANGUAGE_LABELS.get(client.language.split("-")[0].lower(), client.language)
        tags = [
            "shorts",
            "youtube shorts",
            "tech explainer",
            topic.lower(),
            _slugify(topic, limit=200),
            niche.lower(),
            client.tone,
            language.lower(),
            "content creator",
            "learn tech fast",
        ]
        return Script(
            topic=topic,
            niche=niche,
            language=client.language,
            tone=client.tone,
            hook=hooks[seed % len(hooks)],
            body=" ".join(bodies[(seed + 3) % len(bodies)]),
            cta=ctas[(seed + 7) % len(ctas)],
            title_suggestions=[
                f"{topic} in 55 Seconds ({niche} Edition)",
                f"The Fastest Way to Understand {topic}",
                f"{topic}: Quick {_STYLE} Guide",
            ],
            description=(
                f"{topic} explained in a {_STYLE} format for {niche} learners. "
                f"#Shorts {' '.join(_hashtags(niche))}"
            ),
            tags=list(dict.fromkeys(tag for tag in tags if tag))[:12],
            duration_sec_target=55,
        )


def _hashtags(niche: str) -> list[str]:
    words = re.sub(r"[^a-z0-9\s]", " ", niche.lower()).split()
    if not words:
        return ["#Tech"]
    merged = "#" + "".join(word.capitalize() for word in words)
    return [merged, *(f"#{word.capitalize()}" for word in words)][:3]


class StubVoiceSynth:
    """Writes a placeholder mp3 and a JSON sidecar with the narration."""

    def __init__(self, data_dir: Path, *, clock: Clock = utc_now) -> None:
        self._data_dir = Path(data_dir)
        self._clock = clock

    async def synthesize(self, client: ClientProfile, script: Script) -> AudioAsset:
        directory = audio_dir(self._data_dir, client.id)
        slug = _slugify(script.topic or script.hook or "script") or "script"
        audio_path = directory / f"audio_{_file_stamp(self._clock())}_{slug}.mp3"
        sidecar_path = audio_path.with_name(f"{audio_path.name}.json")

        audio_path.write_bytes(_PLACEHOLDER_MP3)
        sidecar = {
            "clientId": client.id,
            "voice": {"provider": client.voice.provider, "voiceId": client.voice.voice_id},
            "script": script.narration,
        }
        sidecar_path.write_text(json.dumps(sidecar, indent=2) + "\n", encoding="utf-8")
        return AudioAsset(
            path=str(audio_path),
            mime_type="audio/mpeg",
            meta={"stub": True, "sidecarPath": str(sidecar_path)},
        )


class StubAvatarRenderer:
    """Render jobs that finish ``completion_delay_s`` after submission.

    The outcome is decided at submission: with probability ``fail_rate`` the
    job ends ``failed`` instead of ``completed``. Job state is read back from
    the shared job store, where the orchestrator persists it.
    """

    def __init__(
        self,
        job_store: JobStore,
        data_dir: Path,
        *,
        completion_delay_s: float = 5.0,
        fail_rate: float = 0.0,
        clock: Clock = utc_now,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self._jobs = job_store
        self._data_dir = Path(data_dir)
        self._delay_s = completion_delay_s
        self._fail_rate = fail_rate
        self._clock = clock
        self._rng = rng

    async def render(self, client: ClientProfile, audio: AudioAsset, script: Script) -> RenderJob:
        now = self._clock()
        return RenderJob(
            id=uuid4().hex,
            client_id=client.id,
            provider="stub",
            status="processing",
            created_at=now,
            updated_at=now,
            meta={"audioPath": audio.path, "simulateFailure": self._rng() < self._fail_rate},
        )

    async def get_status(self, client: ClientProfile, job_id: str) -> RenderJob:
        job = self._owned_job(client.id, job_id)
        if job.is_terminal:
            return job
        now = self._clock()
        if (now - job.created_at).total_seconds() < self._delay_s:
            return job
        if job.meta.get("simulateFailure"):
            return job.model_copy(
                update={
                    "status": "failed",
                    "updated_at": now,
                    "error": f"Simulated render failure (fail rate {self._fail_rate:g})",
                }
            )
        return job.model_copy(update={"status": "completed", "updated_at": now})

    async def download(self, client: ClientProfile, job_id: str) -> VideoAsset:
        job = self._owned_job(client.id, job_id)
        path = video_dir(self._data_dir, client.id) / f"video_{job.id}.mp4"
        path.write_bytes(_PLACEHOLDER_MP4)
        return VideoAsset(path=str(path), mime_type="video/mp4", width=1080, height=1920, duration_sec=55)

    def _owned_job(self, client_id: str, job_id: str) -> RenderJob:
        job = self._jobs.get(job_id)
        if job is None or job.client_id != client_id:
            raise JobNotFoundError(f"Render job not found for client {client_id}: {job_id}")
        return job


class StubUploader:
    """Records the upload request under ``uploads/`` and returns a fake video id."""

    def __init__(
        self,
        data_dir: Path,
        *,
        fail_rate: float = 0.0,
        clock: Clock = utc_now,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self._data_dir = Path(data_dir)
        self._fail_rate = fail_rate
        self._clock = clock
        self._rng = rng

    async def upload_short(
        self,
        client: ClientProfile,
        video: VideoAsset,
        script: Script,
        options: UploadOptions,
    ) -> UploadResult:
        log_path = uploads_dir(self._data_dir, client.id) / f"uploaded_{_file_stamp(self._clock())}.json"
        payload = {
            "clientId": client.id,
            "title": script.title_suggestions[0] if script.title_suggestions else "Untitled Short",
            "description": script.description,
            "tags": script.tags,
            "videoPath": video.path,
            "opts": options.to_json_dict(),
        }
        log_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

        if self._rng() < self._fail_rate:
            raise ProviderError(
                f"Simulated uploader failure for client {client.id} at fail rate {self._fail_rate:g}",
                provider="stub",
            )

        video_id = f"stub_{secrets.token_hex(8)}"
        logger.info("Stub upload for client %s recorded at %s", client.id, log_path)
        return UploadResult(
            external_id=video_id,
            url=f"https://youtube.com/watch?v={video_id}",
            provider="stub",
            meta={"uploadLogPath": str(log_path)},
        )


__all__ = ["StubAvatarRenderer", "StubScriptWriter", "StubUploader", "StubVoiceSynth"]
