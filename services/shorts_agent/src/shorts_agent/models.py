"""Data models shared by the pipeline, providers and stores."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

ScriptTone = Literal["educational", "casual", "professional"]
PrivacyStatus = Literal["public", "unlisted", "private"]
JobStatus = Literal["queued", "processing", "completed", "failed"]
RunStatus = Literal["completed", "failed"]

TERMINAL_JOB_STATUSES: frozenset[str] = frozenset({"completed", "failed"})
_STATUS_RANK: dict[str, int] = {"queued": 0, "processing": 1, "completed": 2, "failed": 2}


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize with camelCase keys, dropping unset optionals."""

        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Script(_Record):
    """Narration script for a single short."""

    topic: str
    niche: str
    language: str
    tone: ScriptTone
    hook: str
    body: str
    cta: str
    title_suggestions: list[str] = Field(default_factory=list, alias="titleSuggestions")
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    duration_sec_target: int = Field(..., ge=0, alias="durationSecTarget")

    @property
    def narration(self) -> str:
        return "\n\n".join(part for part in (self.hook, self.body, self.cta) if part)


class AudioAsset(_Record):
    path: str
    mime_type: str = Field(..., alias="mimeType")
    duration_sec: float | None = Field(default=None, alias="durationSec")
    meta: dict[str, Any] = Field(default_factory=dict)


class VideoAsset(_Record):
    path: str
    mime_type: str = Field(..., alias="mimeType")
    width: int | None = None
    height: int | None = None
    duration_sec: float | None = Field(default=None, alias="durationSec")
    meta: dict[str, Any] = Field(default_factory=dict)


class RenderJob(_Record):
    """Asynchronous render job tracked by the job store."""

    id: str
    client_id: str = Field(..., alias="clientId")
    provider: str
    status: JobStatus
    created_at: datetime = Field(default_factory=utc_now, alias="createdAt")
    updated_at: datetime = Field(default_factory=utc_now, alias="updatedAt")
    error: str | None = None
    meta: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_JOB_STATUSES

    def can_transition_to(self, status: str) -> bool:
        """Status only moves forward; terminal states accept no change."""

        if self.is_terminal:
            return status == self.status
        return _STATUS_RANK[status] >= _STATUS_RANK[self.status]


class UploadOptions(_Record):
    privacy_status: PrivacyStatus = Field("private", alias="privacyStatus")
    publish_at: datetime | None = Field(default=None, alias="publishAt")
    made_for_kids: bool = Field(False, alias="madeForKids")


class UploadResult(_Record):
    external_id: str = Field(..., alias="youtubeVideoId")
    url: str
    provider: str
    meta: dict[str, Any] = Field(default_factory=dict)


class RunError(_Record):
    message: str
    stack: str | None = None


class RunRecord(_Record):
    """Immutable record of one orchestrator invocation."""

    run_id: str = Field(..., alias="runId")
    client_id: str = Field(..., alias="clientId")
    topic: str
    status: RunStatus
    started_at: datetime = Field(..., alias="startedAt")
    finished_at: datetime = Field(..., alias="finishedAt")
    timestamp: datetime
    duration_ms: int = Field(..., ge=0, alias="durationMs")
    script: Script | None = None
    audio: AudioAsset | None = None
    job: RenderJob | None = None
    video: VideoAsset | None = None
    upload: UploadResult | None = None
    error: RunError | None = None
    run_log_path: str | None = Field(default=None, alias="runLogPath", exclude=True)


class MetricEvent(_Record):
    """Observability event; arbitrary extra fields are kept verbatim."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    event: str
    timestamp: datetime = Field(default_factory=utc_now)
    client_id: str | None = Field(default=None, alias="clientId")
    run_id: str | None = Field(default=None, alias="runId")


class QuotaRecord(_Record):
    date: str
    count: int = Field(..., ge=0)


__all__ = [
    "ScriptTone",
    "PrivacyStatus",
    "JobStatus",
    "RunStatus",
    "TERMINAL_JOB_STATUSES",
    "utc_now",
    "Script",
    "AudioAsset",
    "VideoAsset",
    "RenderJob",
    "UploadOptions",
    "UploadResult",
    "RunError",
    "RunRecord",
    "MetricEvent",
    "QuotaRecord",
]
