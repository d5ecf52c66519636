"""Client profiles: schema, loading and the ``client-add`` helpers."""

from __future__ import annotations

import json
import logging
import shutil
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import ClientConfigError, ClientNotFoundError
from .models import PrivacyStatus, ScriptTone
from .storage.paths import write_json

logger = logging.getLogger(__name__)

TopicSelectionMode = Literal["rotate", "random", "calendar"]

_YAML_SUFFIXES = {".yaml", ".yml"}


class _Section(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ScheduleConfig(_Section):
    run_daily_at: str = Field("0 9 * * *", alias="runDailyAt")
    timezone: str = "UTC"
    max_per_day: int = Field(1, alias="maxPerDay")


class LimitsConfig(_Section):
    max_uploads_per_day: Optional[int] = Field(default=None, ge=0, alias="maxUploadsPerDay")


class PublishingConfig(_Section):
    default_privacy_status: PrivacyStatus = Field("private", alias="defaultPrivacyStatus")
    made_for_kids: bool = Field(False, alias="madeForKids")


class VoiceBinding(_Section):
    provider: str = Field("stub", min_length=1)
    voice_id: str = Field(..., min_length=1, alias="voiceId")


class AvatarBinding(_Section):
    provider: str = Field("stub", min_length=1)
    avatar_id: str = Field(..., min_length=1, alias="avatarId")
    image_url: Optional[str] = Field(default=None, alias="imageUrl")


class YouTubeBinding(_Section):
    provider: str = Field("stub", min_length=1)
    channel_id: str = Field(..., min_length=1, alias="channelId")


class ClientProfile(_Section):
    """One channel the agent produces shorts for."""

    id: str = Field(..., min_length=1)
    display_name: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("name", "displayName", "display_name"),
        serialization_alias="name",
    )
    niche: str = Field(..., min_length=1)
    language: str = "en-GB"
    tone: ScriptTone = "educational"
    topic_bank: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("topicBank", "topic_bank", "topics"),
        serialization_alias="topicBank",
    )
    topic_selection_mode: TopicSelectionMode = Field("rotate", alias="topicSelectionMode")
    use_fallback_topics: bool = Field(True, alias="useFallbackTopics")
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    limits: LimitsConfig = Field(default_factory=LimitsConfig)
    publishing: PublishingConfig = Field(default_factory=PublishingConfig)
    voice: VoiceBinding
    avatar: AvatarBinding
    youtube: YouTubeBinding

    @field_validator("id", "niche")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def load_clients(path: Path) -> list[ClientProfile]:
    """Parse a JSON or YAML list of client profiles."""

    path = Path(path)
    raw_text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() in _YAML_SUFFIXES:
            raw = yaml.safe_load(raw_text)
        else:
            raw = json.loads(raw_text)
    except (ValueError, yaml.YAMLError) as exc:
        raise ClientConfigError(f"Invalid clients file: {path}", cause=exc) from exc

    if raw is None:
        raw = []
    if not isinstance(raw, list):
        raise ClientConfigError(f"Invalid clients file. Expected a list in {path}")

    clients: list[ClientProfile] = []
    seen: set[str] = set()
    for index, entry in enumerate(raw):
        try:
            client = ClientProfile.model_validate(entry)
        except ValidationError as exc:
            raise ClientConfigError(f"Invalid client #{index} in {path}: {exc}", cause=exc) from exc
        if client.id in seen:
            raise ClientConfigError(f"Duplicate client id {client.id} in {path}")
        seen.add(client.id)
        clients.append(client)
    logger.debug("Loaded %d clients from %s", len(clients), path)
    return clients


def get_client(clients: list[ClientProfile], client_id: str) -> ClientProfile:
    for client in clients:
        if client.id == client_id:
            return client
    raise ClientNotFoundError(f"Client not found: {client_id}")


def ensure_clients_file(path: Path) -> Path:
    """Create ``path`` from ``<name>.example<ext>`` beside it, or as an empty list."""

    path = Path(path)
    if path.exists():
        return path
    path.parent.mkdir(parents=True, exist_ok=True)
    example = path.with_name(f"{path.stem}.example{path.suffix}")
    if example.exists():
        shutil.copyfile(example, path)
        logger.info("Created %s from %s", path, example)
    else:
        path.write_text("[]\n", encoding="utf-8")
        logger.info("Created empty clients file %s", path)
    return path


_TOPIC_LIBRARY: dict[str, tuple[str, ...]] = {
    "tech": (
        "AI productivity tools for developers",
        "How APIs power modern apps",
        "Cloud cost optimization basics",
        "Zero-trust security explained",
        "What is edge computing?",
        "Git workflows that scale teams",
        "Microservices vs monoliths",
        "Feature flags for safe releases",
        "How to choose a backend framework",
        "Prompt engineering for builders",
        "Observability essentials for apps",
        "Database indexing made simple",
        "When to use serverless",
        "CI pipelines in plain English",
        "Caching strategies for speed",
        "How CDNs reduce latency",
        "Containerization for beginners",
        "A/B testing for product teams",
        "Roadmapping technical debt",
        "Web performance core metrics",
    ),
    "devops": (
        "Kubernetes in simple terms",
        "CI/CD pipeline essentials",
        "Infrastructure as code 101",
        "Monitoring vs observability",
        "Incident response playbook basics",
        "Blue-green deployment explained",
        "Canary releases without stress",
        "Secrets management best practices",
        "GitOps workflow intro",
        "Disaster recovery planning",
        "Log aggregation for teams",
        "SLOs and error budgets",
        "Docker networking fundamentals",
        "Automating rollback strategies",
        "Postmortems that improve systems",
        "Managing multi-environment configs",
        "Platform engineering fundamentals",
        "Load testing quickstart",
        "Scaling background workers",
        "Container image security scanning",
    ),
    "finance": (
        "Budgeting system that actually sticks",
        "Emergency fund target by lifestyle",
        "How compound interest really works",
        "Index funds for beginners",
        "Debt snowball vs debt avalanche",
        "How credit scores are calculated",
        "Monthly money review routine",
        "Sinking funds made simple",
        "Retirement account basics",
        "Dollar-cost averaging explained",
        "Avoiding common investing mistakes",
        "How to read expense ratios",
        "Tax-efficient saving habits",
        "Paycheck allocation framework",
        "Financial goals you can measure",
        "Building a first investment plan",
        "Insurance coverage essentials",
        "Understanding inflation impact",
        "Protecting yourself from fraud",
        "Beginner portfolio diversification",
    ),
}


def _topic_set(niche: str) -> tuple[str, ...]:
    normalized = niche.strip().lower()
    if "devops" in normalized:
        return _TOPIC_LIBRARY["devops"]
    if any(word in normalized for word in ("finance", "money", "invest")):
        return _TOPIC_LIBRARY["finance"]
    return _TOPIC_LIBRARY["tech"]


def starter_topic_bank(niche: str) -> list[str]:
    return [f"{niche.strip()}: {topic}" for topic in _topic_set(niche)]


def create_stub_client(
    client_id: str,
    name: str,
    niche: str,
    tone: ScriptTone = "educational",
    timezone: str = "UTC",
) -> ClientProfile:
    """Profile wired to the stub providers with a starter topic bank."""

    return ClientProfile(
        id=client_id,
        display_name=name,
        niche=niche,
        tone=tone,
        topic_bank=starter_topic_bank(niche),
        schedule=ScheduleConfig(run_daily_at="0 9 * * *", timezone=timezone, max_per_day=1),
        voice=VoiceBinding(provider="stub", voice_id=f"stub_voice_{client_id}"),
        avatar=AvatarBinding(provider="stub", avatar_id=f"stub_avatar_{client_id}"),
        youtube=YouTubeBinding(provider="stub", channel_id=f"stub_channel_{client_id}"),
    )


def add_client(
    path: Path,
    client_id: str,
    name: str,
    niche: str,
    tone: ScriptTone = "educational",
    timezone: str = "UTC",
) -> ClientProfile:
    """Append a stub client to the JSON clients file, rejecting duplicate ids."""

    path = ensure_clients_file(Path(path))
    try:
        raw = json.loads(path.read_text(encoding="utf-8") or "[]")
    except ValueError as exc:
        raise ClientConfigError(f"Invalid clients file: {path}", cause=exc) from exc
    if not isinstance(raw, list):
        raise ClientConfigError(f"Invalid clients file. Expected a list in {path}")
    if any(isinstance(entry, dict) and entry.get("id") == client_id for entry in raw):
        raise ClientConfigError(f"Client with id {client_id} already exists.")

    client = create_stub_client(client_id, name, niche, tone, timezone)
    raw.append(client.to_json_dict())
    write_json(path, raw)
    logger.info("Added client %s to %s", client_id, path)
    return client


__all__ = [
    "AvatarBinding",
    "ClientProfile",
    "LimitsConfig",
    "PublishingConfig",
    "ScheduleConfig",
    "TopicSelectionMode",
    "VoiceBinding",
    "YouTubeBinding",
    "add_client",
    "create_stub_client",
    "ensure_clients_file",
    "get_client",
    "load_clients",
    "starter_topic_bank",
]
