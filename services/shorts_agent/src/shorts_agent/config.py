"""Configuration for the shorts agent."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment settings for the agent, its CLI and the webhook service."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    api_version: str = Field("1.0.0", description="API version exposed via health endpoint.")
    app_port: int = Field(3000, gt=0, lt=65536, description="Port of the webhook listener.")
    log_level: Literal["debug", "info", "warning", "error"] = Field("info", description="Root log level.")
    use_stubs: bool = Field(True, description="Route every provider binding to local stubs.")
    stub_render_ms: int = Field(
        5000,
        ge=0,
        description="Simulated render duration of the stub avatar renderer.",
    )
    stub_fail_rate: float = Field(
        0.0,
        ge=0.0,
        le=1.0,
        description="Probability that stub renderer/uploader calls fail.",
    )
    data_dir: Path = Field(Path("./data"), description="Root directory of all persisted state.")
    clients_file: Path = Field(Path("./data/clients.json"), description="JSON or YAML list of client profiles.")
    default_timezone: str = Field("Europe/London", description="Timezone used when a client omits one.")
    render_poll_interval_s: float = Field(1.0, gt=0, description="Delay between render status checks.")
    render_timeout_s: float = Field(
        120.0,
        gt=0,
        description="Hard limit for render polling; raised to 3x the stub render time.",
    )

    openai_api_key: str | None = Field(None, description="OpenAI API key")
    openai_model: str = Field("gpt-4o-mini", description="Model used by the OpenAI script writer")
    elevenlabs_api_key: str | None = Field(None, description="ElevenLabs API key")
    heygen_api_key: str | None = Field(None, description="HeyGen API key")
    did_api_key: str | None = Field(None, description="D-ID API key")
    youtube_client_id: str | None = Field(None, description="YouTube OAuth client id")
    youtube_client_secret: str | None = Field(None, description="YouTube OAuth client secret")
    youtube_redirect_uri: str | None = Field(None, description="YouTube OAuth redirect URI")
    youtube_refresh_token: str | None = Field(None, description="YouTube OAuth refresh token")

    @property
    def effective_render_timeout_s(self) -> float:
        return max(self.render_timeout_s, self.stub_render_ms * 3 / 1000)


class HealthPayload(BaseModel):
    """Health response payload."""

    status: Literal["ok"]
    api_version: str


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()
