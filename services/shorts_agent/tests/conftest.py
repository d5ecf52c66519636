from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Iterator

import pytest

from shorts_agent.clients import ClientProfile
from shorts_agent.config import get_settings


class FakeClock:
    """Manual clock; ``sleep`` advances it instead of waiting."""

    def __init__(self, start: datetime) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.advance(seconds)


def make_client(client_id: str = "acme", **overrides: Any) -> ClientProfile:
    payload: dict[str, Any] = {
        "id": client_id,
        "name": f"{client_id.title()} Shorts",
        "niche": "tech",
        "topicBank": ["Feature flags", "Edge caching", "Zero-trust basics"],
        "schedule": {"runDailyAt": "0 9 * * *", "timezone": "UTC", "maxPerDay": 1},
        "voice": {"provider": "stub", "voiceId": f"voice_{client_id}"},
        "avatar": {"provider": "stub", "avatarId": f"avatar_{client_id}"},
        "youtube": {"provider": "stub", "channelId": f"channel_{client_id}"},
    }
    payload.update(overrides)
    return ClientProfile.model_validate(payload)


@pytest.fixture(autouse=True)
def reset_settings() -> Iterator[None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture(name="make_client")
def make_client_fixture():
    return make_client
