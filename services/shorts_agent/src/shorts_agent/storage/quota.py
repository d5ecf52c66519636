"""Per-client daily upload counters."""

from __future__ import annotations

import json
import logging
import threading
from datetime import date
from pathlib import Path

from pydantic import ValidationError

from ..exceptions import QuotaExceededError
from ..models import QuotaRecord
from .paths import uploads_dir, write_json

logger = logging.getLogger(__name__)


def _day_key(day: date | str) -> str:
    return day.isoformat() if isinstance(day, date) else str(day)


class QuotaStore:
    """One ``quota_<day>.json`` record per client and day; a missing record counts as 0."""

    def __init__(self, data_dir: Path) -> None:
        self._data_dir = Path(data_dir)
        self._lock = threading.Lock()

    def path_for(self, client_id: str, day: date | str) -> Path:
        return uploads_dir(self._data_dir, client_id) / f"quota_{_day_key(day)}.json"

    def get_daily_count(self, client_id: str, day: date | str) -> int:
        key = _day_key(day)
        record = self._read(self.path_for(client_id, key))
        if record is None or record.date != key:
            return 0
        return record.count

    def increment_daily_count(self, client_id: str, day: date | str) -> int:
        key = _day_key(day)
        with self._lock:
            count = self.get_daily_count(client_id, key) + 1
            write_json(self.path_for(client_id, key), QuotaRecord(date=key, count=count).to_json_dict())
        logger.debug("Upload count for client %s on %s is now %d", client_id, key, count)
        return count

    def ensure_available(self, client_id: str, day: date | str, limit: int) -> int:
        """Return today's count, raising ``QuotaExceededError`` once ``limit`` is reached."""

        key = _day_key(day)
        count = self.get_daily_count(client_id, key)
        if count >= limit:
            raise QuotaExceededError(client_id, key, limit)
        return count

    @staticmethod
    def _read(path: Path) -> QuotaRecord | None:
        try:
            return QuotaRecord.model_validate(json.loads(path.read_text(encoding="utf-8")))
        except FileNotFoundError:
            return None
        except (ValueError, ValidationError) as exc:
            logger.warning("Ignoring unreadable quota record %s: %s", path, exc)
            return None


__all__ = ["QuotaStore"]
