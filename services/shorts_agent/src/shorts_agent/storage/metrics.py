"""Bounded metrics log in ``metrics.json``."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any

from ..models import MetricEvent
from .paths import metrics_file, write_json

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 2000


class MetricsStore:
    """Keeps the newest ``capacity`` events, oldest first on disk."""

    def __init__(self, data_dir: Path, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._path = metrics_file(Path(data_dir))
        self._capacity = capacity
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def append_metric(self, event: MetricEvent | str, **fields: Any) -> MetricEvent:
        """Append ``event``; a bare event name is combined with ``fields``."""

        if isinstance(event, str):
            event = MetricEvent(event=event, **fields)
        with self._lock:
            events = self._load_locked()
            events.append(event.to_json_dict())
            write_json(self._path, events[-self._capacity :])
        logger.debug("Metric %s client=%s run=%s", event.event, event.client_id, event.run_id)
        return event

    def read_metrics(self, limit: int = 200) -> list[MetricEvent]:
        with self._lock:
            events = self._load_locked()
        newest = list(reversed(events))[: max(0, limit)]
        return [MetricEvent.model_validate(item) for item in newest]

    def _load_locked(self) -> list[dict[str, Any]]:
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return []
        except ValueError as exc:
            logger.warning("Resetting unreadable metrics file %s: %s", self._path, exc)
            return []
        if not isinstance(raw, list):
            logger.warning("Resetting metrics file %s: expected a list", self._path)
            return []
        return [item for item in raw if isinstance(item, dict)]


__all__ = ["DEFAULT_CAPACITY", "MetricsStore"]
