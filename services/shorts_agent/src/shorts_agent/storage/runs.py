"""Append-only run history, one JSON file per run."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from ..exceptions import RunNotFoundError, ShortsAgentError
from ..models import RunRecord
from .paths import runs_dir, write_json

logger = logging.getLogger(__name__)


class RunStore:
    """Writes and reads ``clients/<id>/runs/run_<runId>.json``."""

    def __init__(self, data_dir: Path) -> None:
        self._data_dir = Path(data_dir)

    def path_for(self, client_id: str, run_id: str) -> Path:
        return runs_dir(self._data_dir, client_id) / f"run_{run_id}.json"

    def write_run_log(self, client_id: str, record: RunRecord) -> Path:
        if record.client_id != client_id:
            raise ValueError(f"Run {record.run_id} belongs to client {record.client_id}, not {client_id}")
        path = self.path_for(client_id, record.run_id)
        if path.exists():
            raise ShortsAgentError(f"Run log already exists: {path}")
        write_json(path, record.to_json_dict())
        logger.info("Wrote %s run log %s", record.status, path)
        return path

    def get_run(self, client_id: str, run_id: str) -> RunRecord:
        path = self.path_for(client_id, run_id)
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise RunNotFoundError(f"Run not found: {client_id}/{run_id}") from exc
        record = RunRecord.model_validate(payload)
        return record.model_copy(update={"run_log_path": str(path)})

    def list_runs(self, client_id: str, limit: int = 20) -> list[RunRecord]:
        directory = runs_dir(self._data_dir, client_id)
        if not directory.is_dir():
            return []
        records: list[RunRecord] = []
        for path in directory.glob("run_*.json"):
            try:
                record = RunRecord.model_validate(json.loads(path.read_text(encoding="utf-8")))
            except ValueError as exc:
                logger.warning("Skipping unreadable run log %s: %s", path, exc)
                continue
            records.append(record.model_copy(update={"run_log_path": str(path)}))
        records.sort(key=lambda record: record.timestamp, reverse=True)
        return records[: max(0, limit)]


__all__ = ["RunStore"]
