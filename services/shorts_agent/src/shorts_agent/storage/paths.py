"""Layout of the data directory."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any


def ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def client_dir(data_dir: Path, client_id: str) -> Path:
    return ensure_dir(Path(data_dir) / "clients" / client_id)


def audio_dir(data_dir: Path, client_id: str) -> Path:
    return ensure_dir(client_dir(data_dir, client_id) / "audio")


def video_dir(data_dir: Path, client_id: str) -> Path:
    return ensure_dir(client_dir(data_dir, client_id) / "video")


def uploads_dir(data_dir: Path, client_id: str) -> Path:
    return ensure_dir(client_dir(data_dir, client_id) / "uploads")


def runs_dir(data_dir: Path, client_id: str) -> Path:
    return Path(data_dir) / "clients" / client_id / "runs"


def webhooks_dir(data_dir: Path) -> Path:
    return ensure_dir(Path(data_dir) / "webhooks")


def jobs_file(data_dir: Path) -> Path:
    return Path(data_dir) / "jobs.json"


def metrics_file(data_dir: Path) -> Path:
    return Path(data_dir) / "metrics.json"


def write_json(path: Path, payload: Any) -> None:
    """Replace ``path`` with ``payload`` via a temp file in the same directory."""

    ensure_dir(path.parent)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(payload, fh, ensure_ascii=False, indent=2)
            fh.write("\n")
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
