"""Logging setup shared by the CLI and the webhook service."""

from __future__ import annotations

import json
import logging
import logging.config
from pathlib import Path

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


def setup_logging(level: str = "info", *, config_path: Path | None = None) -> None:
    """Configure logging from ``observability/logging.json`` when present.

    Args:
        level: Root level used when no dictConfig file is found.
        config_path: Explicit dictConfig JSON; defaults to the one in the cwd.
    """

    path = config_path or Path.cwd() / "observability" / "logging.json"
    if path.exists():
        try:
            with path.open("r", encoding="utf-8") as fh:
                logging.config.dictConfig(json.load(fh))
            return
        except (OSError, ValueError) as exc:
            logging.getLogger(__name__).warning("Ignoring logging config %s: %s", path, exc)
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
