from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

PIPELINE_LOGGER = "mposcore"
LIBRARY_LOGGER = "mpo_scoring"


def configure_pipeline_logger(log_path: str | Path | None = None, level: int = logging.INFO) -> logging.Logger:
    """Send run and library messages to stderr and, when given, to ``log_path``."""
    formatter = logging.Formatter("%(asctime)s %(levelname)s %(message)s")
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_path is not None:
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))
    for h in handlers:
        h.setFormatter(formatter)

    for name in (PIPELINE_LOGGER, LIBRARY_LOGGER):
        logger = logging.getLogger(name)
        logger.setLevel(level)
        for old in logger.handlers:
            old.close()
        logger.handlers = list(handlers)
        logger.propagate = False
    return logging.getLogger(PIPELINE_LOGGER)


def close_pipeline_logger() -> None:
    seen: set[int] = set()
    for name in (PIPELINE_LOGGER, LIBRARY_LOGGER):
        logger = logging.getLogger(name)
        for h in logger.handlers:
            if id(h) not in seen:
                seen.add(id(h))
                h.close()
        logger.handlers = []
        logger.propagate = True
        logger.setLevel(logging.NOTSET)


def dump_json(path: str | Path, payload: Any) -> None:
    with Path(path).open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2, default=str)
