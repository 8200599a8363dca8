"""Structured logging helpers for the margin pipeline."""
from __future__ import annotations

import logging
from typing import Any, Dict

import orjson

EVENT_LOGGER_NAME = "pdfmargins.events"


def configure_logger() -> logging.Logger:
    logger = logging.getLogger(EVENT_LOGGER_NAME)
    if logger.handlers:
        return logger
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    return logger


def log_event(event: str, level: int = logging.INFO, **payload: Any) -> None:
    logger = configure_logger()
    data: Dict[str, Any] = {"event": event, **payload}
    message = orjson.dumps(data, option=orjson.OPT_SERIALIZE_NUMPY).decode("utf-8")
    logger.log(level, message)
