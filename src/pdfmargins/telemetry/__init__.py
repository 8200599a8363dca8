"""Structured event logging for the margin pipeline."""

from .events import configure_logger, log_event

__all__ = ["configure_logger", "log_event"]
