"""Observer interface the pipeline reports progress through."""

from __future__ import annotations

import logging
from typing import Protocol

WARNING_EVENTS = {
    "body_missing",
    "html_missing",
    "image_fetch_failed",
    "item_failed",
}


class EventSink(Protocol):
    def emit(self, name: str, **fields) -> None: ...


class LoggingEventSink:
    """Forward pipeline events to a stdlib logger."""

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger("invmailer")

    def emit(self, name: str, **fields) -> None:
        level = logging.WARNING if name in WARNING_EVENTS else logging.INFO
        detail = " ".join(f"{k}={v!r}" for k, v in fields.items())
        self.logger.log(level, "%s %s", name, detail)


class NullEventSink:
    def emit(self, name: str, **fields) -> None:
        return None
