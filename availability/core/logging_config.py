from __future__ import annotations

import logging

CONTEXT_KEYS = ("booking_id", "calendar_id", "event_id", "count", "deleted", "failed", "reason", "error")


class ContextFormatter(logging.Formatter):
    """Appends whitelisted `extra={...}` fields to the message as key=value pairs."""

    def __init__(self, fmt: str | None = None, keys: tuple[str, ...] = CONTEXT_KEYS) -> None:
        super().__init__(fmt)
        self._keys = keys

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        context = [
            f"{key}={getattr(record, key)}"
            for key in self._keys
            if getattr(record, key, None) not in (None, "")
        ]
        return f"{message} | {' '.join(context)}" if context else message


def configure_logging(level: str) -> None:
    """Route everything through one stderr handler on the root logger."""
    handler = logging.StreamHandler()
    handler.setFormatter(ContextFormatter("%(levelname)s:%(name)s:%(message)s"))

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()
    root.addHandler(handler)
