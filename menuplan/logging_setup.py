"""Logger wiring + support log ring buffer.

Captures WARN+ log records with associated request_id (if request context) into
an in-memory deque for quick troubleshooting without external log aggregation.
"""

from __future__ import annotations

import collections
import logging
import time

from flask import g, has_request_context, request

LOG_BUFFER: collections.deque[dict] = collections.deque(maxlen=500)

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class SupportLogHandler(logging.Handler):
    def emit(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        try:
            rid = getattr(g, "request_id", "-") if has_request_context() else "-"
            path = request.path if has_request_context() else "-"
        except RuntimeError:
            rid = "-"
            path = "-"
        LOG_BUFFER.append(
            {
                "ts": time.time(),
                "level": record.levelname,
                "logger": record.name,
                "msg": self.format(record),
                "request_id": rid,
                "path": path,
            }
        )


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Attach a stream handler to the package logger once; level is refreshed on every call."""
    logger = logging.getLogger("menuplan")
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    if not any(isinstance(h, logging.StreamHandler) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(handler)
    return logger


def install_support_log_handler() -> None:
    root = logging.getLogger()
    # Avoid duplicate attachment if reloaded
    if any(isinstance(h, SupportLogHandler) for h in root.handlers):
        return
    h = SupportLogHandler(level=logging.WARNING)
    h.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(h)


def recent_logs(limit: int = 100) -> list[dict]:
    if limit <= 0:
        return []
    return list(LOG_BUFFER)[-limit:]


__all__ = ["LOG_BUFFER", "SupportLogHandler", "configure_logging", "install_support_log_handler", "recent_logs"]
