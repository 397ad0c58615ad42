from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Protocol

logger = logging.getLogger("menuplan.metrics")


class Metrics(Protocol):
    def increment(self, name: str, tags: Mapping[str, str] | None = None) -> None: ...  # pragma: no cover - interface only

class _NoopMetrics:
    def increment(self, name: str, tags: Mapping[str, str] | None = None) -> None:  # pragma: no cover - noop
        return

class LoggingMetrics:
    def increment(self, name: str, tags: Mapping[str, str] | None = None) -> None:
        ordered = dict(sorted((tags or {}).items()))
        logger.info("metric name=%s tags=%s", name, ordered)

_metrics: Metrics = _NoopMetrics()

def set_metrics(m: Metrics) -> None:
    global _metrics
    _metrics = m

def get_metrics() -> Metrics:
    return _metrics

def configure_metrics(backend: str) -> Metrics:
    set_metrics(LoggingMetrics() if backend == "log" else _NoopMetrics())
    return _metrics

def increment(name: str, tags: Mapping[str, str] | None = None) -> None:
    _metrics.increment(name, tags)
