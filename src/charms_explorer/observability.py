"""Structured events and StatsD metrics for the explorer services.

Every :class:`Observability` handle is scoped to one component (for example
``reference_cache``). Events are logged as JSON lines on the
``charms_explorer.observability`` logger; counters and timings go to a single
StatsD endpoint shared by all handles, and are dropped silently when no
``observability.statsd_host`` is configured.
"""

from __future__ import annotations

import json
import logging
import socket
import threading
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator, Mapping

from charms_explorer.settings import Settings, get_settings

_LOGGER = logging.getLogger("charms_explorer.observability")
_STATSD_LOCK = threading.Lock()
_SHARED_STATSD: "_StatsdClient | None" = None

Tags = Mapping[str, Any]


class Observability:
    """Per-component entry point for events, counters and timings."""

    def __init__(
        self,
        *,
        settings: Settings,
        component: str | None = None,
        statsd: "_StatsdClient | None" = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.settings = settings
        self.component = component or "core"
        self._logger = logger or _LOGGER
        self._structured_logging = bool(settings.observability.structured_logging)
        self._statsd = statsd

    @property
    def metrics_enabled(self) -> bool:
        return self._statsd is not None

    def emit_event(self, event: str, **fields: Any) -> None:
        """Log ``event`` with ``fields``; JSON when structured logging is on."""

        payload = {
            "event": event,
            "component": self.component,
            "service": self.settings.observability.service_name,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **fields,
        }
        if self._structured_logging:
            self._logger.info(json.dumps(payload, default=str))
        else:
            self._logger.info("%s | %s", event, payload)

    def increment(self, metric: str, *, value: float = 1.0, tags: Tags | None = None) -> None:
        if self._statsd is not None:
            self._statsd.send(metric, value, "c", tags)

    def record_timing(self, metric: str, value_ms: float, *, tags: Tags | None = None) -> None:
        if self._statsd is not None:
            self._statsd.send(metric, value_ms, "ms", tags)

    @contextmanager
    def timer(self, metric: str, *, tags: Tags | None = None) -> Iterator[None]:
        """Record the wall time of the ``with`` block as ``metric`` in ms.

        The timing is recorded even when the block raises.
        """

        started = time.perf_counter()
        try:
            yield
        finally:
            self.record_timing(metric, (time.perf_counter() - started) * 1000.0, tags=tags)


def get_observability(*, component: str | None = None, settings: Settings | None = None) -> Observability:
    """Return an :class:`Observability` handle for ``component``."""

    resolved = settings or get_settings()
    return Observability(settings=resolved, component=component, statsd=_shared_statsd(resolved))


def reset_observability_cache() -> None:
    """Forget the shared StatsD client (used in tests)."""

    global _SHARED_STATSD
    with _STATSD_LOCK:
        _SHARED_STATSD = None


class _StatsdClient:
    """Fire-and-forget StatsD over UDP with DogStatsD-style tags."""

    def __init__(self, host: str, port: int, prefix: str) -> None:
        self.address = (host, port)
        self.prefix = prefix
        self._socket = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)

    def send(self, metric: str, value: float, metric_type: str, tags: Tags | None) -> None:
        name = f"{self.prefix}.{metric}" if self.prefix else metric
        line = f"{name}:{_format_number(value)}|{metric_type}"
        tag_block = ",".join(f"{key}:{val}" for key, val in sorted((tags or {}).items()) if val is not None)
        if tag_block:
            line = f"{line}|#{tag_block}"
        try:
            self._socket.sendto(line.encode("utf-8"), self.address)
        except OSError:
            _LOGGER.debug("StatsD send failed for metric %s", metric, exc_info=True)


def _shared_statsd(settings: Settings) -> _StatsdClient | None:
    global _SHARED_STATSD
    with _STATSD_LOCK:
        if _SHARED_STATSD is None and settings.observability.statsd_host:
            _SHARED_STATSD = _StatsdClient(
                settings.observability.statsd_host,
                settings.observability.statsd_port,
                settings.observability.statsd_prefix,
            )
        return _SHARED_STATSD


def _format_number(value: float) -> str:
    return f"{value:.6f}".rstrip("0").rstrip(".") or "0"


__all__ = ["Observability", "get_observability", "reset_observability_cache"]
