"""JSON logging for the exporter.

Each record becomes one JSON object: a fixed envelope (timestamp, level,
logger, event, service identity) plus the keys passed via ``extra``. Fetch
errors are flattened to their kind/url/detail so operators can filter on the
failing endpoint. Keys matching a redaction pattern (Slack bot token,
Authorization header, ...) are masked before the line is written.
"""

from __future__ import annotations

import json
import logging
import os
import socket
import traceback
from datetime import datetime, timezone
from typing import Any, Iterable

from support_watcher.infrastructure.http.fetcher import FetchError

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class SensitiveDataFilter:
    def __init__(self, patterns: Iterable[str]):
        self.patterns = [p.lower() for p in patterns]

    def filter(self, data: dict) -> dict:
        out = {}
        for k, v in data.items():
            if any(p in k.lower() for p in self.patterns):
                out[k] = "[REDACTED]"
            elif isinstance(v, dict):
                out[k] = self.filter(v)
            else:
                out[k] = v
        return out


def _field(value: Any) -> Any:
    if isinstance(value, FetchError):
        return {"kind": value.kind, "url": value.url, "detail": value.detail}
    return value


class ExporterJsonFormatter(logging.Formatter):
    def __init__(
        self,
        service: str,
        environment: str,
        redaction_patterns: Iterable[str],
    ):
        super().__init__()
        self.service_name = service
        self.environment = environment
        self.hostname = socket.gethostname()
        self.pid = os.getpid()
        self.sensitive_filter = SensitiveDataFilter(redaction_patterns)

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
            "service": self.service_name,
            "environment": self.environment,
            "hostname": self.hostname,
            "pid": self.pid,
        }
        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRS:
                payload[key] = _field(value)
        if record.exc_info:
            payload["exception"] = self.format_exception(record.exc_info)
        return json.dumps(self.sensitive_filter.filter(payload), default=str)

    @staticmethod
    def format_exception(exc_info) -> dict[str, Any]:
        et, ev, tb = exc_info
        out: dict[str, Any] = {"type": et.__name__, "message": str(ev)}
        if isinstance(ev, FetchError):
            out.update(_field(ev))
        out["stack"] = traceback.format_tb(tb)
        return out


def configure_logging(
    service: str,
    environment: str,
    level: str,
    redaction_patterns: Iterable[str],
) -> logging.Logger:
    handler = logging.StreamHandler()
    handler.setFormatter(
        ExporterJsonFormatter(service, environment, redaction_patterns)
    )
    root = logging.getLogger()
    root.handlers = [handler]  # deterministic single handler
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    return root


__all__ = [
    "ExporterJsonFormatter",
    "SensitiveDataFilter",
    "configure_logging",
]
