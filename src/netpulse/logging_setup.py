from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from .config import LoggingConfig
from .probes import monotonic_ms

ROOT_LOGGER = "netpulse"


class MonotonicStamp(logging.Filter):
    """Stamps ``mono_ms`` on every record.

    Latency samples and tick tags carry the same clock, so a log line can be
    matched to the sample it talks about.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "mono_ms"):
            record.mono_ms = round(monotonic_ms(), 1)
        return True


def _component(name: str) -> str:
    if name == ROOT_LOGGER:
        return "-"
    if name.startswith(ROOT_LOGGER + "."):
        return name[len(ROOT_LOGGER) + 1:]
    return name


def event_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """Flatten a record into the fields both output formats share.

    Caller-supplied ``extra_fields`` never shadow the fixed keys.
    """
    ts = datetime.fromtimestamp(record.created, tz=timezone.utc)
    out: Dict[str, Any] = {
        "ts": ts.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        "mono_ms": getattr(record, "mono_ms", None),
        "level": record.levelname.lower(),
        "component": _component(record.name),
        "event": record.getMessage(),
    }
    extra = getattr(record, "extra_fields", None)
    if isinstance(extra, dict):
        for key, value in extra.items():
            out.setdefault(key, value)
    return out


class JsonEventFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        out = event_fields(record)
        if record.exc_info:
            out["traceback"] = self.formatException(record.exc_info)
        return json.dumps(out, separators=(",", ":"), default=str)


class KeyValueFormatter(logging.Formatter):
    """``<ts> <level> <component> <event> k=v ...`` for terminals."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        out = event_fields(record)
        head = f"{out.pop('ts')} {out.pop('level'):<7} {out.pop('component')} {out.pop('event')}"
        out.pop("mono_ms")
        pairs = " ".join(f"{k}={json.dumps(v, default=str)}" for k, v in out.items())
        line = f"{head} {pairs}" if pairs else head
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _open_handler(destination: str) -> logging.Handler:
    streams = {"stdout": sys.stdout, "stderr": sys.stderr}
    if destination in streams:
        return logging.StreamHandler(streams[destination])
    return logging.FileHandler(destination, encoding="utf-8")


def setup_logging(cfg: LoggingConfig) -> None:
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(getattr(logging, cfg.level.upper(), logging.INFO))

    handler = _open_handler(cfg.destination)
    handler.addFilter(MonotonicStamp())
    handler.setFormatter(JsonEventFormatter() if cfg.json else KeyValueFormatter())
    root.addHandler(handler)


__all__ = ["JsonEventFormatter", "KeyValueFormatter", "MonotonicStamp", "event_fields", "setup_logging"]
