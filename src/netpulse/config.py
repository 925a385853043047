from __future__ import annotations

import dataclasses as dc
import json
import os
from typing import Any, List, Optional

import yaml

DEFAULT_ENDPOINTS = [
    "https://www.google.com/favicon.ico",
    "https://www.cloudflare.com/favicon.ico",
    "https://www.microsoft.com/favicon.ico",
]

# 204 No Content: smallest possible payload for burst probing
DEFAULT_QUALITY_ENDPOINT = "https://www.google.com/generate_204"

MIN_INTERVAL_MS = 100


@dc.dataclass(slots=True)
class LogCaps:
    connection_log_cap: int = 50
    debug_log_cap: int = 5


@dc.dataclass(slots=True)
class Paths:
    status_json: str = "/var/run/netpulse/status.json"


@dc.dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    json: bool = True
    destination: str = "stdout"  # or file path


@dc.dataclass(slots=True)
class Features:
    prometheus_textfile: Optional[str] = None
    status_interval_seconds: float = 5.0


@dc.dataclass(slots=True)
class Config:
    endpoints: List[str] = dc.field(default_factory=lambda: list(DEFAULT_ENDPOINTS))
    quality_endpoint: str = DEFAULT_QUALITY_ENDPOINT
    window_ms: int = 30000
    burst_size: int = 5
    burst_latency_threshold_ms: float = 200.0
    reachability_interval_ms: int = 1000
    quality_interval_ms: int = 1000
    uptime_interval_ms: int = 1000
    probe_timeout_ms: int = 3000
    native_poll_interval_ms: int = 1000
    logs: LogCaps = dc.field(default_factory=LogCaps)
    paths: Paths = dc.field(default_factory=Paths)
    logging: LoggingConfig = dc.field(default_factory=LoggingConfig)
    features: Features = dc.field(default_factory=Features)

    @staticmethod
    def from_dict(d: dict[str, Any]) -> "Config":
        def section(cls, key):
            sub = d.get(key) or {}
            if isinstance(sub, dict):
                return cls(**sub)
            return cls()

        defaults = Config()
        endpoints = d.get("endpoints")
        return Config(
            endpoints=list(endpoints) if endpoints is not None else list(DEFAULT_ENDPOINTS),
            quality_endpoint=str(d.get("quality_endpoint", DEFAULT_QUALITY_ENDPOINT)),
            window_ms=int(d.get("window_ms", defaults.window_ms)),
            burst_size=int(d.get("burst_size", defaults.burst_size)),
            burst_latency_threshold_ms=float(
                d.get("burst_latency_threshold_ms", defaults.burst_latency_threshold_ms)
            ),
            reachability_interval_ms=int(d.get("reachability_interval_ms", defaults.reachability_interval_ms)),
            quality_interval_ms=int(d.get("quality_interval_ms", defaults.quality_interval_ms)),
            uptime_interval_ms=int(d.get("uptime_interval_ms", defaults.uptime_interval_ms)),
            probe_timeout_ms=int(d.get("probe_timeout_ms", defaults.probe_timeout_ms)),
            native_poll_interval_ms=int(d.get("native_poll_interval_ms", defaults.native_poll_interval_ms)),
            logs=section(LogCaps, "logs"),
            paths=section(Paths, "paths"),
            logging=section(LoggingConfig, "logging"),
            features=section(Features, "features"),
        )

    def to_json(self) -> str:
        return json.dumps(dc.asdict(self), indent=2)


def load_config(path: str | os.PathLike[str]) -> Config:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    cfg = Config.from_dict(data)
    validate_config(cfg)
    return cfg


def validate_config(cfg: Config) -> None:
    if not cfg.endpoints:
        raise ValueError("At least one reachability endpoint required")
    if not cfg.quality_endpoint:
        raise ValueError("quality_endpoint must be set")
    if cfg.window_ms <= 0:
        raise ValueError("window_ms must be > 0")
    if cfg.burst_size < 1:
        raise ValueError("burst_size must be >= 1")
    if cfg.burst_latency_threshold_ms <= 0:
        raise ValueError("burst_latency_threshold_ms must be > 0")
    if cfg.probe_timeout_ms <= 0:
        raise ValueError("probe_timeout_ms must be > 0")
    for name in ("reachability_interval_ms", "quality_interval_ms", "uptime_interval_ms", "native_poll_interval_ms"):
        if getattr(cfg, name) < MIN_INTERVAL_MS:
            raise ValueError(f"{name} must be >= {MIN_INTERVAL_MS}")
    if cfg.logs.connection_log_cap < 1 or cfg.logs.debug_log_cap < 1:
        raise ValueError("log caps must be >= 1")
    if cfg.features.status_interval_seconds <= 0:
        raise ValueError("status_interval_seconds must be > 0")


__all__ = [
    "Config",
    "load_config",
    "validate_config",
]
