from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List

from .config import Config
from .engine import MonitorSnapshot

logger = logging.getLogger(__name__)


def write_status(cfg: Config, snapshot: MonitorSnapshot) -> bool:
    path = Path(cfg.paths.status_json)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(json.dumps(snapshot.to_dict(), indent=2), encoding="utf-8")
        tmp.replace(path)
    except OSError as e:
        logger.warning("write_status_failed", extra={"extra_fields": {"error": str(e), "path": str(path)}})
        return False
    return True


def _escape_label(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def prometheus_lines(snapshot: MonitorSnapshot) -> List[str]:
    lines = [
        f"netpulse_online {1 if snapshot.is_online else 0}",
        f"netpulse_connection_log_entries {len(snapshot.connection_log)}",
    ]
    if snapshot.jitter_ms is not None:
        lines.append(f"netpulse_jitter_ms {snapshot.jitter_ms}")
    if snapshot.packet_loss_percent is not None:
        lines.append(f"netpulse_packet_loss_percent {snapshot.packet_loss_percent}")
    for endpoint, samples in sorted(snapshot.latency_series.items()):
        if samples:
            lines.append(f'netpulse_latency_ms{{endpoint="{_escape_label(endpoint)}"}} {samples[-1].latency_ms}')
    return lines


def write_prometheus(cfg: Config, snapshot: MonitorSnapshot) -> None:
    prom_path = cfg.features.prometheus_textfile
    if not prom_path:
        return
    try:
        p = Path(prom_path)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text("\n".join(prometheus_lines(snapshot)) + "\n", encoding="utf-8")
    except OSError as e:
        logger.warning("write_prometheus_failed", extra={"extra_fields": {"error": str(e)}})

__all__ = ["write_status", "write_prometheus", "prometheus_lines"]
