from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from .config import Config
from .logs import ConnectionLog, ConnectionLogEntry, DebugLog, DebugLogEntry
from .probes import (
    Probe,
    ProbePool,
    ProbeResult,
    ReachabilityProber,
    any_success,
    monotonic_ms,
    wall_clock_ms,
)
from .quality import QualityAnalyzer, QualityMetrics
from .scheduler import ProbeScheduler, TickTag
from .state import StateInferenceEngine
from .timeseries import LatencySample, TimeSeriesStore
from .uptime import UptimeClock

logger = logging.getLogger(__name__)

REACHABILITY = "reachability"
QUALITY = "quality"
UPTIME = "uptime"


@dataclass(slots=True, frozen=True)
class MonitorSnapshot:
    is_online: bool
    uptime_label: str
    connection_log: Tuple[ConnectionLogEntry, ...]
    debug_log: Tuple[DebugLogEntry, ...]
    debug_expanded: bool
    latency_series: Mapping[str, Tuple[LatencySample, ...]]
    jitter_ms: Optional[float]
    packet_loss_percent: Optional[int]
    quality_computed_at_ms: Optional[float]
    taken_at_ms: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "taken_at_ms": self.taken_at_ms,
            "is_online": self.is_online,
            "uptime": self.uptime_label,
            "jitter_ms": self.jitter_ms,
            "packet_loss_percent": self.packet_loss_percent,
            "quality_computed_at_ms": self.quality_computed_at_ms,
            "connection_log": [
                {
                    "timestamp_ms": e.timestamp_ms,
                    "status": e.status.value,
                    "session_uptime_at_disconnect": e.session_uptime_at_disconnect,
                    "time_ago": e.time_ago(self.taken_at_ms),
                }
                for e in self.connection_log
            ],
            "debug_expanded": self.debug_expanded,
            "debug_log": [{"timestamp_ms": e.timestamp_ms, "message": e.message} for e in self.debug_log],
            "latency_series": {
                endpoint: [[s.timestamp_ms, s.latency_ms] for s in samples]
                for endpoint, samples in self.latency_series.items()
            },
        }


class ConnectivityMonitor:
    """Engine context: stores, state machine and scheduler for one client.

    Construction fixes the initial state from the native flag. ``start()``
    arms the timers (needs a running loop); ``stop()`` tears everything down
    and may be called any number of times.
    """

    def __init__(
        self,
        cfg: Config,
        initial_online: bool = True,
        probe: Optional[Probe] = None,
        clock: Callable[[], float] = monotonic_ms,
        wall_clock: Callable[[], float] = wall_clock_ms,
    ) -> None:
        self.cfg = cfg
        self._clock = clock
        self._wall_clock = wall_clock
        reach_cap = max(1, math.ceil(cfg.probe_timeout_ms / cfg.reachability_interval_ms))

        self._pools: List[ProbePool] = []
        if probe is None:
            reach_probe = self._pool(len(cfg.endpoints) * reach_cap, "reachability")
            quality_probe = self._pool(1, "quality")
            outer_timeout = None
        else:
            reach_probe = quality_probe = probe
            outer_timeout = cfg.probe_timeout_ms

        self.timeseries = TimeSeriesStore(cfg.window_ms)
        self.connection_log = ConnectionLog(cfg.logs.connection_log_cap)
        self.debug_log = DebugLog(cfg.logs.debug_log_cap)
        self.uptime = UptimeClock(clock)
        self.state = StateInferenceEngine(initial_online, self.uptime, self.connection_log, wall_clock)
        self.quality: Optional[QualityMetrics] = None

        self.prober = ReachabilityProber(cfg.endpoints, reach_probe, clock=clock, timeout_ms=outer_timeout)
        self.analyzer = QualityAnalyzer(
            cfg.quality_endpoint,
            quality_probe,
            burst_size=cfg.burst_size,
            threshold_ms=cfg.burst_latency_threshold_ms,
            clock=wall_clock,
            timeout_ms=outer_timeout,
        )

        self.scheduler = ProbeScheduler(clock, on_error=self._on_tick_error)
        self.scheduler.add_probe_job(
            REACHABILITY,
            cfg.reachability_interval_ms,
            self.prober.probe_all,
            self._apply_reachability,
            max_in_flight=reach_cap,
        )
        # bursts are sequential and slow by nature; never stack them
        self.scheduler.add_probe_job(
            QUALITY, cfg.quality_interval_ms, self.analyzer.measure_burst, self._apply_quality, max_in_flight=1
        )
        self.scheduler.add_timer(UPTIME, cfg.uptime_interval_ms, self.uptime.tick)

        logger.info(
            "monitor_created",
            extra={"extra_fields": {"online": initial_online, "endpoints": list(cfg.endpoints)}},
        )

    def _pool(self, workers: int, name: str) -> ProbePool:
        pool = ProbePool(workers, timeout_ms=self.cfg.probe_timeout_ms, name=name)
        self._pools.append(pool)
        return pool

    async def __aenter__(self) -> "ConnectivityMonitor":
        self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.stop()

    @property
    def is_online(self) -> bool:
        return self.state.is_online

    @property
    def stopped(self) -> bool:
        return self.scheduler.closed

    def start(self) -> None:
        self.scheduler.start()

    def stop(self) -> None:
        if self.scheduler.closed:
            return
        self.scheduler.stop()
        for pool in self._pools:
            pool.shutdown()
        self.state.halt()
        logger.info("monitor_stopped")

    def handle_native_event(self, online: bool) -> bool:
        if self.stopped:
            return False
        self.debug(f"Native signal: {'online' if online else 'offline'}")
        return self.state.on_native_event(online)

    def debug(self, message: str) -> None:
        self.debug_log.append(DebugLogEntry(timestamp_ms=self._wall_clock(), message=message))

    def _apply_reachability(self, tag: TickTag, results: List[ProbeResult]) -> None:
        now = self._clock()
        lines = []
        for r in results:
            if r.success and r.latency_ms is not None:
                lines.append(f"Connected to {r.endpoint} ({r.latency_ms:.0f}ms)")
                self.timeseries.insert(
                    LatencySample(endpoint=r.endpoint, latency_ms=r.latency_ms, timestamp_ms=r.issued_at_ms),
                    now_ms=now,
                )
            else:
                lines.append(f"Failed to connect to {r.endpoint}: {r.error or 'unknown error'}")
        self.debug("\n".join(lines))
        self.state.on_reachability(any_success(results))

    def _apply_quality(self, tag: TickTag, metrics: Optional[QualityMetrics]) -> None:
        if metrics is None:
            self.debug(
                f"Quality burst to {self.analyzer.endpoint} failed: all {self.analyzer.burst_size} probes failed"
            )
            return
        self.quality = metrics

    def _on_tick_error(self, kind: str, exc: BaseException) -> None:
        self.debug(f"{kind} tick failed: {exc}")

    def snapshot(self) -> MonitorSnapshot:
        q = self.quality
        return MonitorSnapshot(
            is_online=self.state.is_online,
            uptime_label=self.uptime.elapsed_label(),
            connection_log=self.connection_log.entries(),
            debug_log=self.debug_log.view(),
            debug_expanded=self.debug_log.expanded,
            latency_series=MappingProxyType(self.timeseries.series()),
            jitter_ms=q.jitter_ms if q else None,
            packet_loss_percent=q.packet_loss_percent if q else None,
            quality_computed_at_ms=q.computed_at_ms if q else None,
            taken_at_ms=self._wall_clock(),
        )

    def clear_latency_history(self) -> None:
        self.timeseries.clear()
        logger.info("latency_history_cleared")

    def toggle_debug_expanded(self) -> bool:
        return self.debug_log.toggle_expanded()


__all__ = ["ConnectivityMonitor", "MonitorSnapshot", "REACHABILITY", "QUALITY", "UPTIME"]
