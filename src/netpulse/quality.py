from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from .probes import Probe, ProbeOutcome, wall_clock_ms

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class QualityMetrics:
    jitter_ms: float
    packet_loss_percent: int
    computed_at_ms: float


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def compute_jitter(latencies: Sequence[float]) -> float:
    if len(latencies) < 2:
        return 0.0
    diffs = [abs(b - a) for a, b in zip(latencies, latencies[1:])]
    return sum(diffs) / len(diffs)


def compute_quality(
    latencies: Sequence[Optional[float]],
    burst_size: int,
    threshold_ms: float,
    computed_at_ms: float,
) -> Optional[QualityMetrics]:
    """Derive jitter and heuristic packet loss from one burst.

    ``latencies`` holds one entry per probe, ``None`` for a failed probe.

    Jitter is the mean absolute difference between consecutive successful
    latencies (0 with fewer than two).

    Packet loss is NOT a real drop count: the transport never reports
    dropped packets, so loss is approximated as the share of burst probes
    whose latency exceeded ``threshold_ms``, i.e.
    ``round(100 * count(latency > threshold_ms) / burst_size)``. A failed
    probe counts as exceeding the threshold.

    Returns ``None`` when every probe failed.
    """
    ok = [lat for lat in latencies if lat is not None]
    if not ok:
        return None
    slow = sum(1 for lat in latencies if lat is None or lat > threshold_ms)
    loss = _round_half_up(100.0 * slow / burst_size) if burst_size else 0
    return QualityMetrics(jitter_ms=compute_jitter(ok), packet_loss_percent=loss, computed_at_ms=computed_at_ms)


class QualityAnalyzer:
    """Sequential probe burst against one low-payload endpoint."""

    def __init__(
        self,
        endpoint: str,
        probe: Probe,
        burst_size: int = 5,
        threshold_ms: float = 200.0,
        clock: Callable[[], float] = wall_clock_ms,
        timeout_ms: Optional[int] = None,
    ) -> None:
        self.endpoint = endpoint
        self.burst_size = burst_size
        self.threshold_ms = threshold_ms
        self._probe = probe
        self._clock = clock
        self._timeout_s = timeout_ms / 1000.0 if timeout_ms else None

    async def measure_burst(self) -> Optional[QualityMetrics]:
        latencies: List[Optional[float]] = []
        for _ in range(self.burst_size):
            outcome = await self._probe_once()
            latencies.append(outcome.latency_ms if outcome.success else None)
        metrics = compute_quality(latencies, self.burst_size, self.threshold_ms, self._clock())
        if metrics is None:
            logger.info("quality_burst_failed", extra={"extra_fields": {"endpoint": self.endpoint}})
        return metrics

    async def _probe_once(self) -> ProbeOutcome:
        try:
            return await asyncio.wait_for(self._probe(self.endpoint), timeout=self._timeout_s)
        except asyncio.TimeoutError:
            return ProbeOutcome(success=False, latency_ms=None, error="timed out")
        except Exception as e:
            return ProbeOutcome(success=False, latency_ms=None, error=str(e))


__all__ = ["QualityMetrics", "QualityAnalyzer", "compute_jitter", "compute_quality"]
