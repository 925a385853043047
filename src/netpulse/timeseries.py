from __future__ import annotations

import bisect
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple


@dataclass(slots=True, frozen=True)
class LatencySample:
    endpoint: str
    latency_ms: float
    timestamp_ms: float


def _ts(sample: LatencySample) -> float:
    return sample.timestamp_ms


class TimeSeriesStore:
    """Sliding window of latency samples, kept sorted by timestamp.

    Every insert prunes the whole store against ``now_ms - window_ms`` first,
    so after any insert no sample older than the window survives.
    """

    def __init__(self, window_ms: int = 30000) -> None:
        self.window_ms = window_ms
        self._samples: List[LatencySample] = []

    def __len__(self) -> int:
        return len(self._samples)

    def insert(self, sample: LatencySample, now_ms: Optional[float] = None) -> None:
        now = sample.timestamp_ms if now_ms is None else now_ms
        self.prune(now)
        if sample.timestamp_ms < now - self.window_ms:
            return
        bisect.insort(self._samples, sample, key=_ts)

    def prune(self, now_ms: float) -> int:
        cutoff = now_ms - self.window_ms
        keep = bisect.bisect_left(self._samples, cutoff, key=_ts)
        if keep:
            del self._samples[:keep]
        return keep

    def window(self, endpoint: Optional[str] = None) -> Tuple[LatencySample, ...]:
        if endpoint is None:
            return tuple(self._samples)
        return tuple(s for s in self._samples if s.endpoint == endpoint)

    def endpoints(self) -> List[str]:
        seen: Dict[str, None] = {}
        for s in self._samples:
            seen.setdefault(s.endpoint, None)
        return list(seen)

    def series(self) -> Dict[str, Tuple[LatencySample, ...]]:
        out: Dict[str, List[LatencySample]] = {}
        for s in self._samples:
            out.setdefault(s.endpoint, []).append(s)
        return {k: tuple(v) for k, v in out.items()}

    def clear(self) -> None:
        self._samples.clear()


__all__ = ["LatencySample", "TimeSeriesStore"]
