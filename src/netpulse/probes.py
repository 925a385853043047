from __future__ import annotations

import asyncio
import http.client
import logging
import socket
import time
import urllib.error
import urllib.request
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Sequence

logger = logging.getLogger(__name__)

USER_AGENT = "netpulse/0.1"


@dataclass(slots=True, frozen=True)
class ProbeOutcome:
    success: bool
    latency_ms: Optional[float]
    error: Optional[str] = None


@dataclass(slots=True, frozen=True)
class ProbeResult:
    endpoint: str
    latency_ms: Optional[float]
    success: bool
    issued_at_ms: float
    error: Optional[str] = None


Probe = Callable[[str], Awaitable[ProbeOutcome]]


def wall_clock_ms() -> float:
    return time.time() * 1000.0


def monotonic_ms() -> float:
    """Clock for elapsed time and window arithmetic; immune to wall-clock steps."""
    return time.monotonic() * 1000.0


def http_probe(url: str, timeout_ms: int) -> ProbeOutcome:
    """Blocking GET; success means the HTTP exchange completed at all.

    Status codes are deliberately ignored: a 404 or 500 still proves the
    network path works. Only transport failures (DNS, refused, reset,
    timeout) count as failure.
    """
    req = urllib.request.Request(
        url,
        headers={"Cache-Control": "no-cache", "Pragma": "no-cache", "User-Agent": USER_AGENT},
    )
    start = time.perf_counter()
    try:
        with urllib.request.urlopen(req, timeout=timeout_ms / 1000.0):
            pass
    except urllib.error.HTTPError as e:
        e.close()
    except (urllib.error.URLError, http.client.HTTPException, OSError) as e:
        reason = getattr(e, "reason", e)
        return ProbeOutcome(success=False, latency_ms=None, error=str(reason))
    latency = round((time.perf_counter() - start) * 1000.0)
    return ProbeOutcome(success=True, latency_ms=float(latency))


class ProbePool:
    """Blocking probe calls on a private set of worker threads.

    Each pool owns its executor, so a slow quality endpoint cannot starve
    reachability probes. The timeout counts from the moment a worker picks
    the call up; time spent waiting for a free worker is not charged to the
    endpoint.
    """

    def __init__(
        self,
        workers: int,
        timeout_ms: int = 3000,
        probe_fn: Callable[[str, int], ProbeOutcome] = http_probe,
        name: str = "probe",
    ) -> None:
        self.timeout_ms = timeout_ms
        self._probe_fn = probe_fn
        self._executor = ThreadPoolExecutor(max_workers=max(1, workers), thread_name_prefix=f"netpulse-{name}")

    async def __call__(self, url: str) -> ProbeOutcome:
        loop = asyncio.get_running_loop()
        started = loop.create_future()

        def work() -> ProbeOutcome:
            try:
                loop.call_soon_threadsafe(_mark_started, started)
            except RuntimeError:
                pass  # loop already closed
            return self._probe_fn(url, self.timeout_ms)

        done = loop.run_in_executor(self._executor, work)
        done.add_done_callback(lambda _: _mark_started(started))
        await started
        if done.cancelled():
            return ProbeOutcome(success=False, latency_ms=None, error="cancelled before start")
        try:
            return await asyncio.wait_for(done, timeout=self.timeout_ms / 1000.0)
        except asyncio.TimeoutError:
            return ProbeOutcome(success=False, latency_ms=None, error="timed out")

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)


def _mark_started(fut: asyncio.Future) -> None:
    if not fut.done():
        fut.set_result(None)


def native_online(host: str = "1.1.1.1", port: int = 53) -> bool:
    """Host-level link flag: is there a route out at all?

    Connecting a UDP socket sends no packets; it only asks the kernel for a
    route, so this is as cheap (and as unreliable) as a browser's onLine.
    """
    s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        s.connect((host, port))
        return True
    except OSError:
        return False
    finally:
        s.close()


class ReachabilityProber:
    def __init__(
        self,
        endpoints: Sequence[str],
        probe: Probe,
        clock: Callable[[], float] = monotonic_ms,
        timeout_ms: Optional[int] = None,
    ) -> None:
        self.endpoints = list(endpoints)
        self._probe = probe
        self._clock = clock
        # None: the probe bounds itself (see ProbePool)
        self._timeout_s = timeout_ms / 1000.0 if timeout_ms else None

    async def probe_all(self) -> List[ProbeResult]:
        """Probe every endpoint concurrently and wait for all of them."""
        issued_at = self._clock()
        return list(await asyncio.gather(*(self._probe_one(e, issued_at) for e in self.endpoints)))

    async def _probe_one(self, endpoint: str, issued_at: float) -> ProbeResult:
        try:
            outcome = await asyncio.wait_for(self._probe(endpoint), timeout=self._timeout_s)
        except asyncio.TimeoutError:
            outcome = ProbeOutcome(success=False, latency_ms=None, error="timed out")
        except Exception as e:
            logger.debug("probe_error", extra={"extra_fields": {"endpoint": endpoint, "error": str(e)}})
            outcome = ProbeOutcome(success=False, latency_ms=None, error=str(e) or type(e).__name__)
        return ProbeResult(
            endpoint=endpoint,
            latency_ms=outcome.latency_ms if outcome.success else None,
            success=outcome.success,
            issued_at_ms=issued_at,
            error=outcome.error,
        )


def any_success(results: Sequence[ProbeResult]) -> bool:
    return any(r.success for r in results)


__all__ = [
    "ProbeOutcome",
    "ProbeResult",
    "Probe",
    "ReachabilityProber",
    "any_success",
    "http_probe",
    "native_online",
    "ProbePool",
    "monotonic_ms",
    "wall_clock_ms",
]
