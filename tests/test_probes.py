import asyncio
import io
import threading
import time
import urllib.error

from netpulse import probes
from netpulse.probes import ProbeOutcome, ProbePool, ReachabilityProber, any_success, http_probe

ENDPOINTS = ["https://a.example/", "https://b.example/", "https://c.example/"]


def test_probes_fan_out_and_wait_for_all(clock):
    started = []
    finished = []

    async def probe(url):
        started.append(url)
        await asyncio.sleep(0.02 if url.startswith("https://a") else 0.0)
        finished.append(url)
        if url.startswith("https://a"):
            return ProbeOutcome(success=True, latency_ms=20.0)
        raise ConnectionRefusedError("refused")

    prober = ReachabilityProber(ENDPOINTS, probe, clock=clock)
    results = asyncio.run(prober.probe_all())

    assert sorted(started) == ENDPOINTS
    assert finished[-1] == "https://a.example/"
    assert [r.endpoint for r in results] == ENDPOINTS
    assert [r.success for r in results] == [True, False, False]
    assert results[1].latency_ms is None
    assert results[1].error == "refused"
    assert all(r.issued_at_ms == clock.now for r in results)
    assert any_success(results)


def test_hung_probe_times_out(clock):
    async def probe(url):
        await asyncio.sleep(10)

    prober = ReachabilityProber(ENDPOINTS[:1], probe, clock=clock, timeout_ms=20)
    (result,) = asyncio.run(prober.probe_all())
    assert result.success is False
    assert result.error == "timed out"
    assert not any_success([result])


def test_http_error_status_counts_as_reachable(monkeypatch):
    def fake_urlopen(req, timeout):
        raise urllib.error.HTTPError(req.full_url, 503, "Service Unavailable", {}, io.BytesIO(b""))

    monkeypatch.setattr(probes.urllib.request, "urlopen", fake_urlopen)
    outcome = http_probe("https://down.example/", timeout_ms=100)
    assert outcome.success is True
    assert outcome.latency_ms is not None


def test_transport_failure_is_not_reachable(monkeypatch):
    def fake_urlopen(req, timeout):
        raise urllib.error.URLError("Name or service not known")

    monkeypatch.setattr(probes.urllib.request, "urlopen", fake_urlopen)
    outcome = http_probe("https://nowhere.invalid/", timeout_ms=100)
    assert outcome == ProbeOutcome(success=False, latency_ms=None, error="Name or service not known")


def test_pool_timeout_starts_when_a_worker_picks_the_call_up():
    seen = []

    def slow_http(url, timeout_ms):
        time.sleep(0.2)
        seen.append((url, timeout_ms))
        return ProbeOutcome(success=True, latency_ms=200.0)

    pool = ProbePool(1, timeout_ms=300, probe_fn=slow_http, name="test")

    async def scenario():
        # one worker: the third call waits ~0.4s for its turn, longer than the timeout
        return await asyncio.gather(*(pool(u) for u in ENDPOINTS))

    try:
        outcomes = asyncio.run(scenario())
    finally:
        pool.shutdown()
    assert [o.success for o in outcomes] == [True, True, True]
    assert sorted(seen) == [(u, 300) for u in ENDPOINTS]


def test_pool_reports_a_hung_call_as_timed_out():
    release = threading.Event()

    def hung_http(url, timeout_ms):
        release.wait(2)
        return ProbeOutcome(success=True, latency_ms=1.0)

    pool = ProbePool(1, timeout_ms=50, probe_fn=hung_http, name="test")
    try:
        outcome = asyncio.run(pool("https://a.example/"))
    finally:
        release.set()
        pool.shutdown()
    assert outcome == ProbeOutcome(success=False, latency_ms=None, error="timed out")


def test_pools_do_not_share_workers():
    release = threading.Event()

    def blocking_http(url, timeout_ms):
        if "slow" in url:
            release.wait(2)
        return ProbeOutcome(success=True, latency_ms=1.0)

    busy = ProbePool(1, timeout_ms=1000, probe_fn=blocking_http, name="busy")
    free = ProbePool(1, timeout_ms=100, probe_fn=blocking_http, name="free")

    async def scenario():
        stuck = asyncio.ensure_future(busy("https://slow.example/"))
        await asyncio.sleep(0.02)
        outcome = await free("https://a.example/")
        release.set()
        await stuck
        return outcome

    try:
        outcome = asyncio.run(scenario())
    finally:
        release.set()
        busy.shutdown()
        free.shutdown()
    assert outcome.success is True


def test_monotonic_ms_ignores_wall_clock(monkeypatch):
    monkeypatch.setattr(probes.time, "monotonic", lambda: 12.5)
    monkeypatch.setattr(probes.time, "time", lambda: 0.0)
    assert probes.monotonic_ms() == 12_500.0
