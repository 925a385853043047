import json
import logging

from netpulse.config import Config, LoggingConfig
from netpulse.engine import ConnectivityMonitor
from netpulse.logging_setup import JsonEventFormatter, KeyValueFormatter, MonotonicStamp, setup_logging
from netpulse.probes import ProbeOutcome
from netpulse.quality import QualityMetrics
from netpulse.status import prometheus_lines, write_prometheus, write_status
from netpulse.timeseries import LatencySample


async def _probe(url):
    return ProbeOutcome(success=True, latency_ms=10.0)


def make_monitor(tmp_path, clock):
    cfg = Config.from_dict({
        "paths": {"status_json": str(tmp_path / "run" / "status.json")},
        "features": {"prometheus_textfile": str(tmp_path / "prom" / "netpulse.prom")},
    })
    mon = ConnectivityMonitor(cfg, initial_online=True, probe=_probe, clock=clock)
    mon.timeseries.insert(LatencySample("https://a.example/", 42.0, clock.now))
    mon.quality = QualityMetrics(jitter_ms=3.5, packet_loss_percent=20, computed_at_ms=clock.now)
    mon.handle_native_event(False)
    return cfg, mon


def test_write_status_json(tmp_path, clock):
    cfg, mon = make_monitor(tmp_path, clock)
    assert write_status(cfg, mon.snapshot()) is True
    data = json.loads((tmp_path / "run" / "status.json").read_text())
    assert data["is_online"] is False
    assert data["jitter_ms"] == 3.5
    assert data["connection_log"][0]["status"] == "Disconnected"
    assert data["connection_log"][0]["session_uptime_at_disconnect"] == "0h 0m 0s"
    assert data["latency_series"]["https://a.example/"] == [[clock.now, 42.0]]
    assert data["debug_log"][0]["message"] == "Native signal: offline"


def test_write_status_failure_is_logged_not_raised(tmp_path, clock, caplog):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    cfg, mon = make_monitor(tmp_path, clock)
    cfg.paths.status_json = str(blocker / "status.json")
    with caplog.at_level(logging.WARNING):
        assert write_status(cfg, mon.snapshot()) is False
    assert "write_status_failed" in caplog.text


def test_prometheus_textfile(tmp_path, clock):
    cfg, mon = make_monitor(tmp_path, clock)
    write_prometheus(cfg, mon.snapshot())
    text = (tmp_path / "prom" / "netpulse.prom").read_text()
    assert "netpulse_online 0\n" in text
    assert "netpulse_packet_loss_percent 20\n" in text
    assert 'netpulse_latency_ms{endpoint="https://a.example/"} 42.0' in text


def test_prometheus_skips_missing_quality(tmp_path, clock):
    cfg, mon = make_monitor(tmp_path, clock)
    mon.quality = None
    lines = prometheus_lines(mon.snapshot())
    assert not any(line.startswith("netpulse_jitter_ms") for line in lines)


def _record(name="netpulse.state", msg="connectivity_changed", **extra):
    record = logging.LogRecord(name, logging.INFO, __file__, 1, msg, None, None)
    record.created = 1_700_000_000.25
    record.extra_fields = extra
    return record


def test_json_formatter_flattens_event_and_extra_fields():
    record = _record(online=False, source="probe", event="shadowed")
    MonotonicStamp().filter(record)
    out = json.loads(JsonEventFormatter().format(record))
    assert out["event"] == "connectivity_changed"
    assert out["component"] == "state"
    assert out["level"] == "info"
    assert out["ts"] == "2023-11-14T22:13:20.250Z"
    assert isinstance(out["mono_ms"], float)
    assert out["online"] is False
    assert out["source"] == "probe"


def test_key_value_formatter_for_terminals():
    line = KeyValueFormatter().format(_record(name="netpulse", msg="monitor_stopped", kind="quality"))
    assert line == '2023-11-14T22:13:20.250Z info    - monitor_stopped kind="quality"'


def test_setup_logging_file_destination(tmp_path):
    dest = tmp_path / "netpulse.log"
    setup_logging(LoggingConfig(level="debug", json=True, destination=str(dest)))
    try:
        logging.getLogger("netpulse.scheduler").info("hello", extra={"extra_fields": {"k": 1}})
        for h in logging.getLogger().handlers:
            h.flush()
        line = json.loads(dest.read_text().strip().splitlines()[-1])
        assert line["k"] == 1
        assert line["component"] == "scheduler"
        assert line["mono_ms"] is not None
    finally:
        for h in logging.getLogger().handlers:
            h.close()
        logging.getLogger().handlers.clear()
