import pytest

from netpulse.config import load_config, validate_config, Config


def test_load_defaults(tmp_path):
    cfg_file = tmp_path / "cfg.yml"
    cfg_file.write_text("window_ms: 10000\nlogs:\n  debug_log_cap: 8\nendpoints:\n  - https://a.example/\n")
    cfg = load_config(str(cfg_file))
    assert isinstance(cfg, Config)
    assert cfg.window_ms == 10000
    assert cfg.logs.debug_log_cap == 8
    assert cfg.logs.connection_log_cap == 50
    assert cfg.endpoints == ["https://a.example/"]
    assert cfg.burst_size == 5
    assert cfg.burst_latency_threshold_ms == 200.0


def test_empty_file_gives_reference_defaults(tmp_path):
    cfg_file = tmp_path / "cfg.yml"
    cfg_file.write_text("")
    cfg = load_config(cfg_file)
    assert len(cfg.endpoints) == 3
    assert cfg.reachability_interval_ms == 1000
    assert cfg.quality_interval_ms == 1000


@pytest.mark.parametrize(
    "overrides",
    [
        {"endpoints": []},
        {"window_ms": 0},
        {"burst_size": 0},
        {"reachability_interval_ms": 10},
        {"logs": {"connection_log_cap": 0}},
    ],
)
def test_validation_rejects(overrides):
    with pytest.raises(ValueError):
        validate_config(Config.from_dict(overrides))
