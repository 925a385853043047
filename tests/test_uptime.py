from netpulse.uptime import UptimeClock, format_elapsed


def test_format_elapsed():
    assert format_elapsed(0) == "0h 0m 0s"
    assert format_elapsed(3_723_999) == "1h 2m 3s"


def test_clock_only_advances_while_running(clock):
    up = UptimeClock(clock)
    up.tick()
    assert up.elapsed_label() == "0h 0m 0s"

    up.start()
    start = up.session_start_ms
    clock.advance(5_000)
    up.tick()
    assert up.elapsed_label() == "0h 0m 5s"

    up.stop()
    clock.advance(60_000)
    up.tick()
    assert up.elapsed_label() == "0h 0m 5s"
    assert up.session_start_ms == start


def test_restart_keeps_session_start(clock):
    up = UptimeClock(clock)
    up.start()
    start = up.session_start_ms
    up.start()
    assert up.session_start_ms == start
    up.stop()
    clock.advance(10_000)
    up.start()
    assert up.session_start_ms == start
    assert up.elapsed_label() == "0h 0m 10s"
