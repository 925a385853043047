import pytest


class FakeClock:
    """Millisecond clock the tests move by hand."""

    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock(1_000.0)


@pytest.fixture
def wall_clock():
    return FakeClock(1_700_000_000_000.0)
