from __future__ import annotations

from typing import Callable, Optional

ZERO_LABEL = "0h 0m 0s"


def format_elapsed(elapsed_ms: float) -> str:
    total = max(0, int(elapsed_ms // 1000))
    hours = total // 3600
    minutes = (total % 3600) // 60
    seconds = total % 60
    return f"{hours}h {minutes}m {seconds}s"


class UptimeClock:
    """Session clock that only advances while running.

    The label is recomputed on ``tick()``. ``stop()`` takes a final reading
    and keeps ``session_start`` so a reconnect continues the same session.
    """

    def __init__(self, clock: Callable[[], float]) -> None:
        self._clock = clock
        self.session_start_ms: Optional[float] = None
        self.running = False
        self._label = ZERO_LABEL

    def start(self) -> None:
        if self.running:
            return
        if self.session_start_ms is None:
            self.session_start_ms = self._clock()
        self.running = True
        self.tick()

    def stop(self) -> None:
        if not self.running:
            return
        self.tick()
        self.running = False

    def tick(self) -> None:
        if not self.running or self.session_start_ms is None:
            return
        self._label = format_elapsed(self._clock() - self.session_start_ms)

    def elapsed_label(self) -> str:
        return self._label


__all__ = ["UptimeClock", "format_elapsed"]
