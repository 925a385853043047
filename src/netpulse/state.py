from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .logs import ConnectionLog, ConnectionLogEntry, ConnectionStatus
from .uptime import UptimeClock

logger = logging.getLogger(__name__)


class Source:
    NATIVE = "native"
    PROBE = "probe"


@dataclass(slots=True)
class ConnectivityState:
    is_online: bool
    session_start_ms: Optional[float] = None
    clock_running: bool = False


class StateInferenceEngine:
    """Single writer of ``ConnectivityState``.

    Native link events and reachability aggregates both land in
    ``transition``; re-asserting the current state does nothing.
    """

    def __init__(
        self,
        initial_online: bool,
        uptime: UptimeClock,
        connection_log: ConnectionLog,
        clock: Callable[[], float],
    ) -> None:
        self._uptime = uptime
        self._log = connection_log
        self._clock = clock
        self.state = ConnectivityState(is_online=initial_online)
        if initial_online:
            self._uptime.start()
        self._sync()

    @property
    def is_online(self) -> bool:
        return self.state.is_online

    def on_native_event(self, online: bool) -> bool:
        return self.transition(online, Source.NATIVE)

    def on_reachability(self, reachable: bool) -> bool:
        return self.transition(reachable, Source.PROBE)

    def transition(self, online: bool, source: str) -> bool:
        """Move to ``online``; returns True only on a genuine edge."""
        if online == self.state.is_online:
            return False
        now = self._clock()
        if online:
            self._uptime.start()
            entry = ConnectionLogEntry(timestamp_ms=now, status=ConnectionStatus.CONNECTED)
        else:
            self._uptime.stop()
            entry = ConnectionLogEntry(
                timestamp_ms=now,
                status=ConnectionStatus.DISCONNECTED,
                session_uptime_at_disconnect=self._uptime.elapsed_label(),
            )
        self.state.is_online = online
        self._sync()
        self._log.append(entry)
        logger.info(
            "connectivity_changed",
            extra={
                "extra_fields": {
                    "online": online,
                    "source": source,
                    "uptime": self._uptime.elapsed_label(),
                }
            },
        )
        return True

    def halt(self) -> None:
        """Freeze the session clock at teardown without recording an edge."""
        self._uptime.stop()
        self._sync()

    def _sync(self) -> None:
        self.state.session_start_ms = self._uptime.session_start_ms
        self.state.clock_running = self._uptime.running


__all__ = ["ConnectivityState", "StateInferenceEngine", "Source"]
