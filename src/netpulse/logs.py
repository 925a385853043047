from __future__ import annotations

import enum
from collections import deque
from dataclasses import dataclass
from typing import Deque, Optional, Tuple


class ConnectionStatus(str, enum.Enum):
    CONNECTED = "Connected"
    DISCONNECTED = "Disconnected"


@dataclass(slots=True, frozen=True)
class ConnectionLogEntry:
    timestamp_ms: float
    status: ConnectionStatus
    session_uptime_at_disconnect: Optional[str] = None

    def time_ago(self, now_ms: float) -> str:
        return format_time_ago(now_ms - self.timestamp_ms)


@dataclass(slots=True, frozen=True)
class DebugLogEntry:
    timestamp_ms: float
    message: str


def format_time_ago(delta_ms: float) -> str:
    seconds = max(0, int(delta_ms // 1000))
    if seconds < 60:
        return f"{seconds} seconds ago"
    if seconds < 3600:
        return f"{seconds // 60} minutes ago"
    if seconds < 86400:
        return f"{seconds // 3600} hours ago"
    return f"{seconds // 86400} days ago"


class ConnectionLog:
    """Newest-first transition log; the oldest entry falls off past ``cap``."""

    def __init__(self, cap: int = 50) -> None:
        self.cap = cap
        self._entries: Deque[ConnectionLogEntry] = deque(maxlen=cap)

    def __len__(self) -> int:
        return len(self._entries)

    def append(self, entry: ConnectionLogEntry) -> None:
        # appendleft on a full bounded deque discards from the right (oldest)
        self._entries.appendleft(entry)

    def entries(self) -> Tuple[ConnectionLogEntry, ...]:
        return tuple(self._entries)


class DebugViewMode(str, enum.Enum):
    LIVE = "live"
    FROZEN = "frozen"


class DebugLog:
    """Rolling debug trace with a freezable view.

    In LIVE mode the view is the last ``cap`` messages. Toggling into FROZEN
    snapshots that view; messages keep landing in the live buffer but the view
    holds still until toggled back, at which point the current live buffer is
    shown again and the snapshot is discarded.
    """

    def __init__(self, cap: int = 5) -> None:
        self.cap = cap
        self._live: Deque[DebugLogEntry] = deque(maxlen=cap)
        self._mode = DebugViewMode.LIVE
        self._snapshot: Tuple[DebugLogEntry, ...] = ()

    @property
    def mode(self) -> DebugViewMode:
        return self._mode

    @property
    def expanded(self) -> bool:
        return self._mode is DebugViewMode.FROZEN

    def append(self, entry: DebugLogEntry) -> None:
        self._live.append(entry)

    def live(self) -> Tuple[DebugLogEntry, ...]:
        return tuple(self._live)

    def view(self) -> Tuple[DebugLogEntry, ...]:
        if self._mode is DebugViewMode.FROZEN:
            return self._snapshot
        return tuple(self._live)

    def toggle_expanded(self) -> bool:
        if self._mode is DebugViewMode.LIVE:
            self._snapshot = tuple(self._live)
            self._mode = DebugViewMode.FROZEN
        else:
            self._snapshot = ()
            self._mode = DebugViewMode.LIVE
        return self.expanded


__all__ = [
    "ConnectionStatus",
    "ConnectionLogEntry",
    "DebugLogEntry",
    "ConnectionLog",
    "DebugLog",
    "DebugViewMode",
    "format_time_ago",
]
