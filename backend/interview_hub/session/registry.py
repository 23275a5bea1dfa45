from __future__ import annotations

import time
from dataclasses import dataclass, replace
from threading import Lock
from typing import Any, Callable


@dataclass
class CallSessionEntry:
    call_id: str
    user_id: str
    controller: Any
    opened_at: float
    last_seen: float
    active: bool = True


class CallSessionRegistry:
    """Controllers currently handed out, one per (call, participant).

    Released entries stay visible until ``cleanup_inactive`` drops them.
    """

    def __init__(self, clock: Callable[[], float] | None = None):
        self._clock = clock or time.monotonic
        self._lock = Lock()
        self._entries: dict[tuple[str, str], CallSessionEntry] = {}

    def register(self, call_id: str, user_id: str, controller) -> CallSessionEntry:
        now = self._clock()
        entry = CallSessionEntry(call_id, user_id, controller, opened_at=now, last_seen=now)
        with self._lock:
            self._entries[(call_id, user_id)] = entry
        return replace(entry)

    def touch(self, call_id: str, user_id: str) -> None:
        with self._lock:
            entry = self._entries.get((call_id, user_id))
            if entry is not None:
                entry.last_seen = self._clock()

    def mark_inactive(self, call_id: str, user_id: str) -> None:
        with self._lock:
            entry = self._entries.get((call_id, user_id))
            if entry is not None:
                entry.active = False
                entry.last_seen = self._clock()

    def get(self, call_id: str, user_id: str) -> CallSessionEntry | None:
        with self._lock:
            entry = self._entries.get((call_id, user_id))
            return replace(entry) if entry is not None else None

    def active_count(self) -> int:
        with self._lock:
            return sum(1 for entry in self._entries.values() if entry.active)

    def cleanup_inactive(self, ttl_sec: float) -> int:
        cutoff = self._clock() - float(ttl_sec)
        with self._lock:
            stale = [key for key, entry in self._entries.items() if not entry.active and entry.last_seen <= cutoff]
            for key in stale:
                del self._entries[key]
        return len(stale)


call_session_registry = CallSessionRegistry()
