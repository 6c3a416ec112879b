"""In-process fixed-window request limiter keyed by client identifier.

State lives in this process only: it is lost on restart and is not shared
between workers, so running N workers effectively multiplies the allowance
by N. Front the app with a shared store if that matters for a deployment.
"""
from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional


@dataclass
class RateWindow:
    count: int
    window_reset_at: float


class RateLimiter:
    """Allow at most ``max_requests`` per ``window_seconds`` for each client."""

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        name: str = "default",
        clock: Callable[[], float] = time.monotonic,
        prune_interval: float = 300.0,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_requests = int(max_requests)
        self.window_seconds = float(window_seconds)
        self.name = name
        self._clock = clock
        self._entries: Dict[str, RateWindow] = {}
        self._lock = threading.Lock()
        self._prune_interval = prune_interval
        self._last_prune = clock()

    def allow(self, client_id: str, now: Optional[float] = None) -> bool:
        now = self._clock() if now is None else now
        with self._lock:
            self._maybe_prune(now)
            entry = self._entries.get(client_id)
            if entry is None or now > entry.window_reset_at:
                self._entries[client_id] = RateWindow(count=1, window_reset_at=now + self.window_seconds)
                return True
            if entry.count < self.max_requests:
                entry.count += 1
                return True
            return False

    def retry_after(self, client_id: str, now: Optional[float] = None) -> int:
        """Seconds until the client's current window resets (0 if none is open)."""
        now = self._clock() if now is None else now
        with self._lock:
            entry = self._entries.get(client_id)
            if entry is None or now > entry.window_reset_at:
                return 0
            return max(1, math.ceil(entry.window_reset_at - now))

    def snapshot(self, client_id: str) -> Optional[RateWindow]:
        with self._lock:
            entry = self._entries.get(client_id)
            return RateWindow(entry.count, entry.window_reset_at) if entry else None

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def _maybe_prune(self, now: float) -> None:
        if now - self._last_prune < self._prune_interval:
            return
        expired = [key for key, entry in self._entries.items() if now > entry.window_reset_at]
        for key in expired:
            del self._entries[key]
        self._last_prune = now
