"""In-memory rate limiter used to throttle credential guessing."""

from __future__ import annotations

import threading
import time
from collections import deque


class InMemoryRateLimiter:
    """Sliding-window attempt counter per key (e.g. client address + e-mail).

    State lives in process memory only; it is reset on restart and not
    shared between workers. Keys with no attempt left in the window are
    dropped, every `sweep_every` calls for keys that are not seen again.
    """

    def __init__(self, clock=time.monotonic, sweep_every: int = 256):
        self._hits: dict[str, deque] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self._sweep_every = sweep_every
        self._calls = 0

    def __len__(self) -> int:
        return len(self._hits)

    def _sweep(self, cutoff: float) -> None:
        stale = [k for k, hits in self._hits.items() if not hits or hits[-1] <= cutoff]
        for k in stale:
            del self._hits[k]

    def allow(self, key: str, max_requests: int, window_seconds: int) -> tuple[bool, int]:
        """Record an attempt; return `(allowed, retry_after_seconds)`."""
        now = self._clock()
        cutoff = now - window_seconds
        with self._lock:
            self._calls += 1
            if self._calls % self._sweep_every == 0:
                self._sweep(cutoff)
            hits = self._hits.get(key)
            if hits is None:
                hits = deque()
            while hits and hits[0] <= cutoff:
                hits.popleft()
            if hits and len(hits) >= max_requests:
                self._hits[key] = hits
                return False, max(1, int(window_seconds - (now - hits[0])))
            if max_requests <= 0:
                self._hits.pop(key, None)
                return False, max(1, int(window_seconds))
            hits.append(now)
            self._hits[key] = hits
        return True, 0

    def reset(self, key: str) -> None:
        """Forget a key's attempts, e.g. after a successful login."""
        with self._lock:
            self._hits.pop(key, None)
