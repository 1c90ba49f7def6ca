import threading
import time
from collections import deque
from typing import Callable, Deque, Dict

from ...application.ports.rate_limiter import RequestThrottle


class InMemoryRequestThrottle(RequestThrottle):
    """Sliding-window throttle for a single process."""

    def __init__(self, clock: Callable[[], float] = time.monotonic, sweep_interval: float = 60.0) -> None:
        self._store: Dict[str, Deque[float]] = {}
        self._expires: Dict[str, float] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._next_sweep = clock() + sweep_interval

    def hit(self, key: str, limit: int, window_seconds: int) -> int:
        now = self._clock()
        window_start = now - window_seconds
        with self._lock:
            if now >= self._next_sweep:
                self._sweep(now)
            times = self._store.setdefault(key, deque())
            # prune
            while times and times[0] <= window_start:
                times.popleft()
            if len(times) >= limit:
                return max(1, int(times[0] + window_seconds - now + 0.999))
            times.append(now)
            self._expires[key] = now + window_seconds
            return 0

    def _sweep(self, now: float) -> None:
        # drop keys whose whole window has passed
        for key in [k for k, until in self._expires.items() if until <= now]:
            self._store.pop(key, None)
            self._expires.pop(key, None)
        self._next_sweep = now + self._sweep_interval
