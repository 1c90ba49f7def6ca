from typing import Protocol


class RequestThrottle(Protocol):
    def hit(self, key: str, limit: int, window_seconds: int) -> int:
        """Record one request for ``key``; returns seconds to wait, 0 when allowed."""
        ...
