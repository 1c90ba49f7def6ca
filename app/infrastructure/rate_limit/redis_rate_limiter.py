import redis

from ...application.ports.rate_limiter import RequestThrottle


class RedisRequestThrottle(RequestThrottle):
    """Fixed-window throttle shared between workers."""

    def __init__(self, url: str = None, prefix: str = "auth:rl:", client=None) -> None:
        if client is None:
            if not url:
                raise ValueError("Either a redis URL or a client is required")
            client = redis.Redis.from_url(url)
        self.client = client
        self.prefix = prefix

    def hit(self, key: str, limit: int, window_seconds: int) -> int:
        rk = f"{self.prefix}{key}:{window_seconds}"
        # INCR + EXPIRE NX keeps the window anchored at the first request
        pipe = self.client.pipeline()
        pipe.incr(rk, 1)
        pipe.expire(rk, window_seconds, nx=True)
        pipe.ttl(rk)
        count, _, ttl = pipe.execute()
        if int(count) <= int(limit):
            return 0
        return int(ttl) if ttl and int(ttl) > 0 else window_seconds
