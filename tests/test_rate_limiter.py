from app.infrastructure.rate_limit.memory_rate_limiter import InMemoryRequestThrottle
from app.infrastructure.rate_limit.redis_rate_limiter import RedisRequestThrottle


class FakeTime:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_memory_throttle_allows_then_blocks():
    clock = FakeTime()
    rl = InMemoryRequestThrottle(clock=clock)
    assert rl.hit("k1", limit=2, window_seconds=60) == 0
    assert rl.hit("k1", limit=2, window_seconds=60) == 0
    assert rl.hit("k1", limit=2, window_seconds=60) == 60
    # other keys are independent
    assert rl.hit("k2", limit=2, window_seconds=60) == 0


def test_memory_throttle_window_slides():
    clock = FakeTime()
    rl = InMemoryRequestThrottle(clock=clock)
    rl.hit("k1", 2, 60)
    clock.now += 30
    rl.hit("k1", 2, 60)
    assert rl.hit("k1", 2, 60) == 30
    clock.now += 31
    assert rl.hit("k1", 2, 60) == 0


class FakePipe:
    def __init__(self, client):
        self.client = client
        self.ops = []

    def incr(self, k, n):
        self.ops.append(("incr", k, n))
        return self

    def expire(self, k, s, nx=False):
        self.ops.append(("expire", k, s))
        return self

    def ttl(self, k):
        self.ops.append(("ttl", k))
        return self

    def execute(self):
        results = []
        for op in self.ops:
            if op[0] == "incr":
                self.client.store[op[1]] = self.client.store.get(op[1], 0) + op[2]
                results.append(self.client.store[op[1]])
            elif op[0] == "expire":
                self.client.ttls.setdefault(op[1], op[2])
                results.append(True)
            else:
                results.append(self.client.ttls.get(op[1], -1))
        return results


class FakeRedis:
    def __init__(self):
        self.store = {}
        self.ttls = {}

    @classmethod
    def from_url(cls, url):
        return cls()

    def pipeline(self):
        return FakePipe(self)


def test_redis_throttle_with_fake_client():
    client = FakeRedis()
    rl = RedisRequestThrottle(client=client)
    assert rl.hit("k1", 2, 60) == 0
    assert rl.hit("k1", 2, 60) == 0
    assert rl.hit("k1", 2, 60) == 60
    assert client.store == {"auth:rl:k1:60": 3}


def test_redis_throttle_from_url(monkeypatch):
    from app.infrastructure.rate_limit import redis_rate_limiter as mod

    monkeypatch.setattr(mod.redis, "Redis", FakeRedis)
    rl = mod.RedisRequestThrottle(url="redis://fake")
    assert isinstance(rl.client, FakeRedis)
    assert rl.hit("k1", 1, 60) == 0
    assert rl.hit("k1", 1, 60) == 60


def test_memory_throttle_evicts_idle_keys():
    clock = FakeTime()
    rl = InMemoryRequestThrottle(clock=clock)
    for ip in ("1.1.1.1", "2.2.2.2", "3.3.3.3"):
        rl.hit(f"auth:{ip}", 5, 60)
    clock.now += 61
    rl.hit("auth:4.4.4.4", 5, 60)
    assert list(rl._store) == ["auth:4.4.4.4"]
