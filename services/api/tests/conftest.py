"""
Shared fixtures: a millisecond clock and an in-memory stand-in for the slice of Redis
the rate limiter uses (sorted sets, EXPIRE, MULTI/EXEC pipelines).
"""
import sys
from pathlib import Path

import pytest
import redis

_root = Path(__file__).resolve().parent.parent
if str(_root) not in sys.path:
    sys.path.insert(0, str(_root))


class FakeClock:
    def __init__(self, start_ms: int = 1_700_000_000_000):
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(seconds * 1000)


def _parse_bound(value) -> tuple[float, bool]:
    """Redis score bound -> (number, exclusive)."""
    if isinstance(value, str):
        if value == "-inf":
            return float("-inf"), False
        if value == "+inf":
            return float("inf"), False
        if value.startswith("("):
            return float(value[1:]), True
        return float(value), False
    return float(value), False


class FakeRedis:
    """Sorted sets with TTLs, keyed off a FakeClock. Set `fail` or `null_result` to inject faults."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.zsets: dict[str, dict[str, float]] = {}
        self.expires_at: dict[str, int] = {}
        self.fail = False
        self.null_result = False
        self.executed: list[tuple[bool, list[str]]] = []

    def _expire_stale(self, key: str) -> None:
        deadline = self.expires_at.get(key)
        if deadline is not None and self.clock() >= deadline:
            self.zsets.pop(key, None)
            self.expires_at.pop(key, None)

    def zremrangebyscore(self, key, min_score, max_score) -> int:
        self._expire_stale(key)
        lo, lo_ex = _parse_bound(min_score)
        hi, hi_ex = _parse_bound(max_score)
        members = self.zsets.get(key, {})
        doomed = [
            m for m, s in members.items()
            if (s > lo if lo_ex else s >= lo) and (s < hi if hi_ex else s <= hi)
        ]
        for m in doomed:
            del members[m]
        return len(doomed)

    def zcard(self, key) -> int:
        self._expire_stale(key)
        return len(self.zsets.get(key, {}))

    def zadd(self, key, mapping: dict) -> int:
        self._expire_stale(key)
        members = self.zsets.setdefault(key, {})
        added = sum(1 for m in mapping if m not in members)
        members.update({m: float(s) for m, s in mapping.items()})
        return added

    def expire(self, key, seconds: int) -> bool:
        if key not in self.zsets:
            return False
        self.expires_at[key] = self.clock() + seconds * 1000
        return True

    def pipeline(self, transaction: bool = True) -> "FakePipeline":
        return FakePipeline(self, transaction)

    def ping(self) -> bool:
        if self.fail:
            raise redis.ConnectionError("Connection refused")
        return True

    def close(self) -> None:
        pass


class FakePipeline:
    def __init__(self, backend: FakeRedis, transaction: bool):
        self.backend = backend
        self.transaction = transaction
        self.commands: list[tuple[str, tuple]] = []

    def __getattr__(self, name):
        if name not in ("zremrangebyscore", "zcard", "zadd", "expire"):
            raise AttributeError(name)

        def queue(*args):
            self.commands.append((name, args))
            return self

        return queue

    def execute(self):
        self.backend.executed.append((self.transaction, [name for name, _ in self.commands]))
        if self.backend.fail:
            raise redis.ConnectionError("Error 111 connecting to localhost:6379. Connection refused.")
        if self.backend.null_result:
            return None
        return [getattr(self.backend, name)(*args) for name, args in self.commands]


class FakeStore:
    """Duck-typed StoreHandle around a FakeRedis."""

    configured = True

    def __init__(self, backend: FakeRedis | None):
        self.backend = backend

    def client(self):
        return self.backend

    def ping(self) -> str:
        try:
            self.backend.ping()
            return "ok"
        except redis.RedisError as e:
            return str(e)

    def close(self) -> None:
        pass


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_redis(clock) -> FakeRedis:
    return FakeRedis(clock)


@pytest.fixture
def fake_store(fake_redis) -> FakeStore:
    return FakeStore(fake_redis)
