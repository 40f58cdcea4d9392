"""Distributed rate limiting by key (e.g. scope + client IP). Sliding window over a Redis sorted set.

Each key holds one marker per attempt, scored by arrival time in ms. A check prunes
markers older than the window, counts the rest, records the current attempt and
refreshes the key TTL in a single MULTI/EXEC, so concurrent instances never admit
past the limit on a stale count. When Redis is unavailable the check fails open.
"""
import logging
import time
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass

import redis

from gatekeep.settings import settings

logger = logging.getLogger("gatekeep.rate_limit")

UNKNOWN_CLIENT = "unknown"
# Checked in order; x-forwarded-for contributes only its first hop.
IDENTITY_HEADERS = ("x-forwarded-for", "x-real-ip", "cf-connecting-ip")


@dataclass(frozen=True)
class RateLimitPolicy:
    max_requests: int
    window_seconds: int


def default_policy() -> RateLimitPolicy:
    """Policy for callers that do not pass one, from RATE_LIMIT_DEFAULT_* settings."""
    return RateLimitPolicy(
        max_requests=settings.RATE_LIMIT_DEFAULT_MAX_REQUESTS,
        window_seconds=settings.RATE_LIMIT_DEFAULT_WINDOW_SECONDS,
    )


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of one admission check."""

    admitted: bool
    remaining: int
    reset_in_seconds: int
    limit: int
    degraded: bool = False  # True when the store could not be consulted (fail open)

    def headers(self) -> dict[str, str]:
        out = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_in_seconds),
        }
        if not self.admitted:
            out["Retry-After"] = str(self.reset_in_seconds)
        return out


def rate_limit_key(scope: str, identity: str) -> str:
    return f"ratelimit:{scope}:{identity}"


def client_identity(headers: Mapping[str, str], peer: str | None = None) -> str:
    """
    Best-effort caller identity from proxy headers: first hop of x-forwarded-for,
    then x-real-ip, then cf-connecting-ip, then the socket peer, else "unknown".
    """
    lowered: dict[str, str] = {}
    for k, v in headers.items():
        # Repeated header lines: the first one wins, as with Headers.get().
        lowered.setdefault(k.lower(), v)
    for name in IDENTITY_HEADERS:
        value = lowered.get(name) or ""
        if name == "x-forwarded-for":
            value = value.split(",")[0]
        value = value.strip()
        if value:
            return value
    return peer or UNKNOWN_CLIENT


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


class AdmissionController:
    """
    Sliding-window admission over a shared store. Holds no mutable state and takes no
    locks; per-key atomicity comes from the Redis transaction.

    `store` is the process-wide StoreHandle (anything with client() -> Redis | None)
    or a bare redis.Redis. `clock` returns wall-clock milliseconds.
    """

    def __init__(self, store, clock: Callable[[], int] | None = None):
        self._store = store
        self._clock = clock or _wall_clock_ms

    def _redis(self):
        if isinstance(self._store, redis.Redis):
            return self._store
        return self._store.client() if self._store is not None else None

    def check_and_record(self, key: str, policy: RateLimitPolicy | None = None) -> RateLimitResult:
        """
        Record one attempt for key and decide on the count seen before it.
        Exactly policy.max_requests attempts are admitted per rolling window.
        """
        if policy is None:
            policy = default_policy()
        now = self._clock()
        window_start = now - policy.window_seconds * 1000
        try:
            r = self._redis()
            if r is None:
                logger.debug("rate limit store not configured key=%s; admitting", key)
                return self._fail_open(policy)
            pipe = r.pipeline(transaction=True)
            pipe.zremrangebyscore(key, "-inf", f"({window_start}")
            pipe.zcard(key)
            pipe.zadd(key, {f"{now}-{uuid.uuid4().hex}": now})
            pipe.expire(key, policy.window_seconds)
            results = pipe.execute()
            current_count = _count_from(results)
        except Exception as e:
            logger.warning("rate limit check failed key=%s; admitting: %s", key, e)
            return self._fail_open(policy)

        if current_count is None:
            logger.warning("rate limit store returned malformed result key=%s; admitting: %r", key, results)
            return self._fail_open(policy)

        return RateLimitResult(
            admitted=current_count < policy.max_requests,
            remaining=max(0, policy.max_requests - current_count - 1),
            reset_in_seconds=policy.window_seconds,
            limit=policy.max_requests,
        )

    @staticmethod
    def _fail_open(policy: RateLimitPolicy) -> RateLimitResult:
        return RateLimitResult(
            admitted=True,
            remaining=max(0, policy.max_requests - 1),
            reset_in_seconds=policy.window_seconds,
            limit=policy.max_requests,
            degraded=True,
        )


def _count_from(results) -> int | None:
    """ZCARD reply from the pipeline results (second command), or None if unusable."""
    if not isinstance(results, (list, tuple)) or len(results) < 2:
        return None
    count = results[1]
    if isinstance(count, bool) or not isinstance(count, int) or count < 0:
        return None
    return count
