"""Process-wide Redis handle for the rate-limit store. Lazy connect, explicit close.

The handle is owned by the process (see gatekeep.main) and injected into whatever
needs the store; nothing else builds Redis clients.
"""
import logging
import threading
from urllib.parse import urlsplit

import redis
from redis.backoff import NoBackoff
from redis.retry import Retry

logger = logging.getLogger("gatekeep.store")


def _redacted(url: str) -> str:
    """host:port/db of a Redis URL, without credentials, for logs."""
    parts = urlsplit(url)
    return f"{parts.hostname or 'localhost'}:{parts.port or 6379}{parts.path or ''}"


class StoreHandle:
    """Holds at most one redis.Redis client per process, created on first use."""

    def __init__(self, url: str | None, socket_timeout: float = 0.5):
        self._url = (url or "").strip() or None
        self._socket_timeout = socket_timeout
        self._client: redis.Redis | None = None
        self._lock = threading.Lock()

    @property
    def configured(self) -> bool:
        return self._url is not None

    def client(self) -> redis.Redis | None:
        """Return the shared client, or None when no REDIS_URL is configured."""
        if self._url is None:
            return None
        if self._client is not None:
            return self._client
        with self._lock:
            if self._client is None:
                self._client = redis.from_url(
                    self._url,
                    decode_responses=True,
                    socket_timeout=self._socket_timeout,
                    socket_connect_timeout=self._socket_timeout,
                    # Fail fast; a failed check is admitted, not retried.
                    retry=Retry(NoBackoff(), 0),
                )
                logger.info("store client created url=%s", _redacted(self._url))
        return self._client

    def ping(self) -> str:
        """Readiness check: 'ok', 'not_configured', or the error text."""
        r = self.client()
        if r is None:
            return "not_configured"
        try:
            r.ping()
            return "ok"
        except redis.RedisError as e:
            return str(e) or e.__class__.__name__

    def close(self) -> None:
        with self._lock:
            if self._client is None:
                return
            try:
                self._client.close()
                logger.info("store client closed")
            except redis.RedisError as e:
                logger.warning("store close failed: %s", e)
            finally:
                self._client = None
