"""Keyed store with per-key time-to-live.

Holds staged registrations and rate-limit counters. Reads after a key's TTL
has elapsed behave exactly as if the key had been deleted.
"""

import json
import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

import redis

from exam_portal.config import config
from exam_portal.models.database import get_redis

logger = logging.getLogger(__name__)


class KeyedExpiringStore(Protocol):
    """Port for the expiring store used by the registration workflow."""

    def put(self, key: str, value: Dict[str, Any], ttl_seconds: int) -> None:
        """Store ``value`` under ``key`` for ``ttl_seconds``, replacing any old value."""
        ...

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        """Return the live value for ``key`` or None."""
        ...

    def replace(self, key: str, value: Dict[str, Any]) -> bool:
        """Overwrite a live key keeping its remaining TTL. False if the key is gone."""
        ...

    def delete(self, key: str) -> None:
        ...

    def incr(self, key: str, window_seconds: int) -> int:
        """Increment a counter; the window starts with the first increment."""
        ...

    def counter(self, key: str) -> int:
        """Current value of a live counter, 0 when absent."""
        ...


class RedisExpiringStore:
    """
    KeyedExpiringStore backed by Redis.

    Values are stored as JSON strings with SETEX so Redis enforces expiry;
    counters use INCR with EXPIRE NX so the window is fixed at the first send.
    """

    def __init__(self, redis_client: redis.Redis):
        """
        Initialize the store with a Redis backend.

        Args:
            redis_client: Redis client instance (from dependency injection),
                created with decode_responses=True
        """
        self.redis_client = redis_client

    def put(self, key: str, value: Dict[str, Any], ttl_seconds: int) -> None:
        try:
            self.redis_client.setex(key, ttl_seconds, json.dumps(value))
        except redis.RedisError as e:
            logger.error(f"Redis error writing key {key}: {e}")
            raise

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            raw = self.redis_client.get(key)
        except redis.RedisError as e:
            logger.error(f"Redis error reading key {key}: {e}")
            raise

        if not raw:
            return None

        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.error(f"Corrupted value for key {key}, treating as absent")
            return None

    def replace(self, key: str, value: Dict[str, Any]) -> bool:
        try:
            # XX: only when the key is still live, KEEPTTL: leave the expiry alone
            return bool(
                self.redis_client.set(key, json.dumps(value), xx=True, keepttl=True)
            )
        except redis.RedisError as e:
            logger.error(f"Redis error replacing key {key}: {e}")
            raise

    def delete(self, key: str) -> None:
        try:
            self.redis_client.delete(key)
        except redis.RedisError as e:
            logger.error(f"Redis error deleting key {key}: {e}")
            raise

    def incr(self, key: str, window_seconds: int) -> int:
        try:
            pipe = self.redis_client.pipeline(transaction=True)
            pipe.incr(key)
            pipe.expire(key, window_seconds, nx=True)
            count, _ = pipe.execute()
            return int(count)
        except redis.RedisError as e:
            logger.error(f"Redis error incrementing counter {key}: {e}")
            raise

    def counter(self, key: str) -> int:
        try:
            raw = self.redis_client.get(key)
        except redis.RedisError as e:
            logger.error(f"Redis error reading counter {key}: {e}")
            raise
        return int(raw) if raw else 0


class InMemoryExpiringStore:
    """
    Process-local KeyedExpiringStore for development and tests.

    Values are kept JSON-encoded so callers observe the same copy semantics as
    with Redis. Expired entries are swept on every write; reads check expiry
    themselves so a late sweep never yields stale data.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        """
        Args:
            clock: Returns the current time in seconds; injectable for tests
        """
        self._clock = clock
        self._entries: Dict[str, Tuple[float, str]] = {}
        self._lock = threading.Lock()

    def _live(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, raw = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return raw

    def _sweep(self) -> None:
        now = self._clock()
        expired = [k for k, (exp, _) in self._entries.items() if now >= exp]
        for key in expired:
            del self._entries[key]

    def put(self, key: str, value: Dict[str, Any], ttl_seconds: int) -> None:
        with self._lock:
            self._sweep()
            self._entries[key] = (self._clock() + ttl_seconds, json.dumps(value))

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            raw = self._live(key)
        return json.loads(raw) if raw is not None else None

    def replace(self, key: str, value: Dict[str, Any]) -> bool:
        with self._lock:
            if self._live(key) is None:
                return False
            expires_at, _ = self._entries[key]
            self._entries[key] = (expires_at, json.dumps(value))
            return True

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def incr(self, key: str, window_seconds: int) -> int:
        with self._lock:
            self._sweep()
            raw = self._live(key)
            if raw is None:
                self._entries[key] = (self._clock() + window_seconds, "1")
                return 1
            expires_at, _ = self._entries[key]
            count = int(raw) + 1
            self._entries[key] = (expires_at, str(count))
            return count

    def counter(self, key: str) -> int:
        with self._lock:
            raw = self._live(key)
        return int(raw) if raw is not None else 0

    def __len__(self) -> int:
        with self._lock:
            self._sweep()
            return len(self._entries)


_memory_store = InMemoryExpiringStore()


def get_stage_store() -> KeyedExpiringStore:
    """FastAPI dependency returning the configured expiring store."""
    if config["stage_store"] == "memory":
        return _memory_store
    return RedisExpiringStore(get_redis())
