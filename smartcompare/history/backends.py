"""Key-value storage backends for the price history store."""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import redis

from smartcompare.config import settings

logger = logging.getLogger(__name__)


class StorageBackend(ABC):
    """Minimal string key-value interface the history store persists through."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Read a value.

        Args:
            key: Storage key

        Returns:
            Stored string, or None if the key does not exist
        """
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Write a value, replacing any previous one."""
        pass

    def close(self) -> None:
        """Release any held connections."""


class InMemoryBackend(StorageBackend):
    """Process-local dict backend, used in tests and demo mode."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class RedisBackend(StorageBackend):
    """Durable backend storing the whole history document under one Redis key."""

    def __init__(self, redis_url: Optional[str] = None):
        self.redis_url = redis_url or settings.redis_url
        self._redis: Optional[redis.Redis] = None

    def _get_redis(self) -> redis.Redis:
        """Get or create Redis connection."""
        if self._redis is None:
            self._redis = redis.Redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
        return self._redis

    def get(self, key: str) -> Optional[str]:
        return self._get_redis().get(key)

    def set(self, key: str, value: str) -> None:
        self._get_redis().set(key, value)

    def close(self) -> None:
        if self._redis:
            self._redis.close()
            self._redis = None


def create_backend(kind: Optional[str] = None) -> StorageBackend:
    """
    Build the backend selected by configuration.

    Args:
        kind: "memory" or "redis" (defaults to settings.history_backend)

    Returns:
        StorageBackend instance
    """
    kind = (kind or settings.history_backend).lower()
    if kind == "redis":
        logger.info(f"Using Redis price history backend at {settings.redis_url}")
        return RedisBackend()
    if kind != "memory":
        logger.warning(f"Unknown history backend '{kind}', falling back to memory")
    return InMemoryBackend()
