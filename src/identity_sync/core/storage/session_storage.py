"""Key/value backends for the session cache.

Redis is used when configured and reachable; otherwise entries live in the
memory of the current process.
"""

from __future__ import annotations

import fnmatch
import json
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable
from typing import Any, TypeVar

from loguru import logger
from pydantic import BaseModel, ValidationError

from identity_sync.runtime.config.config_data import RedisConfig

T = TypeVar("T", bound=BaseModel)
R = TypeVar("R")


class SessionStorage(ABC):
    """Expiring storage of pydantic models under string keys."""

    @abstractmethod
    async def set(self, key: str, value: BaseModel, ttl_seconds: int) -> None:
        """Write ``value`` under ``key``, replacing any previous entry.

        Args:
            key: Storage key
            value: Model to serialize
            ttl_seconds: Seconds until the entry expires
        """

    @abstractmethod
    async def get(self, key: str, model_class: type[T]) -> T | None:
        """Read the entry under ``key`` as ``model_class``.

        Returns:
            The entry, or None when it is missing, expired or unreadable
        """

    @abstractmethod
    async def delete(self, key: str) -> None: ...

    @abstractmethod
    async def cleanup_expired(self) -> int:
        """Drop expired entries and return how many were dropped."""

    @abstractmethod
    async def list_keys(self, pattern: str) -> list[str]:
        """Live keys matching a glob pattern such as ``"user:*"``."""

    @abstractmethod
    def is_available(self) -> bool: ...

    async def close(self) -> None:
        """Release backend resources."""


class InMemorySessionStorage(SessionStorage):
    """Dictionary-backed storage, private to this process."""

    def __init__(self):
        self._entries: dict[str, tuple[float, dict[str, Any]]] = {}

    def _payload(self, key: str) -> dict[str, Any] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, payload = entry
        if time.time() > expires_at:
            del self._entries[key]
            return None
        return payload

    async def set(self, key: str, value: BaseModel, ttl_seconds: int) -> None:
        # Stored as plain JSON data so callers cannot mutate what we hold
        self._entries[key] = (time.time() + ttl_seconds, json.loads(value.model_dump_json()))

    async def get(self, key: str, model_class: type[T]) -> T | None:
        payload = self._payload(key)
        if payload is None:
            return None
        try:
            return model_class.model_validate(payload)
        except ValidationError:
            logger.warning("Dropping unreadable session entry {}", key)
            del self._entries[key]
            return None

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def cleanup_expired(self) -> int:
        now = time.time()
        expired = [key for key, (expires_at, _) in self._entries.items() if now > expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    async def list_keys(self, pattern: str) -> list[str]:
        matching = fnmatch.filter(list(self._entries), pattern)
        return [key for key in matching if self._payload(key) is not None]

    def is_available(self) -> bool:
        return True

    async def close(self) -> None:
        self._entries.clear()


class RedisSessionStorage(SessionStorage):
    """Storage on a ``redis.asyncio`` client; expiry is left to Redis."""

    def __init__(self, redis_client):
        self._redis = redis_client
        self._available = True

    async def _call(self, operation: str, pending: Awaitable[R]) -> R:
        try:
            result = await pending
        except Exception as e:
            self._available = False
            raise RuntimeError(f"Redis {operation} failed: {e}") from e
        self._available = True
        return result

    async def set(self, key: str, value: BaseModel, ttl_seconds: int) -> None:
        await self._call("set", self._redis.setex(key, ttl_seconds, value.model_dump_json()))

    async def get(self, key: str, model_class: type[T]) -> T | None:
        raw = await self._call("get", self._redis.get(key))
        if raw is None:
            return None
        try:
            return model_class.model_validate_json(raw)
        except ValidationError:
            logger.warning("Dropping unreadable session entry {}", key)
            await self.delete(key)
            return None

    async def delete(self, key: str) -> None:
        await self._call("delete", self._redis.delete(key))

    async def cleanup_expired(self) -> int:
        return 0

    async def list_keys(self, pattern: str) -> list[str]:
        keys: list[str] = []
        cursor = 0
        while True:
            cursor, batch = await self._call(
                "scan", self._redis.scan(cursor, match=pattern, count=100)
            )
            keys.extend(batch)
            if cursor == 0:
                return keys

    def is_available(self) -> bool:
        return self._available

    async def ping(self) -> bool:
        try:
            await self._call("ping", self._redis.ping())
        except RuntimeError:
            return False
        return True

    async def close(self) -> None:
        await self._redis.aclose()


async def create_session_storage(redis_config: RedisConfig) -> SessionStorage:
    """Redis storage when enabled and answering pings, in-memory otherwise."""
    if not redis_config.enabled or not redis_config.url:
        logger.info("Session storage: in-memory")
        return InMemorySessionStorage()

    import redis.asyncio as redis

    client = redis.from_url(
        redis_config.connection_string,
        encoding="utf-8",
        decode_responses=redis_config.decode_responses,
        socket_connect_timeout=2,
        socket_timeout=2,
    )
    storage = RedisSessionStorage(client)
    if await storage.ping():
        logger.info("Session storage: Redis connected")
        return storage

    logger.warning("Redis unavailable, using in-memory session storage")
    await client.aclose()
    return InMemorySessionStorage()
