"""Single-key record storage with in-memory and shared Redis backends."""

from __future__ import annotations

import logging
from threading import Lock
from typing import Protocol

from redis.asyncio import Redis
from redis.exceptions import RedisError


class StoreBackendError(RuntimeError):
    """Raised when the configured record store is unavailable."""


class RecordStore(Protocol):
    """Protocol implemented by all record store backends."""

    async def get(self, key: str) -> str | None:
        """Return the stored string value, or None if the key is absent."""

    async def put(self, key: str, value: str) -> None:
        """Replace the value stored under key."""

    async def delete(self, key: str) -> None:
        """Remove key; deleting an absent key is not an error."""

    async def close(self) -> None:
        """Release backend resources if needed."""

    async def reset(self) -> None:
        """Clear store state (primarily for test isolation)."""


class InMemoryRecordStore:
    """Process-local dict store used for development and tests."""

    def __init__(self) -> None:
        self._values: dict[str, str] = {}
        self._lock = Lock()

    async def get(self, key: str) -> str | None:
        with self._lock:
            return self._values.get(key)

    async def put(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = value

    async def delete(self, key: str) -> None:
        with self._lock:
            self._values.pop(key, None)

    async def close(self) -> None:
        return

    async def reset(self) -> None:
        with self._lock:
            self._values.clear()


class RedisRecordStore:
    """Redis-backed store shared across app instances."""

    def __init__(self, *, redis_url: str, prefix: str = "edgepulse") -> None:
        # Values are decoded here so a non-UTF-8 payload reads as unparsable text.
        self._client = Redis.from_url(redis_url, decode_responses=False)
        self._prefix = prefix

    def _redis_key(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    async def get(self, key: str) -> str | None:
        try:
            value = await self._client.get(self._redis_key(key))
        except RedisError as exc:
            raise StoreBackendError("Record store unavailable") from exc
        if value is None:
            return None
        if isinstance(value, bytes):
            return value.decode("utf-8", errors="replace")
        return str(value)

    async def put(self, key: str, value: str) -> None:
        try:
            await self._client.set(self._redis_key(key), value)
        except RedisError as exc:
            raise StoreBackendError("Record store unavailable") from exc

    async def delete(self, key: str) -> None:
        try:
            await self._client.delete(self._redis_key(key))
        except RedisError as exc:
            raise StoreBackendError("Record store unavailable") from exc

    async def close(self) -> None:
        await self._client.aclose()

    async def reset(self) -> None:
        keys: list[bytes | str] = []
        try:
            async for key in self._client.scan_iter(match=f"{self._prefix}:*"):
                keys.append(key)
            if keys:
                await self._client.delete(*keys)
        except RedisError as exc:  # pragma: no cover - backend failure path
            raise StoreBackendError("Record store unavailable") from exc


def create_record_store(
    *,
    backend: str,
    redis_url: str | None,
    prefix: str = "edgepulse",
    logger: logging.Logger | None = None,
) -> tuple[RecordStore, bool]:
    """Create a configured record store and indicate if it uses shared state."""

    normalized_backend = backend.strip().lower()
    if normalized_backend == "memory":
        return InMemoryRecordStore(), False

    if normalized_backend == "redis":
        if not redis_url:
            raise RuntimeError("STORE_BACKEND=redis requires REDIS_URL")
        return RedisRecordStore(redis_url=redis_url, prefix=prefix), True

    if normalized_backend == "auto":
        if redis_url:
            return RedisRecordStore(redis_url=redis_url, prefix=prefix), True
        if logger:
            logger.warning("store_backend_auto_fallback backend=memory reason=redis_url_missing")
        return InMemoryRecordStore(), False

    raise ValueError(f"Unsupported STORE_BACKEND value: {backend}")
