"""Key-value cache store backed by Redis."""

from typing import Optional, Protocol

from redis.asyncio import Redis
from redis.exceptions import RedisError


class CacheUnavailableError(Exception):
    """Raised when the cache store cannot be reached or rejects a command."""

    pass


class CacheEntryCorruptError(Exception):
    """Raised when a stored value cannot be decoded as text."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Cache entry {key} is not valid UTF-8")


class CacheStore(Protocol):
    """Minimal store interface: string values, per-key TTL, wildcard key listing."""

    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def delete(self, *keys: str) -> int: ...

    async def keys(self, pattern: str) -> list[str]: ...

    async def ping(self) -> bool: ...


class RedisCacheStore:
    """CacheStore over a redis-py asyncio client."""

    def __init__(self, client: Redis):
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisCacheStore":
        return cls(Redis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self.client.get(key)
        except UnicodeDecodeError as e:
            raise CacheEntryCorruptError(key) from e
        except RedisError as e:
            raise CacheUnavailableError(str(e)) from e

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self.client.set(key, value, ex=ttl_seconds)
        except RedisError as e:
            raise CacheUnavailableError(str(e)) from e

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        try:
            return await self.client.delete(*keys)
        except RedisError as e:
            raise CacheUnavailableError(str(e)) from e

    async def keys(self, pattern: str) -> list[str]:
        try:
            return list(await self.client.keys(pattern))
        except RedisError as e:
            raise CacheUnavailableError(str(e)) from e

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except RedisError as e:
            raise CacheUnavailableError(str(e)) from e

    async def close(self) -> None:
        await self.client.aclose()
