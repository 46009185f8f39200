# site_tracer/store/backends.py
"""
Key-value backends behind :class:`site_tracer.store.ResultStore`.

Both backends speak the same small vocabulary: hashes of strings, sets of
strings, prefix listing and deletion. The in-memory one serves tests and
one-off runs; the Redis one lets a report reader query results after the
crawl process is gone.
"""
from __future__ import annotations

import abc
from typing import Dict, List, Mapping, Set

import redis.asyncio as aioredis

__all__ = ["KeyValueBackend", "MemoryBackend", "RedisBackend"]


class KeyValueBackend(abc.ABC):
    """Minimal async KV contract used by the result store."""

    @abc.abstractmethod
    async def hash_set(self, key: str, fields: Mapping[str, str], *, overwrite: bool = True) -> None:
        """Store *fields* in hash *key*; with ``overwrite=False`` existing fields win."""

    @abc.abstractmethod
    async def hash_get_all(self, key: str) -> Dict[str, str]: ...

    @abc.abstractmethod
    async def set_add(self, key: str, *members: str) -> None: ...

    @abc.abstractmethod
    async def set_members(self, key: str) -> Set[str]: ...

    @abc.abstractmethod
    async def set_cardinality(self, key: str) -> int: ...

    @abc.abstractmethod
    async def keys(self, prefix: str) -> List[str]: ...

    @abc.abstractmethod
    async def delete(self, *keys: str) -> int: ...

    @abc.abstractmethod
    async def ping(self) -> bool: ...

    async def close(self) -> None:
        return None


class MemoryBackend(KeyValueBackend):
    """Process-local backend; every call completes without suspending."""

    def __init__(self) -> None:
        self._hashes: Dict[str, Dict[str, str]] = {}
        self._sets: Dict[str, Set[str]] = {}

    async def hash_set(self, key: str, fields: Mapping[str, str], *, overwrite: bool = True) -> None:
        current = self._hashes.setdefault(key, {})
        if overwrite:
            current.update(fields)
        else:
            for name, value in fields.items():
                current.setdefault(name, value)

    async def hash_get_all(self, key: str) -> Dict[str, str]:
        return dict(self._hashes.get(key, {}))

    async def set_add(self, key: str, *members: str) -> None:
        if members:
            self._sets.setdefault(key, set()).update(members)

    async def set_members(self, key: str) -> Set[str]:
        return set(self._sets.get(key, set()))

    async def set_cardinality(self, key: str) -> int:
        return len(self._sets.get(key, ()))

    async def keys(self, prefix: str) -> List[str]:
        return [k for k in (*self._hashes, *self._sets) if k.startswith(prefix)]

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._hashes.pop(key, None) is not None:
                removed += 1
            if self._sets.pop(key, None) is not None:
                removed += 1
        return removed

    async def ping(self) -> bool:
        return True


class RedisBackend(KeyValueBackend):
    """Backend on top of ``redis.asyncio``; one client per crawl run."""

    def __init__(self, url: str, client: aioredis.Redis | None = None) -> None:
        self.url = url
        self.client = client if client is not None else aioredis.from_url(url, decode_responses=True)

    async def hash_set(self, key: str, fields: Mapping[str, str], *, overwrite: bool = True) -> None:
        if not fields:
            return
        if overwrite:
            await self.client.hset(key, mapping=dict(fields))
            return
        async with self.client.pipeline(transaction=True) as pipe:
            for name, value in fields.items():
                pipe.hsetnx(key, name, value)
            await pipe.execute()

    async def hash_get_all(self, key: str) -> Dict[str, str]:
        return await self.client.hgetall(key)

    async def set_add(self, key: str, *members: str) -> None:
        if members:
            await self.client.sadd(key, *members)

    async def set_members(self, key: str) -> Set[str]:
        return set(await self.client.smembers(key))

    async def set_cardinality(self, key: str) -> int:
        return int(await self.client.scard(key))

    async def keys(self, prefix: str) -> List[str]:
        return [key async for key in self.client.scan_iter(match=f"{prefix}*")]

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return int(await self.client.delete(*keys))

    async def ping(self) -> bool:
        return bool(await self.client.ping())

    async def close(self) -> None:
        await self.client.aclose()
