"""site_tracer.store: result persistence (records, provenance, indices)."""

from __future__ import annotations

from typing import Optional

from .backends import KeyValueBackend, MemoryBackend, RedisBackend
from .result_store import ResultStore, StoreUnavailableError, decode_url_key, encode_url_key


def open_store(redis_url: Optional[str], prefix: str = "tracer:") -> ResultStore:
    """Redis-backed store when *redis_url* is set, in-memory otherwise."""
    backend: KeyValueBackend = RedisBackend(redis_url) if redis_url else MemoryBackend()
    return ResultStore(backend, prefix=prefix)


__all__ = [
    "KeyValueBackend",
    "MemoryBackend",
    "RedisBackend",
    "ResultStore",
    "StoreUnavailableError",
    "encode_url_key",
    "decode_url_key",
    "open_store",
]
