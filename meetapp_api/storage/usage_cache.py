"""Cached per-owner object storage usage in Redis."""

import logging
from typing import Callable

import redis

logger = logging.getLogger(__name__)


class StorageUsageCache:
    """Byte counters of used object storage per owner.

    Counters are only adjusted while a cached value exists. Without one the
    key is dropped so the next read recomputes the usage from the database.
    """

    KEY_PREFIX = "storage_usage:object_storage"

    def __init__(self, client: redis.Redis, ttl_seconds: int = 24 * 60 * 60):
        self.client = client
        self.ttl_seconds = ttl_seconds

    def key(self, owner_id: int) -> str:
        return f"{self.KEY_PREFIX}:{owner_id}"

    def get_or_compute(self, owner_id: int, compute: Callable[[], int]) -> int:
        key = self.key(owner_id)
        cached = self.client.get(key)
        if cached is not None:
            return int(cached)
        usage = int(compute() or 0)
        self.client.set(key, usage, ex=self.ttl_seconds)
        return usage

    def increment(self, owner_id: int, delta: int):
        key = self.key(owner_id)
        if not self.client.exists(key):
            self.client.delete(key)
            return
        self.client.incrby(key, int(delta))
        self.client.expire(key, self.ttl_seconds)

    def decrement(self, owner_id: int, delta: int):
        key = self.key(owner_id)
        cached = self.client.get(key)
        if cached is None:
            self.client.delete(key)
            return
        value = max(0, int(cached) - int(delta))
        self.client.set(key, value, ex=self.ttl_seconds)

    def forget(self, owner_id: int):
        self.client.delete(self.key(owner_id))


def get_usage_cache(redis_url: str, ttl_hours: int = 24) -> StorageUsageCache:
    client = redis.from_url(redis_url)
    return StorageUsageCache(client, ttl_seconds=ttl_hours * 60 * 60)
