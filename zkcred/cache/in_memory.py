"""In-memory cache with per-item expiry."""

import time
from typing import Any, Hashable, Iterable, Optional, Union

from .base import BaseCache


class InMemoryCache(BaseCache):
    """Basic in-memory cache class."""

    def __init__(self):
        """Initialize a `InMemoryCache` instance."""
        super().__init__()
        # key -> (expires monotonic timestamp or None, value)
        self._cache = {}

    def _remove_expired_cache_items(self):
        now = time.monotonic()
        expired = [
            key
            for key, (expires, _) in self._cache.items()
            if expires is not None and now >= expires
        ]
        for key in expired:
            del self._cache[key]

    async def get(self, key: Hashable):
        """
        Get an item from the cache.

        Args:
            key: the key to retrieve an item for

        Returns:
            The cached value or `None`

        """
        self._remove_expired_cache_items()
        entry = self._cache.get(key)
        return entry[1] if entry else None

    async def set(
        self,
        keys: Union[Hashable, Iterable[Hashable]],
        value: Any,
        ttl: Optional[float] = None,
    ):
        """
        Add an item to the cache with an optional ttl, overwriting existing items.

        Args:
            keys: the key, or a list of keys, for which to set an item
            value: the value to store in the cache
            ttl: number of seconds that the item should persist

        """
        self._remove_expired_cache_items()
        expires = time.monotonic() + ttl if ttl else None
        for key in keys if isinstance(keys, list) else [keys]:
            self._cache[key] = (expires, value)

    async def clear(self, key: Hashable):
        """Remove an item from the cache, if present."""
        self._cache.pop(key, None)

    async def flush(self):
        """Remove all items from the cache."""
        self._cache = {}

    def __len__(self) -> int:
        """Count the unexpired items held."""
        self._remove_expired_cache_items()
        return len(self._cache)
