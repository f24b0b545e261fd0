"""Abstract cache interface with per-key fetch de-duplication."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Hashable, Iterable, Optional, Union

from ..core.error import BaseError

LOGGER = logging.getLogger(__name__)


class CacheError(BaseError):
    """Base class for cache-related errors."""


class BaseCache(ABC):
    """Abstract cache interface."""

    def __init__(self):
        """Initialize the cache instance."""
        self._key_locks = {}

    @abstractmethod
    async def get(self, key: Hashable):
        """
        Get an item from the cache.

        Args:
            key: the key to retrieve an item for

        Returns:
            The cached value or `None`

        """

    @abstractmethod
    async def set(
        self,
        keys: Union[Hashable, Iterable[Hashable]],
        value: Any,
        ttl: Optional[float] = None,
    ):
        """
        Add an item to the cache with an optional ttl.

        Args:
            keys: the key, or a list of keys, for which to set an item
            value: the value to store in the cache
            ttl: number of seconds that the item should persist

        """

    @abstractmethod
    async def clear(self, key: Hashable):
        """Remove an item from the cache, if present."""

    @abstractmethod
    async def flush(self):
        """Remove all items from the cache."""

    def acquire(self, key: Hashable) -> "CacheKeyLock":
        """
        Acquire a lock on a given cache key.

        The first caller for a key owns the fetch; later callers for the same
        key are chained to it and receive its result.
        """
        result = CacheKeyLock(self, key)
        first = self._key_locks.setdefault(key, result)
        if first is not result:
            LOGGER.debug("Joining in-flight fetch for cache key %s", key)
            result.parent = first
        return result

    def release(self, key: Hashable):
        """Release the lock on a given cache key."""
        self._key_locks.pop(key, None)

    def __repr__(self) -> str:
        """Human readable representation of this instance."""
        return "<{}>".format(self.__class__.__name__)


class CacheKeyLock:
    """
    A lock on a particular cache key.

    Prevents concurrent tasks from fetching the same expensive artifact more
    than once. Bound to the running event loop, not thread safe.

    Usage::

        async with cache.acquire(key) as lock:
            if lock.done:
                value = lock.result
            else:
                value = await produce()
                await lock.set_result(value, ttl)
    """

    def __init__(self, cache: BaseCache, key: Hashable):
        """Initialize the key lock."""
        self.cache = cache
        self.exception: Optional[BaseException] = None
        self.key = key
        self.released = False
        self._future: asyncio.Future = asyncio.get_event_loop().create_future()
        self._parent: Optional["CacheKeyLock"] = None

    @property
    def done(self) -> bool:
        """Accessor for the done state."""
        return self._future.done()

    @property
    def future(self) -> asyncio.Future:
        """Fetch the result in the form of an awaitable future."""
        return self._future

    @property
    def result(self) -> Any:
        """Fetch the current result, if any."""
        if self.done:
            return self._future.result()
        return None

    @property
    def parent(self) -> Optional["CacheKeyLock"]:
        """Accessor for the parent key lock, if any."""
        return self._parent

    @parent.setter
    def parent(self, parent: "CacheKeyLock"):
        self._parent = parent
        parent._future.add_done_callback(self._handle_parent_done)

    def _handle_parent_done(self, fut: asyncio.Future):
        result = fut.result()
        if result is not None and not self._future.done():
            self._future.set_result(result)

    async def set_result(self, value: Any, ttl: Optional[float] = None):
        """Set the result, updating the cache and any waiters."""
        if self.done:
            raise CacheError("Result already set")
        self._future.set_result(value)
        if not self._parent or self._parent.done:
            await self.cache.set(self.key, value, ttl)

    def __await__(self):
        """Wait for a result to be produced."""
        return (yield from self._future)

    async def __aenter__(self):
        """Wait for any in-flight fetch, then consult the cache."""
        result = None
        if self.parent:
            result = await self.parent
            if result is not None:
                await self
        if result is None:
            found = await self.cache.get(self.key)
            if found is not None:
                self._future.set_result(found)
        return self

    def release(self):
        """Release the cache lock."""
        if not self.parent and not self.released:
            self.cache.release(self.key)
            self.released = True

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """
        Async context manager exit.

        `None` is returned to any waiters if no value is produced.
        """
        if exc_val:
            self.exception = exc_val
        if not self.done:
            self._future.set_result(None)
        self.release()
