"""Fetching and caching the proving artifacts of credential types."""

import asyncio
import logging
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from ..backend.base import ProofGadgets
from ..cache.base import BaseCache
from ..cache.in_memory import InMemoryCache
from ..config.base import BaseSettings
from ..config.settings import Settings
from ..credential.primitive_types import TypeResources
from ..utils.http import FetchError, fetch

LOGGER = logging.getLogger(__name__)


class GadgetFetcher:
    """
    Loads witness generators and proving keys by type id.

    Results are cached; concurrent requests for the same type share a single
    in-flight fetch.
    """

    def __init__(self, cache: BaseCache = None, settings: BaseSettings = None):
        """Initialize the fetcher."""
        self.cache = cache or InMemoryCache()
        self.settings = settings or Settings.defaults()

    @staticmethod
    def cache_key(type_id: int) -> str:
        """Cache key of a type's gadgets."""
        return f"gadgets::{type_id}"

    async def load(self, uri: str) -> bytes:
        """
        Load one artifact from an HTTP(S) URL, a file URL or a local path.

        Raises:
            FetchError: If the artifact cannot be loaded

        """
        parsed = urlparse(uri)
        if parsed.scheme in ("http", "https"):
            return await fetch(
                uri,
                binary=True,
                max_attempts=self.settings.get_int("gadgets.fetch_attempts", default=5),
            )
        path = Path(parsed.path if parsed.scheme == "file" else uri)
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, path.read_bytes)
        except OSError as err:
            raise FetchError(f"Cannot read artifact {uri}") from err

    async def fetch_gadgets(
        self, type_id: int, resources: TypeResources
    ) -> ProofGadgets:
        """
        Fetch the gadgets of a type, from cache when possible.

        Args:
            type_id: The credential type
            resources: Where the type's artifacts live

        """
        ttl: Optional[float] = self.settings.get_float("gadgets.cache_ttl")
        async with self.cache.acquire(self.cache_key(type_id)) as entry:
            if entry.done:
                LOGGER.debug("Gadgets for type %s found in cache", type_id)
                return entry.result
            if not resources.witness_wasm_uri or not resources.zkey_uri:
                raise FetchError(f"Type {type_id} has no proving artifacts")
            LOGGER.debug("Fetching gadgets for type %s", type_id)
            witness_wasm, zkey = await asyncio.gather(
                self.load(resources.witness_wasm_uri), self.load(resources.zkey_uri)
            )
            gadgets = ProofGadgets(type_id, witness_wasm, zkey)
            await entry.set_result(gadgets, ttl)
            return gadgets
