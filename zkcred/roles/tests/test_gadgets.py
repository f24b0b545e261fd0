import asyncio
from unittest import IsolatedAsyncioTestCase, mock

from ...backend.base import ProofGadgets
from ...config.settings import Settings
from ...credential.primitive_types import TypeResources
from ...utils.http import FetchError
from .. import gadgets as test_module
from ..gadgets import GadgetFetcher


class TestGadgetFetcher(IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.fetcher = GadgetFetcher(settings=Settings({"gadgets.fetch_attempts": 2}))

    async def test_load_files(self):
        with mock.patch.object(
            test_module.Path, "read_bytes", autospec=True
        ) as mock_read:
            mock_read.side_effect = lambda path: str(path).encode()
            assert await self.fetcher.load("/tmp/circuit.wasm") == b"/tmp/circuit.wasm"
            assert await self.fetcher.load("file:///tmp/circuit.zkey") == (
                b"/tmp/circuit.zkey"
            )

    async def test_load_missing_file(self):
        with self.assertRaises(FetchError):
            await self.fetcher.load("/nonexistent/zkcred/circuit.zkey")

    async def test_load_http(self):
        with mock.patch.object(
            test_module, "fetch", mock.AsyncMock(return_value=b"wasm")
        ) as mock_fetch:
            assert await self.fetcher.load("https://example.com/circuit.wasm") == b"wasm"
        mock_fetch.assert_awaited_once_with(
            "https://example.com/circuit.wasm", binary=True, max_attempts=2
        )

    async def test_fetch_gadgets_cached(self):
        resources = TypeResources(witness_wasm_uri="a.wasm", zkey_uri="a.zkey")
        calls = []

        async def load(uri):
            calls.append(uri)
            await asyncio.sleep(0.01)
            return uri.encode()

        with mock.patch.object(self.fetcher, "load", load):
            results = await asyncio.gather(
                self.fetcher.fetch_gadgets(3, resources),
                self.fetcher.fetch_gadgets(3, resources),
            )
            again = await self.fetcher.fetch_gadgets(3, resources)

        assert results[0] == ProofGadgets(3, b"a.wasm", b"a.zkey")
        assert results[1] == results[0]
        assert again == results[0]
        assert sorted(calls) == ["a.wasm", "a.zkey"]

    async def test_fetch_gadgets_missing_uri(self):
        with self.assertRaises(FetchError):
            await self.fetcher.fetch_gadgets(3, TypeResources(zkey_uri="a.zkey"))

    async def test_fetch_failure_not_cached(self):
        resources = TypeResources(witness_wasm_uri="a.wasm", zkey_uri="a.zkey")
        with mock.patch.object(
            self.fetcher, "load", mock.AsyncMock(side_effect=FetchError("down"))
        ):
            with self.assertRaises(FetchError):
                await self.fetcher.fetch_gadgets(3, resources)
        with mock.patch.object(
            self.fetcher, "load", mock.AsyncMock(side_effect=[b"w", b"z"])
        ):
            gadgets = await self.fetcher.fetch_gadgets(3, resources)
        assert gadgets == ProofGadgets(3, b"w", b"z")
