from unittest import IsolatedAsyncioTestCase, mock

from .. import repeat as test_module


class TestRepeat(IsolatedAsyncioTestCase):
    def test_intervals(self):
        expect = [5, 7, 11, 17, 25]
        seq = test_module.RepeatSequence(5, interval=5.0, backoff=0.25)
        assert [round(seq.next_interval(i)) for i in range(1, 6)] == expect
        assert repr(seq).startswith("<RepeatSequence")

    async def test_aiter(self):
        seq = test_module.RepeatSequence(3, interval=2.0, backoff=0.0)
        with mock.patch.object(
            test_module.asyncio, "sleep", mock.AsyncMock()
        ) as mock_sleep:
            attempts = []
            async for attempt in seq:
                attempts.append((attempt.index, attempt.final))
        assert attempts == [(1, False), (2, False), (3, True)]
        assert mock_sleep.await_count == 2
        mock_sleep.assert_awaited_with(2.0)

    async def test_unlimited(self):
        seq = test_module.RepeatSequence(interval=0.0)
        count = 0
        async for attempt in seq:
            count += 1
            assert not attempt.final
            if count == 10:
                break
        assert repr(attempt).startswith("<RepeatAttempt")

    async def test_timeout(self):
        seq = test_module.RepeatSequence(1, interval=0.5)
        async for attempt in seq:
            async with attempt.timeout():
                pass
            async with attempt.timeout(interval=0.01):
                pass
