"""Retry sequences for network fetches."""

import asyncio

import async_timeout


class RepeatAttempt:
    """One attempt in a repeat sequence."""

    def __init__(self, seq: "RepeatSequence", index: int = 0):
        """Initialize the attempt instance."""
        self.index = index
        self.seq = seq

    async def __anext__(self) -> "RepeatAttempt":
        """Wait out the backoff interval, then advance to the next attempt."""
        if not self.index:
            self.index = 1
            return self
        if self.final:
            raise StopAsyncIteration
        interval = self.next_interval
        if interval:
            await asyncio.sleep(interval)
        self.index += 1
        return self

    @property
    def final(self) -> bool:
        """Check if this is the last attempt allowed."""
        return bool(self.seq.limit and self.index >= self.seq.limit)

    @property
    def next_interval(self) -> float:
        """Calculate the interval before the next attempt."""
        return self.seq.next_interval(self.index)

    def timeout(self, interval: float = None):
        """Create a context manager for timing out an attempt."""
        return async_timeout.timeout(
            self.next_interval if interval is None else interval
        )

    def __repr__(self) -> str:
        """Format as a string for debugging."""
        return f"<{self.__class__.__name__} index={self.index} seq={self.seq}>"


class RepeatSequence:
    """An async-iterable sequence of attempts with exponential backoff."""

    def __init__(self, limit: int = 0, interval: float = 0.0, backoff: float = 0.0):
        """Initialize the sequence instance."""
        self.limit = limit
        self.interval = interval
        self.backoff = backoff

    def next_interval(self, index: int) -> float:
        """Calculate the time before the next attempt."""
        return pow(self.interval, 1 + (self.backoff * (index - 1)))

    def __aiter__(self):
        """Implement async iterator protocol to wait between attempts."""
        return RepeatAttempt(self)

    def __repr__(self) -> str:
        """Format as a string for debugging."""
        return (
            f"<{self.__class__.__name__} "
            f"limit={self.limit} interval={self.interval} backoff={self.backoff}>"
        )
