"""
Bounded, closeable asynchronous hand-off queue.

A Channel connects one producer task to its consumers. The producer closes
it when done; items already buffered are still delivered. A consumer that
loses interest calls ``aclose()``, which discards the buffer and makes the
producer's next ``send`` raise ChannelClosed, so it can stop.
"""

import asyncio
from collections import deque
from typing import Any, AsyncIterator, Deque, Generic, List, Tuple, TypeVar

T = TypeVar('T')


class ChannelClosed(Exception):
    """Raised when sending on a closed channel."""


class Channel(Generic[T]):
    """Asynchronous FIFO with a fixed capacity.

    Attributes:
        maxsize: Number of items that can be buffered before ``send`` waits
    """

    def __init__(self, maxsize: int = 1):
        if maxsize < 1:
            raise ValueError(f"Channel capacity must be at least 1, got {maxsize}")
        self.maxsize = maxsize
        self._items: Deque[T] = deque()
        self._closed = False
        self._getters: Deque[asyncio.Future] = deque()
        self._putters: Deque[asyncio.Future] = deque()

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        return len(self._items)

    def _wake(self, waiters: Deque[asyncio.Future]) -> None:
        while waiters:
            waiter = waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)

    async def _wait(self, waiters: Deque[asyncio.Future]) -> None:
        waiter = asyncio.get_running_loop().create_future()
        waiters.append(waiter)
        try:
            await waiter
        finally:
            if waiter in waiters:
                waiters.remove(waiter)

    async def send(self, item: T) -> None:
        """Put an item, waiting while the buffer is full.

        Raises:
            ChannelClosed: If the channel is (or becomes) closed
        """
        while True:
            if self._closed:
                raise ChannelClosed("send on closed channel")
            if len(self._items) < self.maxsize:
                break
            await self._wait(self._putters)

        self._items.append(item)
        self._wake(self._getters)

    async def receive(self) -> T:
        """Take the next item, waiting while the buffer is empty.

        Raises:
            ChannelClosed: If the channel is closed and fully drained
        """
        while not self._items:
            if self._closed:
                raise ChannelClosed("receive on closed and drained channel")
            await self._wait(self._getters)

        item = self._items.popleft()
        self._wake(self._putters)
        return item

    def close(self) -> None:
        """Close from the producer side; buffered items remain readable."""
        if self._closed:
            return
        self._closed = True
        self._wake(self._getters)
        self._wake(self._putters)

    async def aclose(self) -> None:
        """Close from the consumer side, discarding buffered items."""
        self._items.clear()
        self.close()

    def __aiter__(self) -> AsyncIterator[T]:
        return self

    async def __anext__(self) -> T:
        try:
            return await self.receive()
        except ChannelClosed:
            raise StopAsyncIteration from None


async def drain(channel: Channel[T]) -> List[T]:
    """Read every item from a channel until it is closed."""
    return [item async for item in channel]


async def drain_pair(first: Channel[Any], second: Channel[Any]) -> Tuple[List[Any], List[Any]]:
    """Drain two channels concurrently so neither producer side can stall."""
    first_items, second_items = await asyncio.gather(drain(first), drain(second))
    return first_items, second_items
