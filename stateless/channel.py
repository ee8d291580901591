"""
Bounded Broadcast Channels

Multi-producer, multi-consumer fan-out queues. Every stream registered with
``add_stream`` receives every message sent after its registration; streams
do not compete for messages.
"""

import threading
import time
from collections import deque
from typing import Deque, Generic, List, Optional, TypeVar

from .errors import ChannelClosed, ChannelEmpty, ChannelFull

T = TypeVar("T")


class Receiver(Generic[T]):
    """One consumer's view of a broadcast channel."""

    def __init__(self, channel: "BroadcastChannel[T]"):
        self._channel = channel
        self._items: Deque[T] = deque()

    def recv(self, timeout: Optional[float] = None) -> T:
        """
        Take the next message, blocking up to timeout seconds.

        Raises:
            ChannelEmpty: If nothing arrived before the timeout
            ChannelClosed: If the channel is closed and this stream is drained
        """
        cond = self._channel._cond
        with cond:
            if not cond.wait_for(lambda: self._items or self._channel.closed, timeout):
                raise ChannelEmpty()
            if self._items:
                item = self._items.popleft()
                cond.notify_all()
                return item
            raise ChannelClosed()

    def try_recv(self) -> T:
        """Take the next message without blocking."""
        return self.recv(timeout=0)

    def __len__(self) -> int:
        with self._channel._cond:
            return len(self._items)


class BroadcastChannel(Generic[T]):
    """Bounded broadcast queue with per-stream capacity."""

    def __init__(self, capacity: int = 256):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self.closed = False
        self._cond = threading.Condition()
        self._streams: List[Receiver[T]] = []

    def add_stream(self) -> Receiver[T]:
        receiver = Receiver(self)
        with self._cond:
            self._streams.append(receiver)
        return receiver

    def _has_space(self) -> bool:
        return all(len(s._items) < self.capacity for s in self._streams)

    def _deliver(self, item: T) -> None:
        for stream in self._streams:
            stream._items.append(item)
        self._cond.notify_all()

    def try_send(self, item: T) -> None:
        """
        Deliver to every stream, or to none.

        Raises:
            ChannelClosed: If the channel is closed
            ChannelFull: If any stream is at capacity
        """
        with self._cond:
            if self.closed:
                raise ChannelClosed()
            if not self._has_space():
                raise ChannelFull()
            self._deliver(item)

    def send(self, item: T, timeout: Optional[float] = None) -> None:
        """
        Deliver to every stream, waiting for the slowest one to make room.

        Raises:
            ChannelClosed: If the channel is or becomes closed
            ChannelFull: If there is still no room after timeout seconds
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while not self.closed and not self._has_space():
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    raise ChannelFull()
                self._cond.wait(remaining)
            if self.closed:
                raise ChannelClosed()
            self._deliver(item)

    def close(self) -> None:
        """Refuse further sends; streams keep their undelivered messages."""
        with self._cond:
            self.closed = True
            self._cond.notify_all()
