"""
Bounded, closable work queue shared by the lister and the workers
"""

import threading
from collections import deque
from typing import Deque, Generic, Iterator, TypeVar

from cloudfront_logs_shipper.errors import QueueClosedError

T = TypeVar('T')


class WorkQueue(Generic[T]):
    """
    FIFO queue with a fixed capacity and a one-way close

    put() blocks while the queue is full and raises QueueClosedError once the
    queue is closed, including when it was closed while put() was waiting.
    get() blocks while the queue is empty and open, keeps returning items
    after close until the queue is drained, then raises QueueClosedError.
    """

    def __init__(self, maxsize: int):
        if maxsize < 1:
            raise ValueError("maxsize must be at least 1")
        self.maxsize = maxsize
        self._items: Deque[T] = deque()
        self._closed = False
        self._cond = threading.Condition()

    def put(self, item: T) -> None:
        with self._cond:
            while len(self._items) >= self.maxsize and not self._closed:
                self._cond.wait()
            if self._closed:
                raise QueueClosedError("work queue is closed")
            self._items.append(item)
            self._cond.notify_all()

    def get(self) -> T:
        with self._cond:
            while not self._items and not self._closed:
                self._cond.wait()
            if self._items:
                item = self._items.popleft()
                self._cond.notify_all()
                return item
            raise QueueClosedError("work queue is closed and drained")

    def close(self) -> bool:
        """Close the queue, returns False if it was already closed"""
        with self._cond:
            if self._closed:
                return False
            self._closed = True
            self._cond.notify_all()
            return True

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)

    def __iter__(self) -> Iterator[T]:
        """Yield items until the queue is closed and drained"""
        while True:
            try:
                yield self.get()
            except QueueClosedError:
                return
