"""Broadcast channel connecting one producer stage to its consumers."""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class StreamItem:
    """A unit of data travelling through a stream, tagged with its block id."""

    id: int
    data: Any


class Channel:
    """Thread-safe broadcast channel.

    Every registered consumer has its own queue and receives every item sent
    after it registered. Once the producer side calls :meth:`end`, consumers
    drain what is left and then see the stream as finished.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._queues: list[deque[StreamItem]] = []
        self._done = False

    @property
    def consumer_count(self) -> int:
        """Number of consumers registered on this channel."""
        with self._cond:
            return len(self._queues)

    def add_consumer(self) -> int:
        """Register a new consumer and return its identifier."""
        with self._cond:
            self._queues.append(deque())
            return len(self._queues) - 1

    def _queue(self, consumer_id: int) -> deque[StreamItem]:
        if not 0 <= consumer_id < len(self._queues):
            raise ValueError(f"unknown consumer id {consumer_id}")
        return self._queues[consumer_id]

    def send(self, item: StreamItem) -> None:
        """Deliver ``item`` to every registered consumer."""
        with self._cond:
            if self._done:
                raise RuntimeError("cannot send on a channel that has ended")
            for queue in self._queues:
                queue.append(item)
            self._cond.notify_all()

    def end(self) -> None:
        """Mark the stream as complete; further sends are rejected."""
        with self._cond:
            self._done = True
            self._cond.notify_all()

    def producers_done(self) -> bool:
        """True once the producer side has ended the stream."""
        with self._cond:
            return self._done

    def finished(self, consumer_id: int) -> bool:
        """True when the stream has ended and the consumer's queue is empty."""
        with self._cond:
            return self._done and not self._queue(consumer_id)

    def pop(self, consumer_id: int, timeout: float | None = None) -> StreamItem | None:
        """Take the next item for ``consumer_id``.

        Blocks until an item arrives or the stream ends. Returns ``None`` once
        the stream is finished for this consumer, and raises ``TimeoutError``
        if ``timeout`` seconds pass with neither happening.
        """
        with self._cond:
            queue = self._queue(consumer_id)
            ready = self._cond.wait_for(lambda: bool(queue) or self._done, timeout)
            if not ready:
                raise TimeoutError("no item arrived before the timeout")
            return queue.popleft() if queue else None