"""Producer stage: generates blocks and broadcasts them on its channel."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable
from typing import Any

from blockstream.channel import Channel, StreamItem


def _run_parallel(calls: Iterable[tuple[Callable[..., Any], tuple[Any, ...]]]) -> None:
    """Run each call in its own thread, wait for all, re-raise the first error."""
    errors: list[BaseException] = []
    lock = threading.Lock()

    def guarded(function: Callable[..., Any], args: tuple[Any, ...]) -> None:
        try:
            function(*args)
        except BaseException as exc:  # noqa: BLE001 - re-raised in the caller
            with lock:
                errors.append(exc)

    threads = [threading.Thread(target=guarded, args=call) for call in calls]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    if errors:
        raise errors[0]


def _partition(total: int, workers: int) -> list[tuple[int, int]]:
    """Split ``range(total)`` into ``workers`` contiguous chunks.

    The first ``total % workers`` chunks receive one extra element.
    """
    base, rest = divmod(total, workers)
    bounds = []
    start = 0
    for index in range(workers):
        size = base + (1 if index < rest else 0)
        bounds.append((start, start + size))
        start += size
    return bounds


class Producer:
    """Base class for stages that emit data onto an output channel.

    Subclasses override :meth:`operation_at` to produce the block for one index
    (used by the threaded :meth:`run`) and may override :meth:`operation` for
    sequential production (used by :meth:`run_seq`).
    """

    def __init__(self, max_threads: int = 1, n_executions: int = 0) -> None:
        if max_threads < 1:
            raise ValueError("max_threads must be at least 1")
        if n_executions < 0:
            raise ValueError("n_executions must not be negative")
        self.max_threads = max_threads
        self.n_executions = n_executions
        self.out = Channel()

    def add_consumer(self) -> int:
        """Register a consumer on the output channel and return its id."""
        return self.out.add_consumer()

    def send(self, item_id: int, data: Any) -> None:
        """Broadcast ``data`` tagged with ``item_id``; ``None`` is not sent."""
        if data is not None:
            self.out.send(StreamItem(item_id, data))

    def init(self) -> None:
        """Prepare resources before production starts; no-op by default."""

    def operation(self) -> None:
        """Produce every item sequentially, in index order."""
        self.exec_range(0, self.n_executions)

    def operation_at(self, index: int) -> None:
        """Produce the item at ``index``; concrete producers override this."""

    def exec_range(self, start: int, end: int) -> None:
        """Produce the items with indices ``start`` up to ``end`` (exclusive)."""
        for index in range(start, end):
            self.operation_at(index)

    def end(self) -> None:
        """Tell consumers that no more data will come."""
        self.out.end()

    def run(self) -> None:
        """Produce all items on ``max_threads`` threads, then end the stream."""
        try:
            self.init()
            _run_parallel(
                (self.exec_range, bounds)
                for bounds in _partition(self.n_executions, self.max_threads)
            )
        finally:
            self.end()

    def run_seq(self) -> None:
        """Produce all items on the calling thread, then end the stream."""
        try:
            self.init()
            self.operation()
        finally:
            self.end()