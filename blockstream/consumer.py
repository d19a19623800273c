"""Consumer stage: reads items from a producer's channel."""

from __future__ import annotations

from collections.abc import Iterator

from blockstream.channel import Channel, StreamItem
from blockstream.producer import Producer, _run_parallel


class Consumer:
    """Base class for stages that consume a producer's output.

    Subclasses override :meth:`operation`, typically looping over
    :meth:`items`. :meth:`run` executes ``operation`` on several threads that
    share the same input queue.
    """

    def __init__(self, threads: int, prev: Producer) -> None:
        if threads < 1:
            raise ValueError("threads must be at least 1")
        self.consumer_threads = threads
        self.input: Channel = prev.out
        self.consumer_id = prev.add_consumer()

    def producers_done(self) -> bool:
        """True once the upstream producer has ended its stream."""
        return self.input.producers_done()

    def finished(self) -> bool:
        """True when the upstream has ended and nothing is left for us."""
        return self.input.finished(self.consumer_id)

    def pop_next(self) -> StreamItem | None:
        """Wait for the next item; ``None`` means the stream is exhausted."""
        return self.input.pop(self.consumer_id)

    def items(self) -> Iterator[StreamItem]:
        """Yield items until the stream is exhausted."""
        while (item := self.pop_next()) is not None:
            yield item

    def operation(self) -> None:
        """Consume the stream; the default discards every item."""
        for _ in self.items():
            pass

    def run(self) -> None:
        """Run :meth:`operation` on ``consumer_threads`` threads and wait."""
        _run_parallel((self.operation, ()) for _ in range(self.consumer_threads))

    def run_seq(self) -> None:
        """Run :meth:`operation` on the calling thread."""
        self.operation()