"""Stage that consumes one stream and produces another."""

from __future__ import annotations

from blockstream.consumer import Consumer
from blockstream.producer import Producer


class ConsumerProducer(Consumer, Producer):
    """A middle stage of a pipeline.

    It reads from ``prev``'s channel and writes to its own output channel,
    which it ends once all of its worker threads are done. The default
    :meth:`operation` forwards every item unchanged.
    """

    def __init__(self, threads: int, prev: Producer) -> None:
        Consumer.__init__(self, threads, prev)
        Producer.__init__(self)

    def operation(self) -> None:
        """Forward each input item to the output channel unchanged."""
        for item in self.items():
            self.send(item.id, item.data)

    def run(self) -> None:
        """Run the workers on ``consumer_threads`` threads, then end the output."""
        try:
            Consumer.run(self)
        finally:
            self.end()

    def run_seq(self) -> None:
        """Run one worker on the calling thread, then end the output."""
        try:
            self.operation()
        finally:
            self.end()