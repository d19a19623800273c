"""Join stage: pairs items from two streams that carry the same block id."""

from __future__ import annotations

import threading
from typing import Any

from blockstream.channel import Channel, StreamItem
from blockstream.consumer_producer import ConsumerProducer
from blockstream.producer import Producer

_POLL_INTERVAL = 0.005


class Join(ConsumerProducer):
    """Consumes two streams and calls :meth:`exec` for every pair of items
    whose ids match.

    Items that arrive before their partner are parked until the partner shows
    up. The default :meth:`exec` sends the pair ``(first.data, second.data)``
    downstream under the shared id; subclasses override it to combine blocks.
    """

    def __init__(
        self,
        threads: int,
        prev_1: Producer,
        prev_2: Producer,
        name: str = "Join",
    ) -> None:
        super().__init__(threads, prev_1)
        self.name = name
        self.input_join: Channel = prev_2.out
        self.join_consumer_id = prev_2.add_consumer()
        self._lock = threading.Lock()
        self._waiting_first: dict[int, StreamItem] = {}
        self._waiting_second: dict[int, StreamItem] = {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"

    @property
    def unmatched(self) -> tuple[set[int], set[int]]:
        """Ids still waiting for a partner, from the first and second input."""
        with self._lock:
            return set(self._waiting_first), set(self._waiting_second)

    def exec(self, first: StreamItem, second: StreamItem) -> None:
        """Handle one matched pair; the default forwards both payloads."""
        self.send(first.id, (first.data, second.data))

    def _arrive_first(self, item: StreamItem) -> None:
        with self._lock:
            partner = self._waiting_second.pop(item.id, None)
            if partner is None:
                self._waiting_first[item.id] = item
                return
        self.exec(item, partner)

    def _arrive_second(self, item: StreamItem) -> None:
        with self._lock:
            partner = self._waiting_first.pop(item.id, None)
            if partner is None:
                self._waiting_second[item.id] = item
                return
        self.exec(partner, item)

    @staticmethod
    def _poll(channel: Channel, consumer_id: int, timeout: float | None) -> StreamItem | None:
        try:
            return channel.pop(consumer_id, timeout)
        except TimeoutError:
            return None

    def operation(self) -> None:
        """Drain both inputs, pairing items by id, until both are finished."""
        while True:
            first_open = not self.input.finished(self.consumer_id)
            second_open = not self.input_join.finished(self.join_consumer_id)
            if not (first_open or second_open):
                return
            both_open = first_open and second_open
            timeout = _POLL_INTERVAL if both_open else None
            if first_open:
                item = self._poll(self.input, self.consumer_id, timeout)
                if item is not None:
                    self._arrive_first(item)
            if second_open:
                item = self._poll(self.input_join, self.join_consumer_id, timeout)
                if item is not None:
                    self._arrive_second(item)