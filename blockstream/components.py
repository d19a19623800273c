"""Pipeline stages for block-at-a-time query execution.

Loaders stream the blocks of a column, filters and dots turn blocks into
masks, Hadamard joins combine masks with masks or values, :class:`MapBlocks`
applies a binary function to two value streams and :class:`Sum` reduces a
stream of value blocks to a single total.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, MutableMapping, MutableSequence, Sequence
from typing import Any, Union

from blockstream.channel import StreamItem
from blockstream.columns import (
    DecimalColumn,
    LabelColumn,
    block_sum,
    dot,
    filter_block,
    hadamard,
    lift,
)
from blockstream.consumer import Consumer
from blockstream.consumer_producer import ConsumerProducer
from blockstream.join import Join
from blockstream.producer import Producer

BlockTarget = Union[MutableSequence[Any], MutableMapping[int, Any]]


class LoadLabelBlock(Producer):
    """Streams the dictionary (label) blocks of a label column."""

    def __init__(
        self,
        column: LabelColumn,
        max_threads: int = 1,
        n_executions: int | None = None,
    ) -> None:
        if n_executions is None:
            n_executions = column.n_label_blocks
        super().__init__(max_threads, n_executions)
        self.column = column

    def operation(self) -> None:
        """Send every label block in order."""
        for index in range(self.column.n_label_blocks):
            self.operation_at(index)

    def operation_at(self, index: int) -> None:
        """Send label block ``index``."""
        self.send(index, self.column.label_block(index))


class LoadBitmapBlock(Producer):
    """Streams the row blocks (label codes) of a label column."""

    def __init__(
        self,
        column: LabelColumn,
        max_threads: int = 1,
        n_executions: int | None = None,
    ) -> None:
        if n_executions is None:
            n_executions = column.n_blocks
        super().__init__(max_threads, n_executions)
        self.column = column

    def operation(self) -> None:
        """Send every code block in order."""
        for index in range(self.column.n_blocks):
            self.operation_at(index)

    def operation_at(self, index: int) -> None:
        """Send code block ``index``."""
        self.send(index, self.column.code_block(index))


class LoadDecimalBlock(Producer):
    """Streams the row blocks of a numeric column."""

    def __init__(
        self,
        column: DecimalColumn,
        max_threads: int = 1,
        n_executions: int | None = None,
    ) -> None:
        if n_executions is None:
            n_executions = column.n_blocks
        super().__init__(max_threads, n_executions)
        self.column = column

    def operation(self) -> None:
        """Send every value block in order."""
        for index in range(self.column.n_blocks):
            self.operation_at(index)

    def operation_at(self, index: int) -> None:
        """Send value block ``index``."""
        self.send(index, self.column.block(index))


class FilterLabelBlock(Consumer):
    """Evaluates a predicate over label blocks, storing each mask in ``target``.

    ``target`` is indexed by block id, e.g. a list pre-sized to the number of
    label blocks.
    """

    def __init__(
        self,
        predicate: Callable[[Any], bool],
        target: BlockTarget,
        threads: int,
        prev: Producer,
    ) -> None:
        super().__init__(threads, prev)
        self.predicate = predicate
        self.target = target

    def operation(self) -> None:
        """Filter each incoming label block into ``target``."""
        for item in self.items():
            self.target[item.id] = filter_block(self.predicate, item.data)


class FilterDecimalBlock(ConsumerProducer):
    """Evaluates a predicate over value blocks and streams the masks."""

    def __init__(
        self,
        predicate: Callable[[Any], bool],
        threads: int,
        prev: Producer,
    ) -> None:
        super().__init__(threads, prev)
        self.predicate = predicate

    def operation(self) -> None:
        """Send a mask for each incoming value block."""
        for item in self.items():
            self.send(item.id, filter_block(self.predicate, item.data))


class DotBitmapBlock(Consumer):
    """Maps label masks onto code blocks, storing each row mask in ``target``."""

    def __init__(
        self,
        predicate_blocks: Sequence[Sequence[bool] | None],
        threads: int,
        prev: Producer,
        target: BlockTarget,
    ) -> None:
        super().__init__(threads, prev)
        self.predicate_blocks = predicate_blocks
        self.target = target

    def operation(self) -> None:
        """Store the row mask of each incoming code block into ``target``."""
        for item in self.items():
            self.target[item.id] = dot(self.predicate_blocks, item.data)


class DotBitmapStream(ConsumerProducer):
    """Maps label masks onto code blocks and streams the row masks."""

    def __init__(
        self,
        predicate_blocks: Sequence[Sequence[bool] | None],
        threads: int,
        prev: Producer,
    ) -> None:
        super().__init__(threads, prev)
        self.predicate_blocks = predicate_blocks

    def operation(self) -> None:
        """Send the row mask for each incoming code block."""
        for item in self.items():
            self.send(item.id, dot(self.predicate_blocks, item.data))


class HadamardMask(Join):
    """Joins two mask streams into their element-wise conjunction."""

    def exec(self, first: StreamItem, second: StreamItem) -> None:
        """Send the combined mask under the shared id."""
        self.send(first.id, hadamard(first.data, second.data))


class HadamardDecimal(Join):
    """Joins a mask stream (first) with a value stream (second)."""

    def exec(self, first: StreamItem, second: StreamItem) -> None:
        """Send the values with masked-out entries zeroed."""
        self.send(first.id, hadamard(first.data, second.data))


class HadamardDecimalMask(Join):
    """Joins a value stream (first) with a mask stream (second)."""

    def exec(self, first: StreamItem, second: StreamItem) -> None:
        """Send the values with masked-out entries zeroed."""
        self.send(first.id, hadamard(second.data, first.data))


class MapBlocks(Join):
    """Applies a binary function element-wise to two joined value streams."""

    def __init__(
        self,
        function: Callable[[Any, Any], Any],
        threads: int,
        prev_1: Producer,
        prev_2: Producer,
        name: str = "Map",
    ) -> None:
        super().__init__(threads, prev_1, prev_2, name)
        self.function = function

    def exec(self, first: StreamItem, second: StreamItem) -> None:
        """Send ``function`` applied to the paired blocks."""
        self.send(first.id, lift(self.function, first.data, second.data))


class Sum(Consumer):
    """Reduces a stream of value blocks to a single total in :attr:`total`."""

    def __init__(self, threads: int, prev: Producer) -> None:
        super().__init__(threads, prev)
        self.total: Any = 0
        self._lock = threading.Lock()

    def operation(self) -> None:
        """Sum this worker's blocks locally, then add to the shared total."""
        partial: Any = 0
        for item in self.items():
            partial += block_sum(item.data)
        with self._lock:
            self.total += partial