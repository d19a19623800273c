"""Block-partitioned columns and the block operators that work on them.

A :class:`LabelColumn` is dictionary encoded: the sorted distinct labels form
the dictionary (split into label blocks) and each row holds the code of its
label (split into row blocks). Predicates evaluated over label blocks give a
mask per label block; :func:`dot` maps those masks onto row codes.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Hashable, Iterable, Sequence
from itertools import chain
from typing import Any, TypeVar

T = TypeVar("T")


def _check_block_size(name: str, size: int) -> None:
    if size < 1:
        raise ValueError(f"{name} must be at least 1")


def _slice_block(values: Sequence[T], size: int, index: int, count: int) -> list[T]:
    if not 0 <= index < count:
        raise IndexError(f"block index {index} out of range for {count} blocks")
    return list(values[index * size:(index + 1) * size])


class LabelColumn:
    """A dictionary-encoded column of labels (strings, dates and the like)."""

    def __init__(
        self,
        values: Iterable[Hashable],
        block_size: int,
        label_block_size: int | None = None,
    ) -> None:
        _check_block_size("block_size", block_size)
        if label_block_size is None:
            label_block_size = block_size
        _check_block_size("label_block_size", label_block_size)
        rows = list(values)
        self.block_size = block_size
        self.label_block_size = label_block_size
        self.labels: list[Any] = sorted(set(rows))
        index = {label: code for code, label in enumerate(self.labels)}
        self.codes: list[int] = [index[row] for row in rows]

    def __len__(self) -> int:
        return len(self.codes)

    @property
    def n_blocks(self) -> int:
        """Number of row blocks."""
        return math.ceil(len(self.codes) / self.block_size)

    @property
    def n_label_blocks(self) -> int:
        """Number of dictionary (label) blocks."""
        return math.ceil(len(self.labels) / self.label_block_size)

    def label_block(self, index: int) -> list[Any]:
        """The labels of dictionary block ``index``."""
        return _slice_block(self.labels, self.label_block_size, index, self.n_label_blocks)

    def code_block(self, index: int) -> list[int]:
        """The label codes of row block ``index``."""
        return _slice_block(self.codes, self.block_size, index, self.n_blocks)


class DecimalColumn:
    """A numeric column split into fixed-size row blocks."""

    def __init__(self, values: Iterable[Any], block_size: int) -> None:
        _check_block_size("block_size", block_size)
        self.values: list[Any] = list(values)
        self.block_size = block_size

    def __len__(self) -> int:
        return len(self.values)

    @property
    def n_blocks(self) -> int:
        """Number of row blocks."""
        return math.ceil(len(self.values) / self.block_size)

    def block(self, index: int) -> list[Any]:
        """The values of row block ``index``."""
        return _slice_block(self.values, self.block_size, index, self.n_blocks)


def filter_block(predicate: Callable[[Any], bool], values: Iterable[Any]) -> list[bool]:
    """Evaluate ``predicate`` on each value, giving a mask."""
    return [bool(predicate(value)) for value in values]


def dot(predicate_blocks: Sequence[Sequence[bool] | None], codes: Iterable[int]) -> list[bool]:
    """Map label-block masks onto row codes.

    ``predicate_blocks`` holds one mask per label block, in order; the result
    holds, for each code, the mask entry of the label it refers to.
    """
    if any(block is None for block in predicate_blocks):
        raise ValueError("every label block must be filtered before dot")
    mask = list(chain.from_iterable(predicate_blocks))  # type: ignore[arg-type]
    try:
        return [bool(mask[code]) for code in codes]
    except IndexError:
        raise ValueError("code refers to a label outside the predicate blocks") from None


def hadamard(mask: Sequence[bool], values: Sequence[Any]) -> list[Any]:
    """Element-wise product of a mask with values.

    Kept entries retain their value; dropped ones become the zero of the
    value's type (``False`` for masks, ``0`` for numbers).
    """
    if len(mask) != len(values):
        raise ValueError(f"length mismatch: {len(mask)} != {len(values)}")
    return [value if keep else type(value)() for keep, value in zip(mask, values)]


def lift(function: Callable[[Any, Any], Any], first: Sequence[Any], second: Sequence[Any]) -> list[Any]:
    """Apply a binary ``function`` element-wise to two equal-length blocks."""
    if len(first) != len(second):
        raise ValueError(f"length mismatch: {len(first)} != {len(second)}")
    return [function(a, b) for a, b in zip(first, second)]


def block_sum(values: Iterable[Any]) -> Any:
    """Sum of a block's values (0 for an empty block)."""
    return sum(values)