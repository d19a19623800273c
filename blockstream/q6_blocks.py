"""TPC-H query 6 evaluated block by block on a pool of workers, with timings.

The dictionary of the ship date column is filtered first; afterwards every
row block runs the whole query plan (dot, filters, Hadamard products, map and
sum) on one worker, and the partial sums are added up.
"""

from __future__ import annotations

import os
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, fields
from functools import partial
from typing import Any, TypeVar

from blockstream.columns import (
    DecimalColumn,
    LabelColumn,
    block_sum,
    dot,
    filter_block,
    hadamard,
    lift,
)
from blockstream.q6 import (
    _check_columns,
    discount_in_range,
    quantity_below_24,
    revenue,
    shipdate_in_1994,
)

R = TypeVar("R")

_LOAD_FIELDS = (
    "load_labels",
    "load_shipdate",
    "load_discount",
    "load_quantity",
    "load_price",
)
_OPS_FIELDS = (
    "filter_labels",
    "filter_discount",
    "filter_quantity",
    "dot",
    "had_1",
    "had_2",
    "had_3",
    "map",
    "sum",
)


@dataclass
class Timings:
    """Nanoseconds spent in each phase of the query, summed over all blocks."""

    total: int = 0
    init: int = 0
    load_labels: int = 0
    filter_labels: int = 0
    load_shipdate: int = 0
    dot: int = 0
    load_discount: int = 0
    filter_discount: int = 0
    had_1: int = 0
    load_quantity: int = 0
    filter_quantity: int = 0
    had_2: int = 0
    load_price: int = 0
    map: int = 0
    had_3: int = 0
    sum: int = 0

    def __add__(self, other: Timings) -> Timings:
        if not isinstance(other, Timings):
            return NotImplemented
        return Timings(
            **{f.name: getattr(self, f.name) + getattr(other, f.name) for f in fields(self)}
        )

    @property
    def load_total(self) -> int:
        """Time spent loading blocks."""
        return sum(getattr(self, name) for name in _LOAD_FIELDS)

    @property
    def ops_total(self) -> int:
        """Time spent in operators (filters, dots, products, map, sum)."""
        return sum(getattr(self, name) for name in _OPS_FIELDS)


def _timed(function: Callable[..., R], *args: Any) -> tuple[R, int]:
    start = time.perf_counter_ns()
    result = function(*args)
    return result, time.perf_counter_ns() - start


def _process_block(
    predicate_blocks: list[list[bool] | None],
    shipdate: LabelColumn,
    discount: DecimalColumn,
    quantity: DecimalColumn,
    extendedprice: DecimalColumn,
    index: int,
) -> tuple[Any, Timings]:
    t = Timings()
    codes, t.load_shipdate = _timed(shipdate.code_block, index)
    mask_a, t.dot = _timed(dot, predicate_blocks, codes)

    disc, t.load_discount = _timed(discount.block, index)
    mask_b, t.filter_discount = _timed(filter_block, discount_in_range, disc)
    mask_c, t.had_1 = _timed(hadamard, mask_a, mask_b)

    qty, t.load_quantity = _timed(quantity.block, index)
    mask_d, t.filter_quantity = _timed(filter_block, quantity_below_24, qty)
    mask_e, t.had_2 = _timed(hadamard, mask_c, mask_d)

    price, t.load_price = _timed(extendedprice.block, index)
    values, t.map = _timed(lift, revenue, price, disc)
    masked, t.had_3 = _timed(hadamard, mask_e, values)

    partial_sum, t.sum = _timed(block_sum, masked)
    return partial_sum, t


def run_q6_blocks(
    shipdate: LabelColumn,
    discount: DecimalColumn,
    quantity: DecimalColumn,
    extendedprice: DecimalColumn,
    workers: int | None = None,
) -> tuple[Any, Timings]:
    """Evaluate query 6 with ``workers`` threads; return the revenue and timings."""
    start = time.perf_counter_ns()
    if workers is None:
        workers = os.cpu_count() or 1
    if workers < 1:
        raise ValueError("workers must be at least 1")
    _check_columns(shipdate, discount, quantity, extendedprice)

    init_start = time.perf_counter_ns()
    predicate_blocks: list[list[bool] | None] = [None] * shipdate.n_label_blocks
    timings = Timings(init=time.perf_counter_ns() - init_start)

    for index in range(shipdate.n_label_blocks):
        labels, elapsed = _timed(shipdate.label_block, index)
        timings.load_labels += elapsed
        predicate_blocks[index], elapsed = _timed(filter_block, shipdate_in_1994, labels)
        timings.filter_labels += elapsed

    work = partial(_process_block, predicate_blocks, shipdate, discount, quantity, extendedprice)
    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(work, range(shipdate.n_blocks)))

    total: Any = 0
    for partial_sum, block_timings in results:
        total += partial_sum
        timings = timings + block_timings
    timings.total = time.perf_counter_ns() - start
    return total, timings