"""TPC-H query 6 (forecasting revenue change) as a streaming pipeline.

The query sums ``extendedprice * discount`` over line items shipped in 1994
with a discount between 0.05 and 0.07 and a quantity below 24.
"""

from __future__ import annotations

import argparse
import csv
import sys
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from blockstream.columns import DecimalColumn, LabelColumn
from blockstream.components import (
    DotBitmapStream,
    FilterDecimalBlock,
    FilterLabelBlock,
    HadamardDecimal,
    HadamardMask,
    LoadBitmapBlock,
    LoadDecimalBlock,
    LoadLabelBlock,
    MapBlocks,
    Sum,
)

DEFAULT_BLOCK_SIZE = 65536
LINEITEM_COLUMNS = ("shipdate", "discount", "quantity", "extendedprice")


@dataclass(frozen=True)
class ThreadConfig:
    """Number of worker threads given to each kind of pipeline stage."""

    read: int = 4
    work: int = 8
    dot: int = 4
    had: int = 2

    def __post_init__(self) -> None:
        for name in ("read", "work", "dot", "had"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} threads must be at least 1")


def shipdate_in_1994(labels: str) -> bool:
    """True if the ship date label falls within the year 1994."""
    return "1994-01-01" <= labels < "1995-01-01"


def discount_in_range(values: float) -> bool:
    """True if the discount lies between 0.05 and 0.07 inclusive."""
    return 0.05 <= values <= 0.07


def quantity_below_24(values: float) -> bool:
    """True if the quantity is strictly below 24."""
    return values < 24


def revenue(price: float, discount: float) -> float:
    """Revenue lost to a discount: price times discount."""
    return price * discount


class _StageRunner:
    """Starts pipeline stages on threads and collects their failures."""

    def __init__(self) -> None:
        self._threads: list[threading.Thread] = []
        self._errors: list[BaseException] = []
        self._lock = threading.Lock()

    def start(self, stage: Callable[[], None]) -> threading.Thread:
        def guarded() -> None:
            try:
                stage()
            except BaseException as exc:  # noqa: BLE001 - re-raised in join_all
                with self._lock:
                    self._errors.append(exc)

        thread = threading.Thread(target=guarded, daemon=True)
        self._threads.append(thread)
        thread.start()
        return thread

    def join_all(self) -> None:
        for thread in self._threads:
            thread.join()
        if self._errors:
            raise self._errors[0]


def _check_columns(
    shipdate: LabelColumn,
    discount: DecimalColumn,
    quantity: DecimalColumn,
    extendedprice: DecimalColumn,
) -> None:
    numeric = {"discount": discount, "quantity": quantity, "extendedprice": extendedprice}
    for name, column in numeric.items():
        if len(column) != len(shipdate):
            raise ValueError(
                f"column {name} has {len(column)} rows, shipdate has {len(shipdate)}"
            )
        if column.block_size != shipdate.block_size:
            raise ValueError(
                f"column {name} uses block size {column.block_size}, "
                f"shipdate uses {shipdate.block_size}"
            )


def run_q6_stream(
    shipdate: LabelColumn,
    discount: DecimalColumn,
    quantity: DecimalColumn,
    extendedprice: DecimalColumn,
    threads: ThreadConfig | None = None,
) -> Any:
    """Evaluate query 6 over the given columns and return the revenue total."""
    config = threads if threads is not None else ThreadConfig()
    _check_columns(shipdate, discount, quantity, extendedprice)
    n_blocks = shipdate.n_blocks
    predicate_blocks: list[list[bool] | None] = [None] * shipdate.n_label_blocks

    # Every stage is wired before any starts, so no consumer misses an item.
    load_labels = LoadLabelBlock(shipdate, 1)
    filter_a = FilterLabelBlock(shipdate_in_1994, predicate_blocks, 1, load_labels)

    load_codes = LoadBitmapBlock(shipdate, config.read, n_blocks)
    dot_a = DotBitmapStream(predicate_blocks, config.dot, load_codes)

    load_discount = LoadDecimalBlock(discount, config.read, n_blocks)
    filter_b = FilterDecimalBlock(discount_in_range, config.work, load_discount)

    load_quantity = LoadDecimalBlock(quantity, config.read, n_blocks)
    filter_c = FilterDecimalBlock(quantity_below_24, config.work, load_quantity)

    had_d = HadamardMask(config.had, dot_a, filter_b, "HAD_D")
    had_e = HadamardMask(config.had, had_d, filter_c, "HAD_E")

    load_price = LoadDecimalBlock(extendedprice, config.read, n_blocks)
    revenue_map = MapBlocks(
        lambda disc, price: revenue(price, disc),
        config.work,
        load_discount,
        load_price,
        "MAP",
    )

    had_s = HadamardDecimal(config.had, had_e, revenue_map, "HAD_S")
    total = Sum(config.had, had_s)

    runner = _StageRunner()
    runner.start(load_labels.run_seq)
    filter_a_thread = runner.start(filter_a.run_seq)
    runner.start(load_codes.run)
    runner.start(load_discount.run)
    runner.start(filter_b.run)
    runner.start(load_quantity.run)
    runner.start(filter_c.run)
    runner.start(load_price.run)
    runner.start(revenue_map.run)

    # The dot needs every label block filtered before it can start.
    filter_a_thread.join()
    runner.start(dot_a.run)
    runner.start(had_d.run)
    runner.start(had_e.run)
    runner.start(had_s.run)
    runner.start(total.run)
    runner.join_all()
    return total.total


def load_lineitem_csv(
    path: str | Path, block_size: int = DEFAULT_BLOCK_SIZE
) -> tuple[LabelColumn, DecimalColumn, DecimalColumn, DecimalColumn]:
    """Read the query 6 columns from a CSV file with a header row.

    Returns the shipdate, discount, quantity and extendedprice columns, in the
    order :func:`run_q6_stream` takes them.
    """
    shipdates: list[str] = []
    numeric: dict[str, list[float]] = {name: [] for name in LINEITEM_COLUMNS[1:]}
    with open(path, newline="", encoding="utf-8") as handle:
        reader = csv.DictReader(handle)
        missing = [name for name in LINEITEM_COLUMNS if name not in (reader.fieldnames or ())]
        if missing:
            raise ValueError(f"missing column(s): {', '.join(missing)}")
        for line, row in enumerate(reader, start=2):
            shipdates.append(row["shipdate"].strip())
            for name, values in numeric.items():
                try:
                    values.append(float(row[name]))
                except (TypeError, ValueError):
                    raise ValueError(f"line {line}: bad {name} value {row[name]!r}") from None
    return (
        LabelColumn(shipdates, block_size),
        DecimalColumn(numeric["discount"], block_size),
        DecimalColumn(numeric["quantity"], block_size),
        DecimalColumn(numeric["extendedprice"], block_size),
    )


def _parser() -> argparse.ArgumentParser:
    defaults = ThreadConfig()
    parser = argparse.ArgumentParser(
        prog="q6", description="Run TPC-H query 6 as a streaming pipeline."
    )
    parser.add_argument("path", help="CSV file with shipdate, discount, quantity, extendedprice")
    parser.add_argument("--block-size", type=int, default=DEFAULT_BLOCK_SIZE)
    parser.add_argument("--read-threads", type=int, default=defaults.read)
    parser.add_argument("--work-threads", type=int, default=defaults.work)
    parser.add_argument("--dot-threads", type=int, default=defaults.dot)
    parser.add_argument("--had-threads", type=int, default=defaults.had)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Load the data, run the query, print the result and the elapsed nanoseconds."""
    args = _parser().parse_args(argv)
    start = time.perf_counter_ns()
    try:
        config = ThreadConfig(
            args.read_threads, args.work_threads, args.dot_threads, args.had_threads
        )
        columns = load_lineitem_csv(args.path, args.block_size)
        result = run_q6_stream(*columns, threads=config)
    except (OSError, ValueError) as exc:
        print(f"q6: {exc}", file=sys.stderr)
        return 1
    elapsed = time.perf_counter_ns() - start
    print(f"{result:g}")
    print(elapsed)
    return 0