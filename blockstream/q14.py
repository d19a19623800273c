"""TPC-H query 14 (promotion effect) as a streaming pipeline.

The query computes the share of September 1995 revenue, in percent, that came
from parts whose type starts with ``PROMO``.
"""

from __future__ import annotations

import argparse
import csv
import re
import sys
import time
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from blockstream.columns import DecimalColumn, LabelColumn
from blockstream.components import (
    DotBitmapBlock,
    DotBitmapStream,
    FilterLabelBlock,
    HadamardDecimal,
    HadamardDecimalMask,
    LoadBitmapBlock,
    LoadDecimalBlock,
    LoadLabelBlock,
    MapBlocks,
    Sum,
)
from blockstream.q6 import DEFAULT_BLOCK_SIZE, ThreadConfig, _StageRunner

_PROMO = re.compile(r"PROMO.*")
LINEITEM_COLUMNS = ("shipdate", "extendedprice", "discount", "partkey")
PART_COLUMNS = ("partkey", "type")


def shipdate_in_september_1995(labels: str) -> bool:
    """True if the ship date label falls within September 1995."""
    return "1995-09-01" <= labels < "1995-10-01"


def is_promo(labels: str) -> bool:
    """True if the part type starts with ``PROMO``."""
    return _PROMO.fullmatch(labels) is not None


def discounted_price(price: float, discount: float) -> float:
    """Price after discount: ``price * (1 - discount)``."""
    return price * (1 - discount)


def promo_percentage(promo_revenue: float, total_revenue: float) -> float:
    """Promotional revenue as a percentage of total revenue."""
    return 100.00 * promo_revenue / total_revenue


def _check_columns(
    shipdate: LabelColumn,
    extendedprice: DecimalColumn,
    discount: DecimalColumn,
    partkey: LabelColumn,
    part_type: LabelColumn,
) -> None:
    others = {"extendedprice": extendedprice, "discount": discount, "partkey": partkey}
    for name, column in others.items():
        if len(column) != len(shipdate):
            raise ValueError(
                f"column {name} has {len(column)} rows, shipdate has {len(shipdate)}"
            )
        if column.block_size != shipdate.block_size:
            raise ValueError(
                f"column {name} uses block size {column.block_size}, "
                f"shipdate uses {shipdate.block_size}"
            )
    if len(partkey.labels) > len(part_type):
        raise ValueError(
            f"partkey refers to {len(partkey.labels)} parts, part_type has {len(part_type)}"
        )


def run_q14_stream(
    shipdate: LabelColumn,
    extendedprice: DecimalColumn,
    discount: DecimalColumn,
    partkey: LabelColumn,
    part_type: LabelColumn,
    threads: ThreadConfig | None = None,
) -> Any:
    """Evaluate query 14 and return the promotional revenue percentage.

    ``partkey`` holds the part key of each line item; row ``i`` of
    ``part_type`` must describe the part whose key is ``partkey.labels[i]``.
    """
    config = threads if threads is not None else ThreadConfig()
    _check_columns(shipdate, extendedprice, discount, partkey, part_type)
    n_blocks = shipdate.n_blocks

    shipdate_pred: list[list[bool] | None] = [None] * shipdate.n_label_blocks
    type_pred: list[list[bool] | None] = [None] * part_type.n_label_blocks
    part_mask: list[list[bool] | None] = [None] * part_type.n_blocks

    load_a = LoadLabelBlock(shipdate, config.read)
    filter_a = FilterLabelBlock(shipdate_in_september_1995, shipdate_pred, config.work, load_a)

    load_d = LoadLabelBlock(part_type, config.read)
    filter_d = FilterLabelBlock(is_promo, type_pred, config.work, load_d)

    load_3 = LoadBitmapBlock(part_type, config.read)
    dot_1 = DotBitmapBlock(type_pred, config.dot, load_3, part_mask)

    load_4 = LoadBitmapBlock(shipdate, config.read, n_blocks)
    dot_2 = DotBitmapStream(shipdate_pred, config.dot, load_4)

    load_5 = LoadDecimalBlock(extendedprice, config.read, n_blocks)
    load_6 = LoadDecimalBlock(discount, config.read, n_blocks)
    price_map = MapBlocks(discounted_price, config.work, load_5, load_6, "MAP")

    had_c = HadamardDecimal(config.had, dot_2, price_map, "HAD_C")
    total_sum = Sum(config.had, had_c)

    load_7 = LoadBitmapBlock(partkey, config.read, n_blocks)
    dot_3 = DotBitmapStream(part_mask, config.dot, load_7)
    had_f = HadamardDecimalMask(config.had, had_c, dot_3, "HAD_F")
    promo_sum = Sum(config.had, had_f)

    runner = _StageRunner()
    runner.start(load_a.run)
    runner.start(load_d.run)
    filter_a_thread = runner.start(filter_a.run)
    filter_d_thread = runner.start(filter_d.run)
    runner.start(load_3.run)
    runner.start(load_4.run)

    # The part mask needs every type label filtered, the ship date dot every
    # date label filtered, and the part key dot the complete part mask.
    filter_d_thread.join()
    runner.start(dot_1.run).join()
    filter_a_thread.join()

    runner.start(dot_2.run)
    runner.start(had_c.run)
    runner.start(load_5.run)
    runner.start(load_6.run)
    runner.start(price_map.run)
    runner.start(promo_sum.run)
    runner.start(load_7.run)
    runner.start(dot_3.run)
    runner.start(had_f.run)
    runner.start(total_sum.run)
    runner.join_all()
    return promo_percentage(promo_sum.total, total_sum.total)


def _read_csv(path: str | Path, required: Sequence[str]) -> list[dict[str, str]]:
    with open(path, newline="", encoding="utf-8") as handle:
        reader = csv.DictReader(handle)
        missing = [name for name in required if name not in (reader.fieldnames or ())]
        if missing:
            raise ValueError(f"{path}: missing column(s): {', '.join(missing)}")
        return list(reader)


def _parse(value: str, kind: type, name: str, line: int) -> Any:
    try:
        return kind(value)
    except (TypeError, ValueError):
        raise ValueError(f"line {line}: bad {name} value {value!r}") from None


def _load_columns(
    lineitem_path: str | Path, part_path: str | Path, block_size: int
) -> tuple[LabelColumn, DecimalColumn, DecimalColumn, LabelColumn, LabelColumn]:
    types: dict[int, str] = {}
    for line, row in enumerate(_read_csv(part_path, PART_COLUMNS), start=2):
        types[_parse(row["partkey"], int, "partkey", line)] = row["type"].strip()

    shipdates: list[str] = []
    prices: list[float] = []
    discounts: list[float] = []
    partkeys: list[int] = []
    for line, row in enumerate(_read_csv(lineitem_path, LINEITEM_COLUMNS), start=2):
        shipdates.append(row["shipdate"].strip())
        prices.append(_parse(row["extendedprice"], float, "extendedprice", line))
        discounts.append(_parse(row["discount"], float, "discount", line))
        partkeys.append(_parse(row["partkey"], int, "partkey", line))

    partkey = LabelColumn(partkeys, block_size)
    unknown = [key for key in partkey.labels if key not in types]
    if unknown:
        raise ValueError(f"unknown part key(s): {', '.join(map(str, unknown))}")
    return (
        LabelColumn(shipdates, block_size),
        DecimalColumn(prices, block_size),
        DecimalColumn(discounts, block_size),
        partkey,
        LabelColumn([types[key] for key in partkey.labels], block_size),
    )


def _parser() -> argparse.ArgumentParser:
    defaults = ThreadConfig()
    parser = argparse.ArgumentParser(
        prog="q14", description="Run TPC-H query 14 as a streaming pipeline."
    )
    parser.add_argument("lineitem", help="CSV with shipdate, extendedprice, discount, partkey")
    parser.add_argument("part", help="CSV with partkey, type")
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
        columns = _load_columns(args.lineitem, args.part, args.block_size)
        result = run_q14_stream(*columns, threads=config)
    except (OSError, ValueError, ZeroDivisionError) as exc:
        print(f"q14: {exc}", file=sys.stderr)
        return 1
    elapsed = time.perf_counter_ns() - start
    print(f"{result:g}")
    print(elapsed)
    return 0