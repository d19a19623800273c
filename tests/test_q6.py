import pytest

from blockstream.columns import DecimalColumn, LabelColumn
from blockstream.q6 import (
    ThreadConfig,
    discount_in_range,
    load_lineitem_csv,
    main,
    quantity_below_24,
    revenue,
    run_q6_stream,
    shipdate_in_1994,
)

QUALIFYING = [
    ("1994-01-01", 0.05, 1.0, 100.0),
    ("1994-06-15", 0.06, 10.0, 250.0),
    ("1994-12-31", 0.07, 23.0, 40.0),
    ("1994-03-03", 0.06, 5.0, 1000.0),
]
REJECTED = [
    ("1993-12-31", 0.06, 10.0, 300.0),
    ("1995-01-01", 0.06, 10.0, 300.0),
    ("1994-05-05", 0.04, 10.0, 300.0),
    ("1994-05-05", 0.08, 10.0, 300.0),
    ("1994-05-05", 0.06, 24.0, 300.0),
    ("1994-05-05", 0.06, 30.0, 300.0),
]


def _columns(rows, block_size):
    ships, discs, qtys, prices = zip(*rows) if rows else ((), (), (), ())
    return (
        LabelColumn(ships, block_size),
        DecimalColumn(discs, block_size),
        DecimalColumn(qtys, block_size),
        DecimalColumn(prices, block_size),
    )


def _interleaved():
    rows = []
    for index in range(max(len(QUALIFYING), len(REJECTED))):
        if index < len(REJECTED):
            rows.append(REJECTED[index])
        if index < len(QUALIFYING):
            rows.append(QUALIFYING[index])
    return rows


def _expected():
    return sum(revenue(price, disc) for _, disc, _, price in QUALIFYING)


SMALL = ThreadConfig(read=2, work=2, dot=2, had=2)


@pytest.mark.parametrize(
    "label, expected",
    [("1994-01-01", True), ("1994-07-04", True), ("1993-12-31", False), ("1995-01-01", False)],
)
def test_shipdate_in_1994(label, expected):
    assert shipdate_in_1994(label) is expected


@pytest.mark.parametrize(
    "value, expected",
    [(0.05, True), (0.06, True), (0.07, True), (0.04, False), (0.08, False)],
)
def test_discount_in_range(value, expected):
    assert discount_in_range(value) is expected


@pytest.mark.parametrize("value, expected", [(23, True), (0, True), (24, False), (50, False)])
def test_quantity_below_24(value, expected):
    assert quantity_below_24(value) is expected


def test_revenue_is_commutative_and_identity():
    assert revenue(123.5, 1.0) == 123.5
    assert revenue(7.0, 0.5) == revenue(0.5, 7.0)


def test_thread_config_defaults_and_validation():
    config = ThreadConfig()
    assert (config.read, config.work, config.dot, config.had) == (4, 8, 4, 2)
    with pytest.raises(ValueError):
        ThreadConfig(read=0)


def test_single_qualifying_row():
    columns = _columns([("1994-02-02", 0.06, 5.0, 100.0)], 4)
    assert run_q6_stream(*columns, threads=SMALL) == pytest.approx(revenue(100.0, 0.06))


def test_only_rejected_rows_give_zero():
    assert run_q6_stream(*_columns(REJECTED, 2), threads=SMALL) == 0


def test_empty_input_gives_zero():
    assert run_q6_stream(*_columns([], 3), threads=SMALL) == 0


@pytest.mark.parametrize("block_size", [1, 2, 3, 5, 64])
def test_mixed_rows_sum_qualifying_revenue(block_size):
    result = run_q6_stream(*_columns(_interleaved(), block_size), threads=SMALL)
    assert result == pytest.approx(_expected())


def test_result_does_not_depend_on_thread_config():
    columns = _columns(_interleaved(), 2)
    single = run_q6_stream(*columns, threads=ThreadConfig(1, 1, 1, 1))
    many = run_q6_stream(*columns, threads=ThreadConfig(3, 4, 3, 3))
    assert single == pytest.approx(many)


def test_mismatched_lengths_raise():
    shipdate, discount, quantity, price = _columns(QUALIFYING, 2)
    short = DecimalColumn(list(discount.values)[:-1], 2)
    with pytest.raises(ValueError):
        run_q6_stream(shipdate, short, quantity, price, threads=SMALL)


def test_mismatched_block_sizes_raise():
    shipdate, discount, quantity, price = _columns(QUALIFYING, 2)
    other = DecimalColumn(discount.values, 3)
    with pytest.raises(ValueError):
        run_q6_stream(shipdate, other, quantity, price, threads=SMALL)


def _write_csv(path, rows):
    lines = ["shipdate,discount,quantity,extendedprice"]
    lines += [f"{s},{d},{q},{p}" for s, d, q, p in rows]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def test_load_lineitem_csv_round_trip(tmp_path):
    path = tmp_path / "lineitem.csv"
    rows = _interleaved()
    _write_csv(path, rows)
    shipdate, discount, quantity, price = load_lineitem_csv(path, 3)
    assert len(shipdate) == len(rows)
    assert discount.values == [row[1] for row in rows]
    assert quantity.values == [row[2] for row in rows]
    assert price.values == [row[3] for row in rows]
    assert shipdate.block_size == 3
    decoded = [shipdate.labels[code] for code in shipdate.codes]
    assert decoded == [row[0] for row in rows]


def test_load_lineitem_csv_missing_column(tmp_path):
    path = tmp_path / "bad.csv"
    path.write_text("shipdate,discount,quantity\n1994-01-01,0.05,1\n", encoding="utf-8")
    with pytest.raises(ValueError, match="extendedprice"):
        load_lineitem_csv(path)


def test_load_lineitem_csv_bad_number(tmp_path):
    path = tmp_path / "bad.csv"
    path.write_text(
        "shipdate,discount,quantity,extendedprice\n1994-01-01,abc,1,2\n", encoding="utf-8"
    )
    with pytest.raises(ValueError, match="discount"):
        load_lineitem_csv(path)


def test_main_prints_result_and_time(tmp_path, capsys):
    path = tmp_path / "lineitem.csv"
    _write_csv(path, _interleaved())
    code = main([str(path), "--block-size", "2", "--read-threads", "2", "--work-threads", "2"])
    assert code == 0
    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 2
    assert float(lines[0]) == pytest.approx(_expected(), rel=1e-5)
    assert int(lines[1]) >= 0


def test_main_missing_file_returns_error(tmp_path, capsys):
    code = main([str(tmp_path / "absent.csv")])
    assert code == 1
    assert "q6:" in capsys.readouterr().err