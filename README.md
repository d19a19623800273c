# blockstream

Column data is split into fixed-size blocks, and the blocks flow through a
pipeline of threaded stages. Loaders produce the blocks. Filters, dots,
Hadamard products and maps transform them. A join pairs up blocks from two
streams by their block id. A sum stage reduces the stream to one total.

Two TPC-H style queries are built from these stages:

- **Q6**: forecasting revenue change. It sums `extendedprice * discount` over
  line items shipped in 1994 (`"1994-01-01" <= shipdate < "1995-01-01"`), with
  a discount between 0.05 and 0.07 inclusive and a quantity below 24.
- **Q14**: promotion effect. It gives, in percent, the share of September 1995
  revenue (`extendedprice * (1 - discount)`) that came from parts whose type
  starts with `PROMO`.

## Installation

```
pip install .
```

Add the `test` extra to install pytest as well: `pip install .[test]`.

## Command line

```
blockstream-q6 lineitem.csv
blockstream-q14 lineitem.csv part.csv
```

`blockstream-q6` reads a CSV file with a header row holding the columns
`shipdate`, `discount`, `quantity` and `extendedprice`.

`blockstream-q14` reads two CSV files. The line item file holds `shipdate`,
`extendedprice`, `discount` and `partkey`, and the part file holds `partkey`
and `type`. Every part key used by a line item must appear in the part file.

Both commands accept these options:

- `--block-size` (default 65536)
- `--read-threads` (default 4)
- `--work-threads` (default 8)
- `--dot-threads` (default 4)
- `--had-threads` (default 2)

Each command prints the query result and then the elapsed time in
nanoseconds. On a missing file, a bad value or a missing column, it writes a
message to standard error and exits with status 1.

## Library use

```python
from blockstream.columns import LabelColumn, DecimalColumn
from blockstream.q6 import run_q6_stream, ThreadConfig

shipdate = LabelColumn(["1994-03-01", "1995-02-01"], block_size=2, label_block_size=2)
discount = DecimalColumn([0.06, 0.06], block_size=2)
quantity = DecimalColumn([10.0, 10.0], block_size=2)
price = DecimalColumn([100.0, 100.0], block_size=2)

print(run_q6_stream(shipdate, discount, quantity, price, ThreadConfig()))
```

The modules:

- `blockstream.channel`: `Channel`, a thread-safe broadcast channel with one
  queue for each consumer, and `StreamItem`, which holds an `id` and `data`.
- `blockstream.producer`, `blockstream.consumer`,
  `blockstream.consumer_producer`, `blockstream.join`: the base stages
  `Producer`, `Consumer`, `ConsumerProducer` and `Join`. Subclass them to build
  your own pipelines. `run()` runs a stage on several threads and
  `run_seq()` runs it on the calling thread.
- `blockstream.columns`: `LabelColumn`, a dictionary-encoded column of sorted
  distinct labels plus one code per row, and `DecimalColumn`. It also holds the
  block operators `filter_block`, `dot`, `hadamard`, `lift` and `block_sum`.
- `blockstream.components`: ready-made stages. The loaders are
  `LoadLabelBlock`, `LoadBitmapBlock` and `LoadDecimalBlock`. The filters are
  `FilterLabelBlock` and `FilterDecimalBlock`. The dots are `DotBitmapBlock`
  and `DotBitmapStream`. The Hadamard joins are `HadamardMask`,
  `HadamardDecimal` and `HadamardDecimalMask`. `MapBlocks` maps two streams
  and `Sum` adds up one.
- `blockstream.q6`: `run_q6_stream`, `load_lineitem_csv`, `ThreadConfig` and
  the query's predicates.
- `blockstream.q14`: `run_q14_stream` and the query's predicates.
- `blockstream.q6_blocks`: `run_q6_blocks` computes Q6 in a second way. A
  thread pool processes one block per task. The function returns the total
  together with a `Timings` record, which holds nanoseconds per phase and the
  `load_total` and `ops_total` sums.

## Limitations

All data is held in memory. Columns are built from Python sequences or read
from CSV files. There is no on-disk column store, no database loader and no
SQL front end. Only queries 6 and 14 are provided as ready-made pipelines.