"""Block-wise streaming pipelines for analytical queries over in-memory columnar data."""

__version__ = "0.1.0"

__all__ = [
    "channel",
    "producer",
    "consumer",
    "consumer_producer",
    "join",
    "columns",
    "components",
    "q6",
    "q6_blocks",
    "q14",
]