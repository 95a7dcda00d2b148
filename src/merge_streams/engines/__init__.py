"""
Format engines.

Each engine consumes an ordered list of inputs and one output sink and
produces a single well-formed stream of its format.
"""

from merge_streams.engines.arrow_stream import merge_arrow
from merge_streams.engines.base import MergeContext
from merge_streams.engines.csv_merge import merge_csv
from merge_streams.engines.json_array import JsonArrayScanner, merge_json

__all__ = [
    "MergeContext",
    "JsonArrayScanner",
    "merge_arrow",
    "merge_csv",
    "merge_json",
]
