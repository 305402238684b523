"""
Utility modules for the pdflayout pipeline.

Submodules:
    text: Text predicates (sentence ends, list markers, case checks)
    stats: Summary statistics and gap distributions over numeric series
    serialize: JSON and DataFrame output of blocks and results
"""

from pdflayout.utils.text import (
    ends_with_sentence_end,
    join_text,
    looks_like_list_item,
    normalize_for_compare,
    starts_with_lowercase,
    strip_list_marker,
)
from pdflayout.utils.stats import SeriesStats, describe, gap_statistics, mode_of
from pdflayout.utils.serialize import blocks_to_dataframe, result_to_dict, result_to_json

__all__ = [
    # Text utilities
    "ends_with_sentence_end",
    "join_text",
    "looks_like_list_item",
    "normalize_for_compare",
    "starts_with_lowercase",
    "strip_list_marker",
    # Statistics
    "SeriesStats",
    "describe",
    "gap_statistics",
    "mode_of",
    # Serialization
    "blocks_to_dataframe",
    "result_to_dict",
    "result_to_json",
]
