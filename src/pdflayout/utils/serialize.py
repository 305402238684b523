"""
Serialization utilities for extraction results.

Blocks carry sentinel and tuple values (the cross-page gap marker, line
tuples) that JSON and parquet cannot store directly. These helpers flatten
them into plain Python types.
"""

import json
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from pdflayout.models import Block, ExtractionResult, GapMarker, Line

BLOCK_COLUMNS = [
    "type",
    "text",
    "page",
    "column",
    "level",
    "font_size",
    "x",
    "y",
    "bottom",
    "gap_after",
    "line_count",
    "item_count",
    "row_count",
    "link_count",
    "list_type",
    "is_bold",
]


def normalize_gap(value: Any) -> Optional[Union[float, str]]:
    """
    Make a Block.gap_after value serializable.

    Example:
        >>> normalize_gap(GapMarker.CROSS_PAGE_BREAK)
        'cross_page_break'
        >>> normalize_gap(np.float64(14.0))
        14.0
        >>> normalize_gap(None) is None
        True
    """
    if value is None:
        return None
    if isinstance(value, GapMarker):
        return value.value
    if isinstance(value, (int, float, np.integer, np.floating)):
        return float(value)
    return None


def block_record(block: Block) -> Dict[str, Any]:
    """Flat dict of one block for tabular output."""
    return {
        "type": block.kind.value,
        "text": block.text,
        "page": block.page_number,
        "column": block.column_index,
        "level": block.level,
        "font_size": float(block.font_size),
        "x": float(block.x),
        "y": float(block.y),
        "bottom": float(block.bottom),
        "gap_after": normalize_gap(block.gap_after),
        "line_count": len(block.lines),
        "item_count": len(block.items),
        "row_count": len(block.rows),
        "link_count": len(block.links),
        "list_type": block.list_type,
        "is_bold": block.is_bold,
    }


def blocks_to_dataframe(blocks: Sequence[Block]) -> pd.DataFrame:
    """
    One row per block, in reading order.

    Example:
        >>> from pdflayout.models import BlockKind
        >>> df = blocks_to_dataframe([Block(BlockKind.PARAGRAPH, "Hello")])
        >>> df.loc[0, "type"], df.loc[0, "text"]
        ('paragraph', 'Hello')
    """
    return pd.DataFrame([block_record(b) for b in blocks], columns=BLOCK_COLUMNS)


def lines_from_blocks(blocks: Sequence[Block]) -> List[Line]:
    """All contributing lines of the blocks, in block order."""
    return [line for block in blocks for line in block.lines]


def result_to_dict(result: ExtractionResult) -> Dict[str, Any]:
    """Result dict with warnings, ready for JSON."""
    out = result.to_dict()
    out["pageCount"] = result.page_count
    out["warnings"] = [
        {"pageNum": w.page_number, "message": w.message} for w in result.warnings
    ]
    return out


def result_to_json(result: ExtractionResult, indent: Optional[int] = 2) -> str:
    """Serialize an ExtractionResult to a JSON string."""
    return json.dumps(result_to_dict(result), indent=indent, ensure_ascii=False)
