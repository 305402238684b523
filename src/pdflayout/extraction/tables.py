"""
Tables whose cells landed in different coarse columns.

Block construction only sees one column at a time, so a table whose cells
sit on both sides of a detected column gap comes out as one paragraph per
column. These passes run on the blocks of a single page and rebuild such
tables from their lines.

Algorithm Overview:
1. split_table_blocks(): a column-0 paragraph whose lines partly share a
   row with lines of other columns is split into its table and non-table
   parts. Headings and running prose are left alone
2. merge_column_tables(): lines of candidate paragraphs are keyed by their
   normalized Y (tolerance 0.3 x base font size); a key with lines from at
   least two columns is a row
3. Consecutive rows at most 2.5 x base apart with the same cell count form
   a table; two rows are the minimum
4. A table is kept when average cell length < 150, fewer than half of its
   rows have a cell over 100 characters, and average line length < 100
5. The table becomes one TABLE block at column 0; its lines are removed
   from the blocks they came from, which are rebuilt from what remains

Running prose in two columns also lines up row by row. A block counts as
prose, and is never a table candidate, when it is long, has many long
lines, or its continuation lines mostly start in lowercase.
"""

import itertools
import logging
from dataclasses import replace
from typing import Dict, List, Optional, Sequence, Set, Tuple

from pdflayout.config import TableConfig
from pdflayout.constants import DEFAULT_FONT_SIZE
from pdflayout.extraction.links import anchor_text
from pdflayout.extraction.paragraphs import TABLE_CELL_SEPARATOR, assign_gaps
from pdflayout.models import Block, BlockKind, DocumentMetrics, Line
from pdflayout.utils.stats import mean
from pdflayout.utils.text import join_text, starts_with_lowercase

logger = logging.getLogger(__name__)


# =============================================================================
# HELPERS
# =============================================================================

def normalize_y(y: float, tolerance: float) -> float:
    """
    Snap a Y coordinate to the row grid.

    Example:
        >>> normalize_y(100.0, 3.6) == normalize_y(101.0, 3.6)
        True
        >>> normalize_y(100.0, 0)
        100.0
    """
    if tolerance <= 0:
        return y
    return round(y / tolerance) * tolerance


def _base(metrics: DocumentMetrics) -> float:
    return metrics.base_font_size or DEFAULT_FONT_SIZE


def is_running_prose(block: Block, config: Optional[TableConfig] = None) -> bool:
    """
    Long text, many long lines, or lines that continue in lowercase.

    Example:
        >>> lines = (Line("Left column text", 0, 0, 12), Line("continues here", 0, 14, 12))
        >>> is_running_prose(Block(BlockKind.PARAGRAPH, "Left column text continues here", lines=lines))
        True
    """
    config = config or TableConfig()
    text = block.text.strip()
    if len(text) > config.paragraph_min_length:
        return True
    lines = block.lines
    if (
        len(lines) >= config.paragraph_min_lines
        and mean(len(l.text.strip()) for l in lines) > config.paragraph_line_length
    ):
        return True
    if len(lines) < 2:
        return False
    lowercase = sum(1 for l in lines[1:] if starts_with_lowercase(l.text.strip()))
    return lowercase / (len(lines) - 1) >= config.lowercase_continuation_ratio


def rebuild_block(block: Block, lines: Sequence[Line]) -> Block:
    """The block narrowed to ``lines`` (non-empty, in reading order)."""
    text = ""
    for line in lines:
        text = join_text(text, line.text.strip())
    return replace(
        block,
        text=text,
        lines=tuple(lines),
        font_size=max(l.font_size for l in lines),
        x=min(l.x for l in lines),
        y=lines[0].y,
        bottom=lines[-1].y,
        is_bold=any(l.is_bold for l in lines),
        links=tuple(link for link in block.links if anchor_text(link, lines)),
    )


def _segments(block: Block, flags: Sequence[bool]) -> List[Tuple[bool, List[Line]]]:
    return [
        (flag, [line for line, _ in group])
        for flag, group in itertools.groupby(zip(block.lines, flags), key=lambda pair: pair[1])
    ]


def _reorder(blocks: Sequence[Block]) -> List[Block]:
    return assign_gaps(sorted(blocks, key=lambda b: (b.column_index, b.y)))


# =============================================================================
# SPLITTING
# =============================================================================

def split_table_blocks(
    blocks: Sequence[Block],
    metrics: DocumentMetrics,
    config: Optional[TableConfig] = None,
) -> List[Block]:
    """
    Split column-0 paragraphs into table and non-table parts.

    A line is a table line when its row key matches a line of another
    column on the page.

    Args:
        blocks: Blocks of one page in reading order.
        metrics: Document metrics (base font size).
        config: Table thresholds.

    Returns:
        New block list; unchanged when nothing was split.
    """
    config = config or TableConfig()
    base = _base(metrics)
    tolerance = base * config.y_tolerance_factor
    other_keys: Set[float] = {
        normalize_y(line.y, tolerance)
        for block in blocks
        if block.column_index != 0 and block.kind != BlockKind.HEADING
        for line in block.lines
    }
    if not other_keys:
        return list(blocks)

    out: List[Block] = []
    splits = 0
    for block in blocks:
        if (
            block.column_index != 0
            or block.kind != BlockKind.PARAGRAPH
            or len(block.lines) < 2
            or is_running_prose(block, config)
        ):
            out.append(block)
            continue
        flags = [normalize_y(line.y, tolerance) in other_keys for line in block.lines]
        if all(flags) or not any(flags):
            out.append(block)
            continue
        out.extend(rebuild_block(block, lines) for _, lines in _segments(block, flags))
        splits += 1

    if not splits:
        return list(blocks)
    logger.debug(f"Split {splits} blocks around table rows")
    return _reorder(out)


# =============================================================================
# MERGING
# =============================================================================

def _rows(lines: Sequence[Line], tolerance: float, min_columns: int) -> List[List[Line]]:
    by_key: Dict[float, List[Line]] = {}
    for line in lines:
        by_key.setdefault(normalize_y(line.y, tolerance), []).append(line)
    rows = [
        sorted(row, key=lambda l: l.x)
        for _, row in sorted(by_key.items())
        if len({l.column_index for l in row}) >= min_columns
    ]
    return rows


def _runs_of_rows(rows: Sequence[List[Line]], max_gap: float) -> List[List[List[Line]]]:
    runs: List[List[List[Line]]] = []
    for row in rows:
        if runs:
            prev = runs[-1][-1]
            if len(row) == len(prev) and 0 < row[0].y - prev[0].y <= max_gap:
                runs[-1].append(row)
                continue
        runs.append([row])
    return runs


def is_valid_table(rows: Sequence[Sequence[str]], config: Optional[TableConfig] = None) -> bool:
    """
    Cell-length sanity checks for a candidate table.

    Example:
        >>> is_valid_table([("Region", "Revenue"), ("North", "120")])
        True
        >>> is_valid_table([("x" * 160, "y" * 160), ("x" * 160, "y" * 160)])
        False
    """
    config = config or TableConfig()
    cells = [cell for row in rows for cell in row]
    if not cells:
        return False
    if mean(len(c) for c in cells) >= config.max_avg_cell_length:
        return False
    long_rows = sum(1 for row in rows if any(len(c) > config.long_cell_length for c in row))
    if long_rows / len(rows) >= config.max_long_row_ratio:
        return False
    return mean(len(TABLE_CELL_SEPARATOR.join(row)) for row in rows) < config.max_avg_line_length


def _table_block(rows: Sequence[List[Line]]) -> Block:
    cells = tuple(tuple(l.text.strip() for l in row) for row in rows)
    lines = tuple(l for row in rows for l in row)
    return Block(
        kind=BlockKind.TABLE,
        text="\n".join(TABLE_CELL_SEPARATOR.join(row) for row in cells),
        page_number=lines[0].page_number,
        font_size=max(l.font_size for l in lines),
        column_index=0,
        lines=lines,
        rows=cells,
        x=min(l.x for l in lines),
        y=rows[0][0].y,
        bottom=rows[-1][0].y,
        is_bold=any(l.is_bold for l in lines),
    )


def merge_column_tables(
    blocks: Sequence[Block],
    metrics: DocumentMetrics,
    config: Optional[TableConfig] = None,
) -> List[Block]:
    """
    Rebuild tables whose cells were grouped column by column.

    Args:
        blocks: Blocks of one page in reading order.
        metrics: Document metrics (base font size).
        config: Table thresholds.

    Returns:
        New block list with TABLE blocks; unchanged when no table is found.
    """
    config = config or TableConfig()
    base = _base(metrics)
    candidates = [
        b for b in blocks
        if b.kind == BlockKind.PARAGRAPH and b.lines and not is_running_prose(b, config)
    ]
    if len({b.column_index for b in candidates}) < config.min_columns:
        return list(blocks)

    lines = [line for b in candidates for line in b.lines]
    rows = _rows(lines, base * config.y_tolerance_factor, config.min_columns)

    tables: List[Block] = []
    consumed: Set[int] = set()
    for run in _runs_of_rows(rows, base * config.max_row_gap_factor):
        if len(run) < config.min_rows:
            continue
        table = _table_block(run)
        if not is_valid_table(table.rows, config):
            logger.debug(f"Rejected column table candidate with {len(run)} rows on page {table.page_number}")
            continue
        tables.append(table)
        consumed.update(id(line) for line in table.lines)

    if not tables:
        return list(blocks)

    out: List[Block] = []
    for block in blocks:
        if not block.lines or not any(id(l) in consumed for l in block.lines):
            out.append(block)
            continue
        flags = [id(l) in consumed for l in block.lines]
        out.extend(rebuild_block(block, part) for taken, part in _segments(block, flags) if not taken)

    logger.debug(
        f"Page {tables[0].page_number}: rebuilt {len(tables)} column tables "
        f"({', '.join(f'{len(t.rows)}x{t.column_count}' for t in tables)})"
    )
    return _reorder(out + tables)


def extract_column_tables(
    blocks: Sequence[Block],
    metrics: DocumentMetrics,
    config: Optional[TableConfig] = None,
) -> List[Block]:
    """Split mixed column-0 blocks, then rebuild cross-column tables."""
    blocks = split_table_blocks(blocks, metrics, config)
    return merge_column_tables(blocks, metrics, config)
