"""
Grouping lines into blocks (paragraphs, headings, list items, table rows).

Algorithm Overview:
1. Measure the page: average line height and the modal top-to-top spacing
   of consecutive lines within each column
2. Classify the spacing regime by modal spacing / average line height:
   tight (< 1.2) -> 1.5, normal (< 1.5) -> 1.8, loose -> 2.0; a page with
   fewer than two measured gaps counts as normal with the line height as
   its modal spacing
3. Walk each column top to bottom with a current-block accumulator:
   - lines sharing a Y row with another line of the column form a table row
   - headings (font > 1.3 x average, or Chapter/Section/numbered openers)
     always stand alone
   - list markers open a list item block
   - a gap above modal spacing x multiplier, or a font change above
     0.2 x average line height, starts a new block
   - anything else is appended to the current block with a single space
4. Record the vertical gap to the next block of the same column; the last
   block of the page gets the cross-page marker

merge_same_page_continuations() then rejoins adjacent paragraphs that were
split by a moderate gap but score as one continuous text.
"""

import logging
from dataclasses import replace
from typing import Dict, List, Optional, Sequence, Tuple

from pdflayout.config import ContinuationConfig, ParagraphConfig
from pdflayout.constants import (
    LIST_TYPE_ORDERED,
    LIST_TYPE_UNORDERED,
    NUMBERING_RX,
    STRUCTURAL_HEADING_RX,
)
from pdflayout.extraction.columns import column_index_for_x
from pdflayout.extraction.continuation import continuation_score
from pdflayout.extraction.pdf import ImageRef
from pdflayout.models import (
    CROSS_PAGE_BREAK,
    Block,
    BlockKind,
    Column,
    DocumentMetrics,
    Line,
    ListItem,
)
from pdflayout.utils.stats import mean, mode_of
from pdflayout.utils.text import (
    is_ordered_item,
    join_text,
    looks_like_list_item,
    starts_with_lowercase,
    strip_list_marker,
)

logger = logging.getLogger(__name__)

IMAGE_PLACEHOLDER = "[image]"
TABLE_CELL_SEPARATOR = " | "

SPACING_TIGHT = "tight"
SPACING_NORMAL = "normal"
SPACING_LOOSE = "loose"


# =============================================================================
# SPACING AND HEADINGS
# =============================================================================

def classify_spacing(
    modal_spacing: float,
    avg_line_height: float,
    config: Optional[ParagraphConfig] = None,
) -> Tuple[str, float]:
    """
    Spacing regime and paragraph-gap multiplier.

    Example:
        >>> classify_spacing(12, 12)
        ('tight', 1.5)
        >>> classify_spacing(20, 12)
        ('loose', 2.0)
    """
    config = config or ParagraphConfig()
    if avg_line_height <= 0:
        return SPACING_NORMAL, config.normal_multiplier
    ratio = modal_spacing / avg_line_height
    if ratio < config.tight_spacing_ratio:
        return SPACING_TIGHT, config.tight_multiplier
    if ratio < config.normal_spacing_ratio:
        return SPACING_NORMAL, config.normal_multiplier
    return SPACING_LOOSE, config.loose_multiplier


def is_heading_line(line: Line, avg_line_height: float, config: Optional[ParagraphConfig] = None) -> bool:
    """
    Heading by size or by structural opener.

    Numbered openers ("2. Methods") count only when the line is bold or at
    least slightly larger than the running text; otherwise they are
    ordered list items.

    Example:
        >>> is_heading_line(Line("Chapter 3", 0, 0, 12), 12)
        True
        >>> is_heading_line(Line("1. install it", 0, 0, 12), 12)
        False
    """
    config = config or ParagraphConfig()
    if avg_line_height > 0 and line.font_size > avg_line_height * config.heading_font_ratio:
        return True
    text = line.text.strip()
    if not STRUCTURAL_HEADING_RX.match(text):
        return False
    if NUMBERING_RX.match(text):
        return line.is_bold or line.font_size >= avg_line_height * config.emphasis_font_ratio
    return True


def _column_gaps(lines: Sequence[Line]) -> List[float]:
    by_column: Dict[int, List[Line]] = {}
    for line in lines:
        by_column.setdefault(line.column_index, []).append(line)
    gaps: List[float] = []
    for column_lines in by_column.values():
        ordered = sorted(column_lines, key=lambda l: l.y)
        gaps.extend(b.y - a.y for a, b in zip(ordered, ordered[1:]) if b.y - a.y > 0)
    return gaps


def page_spacing(lines: Sequence[Line], config: Optional[ParagraphConfig] = None) -> Tuple[float, float, str, float]:
    """
    Measure a page.

    Returns:
        (avg_line_height, modal_spacing, regime, paragraph break gap)
    """
    config = config or ParagraphConfig()
    avg_height = mean((l.font_size for l in lines), default=12.0)
    gaps = [g for g in _column_gaps(lines) if g < avg_height * 10]
    if len(gaps) < config.min_gaps_for_mode:
        modal = avg_height
        regime, multiplier = SPACING_NORMAL, config.normal_multiplier
    else:
        modal = mode_of(gaps, resolution=1.0) or avg_height
        regime, multiplier = classify_spacing(modal, avg_height, config)
    return avg_height, modal, regime, modal * multiplier


# =============================================================================
# BLOCK CONSTRUCTION
# =============================================================================

def _block_from_lines(kind: BlockKind, lines: Sequence[Line], text: str, **extra) -> Block:
    return Block(
        kind=kind,
        text=text,
        page_number=lines[0].page_number,
        font_size=max(l.font_size for l in lines),
        column_index=lines[0].column_index,
        lines=tuple(lines),
        x=min(l.x for l in lines),
        y=lines[0].y,
        bottom=lines[-1].y,
        is_bold=any(l.is_bold for l in lines),
        **extra,
    )


def _list_block(line: Line) -> Block:
    ordered = is_ordered_item(line.text)
    item = ListItem(
        text=strip_list_marker(line.text),
        page_number=line.page_number,
        column_index=line.column_index,
        ordered=ordered,
    )
    return _block_from_lines(
        BlockKind.LIST,
        [line],
        line.text.strip(),
        items=(item,),
        list_type=LIST_TYPE_ORDERED if ordered else LIST_TYPE_UNORDERED,
    )


def _table_row_block(row: Sequence[Line]) -> Block:
    cells = sorted(row, key=lambda l: l.x)
    texts = tuple(l.text.strip() for l in cells)
    return _block_from_lines(
        BlockKind.TABLE,
        cells,
        TABLE_CELL_SEPARATOR.join(texts),
        rows=(texts,),
    )


def _extend(block: Block, line: Line) -> Block:
    lines = block.lines + (line,)
    items = block.items
    if items:
        last = items[-1]
        items = items[:-1] + (replace(last, text=join_text(last.text, line.text.strip())),)
    return replace(
        block,
        text=join_text(block.text, line.text.strip()),
        lines=lines,
        items=items,
        font_size=max(block.font_size, line.font_size),
        x=min(block.x, line.x),
        bottom=line.y,
        is_bold=block.is_bold or line.is_bold,
    )


def _rows(lines: Sequence[Line], tolerance: float) -> List[List[Line]]:
    """Chain-group Y-sorted lines of one column into rows."""
    rows: List[List[Line]] = []
    for line in lines:
        if rows and abs(line.y - rows[-1][-1].y) <= tolerance:
            rows[-1].append(line)
        else:
            rows.append([line])
    return rows


def _group_column(
    lines: Sequence[Line],
    avg_height: float,
    break_gap: float,
    config: ParagraphConfig,
) -> List[Block]:
    blocks: List[Block] = []
    current: Optional[Block] = None
    prev_line: Optional[Line] = None

    def flush():
        nonlocal current
        if current is not None:
            blocks.append(current)
            current = None

    for row in _rows(sorted(lines, key=lambda l: (l.y, l.x)), config.row_tolerance):
        if len(row) > 1:
            flush()
            blocks.append(_table_row_block(row))
            prev_line = row[-1]
            continue

        line = row[0]
        gap = line.y - prev_line.y if prev_line is not None else 0.0
        prev_line = line

        if is_heading_line(line, avg_height, config):
            flush()
            blocks.append(_block_from_lines(BlockKind.HEADING, [line], line.text.strip()))
            continue

        if looks_like_list_item(line.text):
            flush()
            current = _list_block(line)
            continue

        starts_new = (
            current is None
            or gap > break_gap
            or abs(line.font_size - current.font_size) > avg_height * config.font_change_ratio
        )
        if not starts_new and current.kind == BlockKind.LIST:
            # Wrapped list item text must be indented or continue in lowercase
            item_x = current.lines[0].x
            starts_new = not (line.x > item_x + 1.0 or starts_with_lowercase(line.text))

        if starts_new:
            flush()
            current = _block_from_lines(BlockKind.PARAGRAPH, [line], line.text.strip())
        else:
            current = _extend(current, line)

    flush()
    return blocks


def assign_gaps(blocks: Sequence[Block]) -> List[Block]:
    """
    Set gap_after on blocks of one page in reading order.

    The gap is the top-to-top distance from a block's last line to the next
    block of the same column. The last block of the page gets
    CROSS_PAGE_BREAK; the last block of other columns gets None.
    """
    out: List[Block] = []
    for i, block in enumerate(blocks):
        nxt = next(
            (b for b in blocks[i + 1:] if b.column_index == block.column_index),
            None,
        )
        if i == len(blocks) - 1:
            gap = CROSS_PAGE_BREAK
        elif nxt is not None:
            gap = max(0.0, nxt.y - block.bottom)
        else:
            gap = None
        out.append(replace(block, gap_after=gap))
    return out


def group_lines_into_blocks(
    lines: Sequence[Line],
    metrics: DocumentMetrics,
    config: Optional[ParagraphConfig] = None,
) -> List[Block]:
    """
    Group the lines of one page into blocks, column by column.

    Args:
        lines: Lines of a single page (any order).
        metrics: Document metrics (reserved for the line height fallback).
        config: Grouping thresholds.

    Returns:
        Blocks in reading order (columns left to right, then top to bottom)
        with gap_after set.

    Example:
        >>> lines = [Line("First paragraph.", 0, 0, 12), Line("Second one.", 0, 40, 12)]
        >>> [b.text for b in group_lines_into_blocks(lines, DocumentMetrics())]
        ['First paragraph.', 'Second one.']
    """
    config = config or ParagraphConfig()
    if not lines:
        return []

    avg_height, modal, regime, break_gap = page_spacing(lines, config)
    if avg_height <= 0:
        avg_height = metrics.base_font_size

    by_column: Dict[int, List[Line]] = {}
    for line in lines:
        by_column.setdefault(line.column_index, []).append(line)

    blocks: List[Block] = []
    for column_index in sorted(by_column):
        blocks.extend(_group_column(by_column[column_index], avg_height, break_gap, config))

    logger.debug(
        f"Page {lines[0].page_number}: {len(lines)} lines -> {len(blocks)} blocks "
        f"({regime} spacing, modal {modal:.1f}, break gap {break_gap:.1f})"
    )
    return assign_gaps(blocks)


def build_image_blocks(
    images: Sequence[ImageRef],
    page_number: int,
    columns: Optional[Sequence[Column]] = None,
) -> List[Block]:
    """Image placeholder blocks, one per image bounding box."""
    return [
        Block(
            kind=BlockKind.IMAGE,
            text=IMAGE_PLACEHOLDER,
            page_number=page_number,
            column_index=column_index_for_x(img.x, columns) if columns else 0,
            x=img.x,
            y=img.y,
            bottom=img.y + img.height,
        )
        for img in images
    ]


def insert_image_blocks(blocks: Sequence[Block], images: Sequence[Block]) -> List[Block]:
    """Merge image blocks into reading order by (column, y) and refresh gaps."""
    if not images:
        return list(blocks)
    ordered = sorted(list(blocks) + list(images), key=lambda b: (b.column_index, b.y))
    return assign_gaps(ordered)


# =============================================================================
# SAME-PAGE CONTINUATIONS
# =============================================================================

def merge_same_page_continuations(
    blocks: Sequence[Block],
    metrics: DocumentMetrics,
    config: Optional[ContinuationConfig] = None,
) -> List[Block]:
    """
    Rejoin adjacent paragraphs split by a moderate gap.

    Two consecutive paragraphs of the same page and column merge when the
    measured gap between them is below the paragraph break minimum and the
    continuation score reaches the threshold.

    Args:
        blocks: Blocks in reading order.
        metrics: Document metrics with gap analysis.
        config: Continuation weights.

    Returns:
        New block list.
    """
    config = config or ContinuationConfig()
    gap_min = (
        metrics.gap_analysis.paragraph_gap_min
        if metrics.gap_analysis is not None
        else metrics.paragraph_gap_threshold
    )

    out: List[Block] = []
    merged = 0
    for block in blocks:
        prev = out[-1] if out else None
        if (
            prev is not None
            and prev.kind == BlockKind.PARAGRAPH
            and block.kind == BlockKind.PARAGRAPH
            and prev.page_number == block.page_number
            and prev.column_index == block.column_index
            and prev.has_measured_gap
            and prev.gap_after < gap_min
            and continuation_score(
                prev.text, block.text, prev.font_size, block.font_size, metrics, config
            ).merge
        ):
            out[-1] = replace(
                prev,
                text=join_text(prev.text, block.text),
                lines=prev.lines + block.lines,
                font_size=max(prev.font_size, block.font_size),
                bottom=block.bottom,
                gap_after=block.gap_after,
                is_bold=prev.is_bold or block.is_bold,
                links=prev.links + block.links,
            )
            merged += 1
            continue
        out.append(block)

    if merged:
        logger.debug(f"Merged {merged} same-page paragraph continuations")
    return out
