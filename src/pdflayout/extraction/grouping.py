"""
Grouping consecutive list and table blocks.

Block construction emits one LIST block per list item and one TABLE block
per table row. This pass folds runs of them into whole lists and tables.

Lists:
- nesting level comes from X indentation against the median X of earlier
  top-level lists in the same column: floor(indent / threshold), capped at 5,
  with threshold = max(0.15 x base font size, 10)
- a list block joins the current list when it is in the same column and
  page and either has the same type (ordered/unordered) and level, sits
  indented under the current list (nested item), or both are ordered at the
  same level
- nested items keep the parent list's type and level; their own level is
  the parent level plus the indent steps
- any other block ends the current list

Inline lists:
- a paragraph "Lead-in: • item • item" (or with numbered items) becomes
  the lead-in, as a heading when shorter than 100 characters, followed by
  one list block per item; list grouping then folds the items together

Tables:
- consecutive rows with the same column count join when they are on
  different pages, or on the same page and column with a positive vertical
  gap below 3 x base font size
"""

import logging
import math
import re
from dataclasses import replace
from typing import Dict, List, Optional, Sequence, Tuple

from pdflayout.config import ListSplitConfig
from pdflayout.constants import DEFAULT_FONT_SIZE, INLINE_LIST_RX, LIST_TYPE_ORDERED, LIST_TYPE_UNORDERED
from pdflayout.models import Block, BlockKind, DocumentMetrics, ListItem

logger = logging.getLogger(__name__)

MAX_LIST_LEVEL = 5


# =============================================================================
# LISTS
# =============================================================================

def indent_threshold(base_font_size: Optional[float]) -> float:
    """
    Horizontal distance that counts as one nesting step.

    Example:
        >>> indent_threshold(12), indent_threshold(100)
        (10, 15.0)
    """
    return max((base_font_size or DEFAULT_FONT_SIZE) * 0.15, 10)


def nesting_level(x: float, reference_xs: Sequence[float], threshold: float) -> int:
    """
    Nesting level of a list at ``x`` given earlier top-level list positions.

    Example:
        >>> nesting_level(72, [], 10), nesting_level(95, [72, 72], 10)
        (0, 2)
    """
    if not reference_xs:
        return 0
    ordered = sorted(reference_xs)
    median_x = ordered[len(ordered) // 2]
    indent = x - median_x
    if indent < threshold:
        return 0
    return min(int(math.floor(indent / threshold)), MAX_LIST_LEVEL)


def _is_ordered(block: Block) -> bool:
    return block.list_type == LIST_TYPE_ORDERED


def _nested_steps(block: Block, current: Block, threshold: float) -> int:
    indent = block.x - current.x
    if indent <= threshold:
        return 0
    return int(math.floor(indent / threshold))


def _joins_list(block: Block, current: Block, steps: int) -> bool:
    if block.page_number != current.page_number or block.column_index != current.column_index:
        return False
    same_type = _is_ordered(block) == _is_ordered(current)
    if same_type and block.list_level == current.list_level:
        return True
    return steps > 0


def _append_items(current: Block, block: Block, level: int) -> Block:
    items: Tuple[ListItem, ...] = block.items or (
        ListItem(text=block.text, page_number=block.page_number, column_index=block.column_index),
    )
    shifted = tuple(
        replace(item, level=min(level + max(item.level - block.list_level, 0), MAX_LIST_LEVEL))
        for item in items
    )
    return replace(
        current,
        text=current.text + "\n" + block.text,
        items=current.items + shifted,
        lines=current.lines + block.lines,
        bottom=block.bottom,
        gap_after=block.gap_after,
        links=current.links + block.links,
    )


def group_list_items(blocks: Sequence[Block], metrics: DocumentMetrics) -> List[Block]:
    """
    Fold consecutive list-item blocks into list blocks.

    Args:
        blocks: Blocks in reading order.
        metrics: Document metrics (base font size for indentation steps).

    Returns:
        New block list with grouped LIST blocks; other blocks unchanged.
    """
    threshold = indent_threshold(metrics.base_font_size)
    out: List[Block] = []
    current: Optional[Block] = None
    top_level_xs: Dict[int, List[float]] = {}
    grouped = 0

    for block in blocks:
        if block.kind != BlockKind.LIST:
            if current is not None:
                out.append(current)
                current = None
            out.append(block)
            continue

        xs = top_level_xs.setdefault(block.column_index, [])
        level = nesting_level(block.x, xs, threshold)
        block = replace(
            block,
            list_level=level,
            items=tuple(replace(item, level=level) for item in block.items),
        )

        if current is not None:
            steps = _nested_steps(block, current, threshold)
            if _joins_list(block, current, steps):
                item_level = current.list_level + steps if steps > 0 else block.list_level
                current = _append_items(current, block, item_level)
                grouped += 1
                continue
            out.append(current)

        current = block
        if level == 0:
            xs.append(block.x)

    if current is not None:
        out.append(current)
    if grouped:
        logger.debug(f"Grouped {grouped} list items into {sum(1 for b in out if b.kind == BlockKind.LIST)} lists")
    return out


# =============================================================================
# TABLES
# =============================================================================

def _vertical_gap(prev: Block, nxt: Block) -> float:
    if prev.has_measured_gap:
        return float(prev.gap_after)
    return nxt.y - prev.bottom


def _joins_table(prev: Block, nxt: Block, max_gap: float) -> bool:
    if prev.column_count != nxt.column_count or prev.column_count == 0:
        return False
    if prev.page_number != nxt.page_number:
        return True
    if prev.column_index != nxt.column_index:
        return False
    gap = _vertical_gap(prev, nxt)
    return 0 < gap < max_gap


def group_table_rows(blocks: Sequence[Block], metrics: DocumentMetrics) -> List[Block]:
    """
    Fold consecutive table-row blocks with matching column counts.

    Example:
        >>> rows = [Block(BlockKind.TABLE, "a | b", rows=(("a", "b"),), y=y, bottom=y)
        ...         for y in (100, 114)]
        >>> grouped = group_table_rows(rows, DocumentMetrics())
        >>> len(grouped), grouped[0].rows
        (1, (('a', 'b'), ('a', 'b')))
    """
    max_gap = (metrics.base_font_size or DEFAULT_FONT_SIZE) * 3
    out: List[Block] = []
    for block in blocks:
        prev = out[-1] if out else None
        if (
            prev is not None
            and prev.kind == BlockKind.TABLE
            and block.kind == BlockKind.TABLE
            and _joins_table(prev, block, max_gap)
        ):
            out[-1] = replace(
                prev,
                text=prev.text + "\n" + block.text,
                rows=prev.rows + block.rows,
                lines=prev.lines + block.lines,
                bottom=block.bottom,
                gap_after=block.gap_after,
                links=prev.links + block.links,
            )
            continue
        out.append(block)
    return out


# =============================================================================
# INLINE LISTS
# =============================================================================

ORDERED_MARKER_RX = re.compile(r"(?:^|\s+)(\d+[.)])\s+")


def _split_items(body: str, marker: str) -> List[Tuple[str, str]]:
    """(marker, text) pairs of an inline list body that opens with ``marker``."""
    if marker[0].isdigit():
        rx = ORDERED_MARKER_RX
    else:
        rx = re.compile(r"(?:^|\s+)(" + re.escape(marker) + r")\s+")
    parts = rx.split(body)
    # parts: [text before first marker, marker, text, marker, text, ...]
    return [
        (parts[i], parts[i + 1].strip())
        for i in range(1, len(parts) - 1, 2)
        if parts[i + 1].strip()
    ]


def split_inline_list(block: Block, config: Optional[ListSplitConfig] = None) -> Tuple[Block, ...]:
    """
    Split "Lead-in: • item • item" into a lead-in and one list block per item.

    The lead-in becomes a heading when it is shorter than
    ``config.heading_max_length``, otherwise it stays a paragraph. Item
    blocks are folded into one list by group_list_items().

    Example:
        >>> parts = split_inline_list(Block(BlockKind.PARAGRAPH, "Main principles: • speed • safety"))
        >>> [(p.kind.value, p.text) for p in parts]
        [('heading', 'Main principles:'), ('list', '• speed'), ('list', '• safety')]
    """
    config = config or ListSplitConfig()
    if block.kind != BlockKind.PARAGRAPH:
        return (block,)
    text = block.text.strip()
    match = INLINE_LIST_RX.search(text)
    if not match:
        return (block,)
    lead = text[: match.start() + 1].strip()
    items = _split_items(text[match.start(1):], match.group(1))
    if not lead or len(items) < config.min_items:
        return (block,)

    lead_kind = BlockKind.HEADING if len(lead) < config.heading_max_length else BlockKind.PARAGRAPH
    parts: List[Block] = [replace(block, kind=lead_kind, text=lead, gap_after=None)]
    for i, (marker, item_text) in enumerate(items):
        ordered = marker[0].isdigit()
        parts.append(
            replace(
                block,
                kind=BlockKind.LIST,
                text=f"{marker} {item_text}",
                lines=(),
                links=(),
                items=(
                    ListItem(
                        text=item_text,
                        page_number=block.page_number,
                        column_index=block.column_index,
                        ordered=ordered,
                    ),
                ),
                list_type=LIST_TYPE_ORDERED if ordered else LIST_TYPE_UNORDERED,
                gap_after=block.gap_after if i == len(items) - 1 else None,
            )
        )
    return tuple(parts)


def split_inline_lists(blocks: Sequence[Block], config: Optional[ListSplitConfig] = None) -> List[Block]:
    """Apply split_inline_list() to every block."""
    out: List[Block] = []
    for block in blocks:
        out.extend(split_inline_list(block, config))
    if len(out) != len(blocks):
        logger.debug(f"Inline list split: {len(blocks)} -> {len(out)} blocks")
    return out
