"""
Cross-page merge of blocks split by a page break.

A paragraph, heading or list that runs over the bottom of a page arrives
as two blocks: the last one of page N and the first one of page N+1. This
pass rejoins them.

Algorithm Overview:
1. Walk blocks in reading order, always comparing the next block with the
   last block of the output (so a block can absorb several pages)
2. Check preconditions: the next block sits on the page right after the
   one where the previous block ends, same type (or a paragraph following
   a list), same column
3. Apply the type rule:
   - paragraphs: measured-gap vetoes, then continuation scoring with the
     page-break context
   - headings: similar font size, previous ends with ':' or next starts in
     lowercase, both shorter than 150 characters
   - lists: grouped lists of the same type and level; otherwise a list item
     continued in lowercase, which may arrive as a paragraph and then
     extends the last item
4. Build the merged block from the previous one: text joined with a space
   (newline between grouped lists), lines and items concatenated, page and
   column of the previous block kept

Merge Rules (paragraphs):
- a measured gap above 2 x paragraph_gap_min never merges
- a measured gap at or above paragraph_gap_min never merges
- a gap in the ambiguous band (normal_gap_max .. paragraph_gap_min) more
  than 70% of the way to paragraph_gap_min never merges
- when the next block starts in lowercase and contains a sentence boundary
  followed by more than 20 characters, only the fragment up to the
  boundary is merged; the rest stays a paragraph of its own
"""

import logging
from dataclasses import replace
from typing import List, Optional, Sequence, Tuple

from pdflayout.config import LayoutConfig
from pdflayout.constants import DEFAULT_FONT_SIZE, SENTENCE_BOUNDARY_RX
from pdflayout.extraction.continuation import analyze_page_break_context, continuation_score
from pdflayout.models import (
    Block,
    BlockKind,
    DocumentMetrics,
    Line,
    ListItem,
    Merged,
    MergedWithRemainder,
    MergeOutcome,
    NoMerge,
)
from pdflayout.utils.text import join_text, looks_like_list_item, starts_with_lowercase

logger = logging.getLogger(__name__)


# =============================================================================
# MERGE DECISIONS
# =============================================================================

def _font_size(block: Block, metrics: DocumentMetrics) -> float:
    size = block.font_size
    if size is None or size <= 0:
        return metrics.base_font_size or DEFAULT_FONT_SIZE
    return size


def _kinds_compatible(prev: Block, nxt: Block) -> bool:
    if prev.kind == nxt.kind:
        return True
    # a list item may run onto the next page as plain text
    return prev.kind == BlockKind.LIST and nxt.kind == BlockKind.PARAGRAPH


def _preconditions(prev: Block, nxt: Block) -> bool:
    return (
        nxt.page_number == prev.end_page + 1
        and _kinds_compatible(prev, nxt)
        and prev.column_index == nxt.column_index
        and bool(prev.text.strip())
        and bool(nxt.text.strip())
    )


def should_merge_paragraphs(
    prev: Block,
    nxt: Block,
    metrics: DocumentMetrics,
    config: Optional[LayoutConfig] = None,
) -> bool:
    """
    Decide whether two paragraphs on consecutive pages are one paragraph.

    Example:
        >>> a = Block(BlockKind.PARAGRAPH, "continued on the next,", page_number=1)
        >>> b = Block(BlockKind.PARAGRAPH, "page without issue.", page_number=2)
        >>> should_merge_paragraphs(a, b, DocumentMetrics())
        True
    """
    config = config or LayoutConfig()
    if prev.page_number == nxt.page_number or prev.column_index != nxt.column_index:
        return False
    prev_text = prev.text.strip()
    next_text = nxt.text.strip()
    if not prev_text or not next_text:
        return False

    gaps = metrics.gap_analysis
    if gaps is not None and prev.has_measured_gap:
        gap = float(prev.gap_after)
        para_min = gaps.paragraph_gap_min
        normal_max = gaps.normal_gap_max
        if para_min and gap > para_min * config.cross_page.very_large_gap_multiplier:
            logger.debug(f"No cross-page merge: very large gap {gap:.1f}")
            return False
        if para_min and gap >= para_min:
            logger.debug(f"No cross-page merge: paragraph gap {gap:.1f}")
            return False
        if para_min and normal_max and normal_max < gap < para_min:
            ratio = (gap - normal_max) / (para_min - normal_max)
            if ratio > config.cross_page.gap_ratio_threshold:
                logger.debug(f"No cross-page merge: ambiguous gap ratio {ratio:.2f}")
                return False

    context = analyze_page_break_context(prev_text, next_text, config.cross_page)
    decision = continuation_score(
        prev_text,
        next_text,
        _font_size(prev, metrics),
        _font_size(nxt, metrics),
        metrics,
        config.continuation,
        page_break=context,
    )
    return decision.merge


def should_merge_headings(
    prev: Block,
    nxt: Block,
    metrics: DocumentMetrics,
    config: Optional[LayoutConfig] = None,
) -> bool:
    """Decide whether a heading was split over a page break."""
    config = config or LayoutConfig()
    prev_text = prev.text.strip()
    next_text = nxt.text.strip()
    if not prev_text or not next_text:
        return False
    base = metrics.base_font_size or DEFAULT_FONT_SIZE
    tolerance = base * config.cross_page.heading_font_tolerance
    if abs(_font_size(prev, metrics) - _font_size(nxt, metrics)) > tolerance:
        return False
    if not (prev_text.endswith(":") or starts_with_lowercase(next_text)):
        return False
    limit = config.cross_page.heading_max_length
    return len(prev_text) < limit and len(next_text) < limit


def should_merge_lists(
    prev: Block,
    nxt: Block,
    metrics: DocumentMetrics,
    config: Optional[LayoutConfig] = None,
) -> bool:
    """
    Decide whether two list blocks on consecutive pages are one list.

    Grouped lists merge when type and nesting level match. Ungrouped items
    that both look like list items are separate items; otherwise a list item
    continued in lowercase at a similar font size merges.
    """
    config = config or LayoutConfig()
    if prev.column_index != nxt.column_index:
        return False
    if prev.items and nxt.items:
        return (
            prev.list_type is not None
            and prev.list_type == nxt.list_type
            and prev.list_level == nxt.list_level
        )

    prev_text = prev.text.strip()
    next_text = nxt.text.strip()
    if not prev_text or not next_text:
        return False
    prev_is_item = looks_like_list_item(prev_text)
    if prev_is_item and looks_like_list_item(next_text):
        return False

    context = analyze_page_break_context(prev_text, next_text, config.cross_page)
    base = metrics.base_font_size or DEFAULT_FONT_SIZE
    font_similar = (
        abs(_font_size(prev, metrics) - _font_size(nxt, metrics))
        <= base * config.continuation.similarity_tolerance
    )
    return (
        prev_is_item
        and context.next_starts_with_lowercase
        and font_similar
        and not context.prev_ends_with_sentence_end
    )


# =============================================================================
# SPLITTING
# =============================================================================

def find_embedded_boundary(text: str, min_remainder: int = 20) -> Optional[int]:
    """
    Index where a new sentence starts inside a lowercase-opening text.

    Only boundaries followed by more than ``min_remainder`` characters count.

    Example:
        >>> find_embedded_boundary("end of sentence. A new paragraph starts right here.")
        17
        >>> find_embedded_boundary("Capitalised. A new paragraph starts right here.") is None
        True
    """
    stripped = (text or "").strip()
    if not starts_with_lowercase(stripped):
        return None
    for match in SENTENCE_BOUNDARY_RX.finditer(stripped):
        if not match.group(2).isupper():
            continue
        after = stripped[match.end(0) - len(match.group(2)):]
        if len(after) > min_remainder:
            return match.start(1) + len(match.group(1)) + 1
    return None


def _split_lines(lines: Sequence[Line], split_index: int) -> Tuple[Tuple[Line, ...], Tuple[Line, ...]]:
    """Lines ending before ``split_index`` go left, the rest right."""
    consumed = 0
    for i, line in enumerate(lines):
        consumed += len(line.text.strip()) + 1
        if consumed > split_index:
            return tuple(lines[: i + 1]), tuple(lines[i + 1:])
    return tuple(lines), ()


def split_embedded_paragraph(block: Block, min_remainder: int = 20) -> Tuple[Block, ...]:
    """
    Split a continuation fragment off a block that also opens a new paragraph.

    Returns:
        (continuation, new paragraph) when a boundary is found, else (block,).

    Example:
        >>> b = Block(BlockKind.PARAGRAPH, "end of sentence. A new paragraph starts right here.")
        >>> [p.text for p in split_embedded_paragraph(b)]
        ['end of sentence.', 'A new paragraph starts right here.']
    """
    text = block.text.strip()
    index = find_embedded_boundary(text, min_remainder)
    if index is None or not 0 < index < len(text):
        return (block,)
    head_lines, tail_lines = _split_lines(block.lines, index)
    head = replace(block, text=text[:index].strip(), lines=head_lines, gap_after=None)
    tail = replace(
        block,
        text=text[index:].strip(),
        lines=tail_lines,
        y=tail_lines[0].y if tail_lines else block.y,
    )
    return head, tail


# =============================================================================
# MERGING
# =============================================================================

def _extend_last_item(prev: Block, nxt: Block) -> Tuple[ListItem, ...]:
    if nxt.items or not prev.items:
        return prev.items + nxt.items
    last = prev.items[-1]
    return prev.items[:-1] + (replace(last, text=join_text(last.text, nxt.text)),)


def _combine(prev: Block, nxt: Block, sep: str = " ") -> Block:
    return replace(
        prev,
        text=prev.text.rstrip() + sep + nxt.text.lstrip(),
        lines=prev.lines + nxt.lines,
        items=_extend_last_item(prev, nxt),
        rows=prev.rows + nxt.rows,
        font_size=max(prev.font_size, nxt.font_size),
        bottom=nxt.bottom,
        gap_after=nxt.gap_after,
        is_bold=prev.is_bold or nxt.is_bold,
        last_page=nxt.end_page,
        links=prev.links + nxt.links,
    )


def merge_blocks(
    prev: Block,
    nxt: Block,
    metrics: DocumentMetrics,
    config: Optional[LayoutConfig] = None,
) -> MergeOutcome:
    """
    Merge ``nxt`` into ``prev`` when it continues it across a page break.

    Returns:
        NoMerge, Merged(block) or MergedWithRemainder(block, remainder).
    """
    config = config or LayoutConfig()
    if not _preconditions(prev, nxt):
        return NoMerge()

    if prev.kind == BlockKind.PARAGRAPH:
        if not should_merge_paragraphs(prev, nxt, metrics, config):
            return NoMerge()
        parts = split_embedded_paragraph(nxt, config.cross_page.split_min_length)
        if len(parts) > 1:
            return MergedWithRemainder(block=_combine(prev, parts[0]), remainder=parts[1:])
        return Merged(block=_combine(prev, nxt))

    if prev.kind == BlockKind.HEADING:
        if should_merge_headings(prev, nxt, metrics, config):
            return Merged(block=_combine(prev, nxt))
        return NoMerge()

    if prev.kind == BlockKind.LIST:
        if should_merge_lists(prev, nxt, metrics, config):
            sep = "\n" if prev.items and nxt.items else " "
            return Merged(block=_combine(prev, nxt, sep))
        return NoMerge()

    return NoMerge()


def merge_cross_page(
    blocks: Sequence[Block],
    metrics: DocumentMetrics,
    config: Optional[LayoutConfig] = None,
) -> List[Block]:
    """
    Rejoin blocks split by page breaks.

    Args:
        blocks: Blocks in reading order.
        metrics: Document metrics, including gap analysis.
        config: Layout config (cross-page and continuation sections).

    Returns:
        New block list.
    """
    config = config or LayoutConfig()
    merged: List[Block] = []
    merges = 0
    for block in blocks:
        if merged:
            outcome = merge_blocks(merged[-1], block, metrics, config)
            if isinstance(outcome, Merged):
                merged[-1] = outcome.block
                merges += 1
                continue
            if isinstance(outcome, MergedWithRemainder):
                merged[-1] = outcome.block
                merged.extend(outcome.remainder)
                merges += 1
                continue
        merged.append(block)
    logger.info(f"Cross-page merge: {merges} merges, {len(blocks)} -> {len(merged)} blocks")
    return merged
