"""
Continuation scoring: does the next text continue the current block?

Used for same-page paragraph continuations and for cross-page merges. The
score is a sum of weighted indicators; the blocks belong together when it
reaches ContinuationConfig.threshold (3 by default).

Indicators:
- font size of the next text matches the base/median size (+)
- both blocks long with similar font size and similar length (+)
- current block long (+), current block short (-)
- large or medium font size difference (-)
- sentence end followed by a capital and a substantial next block: strong
  negative, softened when the current block is very long or the document
  spacing is homogeneous
- page break context: incomplete ending (+), comma then lowercase (+),
  dash (++), any page break without a strong boundary (+)
- trailing comma/semicolon/colon/dash (+)
- when visual evidence is weak: lowercase start, no sentence end and short
  lowercase continuations (+), very short capitalised text (-)

Across a page break some cases are decided before scoring: a heading split
over two pages, and list items continued in lowercase.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from pdflayout.config import ContinuationConfig, CrossPageConfig
from pdflayout.constants import DEFAULT_FONT_SIZE
from pdflayout.models import DocumentMetrics
from pdflayout.utils.text import (
    ends_with_punctuation,
    ends_with_sentence_end,
    looks_like_list_item,
    starts_with_capital,
    starts_with_lowercase,
)

logger = logging.getLogger(__name__)

_COMMA_END_RX = re.compile(r",\s*$")
_INCOMPLETE_END_RX = re.compile(r"[,;:\-—–]\s*$")
_DASH_END_RX = re.compile(r"[-—–]\s*$")
_PUNCTUATION_START_RX = re.compile(r"^[.,;:—–-]")


# =============================================================================
# PAGE BREAK CONTEXT
# =============================================================================

@dataclass(frozen=True)
class PageBreakContext:
    """
    What ends the previous page and what starts the next one.

    Attributes:
        prev_ends_with_incomplete: Comma/semicolon/colon/dash and no sentence end.
        prev_ends_with_sentence_end: Previous text ends with . ! or ?
        prev_ends_with_comma: Previous text ends with a comma.
        prev_ends_with_dash: Previous text ends with a dash or hyphen.
        next_starts_with_lowercase: Next text opens in lowercase.
        next_starts_with_capital: Next text opens in uppercase.
        next_starts_with_punctuation: Next text opens with punctuation.
        prev_end: Last characters of the previous text.
        next_start: First characters of the next text.
    """

    prev_ends_with_incomplete: bool = False
    prev_ends_with_sentence_end: bool = False
    prev_ends_with_comma: bool = False
    prev_ends_with_dash: bool = False
    next_starts_with_lowercase: bool = False
    next_starts_with_capital: bool = False
    next_starts_with_punctuation: bool = False
    prev_end: str = ""
    next_start: str = ""


def analyze_page_break_context(
    prev_text: str,
    next_text: str,
    config: Optional[CrossPageConfig] = None,
) -> PageBreakContext:
    """
    Describe the textual seam between two pages.

    Example:
        >>> ctx = analyze_page_break_context("continued on the next,", "page without issue.")
        >>> ctx.prev_ends_with_incomplete, ctx.prev_ends_with_comma, ctx.next_starts_with_lowercase
        (True, True, True)
    """
    config = config or CrossPageConfig()
    prev = (prev_text or "").strip()
    nxt = (next_text or "").strip()
    sentence_end = ends_with_sentence_end(prev)
    return PageBreakContext(
        prev_ends_with_incomplete=bool(_INCOMPLETE_END_RX.search(prev)) and not sentence_end,
        prev_ends_with_sentence_end=sentence_end,
        prev_ends_with_comma=bool(_COMMA_END_RX.search(prev)),
        prev_ends_with_dash=bool(_DASH_END_RX.search(prev)),
        next_starts_with_lowercase=starts_with_lowercase(nxt),
        next_starts_with_capital=starts_with_capital(nxt),
        next_starts_with_punctuation=bool(_PUNCTUATION_START_RX.match(nxt)),
        prev_end=prev[-config.prev_end_length:] if prev else "",
        next_start=nxt[: config.next_start_length],
    )


# =============================================================================
# SCORING
# =============================================================================

@dataclass(frozen=True)
class ContinuationDecision:
    """
    Outcome of continuation scoring.

    Attributes:
        score: Total score (0 when a special case decided).
        merge: True when the texts belong together.
        special_case: Name of the page-break special case that decided, if any.
    """

    score: float
    merge: bool
    special_case: Optional[str] = None


def _special_case(
    current: str,
    nxt: str,
    current_font: float,
    next_font: float,
    base: float,
    config: ContinuationConfig,
) -> Optional[str]:
    font_similar = abs(current_font - next_font) <= base * config.similarity_tolerance
    next_lower = starts_with_lowercase(nxt)
    current_sentence_end = ends_with_sentence_end(current)

    # Heading split over two pages
    if (
        len(current) < config.short_block_max
        and len(nxt) < config.short_block_max
        and current_font > base * config.larger_than_base_multiplier
        and next_font > base * config.larger_than_base_multiplier
        and font_similar
        and starts_with_capital(current)
        and next_lower
        and not current_sentence_end
    ):
        return "split-heading"

    current_is_item = looks_like_list_item(current)
    if current_is_item and looks_like_list_item(nxt) and font_similar and not current_sentence_end and next_lower:
        return "list-items"
    if current_is_item and next_lower and font_similar and not current_sentence_end:
        return "list-item-continuation"
    return None


def continuation_score(
    current_text: str,
    next_text: str,
    current_font: Optional[float],
    next_font: Optional[float],
    metrics: DocumentMetrics,
    config: Optional[ContinuationConfig] = None,
    page_break: Optional[PageBreakContext] = None,
) -> ContinuationDecision:
    """
    Score whether ``next_text`` continues ``current_text``.

    Args:
        current_text: Full text of the current block.
        next_text: Text of the candidate continuation.
        current_font: Font size of the current block.
        next_font: Font size of the candidate.
        metrics: Document metrics (base/median font, gap analysis,
            average paragraph length).
        config: Score weights and thresholds.
        page_break: Seam context; when given, the texts are on different
            pages and page-break rules apply.

    Returns:
        ContinuationDecision.
    """
    config = config or ContinuationConfig()
    current = (current_text or "").strip()
    nxt = (next_text or "").strip()
    if not current or not nxt:
        return ContinuationDecision(score=0.0, merge=False)

    current_font = current_font or DEFAULT_FONT_SIZE
    next_font = next_font or DEFAULT_FONT_SIZE
    base = metrics.base_font_size or DEFAULT_FONT_SIZE
    median = metrics.median_font_size or DEFAULT_FONT_SIZE
    is_page_break = page_break is not None

    if is_page_break:
        case = _special_case(current, nxt, current_font, next_font, base, config)
        if case is not None:
            logger.debug(f"Continuation special case: {case}")
            return ContinuationDecision(score=0.0, merge=True, special_case=case)

    tolerance = base * config.similarity_tolerance
    diff_base = abs(next_font - base)
    diff_median = abs(next_font - median)
    diff_blocks = abs(current_font - next_font)
    block_tolerance = max(current_font, next_font) * config.similarity_tolerance

    current_len = len(current)
    next_len = len(nxt)
    current_long = current_len > config.long_block_min
    both_long = current_long and next_len > config.long_block_min
    avg_len = (current_len + next_len) / 2.0
    length_similar = (
        both_long
        and avg_len > 0
        and abs(current_len - next_len) / avg_len < config.length_similarity_threshold
    )
    font_match = diff_base <= tolerance or diff_median <= tolerance
    font_similar = diff_blocks <= block_tolerance and both_long
    diff_large = (
        diff_base > base * config.large_difference_multiplier
        or diff_median > median * config.large_difference_multiplier
    )
    diff_medium = not diff_large and diff_base > tolerance * config.font_tolerance_multiplier

    # Visual evidence
    visual = 0.0
    if font_match:
        visual += config.font_size_match
    if font_similar:
        visual += config.font_size_similar
    if current_long:
        visual += config.long_block
    if length_similar:
        visual += config.block_length_similar
    if diff_large:
        visual += config.font_size_diff_large
    elif diff_medium:
        visual += config.font_size_diff_medium

    score = visual

    # Semantic boundary: sentence end then a capitalised, substantial block
    next_lower = starts_with_lowercase(nxt)
    next_capital = starts_with_capital(nxt)
    current_sentence_end = ends_with_sentence_end(current)
    avg_paragraph = metrics.avg_paragraph_length or config.default_avg_paragraph_length
    current_very_long = current_len > avg_paragraph * config.very_long_block_multiplier
    gap_analysis = metrics.gap_analysis
    homogeneous = gap_analysis is not None and gap_analysis.is_homogeneous

    strong_boundary = False
    if current_sentence_end and next_capital:
        substantial = next_len > avg_paragraph * config.substantial_text_ratio
        if substantial and not current_very_long and not homogeneous:
            score += config.sentence_end_capital * config.strong_semantic_multiplier
            strong_boundary = True
        elif substantial:
            score += config.sentence_end_capital

    if page_break is not None:
        if page_break.prev_ends_with_incomplete:
            score += config.punctuation_end * config.incomplete_sentence_multiplier
        if page_break.prev_ends_with_comma and page_break.next_starts_with_lowercase:
            score += config.punctuation_end
        if page_break.prev_ends_with_dash:
            score += config.punctuation_end * config.dash_multiplier
        if not strong_boundary:
            score += config.page_break

    if ends_with_punctuation(current):
        score += config.punctuation_end

    short_block = current_len < config.short_block_max
    if short_block:
        visual += config.short_block

    # Text cues only count when the visual evidence is inconclusive
    if -2 < visual < 2 and not strong_boundary:
        if next_lower:
            score += config.lowercase_start
        if not current_sentence_end:
            score += config.no_sentence_end
        if next_len < config.short_line_max and next_lower:
            score += config.short_continuation
        if next_len < config.very_short_line_max and next_capital:
            score += config.short_capital

    if short_block:
        score += config.short_block

    merge = score >= config.threshold
    logger.debug(
        f"Continuation score {score:.2f} (merge={merge}, page_break={is_page_break}): "
        f"{current[-30:]!r} -> {nxt[:30]!r}"
    )
    return ContinuationDecision(score=score, merge=merge)


def should_continue_block(
    current_text: str,
    next_text: str,
    current_font: Optional[float],
    next_font: Optional[float],
    metrics: DocumentMetrics,
    config: Optional[ContinuationConfig] = None,
    page_break: Optional[PageBreakContext] = None,
) -> bool:
    """
    Boolean form of continuation_score().

    Example:
        >>> ctx = analyze_page_break_context("continued on the next,", "page without issue.")
        >>> should_continue_block("continued on the next,", "page without issue.", 12, 12,
        ...                       DocumentMetrics(), page_break=ctx)
        True
    """
    return continuation_score(
        current_text, next_text, current_font, next_font, metrics, config, page_break
    ).merge
