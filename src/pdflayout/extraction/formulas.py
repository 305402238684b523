"""
Formula detection for short mathematical blocks.

Display formulas come out of line grouping as paragraphs. A paragraph is
re-typed as a formula when enough independent signals agree.

Scoring (FormulaConfig):
- LaTeX command, inline $...$ math or a braced sub/superscript   +0.6
- at least half of the characters set in a math font              +0.5
- math symbols make up at least 15% of the non-space characters    +0.4
- a relation operator (=, <, >, ...) is present                    +0.2
- isolated: at most 2 lines, at most 80 characters, no full stop   +0.2
- more than 6 words of four letters or more (running prose)        -0.5

A block is a formula when the score reaches 0.6 and at least one of the
LaTeX, math font or relation signals fired; symbols alone (page numbers
like "- 3 -", arrows in prose) never make a formula.
"""

import logging
import re
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, Tuple

from pdflayout.config import FormulaConfig
from pdflayout.constants import LATEX_RX, MATH_FONT_RX, MATH_SYMBOLS, RELATION_RX
from pdflayout.models import Block, BlockKind, FontTable

logger = logging.getLogger(__name__)

WORD_RX = re.compile(r"[^\W\d_]{4,}")

SIGNAL_LATEX = "latex"
SIGNAL_MATH_FONT = "math_font"
SIGNAL_SYMBOLS = "symbols"
SIGNAL_RELATION = "relation"
SIGNAL_ISOLATED = "isolated"
SIGNAL_PROSE = "prose"

ANCHOR_SIGNALS = (SIGNAL_LATEX, SIGNAL_MATH_FONT, SIGNAL_RELATION)


@dataclass(frozen=True)
class FormulaScore:
    """Score and the signals that contributed to it."""

    score: float
    signals: Tuple[str, ...] = ()
    threshold: float = 0.6

    @property
    def is_formula(self) -> bool:
        return self.score >= self.threshold and any(s in self.signals for s in ANCHOR_SIGNALS)


def math_font_share(block: Block, fonts: Optional[FontTable]) -> float:
    """Share of run characters set in a math font (0 without fonts or runs)."""
    if fonts is None:
        return 0.0
    total = 0
    math_chars = 0
    for line in block.lines:
        for run in line.runs:
            n = len(run.text.strip())
            total += n
            record = fonts.get(run.font_index)
            if record is not None and MATH_FONT_RX.search(record.real_name or record.handle):
                math_chars += n
    return math_chars / total if total else 0.0


def symbol_ratio(text: str) -> float:
    """
    Share of math symbols among non-space characters.

    Example:
        >>> symbol_ratio("E = mc2")
        0.2
    """
    chars = [c for c in text if not c.isspace()]
    if not chars:
        return 0.0
    return sum(1 for c in chars if c in MATH_SYMBOLS) / len(chars)


def formula_score(
    block: Block,
    fonts: Optional[FontTable] = None,
    config: Optional[FormulaConfig] = None,
) -> FormulaScore:
    """
    Score a block for being a formula.

    Example:
        >>> s = formula_score(Block(BlockKind.PARAGRAPH, "E = mc2"))
        >>> round(s.score, 2), s.is_formula
        (0.8, True)
        >>> formula_score(Block(BlockKind.PARAGRAPH, "Revenue = 120")).is_formula
        False
    """
    config = config or FormulaConfig()
    text = block.text.strip()
    if not text:
        return FormulaScore(0.0, threshold=config.threshold)

    score = 0.0
    signals: List[str] = []
    if LATEX_RX.search(text):
        score += config.latex_weight
        signals.append(SIGNAL_LATEX)
    if math_font_share(block, fonts) >= config.math_font_share:
        score += config.math_font_weight
        signals.append(SIGNAL_MATH_FONT)
    if symbol_ratio(text) >= config.symbol_ratio:
        score += config.symbol_weight
        signals.append(SIGNAL_SYMBOLS)
    if RELATION_RX.search(text):
        score += config.relation_weight
        signals.append(SIGNAL_RELATION)
    if (
        len(block.lines) <= config.isolated_max_lines
        and len(text) <= config.isolated_max_length
        and not text.endswith(".")
    ):
        score += config.isolated_weight
        signals.append(SIGNAL_ISOLATED)
    if len(WORD_RX.findall(text)) > config.prose_word_count:
        score += config.prose_penalty
        signals.append(SIGNAL_PROSE)
    return FormulaScore(score, tuple(signals), config.threshold)


def classify_formulas(
    blocks: Sequence[Block],
    fonts: Optional[FontTable] = None,
    config: Optional[FormulaConfig] = None,
) -> List[Block]:
    """Re-type formula-like paragraphs as FORMULA blocks."""
    config = config or FormulaConfig()
    out: List[Block] = []
    found = 0
    for block in blocks:
        if block.kind == BlockKind.PARAGRAPH:
            result = formula_score(block, fonts, config)
            if result.is_formula:
                logger.debug(f"Formula ({result.score:.2f}, {'/'.join(result.signals)}): {block.text[:40]!r}")
                block = replace(block, kind=BlockKind.FORMULA)
                found += 1
        out.append(block)
    if found:
        logger.debug(f"Classified {found} formula blocks")
    return out
