"""
Tests for formula scoring and re-typing.
"""

import pytest

from pdflayout.config import FormulaConfig
from pdflayout.extraction.formulas import (
    SIGNAL_LATEX,
    SIGNAL_MATH_FONT,
    SIGNAL_PROSE,
    classify_formulas,
    formula_score,
    math_font_share,
    symbol_ratio,
)
from pdflayout.models import Block, BlockKind, FontTable, GlyphRun, Line


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def fonts():
    table = FontTable()
    table.intern("F1", "Times-Roman")
    table.intern("F2", "CMMI10")
    return table


def paragraph(text, lines=()):
    return Block(BlockKind.PARAGRAPH, text, lines=tuple(lines))


def line_of(*runs):
    return Line(" ".join(r.text for r in runs), runs[0].x, runs[0].y, 12, runs=tuple(runs))


# =============================================================================
# SIGNALS
# =============================================================================

def test_symbol_ratio():
    assert symbol_ratio("a + b = c") == pytest.approx(0.4)
    assert symbol_ratio("plain words") == 0.0
    assert symbol_ratio("   ") == 0.0


def test_math_font_share(fonts):
    line = line_of(
        GlyphRun("xyz", 72, 100, 18, 12, font_index=fonts.index_of("F2")),
        GlyphRun("k", 96, 100, 6, 12, font_index=fonts.index_of("F1")),
    )
    assert math_font_share(paragraph("xyz k", [line]), fonts) == pytest.approx(0.75)
    assert math_font_share(paragraph("xyz k", [line]), None) == 0.0


def test_latex_commands_score():
    result = formula_score(paragraph(r"\frac{a}{b} + \sqrt{x}"))
    assert SIGNAL_LATEX in result.signals
    assert result.is_formula


def test_math_font_alone_is_enough(fonts):
    line = line_of(GlyphRun("x y z", 72, 100, 30, 12, font_index=fonts.index_of("F2")))
    result = formula_score(paragraph("x y z", [line]), fonts)
    assert SIGNAL_MATH_FONT in result.signals
    assert result.is_formula


def test_relation_with_symbols_is_formula():
    result = formula_score(paragraph("E = mc2"))
    assert result.score == pytest.approx(0.8)
    assert result.is_formula


def test_symbols_without_anchor_signal_are_not_formula():
    # page numbers and arrows score on symbols and isolation only
    assert not formula_score(paragraph("- 3 -")).is_formula
    assert not formula_score(paragraph("→ ← ↔")).is_formula


def test_prose_with_equals_is_penalised():
    text = "The total is computed where revenue = costs plus margin and taxes across every region."
    result = formula_score(paragraph(text))
    assert SIGNAL_PROSE in result.signals
    assert not result.is_formula


def test_empty_text_scores_zero():
    assert formula_score(paragraph("  ")).score == 0.0


def test_threshold_is_configurable():
    strict = FormulaConfig(threshold=0.9)
    assert not formula_score(paragraph("E = mc2"), config=strict).is_formula


# =============================================================================
# CLASSIFICATION
# =============================================================================

def test_classify_retypes_only_paragraphs():
    blocks = [
        paragraph("The energy of a body is related to its mass by the following equation:"),
        paragraph("E = mc2"),
        Block(BlockKind.HEADING, "x = y"),
    ]
    kinds = [b.kind for b in classify_formulas(blocks)]
    assert kinds == [BlockKind.PARAGRAPH, BlockKind.FORMULA, BlockKind.HEADING]


def test_formula_serialises_with_its_own_type():
    block = classify_formulas([paragraph("E = mc2")])[0]
    assert block.to_dict()["type"] == "formula"
