"""
Tests for run ingestion and font style inference.
"""

import math

import pytest

from pdflayout.extraction.fonts import (
    StyleFlags,
    build_font_format_map,
    build_style_context,
    classify_runs,
    detect_underlines,
    find_base_font,
    refine_contextual_styles,
)
from pdflayout.extraction.ingest import ORIGIN_BOTTOM_LEFT, RawGlyph, normalize_glyphs
from pdflayout.extraction.pdf import Segment
from pdflayout.models import FontTable, GlyphRun, Line


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def fonts():
    return FontTable()


@pytest.fixture
def ratio_runs():
    """Six narrow base-font runs (ratio 3.0) and two wide runs of font 1 (ratio 4.5)."""
    body = [GlyphRun("body text", 0, 10 * i, 30, 10, font_index=0) for i in range(6)]
    wide = [GlyphRun("wide text", 0, 100 + 10 * i, 45, 10, font_index=1) for i in range(2)]
    return body + wide


# =============================================================================
# INGESTION
# =============================================================================

def test_ingest_flips_bottom_left_origin():
    runs = normalize_glyphs(
        [RawGlyph("Hi", 10, 700, 20, 12, origin=ORIGIN_BOTTOM_LEFT)],
        page_number=3,
        page_height=792,
    )
    assert runs[0].y == 80.0
    assert runs[0].page_number == 3


def test_ingest_keeps_top_left_coordinates():
    runs = normalize_glyphs([RawGlyph("Hi", 10, 80, 20, 12)], 1, 792)
    assert (runs[0].x, runs[0].y, runs[0].font_size) == (10.0, 80.0, 12.0)


def test_ingest_drops_blank_and_invalid_glyphs():
    raw = [
        RawGlyph("   ", 0, 0, 10, 12),
        RawGlyph("", 0, 0, 10, 12),
        RawGlyph("nan", math.nan, 0, 10, 12),
        RawGlyph("inf", 0, 0, math.inf, 12),
        RawGlyph("ok", 0, 0, 10, 12),
    ]
    assert [r.text for r in normalize_glyphs(raw, 1, 792)] == ["ok"]


def test_ingest_clamps_size_and_direction():
    runs = normalize_glyphs([RawGlyph("x", 0, 0, 10, -5, direction="ttb")], 1, 792)
    assert runs[0].font_size == 5.0
    assert runs[0].direction == "ltr"


# =============================================================================
# STYLE STRATEGIES
# =============================================================================

def test_font_name_decides_bold_and_italic(fonts):
    idx = fonts.intern("F1", "Times-BoldItalic")
    run = GlyphRun("Heading", 0, 0, 40, 12, font_index=idx)
    styled = classify_runs([run], fonts)[0]
    assert styled.is_bold and styled.is_italic


def test_engine_metadata_decides_bold(fonts):
    idx = fonts.intern("F2", "CustomFace", weight="bold")
    styled = classify_runs([GlyphRun("Strong", 0, 0, 40, 12, font_index=idx)], fonts)[0]
    assert styled.is_bold
    assert not styled.is_italic


def test_unknown_font_is_plain(fonts):
    styled = classify_runs([GlyphRun("plain", 0, 0, 30, 12)], fonts)[0]
    assert not styled.is_bold and not styled.is_italic


def test_classify_does_not_mutate_input(fonts):
    idx = fonts.intern("F1", "Arial-Bold")
    run = GlyphRun("x", 0, 0, 10, 12, font_index=idx)
    classify_runs([run], fonts)
    assert run.is_bold is False


def test_custom_strategy_chain(fonts):
    def always_italic(run, context):
        return StyleFlags(is_italic=True)

    runs = [GlyphRun("a", 0, 0, 10, 12), GlyphRun("b", 20, 0, 10, 12)]
    styled = classify_runs(runs, fonts, strategies=[always_italic])
    assert all(r.is_italic for r in styled)


def test_first_deciding_strategy_wins(fonts):
    def undecided(run, context):
        return None

    def bold(run, context):
        return StyleFlags(is_bold=True)

    def italic(run, context):
        return StyleFlags(is_italic=True)

    styled = classify_runs([GlyphRun("a", 0, 0, 10, 12)], fonts, strategies=[undecided, bold, italic])
    assert styled[0].is_bold and not styled[0].is_italic


def test_base_font_requires_majority():
    runs = [GlyphRun("a", 0, 0, 5, 10, font_index=0)] * 2 + [GlyphRun("b", 0, 0, 5, 10, font_index=1)] * 2
    assert find_base_font(runs) is None


def test_ratio_marks_wide_font_bold_but_never_base_font(fonts, ratio_runs):
    context = build_style_context(ratio_runs, fonts)
    assert context.base_font == 0
    styled = classify_runs(ratio_runs, fonts, context=context)
    assert [r.is_bold for r in styled if r.font_index == 0] == [False] * 6
    assert [r.is_bold for r in styled if r.font_index == 1] == [True, True]


def test_font_format_map(fonts, ratio_runs):
    format_map = build_font_format_map(ratio_runs, fonts)
    assert format_map[0] == StyleFlags()
    assert format_map[1].is_bold


# =============================================================================
# CONTEXTUAL REFINEMENT
# =============================================================================

def _line(runs):
    return Line(
        text=" ".join(r.text for r in runs),
        x=runs[0].x,
        y=runs[0].y,
        font_size=max(r.font_size for r in runs),
        runs=tuple(runs),
    )


def test_wide_run_in_line_becomes_bold(fonts):
    runs = [
        GlyphRun("plain words", 0, 0, 55, 10, font_index=0),
        GlyphRun("STRONG", 60, 0, 120, 10, font_index=2),
        GlyphRun("more words", 185, 0, 50, 10, font_index=0),
    ]
    refined = refine_contextual_styles([_line(runs)], fonts, base_font=0)
    assert refined[0].is_bold
    assert [r.is_bold for r in refined[0].runs] == [False, True, False]


def test_short_runs_are_not_restyled(fonts):
    runs = [
        GlyphRun("plain words", 0, 0, 55, 10, font_index=0),
        GlyphRun("OK", 60, 0, 120, 10, font_index=2),
    ]
    refined = refine_contextual_styles([_line(runs)], fonts, base_font=0)
    assert not refined[0].is_bold


def test_single_run_lines_unchanged(fonts):
    line = _line([GlyphRun("alone", 0, 0, 100, 10, font_index=3)])
    assert refine_contextual_styles([line], fonts, base_font=0) == [line]


# =============================================================================
# UNDERLINES
# =============================================================================

def test_partial_underline_becomes_character_range():
    run = GlyphRun("important note", 100, 100, 140, 12)
    segment = Segment(100, 111, 190, 111)
    styled = detect_underlines([run], [segment])[0]
    assert styled.underline_ranges == ((0, 9),)
    assert not styled.is_underlined


def test_full_width_rule_is_not_an_underline():
    run = GlyphRun("table header", 100, 100, 120, 12)
    segment = Segment(100, 111, 220, 111)
    assert detect_underlines([run], [segment])[0].underline_ranges == ()


def test_segment_far_below_is_ignored():
    run = GlyphRun("important note", 100, 100, 140, 12)
    segment = Segment(100, 160, 190, 160)
    assert detect_underlines([run], [segment])[0].underline_ranges == ()


def test_non_horizontal_segments_ignored():
    run = GlyphRun("important note", 100, 100, 140, 12)
    segment = Segment(100, 105, 190, 118)
    assert detect_underlines([run], [segment]) == [run]
