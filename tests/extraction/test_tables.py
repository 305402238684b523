"""
Tests for cross-column table rebuilding and the visual strip analysis that
confirms column gaps.
"""

import pytest

from pdflayout.config import TableConfig
from pdflayout.extraction.columns import detect_page_columns
from pdflayout.extraction.tables import (
    extract_column_tables,
    is_running_prose,
    is_valid_table,
    merge_column_tables,
    normalize_y,
    split_table_blocks,
)
from pdflayout.extraction.visual import (
    VisualGap,
    VisualStructure,
    analyze_visual_structure,
    is_column_gap,
)
from pdflayout.models import Block, BlockKind, DocumentMetrics, GlyphRun, Line


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def metrics():
    return DocumentMetrics(base_font_size=12.0)


def block_of(lines, column=0):
    return Block(
        BlockKind.PARAGRAPH,
        " ".join(l.text for l in lines),
        column_index=column,
        lines=tuple(lines),
        x=lines[0].x,
        y=lines[0].y,
        bottom=lines[-1].y,
    )


def column_line(text, y, column):
    return Line(text, 72 if column == 0 else 330, y, 12, column_index=column)


@pytest.fixture
def mixed_page():
    """A sentence above two table rows whose values sit in the right column."""
    left = block_of([
        column_line("Quarterly figures were strong.", 100, 0),
        column_line("Q1", 114, 0),
        column_line("Q2", 128, 0),
    ])
    right = block_of([column_line("10", 114, 1), column_line("12", 128, 1)], column=1)
    return [left, right]


@pytest.fixture
def two_column_runs():
    runs = []
    for y in (100, 114, 128):
        for i in range(10):
            runs.append(GlyphRun("w", 50 + 5 * i, y, 20, 12))
            runs.append(GlyphRun("w", 330 + 5 * i, y, 20, 12))
    return runs


# =============================================================================
# ROW KEYS AND GUARDS
# =============================================================================

def test_normalize_y_groups_nearby_lines():
    assert normalize_y(114, 3.6) == normalize_y(115, 3.6)
    assert normalize_y(114, 3.6) != normalize_y(128, 3.6)


def test_lowercase_continuations_are_prose():
    block = block_of([column_line("Left column text", 100, 0), column_line("continues here", 114, 0)])
    assert is_running_prose(block)


def test_long_text_is_prose():
    block = block_of([column_line("word " * 50, 100, 0)])
    assert is_running_prose(block)


def test_short_capitalised_lines_are_not_prose():
    block = block_of([column_line("North", 100, 0), column_line("South", 114, 0)])
    assert not is_running_prose(block)


class TestTableValidity:
    def test_short_cells_are_valid(self):
        assert is_valid_table([("Region", "Revenue"), ("North", "120"), ("South", "95")])

    def test_long_cells_are_rejected(self):
        assert not is_valid_table([("x" * 160, "y"), ("x" * 160, "y")])

    def test_many_long_rows_are_rejected(self):
        rows = [("a" * 110, "b"), ("c", "d"), ("e" * 110, "f")]
        assert not is_valid_table(rows, TableConfig(max_avg_cell_length=1000, max_avg_line_length=1000))

    def test_empty_is_rejected(self):
        assert not is_valid_table([])


# =============================================================================
# SPLITTING AND MERGING
# =============================================================================

def test_split_separates_sentence_from_rows(mixed_page, metrics):
    blocks = split_table_blocks(mixed_page, metrics)
    assert [(b.column_index, b.text) for b in blocks] == [
        (0, "Quarterly figures were strong."),
        (0, "Q1 Q2"),
        (1, "10 12"),
    ]
    assert blocks[1].y == 114


def test_split_leaves_blocks_without_shared_rows(metrics):
    left = block_of([column_line("Alpha", 100, 0), column_line("Beta", 114, 0)])
    right = block_of([column_line("Gamma", 300, 1)], column=1)
    assert split_table_blocks([left, right], metrics) == [left, right]


def test_merge_builds_table_from_two_columns(mixed_page, metrics):
    blocks = merge_column_tables(split_table_blocks(mixed_page, metrics), metrics)
    assert [b.kind for b in blocks] == [BlockKind.PARAGRAPH, BlockKind.TABLE]
    table = blocks[1]
    assert table.rows == (("Q1", "10"), ("Q2", "12"))
    assert table.column_index == 0
    assert table.y == 114
    assert blocks[0].text == "Quarterly figures were strong."


def test_extract_column_tables_splits_then_merges(mixed_page, metrics):
    blocks = extract_column_tables(mixed_page, metrics)
    assert [b.kind for b in blocks] == [BlockKind.PARAGRAPH, BlockKind.TABLE]


def test_running_prose_in_two_columns_is_not_a_table(metrics):
    left = block_of([column_line("Left column text", 100, 0), column_line("continues here", 114, 0)])
    right = block_of(
        [column_line("Right column text", 100, 1), column_line("is read after", 114, 1)], column=1
    )
    assert extract_column_tables([left, right], metrics) == [left, right]


def test_single_row_is_not_a_table(metrics):
    left = block_of([column_line("Total", 100, 0)])
    right = block_of([column_line("42", 100, 1)], column=1)
    assert merge_column_tables([left, right], metrics) == [left, right]


def test_rows_far_apart_do_not_form_a_table(metrics):
    left = block_of([column_line("North", 100, 0), column_line("South", 200, 0)])
    right = block_of([column_line("120", 100, 1), column_line("95", 200, 1)], column=1)
    assert merge_column_tables([left, right], metrics) == [left, right]


# =============================================================================
# VISUAL STRUCTURE
# =============================================================================

def test_visual_gap_between_columns(two_column_runs):
    structure = analyze_visual_structure(two_column_runs, 600, 800, 12)
    assert [(g.x_start, g.x_end) for g in structure.gaps] == [
        (pytest.approx(120.0), pytest.approx(330.0))
    ]
    assert structure.gaps[0].between_columns
    assert structure.boundaries == (pytest.approx(225.0),)
    assert len(structure.density_map()) == len(structure.strips)


def test_page_margins_are_not_gaps():
    runs = [GlyphRun("text", 100, y, 100, 12) for y in range(100, 300, 14)]
    assert analyze_visual_structure(runs, 600, 800, 12).gaps == ()


def test_no_runs_gives_empty_structure():
    structure = analyze_visual_structure([], 600, 800, 12)
    assert structure.strips == ()
    assert structure.gaps == ()


def test_is_column_gap_without_structure():
    assert not is_column_gap(200, None)
    assert not is_column_gap(200, VisualStructure())


def test_visual_structure_confirms_coarse_gap(two_column_runs):
    visual = analyze_visual_structure(two_column_runs, 600, 800, 12)
    columns = detect_page_columns(two_column_runs, 600, visual=visual)
    assert len(columns) == 2
    assert columns[0].end_x == pytest.approx(212.5)


def test_unconfirmed_coarse_gap_gives_single_column(two_column_runs):
    visual = VisualStructure(gaps=(VisualGap(400, 450, True),), boundaries=(425.0,))
    columns = detect_page_columns(two_column_runs, 600, visual=visual)
    assert len(columns) == 1
    assert (columns[0].start_x, columns[0].end_x) == (0.0, 600.0)
