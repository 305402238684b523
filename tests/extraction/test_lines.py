"""
Tests for line reconstruction and column detection.

Covers the run -> line stage: Y chain clustering, gap-driven spacing,
intra-cluster splitting and both column detectors.
"""

import pytest

from pdflayout.config import LayoutConfig, LineConfig
from pdflayout.extraction.columns import (
    column_index_for_x,
    detect_page_columns,
    detect_preliminary_columns,
    find_column_for_run,
)
from pdflayout.extraction.lines import (
    cluster_by_y,
    collate_text,
    compute_split_threshold,
    group_runs_into_lines,
    lines_to_dataframe,
    split_cluster,
)
from pdflayout.models import Column, DocumentMetrics, GlyphRun


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def metrics():
    return DocumentMetrics()


@pytest.fixture
def two_column_runs():
    """Three rows of runs: x 50..95 on the left, x 330..375 on the right."""
    runs = []
    for y in (100, 114, 128):
        for i in range(10):
            runs.append(GlyphRun("w", 50 + 5 * i, y, 20, 12))
            runs.append(GlyphRun("w", 330 + 5 * i, y, 20, 12))
    return runs


# =============================================================================
# COLLATION
# =============================================================================

def test_collate_inserts_space_only_for_real_gaps():
    runs = [
        GlyphRun("World", 45, 0, 40, 12),
        GlyphRun("Hello", 0, 0, 40, 12),
    ]
    assert collate_text(runs) == "Hello World"


def test_collate_joins_touching_runs_without_space():
    runs = [GlyphRun("con", 0, 0, 18, 12), GlyphRun("tinue", 19, 0, 30, 12)]
    assert collate_text(runs, x_tolerance=3.0) == "continue"


def test_collate_strips_soft_hyphen_and_collapses_spaces():
    runs = [GlyphRun("infor\u00admation", 0, 0, 60, 12), GlyphRun("   here  ", 70, 0, 30, 12)]
    assert collate_text(runs) == "information here"


def test_hello_world_becomes_one_line(metrics):
    runs = [GlyphRun("Hello", 0, 0, 40, 12), GlyphRun("World", 45, 0, 40, 12)]
    lines = group_runs_into_lines(runs, metrics)
    assert [line.text for line in lines] == ["Hello World"]
    assert lines[0].x == 0
    assert lines[0].font_size == 12
    assert len(lines[0].runs) == 2


# =============================================================================
# CLUSTERING AND SPLITTING
# =============================================================================

def test_cluster_by_y_chains_drifting_baseline():
    runs = [GlyphRun("a", 0, y, 10, 12) for y in (100, 102, 104, 106)]
    runs.append(GlyphRun("b", 0, 130, 10, 12))
    clusters = cluster_by_y(runs, tolerance=3)
    assert [len(c) for c in clusters] == [4, 1]


def test_split_threshold_has_floor():
    runs = [GlyphRun("a", 0, 0, 5, 8), GlyphRun("b", 6, 0, 5, 8)]
    assert compute_split_threshold(runs, config=LineConfig()) == 30


def test_aggressive_threshold_is_not_larger():
    runs = [GlyphRun("a", x, 0, 40, 12) for x in (0, 45, 90, 300)]
    normal = compute_split_threshold(runs, False)
    aggressive = compute_split_threshold(runs, True)
    assert aggressive <= normal


def test_split_cluster_on_wide_gap():
    runs = [GlyphRun("left", 50, 0, 100, 12), GlyphRun("right", 330, 0, 100, 12)]
    parts = split_cluster(runs, threshold=130)
    assert [[r.text for r in p] for p in parts] == [["left"], ["right"]]


def test_split_cluster_on_preliminary_column_change():
    runs = [GlyphRun("left", 50, 0, 40, 12), GlyphRun("right", 100, 0, 40, 12)]
    columns = [Column(0, 95, 0), Column(95, 200, 1)]
    parts = split_cluster(runs, threshold=1000, columns=columns)
    assert len(parts) == 2


def test_side_by_side_columns_give_separate_lines(metrics):
    runs = [
        GlyphRun("Left column text", 50, 100, 100, 12),
        GlyphRun("Right column text", 330, 100, 100, 12),
    ]
    columns = detect_page_columns(runs * 5, 600)
    lines = group_runs_into_lines(runs, metrics, page_columns=columns)
    assert [(l.text, l.column_index) for l in lines] == [
        ("Left column text", 0),
        ("Right column text", 1),
    ]


def test_lines_sorted_by_y(metrics):
    runs = [GlyphRun("second", 0, 200, 40, 12), GlyphRun("first", 0, 100, 40, 12)]
    assert [l.text for l in group_runs_into_lines(runs, metrics)] == ["first", "second"]


def test_whitespace_only_clusters_produce_no_line(metrics):
    runs = [GlyphRun("  ", 0, 100, 10, 12)]
    assert group_runs_into_lines(runs, metrics, LayoutConfig()) == []


def test_lines_to_dataframe_columns(metrics):
    runs = [GlyphRun("Hello", 0, 0, 40, 12)]
    df = lines_to_dataframe(group_runs_into_lines(runs, metrics))
    assert list(df["line_text"]) == ["Hello"]
    assert df.loc[0, "run_count"] == 1
    assert lines_to_dataframe([]).empty


# =============================================================================
# COLUMN DETECTION
# =============================================================================

def test_page_columns_single_when_few_coordinates():
    runs = [GlyphRun("a", 50, y, 10, 12) for y in range(5)]
    columns = detect_page_columns(runs, 600)
    assert len(columns) == 1
    assert (columns[0].start_x, columns[0].end_x) == (0.0, 600.0)


def test_page_columns_split_on_wide_gap(two_column_runs):
    columns = detect_page_columns(two_column_runs, 600)
    assert len(columns) == 2
    assert columns[0].end_x == pytest.approx(212.5)
    assert columns[1].end_x == 600


def test_page_columns_cover_page():
    runs = [GlyphRun("a", x, 0, 10, 12) for x in (40, 40, 40, 40, 220, 220, 220, 400, 400, 400)]
    columns = detect_page_columns(runs, 600)
    assert columns[0].start_x == 0
    assert columns[-1].end_x == 600
    assert [c.index for c in columns] == list(range(len(columns)))


def test_column_index_for_x_boundaries():
    cols = [Column(0, 300, 0), Column(300, 600, 1)]
    assert column_index_for_x(299.9, cols) == 0
    assert column_index_for_x(300, cols) == 1
    assert column_index_for_x(600, cols) == 1
    assert column_index_for_x(900, cols) == 1
    assert column_index_for_x(10, []) == 0


def test_preliminary_columns_find_gap(two_column_runs):
    columns = detect_preliminary_columns(two_column_runs, 12)
    assert len(columns) == 2
    assert columns[0].start_x == 50
    assert columns[0].end_x == pytest.approx(222.5)
    assert columns[1].end_x == pytest.approx(395)


def test_preliminary_columns_none_for_single_column():
    runs = [GlyphRun("a", 72, y, 200, 12) for y in range(0, 120, 12)]
    assert detect_preliminary_columns(runs, 12) == []


def test_find_column_by_overlap():
    cols = [Column(0, 100, 0), Column(150, 250, 1)]
    # Centre (110) falls between the columns; a third of the run overlaps column 0
    run = GlyphRun("x", 80, 0, 60, 10)
    assert find_column_for_run(run, cols) == 0
    assert find_column_for_run(GlyphRun("y", 300, 0, 10, 10), cols) is None
