"""
Tests for attaching link areas to the blocks whose text they cover.
"""

import pytest

from pdflayout.extraction.grouping import group_list_items
from pdflayout.extraction.links import anchor_text, attach_links
from pdflayout.models import Block, BlockKind, DocumentMetrics, GlyphRun, Line, ListItem, Link


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def report_line():
    return Line(
        "Read the full report",
        72,
        100,
        12,
        runs=(GlyphRun("Read the", 72, 100, 48, 12), GlyphRun("full report", 124, 100, 66, 12)),
    )


@pytest.fixture
def report_link():
    return Link(uri="https://example.org/report", x=122, y=99, width=70, height=14)


def block_with(lines, text=None):
    return Block(BlockKind.PARAGRAPH, text or " ".join(l.text for l in lines), lines=tuple(lines))


# =============================================================================
# ANCHOR TEXT
# =============================================================================

def test_anchor_text_covers_only_runs_inside(report_line, report_link):
    assert anchor_text(report_link, [report_line]) == "full report"


def test_anchor_text_empty_when_area_misses(report_line):
    link = Link(uri="https://example.org", x=300, y=99, width=40, height=14)
    assert anchor_text(link, [report_line]) == ""


def test_link_contains_with_tolerance():
    link = Link(x=10, y=10, width=20, height=10)
    assert link.contains(30.5, 15)
    assert not link.contains(32, 15)
    assert not link.contains(32, 15, tolerance=0)


# =============================================================================
# ATTACHING
# =============================================================================

def test_link_attached_with_anchor_text(report_line, report_link):
    other = Line("Nothing linked here", 72, 140, 12, runs=(GlyphRun("Nothing linked here", 72, 140, 114, 12),))
    blocks = attach_links([block_with([report_line]), block_with([other])], [report_link])
    assert blocks[0].links == (
        Link(uri="https://example.org/report", text="full report", x=122, y=99, width=70, height=14),
    )
    assert blocks[1].links == ()


def test_uncovered_link_is_dropped(report_line):
    block = block_with([report_line])
    blocks = attach_links([block], [Link(uri="https://example.org", x=400, y=400, width=10, height=10)])
    assert blocks == [block]


def test_internal_link_serialises_page(report_line):
    link = Link(target_page=3, x=122, y=99, width=70, height=14)
    block = attach_links([block_with([report_line])], [link])[0]
    assert block.to_dict()["links"] == [{"text": "full report", "pageNum": 3}]


def test_blocks_without_links_have_no_links_key(report_line):
    assert "links" not in block_with([report_line]).to_dict()


def test_grouped_list_keeps_item_links():
    first = Link(uri="https://a.example", text="a")
    second = Link(uri="https://b.example", text="b")
    items = [
        Block(
            BlockKind.LIST,
            f"• {name}",
            items=(ListItem(name),),
            list_type="unordered",
            x=72,
            y=y,
            bottom=y,
            links=(link,),
        )
        for name, y, link in (("a", 100, first), ("b", 114, second))
    ]
    grouped = group_list_items(items, DocumentMetrics())
    assert len(grouped) == 1
    assert grouped[0].links == (first, second)
