"""
End-to-end tests for the layout pipeline.

Pages are fed as engine-neutral PageInputs, so these tests need no PDF
engine. The final test builds a real PDF with PyMuPDF when it is installed.
"""

import threading
from contextlib import contextmanager

import pytest

import pdflayout.extraction.pdf as pdf
import pdflayout.pipeline as pipeline
from pdflayout.config import LayoutConfig, LimitsConfig
from pdflayout.errors import (
    DocumentTimeoutError,
    ExtractionCancelled,
    FileTooLargeError,
    NoTextLayerError,
)
from pdflayout.extraction.ingest import ORIGIN_BOTTOM_LEFT, RawGlyph
from pdflayout.extraction.pdf import DocumentMetadata, ImageRef, OutlineEntry, PDFDocument
from pdflayout.models import BlockKind, FontTable, Link
from pdflayout.pipeline import PageInput, extract_document, extract_pages, read_pages


# =============================================================================
# FIXTURES
# =============================================================================

def make_page(page_number, lines, x=72, font_size=12, width=612, height=792):
    """PageInput with one glyph run per (text, y) line."""
    glyphs = [
        RawGlyph(text, x, y, 6 * len(text), font_size)
        for text, y in lines
    ]
    return PageInput(page_number=page_number, width=width, height=height, glyphs=glyphs)


@pytest.fixture
def single_page():
    return [
        make_page(1, [
            ("Layout analysis turns glyph runs", 100),
            ("into lines and then into blocks", 114),
            ("that read like the source page.", 128),
            ("A second paragraph follows after", 170),
            ("a clearly larger gap.", 184),
        ])
    ]


@pytest.fixture
def cross_page_document():
    return [
        make_page(1, [
            ("This report describes how text", 100),
            ("flows across page boundaries and is", 114),
            ("continued on the next,", 128),
        ]),
        make_page(2, [
            ("page without issue and then the", 100),
            ("paragraph ends here.", 114),
            ("Another paragraph follows it.", 156),
            ("It closes the document.", 170),
        ]),
    ]


# =============================================================================
# SINGLE PAGE
# =============================================================================

def test_paragraphs_from_single_page(single_page):
    result = extract_pages(single_page)
    assert [b.kind for b in result.content] == [BlockKind.PARAGRAPH, BlockKind.PARAGRAPH]
    assert result.content[0].text == (
        "Layout analysis turns glyph runs into lines and then into blocks "
        "that read like the source page."
    )
    assert result.content[1].text == "A second paragraph follows after a clearly larger gap."
    assert result.page_count == 1
    assert result.warnings == []


def test_title_from_first_sentence(single_page):
    result = extract_pages(single_page)
    assert result.title == "Layout analysis turns glyph"
    assert len(result.content) == 2


def test_metrics_and_gap_analysis(single_page):
    result = extract_pages(single_page)
    assert result.metrics.base_font_size == 12.0
    assert result.metrics.mode_spacing == 14.0
    assert result.metrics.gap_analysis.document_type == "bimodal"
    assert result.metrics.avg_paragraph_length > 0


def test_heading_list_and_title_heading():
    page = make_page(1, [
        ("The year went well for every", 100),
        ("division of the company.", 114),
        ("Revenue grew steadily.", 128),
        ("• first point", 170),
        ("• second point", 184),
    ])
    page.glyphs.insert(0, RawGlyph("Project Overview", 72, 60, 160, 20))
    result = extract_pages([page])
    assert result.title == "Project Overview"
    assert [b.kind for b in result.content] == [BlockKind.PARAGRAPH, BlockKind.LIST]
    assert [item.text for item in result.content[1].items] == ["first point", "second point"]


def test_metadata_title_keeps_heading():
    page = make_page(1, [("Some body text for the page.", 100)])
    page.glyphs.insert(0, RawGlyph("Project Overview", 72, 60, 192, 24))
    result = extract_pages([page], metadata=DocumentMetadata(title="Board Report", author="J. Doe"))
    assert result.title == "Board Report"
    assert result.author == "J. Doe"
    assert result.content[0].kind == BlockKind.HEADING
    assert result.content[0].level == 1


def test_outline_drives_heading_level():
    page = make_page(1, [("Body text follows here.", 100), ("More body text here.", 200)])
    page.glyphs.insert(0, RawGlyph("Introduction", 72, 60, 144, 24))
    page.glyphs.append(RawGlyph("Scope", 72, 160, 72, 24))
    outline = [OutlineEntry("Introduction", 1, 1, (OutlineEntry("Scope", 2, 1),))]
    result = extract_pages([page], metadata=DocumentMetadata(title="Doc"), outline=outline)
    headings = [b for b in result.content if b.kind == BlockKind.HEADING]
    # Same font size, levels come from the bookmarks
    assert [(h.text, h.level) for h in headings] == [("Introduction", 1), ("Scope", 2)]


def test_bottom_left_glyphs_are_flipped():
    page = PageInput(
        page_number=1,
        width=612,
        height=792,
        glyphs=[
            RawGlyph("Second line", 72, 664, 66, 12, origin=ORIGIN_BOTTOM_LEFT),
            RawGlyph("First line", 72, 678, 60, 12, origin=ORIGIN_BOTTOM_LEFT),
        ],
    )
    result = extract_pages([page], metadata=DocumentMetadata(title="Doc"))
    assert result.content[0].text == "First line Second line"


def test_image_placeholder_in_content():
    page = make_page(1, [("Text above the figure.", 100), ("Text below the figure.", 400)])
    page.images.append(ImageRef(72, 150, 300, 200))
    result = extract_pages([page], metadata=DocumentMetadata(title="Doc"))
    assert [b.kind for b in result.content] == [
        BlockKind.PARAGRAPH,
        BlockKind.IMAGE,
        BlockKind.PARAGRAPH,
    ]


# =============================================================================
# COLUMNS AND PAGES
# =============================================================================

def test_two_columns_never_merge():
    left = ["Left column text", "continues here", "and keeps going", "down the page", "to the end."]
    right = ["Right column text", "is read after", "the left column", "in reading order", "as expected."]
    glyphs = []
    for i, (l_text, r_text) in enumerate(zip(left, right)):
        y = 100 + 14 * i
        glyphs.append(RawGlyph(l_text, 50, y, 100, 12))
        glyphs.append(RawGlyph(r_text, 330, y, 100, 12))
    page = PageInput(page_number=1, width=600, height=800, glyphs=glyphs)

    result = extract_pages([page], metadata=DocumentMetadata(title="Columns"))
    assert [(b.column_index, b.text) for b in result.content] == [
        (0, "Left column text continues here and keeps going down the page to the end."),
        (1, "Right column text is read after the left column in reading order as expected."),
    ]


def test_cross_page_paragraph_is_merged(cross_page_document):
    result = extract_pages(cross_page_document, metadata=DocumentMetadata(title="Report"))
    texts = [b.text for b in result.content]
    assert texts[0] == (
        "This report describes how text flows across page boundaries and is "
        "continued on the next, page without issue and then the paragraph ends here."
    )
    assert texts[1] == "Another paragraph follows it. It closes the document."
    assert result.content[0].page_number == 1
    assert result.page_count == 2


def test_sentence_end_at_page_break_keeps_paragraphs():
    pages = [
        make_page(1, [("The first page ends with a full stop.", 100)]),
        make_page(2, [("Another paragraph begins at the top of the second page and carries on.", 100)]),
    ]
    result = extract_pages(pages, metadata=DocumentMetadata(title="Doc"))
    assert [b.page_number for b in result.content] == [1, 2]


def test_list_item_continues_onto_next_page():
    pages = [
        make_page(1, [
            ("The review found two things.", 100),
            ("• costs fell in every region", 128),
            ("• revenue grew across the", 142),
        ]),
        make_page(2, [
            ("whole group this year.", 100),
            ("A closing paragraph ends it.", 142),
        ]),
    ]
    result = extract_pages(pages, metadata=DocumentMetadata(title="Review"))
    assert [b.kind for b in result.content] == [BlockKind.PARAGRAPH, BlockKind.LIST, BlockKind.PARAGRAPH]
    assert [item.text for item in result.content[1].items] == [
        "costs fell in every region",
        "revenue grew across the whole group this year.",
    ]
    assert result.content[2].text == "A closing paragraph ends it."
    assert result.content[2].page_number == 2


# =============================================================================
# TABLES, FORMULAS AND LINKS
# =============================================================================

def test_table_split_across_columns_is_rebuilt():
    left = ["Region", "North", "South", "East", "West", "Central"]
    right = ["Revenue", "120", "95", "80", "64", "51"]
    glyphs = []
    for i, (l_text, r_text) in enumerate(zip(left, right)):
        y = 100 + 14 * i
        glyphs.append(RawGlyph(l_text, 72, y, 6 * len(l_text), 12))
        glyphs.append(RawGlyph(r_text, 330, y, 6 * len(r_text), 12))
    page = PageInput(page_number=1, width=600, height=800, glyphs=glyphs)

    result = extract_pages([page], metadata=DocumentMetadata(title="Sales"))
    assert [b.kind for b in result.content] == [BlockKind.TABLE]
    assert result.content[0].rows == tuple(zip(left, right))


def test_inline_list_becomes_heading_and_list():
    page = make_page(1, [("Main principles: • speed • safety • clarity", 100)])
    result = extract_pages([page], metadata=DocumentMetadata(title="Guide"))
    assert [b.kind for b in result.content] == [BlockKind.HEADING, BlockKind.LIST]
    assert result.content[0].text == "Main principles:"
    assert [item.text for item in result.content[1].items] == ["speed", "safety", "clarity"]


def test_display_formula_is_classified():
    page = make_page(1, [
        ("The energy of a body at rest", 100),
        ("is related to its mass by", 114),
        ("the following equation:", 128),
        ("E = mc2", 170),
        ("Here c stands for the speed of", 212),
        ("light in a vacuum and m is", 226),
        ("the mass of the body.", 240),
    ])
    result = extract_pages([page], metadata=DocumentMetadata(title="Physics"))
    assert [b.kind for b in result.content] == [BlockKind.PARAGRAPH, BlockKind.FORMULA, BlockKind.PARAGRAPH]
    assert result.content[1].to_dict()["type"] == "formula"


def test_links_attach_to_covered_text():
    page = PageInput(
        page_number=1,
        width=612,
        height=792,
        glyphs=[
            RawGlyph("Read the", 72, 100, 48, 12),
            RawGlyph("full report", 124, 100, 66, 12),
            RawGlyph("for the details.", 72, 114, 96, 12),
        ],
        links=[Link(uri="https://example.org/report", x=122, y=99, width=70, height=14)],
    )
    result = extract_pages([page], metadata=DocumentMetadata(title="Links"))
    assert len(result.content) == 1
    assert result.content[0].to_dict()["links"] == [
        {"text": "full report", "uri": "https://example.org/report"}
    ]


# =============================================================================
# ERRORS AND CANCELLATION
# =============================================================================

def test_no_text_layer():
    pages = [PageInput(1, 612, 792, glyphs=[RawGlyph("   ", 72, 100, 10, 12)])]
    with pytest.raises(NoTextLayerError):
        extract_pages(pages)


def test_cancel_before_first_page(single_page):
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(ExtractionCancelled):
        extract_pages(single_page, cancel=cancel)


def test_failing_page_is_recorded_and_skipped(monkeypatch, cross_page_document):
    original = pipeline.layout_page

    def flaky(page, *args, **kwargs):
        if page.page_number == 2:
            raise RuntimeError("broken page")
        return original(page, *args, **kwargs)

    monkeypatch.setattr(pipeline, "layout_page", flaky)
    result = extract_pages(cross_page_document, metadata=DocumentMetadata(title="Report"))
    assert [w.page_number for w in result.warnings] == [2]
    assert "broken page" in result.warnings[0].message
    assert all(b.page_number == 1 for b in result.content)


class FakePage:
    def __init__(self, page_number, fail=False):
        self.page_number = page_number
        self.width = 612.0
        self.height = 792.0
        self.fail = fail

    def glyphs(self, fonts):
        if self.fail:
            raise ValueError("corrupt content stream")
        return [RawGlyph(f"Page {self.page_number} text.", 72, 100, 90, 12)]

    def horizontal_segments(self, tolerance=2.0):
        return []

    def image_blocks(self):
        return []

    def links(self):
        return []


class FakeDocument:
    def __init__(self, failing=()):
        self.page_count = 3
        self.failing = set(failing)
        self.released = []

    @contextmanager
    def page(self, page_number):
        try:
            yield FakePage(page_number, fail=page_number in self.failing)
        finally:
            self.released.append(page_number)


def test_read_pages_isolates_failures():
    document = FakeDocument(failing={2})
    warnings = []
    pages = read_pages(document, FontTable(), LayoutConfig(), warnings)
    assert [p.page_number for p in pages] == [1, 3]
    assert [w.page_number for w in warnings] == [2]
    assert "corrupt content stream" in warnings[0].message
    assert document.released == [1, 2, 3]


def test_read_pages_checks_cancel():
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(ExtractionCancelled):
        read_pages(FakeDocument(), FontTable(), LayoutConfig(), [], cancel=cancel)


def test_extract_document_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        extract_document(tmp_path / "missing.pdf")


def test_extract_document_size_cap(tmp_path):
    path = tmp_path / "big.pdf"
    path.write_bytes(b"%PDF-1.4\n" + b"0" * 2048)
    config = LayoutConfig(limits=LimitsConfig(max_file_size=1024))
    with pytest.raises(FileTooLargeError) as excinfo:
        extract_document(path, config=config)
    assert excinfo.value.limit == 1024
    assert excinfo.value.size == path.stat().st_size


# =============================================================================
# REAL PDF (PyMuPDF)
# =============================================================================

def test_extract_generated_pdf():
    fitz = pytest.importorskip("fitz")
    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((72, 100), "Hello from a generated page.", fontsize=12)
    page.insert_text((72, 114), "the text continues on this line.", fontsize=12)
    doc.set_metadata({"title": "Generated Report", "author": "Tests"})
    data = doc.tobytes()
    doc.close()

    result = extract_document(data)
    assert result.title == "Generated Report"
    assert result.author == "Tests"
    assert result.page_count == 1
    assert "Hello from a generated page." in result.content[0].text


def test_invalid_pdf_bytes():
    pytest.importorskip("fitz")
    from pdflayout.errors import InvalidPDFError

    with pytest.raises(InvalidPDFError):
        extract_document(b"this is not a pdf")


# =============================================================================
# ENGINE ADAPTER (fake handle)
# =============================================================================

class FakeRect:
    width = 612.0
    height = 792.0


class FakeLinkRect:
    def __init__(self, x0, y0, x1, y1):
        self.x0, self.y0, self.x1, self.y1 = x0, y0, x1, y1


class FakeEnginePage:
    rect = FakeRect()

    def get_text(self, mode):
        return {
            "blocks": [
                {"type": 0, "lines": [{"dir": (1.0, 0.0), "spans": [
                    {"text": "Bold words", "bbox": (72, 90, 150, 104), "size": 12,
                     "flags": 16, "font": "Helvetica-Bold"},
                ]}]},
                {"type": 1, "bbox": (72, 200, 272, 300)},
            ]
        }

    def get_drawings(self):
        return []

    def get_links(self):
        return [
            {"kind": 2, "from": FakeLinkRect(72, 90, 150, 104), "uri": "https://example.org/report"},
            {"kind": 1, "from": FakeLinkRect(72, 400, 150, 414), "page": 1},
            {"kind": 0, "from": FakeLinkRect(0, 0, 10, 10)},
        ]


class FakeHandle:
    page_count = 2
    metadata = {"title": " Annual Report ", "author": "Finance", "creationDate": "D:20240131093000Z"}

    def __init__(self):
        self.closed = False

    def load_page(self, index):
        if index == 1:
            raise RuntimeError("page tree is broken")
        return FakeEnginePage()

    def get_toc(self, simple=True):
        return [[1, "Intro", 1], [2, "Scope", 1]]

    def close(self):
        self.closed = True


def test_engine_document_reads_metadata_and_outline():
    handle = FakeHandle()
    with PDFDocument(handle) as document:
        metadata = document.metadata()
        outline = document.outline()
    assert handle.closed
    assert (metadata.title, metadata.author, metadata.publish_date) == ("Annual Report", "Finance", "2024-01-31")
    assert outline[0].title == "Intro"
    assert outline[0].children[0].level == 2


def test_engine_pages_become_inputs_and_unloadable_pages_warnings():
    fonts = FontTable()
    warnings = []
    pages = read_pages(PDFDocument(FakeHandle()), fonts, LayoutConfig(), warnings)

    assert [p.page_number for p in pages] == [1]
    glyph = pages[0].glyphs[0]
    assert (glyph.text, glyph.x, glyph.y, glyph.height) == ("Bold words", 72.0, 90.0, 12.0)
    assert fonts[glyph.font_index].weight == "bold"
    assert pages[0].images == [ImageRef(72.0, 200.0, 200.0, 100.0)]
    assert [(l.uri, l.target_page) for l in pages[0].links] == [("https://example.org/report", None), ("", 2)]
    assert warnings[0].page_number == 2
    assert "cannot load page" in warnings[0].message


class SlowHandle(FakeHandle):
    def __init__(self):
        super().__init__()
        self.closed_event = threading.Event()

    def close(self):
        super().close()
        self.closed_event.set()


def test_open_timeout_closes_handle_once_loaded(monkeypatch):
    handle = SlowHandle()
    release = threading.Event()

    def slow_open(source):
        release.wait(5)
        return handle

    monkeypatch.setattr(pdf, "_open_handle", slow_open)
    with pytest.raises(DocumentTimeoutError):
        pdf.open_document(b"%PDF-1.4", LimitsConfig(load_timeout=0.01))
    assert not handle.closed

    release.set()
    assert handle.closed_event.wait(5)
