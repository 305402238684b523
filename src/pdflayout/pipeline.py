"""
Document layout reconstruction pipeline.

Turns a PDF into an ordered list of semantic blocks (headings, paragraphs,
lists, tables, formulas, image placeholders) plus a title and metadata.

Algorithm Overview:
1. Open and validate the document; read metadata and outline
2. Read every page into an engine-neutral PageInput (glyph runs, horizontal
   segments, image boxes, link areas); the page handle is released right after
3. Document metrics from the runs of the first pages
4. Per page: ingest runs, classify bold/italic, attach underlines, analyze
   strip density, detect coarse and fine columns, rebuild lines, refine
   styles line by line
5. Gap analysis over all lines of the document
6. Per page: group lines into blocks, rebuild tables split across
   columns, classify formulas, attach links, place image placeholders
7. Document passes: same-page continuations, inline list splitting,
   heading levels, list and table grouping, cross-page merge,
   post-processing, title

A page that fails in steps 2, 4 or 6 is logged and recorded as a warning;
extraction continues with the remaining pages. Cancellation is checked at
page boundaries only.

extract_pages() runs steps 3-7 on PageInputs and needs no PDF engine, which
is how the pipeline is tested.
"""

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from tqdm import tqdm

from pdflayout.config import LayoutConfig
from pdflayout.constants import DEFAULT_AVG_PARAGRAPH_LENGTH
from pdflayout.errors import ExtractionCancelled, NoTextLayerError
from pdflayout.extraction.columns import detect_page_columns, detect_preliminary_columns
from pdflayout.extraction.fonts import (
    build_style_context,
    classify_runs,
    detect_underlines,
    refine_contextual_styles,
)
from pdflayout.extraction.formulas import classify_formulas
from pdflayout.extraction.grouping import group_list_items, group_table_rows, split_inline_lists
from pdflayout.extraction.headings import assign_heading_levels
from pdflayout.extraction.ingest import RawGlyph, normalize_glyphs
from pdflayout.extraction.lines import group_runs_into_lines
from pdflayout.extraction.links import attach_links
from pdflayout.extraction.merge import merge_cross_page
from pdflayout.extraction.metrics import (
    analyze_document_metrics,
    analyze_gaps,
    average_paragraph_length,
)
from pdflayout.extraction.paragraphs import (
    build_image_blocks,
    group_lines_into_blocks,
    insert_image_blocks,
    merge_same_page_continuations,
)
from pdflayout.extraction.pdf import (
    DocumentMetadata,
    ImageRef,
    OutlineEntry,
    PDFDocument,
    PDFSource,
    Segment,
    open_document,
)
from pdflayout.extraction.postprocess import post_process
from pdflayout.extraction.tables import extract_column_tables
from pdflayout.extraction.title import extract_title
from pdflayout.extraction.visual import analyze_visual_structure
from pdflayout.models import (
    Block,
    Column,
    DocumentMetrics,
    ExtractionResult,
    FontTable,
    GlyphRun,
    Line,
    Link,
    PageWarning,
)

logger = logging.getLogger(__name__)


# =============================================================================
# PAGE INPUT
# =============================================================================

@dataclass
class PageInput:
    """
    Everything the pipeline needs from one page, independent of the engine.

    Attributes:
        page_number: 1-indexed page number.
        width: Page width in points.
        height: Page height in points.
        glyphs: Raw positioned text fragments.
        segments: Horizontal vector segments (underline candidates).
        images: Image bounding boxes.
        links: Link areas.
    """

    page_number: int
    width: float
    height: float
    glyphs: List[RawGlyph] = field(default_factory=list)
    segments: List[Segment] = field(default_factory=list)
    images: List[ImageRef] = field(default_factory=list)
    links: List[Link] = field(default_factory=list)


@dataclass
class _PageLayout:
    page_number: int
    lines: List[Line]
    columns: List[Column]
    images: List[ImageRef]
    links: List[Link]


def _check_cancel(cancel: Optional[threading.Event], page_number: int) -> None:
    if cancel is not None and cancel.is_set():
        logger.info(f"Extraction cancelled before page {page_number}")
        raise ExtractionCancelled(f"cancelled before page {page_number}")


def _record_page_failure(warnings: List[PageWarning], page_number: int, stage: str, exc: Exception) -> None:
    logger.warning(f"Page {page_number}: {stage} failed, skipping page: {exc}")
    warnings.append(PageWarning(page_number=page_number, message=f"{stage}: {exc}"))


# =============================================================================
# PIPELINE STAGES
# =============================================================================

def read_pages(
    document: PDFDocument,
    fonts: FontTable,
    config: LayoutConfig,
    warnings: List[PageWarning],
    progress: bool = False,
    cancel: Optional[threading.Event] = None,
) -> List[PageInput]:
    """Read each page into a PageInput, releasing the page right after."""
    pages: List[PageInput] = []
    with tqdm(total=document.page_count, desc="Reading pages", disable=not progress) as pbar:
        for page_number in range(1, document.page_count + 1):
            _check_cancel(cancel, page_number)
            try:
                with document.page(page_number) as page:
                    pages.append(
                        PageInput(
                            page_number=page_number,
                            width=page.width,
                            height=page.height,
                            glyphs=page.glyphs(fonts),
                            segments=page.horizontal_segments(config.underline.horizontal_tolerance),
                            images=page.image_blocks(),
                            links=page.links(),
                        )
                    )
            except Exception as exc:
                _record_page_failure(warnings, page_number, "read", exc)
            pbar.update(1)
    return pages


def sample_metrics(
    runs_by_page: Dict[int, List[GlyphRun]],
    max_pages: int,
) -> DocumentMetrics:
    """Document metrics from the runs of the first ``max_pages`` pages."""
    sample: List[GlyphRun] = []
    for page_number in sorted(runs_by_page)[:max_pages]:
        sample.extend(runs_by_page[page_number])
    return analyze_document_metrics(sample)


def layout_page(
    page: PageInput,
    runs: Sequence[GlyphRun],
    fonts: FontTable,
    metrics: DocumentMetrics,
    config: LayoutConfig,
    base_font: Optional[int] = None,
) -> _PageLayout:
    """Columns and lines of one page from its style-classified runs."""
    runs = detect_underlines(runs, page.segments, config.underline)
    visual = analyze_visual_structure(
        runs, page.width, page.height, metrics.base_font_size, config.visual
    )
    columns = detect_page_columns(runs, page.width, config.columns, visual)
    preliminary = detect_preliminary_columns(runs, metrics.base_font_size, config.columns)
    lines = group_runs_into_lines(runs, metrics, config, preliminary, columns)
    lines = refine_contextual_styles(lines, fonts, config.style, base_font)
    return _PageLayout(page.page_number, lines, columns, list(page.images), list(page.links))


def finish_blocks(
    blocks: Sequence[Block],
    metrics: DocumentMetrics,
    config: LayoutConfig,
    outline: Optional[Sequence[OutlineEntry]] = None,
) -> List[Block]:
    """Document-level passes over the blocks of all pages."""
    blocks = merge_same_page_continuations(blocks, metrics, config.continuation)
    blocks = split_inline_lists(blocks, config.list_split)
    blocks = assign_heading_levels(blocks, metrics, outline, config.headings)
    blocks = group_list_items(blocks, metrics)
    blocks = group_table_rows(blocks, metrics)
    blocks = merge_cross_page(blocks, metrics, config)
    return post_process(blocks)


# =============================================================================
# MAIN PIPELINE
# =============================================================================

def extract_pages(
    pages: Sequence[PageInput],
    fonts: Optional[FontTable] = None,
    config: Optional[LayoutConfig] = None,
    metadata: Optional[DocumentMetadata] = None,
    outline: Optional[Sequence[OutlineEntry]] = None,
    source_name: Optional[str] = None,
    progress: bool = False,
    cancel: Optional[threading.Event] = None,
    warnings: Optional[List[PageWarning]] = None,
    page_count: Optional[int] = None,
) -> ExtractionResult:
    """
    Reconstruct document structure from page inputs.

    Args:
        pages: Page inputs in page order.
        fonts: Font arena the glyph font indices refer to.
        config: Pipeline configuration.
        metadata: Document info (title, author, dates).
        outline: Document bookmarks, used for heading levels.
        source_name: File name or URL, the last title fallback.
        progress: Show a tqdm progress bar.
        cancel: Event checked at page boundaries.
        warnings: Warnings collected so far (appended to).
        page_count: Total page count, when some pages could not be read.

    Returns:
        ExtractionResult.

    Raises:
        NoTextLayerError: If no page has any text.
        ExtractionCancelled: If ``cancel`` is set.
    """
    fonts = fonts if fonts is not None else FontTable()
    config = config or LayoutConfig()
    metadata = metadata or DocumentMetadata()
    warnings = warnings if warnings is not None else []

    runs_by_page: Dict[int, List[GlyphRun]] = {
        page.page_number: normalize_glyphs(page.glyphs, page.page_number, page.height)
        for page in pages
    }
    if not any(runs_by_page.values()):
        raise NoTextLayerError("No text found in PDF; it may be a scanned document")

    metrics = sample_metrics(runs_by_page, config.limits.max_pages_for_analysis)

    all_runs = [run for page_runs in runs_by_page.values() for run in page_runs]
    style_context = build_style_context(all_runs, fonts, config.style)

    layouts: List[_PageLayout] = []
    with tqdm(total=len(pages), desc="Extracting pages", disable=not progress) as pbar:
        for page in pages:
            _check_cancel(cancel, page.page_number)
            try:
                runs = classify_runs(
                    runs_by_page[page.page_number], fonts, config.style, context=style_context
                )
                layouts.append(
                    layout_page(page, runs, fonts, metrics, config, style_context.base_font)
                )
            except Exception as exc:
                _record_page_failure(warnings, page.page_number, "layout", exc)
            pbar.update(1)

    all_lines = sorted(
        (line for layout in layouts for line in layout.lines),
        key=lambda l: (l.page_number, l.column_index, l.y),
    )
    metrics = metrics.with_gap_analysis(analyze_gaps(all_lines))

    blocks: List[Block] = []
    for layout in layouts:
        try:
            page_blocks = group_lines_into_blocks(layout.lines, metrics, config.paragraphs)
            page_blocks = extract_column_tables(page_blocks, metrics, config.tables)
            page_blocks = classify_formulas(page_blocks, fonts, config.formulas)
            page_blocks = attach_links(page_blocks, layout.links)
            images = build_image_blocks(layout.images, layout.page_number, layout.columns)
            blocks.extend(insert_image_blocks(page_blocks, images))
        except Exception as exc:
            _record_page_failure(warnings, layout.page_number, "grouping", exc)

    metrics = metrics.with_avg_paragraph_length(
        average_paragraph_length(blocks, default=DEFAULT_AVG_PARAGRAPH_LENGTH)
    )
    blocks = finish_blocks(blocks, metrics, config, outline)

    title = extract_title(metadata.title, blocks, source_name, config.title)
    result = ExtractionResult(
        title=title.title,
        content=title.blocks,
        publish_date=metadata.publish_date,
        author=metadata.author,
        metrics=metrics,
        page_count=page_count if page_count is not None else len(pages),
        warnings=warnings,
    )
    logger.info(
        f"Extracted {len(result.content)} blocks from {result.page_count} pages "
        f"(title from {title.source}, {len(warnings)} page warnings)"
    )
    return result


def extract_document(
    source: PDFSource,
    config: Optional[LayoutConfig] = None,
    source_name: Optional[str] = None,
    progress: bool = False,
    cancel: Optional[threading.Event] = None,
) -> ExtractionResult:
    """
    Extract structured content from a PDF.

    Args:
        source: Path to a PDF or its raw bytes.
        config: Pipeline configuration (defaults to LayoutConfig()).
        source_name: Name used for the filename title fallback; defaults to
            the path when ``source`` is a path.
        progress: Show tqdm progress bars.
        cancel: Event checked at page boundaries.

    Returns:
        ExtractionResult.

    Raises:
        DocumentError: For fatal document conditions (invalid, encrypted,
            empty, too large, timed out, no text layer).
        ExtractionCancelled: If ``cancel`` is set.

    Example:
        >>> result = extract_document("data/report.pdf")  # doctest: +SKIP
        >>> result.title  # doctest: +SKIP
        'Annual Report'
    """
    config = config or LayoutConfig()
    if source_name is None and not isinstance(source, (bytes, bytearray)):
        source_name = Path(source).name

    fonts = FontTable()
    warnings: List[PageWarning] = []
    with open_document(source, config.limits) as document:
        metadata = document.metadata()
        outline = document.outline()
        pages = read_pages(document, fonts, config, warnings, progress, cancel)
        page_count = document.page_count

    return extract_pages(
        pages,
        fonts=fonts,
        config=config,
        metadata=metadata,
        outline=outline,
        source_name=source_name,
        progress=progress,
        cancel=cancel,
        warnings=warnings,
        page_count=page_count,
    )
