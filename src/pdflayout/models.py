"""
Core data types for layout reconstruction.

The pipeline moves strictly one way: GlyphRun -> Line -> Block. Every type
here is a frozen dataclass; stages return annotated copies (via
``dataclasses.replace``) instead of mutating their inputs, so intermediate
outputs of any stage can be kept and compared in regression tests.

Key types:
- FontTable: integer-indexed arena of font records referenced by GlyphRun
- GlyphRun: one positioned text fragment from the PDF engine
- Line: reconstructed visual line (owned runs, collated text)
- Block: semantic unit (heading/paragraph/list/table/image/formula)
- Link: hyperlink area, attached to the block whose text it covers
- DocumentMetrics / GapAnalysis: read-only document statistics
- MergeOutcome: NoMerge | Merged | MergedWithRemainder
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from pdflayout.constants import (
    BLOCK_TYPE_FORMULA,
    BLOCK_TYPE_HEADING,
    BLOCK_TYPE_IMAGE,
    BLOCK_TYPE_LIST,
    BLOCK_TYPE_PARAGRAPH,
    BLOCK_TYPE_TABLE,
    DEFAULT_FONT_SIZE,
    DEFAULT_MODE_SPACING,
    DEFAULT_PARAGRAPH_GAP,
)


# =============================================================================
# FONTS
# =============================================================================

@dataclass(frozen=True)
class FontRecord:
    """
    One font known to the document.

    Attributes:
        handle: Engine-specific font identifier (opaque).
        real_name: Human-readable font name (e.g. "Times-BoldItalic").
        weight: Explicit weight from the engine ("bold"/"normal"), if exposed.
        style: Explicit style from the engine ("italic"/"oblique"/"normal").
    """

    handle: str
    real_name: str = ""
    weight: Optional[str] = None
    style: Optional[str] = None


class FontTable:
    """
    Arena of FontRecords addressed by integer index.

    GlyphRuns carry only the index, so per-run loops never hash font names.

    Example:
        >>> fonts = FontTable()
        >>> idx = fonts.intern("F1", "Helvetica-Bold")
        >>> fonts[idx].real_name
        'Helvetica-Bold'
        >>> fonts.intern("F1", "ignored") == idx
        True
    """

    def __init__(self) -> None:
        self._records: List[FontRecord] = []
        self._index: Dict[str, int] = {}

    def intern(
        self,
        handle: str,
        real_name: str = "",
        weight: Optional[str] = None,
        style: Optional[str] = None,
    ) -> int:
        """Return the index for handle, registering it on first sight."""
        existing = self._index.get(handle)
        if existing is not None:
            return existing
        self._records.append(
            FontRecord(handle=handle, real_name=real_name or handle, weight=weight, style=style)
        )
        idx = len(self._records) - 1
        self._index[handle] = idx
        return idx

    def index_of(self, handle: str) -> Optional[int]:
        return self._index.get(handle)

    def get(self, idx: int) -> Optional[FontRecord]:
        if 0 <= idx < len(self._records):
            return self._records[idx]
        return None

    def __getitem__(self, idx: int) -> FontRecord:
        return self._records[idx]

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self):
        return iter(self._records)

    def __repr__(self) -> str:
        return f"FontTable(fonts={len(self._records)})"


# =============================================================================
# RUNS AND LINES
# =============================================================================

@dataclass(frozen=True)
class GlyphRun:
    """
    One positioned text fragment in top-left, Y-down page coordinates.

    Attributes:
        text: Text of the fragment.
        x: Left edge.
        y: Top edge.
        width: Advance width of the fragment.
        font_size: Effective glyph height.
        font_index: Index into the document FontTable (-1 when unknown).
        page_number: 1-indexed page number.
        direction: "ltr" or "rtl".
        is_bold: Set by the style classifier.
        is_italic: Set by the style classifier.
        is_underlined: Set when underline ranges cover the whole run.
        underline_ranges: Character ranges [start, end) covered by underlines.
    """

    text: str
    x: float
    y: float
    width: float
    font_size: float
    font_index: int = -1
    page_number: int = 1
    direction: str = "ltr"
    is_bold: bool = False
    is_italic: bool = False
    is_underlined: bool = False
    underline_ranges: Tuple[Tuple[int, int], ...] = ()

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def center_x(self) -> float:
        return self.x + self.width / 2.0

    @property
    def aspect_ratio(self) -> float:
        """Width divided by height; the raw signal for ratio-based bold/italic."""
        return self.width / self.font_size if self.font_size > 0 else 0.0


@dataclass(frozen=True)
class Line:
    """
    A reconstructed visual text line.

    Attributes:
        text: Collated text of the member runs.
        x: Leftmost run x.
        y: Topmost run y.
        font_size: Largest member font size.
        is_bold / is_italic / is_underlined: OR of member flags.
        runs: Member runs sorted by x.
        page_number: Page of the first run.
        column_index: Coarse column index on the page.
    """

    text: str
    x: float
    y: float
    font_size: float
    runs: Tuple[GlyphRun, ...] = ()
    page_number: int = 1
    column_index: int = 0
    is_bold: bool = False
    is_italic: bool = False
    is_underlined: bool = False

    @property
    def right(self) -> float:
        if not self.runs:
            return self.x
        return max(r.right for r in self.runs)

    @property
    def bottom(self) -> float:
        return self.y + self.font_size

    def __repr__(self) -> str:
        preview = self.text if len(self.text) <= 40 else self.text[:37] + "..."
        return f"Line(p{self.page_number} c{self.column_index} y={self.y:.1f} {preview!r})"


# =============================================================================
# BLOCKS
# =============================================================================

class BlockKind(str, Enum):
    """Semantic block types."""

    HEADING = BLOCK_TYPE_HEADING
    PARAGRAPH = BLOCK_TYPE_PARAGRAPH
    LIST = BLOCK_TYPE_LIST
    TABLE = BLOCK_TYPE_TABLE
    IMAGE = BLOCK_TYPE_IMAGE
    FORMULA = BLOCK_TYPE_FORMULA


class GapMarker(Enum):
    """Sentinel values for Block.gap_after."""

    CROSS_PAGE_BREAK = "cross_page_break"


CROSS_PAGE_BREAK = GapMarker.CROSS_PAGE_BREAK

GapValue = Union[float, GapMarker, None]


@dataclass(frozen=True)
class ListItem:
    """One item of a grouped list."""

    text: str
    page_number: int = 1
    column_index: int = 0
    level: int = 0
    ordered: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "pageNum": self.page_number,
            "level": self.level,
            "ordered": self.ordered,
        }


@dataclass(frozen=True)
class Link:
    """
    A hyperlink area on a page.

    Attributes:
        uri: External target, "" for internal links.
        target_page: 1-indexed destination page of an internal link.
        text: Anchor text covered by the link area (set when attached to a block).
        x / y / width / height: Link area in top-left page coordinates.
    """

    uri: str = ""
    target_page: Optional[int] = None
    text: str = ""
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    def contains(self, x: float, y: float, tolerance: float = 1.0) -> bool:
        return (
            self.x - tolerance <= x <= self.x + self.width + tolerance
            and self.y - tolerance <= y <= self.y + self.height + tolerance
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"text": self.text}
        if self.uri:
            out["uri"] = self.uri
        if self.target_page is not None:
            out["pageNum"] = self.target_page
        return out


@dataclass(frozen=True)
class Block:
    """
    A semantic content unit.

    Attributes:
        kind: Block type.
        text: Block text (list blocks join items with newlines once grouped).
        page_number: Page where the block starts.
        font_size: Representative (largest) font size.
        column_index: Coarse column index on its page.
        level: Heading level 1-6 (headings only).
        gap_after: Vertical gap to the next block in the same column, or
            CROSS_PAGE_BREAK when the next block is on another page.
        lines: Contributing lines, preserved across merges.
        items: Grouped list items.
        rows: Table rows as tuples of cell strings.
        list_type: "ordered" or "unordered" for list blocks.
        list_level: Nesting level for list blocks (0 = top).
        x: Left edge of the block.
        y: Top edge of the block.
        bottom: Top of the last line of the block.
        is_bold: Any contributing line is bold.
        last_page: Page where the block ends, once merged across pages.
        links: Hyperlinks whose area covers text of the block.
    """

    kind: BlockKind
    text: str
    page_number: int = 1
    font_size: float = DEFAULT_FONT_SIZE
    column_index: int = 0
    level: Optional[int] = None
    gap_after: GapValue = None
    lines: Tuple[Line, ...] = ()
    items: Tuple[ListItem, ...] = ()
    rows: Tuple[Tuple[str, ...], ...] = ()
    list_type: Optional[str] = None
    list_level: int = 0
    x: float = 0.0
    y: float = 0.0
    bottom: float = 0.0
    is_bold: bool = False
    last_page: Optional[int] = None
    links: Tuple[Link, ...] = ()

    @property
    def end_page(self) -> int:
        return self.last_page or self.page_number

    @property
    def has_measured_gap(self) -> bool:
        """True when gap_after is a real same-page distance."""
        return isinstance(self.gap_after, (int, float)) and not isinstance(self.gap_after, bool)

    @property
    def column_count(self) -> int:
        return len(self.rows[0]) if self.rows else 0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the content-processor contract."""
        out: Dict[str, Any] = {
            "type": self.kind.value,
            "text": self.text,
            "pageNum": self.page_number,
            "columnIndex": self.column_index,
        }
        if self.kind == BlockKind.HEADING and self.level is not None:
            out["level"] = self.level
        if self.items:
            out["items"] = [item.to_dict() for item in self.items]
        if self.rows:
            out["rows"] = [list(row) for row in self.rows]
        if self.list_type:
            out["listType"] = self.list_type
        if self.links:
            out["links"] = [link.to_dict() for link in self.links]
        return out

    def __repr__(self) -> str:
        preview = self.text if len(self.text) <= 40 else self.text[:37] + "..."
        return (
            f"Block({self.kind.value}, p{self.page_number} c{self.column_index}, "
            f"lines={len(self.lines)}, {preview!r})"
        )


# =============================================================================
# COLUMNS AND METRICS
# =============================================================================

@dataclass(frozen=True)
class Column:
    """
    A reading column on a page (ephemeral, recomputed per page).

    Attributes:
        start_x: Left boundary.
        end_x: Right boundary.
        index: Position from left (0-based).
    """

    start_x: float
    end_x: float
    index: int = 0

    @property
    def width(self) -> float:
        return self.end_x - self.start_x

    @property
    def center(self) -> float:
        return (self.start_x + self.end_x) / 2.0


@dataclass(frozen=True)
class GapAnalysis:
    """
    Document-wide classification of inter-line gaps.

    Attributes:
        document_type: homogeneous, mostly-homogeneous, bimodal, gradual or unknown.
        homogeneity_level: 0..1 score; >= 0.8 means very uniform spacing.
        normal_gap_max: Largest gap still considered ordinary line spacing.
        paragraph_gap_min: Smallest gap considered a paragraph break.
        mean / median / std_dev / p75 / p90 / p95: Gap statistics.
        confidence: Heuristic confidence in the classification.
        gap_count: Number of gaps analysed.
    """

    document_type: str = "unknown"
    homogeneity_level: float = 0.0
    normal_gap_max: float = DEFAULT_PARAGRAPH_GAP
    paragraph_gap_min: float = DEFAULT_PARAGRAPH_GAP * 1.33
    mean: float = 0.0
    median: float = 0.0
    std_dev: float = 0.0
    p75: float = 0.0
    p90: float = 0.0
    p95: float = 0.0
    confidence: float = 0.0
    gap_count: int = 0

    @property
    def is_homogeneous(self) -> bool:
        return self.document_type == "homogeneous" or self.homogeneity_level >= 0.8


@dataclass(frozen=True)
class DocumentMetrics:
    """
    Read-only document statistics shared by every stage.

    Attributes:
        base_font_size: Most common font size (rounded to 0.5).
        median_font_size: Median font size.
        mode_spacing: Most common line-to-line distance.
        paragraph_gap_threshold: max(1.5 x mode_spacing, 1.2 x base_font_size).
        gap_analysis: Optional full-document gap classification.
        avg_paragraph_length: Added once paragraphs exist.
    """

    base_font_size: float = DEFAULT_FONT_SIZE
    median_font_size: float = DEFAULT_FONT_SIZE
    mode_spacing: float = DEFAULT_MODE_SPACING
    paragraph_gap_threshold: float = DEFAULT_PARAGRAPH_GAP
    gap_analysis: Optional[GapAnalysis] = None
    avg_paragraph_length: Optional[float] = None

    def with_gap_analysis(self, gap_analysis: GapAnalysis) -> "DocumentMetrics":
        return replace(self, gap_analysis=gap_analysis)

    def with_avg_paragraph_length(self, length: float) -> "DocumentMetrics":
        return replace(self, avg_paragraph_length=length)


# =============================================================================
# MERGE OUTCOMES
# =============================================================================

@dataclass(frozen=True)
class NoMerge:
    """The two blocks stay separate."""


@dataclass(frozen=True)
class Merged:
    """The two blocks became one."""

    block: Block


@dataclass(frozen=True)
class MergedWithRemainder:
    """The continuation fragment was merged; the rest stands alone."""

    block: Block
    remainder: Tuple[Block, ...]


MergeOutcome = Union[NoMerge, Merged, MergedWithRemainder]


# =============================================================================
# DOCUMENT RESULT
# =============================================================================

@dataclass(frozen=True)
class PageWarning:
    """A page that failed and contributed no content."""

    page_number: int
    message: str


@dataclass
class ExtractionResult:
    """
    Result of document extraction.

    Attributes:
        title: Document title from the fallback chain.
        content: Ordered content blocks.
        publish_date: YYYY-MM-DD or empty string.
        author: Author from metadata or empty string.
        metrics: Document metrics used during extraction.
        page_count: Number of pages in the document.
        warnings: Pages that failed extraction.
    """

    title: str
    content: List[Block]
    publish_date: str = ""
    author: str = ""
    metrics: DocumentMetrics = field(default_factory=DocumentMetrics)
    page_count: int = 0
    warnings: List[PageWarning] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "content": [block.to_dict() for block in self.content],
            "publishDate": self.publish_date,
            "author": self.author,
            "metrics": {
                "baseFontSize": self.metrics.base_font_size,
                "medianFontSize": self.metrics.median_font_size,
                "modeSpacing": self.metrics.mode_spacing,
                "paragraphGapThreshold": self.metrics.paragraph_gap_threshold,
                "avgParagraphLength": self.metrics.avg_paragraph_length,
            },
        }

    def __repr__(self) -> str:
        return (
            f"ExtractionResult(title={self.title!r}, blocks={len(self.content)}, "
            f"pages={self.page_count}, warnings={len(self.warnings)})"
        )
