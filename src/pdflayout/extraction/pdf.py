"""
PDF engine adapter built on PyMuPDF.

This module is the only place that talks to the PDF engine. It exposes the
pieces the layout pipeline consumes:
- per-page raw glyph runs (span text, position, size, font)
- per-page horizontal vector segments (for underline detection)
- per-page image bounding boxes
- per-page link areas (external URIs and internal page targets)
- document metadata and outline (bookmarks)

Fatal conditions (unreadable file, password, zero pages, size cap, load
timeout) raise typed DocumentErrors. Page handles are released in a
guaranteed-release scope via ``PDFDocument.page()``.
"""

import logging
import os
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeout
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from pdflayout.config import LimitsConfig
from pdflayout.constants import PDF_DATE_RX
from pdflayout.errors import (
    DocumentTimeoutError,
    EmptyDocumentError,
    FileTooLargeError,
    InvalidPDFError,
    PageExtractionError,
    PasswordProtectedError,
)
from pdflayout.extraction.ingest import ORIGIN_TOP_LEFT, RawGlyph
from pdflayout.models import FontTable, Link

logger = logging.getLogger(__name__)

PDFSource = Union[str, Path, bytes]

# PyMuPDF span flag bits
FLAG_ITALIC = 2
FLAG_BOLD = 16


def _import_fitz():
    try:
        import fitz  # PyMuPDF
    except ImportError:
        raise ImportError(
            "PyMuPDF not installed. Run: pip install PyMuPDF"
        )
    return fitz


# =============================================================================
# ENGINE RECORDS
# =============================================================================

@dataclass(frozen=True)
class Segment:
    """A straight vector segment in top-left page coordinates."""

    x1: float
    y1: float
    x2: float
    y2: float

    @property
    def x_start(self) -> float:
        return min(self.x1, self.x2)

    @property
    def x_end(self) -> float:
        return max(self.x1, self.x2)

    @property
    def y_mid(self) -> float:
        return (self.y1 + self.y2) / 2.0

    @property
    def length(self) -> float:
        return self.x_end - self.x_start


@dataclass(frozen=True)
class ImageRef:
    """Bounding box of an image placed on a page."""

    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class OutlineEntry:
    """One bookmark; level 1 is the top of the outline tree."""

    title: str
    level: int
    page_number: Optional[int] = None
    children: Tuple["OutlineEntry", ...] = ()


@dataclass(frozen=True)
class DocumentMetadata:
    """Document info dictionary, dates normalized to YYYY-MM-DD."""

    title: str = ""
    author: str = ""
    creation_date: str = ""
    modification_date: str = ""

    @property
    def publish_date(self) -> str:
        return self.creation_date or self.modification_date


def parse_pdf_date(value: Optional[str]) -> str:
    """
    Normalize a PDF date string.

    Args:
        value: Raw date such as "D:20240131093000+01'00'".

    Returns:
        "YYYY-MM-DD" (month/day default to 01), or "" if unparseable.

    Example:
        >>> parse_pdf_date("D:20240131093000Z")
        '2024-01-31'
        >>> parse_pdf_date("D:2019")
        '2019-01-01'
        >>> parse_pdf_date("garbage")
        ''
    """
    if not value:
        return ""
    match = PDF_DATE_RX.match(value.strip())
    if not match:
        return ""
    year, month, day = match.group(1), match.group(2) or "01", match.group(3) or "01"
    return f"{year}-{month}-{day}"


def build_outline(toc: List[List[Any]]) -> List[OutlineEntry]:
    """
    Convert a flat PyMuPDF table of contents into a tree.

    Args:
        toc: Rows of [level, title, page] as returned by ``Document.get_toc()``.

    Returns:
        Top-level OutlineEntry list with nested children.

    Example:
        >>> tree = build_outline([[1, "Intro", 1], [2, "Scope", 1], [1, "Methods", 2]])
        >>> [e.title for e in tree], tree[0].children[0].title
        (['Intro', 'Methods'], 'Scope')
    """
    # Build bottom-up: each stack frame collects the children of one open entry
    root: List[Tuple[int, str, Optional[int], List[Any]]] = []
    stack: List[Tuple[int, str, Optional[int], List[Any]]] = []
    for row in toc:
        if len(row) < 2:
            continue
        level = max(1, int(row[0]))
        title = str(row[1] or "").strip()
        page = int(row[2]) if len(row) > 2 and row[2] is not None else None
        node = (level, title, page, [])
        while stack and stack[-1][0] >= level:
            stack.pop()
        (stack[-1][3] if stack else root).append(node)
        stack.append(node)

    def freeze(node) -> OutlineEntry:
        level, title, page, children = node
        return OutlineEntry(
            title=title,
            level=level,
            page_number=page,
            children=tuple(freeze(child) for child in children),
        )

    return [freeze(node) for node in root]


# =============================================================================
# PAGE
# =============================================================================

class PDFPage:
    """
    One engine page, valid only inside ``PDFDocument.page()``.

    Attributes:
        page_number: 1-indexed page number.
        width: Page width in points.
        height: Page height in points.
    """

    def __init__(self, handle: Any, page_number: int):
        self._handle = handle
        self._text_dict: Optional[Dict[str, Any]] = None
        self.page_number = page_number
        rect = handle.rect
        self.width = float(rect.width)
        self.height = float(rect.height)

    def _dict(self) -> Dict[str, Any]:
        if self._text_dict is None:
            self._text_dict = self._handle.get_text("dict")
        return self._text_dict

    def glyphs(self, fonts: FontTable) -> List[RawGlyph]:
        """
        Extract spans as raw glyph runs, interning fonts into ``fonts``.

        Bold/italic span flags become the font record's explicit weight and
        style, so the style classifier can use them as direct metadata.
        """
        raw: List[RawGlyph] = []
        for block in self._dict().get("blocks", []):
            # Skip non-text blocks (images)
            if block.get("type") != 0:
                continue
            for line in block.get("lines", []):
                direction = "ltr"
                line_dir = line.get("dir")
                if line_dir and float(line_dir[0]) < 0:
                    direction = "rtl"
                for span in line.get("spans", []):
                    text = span.get("text", "")
                    bbox = span.get("bbox")
                    if not text or bbox is None:
                        continue
                    flags = int(span.get("flags", 0))
                    font_name = span.get("font", "") or ""
                    font_index = fonts.intern(
                        handle=font_name,
                        real_name=font_name,
                        weight="bold" if flags & FLAG_BOLD else None,
                        style="italic" if flags & FLAG_ITALIC else None,
                    )
                    x0, y0, x1, _y1 = map(float, bbox)
                    raw.append(
                        RawGlyph(
                            text=text,
                            x=x0,
                            y=y0,
                            width=x1 - x0,
                            height=float(span.get("size", 0.0)),
                            font_index=font_index,
                            direction=direction,
                            origin=ORIGIN_TOP_LEFT,
                        )
                    )
        return raw

    def horizontal_segments(self, tolerance: float = 2.0) -> List[Segment]:
        """
        Near-horizontal vector segments: stroked lines and hairline rectangles.

        Args:
            tolerance: Max vertical extent of a segment/rectangle.
        """
        segments: List[Segment] = []
        for drawing in self._handle.get_drawings():
            for item in drawing.get("items", []):
                kind = item[0]
                if kind == "l":
                    p1, p2 = item[1], item[2]
                    if abs(float(p1.y) - float(p2.y)) <= tolerance:
                        segments.append(Segment(float(p1.x), float(p1.y), float(p2.x), float(p2.y)))
                elif kind == "re":
                    rect = item[1]
                    if float(rect.height) <= tolerance and float(rect.width) > 0:
                        y_mid = (float(rect.y0) + float(rect.y1)) / 2.0
                        segments.append(Segment(float(rect.x0), y_mid, float(rect.x1), y_mid))
        return segments

    def image_blocks(self) -> List[ImageRef]:
        """Bounding boxes of image blocks on the page."""
        refs: List[ImageRef] = []
        for block in self._dict().get("blocks", []):
            if block.get("type") != 1:
                continue
            x0, y0, x1, y1 = map(float, block.get("bbox", (0, 0, 0, 0)))
            if x1 > x0 and y1 > y0:
                refs.append(ImageRef(x=x0, y=y0, width=x1 - x0, height=y1 - y0))
        return refs

    def links(self) -> List[Link]:
        """
        Link areas with an external URI or an internal page destination.

        Internal destinations are converted to 1-indexed page numbers.
        """
        out: List[Link] = []
        for link in self._handle.get_links():
            rect = link.get("from")
            if rect is None:
                continue
            uri = link.get("uri") or ""
            target = link.get("page")
            target_page = int(target) + 1 if target is not None and int(target) >= 0 else None
            if not uri and target_page is None:
                continue
            out.append(
                Link(
                    uri=uri,
                    target_page=None if uri else target_page,
                    x=float(rect.x0),
                    y=float(rect.y0),
                    width=float(rect.x1) - float(rect.x0),
                    height=float(rect.y1) - float(rect.y0),
                )
            )
        return out

    def release(self) -> None:
        self._text_dict = None
        self._handle = None


# =============================================================================
# DOCUMENT
# =============================================================================

class PDFDocument:
    """
    An open PDF document.

    Use as a context manager, or call ``close()`` when done.
    """

    def __init__(self, handle: Any, source_name: str = ""):
        self._handle = handle
        self.source_name = source_name

    @property
    def page_count(self) -> int:
        return int(self._handle.page_count)

    def metadata(self) -> DocumentMetadata:
        info = self._handle.metadata or {}
        return DocumentMetadata(
            title=(info.get("title") or "").strip(),
            author=(info.get("author") or "").strip(),
            creation_date=parse_pdf_date(info.get("creationDate")),
            modification_date=parse_pdf_date(info.get("modDate")),
        )

    def outline(self) -> List[OutlineEntry]:
        try:
            toc = self._handle.get_toc(simple=True)
        except (RuntimeError, ValueError) as exc:
            logger.warning(f"Could not read outline: {exc}")
            return []
        return build_outline(toc or [])

    @contextmanager
    def page(self, page_number: int) -> Iterator[PDFPage]:
        """
        Load a page for the duration of the ``with`` block.

        The page handle is released on exit, including when the body raises.

        Raises:
            PageExtractionError: If the engine cannot load the page.
        """
        try:
            page = PDFPage(self._handle.load_page(page_number - 1), page_number)
        except (RuntimeError, ValueError, IndexError) as exc:
            raise PageExtractionError(page_number, f"cannot load page: {exc}") from exc
        try:
            yield page
        finally:
            page.release()

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def __enter__(self) -> "PDFDocument":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _source_size(source: PDFSource) -> int:
    if isinstance(source, (bytes, bytearray)):
        return len(source)
    return os.path.getsize(source)


def _open_handle(source: PDFSource):
    fitz = _import_fitz()
    if isinstance(source, (bytes, bytearray)):
        return fitz.open(stream=bytes(source), filetype="pdf")
    return fitz.open(str(source), filetype="pdf")


def _close_when_done(future: Future) -> None:
    """Close a handle whose open finished after the caller gave up on it."""
    if future.cancelled() or future.exception() is not None:
        return
    future.result().close()


def open_document(
    source: PDFSource,
    limits: Optional[LimitsConfig] = None,
) -> PDFDocument:
    """
    Open a PDF and validate it for extraction.

    Args:
        source: File path or raw PDF bytes.
        limits: Size cap and load timeout (defaults to LimitsConfig()).

    Returns:
        PDFDocument ready for page iteration.

    Raises:
        FileNotFoundError: If a path does not exist.
        FileTooLargeError: If the document exceeds ``limits.max_file_size``.
        DocumentTimeoutError: If opening exceeds ``limits.load_timeout``.
        InvalidPDFError: If the engine cannot parse the file.
        PasswordProtectedError: If the document needs a password.
        EmptyDocumentError: If the document has zero pages.
    """
    limits = limits or LimitsConfig()
    if not isinstance(source, (bytes, bytearray)) and not Path(source).exists():
        raise FileNotFoundError(f"PDF not found: {source}")

    size = _source_size(source)
    if size > limits.max_file_size:
        raise FileTooLargeError(size, limits.max_file_size)

    executor = ThreadPoolExecutor(max_workers=1)
    try:
        future = executor.submit(_open_handle, source)
        handle = future.result(timeout=limits.load_timeout)
    except FutureTimeout:
        future.add_done_callback(_close_when_done)
        raise DocumentTimeoutError(
            f"Opening PDF exceeded {limits.load_timeout:.0f}s"
        )
    except ImportError:
        raise
    except Exception as exc:
        raise InvalidPDFError(f"Invalid or corrupted PDF: {exc}") from exc
    finally:
        executor.shutdown(wait=False)

    if handle.needs_pass:
        handle.close()
        raise PasswordProtectedError("PDF is password-protected")
    if handle.page_count == 0:
        handle.close()
        raise EmptyDocumentError("PDF has no pages")

    name = "" if isinstance(source, (bytes, bytearray)) else Path(source).name
    logger.info(f"Opened PDF {name or '<bytes>'}: {handle.page_count} pages")
    return PDFDocument(handle, source_name=name)
