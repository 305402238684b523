"""
pdflayout: layout reconstruction for PDF documents.

Turns the positioned glyph runs of a PDF into ordered semantic blocks
(headings with levels, paragraphs, lists, tables, formulas, image
placeholders, with their hyperlinks)
plus a title, author and publish date.

Example:
    >>> from pdflayout import extract_document  # doctest: +SKIP
    >>> result = extract_document("report.pdf")  # doctest: +SKIP
    >>> [b.kind.value for b in result.content][:3]  # doctest: +SKIP
    ['heading', 'paragraph', 'paragraph']
"""

from pdflayout.config import LayoutConfig
from pdflayout.errors import (
    DocumentError,
    DocumentTimeoutError,
    EmptyDocumentError,
    ExtractionCancelled,
    FileTooLargeError,
    InvalidPDFError,
    NoTextLayerError,
    PasswordProtectedError,
    PDFLayoutError,
)
from pdflayout.models import Block, BlockKind, ExtractionResult, Link, ListItem
from pdflayout.pipeline import PageInput, extract_document, extract_pages

__version__ = "0.1.0"

__all__ = [
    "LayoutConfig",
    "Block",
    "BlockKind",
    "ExtractionResult",
    "Link",
    "ListItem",
    "PageInput",
    "extract_document",
    "extract_pages",
    "PDFLayoutError",
    "DocumentError",
    "InvalidPDFError",
    "PasswordProtectedError",
    "EmptyDocumentError",
    "FileTooLargeError",
    "DocumentTimeoutError",
    "NoTextLayerError",
    "ExtractionCancelled",
]
