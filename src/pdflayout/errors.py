"""
Exception taxonomy for document extraction.

Fatal document errors abort extraction and reach the caller. Page-level
errors are caught by the pipeline, logged, and recorded as warnings.
Heuristic-quality problems are never raised.
"""


class PDFLayoutError(Exception):
    """Base class for all pdflayout errors."""


class DocumentError(PDFLayoutError):
    """Fatal condition: the document cannot be extracted at all."""


class InvalidPDFError(DocumentError):
    """The file is not a readable PDF (bad header or corrupt structure)."""


class PasswordProtectedError(DocumentError):
    """The document is encrypted and requires a password."""


class EmptyDocumentError(DocumentError):
    """The document has zero pages."""


class FileTooLargeError(DocumentError):
    """The document exceeds the configured size cap."""

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(
            f"PDF is {size / (1024 * 1024):.1f} MB, limit is {limit / (1024 * 1024):.0f} MB"
        )


class DocumentTimeoutError(DocumentError):
    """Loading or parsing the document exceeded the configured timeout."""


class NoTextLayerError(DocumentError):
    """No text could be extracted; the PDF is probably scanned images."""


class ExtractionCancelled(PDFLayoutError):
    """Extraction was cancelled at a page boundary."""


class PageExtractionError(PDFLayoutError):
    """A single page failed; the pipeline skips it and continues."""

    def __init__(self, page_number: int, message: str):
        self.page_number = page_number
        super().__init__(f"page {page_number}: {message}")
