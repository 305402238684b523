"""
Glyph run ingestion.

Normalizes raw positioned text fragments, as reported by a PDF engine, into
GlyphRuns in a single coordinate system: top-left origin, Y growing downward.
Engines differ in origin (PDF user space is bottom-left, PyMuPDF already
reports top-left), so each raw glyph says which origin it uses.

Dropped on ingestion:
- empty or whitespace-only text
- non-finite coordinates or sizes
"""

import logging
import math
from dataclasses import dataclass
from typing import Iterable, List, Optional

from pdflayout.constants import DEFAULT_FONT_SIZE, MAX_FONT_SIZE, MIN_FONT_SIZE
from pdflayout.models import GlyphRun

logger = logging.getLogger(__name__)

ORIGIN_TOP_LEFT = "top-left"
ORIGIN_BOTTOM_LEFT = "bottom-left"


@dataclass(frozen=True)
class RawGlyph:
    """
    Engine-neutral glyph run before normalization.

    Attributes:
        text: Fragment text.
        x: Left edge in engine coordinates.
        y: Top edge (top-left origin) or bottom edge (bottom-left origin).
        width: Fragment width.
        height: Fragment height (used as font size).
        font_index: Index into the document FontTable.
        direction: "ltr" or "rtl".
        origin: ORIGIN_TOP_LEFT or ORIGIN_BOTTOM_LEFT.
    """

    text: str
    x: float
    y: float
    width: float
    height: float
    font_index: int = -1
    direction: str = "ltr"
    origin: str = ORIGIN_TOP_LEFT


def clamp_font_size(size: Optional[float]) -> float:
    """
    Clamp a reported size into a usable range.

    Example:
        >>> clamp_font_size(None)
        12.0
        >>> clamp_font_size(5000)
        1000.0
    """
    if size is None or not math.isfinite(size) or size <= 0:
        return DEFAULT_FONT_SIZE
    return max(MIN_FONT_SIZE, min(MAX_FONT_SIZE, float(size)))


def _finite(*values: float) -> bool:
    return all(v is not None and math.isfinite(v) for v in values)


def normalize_glyphs(
    raw: Iterable[RawGlyph],
    page_number: int,
    page_height: float,
) -> List[GlyphRun]:
    """
    Convert raw glyphs of one page into GlyphRuns.

    Args:
        raw: Raw glyphs from the engine.
        page_number: 1-indexed page number.
        page_height: Page height, needed to flip bottom-left origins.

    Returns:
        GlyphRuns in top-left, Y-down coordinates, in input order.

    Example:
        >>> runs = normalize_glyphs(
        ...     [RawGlyph("Hi", 10, 700, 20, 12, origin=ORIGIN_BOTTOM_LEFT)],
        ...     page_number=1, page_height=792,
        ... )
        >>> runs[0].y
        80.0
    """
    runs: List[GlyphRun] = []
    dropped = 0
    for glyph in raw:
        if not glyph.text or not glyph.text.strip():
            continue
        if not _finite(glyph.x, glyph.y, glyph.width, glyph.height):
            dropped += 1
            continue

        font_size = clamp_font_size(abs(glyph.height))
        y = float(glyph.y)
        if glyph.origin == ORIGIN_BOTTOM_LEFT:
            y = float(page_height) - y - font_size

        direction = glyph.direction if glyph.direction in ("ltr", "rtl") else "ltr"
        runs.append(
            GlyphRun(
                text=glyph.text,
                x=float(glyph.x),
                y=y,
                width=max(0.0, float(glyph.width)),
                font_size=font_size,
                font_index=glyph.font_index,
                page_number=page_number,
                direction=direction,
            )
        )

    if dropped:
        logger.debug(f"Page {page_number}: dropped {dropped} glyphs with invalid geometry")
    return runs
