"""
Visual structure of a page: where text is dense and where the page is empty.

The coarse column detector only sees where runs start. This pass looks at
what runs cover, so a wide gap between run starts that is actually filled
by long lines is not mistaken for a gutter.

Algorithm Overview:
1. Split the page width into vertical strips of max(10, 0.5 x base font size)
2. For each strip count the runs overlapping it and the share of the page
   height they cover (Y positions counted in 5pt steps)
3. A strip is dense when any of these holds: line count >= 1.5 x average,
   coverage >= 8%, occupied with coverage >= 3%, density >= 30% of the
   densest strip. It is sparse when empty, or below 0.7 x average with
   coverage under 3%
4. Runs of sparse strips are empty regions. A region is a column gap when
   it is at least max(1.2 x base, 2 strips) wide and either has dense
   strips on both sides or is at least 2.5 x base wide. Regions touching
   the page edge are margins and never count
5. Gap centres are the column boundaries; boundaries closer than one base
   font size collapse into the first
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Set, Tuple

import numpy as np

from pdflayout.config import VisualConfig
from pdflayout.constants import DEFAULT_FONT_SIZE
from pdflayout.models import GlyphRun

logger = logging.getLogger(__name__)


# =============================================================================
# TYPES
# =============================================================================

@dataclass(frozen=True)
class VisualStrip:
    """One vertical strip of the page."""

    x_start: float
    x_end: float
    line_count: int
    coverage: float
    density: float
    is_dense: bool
    is_sparse: bool


@dataclass(frozen=True)
class VisualGap:
    """An empty vertical region wide enough to separate columns."""

    x_start: float
    x_end: float
    between_columns: bool

    @property
    def width(self) -> float:
        return self.x_end - self.x_start

    @property
    def center(self) -> float:
        return (self.x_start + self.x_end) / 2.0


@dataclass(frozen=True)
class VisualStructure:
    """
    Strip densities, column gaps and boundaries of one page.

    Attributes:
        strips: All strips, left to right.
        gaps: Column gaps, left to right.
        boundaries: Deduplicated gap centres.
        base_font_size: Font size the thresholds were scaled with.
    """

    strips: Tuple[VisualStrip, ...] = ()
    gaps: Tuple[VisualGap, ...] = ()
    boundaries: Tuple[float, ...] = ()
    base_font_size: float = DEFAULT_FONT_SIZE

    def density_map(self) -> str:
        """One character per strip: '#' dense, '.' sparse but occupied, ' ' empty."""
        return "".join(
            "#" if s.is_dense else (" " if s.line_count == 0 else ".")
            for s in self.strips
        )


# =============================================================================
# ANALYSIS
# =============================================================================

def _strips(
    runs: Sequence[GlyphRun],
    page_width: float,
    page_height: float,
    bucket_width: float,
    config: VisualConfig,
) -> List[VisualStrip]:
    num_buckets = max(1, int(math.ceil(page_width / bucket_width)))
    counts = np.zeros(num_buckets, dtype=int)
    y_steps: List[Set[int]] = [set() for _ in range(num_buckets)]

    for run in runs:
        right = run.right
        if not (math.isfinite(run.x) and math.isfinite(right)) or right <= run.x:
            continue
        start = max(0, int(math.floor(run.x / bucket_width)))
        end = min(num_buckets, int(math.ceil(right / bucket_width)))
        y_step = int(math.floor(run.y / config.y_quantum))
        for i in range(start, end):
            overlap = min(right, (i + 1) * bucket_width) - max(run.x, i * bucket_width)
            if overlap > 0:
                counts[i] += 1
                y_steps[i].add(y_step)

    avg_count = len(runs) / num_buckets
    max_density = counts.max() / bucket_width if counts.size else 0.0
    height_steps = max(page_height / config.y_quantum, 1.0)

    strips: List[VisualStrip] = []
    for i in range(num_buckets):
        count = int(counts[i])
        coverage = len(y_steps[i]) / height_steps
        density = count / bucket_width
        is_dense = (
            count >= avg_count * config.above_average_factor
            or coverage >= config.good_coverage
            or (count > 0 and coverage >= config.some_coverage)
            or (density > 0 and density >= max_density * config.max_density_fraction)
        )
        is_sparse = count == 0 or (
            count < avg_count * config.sparse_average_factor and coverage < config.sparse_coverage
        )
        strips.append(
            VisualStrip(
                x_start=i * bucket_width,
                x_end=(i + 1) * bucket_width,
                line_count=count,
                coverage=coverage,
                density=density,
                is_dense=is_dense,
                is_sparse=is_sparse,
            )
        )
    return strips


def _empty_regions(strips: Sequence[VisualStrip]) -> List[Tuple[int, int]]:
    """Index ranges [start, end) of consecutive sparse strips."""
    regions: List[Tuple[int, int]] = []
    start: Optional[int] = None
    for i, strip in enumerate(strips):
        if strip.is_sparse:
            if start is None:
                start = i
        elif start is not None:
            regions.append((start, i))
            start = None
    if start is not None:
        regions.append((start, len(strips)))
    return regions


def analyze_visual_structure(
    runs: Sequence[GlyphRun],
    page_width: float,
    page_height: float,
    base_font_size: Optional[float] = None,
    config: Optional[VisualConfig] = None,
) -> VisualStructure:
    """
    Find empty vertical regions that separate text columns.

    Args:
        runs: Glyph runs of one page.
        page_width: Page width in points.
        page_height: Page height in points.
        base_font_size: Document base font size.
        config: Strip thresholds.

    Returns:
        VisualStructure; empty when there are no runs or no page size.

    Example:
        >>> left = [GlyphRun("a", 50, y, 100, 12) for y in range(100, 170, 14)]
        >>> right = [GlyphRun("b", 330, y, 100, 12) for y in range(100, 170, 14)]
        >>> structure = analyze_visual_structure(left + right, 600, 800, 12)
        >>> [(g.x_start, g.x_end) for g in structure.gaps]
        [(150.0, 330.0)]
    """
    config = config or VisualConfig()
    base = base_font_size or DEFAULT_FONT_SIZE
    if not runs or page_width <= 0 or page_height <= 0:
        return VisualStructure(base_font_size=base)

    bucket_width = max(config.bucket_min_width, base * config.bucket_font_factor)
    strips = _strips(runs, page_width, page_height, bucket_width, config)

    min_width = max(base * config.min_gap_font_factor, bucket_width * config.min_gap_buckets)
    gaps: List[VisualGap] = []
    for start, end in _empty_regions(strips):
        if start == 0 or end == len(strips):
            continue
        x_start, x_end = strips[start].x_start, strips[end - 1].x_end
        width = x_end - x_start
        if width < min_width:
            continue
        between = strips[start - 1].is_dense and strips[end].is_dense
        if between or width >= base * config.wide_gap_font_factor:
            gaps.append(VisualGap(x_start=x_start, x_end=x_end, between_columns=between))

    boundaries: List[float] = []
    for center in sorted(g.center for g in gaps):
        if not boundaries or center - boundaries[-1] >= base:
            boundaries.append(center)

    structure = VisualStructure(
        strips=tuple(strips),
        gaps=tuple(gaps),
        boundaries=tuple(boundaries),
        base_font_size=base,
    )
    logger.debug(
        f"Visual structure: {len(strips)} strips of {bucket_width:.1f}pt, "
        f"{len(gaps)} gaps, boundaries {[round(b) for b in boundaries]}"
    )
    return structure


def is_column_gap(
    x: float,
    structure: Optional[VisualStructure],
    config: Optional[VisualConfig] = None,
) -> bool:
    """
    Whether ``x`` falls in a column gap or near a column boundary.

    Example:
        >>> s = VisualStructure(gaps=(VisualGap(150, 330, True),), boundaries=(240.0,))
        >>> is_column_gap(200, s), is_column_gap(340, s), is_column_gap(100, s)
        (True, False, False)
    """
    if structure is None or not structure.gaps:
        return False
    config = config or VisualConfig()
    if any(g.x_start <= x <= g.x_end for g in structure.gaps):
        return True
    reach = structure.base_font_size * config.boundary_font_factor
    return any(abs(x - b) <= reach for b in structure.boundaries)
