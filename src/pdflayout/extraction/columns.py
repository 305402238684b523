"""
Column detection for multi-column PDF layouts.

Two independent detectors exist, and disagreement between them is tolerated:

Coarse detector (detect_page_columns), page level:
1. Collect run x coordinates inside the page, sort them
2. Compute gaps between adjacent coordinates (micro-gaps <= 1pt ignored)
3. Keep gaps wider than max(50, 15% of page width), at most the 3 widest
4. When a visual structure is given and it found column gaps, drop gaps
   whose midpoint is not confirmed by it (the gap between run starts is
   filled by long lines)
5. Column boundaries are the page edges plus the midpoints of those gaps
The result assigns every Line its column_index.

Fine detector (detect_preliminary_columns), before line grouping:
1. Bin run x coordinates into buckets of max(5, 0.3 x base font size)
2. Dense buckets (>= 3 items or >= 50% of average occupancy) merge into modes
3. Gaps between modes are compared with a multi-criterion threshold over the
   page's x-gap statistics
4. The single largest gap is accepted as a fallback when it clearly dominates
The result only biases line splitting; it is not ground truth.

Key Parameters (ColumnConfig):
- min_gap / min_gap_page_fraction: coarse minimum column gap
- bin_min_width / bin_font_factor: fine histogram bin width
- gap_*_factor: fine multi-criterion gap threshold
- overlap_ratio: share of a run that must overlap a preliminary column
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from pdflayout.config import ColumnConfig
from pdflayout.extraction.visual import VisualStructure, is_column_gap
from pdflayout.models import Column, GlyphRun
from pdflayout.utils.stats import SeriesStats, gap_statistics

logger = logging.getLogger(__name__)


# =============================================================================
# COARSE (PAGE-LEVEL) DETECTOR
# =============================================================================

def single_column(page_width: float) -> List[Column]:
    """A full-width single column."""
    return [Column(start_x=0.0, end_x=float(page_width), index=0)]


def detect_page_columns(
    runs: Sequence[GlyphRun],
    page_width: float,
    config: Optional[ColumnConfig] = None,
    visual: Optional[VisualStructure] = None,
) -> List[Column]:
    """
    Detect up to four reading columns from the x distribution of runs.

    Args:
        runs: Glyph runs of one page.
        page_width: Page width in points.
        config: Column thresholds.
        visual: Strip analysis of the same page, used to confirm gaps.

    Returns:
        Columns ordered left to right, covering [0, page_width]. A single
        full-width column when there are too few runs or no wide gap.

    Example:
        >>> left = [GlyphRun("a", 50, y, 200, 10) for y in range(0, 120, 12)]
        >>> right = [GlyphRun("b", 320, y, 200, 10) for y in range(0, 120, 12)]
        >>> [round(c.end_x) for c in detect_page_columns(left + right, 600)]
        [185, 600]
    """
    config = config or ColumnConfig()
    xs = sorted(
        r.x for r in runs
        if math.isfinite(r.x) and 0 <= r.x <= page_width
    )
    if len(xs) < config.min_coordinates:
        logger.debug(f"Coarse columns: {len(xs)} coordinates, single column")
        return single_column(page_width)

    min_gap = max(config.min_gap, page_width * config.min_gap_page_fraction)

    # (left position, width) of each non-trivial gap
    gaps = [
        (xs[i - 1], xs[i] - xs[i - 1])
        for i in range(1, len(xs))
        if xs[i] - xs[i - 1] > 1
    ]
    significant = sorted(
        (g for g in gaps if g[1] > min_gap),
        key=lambda g: g[1],
        reverse=True,
    )[: config.max_boundaries]

    if significant and visual is not None and visual.gaps:
        confirmed = [g for g in significant if is_column_gap(g[0] + g[1] / 2.0, visual)]
        if len(confirmed) < len(significant):
            logger.debug(f"Coarse columns: {len(significant) - len(confirmed)} gaps not confirmed visually")
        significant = confirmed

    if not significant:
        return single_column(page_width)

    boundaries = sorted([0.0, float(page_width)] + [pos + width / 2.0 for pos, width in significant])
    columns = [
        Column(start_x=boundaries[i], end_x=boundaries[i + 1], index=i)
        for i in range(len(boundaries) - 1)
    ]
    logger.debug(
        f"Coarse columns: {len(columns)} "
        f"({', '.join(f'{c.start_x:.0f}-{c.end_x:.0f}' for c in columns)})"
    )
    return columns


def column_index_for_x(x: float, columns: Sequence[Column]) -> int:
    """
    Map an x coordinate to a column index.

    Columns are half-open [start, end) except the last, which includes its
    right edge. Coordinates outside every column go to the nearest centre.

    Example:
        >>> cols = [Column(0, 300, 0), Column(300, 600, 1)]
        >>> column_index_for_x(300, cols), column_index_for_x(600, cols), column_index_for_x(-20, cols)
        (1, 1, 0)
    """
    if not columns:
        return 0
    last = len(columns) - 1
    for i, col in enumerate(columns):
        if x >= col.start_x and (x <= col.end_x if i == last else x < col.end_x):
            return i
    return min(range(len(columns)), key=lambda i: abs(x - columns[i].center))


# =============================================================================
# FINE (PRELIMINARY) DETECTOR
# =============================================================================

@dataclass(frozen=True)
class _Mode:
    """A run of adjacent dense histogram bins."""

    start: float
    end: float
    count: int


def _dense_modes(xs: np.ndarray, bin_size: float, config: ColumnConfig) -> List[_Mode]:
    min_x = float(xs.min())
    span = float(xs.max()) - min_x
    num_bins = max(1, int(math.ceil(span / bin_size)))
    idx = np.clip(np.floor((xs - min_x) / bin_size).astype(int), 0, num_bins - 1)
    counts = np.bincount(idx, minlength=num_bins)

    dense_threshold = max(
        config.dense_min_count,
        (len(xs) / num_bins) * config.dense_occupancy_fraction,
    )

    modes: List[_Mode] = []
    for i, count in enumerate(counts.tolist()):
        if count < dense_threshold:
            continue
        start = min_x + i * bin_size
        end = start + bin_size
        if modes and start - modes[-1].end <= bin_size * config.mode_merge_bins:
            prev = modes[-1]
            modes[-1] = _Mode(prev.start, end, prev.count + count)
        else:
            modes.append(_Mode(start, end, count))
    return modes


def fine_gap_threshold(stats: SeriesStats, base_font_size: float, config: ColumnConfig) -> float:
    """Multi-criterion threshold above which an x gap separates columns."""
    return max(
        stats.p90 * config.gap_p90_factor,
        stats.p75 * config.gap_p75_factor,
        stats.median * config.gap_median_factor,
        stats.avg * config.gap_avg_factor,
        base_font_size * config.gap_font_factor,
    )


def detect_preliminary_columns(
    runs: Sequence[GlyphRun],
    base_font_size: float,
    config: Optional[ColumnConfig] = None,
) -> List[Column]:
    """
    Fast column estimate from the x histogram of runs, used before lines exist.

    Args:
        runs: Glyph runs of one page.
        base_font_size: Document base font size.
        config: Column thresholds.

    Returns:
        Columns ordered left to right, or [] when no gap qualifies (single
        column). The first column starts at the leftmost clustered run; the
        last ends at the rightmost run edge of the last cluster.
    """
    config = config or ColumnConfig()
    valid = [r for r in runs if math.isfinite(r.x) and r.x >= 0]
    if not valid:
        return []

    xs = np.asarray([r.x for r in valid], dtype=float)
    stats = gap_statistics(xs)
    bin_size = max(config.bin_min_width, base_font_size * config.bin_font_factor)
    modes = _dense_modes(xs, bin_size, config)
    if not modes:
        return []

    # Runs whose x falls inside each mode, in left-to-right mode order
    clusters = [[r for r in valid if mode.start <= r.x <= mode.end] for mode in modes]
    pairs = [(m, c) for m, c in zip(modes, clusters) if c]
    if not pairs:
        return []

    threshold = fine_gap_threshold(stats, base_font_size, config)
    max_gap_significant = (
        stats.max > stats.avg * config.max_gap_avg_factor
        and stats.max > base_font_size * config.max_gap_font_factor
    )

    # Candidate boundaries: (left edge, right edge) between consecutive clusters
    candidates = []
    for (mode, cluster), (next_mode, next_cluster) in zip(pairs, pairs[1:]):
        left = max(r.right for r in cluster)
        right = min(r.x for r in next_cluster)
        gap = right - left
        if gap <= 0:
            # Clusters overlap horizontally; fall back to the mode boundary
            left, right = mode.end, next_mode.start
            gap = right - left
        candidates.append((left, right, gap))

    significant = [c for c in candidates if c[2] >= threshold]
    if candidates and max_gap_significant:
        widest = max(candidates, key=lambda c: c[2])
        if widest not in significant and (not significant or widest[2] > threshold * 0.5):
            significant.append(widest)

    if not significant:
        logger.debug(f"Preliminary columns: none (threshold {threshold:.1f})")
        return []

    significant.sort(key=lambda c: c[0])
    columns: List[Column] = []
    start = min(r.x for r in pairs[0][1])
    for left, right, _gap in significant:
        end = (left + right) / 2.0
        columns.append(Column(start_x=start, end_x=end, index=len(columns)))
        start = end
    last_right = max(r.right for r in pairs[-1][1])
    columns.append(Column(start_x=start, end_x=max(start, last_right), index=len(columns)))

    logger.debug(
        f"Preliminary columns: {len(columns)} (threshold {threshold:.1f}, "
        f"{len(modes)} modes)"
    )
    return columns


def find_column_for_run(
    run: GlyphRun,
    columns: Sequence[Column],
    overlap_ratio: float = 0.3,
) -> Optional[int]:
    """
    Preliminary column of a run: centre inside, else sufficient overlap.

    Returns:
        Column index, or None when the run belongs to no column.

    Example:
        >>> cols = [Column(0, 100, 0), Column(100, 200, 1)]
        >>> find_column_for_run(GlyphRun("x", 120, 0, 20, 10), cols)
        1
    """
    center = run.center_x
    for col in columns:
        if col.start_x <= center <= col.end_x:
            return col.index
    if run.width <= 0:
        return None
    for col in columns:
        overlap = min(run.right, col.end_x) - max(run.x, col.start_x)
        if overlap > 0 and overlap / run.width >= overlap_ratio:
            return col.index
    return None
