"""
Document metrics and inter-line gap analysis.

Two passes feed every later stage:

1. analyze_document_metrics() over the runs of the first pages:
   - base font size: most common size, rounded to 0.5pt
   - median font size
   - modal spacing: most common distance between consecutive run tops
     (rounded to 1pt, ignoring distances of 10 x base font size or more)
   - paragraph gap threshold: max(1.5 x modal spacing, 1.2 x base font size)

2. analyze_gaps() over all lines of the document:
   - gaps are top-to-top distances between consecutive lines of one page
   - the distribution is classified by homogeneity (coefficient of variation,
     share of gaps within one standard deviation of the mean, IQR) and by a
     two-means split into small (line) and large (paragraph) gaps
   - each document type yields normal_gap_max (ordinary line spacing) and
     paragraph_gap_min (definite paragraph break)

Document types:
- homogeneous: spacing is uniform; only extreme gaps (3 x mean) break
- mostly-homogeneous: break at max(p95, 2 x mean)
- bimodal: clear small/large gap clusters
- gradual: percentile based (p75 / p90)
- unknown: fewer than two lines or no measurable gap
"""

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

from pdflayout.constants import (
    DEFAULT_FONT_SIZE,
    DEFAULT_MODE_SPACING,
    DEFAULT_PARAGRAPH_GAP,
)
from pdflayout.models import Block, BlockKind, DocumentMetrics, GapAnalysis, GlyphRun, Line
from pdflayout.utils.stats import mean, mode_of, percentile_at

logger = logging.getLogger(__name__)

DEFAULT_PARAGRAPH_GAP_MIN = DEFAULT_PARAGRAPH_GAP * 1.33


# =============================================================================
# DOCUMENT METRICS
# =============================================================================

def analyze_document_metrics(sample_runs: Sequence[GlyphRun]) -> DocumentMetrics:
    """
    Compute font and spacing statistics from a sample of runs.

    Args:
        sample_runs: Runs of the first pages (already in top-left coordinates).

    Returns:
        DocumentMetrics; defaults (12/12/12/18) when the sample is empty.

    Example:
        >>> runs = [GlyphRun("x", 0, y, 10, 12) for y in (12, 24, 36, 48)]
        >>> m = analyze_document_metrics(runs)
        >>> (m.base_font_size, m.mode_spacing, m.paragraph_gap_threshold)
        (12.0, 12.0, 18.0)
    """
    if not sample_runs:
        return DocumentMetrics()

    sizes = sorted(r.font_size for r in sample_runs if r.font_size > 0 and np.isfinite(r.font_size))
    base = mode_of(sizes, resolution=0.5) if sizes else None
    base_font_size = base if base is not None else DEFAULT_FONT_SIZE
    median_font_size = sizes[len(sizes) // 2] if sizes else base_font_size

    ys = sorted(r.y for r in sample_runs if r.y > 0 and np.isfinite(r.y))
    spacings = [
        b - a for a, b in zip(ys, ys[1:])
        if 0 < b - a < base_font_size * 10
    ]
    mode_spacing = mode_of(spacings, resolution=1.0) if spacings else None
    if mode_spacing is None:
        mode_spacing = DEFAULT_MODE_SPACING

    metrics = DocumentMetrics(
        base_font_size=float(base_font_size),
        median_font_size=float(median_font_size),
        mode_spacing=float(mode_spacing),
        paragraph_gap_threshold=max(mode_spacing * 1.5, base_font_size * 1.2),
    )
    logger.info(
        f"Document metrics: base font {metrics.base_font_size}, "
        f"median {metrics.median_font_size}, spacing {metrics.mode_spacing}, "
        f"paragraph gap {metrics.paragraph_gap_threshold:.1f}"
    )
    return metrics


# =============================================================================
# GAP ANALYSIS
# =============================================================================

def collect_line_gaps(lines: Sequence[Line]) -> List[float]:
    """Positive top-to-top distances between consecutive lines of one page column."""
    gaps: List[float] = []
    for cur, nxt in zip(lines, lines[1:]):
        if cur.page_number != nxt.page_number or cur.column_index != nxt.column_index:
            continue
        gap = nxt.y - cur.y
        if gap > 0 and np.isfinite(gap):
            gaps.append(float(gap))
    return gaps


def two_means(gaps: Sequence[float], iterations: int = 10) -> Tuple[np.ndarray, np.ndarray]:
    """
    Split gaps into a small and a large cluster (1-D k-means, k=2).

    Centres start halfway between min and median, and between median and
    max.

    Returns:
        (small cluster values, large cluster values)
    """
    arr = np.asarray(gaps, dtype=float)
    if arr.size < 2:
        return arr, np.asarray([], dtype=float)
    ordered = np.sort(arr)
    lo, hi = ordered[0], ordered[-1]
    med = ordered[ordered.size // 2]
    centers = np.asarray([lo + (med - lo) * 0.5, med + (hi - med) * 0.5])

    assignment = np.zeros(arr.size, dtype=int)
    for _ in range(iterations):
        assignment = np.argmin(np.abs(arr[:, None] - centers[None, :]), axis=1)
        new_centers = centers.copy()
        for k in range(2):
            members = arr[assignment == k]
            if members.size:
                new_centers[k] = members.mean()
        converged = bool(np.all(np.abs(new_centers - centers) <= 0.01))
        centers = new_centers
        if converged:
            break
    return arr[assignment == 0], arr[assignment == 1]


def homogeneity_level(
    cv: float,
    std: float,
    close_ratio: float,
    iqr_ratio: float,
    p90_p75_ratio: float,
) -> float:
    """
    Score how uniform the gap distribution is (0 = not at all).

    Example:
        >>> homogeneity_level(cv=0.0, std=0.0, close_ratio=1.0, iqr_ratio=0.0, p90_p75_ratio=0.0)
        1.0
    """
    if cv < 0.02 or (std < 0.1 and close_ratio > 0.9):
        return 1.0
    if cv < 0.05 or (std < 0.2 and close_ratio > 0.85):
        return 0.8
    if cv < 0.10 and (close_ratio > 0.80 or iqr_ratio < 0.15):
        return 0.6
    if cv < 0.15 and (close_ratio > 0.70 or iqr_ratio < 0.20):
        return 0.4
    if cv < 0.25 and (close_ratio > 0.60 or p90_p75_ratio < 0.1):
        return 0.2
    # Weak uniformity still tips ambiguous gaps toward continuation
    if cv < 0.35 and close_ratio > 0.55 and p90_p75_ratio < 0.15:
        return 0.3
    return 0.0


def analyze_gap_distribution(gaps: Sequence[float]) -> GapAnalysis:
    """
    Classify a gap distribution and derive break thresholds.

    Args:
        gaps: Positive line gaps.

    Returns:
        GapAnalysis; document_type "unknown" with 18/24 defaults when empty.
    """
    if not gaps:
        return GapAnalysis(
            document_type="unknown",
            normal_gap_max=DEFAULT_PARAGRAPH_GAP,
            paragraph_gap_min=DEFAULT_PARAGRAPH_GAP_MIN,
        )

    arr = np.asarray(gaps, dtype=float)
    ordered = np.sort(arr)
    mu = float(arr.mean())
    std = float(arr.std())
    p25 = float(percentile_at(ordered, 0.25))
    p50 = float(percentile_at(ordered, 0.5))
    p75 = float(percentile_at(ordered, 0.75))
    p90 = float(percentile_at(ordered, 0.9))
    p95 = float(percentile_at(ordered, 0.95))

    cv = std / mu if mu > 0 else 0.0
    close_ratio = float(np.mean(np.abs(arr - mu) <= std))
    iqr_ratio = (p75 - p25) / mu if mu > 0 else 0.0
    p90_p75_ratio = (p90 - p75) / p75 if p75 > 0 else 0.0

    small, large = two_means(arr)
    small_mean = float(small.mean()) if small.size else mu
    large_mean = float(large.mean()) if large.size else mu
    separation_ratio = (large_mean - small_mean) / mu if mu > 0 else 0.0

    level = homogeneity_level(cv, std, close_ratio, iqr_ratio, p90_p75_ratio)

    if level >= 0.8:
        doc_type, confidence = "homogeneous", 0.9
        normal_max = mu * 0.99
        para_min = mu * 3.0
    elif level >= 0.4:
        doc_type, confidence = "mostly-homogeneous", 0.75
        normal_max = mu * 1.1
        para_min = max(p95, mu * 2.0)
    elif separation_ratio > 0.3 and small.size > arr.size * 0.5:
        doc_type, confidence = "bimodal", 0.85
        normal_max = max(small_mean * 1.2, p75)
        para_min = min(large_mean * 0.8, p90)
        if para_min <= normal_max:
            para_min = normal_max * 1.5
    else:
        doc_type, confidence = "gradual", 0.7
        normal_max = p75
        para_min = p90
        if para_min <= normal_max:
            para_min = normal_max * 1.5
        if para_min - normal_max < std:
            normal_max = mu + std * 0.5
            para_min = mu + std * 1.5

    return GapAnalysis(
        document_type=doc_type,
        homogeneity_level=level,
        normal_gap_max=float(normal_max),
        paragraph_gap_min=float(para_min),
        mean=mu,
        median=p50,
        std_dev=std,
        p75=p75,
        p90=p90,
        p95=p95,
        confidence=confidence,
        gap_count=int(arr.size),
    )


def analyze_gaps(lines: Sequence[Line]) -> GapAnalysis:
    """
    Gap analysis over all lines of a document, in reading order.

    Example:
        >>> lines = [Line("a", 0, y, 12) for y in (0, 14, 28, 42)]
        >>> analyze_gaps(lines).document_type
        'homogeneous'
    """
    if len(lines) < 2:
        return analyze_gap_distribution([])
    analysis = analyze_gap_distribution(collect_line_gaps(lines))
    logger.info(
        f"Gap analysis: {analysis.document_type} "
        f"(homogeneity {analysis.homogeneity_level:.1f}, normal <= {analysis.normal_gap_max:.1f}, "
        f"paragraph >= {analysis.paragraph_gap_min:.1f}, {analysis.gap_count} gaps)"
    )
    return analysis


def average_paragraph_length(blocks: Sequence[Block], default: Optional[float] = None) -> Optional[float]:
    """Mean text length of paragraph blocks (``default`` when there are none)."""
    lengths = [len(b.text) for b in blocks if b.kind == BlockKind.PARAGRAPH and b.text]
    if not lengths:
        return default
    return mean(lengths)
