"""
Line reconstruction from glyph runs.

This module turns an unordered bag of positioned runs into visual text lines.

Algorithm Overview:
1. Chain-cluster runs by Y: sort by Y and start a new cluster whenever a run
   is further than y_tolerance from the LAST member of the current cluster
2. Sort each Y-cluster by X and compute a per-cluster split threshold from
   x-gap statistics, capped by run widths and font size
3. Split the cluster where the gap between consecutive runs exceeds the
   threshold or the runs sit in different preliminary columns
4. Collate each sub-cluster into text, inserting one space wherever the next
   run starts more than x_tolerance after the previous run ends
5. Sort all lines by Y

Key Parameters:
- x_tolerance: max(3, 0.25 x median font size), gap that inserts a space
- y_tolerance: max(3, 0.15 x median font size), vertical chain tolerance
- LineConfig: split threshold factors (aggressive variant when preliminary
  columns exist)
"""

import logging
from dataclasses import replace
from typing import Callable, List, Optional, Sequence, TypeVar

import pandas as pd

from pdflayout.config import ColumnConfig, LineConfig, LayoutConfig
from pdflayout.extraction.columns import column_index_for_x, find_column_for_run
from pdflayout.models import Column, DocumentMetrics, GlyphRun, Line
from pdflayout.utils.stats import describe, gap_statistics
from pdflayout.utils.text import collapse_inline_whitespace

logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================================
# CLUSTERING
# =============================================================================

def cluster_objects(objects: Sequence[T], key: Callable[[T], float], tolerance: float) -> List[List[T]]:
    """
    Chain-cluster objects by a numeric key.

    Each object is compared with the last member of the current cluster, not
    the cluster mean, so slowly drifting baselines stay together.

    Example:
        >>> cluster_objects([0, 2, 4, 10], key=float, tolerance=2)
        [[0, 2, 4], [10]]
    """
    if not objects:
        return []
    ordered = sorted(objects, key=key)
    clusters: List[List[T]] = [[ordered[0]]]
    for obj in ordered[1:]:
        if abs(key(obj) - key(clusters[-1][-1])) <= tolerance:
            clusters[-1].append(obj)
        else:
            clusters.append([obj])
    return clusters


def cluster_by_y(runs: Sequence[GlyphRun], tolerance: float) -> List[List[GlyphRun]]:
    """Chain-cluster runs into candidate lines by their top Y."""
    return cluster_objects(runs, key=lambda r: r.y, tolerance=tolerance)


# =============================================================================
# SPLITTING
# =============================================================================

def compute_split_threshold(
    runs: Sequence[GlyphRun],
    has_preliminary_columns: bool = False,
    config: Optional[LineConfig] = None,
) -> float:
    """
    Gap above which two runs of one Y-cluster belong to different lines.

    Args:
        runs: Members of one Y-cluster.
        has_preliminary_columns: Use the aggressive variant.
        config: Line thresholds.

    Returns:
        Split threshold in points (never below ``min_split_threshold``,
        except for the aggressive variant which may go lower).

    Example:
        >>> runs = [GlyphRun("Hello", 0, 0, 40, 12), GlyphRun("World", 45, 0, 40, 12)]
        >>> round(compute_split_threshold(runs), 1)
        52.0
    """
    config = config or LineConfig()
    gaps = gap_statistics(r.x for r in runs)
    sizes = describe(r.font_size for r in runs)
    widths = describe(r.width for r in runs)
    avg_font = sizes.avg if not sizes.empty else 12.0

    statistical = max(
        gaps.p90 * config.p90_factor,
        gaps.p75 * config.p75_factor,
        gaps.median * config.median_factor,
        gaps.avg * config.avg_factor,
        avg_font * config.font_factor,
    )
    cap = max(
        avg_font,
        widths.avg * config.avg_width_factor,
        widths.max * config.max_width_factor,
    )
    threshold = max(config.min_split_threshold, min(statistical, cap))

    if has_preliminary_columns:
        threshold = min(
            threshold,
            max(
                avg_font * config.aggressive_font_factor,
                gaps.p75 * config.aggressive_p75_factor,
                gaps.avg,
                config.aggressive_floor,
            ),
        )
    return threshold


def split_cluster(
    runs: Sequence[GlyphRun],
    threshold: float,
    columns: Optional[Sequence[Column]] = None,
    overlap_ratio: float = 0.3,
) -> List[List[GlyphRun]]:
    """
    Split an X-sorted Y-cluster at large gaps and preliminary column changes.

    Args:
        runs: Members of one Y-cluster.
        threshold: Split threshold from compute_split_threshold.
        columns: Preliminary columns of the page ([] or None for none).
        overlap_ratio: Overlap share for column membership.

    Returns:
        Sub-clusters in left-to-right order.
    """
    ordered = sorted(runs, key=lambda r: r.x)
    if not ordered:
        return []
    columns = columns or []

    parts: List[List[GlyphRun]] = [[ordered[0]]]
    for prev, cur in zip(ordered, ordered[1:]):
        gap = cur.x - prev.right
        different_column = False
        if columns:
            prev_col = find_column_for_run(prev, columns, overlap_ratio)
            cur_col = find_column_for_run(cur, columns, overlap_ratio)
            different_column = (
                prev_col is not None and cur_col is not None and prev_col != cur_col
            )
        if gap > threshold or different_column:
            parts.append([cur])
        else:
            parts[-1].append(cur)
    return parts


# =============================================================================
# COLLATION
# =============================================================================

def collate_text(runs: Sequence[GlyphRun], x_tolerance: float = 3.0) -> str:
    """
    Join run texts left to right with gap-driven spacing.

    A single space is inserted when a run starts more than ``x_tolerance``
    after the previous run ends. Soft hyphens are removed, runs of spaces or
    tabs collapse to one, and trailing whitespace is stripped.

    Example:
        >>> collate_text([GlyphRun("World", 45, 0, 40, 12), GlyphRun("Hello", 0, 0, 40, 12)])
        'Hello World'
        >>> collate_text([GlyphRun("Hel", 0, 0, 18, 12), GlyphRun("lo", 18, 0, 12, 12)])
        'Hello'
    """
    pieces: List[str] = []
    last_right: Optional[float] = None
    for run in sorted(runs, key=lambda r: r.x):
        if last_right is not None and run.x > last_right + x_tolerance:
            pieces.append(" ")
        pieces.append(run.text)
        last_right = run.right
    return collapse_inline_whitespace("".join(pieces)).rstrip()


def build_line(runs: Sequence[GlyphRun], x_tolerance: float = 3.0) -> Optional[Line]:
    """
    Build a Line from one sub-cluster, or None when its text is empty.

    Position is the top-left corner of the members, font size is the largest
    member size, and style flags are ORed across members.
    """
    if not runs:
        return None
    text = collate_text(runs, x_tolerance).strip()
    if not text:
        return None
    ordered = tuple(sorted(runs, key=lambda r: r.x))
    return Line(
        text=text,
        x=min(r.x for r in ordered),
        y=min(r.y for r in ordered),
        font_size=max(r.font_size for r in ordered),
        runs=ordered,
        page_number=runs[0].page_number,
        is_bold=any(r.is_bold for r in ordered),
        is_italic=any(r.is_italic for r in ordered),
        is_underlined=any(r.is_underlined for r in ordered),
    )


def group_runs_into_lines(
    runs: Sequence[GlyphRun],
    metrics: DocumentMetrics,
    config: Optional[LayoutConfig] = None,
    preliminary_columns: Optional[Sequence[Column]] = None,
    page_columns: Optional[Sequence[Column]] = None,
) -> List[Line]:
    """
    Reconstruct the lines of one page.

    Args:
        runs: Style-classified runs of a single page.
        metrics: Document metrics (median font size drives tolerances).
        config: Pipeline configuration (clustering, lines, columns used).
        preliminary_columns: Fine-detector columns; biases splitting.
        page_columns: Coarse columns; assigns Line.column_index.

    Returns:
        Lines sorted by Y (then X).

    Example:
        >>> runs = [GlyphRun("Hello", 0, 0, 40, 12), GlyphRun("World", 45, 0, 40, 12)]
        >>> [l.text for l in group_runs_into_lines(runs, DocumentMetrics())]
        ['Hello World']
    """
    config = config or LayoutConfig()
    if not runs:
        return []

    x_tol = config.clustering.x_tolerance(metrics.median_font_size)
    y_tol = config.clustering.y_tolerance(metrics.median_font_size)
    prelim = list(preliminary_columns or [])
    column_config: ColumnConfig = config.columns

    lines: List[Line] = []
    for cluster in cluster_by_y(runs, y_tol):
        threshold = compute_split_threshold(cluster, bool(prelim), config.lines)
        for part in split_cluster(cluster, threshold, prelim, column_config.overlap_ratio):
            line = build_line(part, x_tol)
            if line is None:
                continue
            if page_columns:
                line = _with_column(line, column_index_for_x(line.x, page_columns))
            lines.append(line)

    lines.sort(key=lambda l: (l.y, l.x))
    logger.debug(f"Grouped {len(runs)} runs into {len(lines)} lines")
    return lines


def _with_column(line: Line, column_index: int) -> Line:
    return replace(line, column_index=column_index)


# =============================================================================
# EXPORT
# =============================================================================

def lines_to_dataframe(lines: Sequence[Line]) -> pd.DataFrame:
    """
    Tabular view of lines for debugging and CSV export.

    Returns:
        DataFrame with one row per line: page, column, geometry, font size,
        style flags, run count and text.
    """
    columns = [
        "page", "column_index", "x", "y", "right", "font_size",
        "is_bold", "is_italic", "is_underlined", "run_count", "line_text",
    ]
    if not lines:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame(
        [
            {
                "page": l.page_number,
                "column_index": l.column_index,
                "x": l.x,
                "y": l.y,
                "right": l.right,
                "font_size": l.font_size,
                "is_bold": l.is_bold,
                "is_italic": l.is_italic,
                "is_underlined": l.is_underlined,
                "run_count": len(l.runs),
                "line_text": l.text,
            }
            for l in lines
        ],
        columns=columns,
    )
