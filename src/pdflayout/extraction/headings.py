"""
Heading level assignment (H1-H6).

Algorithm Overview:
1. Cluster the font sizes of all heading blocks, largest first:
   - consecutive sizes join a group while both the absolute difference
     (x group average) and the relative difference stay within tolerance;
     tolerances widen when heading sizes vary a lot (std > 0.2 x mean)
   - single-size groups are attached to the nearest multi-size group
     within tolerance, otherwise kept on their own
   - groups ranked by average size give levels 1..6
2. Decide each heading's level in priority order:
   - document outline (bookmarks), unless it disagrees with the clustered
     level by more than 2
   - section numbering ("2.1." -> level 3) when it is deeper than the
     clustered level
   - relative refinement: a heading set smaller than the previous heading
     sits one level below it, when that is within one of the clustered level
   - clustered level
   - font ratio to the base font size (2.0/1.5 -> 1, 1.3 -> 2, 1.2 -> 3,
     1.1 -> 4, 1.05 -> 5, else 6)
3. Validate: no heading may be more than one level below the deepest level
   seen so far, so the first heading is always level 1.

Key Parameters (HeadingConfig):
- tolerance_percent / absolute_diff: 0.07 / 0.12 (0.08 / 0.15 when varied)
- outline_similarity: 0.7 containment ratio for fuzzy outline matches
- outline_max_level_diff: 2
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Sequence

import numpy as np

from pdflayout.config import HeadingConfig
from pdflayout.constants import DEFAULT_FONT_SIZE, MAX_FONT_SIZE, MIN_FONT_SIZE, NUMBERING_RX
from pdflayout.extraction.pdf import OutlineEntry
from pdflayout.models import Block, BlockKind, DocumentMetrics
from pdflayout.utils.stats import mean
from pdflayout.utils.text import normalize_for_compare

logger = logging.getLogger(__name__)

MAX_LEVEL = 6


# =============================================================================
# FONT SIZE HIERARCHY
# =============================================================================

@dataclass
class HeadingHierarchy:
    """
    Font size clusters of a document's headings.

    Attributes:
        base_font_size: Body text font size.
        levels: Rounded heading font size -> level.
        groups: Font sizes per level, largest group first.
    """

    base_font_size: float = DEFAULT_FONT_SIZE
    levels: Dict[float, int] = field(default_factory=dict)
    groups: List[List[float]] = field(default_factory=list)

    def level_for(self, font_size: Optional[float]) -> Optional[int]:
        size = valid_font_size(font_size)
        if size is None:
            return None
        return self.levels.get(_key(size))

    @property
    def unique_sizes(self) -> List[float]:
        return sorted(self.levels, reverse=True)


def _key(size: float) -> float:
    return round(size, 2)


def valid_font_size(font_size: Optional[float]) -> Optional[float]:
    """Clamp a usable font size into range; None for missing or non-positive."""
    if font_size is None or not np.isfinite(font_size) or font_size <= 0:
        return None
    return max(MIN_FONT_SIZE, min(MAX_FONT_SIZE, float(font_size)))


def analyze_font_size_hierarchy(
    headings: Sequence[Block],
    metrics: DocumentMetrics,
    config: Optional[HeadingConfig] = None,
) -> HeadingHierarchy:
    """
    Cluster heading font sizes into ranked levels.

    Args:
        headings: Heading blocks.
        metrics: Document metrics (base font size).
        config: Tolerances.

    Returns:
        HeadingHierarchy (empty levels when no heading has a usable size).

    Example:
        >>> hs = [Block(BlockKind.HEADING, t, font_size=s)
        ...       for t, s in (("A", 24), ("B", 18), ("C", 24.5), ("D", 18))]
        >>> h = analyze_font_size_hierarchy(hs, DocumentMetrics())
        >>> h.level_for(24.5), h.level_for(18)
        (1, 2)
    """
    config = config or HeadingConfig()
    base = metrics.base_font_size or DEFAULT_FONT_SIZE
    sizes = [s for s in (valid_font_size(h.font_size) for h in headings) if s is not None]
    if not sizes:
        return HeadingHierarchy(base_font_size=base)

    arr = np.asarray(sizes, dtype=float)
    varied = float(arr.std()) > float(arr.mean()) * 0.2
    tolerance = config.tolerance_percent_varied if varied else config.tolerance_percent
    abs_factor = config.absolute_diff_varied if varied else config.absolute_diff

    ordered = sorted(sizes, reverse=True)
    raw_groups: List[List[float]] = []
    current = [ordered[0]]
    for prev, size in zip(ordered, ordered[1:]):
        group_avg = mean(current)
        diff = abs(size - prev)
        if diff <= group_avg * abs_factor and diff / group_avg <= tolerance:
            current.append(size)
        else:
            raw_groups.append(current)
            current = [size]
    raw_groups.append(current)

    groups = [g for g in raw_groups if len(g) > 1]
    singles = [g[0] for g in raw_groups if len(g) == 1]
    for size in singles:
        best: Optional[List[float]] = None
        best_diff = float("inf")
        for group in groups:
            group_avg = mean(group)
            diff = abs(size - group_avg)
            if diff <= group_avg * abs_factor and diff < best_diff:
                best, best_diff = group, diff
        if best is not None:
            best.append(size)
        else:
            groups.append([size])

    groups.sort(key=mean, reverse=True)
    levels: Dict[float, int] = {}
    for rank, group in enumerate(groups):
        level = min(rank + 1, MAX_LEVEL)
        for size in group:
            levels[_key(size)] = level

    logger.debug(
        f"Heading hierarchy: {len(sizes)} headings in {len(groups)} groups "
        f"(tolerance {abs_factor:.2f}, varied={varied})"
    )
    return HeadingHierarchy(base_font_size=base, levels=levels, groups=groups)


# =============================================================================
# LEVEL SOURCES
# =============================================================================

def _flatten_outline(entries: Sequence[OutlineEntry]) -> Dict[str, int]:
    flat: Dict[str, int] = {}
    stack = list(reversed(entries))
    while stack:
        entry = stack.pop()
        if entry.title:
            flat.setdefault(normalize_for_compare(entry.title), entry.level)
        stack.extend(reversed(entry.children))
    return flat


def match_heading_to_outline(
    text: str,
    outline: Optional[Sequence[OutlineEntry]],
    clustered_level: Optional[int] = None,
    config: Optional[HeadingConfig] = None,
) -> Optional[int]:
    """
    Look the heading text up in the document outline.

    Exact (normalized) title matches win; otherwise a title containing the
    heading, or contained in it, matches when the shorter covers more than
    ``outline_similarity`` of the longer.

    Returns:
        Outline level (capped at 6), or None when there is no match or the
        outline level is far from the clustered level.

    Example:
        >>> outline = [OutlineEntry("Introduction", 1, 1, (OutlineEntry("Background", 2, 1),))]
        >>> match_heading_to_outline("  background ", outline)
        2
    """
    if not outline or not text or not text.strip():
        return None
    config = config or HeadingConfig()
    flat = _flatten_outline(outline)
    heading = normalize_for_compare(text)

    level = flat.get(heading)
    if level is None:
        for title, candidate in flat.items():
            if not title or not (title in heading or heading in title):
                continue
            similarity = min(len(title), len(heading)) / max(len(title), len(heading))
            if similarity > config.outline_similarity:
                level = candidate
                break
    if level is None:
        return None

    level = min(level, MAX_LEVEL)
    if clustered_level is not None and abs(level - clustered_level) > config.outline_max_level_diff:
        logger.debug(f"Outline level {level} ignored for {text[:40]!r} (clustered {clustered_level})")
        return None
    return level


def extract_numbering_level(text: str) -> Optional[int]:
    """
    Level implied by section numbering: depth + 1, capped at 6.

    Example:
        >>> extract_numbering_level("2.1. Scope")
        3
        >>> extract_numbering_level("Scope") is None
        True
    """
    match = NUMBERING_RX.match((text or "").strip())
    if not match:
        return None
    depth = sum(1 for g in match.groups() if g)
    return min(depth + 1, MAX_LEVEL)


def relative_level(
    font_size: Optional[float],
    previous: Optional[Block],
    clustered_level: Optional[int] = None,
) -> Optional[int]:
    """
    One level below the previous heading when this one is set smaller.

    Returns None when there is no previous level, the font is not smaller,
    or the result is more than one level away from the clustered level.
    """
    if previous is None or previous.level is None:
        return None
    size = valid_font_size(font_size)
    prev_size = valid_font_size(previous.font_size)
    if size is None or prev_size is None or size >= prev_size:
        return None
    level = min(previous.level + 1, MAX_LEVEL)
    if clustered_level is not None and abs(level - clustered_level) > 1:
        return None
    return level


def ratio_level(font_size: float, base_font_size: float, config: Optional[HeadingConfig] = None) -> int:
    """
    Level from the font size ratio to the body text.

    Example:
        >>> ratio_level(18, 12), ratio_level(16, 12), ratio_level(12, 12)
        (1, 2, 6)
    """
    config = config or HeadingConfig()
    ratio = font_size / (base_font_size or DEFAULT_FONT_SIZE)
    for min_ratio, level in config.ratio_bands:
        if ratio >= min_ratio:
            return level
    return MAX_LEVEL


def determine_heading_level(
    heading: Block,
    hierarchy: HeadingHierarchy,
    outline: Optional[Sequence[OutlineEntry]] = None,
    previous: Optional[Block] = None,
    config: Optional[HeadingConfig] = None,
) -> int:
    """Pick one heading's level from outline, numbering, context, size."""
    config = config or HeadingConfig()
    size = valid_font_size(heading.font_size)
    if size is None:
        return config.default_level

    clustered = hierarchy.level_for(size)

    outline_level = match_heading_to_outline(heading.text, outline, clustered, config)
    if outline_level is not None:
        return outline_level

    numbered = extract_numbering_level(heading.text)
    if numbered is not None:
        if clustered is None or numbered > clustered:
            return numbered
        return clustered

    relative = relative_level(size, previous, clustered)
    if relative is not None:
        return relative

    if clustered is not None:
        return clustered
    return ratio_level(size, hierarchy.base_font_size, config)


# =============================================================================
# DOCUMENT PASS
# =============================================================================

def validate_heading_hierarchy(blocks: Sequence[Block]) -> List[Block]:
    """
    Clamp heading levels so none skips more than one level down.

    Each heading may be at most one level deeper than the heading before
    it. The previous level starts at 0, so the first heading is level 1.
    Non-heading blocks pass through unchanged.

    Example:
        >>> blocks = [Block(BlockKind.HEADING, "A", level=2), Block(BlockKind.HEADING, "B", level=4)]
        >>> [b.level for b in validate_heading_hierarchy(blocks)]
        [1, 2]
    """
    out: List[Block] = []
    prev_level = 0
    for block in blocks:
        if block.kind != BlockKind.HEADING:
            out.append(block)
            continue
        level = block.level or HeadingConfig.default_level
        if level > prev_level + 1:
            logger.debug(f"Heading level {level} -> {prev_level + 1}: {block.text[:40]!r}")
            level = prev_level + 1
        prev_level = level
        out.append(block if level == block.level else replace(block, level=level))
    return out


def assign_heading_levels(
    blocks: Sequence[Block],
    metrics: DocumentMetrics,
    outline: Optional[Sequence[OutlineEntry]] = None,
    config: Optional[HeadingConfig] = None,
) -> List[Block]:
    """
    Give every heading block a level 1-6 and validate the sequence.

    Args:
        blocks: All blocks in reading order.
        metrics: Document metrics.
        outline: Document bookmarks, if any.
        config: Heading thresholds.

    Returns:
        New block list; non-heading blocks are unchanged.
    """
    config = config or HeadingConfig()
    headings = [b for b in blocks if b.kind == BlockKind.HEADING]
    if not headings:
        return list(blocks)

    hierarchy = analyze_font_size_hierarchy(headings, metrics, config)
    out: List[Block] = []
    previous: Optional[Block] = None
    for block in blocks:
        if block.kind != BlockKind.HEADING:
            out.append(block)
            continue
        level = determine_heading_level(block, hierarchy, outline, previous, config)
        block = replace(block, level=level)
        out.append(block)
        previous = block

    validated = validate_heading_hierarchy(out)
    logger.info(f"Assigned levels to {len(headings)} headings ({len(hierarchy.groups)} size groups)")
    return validated
