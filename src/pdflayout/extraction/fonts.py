"""
Font style inference: bold, italic and underline.

PDF text runs carry only an opaque font reference, so styles are inferred.
Evidence is ranked, most trusted first:

1. Font name: /bold|black|heavy|demi|semi/ -> bold, /italic|oblique/ -> italic
2. Explicit weight/style reported by the PDF engine
3. Per-font width/height ratio statistics: a font group whose mean aspect
   ratio is well above the median or minimum of all group means is bold;
   a minority of very wide runs inside a group marks only those runs
4. Line-local context (refine_contextual_styles): a run much wider or
   narrower than its neighbours, confirmed by a second comparison against
   the base font

The base font (the font of more than half of all runs) is never styled by
ratio evidence, only by name or metadata.

Priorities 1-3 are an ordered chain of strategies; the first strategy that
returns StyleFlags decides the run's style. Each strategy is a callable
``strategy(run, context) -> Optional[StyleFlags]``.

Underlines come from vector graphics: near-horizontal segments that sit at a
run's expected underline position and cover part of its width become
character ranges on the run.
"""

import logging
import math
import re
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from pdflayout.config import StyleConfig, UnderlineConfig
from pdflayout.constants import BOLD_FONT_RX, ITALIC_FONT_RX
from pdflayout.extraction.pdf import Segment
from pdflayout.models import FontTable, GlyphRun, Line
from pdflayout.utils.stats import mean
from pdflayout.utils.text import punctuation_ratio

logger = logging.getLogger(__name__)

# Trailing characters excluded from an underline range
_RANGE_TRIM_RX = re.compile(r"[\s\-–—,.;:!?]+$")


# =============================================================================
# DATA STRUCTURES
# =============================================================================

@dataclass(frozen=True)
class StyleFlags:
    """Bold/italic decision for a run or font."""

    is_bold: bool = False
    is_italic: bool = False

    def __or__(self, other: "StyleFlags") -> "StyleFlags":
        return StyleFlags(self.is_bold or other.is_bold, self.is_italic or other.is_italic)

    @property
    def any(self) -> bool:
        return self.is_bold or self.is_italic


@dataclass(frozen=True)
class FontGroupStats:
    """Aspect-ratio statistics of all runs sharing one font."""

    font_index: int
    run_count: int
    avg_ratio: float
    high_ratio_count: int


@dataclass(frozen=True)
class StyleContext:
    """
    Document-level evidence shared by the style strategies.

    Attributes:
        fonts: Font arena.
        config: Style thresholds.
        base_font: Font index of the base font, if one exists.
        groups: Per-font aspect-ratio statistics.
        median_ratio: Median of group mean ratios (index n // 2).
        min_ratio: Minimum of group mean ratios.
    """

    fonts: FontTable
    config: StyleConfig
    base_font: Optional[int] = None
    groups: Dict[int, FontGroupStats] = field(default_factory=dict)
    median_ratio: float = 0.0
    min_ratio: float = 0.0

    def is_base_font(self, font_index: int) -> bool:
        return self.base_font is not None and font_index == self.base_font

    def bold_by_group_ratio(self, font_index: int) -> bool:
        """Whole-font bold from group ratio statistics."""
        group = self.groups.get(font_index)
        if group is None or self.is_base_font(font_index):
            return False
        if group.avg_ratio <= 0 or self.median_ratio <= 0 or self.min_ratio <= 0:
            return False
        cfg = self.config
        return (
            group.avg_ratio >= self.median_ratio * cfg.median_ratio_multiplier
            or group.avg_ratio >= self.min_ratio * cfg.min_ratio_multiplier
            or group.avg_ratio >= cfg.absolute_bold_ratio
        )

    def has_high_ratio_minority(self, font_index: int) -> bool:
        """A font where only a minority of runs are unusually wide."""
        group = self.groups.get(font_index)
        if group is None or self.is_base_font(font_index) or group.run_count == 0:
            return False
        share = 100.0 * group.high_ratio_count / group.run_count
        return group.high_ratio_count > 0 and share < self.config.high_ratio_percentage


StyleStrategy = Callable[[GlyphRun, StyleContext], Optional[StyleFlags]]


# =============================================================================
# BASE FONT AND FORMAT MAP
# =============================================================================

def _valid_ratio(run: GlyphRun) -> Optional[float]:
    ratio = run.aspect_ratio
    return ratio if ratio > 0 and math.isfinite(ratio) else None


def find_base_font(runs: Sequence[GlyphRun], config: Optional[StyleConfig] = None) -> Optional[int]:
    """
    Font index used by more than ``base_font_percentage`` of runs.

    Example:
        >>> runs = [GlyphRun("a", 0, 0, 5, 10, font_index=0)] * 3 + [GlyphRun("b", 0, 0, 5, 10, font_index=1)]
        >>> find_base_font(runs)
        0
    """
    config = config or StyleConfig()
    if not runs:
        return None
    counts: Dict[int, int] = {}
    for run in runs:
        counts[run.font_index] = counts.get(run.font_index, 0) + 1
    font_index, count = max(counts.items(), key=lambda kv: kv[1])
    if 100.0 * count / len(runs) > config.base_font_percentage:
        return font_index
    return None


def font_group_stats(runs: Sequence[GlyphRun], config: StyleConfig) -> Dict[int, FontGroupStats]:
    """Per-font aspect ratio averages and high-ratio run counts."""
    ratios: Dict[int, List[float]] = {}
    counts: Dict[int, int] = {}
    for run in runs:
        counts[run.font_index] = counts.get(run.font_index, 0) + 1
        ratio = _valid_ratio(run)
        if ratio is not None:
            ratios.setdefault(run.font_index, []).append(ratio)

    groups: Dict[int, FontGroupStats] = {}
    for font_index, count in counts.items():
        values = ratios.get(font_index, [])
        if not values:
            continue
        groups[font_index] = FontGroupStats(
            font_index=font_index,
            run_count=count,
            avg_ratio=mean(values),
            high_ratio_count=sum(1 for v in values if v > config.high_ratio_threshold),
        )
    return groups


def build_style_context(
    runs: Sequence[GlyphRun],
    fonts: FontTable,
    config: Optional[StyleConfig] = None,
) -> StyleContext:
    """Collect base font and group ratio statistics over ``runs``."""
    config = config or StyleConfig()
    groups = font_group_stats(runs, config)
    averages = sorted(g.avg_ratio for g in groups.values())
    return StyleContext(
        fonts=fonts,
        config=config,
        base_font=find_base_font(runs, config),
        groups=groups,
        median_ratio=averages[len(averages) // 2] if averages else 0.0,
        min_ratio=averages[0] if averages else 0.0,
    )


def _flags_from_name(name: str) -> StyleFlags:
    return StyleFlags(
        is_bold=bool(BOLD_FONT_RX.search(name or "")),
        is_italic=bool(ITALIC_FONT_RX.search(name or "")),
    )


def _flags_from_metadata(weight: Optional[str], style: Optional[str]) -> StyleFlags:
    weight = (weight or "").lower()
    style = (style or "").lower()
    is_bold = weight == "bold" or (weight.isdigit() and int(weight) >= 600)
    return StyleFlags(is_bold=is_bold, is_italic=style in ("italic", "oblique"))


def build_font_format_map(
    runs: Sequence[GlyphRun],
    fonts: FontTable,
    config: Optional[StyleConfig] = None,
) -> Dict[int, StyleFlags]:
    """
    Whole-font style decisions from name, metadata and ratio statistics.

    Args:
        runs: All runs used as evidence (usually the whole page or document).
        fonts: Font arena the runs index into.
        config: Style thresholds.

    Returns:
        Mapping font index -> StyleFlags. Evidence is ORed; ratio evidence is
        never applied to the base font.
    """
    context = build_style_context(runs, fonts, config)
    format_map: Dict[int, StyleFlags] = {}
    for font_index in {r.font_index for r in runs}:
        record = fonts.get(font_index)
        flags = StyleFlags()
        if record is not None:
            flags = _flags_from_name(record.real_name) | _flags_from_metadata(record.weight, record.style)
        if context.bold_by_group_ratio(font_index):
            flags = flags | StyleFlags(is_bold=True)
        format_map[font_index] = flags
        if flags.any:
            logger.debug(
                f"Font {font_index} ({record.real_name if record else '?'}): "
                f"bold={flags.is_bold} italic={flags.is_italic}"
            )
    return format_map


# =============================================================================
# STRATEGIES
# =============================================================================

class FontNameStrategy:
    """Priority 1: style words in the font's real name."""

    def __call__(self, run: GlyphRun, context: StyleContext) -> Optional[StyleFlags]:
        record = context.fonts.get(run.font_index)
        if record is None:
            return None
        flags = _flags_from_name(record.real_name)
        return flags if flags.any else None


class FontMetadataStrategy:
    """Priority 2: explicit weight/style exposed by the engine."""

    def __call__(self, run: GlyphRun, context: StyleContext) -> Optional[StyleFlags]:
        record = context.fonts.get(run.font_index)
        if record is None:
            return None
        flags = _flags_from_metadata(record.weight, record.style)
        return flags if flags.any else None


class FontRatioStrategy:
    """Priority 3: group aspect-ratio statistics (never for the base font)."""

    def __call__(self, run: GlyphRun, context: StyleContext) -> Optional[StyleFlags]:
        if context.is_base_font(run.font_index):
            return None
        if context.bold_by_group_ratio(run.font_index):
            return StyleFlags(is_bold=True)
        if context.has_high_ratio_minority(run.font_index):
            ratio = _valid_ratio(run)
            if ratio is not None and ratio > context.config.high_ratio_threshold:
                return StyleFlags(is_bold=True)
        return None


DEFAULT_STRATEGIES: Tuple[StyleStrategy, ...] = (
    FontNameStrategy(),
    FontMetadataStrategy(),
    FontRatioStrategy(),
)


def classify_run(
    run: GlyphRun,
    context: StyleContext,
    strategies: Iterable[StyleStrategy] = DEFAULT_STRATEGIES,
) -> StyleFlags:
    """Evaluate strategies in order; the first decision wins."""
    for strategy in strategies:
        flags = strategy(run, context)
        if flags is not None:
            return flags
    return StyleFlags()


def classify_runs(
    runs: Sequence[GlyphRun],
    fonts: FontTable,
    config: Optional[StyleConfig] = None,
    strategies: Optional[Sequence[StyleStrategy]] = None,
    context: Optional[StyleContext] = None,
) -> List[GlyphRun]:
    """
    Return copies of ``runs`` with is_bold/is_italic set.

    Args:
        runs: Runs to classify (input is not modified).
        fonts: Font arena.
        config: Style thresholds.
        strategies: Strategy chain (defaults to name, metadata, ratio).
        context: Precomputed evidence, e.g. built over the whole document.

    Returns:
        New GlyphRun list in input order.

    Example:
        >>> fonts = FontTable()
        >>> bold = fonts.intern("F1", "Helvetica-Bold")
        >>> [r.is_bold for r in classify_runs([GlyphRun("Title", 0, 0, 30, 12, font_index=bold)], fonts)]
        [True]
    """
    config = config or StyleConfig()
    context = context or build_style_context(runs, fonts, config)
    chain = tuple(strategies) if strategies is not None else DEFAULT_STRATEGIES

    out: List[GlyphRun] = []
    styled = 0
    for run in runs:
        flags = classify_run(run, context, chain)
        if flags.any:
            styled += 1
        out.append(replace(run, is_bold=flags.is_bold, is_italic=flags.is_italic))
    if runs:
        logger.debug(f"Classified {len(runs)} runs, {styled} styled (base font {context.base_font})")
    return out


# =============================================================================
# CONTEXTUAL REFINEMENT
# =============================================================================

def _neighbor_flags(ratio: float, others: List[float], config: StyleConfig) -> StyleFlags:
    avg_other = mean(others)
    max_other = max(others)
    if avg_other <= 0 or ratio < config.neighbor_min_ratio:
        return StyleFlags()
    is_bold = ratio / avg_other >= config.neighbor_bold_multiplier
    is_italic = (
        ratio / max(avg_other, max_other) <= config.neighbor_italic_max_fraction
        and ratio < avg_other * config.neighbor_italic_multiplier
    )
    return StyleFlags(is_bold=is_bold, is_italic=is_italic)


def _global_flags(ratio: float, base_ratio: float, config: StyleConfig) -> StyleFlags:
    if base_ratio <= 0 or ratio < config.neighbor_min_ratio:
        return StyleFlags()
    return StyleFlags(
        is_bold=ratio >= base_ratio * config.global_bold_multiplier,
        is_italic=ratio <= base_ratio * config.global_italic_multiplier,
    )


def _explicitly_styled(run: GlyphRun, fonts: FontTable) -> bool:
    record = fonts.get(run.font_index)
    if record is None:
        return False
    return (
        _flags_from_name(record.real_name).any
        or _flags_from_metadata(record.weight, record.style).any
    )


def refine_contextual_styles(
    lines: Sequence[Line],
    fonts: FontTable,
    config: Optional[StyleConfig] = None,
    base_font: Optional[int] = None,
) -> List[Line]:
    """
    Line-local bold/italic fallback for runs the font-level pass missed.

    A run is restyled only when two independent comparisons agree: its
    ratio against the other runs of the same line, and its ratio against
    the average ratio of base-font runs (or of all runs when no base font
    exists). Short runs, punctuation-heavy runs, base-font runs and runs
    whose font name or metadata already decides the style are left alone.
    Flags are only ever added.

    Args:
        lines: Lines of a page.
        fonts: Font arena.
        config: Style thresholds.
        base_font: Base font index.

    Returns:
        New Line list; unchanged lines are returned as-is.
    """
    config = config or StyleConfig()
    all_runs = [r for line in lines for r in line.runs]
    reference = [r for r in all_runs if base_font is not None and r.font_index == base_font]
    ratios = [x for x in (_valid_ratio(r) for r in (reference or all_runs)) if x is not None]
    base_ratio = mean(ratios)

    out: List[Line] = []
    refined = 0
    for line in lines:
        if len(line.runs) < 2:
            out.append(line)
            continue
        new_runs = list(line.runs)
        changed = False
        for i, run in enumerate(line.runs):
            if base_font is not None and run.font_index == base_font:
                continue
            if _explicitly_styled(run, fonts):
                continue
            text = run.text.strip()
            if len(text) < config.min_text_length or punctuation_ratio(text) > config.max_punctuation_ratio:
                continue
            ratio = _valid_ratio(run)
            others = [
                r for r in (_valid_ratio(o) for j, o in enumerate(line.runs) if j != i)
                if r is not None
            ]
            if ratio is None or not others:
                continue

            methods = [_neighbor_flags(ratio, others, config), _global_flags(ratio, base_ratio, config)]
            bold_votes = sum(1 for m in methods if m.is_bold)
            italic_votes = sum(1 for m in methods if m.is_italic)
            is_bold = run.is_bold or bold_votes >= config.required_methods
            is_italic = run.is_italic or italic_votes >= config.required_methods
            if is_bold != run.is_bold or is_italic != run.is_italic:
                new_runs[i] = replace(run, is_bold=is_bold, is_italic=is_italic)
                changed = True
                refined += 1

        if changed:
            out.append(
                replace(
                    line,
                    runs=tuple(new_runs),
                    is_bold=any(r.is_bold for r in new_runs),
                    is_italic=any(r.is_italic for r in new_runs),
                )
            )
        else:
            out.append(line)

    if refined:
        logger.debug(f"Contextual refinement restyled {refined} runs")
    return out


# =============================================================================
# UNDERLINES
# =============================================================================

def _segment_matches(run: GlyphRun, seg: Segment, config: UnderlineConfig) -> Optional[Tuple[float, float]]:
    """Return the covered x interval when ``seg`` underlines part of ``run``."""
    h = run.font_size
    width = run.width
    if width <= 0 or h <= 0:
        return None

    seg_y = seg.y_mid
    band_top = max(0.0, run.y - h * config.band_above_factor)
    band_bottom = run.y + h * config.band_below_factor
    if not band_top <= seg_y <= band_bottom:
        return None

    expected = run.y + h * config.baseline_factor + max(1.0, h * config.offset_factor)
    distance = abs(seg_y - expected)
    strict = max(config.strict_distance, h * config.strict_distance_factor)
    close = distance <= strict or distance <= h * config.loose_distance_factor
    if not (close or distance <= h * config.fallback_distance_factor):
        return None

    if seg.length > width * config.max_width_multiplier or seg.length > config.max_segment_length:
        return None

    start = max(run.x, seg.x_start)
    end = min(run.right, seg.x_end)
    if end <= start:
        return None
    coverage = (end - start) / width
    if not config.min_coverage <= coverage <= config.max_coverage:
        return None
    return start, end


def _char_range(run: GlyphRun, start_x: float, end_x: float) -> Optional[Tuple[int, int]]:
    n = len(run.text)
    start = int(math.floor((start_x - run.x) / run.width * n))
    end = int(math.ceil((end_x - run.x) / run.width * n))
    start = max(0, min(start, n))
    end = max(0, min(end, n))
    if end > start:
        trailing = _RANGE_TRIM_RX.search(run.text[start:end])
        if trailing:
            end = start + trailing.start()
    return (start, end) if end > start else None


def merge_ranges(ranges: Iterable[Tuple[int, int]]) -> Tuple[Tuple[int, int], ...]:
    """
    Merge overlapping or touching [start, end) ranges.

    Example:
        >>> merge_ranges([(5, 8), (0, 3), (2, 4)])
        ((0, 4), (5, 8))
    """
    merged: List[List[int]] = []
    for start, end in sorted(ranges):
        if merged and start <= merged[-1][1]:
            merged[-1][1] = max(merged[-1][1], end)
        else:
            merged.append([start, end])
    return tuple((s, e) for s, e in merged)


def _covers_all_text(text: str, ranges: Sequence[Tuple[int, int]]) -> bool:
    covered = set()
    for start, end in ranges:
        covered.update(range(start, end))
    return all(i in covered for i, ch in enumerate(text) if not ch.isspace())


def detect_underlines(
    runs: Sequence[GlyphRun],
    segments: Sequence[Segment],
    config: Optional[UnderlineConfig] = None,
) -> List[GlyphRun]:
    """
    Attach underline character ranges to runs.

    A segment underlines a run when it lies in the band below the run's
    baseline, is not much longer than the run, and covers between 5% and
    80% of the run's width (full-width rules and table borders are ignored).

    Args:
        runs: Runs of one page.
        segments: Horizontal vector segments of the same page.
        config: Underline geometry.

    Returns:
        New GlyphRun list; runs with matches get ``underline_ranges`` and
        ``is_underlined`` when the ranges cover every non-space character.
    """
    config = config or UnderlineConfig()
    horizontal = [s for s in segments if abs(s.y1 - s.y2) <= config.horizontal_tolerance]
    if not horizontal:
        return list(runs)

    out: List[GlyphRun] = []
    matched = 0
    for run in runs:
        ranges = []
        for seg in horizontal:
            interval = _segment_matches(run, seg, config)
            if interval is None:
                continue
            char_range = _char_range(run, *interval)
            if char_range is not None:
                ranges.append(char_range)
        if not ranges:
            out.append(run)
            continue
        merged = merge_ranges(ranges)
        matched += 1
        out.append(
            replace(
                run,
                underline_ranges=merged,
                is_underlined=_covers_all_text(run.text, merged),
            )
        )
    if matched:
        logger.debug(f"Underline ranges on {matched} of {len(runs)} runs")
    return out
