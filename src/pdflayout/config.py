"""
Layout pipeline configuration.

Each heuristic stage gets its own frozen dataclass of thresholds. The
aggregate LayoutConfig is built once (optionally from environment variables
via python-dotenv) and each stage receives only its own section, so stage
thresholds can be unit tested in isolation.

All numbers are empirically tuned defaults, not derived constants; override
them per corpus.
"""

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional, Tuple, Union

from dotenv import load_dotenv


# =============================================================================
# STAGE CONFIGS
# =============================================================================

@dataclass(frozen=True)
class ClusteringConfig:
    """
    Tolerances for clustering runs into lines and inserting spaces.

    Attributes:
        default_x_tolerance: Minimum horizontal gap that inserts a space.
        default_y_tolerance: Minimum vertical distance that starts a new line.
        x_tolerance_multiplier: Scales median font size into the x tolerance.
        y_tolerance_multiplier: Scales median font size into the y tolerance.
    """

    default_x_tolerance: float = 3.0
    default_y_tolerance: float = 3.0
    x_tolerance_multiplier: float = 0.25
    y_tolerance_multiplier: float = 0.15

    def x_tolerance(self, median_font_size: float) -> float:
        return max(self.default_x_tolerance, median_font_size * self.x_tolerance_multiplier)

    def y_tolerance(self, median_font_size: float) -> float:
        return max(self.default_y_tolerance, median_font_size * self.y_tolerance_multiplier)


@dataclass(frozen=True)
class StyleConfig:
    """
    Thresholds for bold/italic inference.

    Attributes:
        base_font_percentage: Share of runs (percent) that makes a font the base font.
        median_ratio_multiplier: Bold if group ratio >= median group ratio x this.
        min_ratio_multiplier: Bold if group ratio >= minimum group ratio x this.
        absolute_bold_ratio: Bold if group ratio >= this regardless of peers.
        high_ratio_threshold: Per-run ratio marking a "high ratio" run.
        high_ratio_percentage: High-ratio runs must be a minority below this percent.
        neighbor_bold_multiplier: Contextual bold: ratio vs neighbour average.
        neighbor_min_ratio: Contextual bold/italic: minimum own ratio.
        neighbor_italic_multiplier: Contextual italic: ratio below neighbour avg x this.
        neighbor_italic_max_fraction: Contextual italic: ratio / max(avg, max) ceiling.
        global_bold_multiplier: Second method, ratio vs base-font ratio for bold.
        global_italic_multiplier: Second method, ratio vs base-font ratio for italic.
        min_text_length: Ratio formatting suppressed below this many characters.
        max_punctuation_ratio: Ratio formatting suppressed above this share.
        required_methods: Independent ratio methods that must agree.
    """

    base_font_percentage: float = 50.0
    median_ratio_multiplier: float = 1.2
    min_ratio_multiplier: float = 1.5
    absolute_bold_ratio: float = 28.0
    high_ratio_threshold: float = 30.0
    high_ratio_percentage: float = 50.0
    neighbor_bold_multiplier: float = 1.7
    neighbor_min_ratio: float = 3.0
    neighbor_italic_multiplier: float = 0.65
    neighbor_italic_max_fraction: float = 0.5
    global_bold_multiplier: float = 1.7
    global_italic_multiplier: float = 0.65
    min_text_length: int = 4
    max_punctuation_ratio: float = 0.5
    required_methods: int = 2


@dataclass(frozen=True)
class UnderlineConfig:
    """
    Geometry for matching vector segments to run baselines.

    Attributes:
        baseline_factor: Baseline sits at y + font_size x this.
        offset_factor: Underline sits this fraction of font size below baseline.
        strict_distance: Minimum strict distance tolerance.
        strict_distance_factor: Strict tolerance as a fraction of font size.
        band_above_factor: Band starts this fraction of font size above the run top.
        band_below_factor: Band ends this fraction of font size below the run top.
        loose_distance_factor: Loose match allowed within this x font size.
        fallback_distance_factor: Inside the band, any segment within this x
            font size of the expected position matches.
        min_coverage: Minimum fraction of run width covered.
        max_coverage: Maximum fraction of run width covered (excludes borders/rules).
        max_width_multiplier: Segment may be at most this x run width.
        max_segment_length: Absolute segment length cap (table borders).
        horizontal_tolerance: Max |y1 - y2| for a segment to count as horizontal.
    """

    baseline_factor: float = 0.8
    offset_factor: float = 0.1
    strict_distance: float = 5.0
    strict_distance_factor: float = 0.2
    band_above_factor: float = 0.2
    band_below_factor: float = 1.3
    loose_distance_factor: float = 0.5
    fallback_distance_factor: float = 1.5
    min_coverage: float = 0.05
    max_coverage: float = 0.8
    max_width_multiplier: float = 1.5
    max_segment_length: float = 500.0
    horizontal_tolerance: float = 2.0


@dataclass(frozen=True)
class ColumnConfig:
    """
    Thresholds for the coarse (page) and fine (preliminary) column detectors.

    Attributes:
        min_gap: Coarse detector absolute minimum column gap.
        min_gap_page_fraction: Coarse detector minimum gap as page-width fraction.
        max_boundaries: Coarse detector keeps this many widest gaps (<= 4 columns).
        min_coordinates: Fewer x coordinates than this means one column.
        bin_min_width: Fine detector minimum histogram bin width.
        bin_font_factor: Fine detector bin width as fraction of base font size.
        dense_min_count: A bin with at least this many items is dense.
        dense_occupancy_fraction: A bin at this fraction of average occupancy is dense.
        mode_merge_bins: Dense bins within this many bin widths merge into one mode.
        gap_p90_factor / gap_p75_factor / gap_median_factor / gap_avg_factor /
        gap_font_factor: Multi-criterion gap threshold factors.
        max_gap_avg_factor: Largest-gap fallback: must exceed average x this.
        max_gap_font_factor: Largest-gap fallback: must exceed base font x this.
        overlap_ratio: Run belongs to a column when this share of it overlaps.
    """

    min_gap: float = 50.0
    min_gap_page_fraction: float = 0.15
    max_boundaries: int = 3
    min_coordinates: int = 10
    bin_min_width: float = 5.0
    bin_font_factor: float = 0.3
    dense_min_count: int = 3
    dense_occupancy_fraction: float = 0.5
    mode_merge_bins: float = 2.0
    gap_p90_factor: float = 0.7
    gap_p75_factor: float = 1.3
    gap_median_factor: float = 2.0
    gap_avg_factor: float = 1.8
    gap_font_factor: float = 1.2
    max_gap_avg_factor: float = 2.5
    max_gap_font_factor: float = 1.2
    overlap_ratio: float = 0.3


@dataclass(frozen=True)
class VisualConfig:
    """
    Vertical-strip density analysis that confirms column gaps.

    Attributes:
        bucket_min_width: Minimum strip width.
        bucket_font_factor: Strip width as a fraction of base font size.
        y_quantum: Y positions are counted in steps of this many points.
        above_average_factor: Dense when line count >= average x this.
        good_coverage: Dense when this share of page height is covered.
        some_coverage: Dense when occupied and at least this share is covered.
        max_density_fraction: Dense when density >= max density x this.
        sparse_average_factor / sparse_coverage: Sparse below average x
            factor and below this coverage.
        min_gap_font_factor / min_gap_buckets: An empty region must be at
            least max(base x factor, buckets x strip width) wide.
        wide_gap_font_factor: Regions this wide (x base) count without dense
            neighbours on both sides.
        boundary_font_factor: is_column_gap() accepts x within base x this
            of a boundary.
    """

    bucket_min_width: float = 10.0
    bucket_font_factor: float = 0.5
    y_quantum: float = 5.0
    above_average_factor: float = 1.5
    good_coverage: float = 0.08
    some_coverage: float = 0.03
    max_density_fraction: float = 0.3
    sparse_average_factor: float = 0.7
    sparse_coverage: float = 0.03
    min_gap_font_factor: float = 1.2
    min_gap_buckets: int = 2
    wide_gap_font_factor: float = 2.5
    boundary_font_factor: float = 2.0


@dataclass(frozen=True)
class LineConfig:
    """
    Thresholds for splitting a Y-cluster into separate lines.

    Attributes:
        min_split_threshold: Floor for the intra-line split gap.
        p90_factor / p75_factor / median_factor / avg_factor / font_factor:
            Statistical threshold factors over inter-run gaps.
        avg_width_factor / max_width_factor: Cap factors from run widths.
        aggressive_font_factor: Font factor used when preliminary columns exist.
        aggressive_p75_factor: p75 factor used when preliminary columns exist.
        aggressive_floor: Absolute floor of the aggressive threshold.
    """

    min_split_threshold: float = 30.0
    p90_factor: float = 0.7
    p75_factor: float = 1.3
    median_factor: float = 2.0
    avg_factor: float = 1.8
    font_factor: float = 1.2
    avg_width_factor: float = 1.3
    max_width_factor: float = 0.9
    aggressive_font_factor: float = 0.6
    aggressive_p75_factor: float = 0.7
    aggressive_floor: float = 10.0


@dataclass(frozen=True)
class ParagraphConfig:
    """
    Thresholds for grouping lines into blocks.

    Attributes:
        heading_font_ratio: Line is a heading above avg line height x this.
        emphasis_font_ratio: Numbered lines count as headings above avg x this (or bold).
        font_change_ratio: New block when font changes by more than avg x this.
        tight_spacing_ratio / normal_spacing_ratio: Spacing regime boundaries.
        tight_multiplier / normal_multiplier / loose_multiplier: Paragraph gap multipliers.
        min_gaps_for_mode: Gaps needed before the page's own modal spacing is trusted.
        row_tolerance: Lines within this many points of Y form one table row.
    """

    heading_font_ratio: float = 1.3
    emphasis_font_ratio: float = 1.1
    font_change_ratio: float = 0.2
    tight_spacing_ratio: float = 1.2
    normal_spacing_ratio: float = 1.5
    tight_multiplier: float = 1.5
    normal_multiplier: float = 1.8
    loose_multiplier: float = 2.0
    min_gaps_for_mode: int = 2
    row_tolerance: float = 3.0


@dataclass(frozen=True)
class TableConfig:
    """
    Tables whose cells were split across coarse columns.

    Attributes:
        y_tolerance_factor: Row key tolerance as a fraction of base font size.
        max_row_gap_factor: Consecutive rows at most base x this apart.
        min_rows: Rows needed for a table.
        min_columns: Distinct columns a row must span.
        max_avg_cell_length: Average cell text length must stay below this.
        long_cell_length: Cells longer than this are long.
        max_long_row_ratio: Share of rows with a long cell must stay below this.
        max_avg_line_length: Average line length must stay below this.
        paragraph_min_length: Blocks with more text are running prose.
        paragraph_min_lines / paragraph_line_length: Blocks with this many
            lines averaging this length are running prose.
        lowercase_continuation_ratio: Blocks whose continuation lines start
            in lowercase at least this often are running prose.
    """

    y_tolerance_factor: float = 0.3
    max_row_gap_factor: float = 2.5
    min_rows: int = 2
    min_columns: int = 2
    max_avg_cell_length: float = 150.0
    long_cell_length: int = 100
    max_long_row_ratio: float = 0.5
    max_avg_line_length: float = 100.0
    paragraph_min_length: int = 200
    paragraph_min_lines: int = 10
    paragraph_line_length: float = 50.0
    lowercase_continuation_ratio: float = 0.5


@dataclass(frozen=True)
class ListSplitConfig:
    """
    Splitting "Lead-in: • item • item" paragraphs.

    Attributes:
        heading_max_length: A lead-in shorter than this becomes a heading.
        min_items: Items needed before a paragraph is split.
    """

    heading_max_length: int = 100
    min_items: int = 2


@dataclass(frozen=True)
class FormulaConfig:
    """
    Formula scoring weights.

    A paragraph is a formula when its score reaches ``threshold`` and it
    shows a LaTeX pattern, a math font or a relation operator.

    Attributes:
        latex_weight: LaTeX command or inline math present.
        math_font_weight: Share of characters set in a math font >= math_font_share.
        symbol_weight: Share of math symbols >= symbol_ratio.
        relation_weight: Relation operator (=, <, >, ...) present.
        isolated_weight: At most isolated_max_lines lines, at most
            isolated_max_length characters, no closing period.
        prose_penalty: More than prose_word_count words of four letters or more.
    """

    latex_weight: float = 0.6
    math_font_weight: float = 0.5
    math_font_share: float = 0.5
    symbol_weight: float = 0.4
    symbol_ratio: float = 0.15
    relation_weight: float = 0.2
    isolated_weight: float = 0.2
    isolated_max_lines: int = 2
    isolated_max_length: int = 80
    prose_penalty: float = -0.5
    prose_word_count: int = 6
    threshold: float = 0.6


@dataclass(frozen=True)
class ContinuationConfig:
    """
    Weights and thresholds of the continuation score.

    Positive weights favour merging two text blocks, negative weights favour
    keeping them apart. Blocks merge when the total reaches ``threshold``.
    """

    font_size_match: float = 2.0
    font_size_similar: float = 1.0
    long_block: float = 2.0
    block_length_similar: float = 0.5
    page_break: float = 1.0
    punctuation_end: float = 1.0
    lowercase_start: float = 1.0
    no_sentence_end: float = 0.5
    short_continuation: float = 0.5
    font_size_diff_large: float = -4.0
    font_size_diff_medium: float = -1.0
    sentence_end_capital: float = -1.0
    short_capital: float = -0.5
    short_block: float = -0.5
    threshold: float = 3.0

    strong_semantic_multiplier: float = 3.0
    incomplete_sentence_multiplier: float = 1.5
    dash_multiplier: float = 2.0
    font_tolerance_multiplier: float = 2.0
    very_long_block_multiplier: float = 2.5
    length_similarity_threshold: float = 0.5

    short_block_max: int = 150
    long_block_min: int = 200
    short_line_max: int = 100
    very_short_line_max: int = 50

    similarity_tolerance: float = 0.1
    large_difference_multiplier: float = 0.5
    larger_than_base_multiplier: float = 1.1
    substantial_text_ratio: float = 0.3
    default_avg_paragraph_length: float = 200.0


@dataclass(frozen=True)
class HeadingConfig:
    """
    Heading level assignment.

    Attributes:
        ratio_bands: (min ratio to base font, level) pairs, checked in order.
        default_level: Level when the font size is unusable.
        tolerance_percent / tolerance_percent_varied: Relative size tolerance
            for grouping heading sizes (low / high size variability).
        absolute_diff / absolute_diff_varied: Absolute tolerance factors.
        outline_similarity: Containment ratio to accept a fuzzy outline match.
        outline_max_level_diff: Outline level ignored when further than this
            from the clustered level.
    """

    ratio_bands: Tuple[Tuple[float, int], ...] = (
        (2.0, 1),
        (1.5, 1),
        (1.3, 2),
        (1.2, 3),
        (1.1, 4),
        (1.05, 5),
    )
    default_level: int = 2
    tolerance_percent: float = 0.07
    tolerance_percent_varied: float = 0.08
    absolute_diff: float = 0.12
    absolute_diff_varied: float = 0.15
    outline_similarity: float = 0.7
    outline_max_level_diff: int = 2


@dataclass(frozen=True)
class CrossPageConfig:
    """
    Cross-page merge thresholds.

    Attributes:
        very_large_gap_multiplier: Gap above paragraph_gap_min x this never merges.
        gap_ratio_threshold: Ambiguous-band position above which merging is blocked.
        heading_font_tolerance: Heading merge font tolerance (x base font size).
        heading_max_length: Both heading parts must be shorter than this.
        split_min_length: Text after an embedded boundary must exceed this.
        prev_end_length / next_start_length: Context window sizes.
    """

    very_large_gap_multiplier: float = 2.0
    gap_ratio_threshold: float = 0.7
    heading_font_tolerance: float = 0.1
    heading_max_length: int = 150
    split_min_length: int = 20
    prev_end_length: int = 20
    next_start_length: int = 50


@dataclass(frozen=True)
class TitleConfig:
    """
    Title extraction fallback chain.

    Attributes:
        max_sentence_length: Sentence-derived titles are cut to this length.
        truncate_tolerance: Allowed overshoot to finish a word.
        heading_max_length: Longest heading accepted as a title.
        heading_overlap: Heading removed when it overlaps the title at least this much.
        min_metadata_length: Shorter metadata titles are ignored.
        ignored_titles: Generic metadata titles.
        default_title: Used when nothing else yields a title.
    """

    max_sentence_length: int = 30
    truncate_tolerance: int = 10
    heading_max_length: int = 100
    heading_overlap: float = 0.7
    min_metadata_length: int = 3
    ignored_titles: Tuple[str, ...] = ("anonymous", "(anonymous)", "untitled", "untitled pdf")
    default_title: str = "Untitled PDF"


@dataclass(frozen=True)
class LimitsConfig:
    """
    Resource limits.

    Attributes:
        max_file_size: Byte cap for input documents.
        max_pages_for_analysis: Pages sampled for document metrics.
        load_timeout: Seconds allowed for opening/parsing the document.
    """

    max_file_size: int = 500 * 1024 * 1024
    max_pages_for_analysis: int = 2
    load_timeout: float = 300.0


# =============================================================================
# AGGREGATE
# =============================================================================

@dataclass(frozen=True)
class LayoutConfig:
    """
    Configuration for the whole layout pipeline.

    Example:
        >>> config = LayoutConfig()
        >>> config.continuation.threshold
        3.0
        >>> strict = config.with_continuation_threshold(4.0)
        >>> strict.continuation.threshold
        4.0
    """

    clustering: ClusteringConfig = field(default_factory=ClusteringConfig)
    style: StyleConfig = field(default_factory=StyleConfig)
    underline: UnderlineConfig = field(default_factory=UnderlineConfig)
    columns: ColumnConfig = field(default_factory=ColumnConfig)
    visual: VisualConfig = field(default_factory=VisualConfig)
    lines: LineConfig = field(default_factory=LineConfig)
    paragraphs: ParagraphConfig = field(default_factory=ParagraphConfig)
    tables: TableConfig = field(default_factory=TableConfig)
    list_split: ListSplitConfig = field(default_factory=ListSplitConfig)
    formulas: FormulaConfig = field(default_factory=FormulaConfig)
    continuation: ContinuationConfig = field(default_factory=ContinuationConfig)
    headings: HeadingConfig = field(default_factory=HeadingConfig)
    cross_page: CrossPageConfig = field(default_factory=CrossPageConfig)
    title: TitleConfig = field(default_factory=TitleConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)

    def with_continuation_threshold(self, threshold: float) -> "LayoutConfig":
        return replace(self, continuation=replace(self.continuation, threshold=threshold))

    @classmethod
    def from_env(cls, env_file: Optional[Union[str, Path]] = None) -> "LayoutConfig":
        """
        Build a configuration from environment variables.

        Loads ``env_file`` (or a ``.env`` found from the working directory)
        with python-dotenv, then reads:

        - PDFLAYOUT_MAX_FILE_SIZE_MB
        - PDFLAYOUT_MAX_PAGES_FOR_ANALYSIS
        - PDFLAYOUT_LOAD_TIMEOUT (seconds)
        - PDFLAYOUT_CONTINUATION_THRESHOLD

        Unset variables keep their defaults.

        Args:
            env_file: Optional path to a dotenv file.

        Returns:
            LayoutConfig with overrides applied.

        Raises:
            ValueError: If a variable is set but not numeric.
        """
        if env_file is not None:
            load_dotenv(env_file, override=False)
        else:
            load_dotenv(override=False)

        config = cls()
        limits = config.limits

        size_mb = os.getenv("PDFLAYOUT_MAX_FILE_SIZE_MB")
        if size_mb:
            limits = replace(limits, max_file_size=int(float(size_mb) * 1024 * 1024))

        pages = os.getenv("PDFLAYOUT_MAX_PAGES_FOR_ANALYSIS")
        if pages:
            limits = replace(limits, max_pages_for_analysis=int(pages))

        timeout = os.getenv("PDFLAYOUT_LOAD_TIMEOUT")
        if timeout:
            limits = replace(limits, load_timeout=float(timeout))

        config = replace(config, limits=limits)

        threshold = os.getenv("PDFLAYOUT_CONTINUATION_THRESHOLD")
        if threshold:
            config = config.with_continuation_threshold(float(threshold))

        return config
