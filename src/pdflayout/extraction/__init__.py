"""PDF reading and layout reconstruction stages."""

from .pdf import (
    DocumentMetadata,
    ImageRef,
    OutlineEntry,
    PDFDocument,
    PDFPage,
    Segment,
    build_outline,
    open_document,
    parse_pdf_date,
)

from .ingest import (
    ORIGIN_BOTTOM_LEFT,
    ORIGIN_TOP_LEFT,
    RawGlyph,
    normalize_glyphs,
)

from .fonts import (
    DEFAULT_STRATEGIES,
    FontMetadataStrategy,
    FontNameStrategy,
    FontRatioStrategy,
    StyleContext,
    StyleFlags,
    build_font_format_map,
    build_style_context,
    classify_runs,
    detect_underlines,
    refine_contextual_styles,
)

from .visual import (
    VisualGap,
    VisualStrip,
    VisualStructure,
    analyze_visual_structure,
    is_column_gap,
)

from .columns import (
    column_index_for_x,
    detect_page_columns,
    detect_preliminary_columns,
    find_column_for_run,
)

from .lines import (
    build_line,
    collate_text,
    compute_split_threshold,
    group_runs_into_lines,
    lines_to_dataframe,
)

from .metrics import (
    analyze_document_metrics,
    analyze_gap_distribution,
    analyze_gaps,
    average_paragraph_length,
)

from .paragraphs import (
    classify_spacing,
    group_lines_into_blocks,
    is_heading_line,
    merge_same_page_continuations,
)

from .tables import (
    extract_column_tables,
    is_running_prose,
    is_valid_table,
    merge_column_tables,
    normalize_y,
    split_table_blocks,
)

from .formulas import (
    FormulaScore,
    classify_formulas,
    formula_score,
    math_font_share,
    symbol_ratio,
)

from .links import (
    anchor_text,
    attach_links,
)

from .continuation import (
    ContinuationDecision,
    PageBreakContext,
    analyze_page_break_context,
    continuation_score,
    should_continue_block,
)

from .headings import (
    HeadingHierarchy,
    analyze_font_size_hierarchy,
    assign_heading_levels,
    extract_numbering_level,
    match_heading_to_outline,
    ratio_level,
    relative_level,
    validate_heading_hierarchy,
)

from .grouping import (
    group_list_items,
    group_table_rows,
    split_inline_list,
    split_inline_lists,
)

from .merge import (
    merge_blocks,
    merge_cross_page,
    should_merge_headings,
    should_merge_lists,
    should_merge_paragraphs,
    split_embedded_paragraph,
)

from .postprocess import post_process

from .title import (
    TitleResult,
    extract_title,
)

__all__ = [
    # PDF engine
    "DocumentMetadata",
    "ImageRef",
    "OutlineEntry",
    "PDFDocument",
    "PDFPage",
    "Segment",
    "build_outline",
    "open_document",
    "parse_pdf_date",
    # Ingestion
    "ORIGIN_BOTTOM_LEFT",
    "ORIGIN_TOP_LEFT",
    "RawGlyph",
    "normalize_glyphs",
    # Fonts and styles
    "DEFAULT_STRATEGIES",
    "FontMetadataStrategy",
    "FontNameStrategy",
    "FontRatioStrategy",
    "StyleContext",
    "StyleFlags",
    "build_font_format_map",
    "build_style_context",
    "classify_runs",
    "detect_underlines",
    "refine_contextual_styles",
    # Visual structure
    "VisualGap",
    "VisualStrip",
    "VisualStructure",
    "analyze_visual_structure",
    "is_column_gap",
    # Columns
    "column_index_for_x",
    "detect_page_columns",
    "detect_preliminary_columns",
    "find_column_for_run",
    # Lines
    "build_line",
    "collate_text",
    "compute_split_threshold",
    "group_runs_into_lines",
    "lines_to_dataframe",
    # Metrics
    "analyze_document_metrics",
    "analyze_gap_distribution",
    "analyze_gaps",
    "average_paragraph_length",
    # Blocks
    "classify_spacing",
    "group_lines_into_blocks",
    "is_heading_line",
    "merge_same_page_continuations",
    # Tables across columns
    "extract_column_tables",
    "is_running_prose",
    "is_valid_table",
    "merge_column_tables",
    "normalize_y",
    "split_table_blocks",
    # Formulas
    "FormulaScore",
    "classify_formulas",
    "formula_score",
    "math_font_share",
    "symbol_ratio",
    # Links
    "anchor_text",
    "attach_links",
    # Continuation
    "ContinuationDecision",
    "PageBreakContext",
    "analyze_page_break_context",
    "continuation_score",
    "should_continue_block",
    # Headings
    "HeadingHierarchy",
    "analyze_font_size_hierarchy",
    "assign_heading_levels",
    "extract_numbering_level",
    "match_heading_to_outline",
    "ratio_level",
    "relative_level",
    "validate_heading_hierarchy",
    # Grouping
    "group_list_items",
    "group_table_rows",
    "split_inline_list",
    "split_inline_lists",
    # Cross-page merge
    "merge_blocks",
    "merge_cross_page",
    "should_merge_headings",
    "should_merge_lists",
    "should_merge_paragraphs",
    "split_embedded_paragraph",
    # Post-processing and title
    "post_process",
    "TitleResult",
    "extract_title",
]
