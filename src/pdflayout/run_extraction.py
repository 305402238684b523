#!/usr/bin/env python3
"""
Run layout extraction on a PDF.

Writes the extracted document as JSON and, optionally, the blocks and
lines as CSV for inspection.

Usage:
    python -m pdflayout.run_extraction --pdf PATH [--output DIR] [--lines-csv] [--blocks-csv]
"""

import argparse
import logging
import sys
from collections import Counter
from pathlib import Path
from typing import Optional

from pdflayout.config import LayoutConfig
from pdflayout.errors import DocumentError, ExtractionCancelled
from pdflayout.extraction.lines import lines_to_dataframe
from pdflayout.models import ExtractionResult
from pdflayout.pipeline import extract_document
from pdflayout.utils.serialize import blocks_to_dataframe, lines_from_blocks, result_to_json

logger = logging.getLogger(__name__)


# =============================================================================
# REPORTING
# =============================================================================

def print_summary(result: ExtractionResult) -> None:
    """Print block counts and warnings for a finished extraction."""
    print("=" * 70)
    print(f"Title: {result.title}")
    print("=" * 70)
    if result.author:
        print(f"Author: {result.author}")
    if result.publish_date:
        print(f"Published: {result.publish_date}")
    print(f"Pages: {result.page_count}")
    print(f"Blocks: {len(result.content)}")

    counts = Counter(block.kind.value for block in result.content)
    for kind, count in sorted(counts.items()):
        print(f"  {kind}: {count}")

    metrics = result.metrics
    print(f"Base font size: {metrics.base_font_size}")
    if metrics.gap_analysis is not None:
        print(f"Spacing: {metrics.gap_analysis.document_type}")

    if result.warnings:
        print(f"\n--- {len(result.warnings)} page warnings ---")
        for warning in result.warnings:
            print(f"  page {warning.page_number}: {warning.message}")


def write_outputs(
    result: ExtractionResult,
    output_dir: Path,
    stem: str,
    lines_csv: bool = False,
    blocks_csv: bool = False,
) -> Path:
    """Write JSON (and optional CSVs) to ``output_dir``; returns the JSON path."""
    output_dir.mkdir(parents=True, exist_ok=True)
    json_path = output_dir / f"{stem}.json"
    json_path.write_text(result_to_json(result), encoding="utf-8")

    if blocks_csv:
        blocks_to_dataframe(result.content).to_csv(output_dir / f"{stem}_blocks.csv", index=False)
    if lines_csv:
        lines_to_dataframe(lines_from_blocks(result.content)).to_csv(
            output_dir / f"{stem}_lines.csv", index=False
        )
    return json_path


# =============================================================================
# CLI
# =============================================================================

def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Reconstruct headings, paragraphs, lists and tables from a PDF"
    )
    parser.add_argument(
        "--pdf",
        required=True,
        help="Path to PDF file",
    )
    parser.add_argument(
        "--output",
        default="output",
        help="Output directory",
    )
    parser.add_argument(
        "--env",
        default=None,
        help="Path to a .env file with PDFLAYOUT_* overrides",
    )
    parser.add_argument(
        "--lines-csv",
        action="store_true",
        help="Also write reconstructed lines as CSV",
    )
    parser.add_argument(
        "--blocks-csv",
        action="store_true",
        help="Also write blocks as CSV",
    )
    parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Disable progress bars",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Warnings only")

    args = parser.parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.WARNING if args.quiet else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")

    try:
        config = LayoutConfig.from_env(args.env)
    except ValueError as exc:
        logger.error(f"Invalid configuration: {exc}")
        return 2

    pdf_path = Path(args.pdf)
    try:
        result = extract_document(pdf_path, config=config, progress=not args.no_progress)
    except FileNotFoundError as exc:
        logger.error(str(exc))
        return 1
    except DocumentError as exc:
        logger.error(f"{type(exc).__name__}: {exc}")
        return 1
    except ExtractionCancelled:
        logger.warning("Extraction cancelled")
        return 130

    json_path = write_outputs(
        result,
        Path(args.output),
        pdf_path.stem,
        lines_csv=args.lines_csv,
        blocks_csv=args.blocks_csv,
    )
    print_summary(result)
    print(f"\nOutput saved to {json_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
