"""
Document title selection.

Fallback chain, first hit wins:
1. Metadata title, unless blank, shorter than 3 characters or generic
   ("anonymous", "untitled", ...)
2. First heading of at most 100 characters; the heading is removed from
   the content
3. First sentence of the first paragraph, cut to 30 characters on a word
   boundary; a heading that overlaps the title by at least 70% is removed
4. First sentence of the first block; removed when that block is a heading
5. File name without query string and ".pdf", "%20" decoded to spaces;
   "Untitled PDF" when even that is empty
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from pdflayout.config import TitleConfig
from pdflayout.constants import FIRST_SENTENCE_RX
from pdflayout.models import Block, BlockKind
from pdflayout.utils.text import normalize_for_compare

logger = logging.getLogger(__name__)

_TRAILING_END_RX = re.compile(r"[.!?]+$")
_PDF_SUFFIX_RX = re.compile(r"\.pdf$", re.IGNORECASE)


@dataclass
class TitleResult:
    """
    Chosen title and the content left after removing a title heading.

    Attributes:
        title: Document title.
        blocks: Content blocks (a copy of the input list).
        source: Which step of the chain produced the title.
    """

    title: str
    blocks: List[Block] = field(default_factory=list)
    source: str = "default"


# =============================================================================
# HELPERS
# =============================================================================

def should_ignore_metadata_title(title: Optional[str], config: Optional[TitleConfig] = None) -> bool:
    """
    Metadata titles that say nothing about the document.

    Example:
        >>> should_ignore_metadata_title("Untitled"), should_ignore_metadata_title("Annual Report")
        (True, False)
    """
    config = config or TitleConfig()
    trimmed = (title or "").strip()
    if len(trimmed) < config.min_metadata_length:
        return True
    return trimmed.lower() in config.ignored_titles


def title_from_text(text: str, config: Optional[TitleConfig] = None) -> str:
    """
    First sentence of ``text`` shortened to a title.

    Trailing sentence punctuation is dropped. Long sentences are cut at the
    last space when that keeps more than half of the limit, else at the
    first space within the tolerance past the limit, else hard.

    Example:
        >>> title_from_text("Quarterly results. Revenue grew.")
        'Quarterly results'
        >>> title_from_text("An unusually long opening sentence without any stop")
        'An unusually long opening'
    """
    config = config or TitleConfig()
    trimmed = (text or "").strip()
    if not trimmed:
        return ""
    match = FIRST_SENTENCE_RX.match(trimmed)
    if not match:
        return ""
    sentence = _TRAILING_END_RX.sub("", match.group(0).strip())
    limit = config.max_sentence_length
    if len(sentence) <= limit:
        return sentence

    last_space = sentence[:limit].rfind(" ")
    if last_space > limit * 0.5:
        return sentence[:last_space].strip()
    first_after = sentence.find(" ", limit)
    if 0 < first_after < limit + config.truncate_tolerance:
        return sentence[:first_after].strip()
    return sentence[:limit].strip()


def title_from_source_name(source_name: Optional[str], config: Optional[TitleConfig] = None) -> str:
    """
    Title from a file name or URL.

    Example:
        >>> title_from_source_name("https://example.com/docs/Annual%20Report.pdf?dl=1")
        'Annual Report'
    """
    config = config or TitleConfig()
    name = re.split(r"[/\\]", str(source_name or ""))[-1]
    name = name.split("?")[0]
    name = _PDF_SUFFIX_RX.sub("", name).replace("%20", " ").strip()
    return name or config.default_title


def heading_overlap(title: str, heading: str) -> float:
    """
    Containment ratio between a title and a heading (1.0 for equal text).

    Example:
        >>> heading_overlap("Quarterly results", "quarterly  results")
        1.0
    """
    t = normalize_for_compare(title)
    h = normalize_for_compare(heading)
    if not t or not h:
        return 0.0
    if t == h:
        return 1.0
    if t in h:
        return len(t) / len(h)
    if h in t:
        return len(h) / len(t)
    return 0.0


# =============================================================================
# FALLBACK CHAIN
# =============================================================================

def extract_title(
    metadata_title: Optional[str],
    blocks: Sequence[Block],
    source_name: Optional[str] = None,
    config: Optional[TitleConfig] = None,
) -> TitleResult:
    """
    Pick the document title and drop the heading it came from.

    Args:
        metadata_title: Title from the document info dictionary.
        blocks: Final content blocks.
        source_name: File name or URL of the document.
        config: Title thresholds.

    Returns:
        TitleResult; the input sequence is never modified.
    """
    config = config or TitleConfig()
    remaining = list(blocks)

    if metadata_title and not should_ignore_metadata_title(metadata_title, config):
        return TitleResult(metadata_title.strip(), remaining, "metadata")

    first_heading = next(
        (b for b in remaining if b.kind == BlockKind.HEADING and b.text.strip()), None
    )
    if first_heading is not None:
        heading_text = first_heading.text.strip()
        if len(heading_text) <= config.heading_max_length:
            remaining.remove(first_heading)
            return TitleResult(heading_text, remaining, "heading")
        logger.debug(f"First heading too long for a title ({len(heading_text)} chars)")

    first_paragraph = next(
        (b for b in remaining if b.kind == BlockKind.PARAGRAPH and b.text.strip()), None
    )
    if first_paragraph is not None:
        title = title_from_text(first_paragraph.text, config)
        if title:
            for i, block in enumerate(remaining):
                if block.kind == BlockKind.HEADING and heading_overlap(title, block.text) >= config.heading_overlap:
                    del remaining[i]
                    break
            return TitleResult(title, remaining, "sentence")

    if remaining and remaining[0].text:
        first = remaining[0]
        title = title_from_text(first.text, config)
        if title:
            if first.kind == BlockKind.HEADING:
                remaining.pop(0)
            return TitleResult(title, remaining, "element")

    return TitleResult(title_from_source_name(source_name, config), remaining, "filename")
