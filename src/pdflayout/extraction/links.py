"""
Attaching hyperlinks to the blocks whose text they cover.

A link area from the engine is matched against the runs of a page's
blocks: every run whose centre lies inside the area (1pt tolerance) is part
of the anchor text. The link is attached, with that text, to the first
block holding a matching run. Areas that cover no text are dropped.
"""

import logging
from dataclasses import replace
from typing import Dict, List, Sequence

from pdflayout.models import Block, Line, Link
from pdflayout.utils.text import join_text

logger = logging.getLogger(__name__)


def anchor_text(link: Link, lines: Sequence[Line], tolerance: float = 1.0) -> str:
    """
    Text of the runs under a link area, in line order.

    Example:
        >>> from pdflayout.models import GlyphRun
        >>> line = Line("see the docs", 72, 100, 12, runs=(
        ...     GlyphRun("see the", 72, 100, 42, 12), GlyphRun("docs", 118, 100, 24, 12)))
        >>> anchor_text(Link(uri="https://example.org", x=116, y=99, width=28, height=14), [line])
        'docs'
    """
    text = ""
    for line in lines:
        for run in line.runs:
            if link.contains(run.center_x, run.y + run.font_size / 2.0, tolerance):
                text = join_text(text, run.text.strip())
    return text


def attach_links(blocks: Sequence[Block], links: Sequence[Link], tolerance: float = 1.0) -> List[Block]:
    """
    Attach the links of one page to its blocks.

    Args:
        blocks: Blocks of a single page.
        links: Link areas of the same page.
        tolerance: Slack around each area, in points.

    Returns:
        New block list; blocks without links are returned unchanged.
    """
    if not links:
        return list(blocks)
    attached: Dict[int, List[Link]] = {}
    dropped = 0
    for link in links:
        for i, block in enumerate(blocks):
            text = anchor_text(link, block.lines, tolerance)
            if text:
                attached.setdefault(i, []).append(replace(link, text=text))
                break
        else:
            dropped += 1
    if dropped:
        logger.debug(f"{dropped} link areas cover no text")
    return [
        replace(block, links=block.links + tuple(attached[i])) if i in attached else block
        for i, block in enumerate(blocks)
    ]
