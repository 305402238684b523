"""
Final cleanup of the block list.

Drops blocks that carry no content: headings, paragraphs and formulas
with blank text, lists whose items are all blank (or, ungrouped, whose
text is blank), and tables with neither rows nor text. Image
placeholders are kept. Running it twice gives the same result.
"""

import logging
from typing import List, Sequence

from pdflayout.models import Block, BlockKind

logger = logging.getLogger(__name__)


def has_content(block: Block) -> bool:
    """
    Whether a block is worth keeping.

    Example:
        >>> has_content(Block(BlockKind.PARAGRAPH, "   "))
        False
        >>> has_content(Block(BlockKind.IMAGE, ""))
        True
    """
    text = (block.text or "").strip()
    if block.kind in (BlockKind.PARAGRAPH, BlockKind.HEADING, BlockKind.FORMULA):
        return bool(text)
    if block.kind == BlockKind.LIST:
        if block.items:
            return any(item.text.strip() for item in block.items)
        return bool(text)
    if block.kind == BlockKind.TABLE:
        return bool(block.rows) or bool(text)
    return True


def post_process(blocks: Sequence[Block]) -> List[Block]:
    """Return the blocks that have content, in order."""
    kept = [b for b in blocks if has_content(b)]
    dropped = len(blocks) - len(kept)
    if dropped:
        logger.debug(f"Post-process dropped {dropped} empty blocks")
    return kept
