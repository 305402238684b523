"""
Shared constants across pdflayout modules.

This module is the single source of truth for:
- Text patterns used by several stages (sentence ends, list markers, headings)
- Fallback metric values used when a document offers no statistics
- Block type names used in serialized output
"""

import re


# =============================================================================
# BLOCK TYPE NAMES
# =============================================================================
# Serialized "type" values for content blocks

BLOCK_TYPE_HEADING = "heading"
BLOCK_TYPE_PARAGRAPH = "paragraph"
BLOCK_TYPE_LIST = "list"
BLOCK_TYPE_TABLE = "table"
BLOCK_TYPE_IMAGE = "image"
BLOCK_TYPE_FORMULA = "formula"

LIST_TYPE_ORDERED = "ordered"
LIST_TYPE_UNORDERED = "unordered"


# =============================================================================
# FALLBACK METRICS
# =============================================================================
# Used when a page or document yields no usable statistics

DEFAULT_FONT_SIZE = 12.0
DEFAULT_MODE_SPACING = 12.0
DEFAULT_PARAGRAPH_GAP = 18.0
DEFAULT_AVG_PARAGRAPH_LENGTH = 200.0
MIN_FONT_SIZE = 0.1
MAX_FONT_SIZE = 1000.0

# Soft hyphen inserted by some producers at potential break points
SOFT_HYPHEN = "­"


# =============================================================================
# TEXT PATTERNS
# =============================================================================

SENTENCE_END_RX = re.compile(r"[.!?]\s*$")
PUNCTUATION_END_RX = re.compile(r"[,;:—–-]\s*$")
DASH_END_RX = re.compile(r"[—–-]\s*$")
COMMA_END_RX = re.compile(r"[,;:]\s*$")
HYPHEN_END_RX = re.compile(r"-\s*$")

# Bullet, numbered ("1." / "1)"), and lettered ("a." / "a)") item openers
BULLET_ITEM_RX = re.compile(r"^\s*[•\-\*\+▪▫◦‣⁃]\s+")
ORDERED_ITEM_RX = re.compile(r"^\s*\d+[.)]\s+")
LETTERED_ITEM_RX = re.compile(r"^\s*[^\W\d_][.)]\s+")
LIST_ITEM_RX = re.compile(
    r"^\s*[•\-\*\+▪▫◦‣⁃]\s+"
    r"|^\s*\d+[.)]\s*[^\W\d_]"
    r"|^\s*\d+[.)]\s+"
    r"|^\s*[^\W\d_][.)]\s+"
)

# Structural heading openers: "Chapter 1", "Section A", "2. Methods", "3) Results"
STRUCTURAL_HEADING_RX = re.compile(r"^(Chapter|Section|\d+[.)])\s")

# Numbered heading depth: "1." -> depth 1, "2.1." -> depth 2, "2.1.1." -> depth 3
NUMBERING_RX = re.compile(r"^(\d+)(?:\.(\d+))?(?:\.(\d+))?[.)]\s*")

# Sentence boundary followed by an uppercase letter (group 2 is checked with str.isupper)
SENTENCE_BOUNDARY_RX = re.compile(r"([.!?])\s+(\w)")

# First sentence of a text, used for title extraction
FIRST_SENTENCE_RX = re.compile(r"^[^.!?\n]+[.!?\n]?")

# Font names that imply a style
BOLD_FONT_RX = re.compile(r"bold|black|heavy|demi|semi", re.IGNORECASE)
ITALIC_FONT_RX = re.compile(r"italic|oblique", re.IGNORECASE)

# PDF date strings: D:YYYYMMDDHHmmSS...
PDF_DATE_RX = re.compile(r"^D?:?(\d{4})(\d{2})?(\d{2})?")

# Inline list after a lead-in: "Main principles: • speed • safety"
INLINE_LIST_RX = re.compile(r":\s+([•\-\*\+▪▫◦‣⁃]|\d+[.)])\s+")


# =============================================================================
# FORMULA PATTERNS
# =============================================================================

LATEX_RX = re.compile(
    r"\\(?:frac|sum|prod|int|oint|sqrt|lim|log|exp|sin|cos|tan|infty|partial|nabla"
    r"|alpha|beta|gamma|delta|epsilon|theta|lambda|mu|sigma|omega|pi|phi"
    r"|cdot|times|pm|leq|geq|neq|approx|equiv|in|subset|cup|cap)\b"
    r"|\$[^$\n]+\$"
    r"|[\^_]\{"
)
RELATION_RX = re.compile(r"[=≈≠≡≤≥<>∝]")
MATH_FONT_RX = re.compile(r"math|cmmi|cmsy|cmex|msam|msbm|symbol|stix", re.IGNORECASE)
MATH_SYMBOLS = frozenset(
    "=+−×÷±∓·∑∏∫∮√∞∂∇≈≠≡≤≥<>∝∈∉⊂⊃⊆⊇∪∩∀∃∧∨¬→←↔⇒⇔^"
    "αβγδεζηθικλμνξπρστυφχψωΓΔΘΛΞΠΣΦΨΩ"
)
