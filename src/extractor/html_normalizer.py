"""
HTML normalization utilities for pagesnap.

Lightweight regex preprocessing applied to extracted article fragments
before they are serialized into a snapshot.
"""

import re

from src.utils.logging import get_logger

logger = get_logger(__name__)

_PRESERVE_WHITESPACE_RE = re.compile(
    r"(<(pre|textarea)\b[^>]*>.*?</\2\s*>)",
    flags=re.DOTALL | re.IGNORECASE,
)


def strip_comments(html: str) -> str:
    """Remove HTML comments (conditional comments included)."""
    return re.sub(r"<!--.*?-->", "", html, flags=re.DOTALL)


def _collapse_whitespace(html: str) -> str:
    return re.sub(r"\s+", " ", html)


def compact_html(html: str) -> str:
    """Compact an HTML fragment for storage.

    Strips comments and collapses insignificant whitespace. Content of
    <pre> and <textarea> is left untouched. The visible text is unchanged
    apart from whitespace runs being reduced to a single space.

    Args:
        html: HTML fragment.

    Returns:
        Compacted HTML string.
    """
    if not html:
        return html

    original_length = len(html)
    html = strip_comments(html)

    parts = _PRESERVE_WHITESPACE_RE.split(html)
    # split() with two groups yields [text, whole_match, tag_name, text, ...]
    compacted: list[str] = []
    i = 0
    while i < len(parts):
        compacted.append(_collapse_whitespace(parts[i]))
        if i + 1 < len(parts):
            compacted.append(parts[i + 1])
        i += 3

    result = "".join(compacted).strip()

    logger.debug(
        "HTML compacted",
        original_length=original_length,
        compacted_length=len(result),
    )
    return result
