"""Content analysis for bot-block detection and DOM sanitising.

Analyzes rendered pages to:
- Detect anti-automation challenges from body text and title
- Reduce markup to content-bearing nodes and a small attribute allow-list
- Decide whether a sanitized page carries enough content to be valid
"""

import logging
import re
from typing import Optional

from selectolax.parser import HTMLParser

from shopcheck.config import settings

logger = logging.getLogger(__name__)

# Body-text phrases indicating a block page
BLOCK_TEXT_PATTERNS = [
    "access denied",
    "bot detected",
]

# Status-like tokens in the page title
BLOCK_TITLE_TOKENS = [
    "403",
    "429",
]

REMOVED_TAGS = "script, style, noscript, svg, iframe, img, video, audio, canvas"

ALLOWED_ATTRIBUTES = {"class", "id", "href", "src"}

_BODY_OPEN_RE = re.compile(r"^\s*<body[^>]*>", re.IGNORECASE)
_BODY_CLOSE_RE = re.compile(r"</body>\s*$", re.IGNORECASE)


def detect_block(body_text: Optional[str], title: Optional[str]) -> Optional[str]:
    """
    Detect if the page is a bot challenge or block.

    Args:
        body_text: Rendered text of the page body
        title: Page title

    Returns:
        Matched indicator or None
    """
    text_lower = (body_text or "").lower()
    for pattern in BLOCK_TEXT_PATTERNS:
        if pattern in text_lower:
            return pattern

    title_lower = (title or "").lower()
    for token in BLOCK_TITLE_TOKENS:
        if token in title_lower:
            return f"title:{token}"

    return None


def sanitize_html(html: Optional[str]) -> Optional[str]:
    """
    Strip a rendered document down to its body markup.

    Removes script/style/media/iframe nodes and every attribute outside
    the allow-list.

    Args:
        html: Full document HTML

    Returns:
        Sanitized inner HTML of <body>, or None if there is no body
    """
    if not html:
        return None

    tree = HTMLParser(html)
    body = tree.body
    if body is None:
        return None

    # Only outermost matches are removed; nested ones go with their ancestor
    targets = body.css(REMOVED_TAGS)
    target_ids = {node.mem_id for node in targets}
    outermost = [node for node in targets if not _has_ancestor_in(node, target_ids)]
    for node in outermost:
        node.decompose()

    for node in body.traverse():
        attrs = node.attrs
        for name in [name for name in list(attrs) if name not in ALLOWED_ATTRIBUTES]:
            del attrs[name]

    markup = body.html or ""
    markup = _BODY_OPEN_RE.sub("", markup, count=1)
    markup = _BODY_CLOSE_RE.sub("", markup, count=1)
    return markup


def _has_ancestor_in(node, mem_ids: set) -> bool:
    parent = node.parent
    while parent is not None:
        if parent.mem_id in mem_ids:
            return True
        parent = parent.parent
    return False


def is_valid_page_source(page_source: Optional[str], min_length: Optional[int] = None) -> bool:
    """Page source counts as valid only when it is longer than the threshold."""
    if min_length is None:
        min_length = settings.min_page_source_length
    return bool(page_source) and len(page_source) > min_length
