"""
Snippet highlighting for search results.
"""

import re
from typing import List

HIGHLIGHT_OPEN = "<mark>"
HIGHLIGHT_CLOSE = "</mark>"

_SENTENCE_BREAK = re.compile(r"[.!?]\s+")


def highlight(query: str, content: str, max_highlights: int = 3) -> List[str]:
    """
    Extract sentence fragments containing the query, with matches marked.

    The query is matched literally and case-insensitively; the original
    casing of the content is kept inside the markers.

    Args:
        query: Search query as typed
        content: Original (not lowercased) searchable content
        max_highlights: Maximum fragments to return

    Returns:
        Up to max_highlights marked fragments, in content order
    """
    if not query or not content or max_highlights <= 0:
        return []

    query_lower = query.lower()
    pattern = re.compile(re.escape(query), re.IGNORECASE)
    highlights: List[str] = []

    for sentence in _SENTENCE_BREAK.split(content):
        if len(highlights) >= max_highlights:
            break
        if query_lower in sentence.lower():
            marked = pattern.sub(lambda m: f"{HIGHLIGHT_OPEN}{m.group(0)}{HIGHLIGHT_CLOSE}", sentence)
            highlights.append(marked.strip())

    return highlights
