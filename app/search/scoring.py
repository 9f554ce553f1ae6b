"""
Relevance scoring for free-text queries.

score = 100  if the whole query appears in the content
      + 20   per query word (> 2 chars) that is one of the entry's keywords
      + 10   per query word (> 2 chars) found anywhere in the content
      + 50   if the first line of the content contains the query

Index content is built on a single line, so the first-line boost normally
fires together with the phrase bonus. Both are kept; rankings depend on the
accumulated value.
"""

from typing import Sequence

from app.core.search_models import SearchIndexEntry

PHRASE_BONUS = 100
KEYWORD_BONUS = 20
CONTENT_WORD_BONUS = 10
TITLE_BONUS = 50

# Query words of this length or shorter are ignored
MIN_WORD_LENGTH = 2


def score(query: str, content: str, keywords: Sequence[str]) -> int:
    """
    Score a query against one entry's content and keywords.

    Returns:
        Non-negative integer; 0 means the entry does not match
    """
    query_lower = query.lower()
    content_lower = content.lower()
    total = 0

    if query_lower in content_lower:
        total += PHRASE_BONUS

    keyword_set = set(keywords)
    for word in query_lower.split():
        if len(word) > MIN_WORD_LENGTH:
            if word in keyword_set:
                total += KEYWORD_BONUS
            if word in content_lower:
                total += CONTENT_WORD_BONUS

    first_line = content.split("\n")[0]
    if query_lower in first_line.lower():
        total += TITLE_BONUS

    return total


def score_entry(query: str, entry: SearchIndexEntry) -> int:
    """Score a query against a stored index entry."""
    return score(query, entry.searchable_content or "", entry.keywords or [])
