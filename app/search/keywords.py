"""
Keyword extraction for the search index.

Keywords are lowercased word tokens longer than two characters, in order of
first appearance, capped per entity. Callers put high-signal fields (name,
title) first so they survive the cap.
"""

import re
from typing import List

# Maximum keywords stored per index entry
MAX_KEYWORDS = 50

# Tokens of this length or shorter are dropped
MIN_TOKEN_LENGTH = 2

_NON_WORD = re.compile(r"[^\w\s]")


def normalize_text(text: str) -> str:
    """Lowercase and replace punctuation with spaces."""
    return _NON_WORD.sub(" ", (text or "").lower())


def extract_keywords(text: str, max_keywords: int = MAX_KEYWORDS) -> List[str]:
    """
    Turn arbitrary entity text into a bounded list of normalized tokens.

    Args:
        text: Denormalized entity content
        max_keywords: Cap on the number of tokens returned

    Returns:
        Unique tokens in order of first appearance, e.g.
        "Acme Rollout - Acme Ltd" -> ["acme", "rollout", "ltd"]
    """
    words = [word for word in normalize_text(text).split() if len(word) > MIN_TOKEN_LENGTH]
    return list(dict.fromkeys(words))[:max_keywords]
