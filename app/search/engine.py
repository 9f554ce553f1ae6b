"""
Search engine over the denormalized search index.

Provides ranked, filtered, paginated search across contacts, projects and
tasks, plus prefix autocomplete.
"""

import time
import logging
from typing import Dict, List, Optional, Tuple, Union

from sqlalchemy.orm import Session

from app.core.search_models import SearchIndexEntry
from app.search.enrichment import EntityDirectory
from app.search.filters import passes_filters, sort_by_metadata
from app.search.highlight import highlight
from app.search.index_store import IndexStore
from app.search.scoring import score_entry
from app.search.types import (
    SearchEntityType,
    SearchFilters,
    SearchResponse,
    SearchResult,
    SortSpec,
)

logger = logging.getLogger(__name__)

ScoredEntry = Tuple[SearchIndexEntry, int]


def _metadata(item: ScoredEntry) -> Dict:
    return item[0].entry_metadata or {}


def _as_text(value) -> Optional[str]:
    # Rows written before metadata was normalised may hold non-string values
    return None if value is None else str(value)


class SearchEngine:
    """
    Full-text search engine over the search_index table.

    Features:
    - Additive relevance scoring (phrase, keyword, word and title bonuses)
    - Structured filters (date range, status, priority, tags, custom fields)
    - Optional metadata sort overriding relevance
    - Highlighted snippets and entity-store enrichment per page
    - Autocomplete suggestions from titles and keywords

    Every query is a full scan of the index; there is no postings list.
    """

    DEFAULT_LIMIT = 50
    DEFAULT_SUGGEST_LIMIT = 10
    MIN_SUGGEST_PREFIX = 2

    def __init__(self, db: Session):
        self.db = db
        self.index = IndexStore(db)
        self.directory = EntityDirectory(db)

    def search(
        self,
        query: str,
        entity_type: Union[str, SearchEntityType, None] = SearchEntityType.ALL,
        filters: Optional[SearchFilters] = None,
        sort_by: Optional[SortSpec] = None,
        limit: int = DEFAULT_LIMIT,
        offset: int = 0,
    ) -> SearchResponse:
        """
        Execute a free-text search.

        Args:
            query: Search query string
            entity_type: contact, project, task or all
            filters: Structured filters, AND-ed
            sort_by: Optional metadata sort replacing relevance order
            limit: Page size
            offset: Number of results to skip

        Returns:
            SearchResponse with one page of results, the filtered total and
            the elapsed time in milliseconds
        """
        if not query or not query.strip():
            return SearchResponse(results=[], total_count=0, search_time_ms=0)

        start_time = time.time()

        scored: List[ScoredEntry] = []
        for entry in self.index.scan(entity_type):
            relevance = score_entry(query, entry)
            if relevance > 0:
                scored.append((entry, relevance))

        scored.sort(key=lambda item: item[1], reverse=True)

        filtered = [item for item in scored if passes_filters(_metadata(item), filters)]

        if sort_by is not None:
            filtered = sort_by_metadata(filtered, sort_by, _metadata)

        offset = max(offset, 0)
        page = filtered[offset:offset + max(limit, 0)]

        results = [self._build_result(query, entry, relevance) for entry, relevance in page]

        elapsed_ms = int((time.time() - start_time) * 1000)

        logger.debug(
            f"Search {query!r} ({getattr(entity_type, 'value', entity_type)}): "
            f"{len(filtered)} matches, {elapsed_ms}ms"
        )

        return SearchResponse(
            results=results,
            total_count=len(filtered),
            search_time_ms=elapsed_ms,
        )

    def _build_result(self, query: str, entry: SearchIndexEntry, relevance: int) -> SearchResult:
        metadata = dict(entry.entry_metadata or {})
        metadata.update(self.directory.enrich(entry.entity_type, entry.entity_id))

        return SearchResult(
            entity_type=entry.entity_type,
            entity_id=entry.entity_id,
            title=_as_text(metadata.get("title")) or "Untitled",
            description=_as_text(metadata.get("description")),
            relevance_score=relevance,
            highlights=highlight(query, entry.searchable_content or ""),
            metadata=metadata,
        )

    def suggest(
        self,
        prefix: str,
        entity_type: Union[str, SearchEntityType, None] = SearchEntityType.ALL,
        limit: int = DEFAULT_SUGGEST_LIMIT,
    ) -> List[str]:
        """
        Get autocomplete suggestions for a prefix.

        Titles starting with the prefix (case-insensitive) and keywords
        starting with it (and longer than it) are collected in scan order,
        deduplicated, up to limit.

        Args:
            prefix: Search prefix (minimum 2 characters)
            entity_type: contact, project, task or all
            limit: Maximum number of suggestions

        Returns:
            Ordered list of unique suggestion strings
        """
        if not prefix or not prefix.strip() or len(prefix) < self.MIN_SUGGEST_PREFIX:
            return []

        prefix_lower = prefix.lower()
        suggestions: List[str] = []
        seen = set()

        for entry in self.index.scan(entity_type):
            if len(suggestions) >= limit:
                break

            title = _as_text((entry.entry_metadata or {}).get("title")) or ""
            if title.lower().startswith(prefix_lower) and title not in seen:
                suggestions.append(title)
                seen.add(title)

            for keyword in entry.keywords or []:
                if len(suggestions) >= limit:
                    break
                if keyword.startswith(prefix_lower) and len(keyword) > len(prefix) and keyword not in seen:
                    suggestions.append(keyword)
                    seen.add(keyword)

        return suggestions
