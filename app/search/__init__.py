"""
Full-text search engine for business records.

Provides a denormalized search index over contacts, projects and tasks with
relevance scoring, highlighting, filtering, and autocomplete.
"""

from app.search.engine import SearchEngine
from app.search.index_store import IndexStore
from app.search.types import SearchEntityType, SearchFilters, SortSpec

__all__ = ["SearchEngine", "IndexStore", "SearchEntityType", "SearchFilters", "SortSpec"]
