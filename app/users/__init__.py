"""
Users module for user-specific search features.

Saved searches, search history, and role checks.
"""

from app.users.saved_searches import SavedSearchService, SavedSearchDefinition
from app.users.search_history import SearchHistoryService

__all__ = ["SavedSearchService", "SavedSearchDefinition", "SearchHistoryService"]
