"""
SQLAlchemy models for the search subsystem.

search_index    - one denormalized row per indexed entity
saved_searches  - reusable query definitions
search_history  - per-user log of executed searches
"""
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, DateTime, Text, JSON, Boolean,
    UniqueConstraint, Index,
)

from app.core.models import Base


class SearchIndexEntry(Base):
    """
    Derived, searchable projection of one entity record.

    UNIQUE(entity_type, entity_id): at most one row per entity.
    """
    __tablename__ = "search_index"

    id = Column(Integer, primary_key=True, autoincrement=True)
    entity_type = Column(String(20), nullable=False, index=True)  # contact, project, task
    entity_id = Column(String(64), nullable=False)
    searchable_content = Column(Text, nullable=False, default="")
    keywords = Column(JSON, nullable=False, default=list)
    # title, description, status, priority, tags, created_at, updated_at (epoch ms)
    entry_metadata = Column(JSON, nullable=False, default=dict)

    # Index freshness, not entity timestamps
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("entity_type", "entity_id", name="uq_search_index_entity"),
    )

    def __repr__(self) -> str:
        return (
            f"<SearchIndexEntry(id={self.id}, entity_type={self.entity_type}, "
            f"entity_id={self.entity_id})>"
        )


class SavedSearchRecord(Base):
    """A named, rerunnable query definition."""
    __tablename__ = "saved_searches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    entity_type = Column(String(20), nullable=False, default="all")
    query = Column(Text, nullable=False)
    filters = Column(JSON, nullable=False, default=dict)
    sort_by = Column(JSON, nullable=True)  # {"field": ..., "order": "asc"|"desc"}
    is_public = Column(Boolean, nullable=False, default=False)
    is_default = Column(Boolean, nullable=False, default=False)
    usage_count = Column(Integer, nullable=False, default=0)
    last_used = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_saved_searches_public", "is_public"),
        Index("idx_saved_searches_usage", "usage_count"),
    )

    def __repr__(self) -> str:
        return (
            f"<SavedSearchRecord(id={self.id}, user_id={self.user_id}, "
            f"name={self.name}, is_default={self.is_default})>"
        )


class SearchHistoryRecord(Base):
    """One executed search, kept for the user's recent-searches list."""
    __tablename__ = "search_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False)
    query = Column(Text, nullable=False)
    entity_type = Column(String(20), nullable=False, default="all")
    results_count = Column(Integer, nullable=False, default=0)
    search_time_ms = Column(Integer, nullable=False, default=0)
    timestamp = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_search_history_user_timestamp", "user_id", "timestamp"),
    )

    def __repr__(self) -> str:
        return (
            f"<SearchHistoryRecord(id={self.id}, user_id={self.user_id}, "
            f"query={self.query!r})>"
        )
