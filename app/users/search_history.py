"""
Search History Service.

Append-only per-user log of executed searches, trimmed to the most recent
entries on every write.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.errors import ValidationError
from app.core.search_models import SearchHistoryRecord
from app.search.types import parse_entity_type

logger = logging.getLogger(__name__)


@dataclass
class SearchHistoryEntry:
    """Search history data model."""
    id: int
    user_id: str
    query: str
    entity_type: str
    results_count: int
    search_time_ms: int
    timestamp: datetime


def _to_entry(record: SearchHistoryRecord) -> SearchHistoryEntry:
    return SearchHistoryEntry(
        id=record.id,
        user_id=record.user_id,
        query=record.query,
        entity_type=record.entity_type,
        results_count=record.results_count,
        search_time_ms=record.search_time_ms,
        timestamp=record.timestamp,
    )


class SearchHistoryService:
    """Service for recording and listing a user's recent searches."""

    def __init__(self, db: Session, retention: Optional[int] = None):
        self.db = db
        self._retention = retention

    @property
    def retention(self) -> int:
        if self._retention is None:
            self._retention = get_settings().search_history_retention
        return self._retention

    def _recent_first(self, user_id: str):
        return (
            self.db.query(SearchHistoryRecord)
            .filter(SearchHistoryRecord.user_id == user_id)
            .order_by(SearchHistoryRecord.timestamp.desc(), SearchHistoryRecord.id.desc())
        )

    def record(
        self,
        user_id: str,
        query: str,
        entity_type: str,
        results_count: int,
        search_time_ms: int,
    ) -> SearchHistoryEntry:
        """
        Append a history row, then trim the user's history to the retention limit.

        Raises:
            ValidationError: Blank user id or unknown entity type
        """
        if not user_id or not user_id.strip():
            raise ValidationError("user_id is required", {"field": "user_id"})
        try:
            entity_type = parse_entity_type(entity_type).value
        except ValueError:
            raise ValidationError(f"Invalid entity type: {entity_type}", {"field": "entity_type"})

        record = SearchHistoryRecord(
            user_id=user_id,
            query=query or "",
            entity_type=entity_type,
            results_count=results_count,
            search_time_ms=search_time_ms,
            timestamp=datetime.utcnow(),
        )
        self.db.add(record)
        self.db.flush()

        stale_ids = [
            row.id
            for row in self._recent_first(user_id)
            .with_entities(SearchHistoryRecord.id)
            .offset(self.retention)
            .all()
        ]
        if stale_ids:
            self.db.query(SearchHistoryRecord).filter(
                SearchHistoryRecord.id.in_(stale_ids)
            ).delete(synchronize_session=False)
            logger.debug(f"Pruned {len(stale_ids)} history entries for user {user_id}")

        self.db.commit()
        self.db.refresh(record)
        return _to_entry(record)

    def get_history(self, user_id: str, limit: int = 20) -> List[SearchHistoryEntry]:
        """Most recent searches first."""
        records = self._recent_first(user_id).limit(max(limit, 0)).all()
        return [_to_entry(record) for record in records]
