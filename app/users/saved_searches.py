"""
Saved Search Service.

Provides create/list/update/delete for reusable search definitions, usage
tracking, and the one-default-per-owner rule.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.errors import AuthorizationError, NotFoundError, ValidationError
from app.core.search_models import SavedSearchRecord
from app.search.types import SearchEntityType, SearchFilters, SortOrder, SortSpec, parse_entity_type

logger = logging.getLogger(__name__)


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class SavedSearchDefinition:
    """Caller-supplied fields of a saved search."""
    name: str
    query: str
    entity_type: str = SearchEntityType.ALL.value
    description: Optional[str] = None
    filters: Dict[str, Any] = field(default_factory=dict)
    sort_by: Optional[Dict[str, Any]] = None
    is_public: bool = False
    is_default: bool = False


@dataclass
class SavedSearch:
    """Saved search data model."""
    id: int
    user_id: str
    name: str
    description: Optional[str]
    entity_type: str
    query: str
    filters: Dict[str, Any]
    sort_by: Optional[Dict[str, Any]]
    is_public: bool
    is_default: bool
    usage_count: int
    last_used: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    def search_filters(self) -> SearchFilters:
        return SearchFilters.from_dict(self.filters)

    def sort_spec(self) -> Optional[SortSpec]:
        return SortSpec.from_dict(self.sort_by)


def _to_saved_search(record: SavedSearchRecord) -> SavedSearch:
    return SavedSearch(
        id=record.id,
        user_id=record.user_id,
        name=record.name,
        description=record.description,
        entity_type=record.entity_type,
        query=record.query,
        filters=record.filters or {},
        sort_by=record.sort_by,
        is_public=record.is_public,
        is_default=record.is_default,
        usage_count=record.usage_count or 0,
        last_used=record.last_used,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


# =============================================================================
# Validation
# =============================================================================


def _require_text(value: Optional[str], name: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{name} is required", {"field": name})
    return value.strip()


def _validate_entity_type(value: Optional[str]) -> str:
    try:
        return parse_entity_type(value).value
    except ValueError:
        raise ValidationError(f"Invalid entity type: {value}", {"field": "entity_type"})


def _validate_filters(filters: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    try:
        return SearchFilters.from_dict(filters).to_dict()
    except (KeyError, ValueError, TypeError, AttributeError) as e:
        raise ValidationError(f"Invalid filters: {e}", {"field": "filters"})


def _validate_sort(sort_by: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not sort_by:
        return None
    if not sort_by.get("field"):
        raise ValidationError("sort_by.field is required", {"field": "sort_by"})
    order = sort_by.get("order", SortOrder.DESC.value)
    if order not in {o.value for o in SortOrder}:
        raise ValidationError(f"Invalid sort order: {order}", {"field": "sort_by"})
    return {"field": sort_by["field"], "order": order}


# =============================================================================
# Saved Search Service
# =============================================================================


class SavedSearchService:
    """Service for managing saved searches."""

    def __init__(self, db: Session):
        self.db = db

    def _get_record(self, search_id: int) -> SavedSearchRecord:
        record = self.db.get(SavedSearchRecord, search_id)
        if record is None:
            raise NotFoundError("Saved search", search_id)
        return record

    def _clear_default(self, user_id: str, keep_id: Optional[int] = None) -> int:
        """Unset is_default on the owner's searches; flushed, not committed."""
        query = self.db.query(SavedSearchRecord).filter(
            SavedSearchRecord.user_id == user_id,
            SavedSearchRecord.is_default.is_(True),
        )
        if keep_id is not None:
            query = query.filter(SavedSearchRecord.id != keep_id)
        return query.update({SavedSearchRecord.is_default: False}, synchronize_session="fetch")

    def save(self, definition: SavedSearchDefinition, user_id: str) -> SavedSearch:
        """
        Create a saved search.

        When is_default is requested, the owner's previous default is cleared
        in the same transaction as the insert.

        Raises:
            ValidationError: Blank name/query/owner, bad entity type, filters or sort
        """
        user_id = _require_text(user_id, "user_id")
        name = _require_text(definition.name, "name")
        query = _require_text(definition.query, "query")
        entity_type = _validate_entity_type(definition.entity_type)
        filters = _validate_filters(definition.filters)
        sort_by = _validate_sort(definition.sort_by)

        try:
            if definition.is_default:
                cleared = self._clear_default(user_id)
                if cleared:
                    logger.info(f"Cleared previous default saved search for user {user_id}")

            now = datetime.utcnow()
            record = SavedSearchRecord(
                user_id=user_id,
                name=name,
                description=definition.description,
                entity_type=entity_type,
                query=query,
                filters=filters,
                sort_by=sort_by,
                is_public=bool(definition.is_public),
                is_default=bool(definition.is_default),
                usage_count=0,
                created_at=now,
                updated_at=now,
            )
            self.db.add(record)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(record)
        return _to_saved_search(record)

    def get(self, search_id: int) -> SavedSearch:
        """
        Get a saved search by ID.

        Raises:
            NotFoundError: No saved search with this id
        """
        return _to_saved_search(self._get_record(search_id))

    def list(
        self,
        user_id: Optional[str] = None,
        entity_type: Optional[str] = None,
    ) -> List[SavedSearch]:
        """
        List saved searches visible to a caller.

        With a user_id: that user's searches plus every public one. Without:
        public searches only. Most used first, then newest.
        """
        query = self.db.query(SavedSearchRecord)

        if entity_type:
            query = query.filter(SavedSearchRecord.entity_type == _validate_entity_type(entity_type))

        if user_id:
            query = query.filter(or_(
                SavedSearchRecord.is_public.is_(True),
                SavedSearchRecord.user_id == user_id,
            ))
        else:
            query = query.filter(SavedSearchRecord.is_public.is_(True))

        records = query.order_by(
            SavedSearchRecord.usage_count.desc(),
            SavedSearchRecord.created_at.desc(),
            SavedSearchRecord.id.desc(),
        ).all()

        return [_to_saved_search(record) for record in records]

    def update(
        self,
        search_id: int,
        user_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
        entity_type: Optional[str] = None,
        query: Optional[str] = None,
        filters: Optional[Dict[str, Any]] = None,
        sort_by: Optional[Dict[str, Any]] = None,
        is_public: Optional[bool] = None,
        is_default: Optional[bool] = None,
    ) -> SavedSearch:
        """
        Update a saved search owned by user_id.

        Raises:
            NotFoundError: No saved search with this id
            AuthorizationError: Caller does not own the search
            ValidationError: Invalid new values
        """
        record = self._get_record(search_id)
        if record.user_id != user_id:
            raise AuthorizationError(
                "Only the owner can modify a saved search",
                {"search_id": search_id, "user_id": user_id},
            )

        try:
            if name is not None:
                record.name = _require_text(name, "name")
            if description is not None:
                record.description = description
            if entity_type is not None:
                record.entity_type = _validate_entity_type(entity_type)
            if query is not None:
                record.query = _require_text(query, "query")
            if filters is not None:
                record.filters = _validate_filters(filters)
            if sort_by is not None:
                record.sort_by = _validate_sort(sort_by)
            if is_public is not None:
                record.is_public = is_public
            if is_default is not None:
                if is_default:
                    self._clear_default(record.user_id, keep_id=record.id)
                record.is_default = is_default

            record.updated_at = datetime.utcnow()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(record)
        return _to_saved_search(record)

    def record_usage(self, search_id: int) -> SavedSearch:
        """
        Record that a saved search was executed.

        Raises:
            NotFoundError: No saved search with this id
        """
        record = self._get_record(search_id)
        now = datetime.utcnow()
        record.usage_count = (record.usage_count or 0) + 1
        record.last_used = now
        record.updated_at = now
        self.db.commit()
        self.db.refresh(record)
        return _to_saved_search(record)

    def delete(self, search_id: int, user_id: str) -> None:
        """
        Delete a saved search.

        Raises:
            NotFoundError: No saved search with this id
            AuthorizationError: Caller does not own the search
        """
        record = self._get_record(search_id)
        if record.user_id != user_id:
            raise AuthorizationError(
                "Only the owner can delete a saved search",
                {"search_id": search_id, "user_id": user_id},
            )
        self.db.delete(record)
        self.db.commit()
        logger.info(f"Deleted saved search {search_id} for user {user_id}")
