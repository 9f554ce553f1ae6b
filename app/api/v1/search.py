"""
Full-Text Search API.

Ranked search across contacts, projects, and tasks with structured filters,
highlighting, and autocomplete, plus the index maintenance hooks used by the
entity stores and the admin rebuild.
"""

import logging
from dataclasses import asdict
from typing import List, Optional, Dict, Any, Callable

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.database import get_db, get_session_factory
from app.core.errors import SearchServiceError
from app.search.engine import SearchEngine
from app.search.index_store import IndexStore
from app.search.maintenance import schedule_index_removal, schedule_index_update
from app.search.types import (
    SearchEntityType,
    SearchFilters,
    SearchResponse as EngineResponse,
    SortSpec,
    parse_entity_type,
)
from app.users.permissions import require_admin
from app.users.search_history import SearchHistoryService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/search", tags=["Search"])


def get_index_session_factory() -> Callable[[], Session]:
    """Session factory used by background index maintenance."""
    return get_session_factory()


# =============================================================================
# Request/Response Models
# =============================================================================


class DateRangeModel(BaseModel):
    start: Optional[int] = Field(None, description="Earliest created_at (epoch ms, inclusive)")
    end: Optional[int] = Field(None, description="Latest created_at (epoch ms, inclusive)")


class CustomFieldModel(BaseModel):
    field: str = Field(..., min_length=1)
    operator: str = Field(
        ...,
        pattern="^(equals|not_equals|contains|not_contains|greater_than|less_than|starts_with|ends_with)$",
    )
    value: str


class SearchFiltersModel(BaseModel):
    """Structured filters; omitted criteria match everything."""
    date_range: Optional[DateRangeModel] = None
    status: Optional[List[str]] = None
    priority: Optional[List[str]] = None
    assigned_to: Optional[List[str]] = None
    project_ids: Optional[List[str]] = None
    contact_ids: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    custom_fields: Optional[List[CustomFieldModel]] = None


class SortModel(BaseModel):
    field: str = Field(..., min_length=1, description="Metadata field, e.g. title, created_at")
    order: str = Field("desc", pattern="^(asc|desc)$")


class SearchRequest(BaseModel):
    """Search request with the full filter object."""
    query: str = Field(..., description="Search query")
    entity_type: str = Field("all", description="contact, project, task or all")
    filters: Optional[SearchFiltersModel] = None
    sort_by: Optional[SortModel] = None
    limit: Optional[int] = Field(None, ge=1, description="Results per page (default from settings)")
    offset: int = Field(0, ge=0, description="Results to skip")
    user_id: Optional[str] = Field(None, description="Record this search in the user's history")


class SearchResultResponse(BaseModel):
    """A single search result."""
    entity_type: str = Field(..., description="Entity type: contact, project, task")
    entity_id: str = Field(..., description="Entity ID in its own store")
    title: str = Field(..., description="Entity title or name")
    description: Optional[str] = Field(None, description="Entity description")
    relevance_score: int = Field(..., description="Relevance score (> 0)")
    highlights: List[str] = Field(default_factory=list, description="Marked matching fragments")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Index metadata and enrichment")


class SearchResponse(BaseModel):
    """Complete search response."""
    results: List[SearchResultResponse] = Field(..., description="Search results")
    total_count: int = Field(..., description="Total matching results before pagination")
    search_time_ms: int = Field(..., description="Search execution time in milliseconds")


class SuggestResponse(BaseModel):
    """Autocomplete suggestions response."""
    suggestions: List[str]
    prefix: str


class IndexUpdateRequest(BaseModel):
    """Current field values of an entity, sent by its store after a write."""
    fields: Dict[str, Any] = Field(default_factory=dict)


class IndexMaintenanceResponse(BaseModel):
    accepted: bool
    entity_type: str
    entity_id: str


class RebuildResponse(BaseModel):
    """Response from rebuild operation."""
    success: bool
    counts: Dict[str, int] = Field(..., description="Records indexed per entity type")
    total: int = Field(..., description="Total records indexed")


class SearchStatsResponse(BaseModel):
    """Search index statistics."""
    total_indexed: int
    by_type: Dict[str, int]
    source_counts: Dict[str, int]
    last_updated: Optional[str]
    sample_entries: List[Dict[str, Any]] = Field(default_factory=list)
    error: Optional[str] = None


# =============================================================================
# Helpers
# =============================================================================


def _entity_type_or_400(value: Optional[str], allow_all: bool = True) -> SearchEntityType:
    try:
        return parse_entity_type(value, allow_all=allow_all)
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid entity type: {value}. Valid types: contact, project, task"
            + (", all" if allow_all else ""),
        )


def _to_response(result: EngineResponse) -> SearchResponse:
    return SearchResponse(
        results=[SearchResultResponse(**asdict(r)) for r in result.results],
        total_count=result.total_count,
        search_time_ms=result.search_time_ms,
    )


def run_search(
    db: Session,
    query: str,
    entity_type: SearchEntityType,
    filters: Optional[SearchFilters],
    sort_by: Optional[SortSpec],
    limit: Optional[int],
    offset: int,
    user_id: Optional[str] = None,
) -> SearchResponse:
    """Execute a search and, when user_id is given, log it to history."""
    settings = get_settings()
    if limit is None:
        limit = settings.search_default_limit
    engine = SearchEngine(db)
    result = engine.search(
        query=query,
        entity_type=entity_type,
        filters=filters,
        sort_by=sort_by,
        limit=min(limit, settings.search_max_limit),
        offset=offset,
    )

    if user_id:
        try:
            SearchHistoryService(db).record(
                user_id=user_id,
                query=query,
                entity_type=entity_type.value,
                results_count=result.total_count,
                search_time_ms=result.search_time_ms,
            )
        except SQLAlchemyError as e:
            # History is best effort; the results are still returned
            db.rollback()
            logger.warning(f"Could not record search history for user {user_id}: {e}")

    return _to_response(result)


# =============================================================================
# Endpoints
# =============================================================================


@router.get("", response_model=SearchResponse)
async def search(
    q: str = Query(..., min_length=0, description="Search query"),
    entity_type: str = Query("all", description="contact, project, task or all"),
    status: Optional[List[str]] = Query(None, description="Allowed status values"),
    priority: Optional[List[str]] = Query(None, description="Allowed priority values"),
    tags: Optional[List[str]] = Query(None, description="Match any of these tags"),
    date_from: Optional[int] = Query(None, description="Earliest created_at (epoch ms)"),
    date_to: Optional[int] = Query(None, description="Latest created_at (epoch ms)"),
    sort_field: Optional[str] = Query(None, description="Metadata field to sort by"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    limit: Optional[int] = Query(None, ge=1, description="Results per page (default from settings)"),
    offset: int = Query(0, ge=0, description="Results to skip"),
    user_id: Optional[str] = Query(None, description="Record this search in the user's history"),
    db: Session = Depends(get_db)
):
    """
    Search across contacts, projects, and tasks.

    **Examples:**
    - `/search?q=acme` - Everything mentioning Acme
    - `/search?q=rollout&entity_type=task&priority=high` - High-priority tasks
    - `/search?q=acme&sort_field=created_at&sort_order=asc` - Oldest first
    """
    scope = _entity_type_or_400(entity_type)

    filters = SearchFilters.from_dict({
        "status": status,
        "priority": priority,
        "tags": tags,
        "date_range": {"start": date_from, "end": date_to}
        if date_from is not None or date_to is not None else None,
    })
    sort_by = SortSpec.from_dict({"field": sort_field, "order": sort_order}) if sort_field else None

    try:
        return run_search(db, q, scope, filters, sort_by, limit, offset, user_id)
    except SearchServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Search error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Search failed: {str(e)}")


@router.post("/query", response_model=SearchResponse)
async def search_with_body(
    request: SearchRequest,
    db: Session = Depends(get_db)
):
    """Search with a JSON body, including custom-field predicates."""
    scope = _entity_type_or_400(request.entity_type)

    filters = SearchFilters.from_dict(request.filters.model_dump()) if request.filters else None
    sort_by = SortSpec.from_dict(request.sort_by.model_dump()) if request.sort_by else None

    try:
        return run_search(
            db, request.query, scope, filters, sort_by,
            request.limit, request.offset, request.user_id,
        )
    except SearchServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Search error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Search failed: {str(e)}")


@router.get("/suggest", response_model=SuggestResponse)
async def suggest(
    prefix: str = Query(..., description="Search prefix for autocomplete"),
    entity_type: str = Query("all", description="contact, project, task or all"),
    limit: Optional[int] = Query(None, ge=1, le=50, description="Maximum suggestions to return"),
    db: Session = Depends(get_db)
):
    """
    Get autocomplete suggestions for a search prefix.

    Prefixes shorter than two characters return no suggestions.

    **Examples:**
    - `/search/suggest?prefix=ac` - Suggests "Acme Rollout", "account", etc.
    """
    scope = _entity_type_or_400(entity_type)

    try:
        if limit is None:
            limit = get_settings().suggest_default_limit
        suggestions = SearchEngine(db).suggest(prefix=prefix, entity_type=scope, limit=limit)
        return SuggestResponse(suggestions=suggestions, prefix=prefix)
    except Exception as e:
        logger.error(f"Suggest error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Autocomplete failed: {str(e)}")


@router.put("/index/{entity_type}/{entity_id}", response_model=IndexMaintenanceResponse, status_code=202)
async def update_index_entry(
    entity_type: str,
    entity_id: str,
    request: IndexUpdateRequest,
    background_tasks: BackgroundTasks,
    session_factory: Callable[[], Session] = Depends(get_index_session_factory),
):
    """
    Queue an index upsert for an entity that was created or updated.

    Called by the entity stores after a successful write. The upsert runs
    after the response; failures are logged and repaired by a rebuild.
    """
    scope = _entity_type_or_400(entity_type, allow_all=False)
    schedule_index_update(background_tasks, scope.value, entity_id, request.fields, session_factory)
    return IndexMaintenanceResponse(accepted=True, entity_type=scope.value, entity_id=entity_id)


@router.delete("/index/{entity_type}/{entity_id}", response_model=IndexMaintenanceResponse, status_code=202)
async def remove_index_entry(
    entity_type: str,
    entity_id: str,
    background_tasks: BackgroundTasks,
    session_factory: Callable[[], Session] = Depends(get_index_session_factory),
):
    """Queue removal of a deleted entity from the index."""
    scope = _entity_type_or_400(entity_type, allow_all=False)
    schedule_index_removal(background_tasks, scope.value, entity_id, session_factory)
    return IndexMaintenanceResponse(accepted=True, entity_type=scope.value, entity_id=entity_id)


@router.post("/rebuild", response_model=RebuildResponse)
async def rebuild(
    user_id: str = Query(..., min_length=1, description="Requesting user (must be an admin)"),
    db: Session = Depends(get_db)
):
    """
    Clear the search index and rebuild it from the contact, project and task stores.

    Admin only. Searches running during a rebuild may see a partial index.
    """
    try:
        require_admin(db, user_id)
        counts = IndexStore(db).rebuild_all()
        total = sum(counts.values())

        logger.info(f"Rebuild complete: {counts}, total={total}")

        return RebuildResponse(success=True, counts=counts, total=total)

    except SearchServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Rebuild error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Rebuild failed: {str(e)}")


@router.get("/stats", response_model=SearchStatsResponse)
async def get_stats(db: Session = Depends(get_db)):
    """
    Get search index statistics.

    Returns counts of indexed entries, entity-store record counts, and the
    last update timestamp.
    """
    stats = IndexStore(db).get_stats()

    return SearchStatsResponse(
        total_indexed=stats.get("total_indexed", 0),
        by_type=stats.get("by_type", {}),
        source_counts=stats.get("source_counts", {}),
        last_updated=stats.get("last_updated"),
        sample_entries=stats.get("sample_entries", []),
        error=stats.get("error")
    )
