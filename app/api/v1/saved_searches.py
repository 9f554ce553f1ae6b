"""
Saved Searches and Search History API.

Endpoints for managing reusable search definitions and listing a user's
recent searches.
"""

import logging
from typing import List, Optional, Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.api.v1.search import SearchResponse, run_search
from app.core.database import get_db
from app.core.errors import SearchServiceError
from app.search.types import parse_entity_type
from app.users.saved_searches import SavedSearch, SavedSearchDefinition, SavedSearchService
from app.users.search_history import SearchHistoryEntry, SearchHistoryService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Saved Searches & History"])


# =============================================================================
# Request Models
# =============================================================================


class SavedSearchCreate(BaseModel):
    """Request to save a search."""
    user_id: str = Field(..., min_length=1, description="Owner user ID")
    name: str = Field(..., min_length=1, max_length=255, description="Search name")
    description: Optional[str] = Field(None, description="Optional description")
    entity_type: str = Field("all", description="contact, project, task or all")
    query: str = Field(..., description="Search query text")
    filters: Dict[str, Any] = Field(default_factory=dict, description="Search filters")
    sort_by: Optional[Dict[str, Any]] = Field(None, description='e.g. {"field": "created_at", "order": "desc"}')
    is_public: bool = False
    is_default: bool = False


class SavedSearchUpdate(BaseModel):
    """Request to update a saved search."""
    user_id: str = Field(..., min_length=1, description="Caller; must own the search")
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    entity_type: Optional[str] = None
    query: Optional[str] = None
    filters: Optional[Dict[str, Any]] = None
    sort_by: Optional[Dict[str, Any]] = None
    is_public: Optional[bool] = None
    is_default: Optional[bool] = None


class SearchHistoryCreate(BaseModel):
    """Request to log an executed search."""
    user_id: str = Field(..., min_length=1)
    query: str
    entity_type: str = "all"
    results_count: int = Field(..., ge=0)
    search_time_ms: int = Field(..., ge=0)


# =============================================================================
# Response Models
# =============================================================================


class SavedSearchResponse(BaseModel):
    """Saved search response."""
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
    last_used: Optional[str]
    created_at: str
    updated_at: str


class SearchHistoryResponse(BaseModel):
    """Search history entry response."""
    id: int
    user_id: str
    query: str
    entity_type: str
    results_count: int
    search_time_ms: int
    timestamp: str


def _saved_search_response(search: SavedSearch) -> SavedSearchResponse:
    return SavedSearchResponse(
        id=search.id,
        user_id=search.user_id,
        name=search.name,
        description=search.description,
        entity_type=search.entity_type,
        query=search.query,
        filters=search.filters,
        sort_by=search.sort_by,
        is_public=search.is_public,
        is_default=search.is_default,
        usage_count=search.usage_count,
        last_used=search.last_used.isoformat() if search.last_used else None,
        created_at=search.created_at.isoformat(),
        updated_at=search.updated_at.isoformat()
    )


def _history_response(entry: SearchHistoryEntry) -> SearchHistoryResponse:
    return SearchHistoryResponse(
        id=entry.id,
        user_id=entry.user_id,
        query=entry.query,
        entity_type=entry.entity_type,
        results_count=entry.results_count,
        search_time_ms=entry.search_time_ms,
        timestamp=entry.timestamp.isoformat()
    )


# =============================================================================
# Saved Search Endpoints
# =============================================================================


@router.post("/searches/saved", response_model=SavedSearchResponse, status_code=201)
async def create_saved_search(
    request: SavedSearchCreate,
    db: Session = Depends(get_db)
):
    """
    Save a search for later reuse.

    Setting `is_default` clears the owner's previous default search.
    """
    service = SavedSearchService(db)

    try:
        search = service.save(
            SavedSearchDefinition(
                name=request.name,
                query=request.query,
                entity_type=request.entity_type,
                description=request.description,
                filters=request.filters,
                sort_by=request.sort_by,
                is_public=request.is_public,
                is_default=request.is_default,
            ),
            request.user_id,
        )
        return _saved_search_response(search)
    except SearchServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Error creating saved search: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to create saved search: {str(e)}")


@router.get("/searches/saved", response_model=List[SavedSearchResponse])
async def list_saved_searches(
    user_id: Optional[str] = Query(None, description="Caller; omit to list public searches only"),
    entity_type: Optional[str] = Query(None, description="Only searches saved for this entity type"),
    db: Session = Depends(get_db)
):
    """
    List saved searches visible to the caller, most used first.

    **Example:** `GET /searches/saved?user_id=u_123&entity_type=task`
    """
    service = SavedSearchService(db)

    try:
        return [_saved_search_response(s) for s in service.list(user_id, entity_type)]
    except SearchServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Error listing saved searches: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to list saved searches: {str(e)}")


@router.get("/searches/saved/{search_id}", response_model=SavedSearchResponse)
async def get_saved_search(
    search_id: int,
    db: Session = Depends(get_db)
):
    """Get a saved search by ID."""
    try:
        return _saved_search_response(SavedSearchService(db).get(search_id))
    except SearchServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.patch("/searches/saved/{search_id}", response_model=SavedSearchResponse)
async def update_saved_search(
    search_id: int,
    request: SavedSearchUpdate,
    db: Session = Depends(get_db)
):
    """Update a saved search. Only the owner may update it."""
    changes = request.model_dump(exclude={"user_id"}, exclude_none=True)

    try:
        search = SavedSearchService(db).update(search_id, request.user_id, **changes)
        return _saved_search_response(search)
    except SearchServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Error updating saved search: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to update saved search: {str(e)}")


@router.delete("/searches/saved/{search_id}", status_code=204)
async def delete_saved_search(
    search_id: int,
    user_id: str = Query(..., min_length=1, description="Caller; must own the search"),
    db: Session = Depends(get_db)
):
    """Delete a saved search. Only the owner may delete it."""
    try:
        SavedSearchService(db).delete(search_id, user_id)
    except SearchServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/searches/saved/{search_id}/use", response_model=SavedSearchResponse)
async def record_saved_search_usage(
    search_id: int,
    db: Session = Depends(get_db)
):
    """Increment the usage count of a saved search."""
    try:
        return _saved_search_response(SavedSearchService(db).record_usage(search_id))
    except SearchServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/searches/saved/{search_id}/execute", response_model=SearchResponse)
async def execute_saved_search(
    search_id: int,
    limit: Optional[int] = Query(None, ge=1, description="Results per page (default from settings)"),
    offset: int = Query(0, ge=0),
    user_id: Optional[str] = Query(None, description="Record the run in this user's history"),
    db: Session = Depends(get_db)
):
    """
    Execute a saved search and return results.

    Runs the stored query, filters and sort through the search engine and
    increments the usage count.
    """
    service = SavedSearchService(db)

    try:
        search = service.record_usage(search_id)
        return run_search(
            db,
            query=search.query,
            entity_type=parse_entity_type(search.entity_type),
            filters=search.search_filters(),
            sort_by=search.sort_spec(),
            limit=limit,
            offset=offset,
            user_id=user_id,
        )
    except SearchServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Error executing saved search: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to execute saved search: {str(e)}")


# =============================================================================
# Search History Endpoints
# =============================================================================


@router.post("/searches/history", response_model=SearchHistoryResponse, status_code=201)
async def record_search_history(
    request: SearchHistoryCreate,
    db: Session = Depends(get_db)
):
    """Log an executed search for a user. Only the newest entries are kept."""
    try:
        entry = SearchHistoryService(db).record(
            user_id=request.user_id,
            query=request.query,
            entity_type=request.entity_type,
            results_count=request.results_count,
            search_time_ms=request.search_time_ms,
        )
        return _history_response(entry)
    except SearchServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/searches/history", response_model=List[SearchHistoryResponse])
async def get_search_history(
    user_id: str = Query(..., min_length=1),
    limit: int = Query(20, ge=1, le=1000),
    db: Session = Depends(get_db)
):
    """List a user's recent searches, newest first."""
    entries = SearchHistoryService(db).get_history(user_id, limit=limit)
    return [_history_response(e) for e in entries]
