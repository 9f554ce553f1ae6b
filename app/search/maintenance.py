"""
Best-effort index maintenance triggered by entity writes.

Entity stores call schedule_index_update / schedule_index_removal with the
request's BackgroundTasks. The index work runs after the response is sent,
in its own session, and every failure is logged and dropped: an entity write
never fails or rolls back because of indexing. Drift is repaired by
IndexStore.rebuild_all().
"""

import logging
from typing import Any, Callable, Mapping, Optional

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session

from app.core.database import get_session_factory
from app.core.errors import IndexMaintenanceError
from app.search.index_store import IndexStore

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


def _run(
    operation: str,
    entity_type: str,
    entity_id: str,
    action: Callable[[IndexStore], Any],
    session_factory: Optional[SessionFactory],
) -> bool:
    db = None
    try:
        db = (session_factory or get_session_factory())()
        action(IndexStore(db))
        return True
    except Exception as e:
        if db is not None:
            db.rollback()
        error = IndexMaintenanceError(
            f"Index {operation} failed: {e}",
            entity_type=str(entity_type),
            entity_id=str(entity_id),
            operation=operation,
        )
        logger.error(f"{error} {error.to_dict()['details']}", exc_info=True)
        return False
    finally:
        if db is not None:
            db.close()


def apply_index_update(
    entity_type: str,
    entity_id: str,
    fields: Mapping[str, Any],
    session_factory: Optional[SessionFactory] = None,
) -> bool:
    """
    Upsert one index entry in a dedicated session.

    Returns:
        True on success, False if the update failed (already logged)
    """
    return _run(
        "upsert", entity_type, entity_id,
        lambda store: store.upsert(entity_type, entity_id, fields),
        session_factory,
    )


def apply_index_removal(
    entity_type: str,
    entity_id: str,
    session_factory: Optional[SessionFactory] = None,
) -> bool:
    """
    Remove one index entry in a dedicated session.

    Returns:
        True on success (including nothing to remove), False on failure
    """
    return _run(
        "remove", entity_type, entity_id,
        lambda store: store.remove(entity_type, entity_id),
        session_factory,
    )


def schedule_index_update(
    background_tasks: BackgroundTasks,
    entity_type: str,
    entity_id: str,
    fields: Mapping[str, Any],
    session_factory: Optional[SessionFactory] = None,
) -> None:
    """Queue an index upsert to run after the current response."""
    background_tasks.add_task(
        apply_index_update, entity_type, entity_id, dict(fields), session_factory
    )


def schedule_index_removal(
    background_tasks: BackgroundTasks,
    entity_type: str,
    entity_id: str,
    session_factory: Optional[SessionFactory] = None,
) -> None:
    """Queue an index removal to run after the current response."""
    background_tasks.add_task(apply_index_removal, entity_type, entity_id, session_factory)
