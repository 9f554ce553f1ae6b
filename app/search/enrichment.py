"""
Read-only lookups into the entity stores for result enrichment.

Only the current page of results is enriched. A missing referenced record,
or a failed lookup, drops the corresponding field instead of failing the
search.
"""

import logging
from typing import Any, Dict, Optional, Type

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.models import Base, Project, Task, User
from app.search.types import SearchEntityType

logger = logging.getLogger(__name__)


class EntityDirectory:
    """Point lookups by id into the project, task and user stores."""

    def __init__(self, db: Session):
        self.db = db

    def _get(self, model: Type[Base], record_id: Optional[str]):
        if not record_id:
            return None
        try:
            return self.db.get(model, record_id)
        except SQLAlchemyError as e:
            logger.warning(f"Enrichment lookup failed for {model.__tablename__} {record_id}: {e}")
            self.db.rollback()
            return None

    def enrich(self, entity_type: str, entity_id: str) -> Dict[str, Any]:
        """
        Build the extra metadata fields for one result.

        Tasks gain project_id, project_name and assignee_name; projects gain
        creator_name. Contacts have no joins.
        """
        extra: Dict[str, Any] = {}

        if entity_type == SearchEntityType.TASK.value:
            task = self._get(Task, entity_id)
            if task is None:
                return extra
            if task.project_id:
                extra["project_id"] = task.project_id
            project = self._get(Project, task.project_id)
            if project is not None:
                extra["project_name"] = project.name
            assignee = self._get(User, task.assigned_to)
            if assignee is not None:
                extra["assignee_name"] = assignee.name

        elif entity_type == SearchEntityType.PROJECT.value:
            project = self._get(Project, entity_id)
            if project is None:
                return extra
            creator = self._get(User, project.created_by)
            if creator is not None:
                extra["creator_name"] = creator.name

        return extra
