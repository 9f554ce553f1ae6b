"""
Per-entity-type projections into the search index.

Each indexable entity type has exactly one EntityProjection describing which
fields feed the searchable content (in order) and the metadata used for
filtering and sorting. IndexStore.upsert selects the projection through
get_projection(); nothing else branches on entity type.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Type

from app.core.models import Base, Contact, Project, Task
from app.search.types import SearchEntityType


def to_epoch_ms(value: Any) -> Optional[int]:
    """Normalise a datetime or numeric timestamp to epoch milliseconds."""
    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(value.timestamp() * 1000)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return int(value)
    return None


def _text_values(fields: Mapping[str, Any], names: Iterable[str]) -> List[str]:
    """Collect non-empty field values; list-valued fields contribute each item."""
    parts: List[str] = []
    for name in names:
        value = fields.get(name)
        if isinstance(value, (list, tuple)):
            parts.extend(str(item) for item in value if item)
        elif value:
            parts.append(str(value))
    return parts


def _as_tag_list(value: Any) -> List[str]:
    """Tags are always stored as a list of strings; a bare string is one tag."""
    if isinstance(value, (list, tuple, set)):
        return [str(tag) for tag in value if tag is not None and tag != ""]
    return [str(value)] if value != "" else []


@dataclass(frozen=True)
class EntityProjection:
    """
    Field mapping for one entity type.

    Attributes:
        entity_type: Type this projection applies to
        model: Entity-store table, used by rebuild and enrichment
        content_fields: Fields concatenated into searchable content, in order
        title_field: Field copied to metadata.title
        description_field: Field copied to metadata.description
        metadata_fields: Extra fields copied verbatim (status, priority, tags)
    """
    entity_type: SearchEntityType
    model: Type[Base]
    content_fields: Tuple[str, ...]
    title_field: str
    description_field: str
    metadata_fields: Tuple[str, ...] = ()

    def build_content(self, fields: Mapping[str, Any]) -> str:
        return " ".join(_text_values(fields, self.content_fields))

    def build_metadata(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        title = fields.get(self.title_field)
        metadata: Dict[str, Any] = {"title": str(title) if title is not None else None}
        if fields.get(self.description_field):
            metadata["description"] = str(fields[self.description_field])
        for name in self.metadata_fields:
            value = fields.get(name)
            if value is None:
                continue
            if name == "tags":
                metadata[name] = _as_tag_list(value)
            else:
                metadata[name] = list(value) if isinstance(value, (list, tuple, set)) else value
        metadata["created_at"] = to_epoch_ms(fields.get("created_at"))
        metadata["updated_at"] = to_epoch_ms(fields.get("updated_at"))
        return metadata


def record_to_fields(record: Base) -> Dict[str, Any]:
    """Read an entity-store row into the plain field mapping upsert expects."""
    return {column.name: getattr(record, column.name) for column in record.__table__.columns}


CONTACT_PROJECTION = EntityProjection(
    entity_type=SearchEntityType.CONTACT,
    model=Contact,
    content_fields=("name", "email", "phone", "company", "notes", "tags"),
    title_field="name",
    description_field="notes",
    metadata_fields=("tags",),
)

PROJECT_PROJECTION = EntityProjection(
    entity_type=SearchEntityType.PROJECT,
    model=Project,
    content_fields=("name", "company", "description", "status"),
    title_field="name",
    description_field="description",
    metadata_fields=("status",),
)

TASK_PROJECTION = EntityProjection(
    entity_type=SearchEntityType.TASK,
    model=Task,
    content_fields=("title", "description", "status", "priority"),
    title_field="title",
    description_field="description",
    metadata_fields=("status", "priority"),
)

PROJECTIONS: Dict[SearchEntityType, EntityProjection] = {
    projection.entity_type: projection
    for projection in (CONTACT_PROJECTION, PROJECT_PROJECTION, TASK_PROJECTION)
}


def get_projection(entity_type: SearchEntityType) -> EntityProjection:
    """
    Look up the projection for a concrete entity type.

    Raises:
        ValueError: entity_type is ALL or otherwise not indexable
    """
    try:
        return PROJECTIONS[entity_type]
    except KeyError:
        raise ValueError(f"Entity type {entity_type!r} is not indexable")
