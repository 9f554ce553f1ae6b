"""
Type definitions for the search subsystem.

Defines:
- Entity type / scope enumeration
- Structured filters and sort order (also persisted with saved searches)
- Search results and responses
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Dict, Any, Union


class SearchEntityType(str, Enum):
    """Searchable entity types. ALL is a query scope, never stored on an index entry."""
    CONTACT = "contact"
    PROJECT = "project"
    TASK = "task"
    ALL = "all"


INDEXABLE_TYPES = (SearchEntityType.CONTACT, SearchEntityType.PROJECT, SearchEntityType.TASK)


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class FilterOperator(str, Enum):
    """Operators accepted by custom-field predicates."""
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"


def parse_entity_type(value: Union[str, SearchEntityType, None], allow_all: bool = True) -> SearchEntityType:
    """
    Coerce a caller-supplied entity type.

    Accepts the singular values ("task") as well as the plural forms used by
    the business application ("tasks"). None means ALL.

    Raises:
        ValueError: Unknown type, or ALL where only a concrete type is allowed
    """
    if value is None:
        result = SearchEntityType.ALL
    elif isinstance(value, SearchEntityType):
        result = value
    else:
        normalized = value.strip().lower()
        if normalized.endswith("s") and normalized[:-1] in {t.value for t in INDEXABLE_TYPES}:
            normalized = normalized[:-1]
        result = SearchEntityType(normalized)

    if result == SearchEntityType.ALL and not allow_all:
        raise ValueError("A concrete entity type (contact, project, task) is required")
    return result


@dataclass
class DateRange:
    """Inclusive creation-time window in epoch milliseconds; either bound optional."""
    start: Optional[int] = None
    end: Optional[int] = None


@dataclass
class CustomFieldFilter:
    """Predicate on one metadata field, e.g. ("status", CONTAINS, "prog")."""
    field: str
    operator: FilterOperator
    value: str


@dataclass
class SearchFilters:
    """
    Structured post-score filters. Absent criteria pass every entry.

    Attributes:
        date_range: Window on the entity's created_at
        status: Allowed status values
        priority: Allowed priority values
        assigned_to: Assignee user ids (persisted with saved searches)
        project_ids: Project ids (persisted with saved searches)
        contact_ids: Contact ids (persisted with saved searches)
        tags: Entry must carry at least one of these tags
        custom_fields: Additional metadata predicates, AND-ed
    """
    date_range: Optional[DateRange] = None
    status: Optional[List[str]] = None
    priority: Optional[List[str]] = None
    assigned_to: Optional[List[str]] = None
    project_ids: Optional[List[str]] = None
    contact_ids: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    custom_fields: Optional[List[CustomFieldFilter]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization (None values dropped)."""
        data: Dict[str, Any] = {}
        if self.date_range is not None:
            data["date_range"] = {"start": self.date_range.start, "end": self.date_range.end}
        for name in ("status", "priority", "assigned_to", "project_ids", "contact_ids", "tags"):
            value = getattr(self, name)
            if value is not None:
                data[name] = list(value)
        if self.custom_fields is not None:
            data["custom_fields"] = [
                {"field": cf.field, "operator": cf.operator.value, "value": cf.value}
                for cf in self.custom_fields
            ]
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SearchFilters":
        """Create from dictionary."""
        data = data or {}
        date_range = None
        if data.get("date_range"):
            date_range = DateRange(
                start=data["date_range"].get("start"),
                end=data["date_range"].get("end"),
            )
        custom_fields = None
        if data.get("custom_fields") is not None:
            custom_fields = [
                CustomFieldFilter(
                    field=cf["field"],
                    operator=FilterOperator(cf["operator"]),
                    value=str(cf["value"]),
                )
                for cf in data["custom_fields"]
            ]
        return cls(
            date_range=date_range,
            status=data.get("status"),
            priority=data.get("priority"),
            assigned_to=data.get("assigned_to"),
            project_ids=data.get("project_ids"),
            contact_ids=data.get("contact_ids"),
            tags=data.get("tags"),
            custom_fields=custom_fields,
        )


@dataclass
class SortSpec:
    """Re-sort by a metadata field, overriding relevance order."""
    field: str
    order: SortOrder = SortOrder.DESC

    def to_dict(self) -> Dict[str, Any]:
        return {"field": self.field, "order": self.order.value}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["SortSpec"]:
        if not data:
            return None
        return cls(field=data["field"], order=SortOrder(data.get("order", "desc")))


@dataclass
class SearchResult:
    """A single ranked, enriched search hit."""
    entity_type: str
    entity_id: str
    title: str
    description: Optional[str]
    relevance_score: int
    highlights: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SearchResponse:
    """Complete search response: one page of results plus totals."""
    results: List[SearchResult]
    total_count: int
    search_time_ms: int
