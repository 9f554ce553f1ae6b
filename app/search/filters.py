"""
Structured filters and metadata sorting for search results.

All predicates work on the index entry metadata only, so no entity-store
lookups happen before pagination.
"""

from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from app.search.types import CustomFieldFilter, FilterOperator, SearchFilters, SortOrder, SortSpec

T = TypeVar("T")

# Accept the camelCase names used by the web client
SORT_FIELD_ALIASES = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}


def _in_date_range(metadata: Dict[str, Any], filters: SearchFilters) -> bool:
    date_range = filters.date_range
    if date_range is None or (date_range.start is None and date_range.end is None):
        return True
    created_at = metadata.get("created_at")
    if created_at is None:
        return False
    if date_range.start is not None and created_at < date_range.start:
        return False
    if date_range.end is not None and created_at > date_range.end:
        return False
    return True


def _in_set(value: Optional[str], allowed: Optional[Sequence[str]]) -> bool:
    if not allowed:
        return True
    return value is not None and value in allowed


def _has_any_tag(metadata: Dict[str, Any], tags: Optional[Sequence[str]]) -> bool:
    if not tags:
        return True
    entry_tags = metadata.get("tags") or []
    if isinstance(entry_tags, str):
        entry_tags = [entry_tags]
    return any(tag in entry_tags for tag in tags)


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def matches_custom_field(metadata: Dict[str, Any], predicate: CustomFieldFilter) -> bool:
    """
    Evaluate one custom-field predicate against entry metadata.

    String operators compare case-insensitively. greater_than / less_than
    compare numerically when both sides are numbers, otherwise as strings.
    A missing field only satisfies the negative operators.
    """
    value = metadata.get(SORT_FIELD_ALIASES.get(predicate.field, predicate.field))
    operator = predicate.operator

    if value is None:
        return operator in (FilterOperator.NOT_EQUALS, FilterOperator.NOT_CONTAINS)

    if isinstance(value, (list, tuple)):
        text = " ".join(str(item) for item in value).lower()
    else:
        text = str(value).lower()
    target = predicate.value.lower()

    if operator == FilterOperator.EQUALS:
        return text == target
    if operator == FilterOperator.NOT_EQUALS:
        return text != target
    if operator == FilterOperator.CONTAINS:
        return target in text
    if operator == FilterOperator.NOT_CONTAINS:
        return target not in text
    if operator == FilterOperator.STARTS_WITH:
        return text.startswith(target)
    if operator == FilterOperator.ENDS_WITH:
        return text.endswith(target)

    left, right = _as_number(value), _as_number(predicate.value)
    if left is None or right is None:
        left, right = text, target
    if operator == FilterOperator.GREATER_THAN:
        return left > right
    if operator == FilterOperator.LESS_THAN:
        return left < right
    return False


def passes_filters(metadata: Dict[str, Any], filters: Optional[SearchFilters]) -> bool:
    """AND of every present criterion; absent criteria pass."""
    if filters is None:
        return True
    if not _in_date_range(metadata, filters):
        return False
    if not _in_set(metadata.get("status"), filters.status):
        return False
    if not _in_set(metadata.get("priority"), filters.priority):
        return False
    if not _has_any_tag(metadata, filters.tags):
        return False
    for predicate in filters.custom_fields or []:
        if not matches_custom_field(metadata, predicate):
            return False
    return True


def _sort_key(value: Any) -> Tuple[int, Any]:
    # Numbers before everything else so mixed columns never compare int to str
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (0, value)
    if isinstance(value, (list, tuple)):
        return (1, ",".join(str(item) for item in value))
    return (1, str(value))


def sort_by_metadata(
    items: List[T],
    sort_by: SortSpec,
    get_metadata: Callable[[T], Dict[str, Any]],
) -> List[T]:
    """
    Stable sort by one metadata field.

    Items without the field keep their relative order after all items that
    have it, in both directions.
    """
    field = SORT_FIELD_ALIASES.get(sort_by.field, sort_by.field)
    present = [item for item in items if get_metadata(item).get(field) is not None]
    missing = [item for item in items if get_metadata(item).get(field) is None]
    present.sort(
        key=lambda item: _sort_key(get_metadata(item)[field]),
        reverse=sort_by.order == SortOrder.DESC,
    )
    return present + missing
