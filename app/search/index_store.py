"""
Search index store.

One row per (entity_type, entity_id) in the search_index table. The table's
unique constraint is the source of truth for that invariant; upsert only
decides between insert and update.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Union

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.search_models import SearchIndexEntry
from app.search.keywords import extract_keywords
from app.search.projections import PROJECTIONS, get_projection, record_to_fields
from app.search.types import SearchEntityType, parse_entity_type

logger = logging.getLogger(__name__)

EntityTypeArg = Union[str, SearchEntityType]


class IndexStore:
    """
    Persistent mapping from (entity type, entity id) to a search index entry.

    Features:
    - Idempotent upsert from raw entity fields
    - Remove / point read / full scan
    - Full rebuild from the entity stores
    - Index statistics
    """

    # Number of entries included in stats samples
    STATS_SAMPLE_SIZE = 5

    def __init__(self, db: Session):
        self.db = db

    def upsert(
        self,
        entity_type: EntityTypeArg,
        entity_id: str,
        fields: Mapping[str, Any],
    ) -> SearchIndexEntry:
        """
        Write or replace the index entry for one entity.

        Args:
            entity_type: contact, project or task
            entity_id: Id of the entity in its own store
            fields: Current field values of the entity

        Returns:
            The stored SearchIndexEntry
        """
        entity_type = parse_entity_type(entity_type, allow_all=False)
        entity_id = str(entity_id)
        projection = get_projection(entity_type)

        searchable_content = projection.build_content(fields)
        keywords = extract_keywords(searchable_content)
        metadata = projection.build_metadata(fields)

        try:
            entry = self._write(entity_type, entity_id, searchable_content, keywords, metadata)
        except IntegrityError:
            # Lost an insert race for the same key; the row exists now
            self.db.rollback()
            entry = self._write(entity_type, entity_id, searchable_content, keywords, metadata)

        logger.debug(f"Indexed {entity_type.value} {entity_id} ({len(keywords)} keywords)")
        return entry

    def _write(
        self,
        entity_type: SearchEntityType,
        entity_id: str,
        searchable_content: str,
        keywords: List[str],
        metadata: Dict[str, Any],
    ) -> SearchIndexEntry:
        now = datetime.utcnow()
        entry = self._find(entity_type, entity_id)

        if entry is None:
            entry = SearchIndexEntry(
                entity_type=entity_type.value,
                entity_id=entity_id,
                created_at=now,
            )
            self.db.add(entry)

        entry.searchable_content = searchable_content
        entry.keywords = keywords
        entry.entry_metadata = metadata
        entry.updated_at = now

        self.db.commit()
        self.db.refresh(entry)
        return entry

    def _find(self, entity_type: SearchEntityType, entity_id: str) -> Optional[SearchIndexEntry]:
        return (
            self.db.query(SearchIndexEntry)
            .filter(
                SearchIndexEntry.entity_type == entity_type.value,
                SearchIndexEntry.entity_id == entity_id,
            )
            .first()
        )

    def get(self, entity_type: EntityTypeArg, entity_id: str) -> Optional[SearchIndexEntry]:
        """Get the index entry for one entity, or None."""
        return self._find(parse_entity_type(entity_type, allow_all=False), str(entity_id))

    def remove(self, entity_type: EntityTypeArg, entity_id: str) -> bool:
        """
        Delete the index entry for one entity.

        Returns:
            True if an entry was deleted, False if none existed
        """
        entity_type = parse_entity_type(entity_type, allow_all=False)
        deleted = (
            self.db.query(SearchIndexEntry)
            .filter(
                SearchIndexEntry.entity_type == entity_type.value,
                SearchIndexEntry.entity_id == str(entity_id),
            )
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return deleted > 0

    def scan(self, entity_type: Optional[EntityTypeArg] = None) -> List[SearchIndexEntry]:
        """
        Return all index entries, optionally restricted to one type.

        Order is unspecified; callers re-order.
        """
        entity_type = parse_entity_type(entity_type)
        query = self.db.query(SearchIndexEntry)
        if entity_type != SearchEntityType.ALL:
            query = query.filter(SearchIndexEntry.entity_type == entity_type.value)
        return query.all()

    def rebuild_all(self) -> Dict[str, int]:
        """
        Clear the index and re-derive it from the entity stores.

        Each entity type is committed as one batch, so concurrent readers may
        see a partially rebuilt index but never a partially written entry. If
        a background upsert writes one of the batch's keys first, the batch is
        rolled back and that type is rewritten entry by entry through upsert.

        Returns:
            Dict with counts per entity type indexed
        """
        cleared = self.db.query(SearchIndexEntry).delete(synchronize_session=False)
        self.db.commit()
        logger.info(f"Cleared {cleared} search index entries")

        counts: Dict[str, int] = {}

        for entity_type, projection in PROJECTIONS.items():
            snapshot = [
                (str(record.id), record_to_fields(record))
                for record in self.db.query(projection.model).all()
            ]
            now = datetime.utcnow()

            try:
                for entity_id, fields in snapshot:
                    content = projection.build_content(fields)
                    self.db.add(SearchIndexEntry(
                        entity_type=entity_type.value,
                        entity_id=entity_id,
                        searchable_content=content,
                        keywords=extract_keywords(content),
                        entry_metadata=projection.build_metadata(fields),
                        created_at=now,
                        updated_at=now,
                    ))
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                logger.warning(
                    f"Concurrent index write during {entity_type.value} rebuild; "
                    f"rewriting {len(snapshot)} entries individually"
                )
                for entity_id, fields in snapshot:
                    self.upsert(entity_type, entity_id, fields)

            counts[entity_type.value] = len(snapshot)
            logger.info(f"Indexed {len(snapshot)} {entity_type.value} records")

        return counts

    def get_stats(self) -> Dict[str, Any]:
        """Get search index statistics alongside entity-store record counts."""
        stats: Dict[str, Any] = {
            "total_indexed": 0,
            "by_type": {},
            "source_counts": {},
            "last_updated": None,
            "sample_entries": [],
        }

        try:
            rows = (
                self.db.query(
                    SearchIndexEntry.entity_type,
                    func.count(SearchIndexEntry.id),
                    func.max(SearchIndexEntry.updated_at),
                )
                .group_by(SearchIndexEntry.entity_type)
                .all()
            )

            for entity_type, count, last_updated in rows:
                stats["by_type"][entity_type] = count
                stats["total_indexed"] += count
                if last_updated:
                    if stats["last_updated"] is None or last_updated > stats["last_updated"]:
                        stats["last_updated"] = last_updated

            if stats["last_updated"]:
                stats["last_updated"] = stats["last_updated"].isoformat()

            for entity_type, projection in PROJECTIONS.items():
                stats["source_counts"][entity_type.value] = self.db.query(projection.model).count()

            sample = self.db.query(SearchIndexEntry).limit(self.STATS_SAMPLE_SIZE).all()
            stats["sample_entries"] = [
                {
                    "entity_type": entry.entity_type,
                    "entity_id": entry.entity_id,
                    "title": (entry.entry_metadata or {}).get("title"),
                    "keyword_count": len(entry.keywords or []),
                }
                for entry in sample
            ]

        except Exception as e:
            logger.warning(f"Could not get search stats: {e}")
            stats["error"] = str(e)

        return stats
