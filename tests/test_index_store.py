"""
Tests for the search index store: upsert, remove, scan, rebuild and stats.
"""
import pytest
from datetime import datetime

from sqlalchemy import event

from app.core.search_models import SearchIndexEntry
from app.search.index_store import IndexStore
from app.search.projections import get_projection, to_epoch_ms
from app.search.types import SearchEntityType


@pytest.mark.unit
class TestProjections:

    def test_contact_content_and_metadata(self):
        projection = get_projection(SearchEntityType.CONTACT)
        fields = {
            "name": "Jane Doe",
            "email": "jane@acme.com",
            "phone": None,
            "company": "Acme Ltd",
            "notes": "Key account",
            "tags": ["vip", "customer"],
            "created_at": datetime(2024, 1, 1),
        }

        assert projection.build_content(fields) == "Jane Doe jane@acme.com Acme Ltd Key account vip customer"
        metadata = projection.build_metadata(fields)
        assert metadata["title"] == "Jane Doe"
        assert metadata["description"] == "Key account"
        assert metadata["tags"] == ["vip", "customer"]
        assert metadata["created_at"] == to_epoch_ms(datetime(2024, 1, 1))
        assert metadata["updated_at"] is None

    def test_task_metadata_carries_status_and_priority(self):
        projection = get_projection(SearchEntityType.TASK)
        metadata = projection.build_metadata({"title": "Call", "status": "todo", "priority": "high"})
        assert metadata["status"] == "todo"
        assert metadata["priority"] == "high"
        assert "description" not in metadata

    def test_all_is_not_indexable(self):
        with pytest.raises(ValueError):
            get_projection(SearchEntityType.ALL)

    def test_epoch_ms_accepts_iso_strings_and_numbers(self):
        assert to_epoch_ms("2024-01-01T00:00:00+00:00") == 1704067200000
        assert to_epoch_ms(1704067200000) == 1704067200000
        assert to_epoch_ms("not a date") is None


class TestIndexStore:

    @pytest.mark.unit
    def test_upsert_creates_entry(self, test_db):
        store = IndexStore(test_db)
        entry = store.upsert("project", "p1", {
            "name": "Acme Rollout", "company": "Acme Ltd", "status": "open",
        })

        assert entry.entity_type == "project"
        assert entry.entity_id == "p1"
        assert entry.searchable_content == "Acme Rollout Acme Ltd open"
        assert entry.keywords == ["acme", "rollout", "ltd", "open"]
        assert entry.entry_metadata["title"] == "Acme Rollout"
        assert entry.entry_metadata["status"] == "open"

    @pytest.mark.unit
    def test_upsert_twice_keeps_one_row(self, test_db):
        store = IndexStore(test_db)
        first = store.upsert("task", "t1", {"title": "Draft plan", "status": "todo"})
        created_at = first.created_at

        second = store.upsert("tasks", "t1", {"title": "Final plan", "status": "done"})

        assert test_db.query(SearchIndexEntry).count() == 1
        assert second.id == first.id
        assert second.entry_metadata["title"] == "Final plan"
        assert second.created_at == created_at
        assert second.updated_at >= created_at

    @pytest.mark.unit
    def test_same_id_different_types_are_separate(self, test_db):
        store = IndexStore(test_db)
        store.upsert("contact", "x1", {"name": "Shared"})
        store.upsert("project", "x1", {"name": "Shared"})

        assert len(store.scan()) == 2
        assert len(store.scan("contact")) == 1

    @pytest.mark.unit
    def test_upsert_rejects_all(self, test_db):
        with pytest.raises(ValueError):
            IndexStore(test_db).upsert("all", "x", {"name": "nope"})

    @pytest.mark.unit
    def test_remove(self, test_db):
        store = IndexStore(test_db)
        store.upsert("contact", "c1", {"name": "Jane"})

        assert store.remove("contact", "c1") is True
        assert store.get("contact", "c1") is None
        assert store.remove("contact", "c1") is False

    @pytest.mark.integration
    def test_rebuild_all_from_entity_stores(self, test_db, sample_contacts, sample_projects, sample_tasks):
        store = IndexStore(test_db)
        store.upsert("contact", "stale", {"name": "Deleted long ago"})

        counts = store.rebuild_all()

        assert counts == {"contact": 2, "project": 2, "task": 10}
        assert store.get("contact", "stale") is None
        assert len(store.scan()) == 14

        rollout = store.get("project", "p_rollout")
        assert rollout.entry_metadata["created_at"] == to_epoch_ms(datetime(2024, 2, 1, 8, 0, 0))

    @pytest.mark.integration
    def test_rebuild_is_repeatable(self, test_db, sample_contacts):
        store = IndexStore(test_db)
        store.rebuild_all()
        store.rebuild_all()
        assert len(store.scan("contact")) == 2

    @pytest.mark.integration
    def test_stats(self, test_db, indexed_records):
        stats = IndexStore(test_db).get_stats()

        assert stats["total_indexed"] == 14
        assert stats["by_type"] == {"contact": 2, "project": 2, "task": 10}
        assert stats["source_counts"] == {"contact": 2, "project": 2, "task": 10}
        assert stats["last_updated"] is not None
        assert len(stats["sample_entries"]) == IndexStore.STATS_SAMPLE_SIZE
        assert "error" not in stats


class TestIndexStoreConsistency:

    @pytest.mark.unit
    def test_upsert_same_fields_is_idempotent(self, test_db):
        store = IndexStore(test_db)
        fields = {
            "name": "Jane Doe",
            "email": "jane@acme.com",
            "company": "Acme Ltd",
            "notes": "Key account. Prefers email.",
            "tags": ["vip", "customer"],
            "created_at": datetime(2024, 1, 10, 9, 0, 0),
        }

        first = store.upsert("contact", "c1", fields)
        snapshot = (first.searchable_content, list(first.keywords), dict(first.entry_metadata))
        second = store.upsert("contact", "c1", fields)

        assert (second.searchable_content, second.keywords, second.entry_metadata) == snapshot
        assert len(store.scan("contact")) == 1

    @pytest.mark.integration
    def test_rebuild_survives_concurrent_upsert(self, test_db, session_factory, sample_contacts, sample_projects):
        """A background upsert landing mid-rebuild must not abort the rebuild."""
        fired = []

        def write_same_key_first(session, flush_context, instances):
            pending = [
                obj for obj in session.new
                if isinstance(obj, SearchIndexEntry) and obj.entity_id == "c_jane"
            ]
            if pending and not fired:
                fired.append(True)
                other = session_factory()
                try:
                    IndexStore(other).upsert("contact", "c_jane", {"name": "Jane (background)"})
                finally:
                    other.close()

        event.listen(test_db, "before_flush", write_same_key_first)
        try:
            counts = IndexStore(test_db).rebuild_all()
        finally:
            event.remove(test_db, "before_flush", write_same_key_first)

        assert fired
        assert counts == {"contact": 2, "project": 2, "task": 0}
        store = IndexStore(test_db)
        assert len(store.scan("contact")) == 2
        assert len(store.scan("project")) == 2
        assert store.get("contact", "c_jane").entry_metadata["title"] == "Jane Doe"
