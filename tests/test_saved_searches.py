"""
Tests for saved searches.
"""
import pytest

from app.core.errors import AuthorizationError, NotFoundError, ValidationError
from app.core.search_models import SavedSearchRecord
from app.search.types import SortOrder
from app.users.saved_searches import SavedSearchDefinition, SavedSearchService


def _definition(name="High priority", **kwargs):
    kwargs.setdefault("query", "rollout")
    return SavedSearchDefinition(name=name, **kwargs)


@pytest.fixture
def service(test_db):
    return SavedSearchService(test_db)


class TestSaveSearch:

    @pytest.mark.unit
    def test_save_and_get(self, service):
        saved = service.save(_definition(
            entity_type="tasks",
            filters={"priority": ["high"]},
            sort_by={"field": "created_at", "order": "asc"},
        ), "u_bob")

        fetched = service.get(saved.id)
        assert fetched.user_id == "u_bob"
        assert fetched.entity_type == "task"
        assert fetched.filters == {"priority": ["high"]}
        assert fetched.usage_count == 0
        assert fetched.last_used is None
        assert fetched.search_filters().priority == ["high"]
        assert fetched.sort_spec().order == SortOrder.ASC

    @pytest.mark.unit
    def test_second_default_replaces_first(self, service, test_db):
        first = service.save(_definition("First", is_default=True), "u_bob")
        second = service.save(_definition("Second", is_default=True), "u_bob")

        assert service.get(first.id).is_default is False
        assert service.get(second.id).is_default is True
        defaults = test_db.query(SavedSearchRecord).filter(
            SavedSearchRecord.user_id == "u_bob",
            SavedSearchRecord.is_default.is_(True),
        ).count()
        assert defaults == 1

    @pytest.mark.unit
    def test_default_is_per_owner(self, service):
        bob = service.save(_definition(is_default=True), "u_bob")
        service.save(_definition(is_default=True), "u_admin")

        assert service.get(bob.id).is_default is True

    @pytest.mark.unit
    @pytest.mark.parametrize("definition", [
        SavedSearchDefinition(name="  ", query="rollout"),
        SavedSearchDefinition(name="Name", query=""),
        SavedSearchDefinition(name="Name", query="rollout", entity_type="invoices"),
        SavedSearchDefinition(name="Name", query="rollout", sort_by={"field": "title", "order": "up"}),
        SavedSearchDefinition(
            name="Name", query="rollout",
            filters={"custom_fields": [{"field": "status", "operator": "like", "value": "x"}]},
        ),
    ])
    def test_invalid_definitions_rejected(self, service, test_db, definition):
        with pytest.raises(ValidationError):
            service.save(definition, "u_bob")
        assert test_db.query(SavedSearchRecord).count() == 0

    @pytest.mark.unit
    def test_blank_owner_rejected(self, service):
        with pytest.raises(ValidationError):
            service.save(_definition(), "")


class TestListSavedSearches:

    @pytest.mark.unit
    def test_owner_sees_own_and_public(self, service):
        mine = service.save(_definition("Mine"), "u_bob")
        public = service.save(_definition("Shared", is_public=True), "u_admin")
        service.save(_definition("Private"), "u_admin")

        ids = {s.id for s in service.list("u_bob")}
        assert ids == {mine.id, public.id}

        assert [s.id for s in service.list()] == [public.id]

    @pytest.mark.unit
    def test_most_used_first(self, service):
        rarely = service.save(_definition("Rarely"), "u_bob")
        often = service.save(_definition("Often"), "u_bob")
        service.record_usage(often.id)
        service.record_usage(often.id)
        service.record_usage(rarely.id)

        listed = service.list("u_bob")
        assert [s.id for s in listed] == [often.id, rarely.id]
        assert listed[0].usage_count == 2

    @pytest.mark.unit
    def test_ties_newest_first(self, service):
        older = service.save(_definition("Older"), "u_bob")
        newer = service.save(_definition("Newer"), "u_bob")

        assert [s.id for s in service.list("u_bob")] == [newer.id, older.id]

    @pytest.mark.unit
    def test_entity_type_filter(self, service):
        service.save(_definition("Tasks", entity_type="task"), "u_bob")
        contacts = service.save(_definition("Contacts", entity_type="contact"), "u_bob")

        assert [s.id for s in service.list("u_bob", entity_type="contacts")] == [contacts.id]


class TestUpdateAndDelete:

    @pytest.mark.unit
    def test_update_by_owner(self, service):
        saved = service.save(_definition(), "u_bob")

        updated = service.update(saved.id, "u_bob", name="Renamed", filters={"status": ["todo"]})

        assert updated.name == "Renamed"
        assert updated.filters == {"status": ["todo"]}

    @pytest.mark.unit
    def test_update_default_clears_others(self, service):
        first = service.save(_definition("First", is_default=True), "u_bob")
        second = service.save(_definition("Second"), "u_bob")

        service.update(second.id, "u_bob", is_default=True)

        assert service.get(first.id).is_default is False
        assert service.get(second.id).is_default is True

    @pytest.mark.unit
    def test_update_by_other_user_forbidden(self, service):
        saved = service.save(_definition(), "u_bob")

        with pytest.raises(AuthorizationError):
            service.update(saved.id, "u_admin", name="Hijacked")
        assert service.get(saved.id).name == "High priority"

    @pytest.mark.unit
    def test_record_usage(self, service):
        saved = service.save(_definition(), "u_bob")

        used = service.record_usage(saved.id)

        assert used.usage_count == 1
        assert used.last_used is not None

    @pytest.mark.unit
    def test_record_usage_missing(self, service):
        with pytest.raises(NotFoundError):
            service.record_usage(999)

    @pytest.mark.unit
    def test_delete_by_owner(self, service):
        saved = service.save(_definition(), "u_bob")

        service.delete(saved.id, "u_bob")

        with pytest.raises(NotFoundError):
            service.get(saved.id)

    @pytest.mark.unit
    def test_delete_by_other_user_forbidden(self, service):
        saved = service.save(_definition(), "u_bob")

        with pytest.raises(AuthorizationError) as exc_info:
            service.delete(saved.id, "u_admin")

        assert exc_info.value.status_code == 403
        assert service.get(saved.id).id == saved.id

    @pytest.mark.unit
    def test_delete_missing(self, service):
        with pytest.raises(NotFoundError) as exc_info:
            service.delete(12345, "u_bob")

        assert exc_info.value.status_code == 404
