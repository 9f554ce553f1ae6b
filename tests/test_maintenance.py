"""
Tests for best-effort index maintenance and admin checks.
"""
import pytest
from unittest.mock import MagicMock

from fastapi import BackgroundTasks

from app.core.errors import AuthorizationError, NotFoundError
from app.search.index_store import IndexStore
from app.search.maintenance import (
    apply_index_removal,
    apply_index_update,
    schedule_index_removal,
    schedule_index_update,
)
from app.users.permissions import require_admin


class TestIndexMaintenance:

    @pytest.mark.unit
    def test_update_writes_entry(self, test_db, session_factory):
        ok = apply_index_update("contact", "c1", {"name": "Jane Doe"}, session_factory)

        assert ok is True
        assert IndexStore(test_db).get("contact", "c1").entry_metadata["title"] == "Jane Doe"

    @pytest.mark.unit
    def test_removal_of_missing_entry_succeeds(self, session_factory):
        assert apply_index_removal("task", "never-indexed", session_factory) is True

    @pytest.mark.unit
    def test_removal_deletes_entry(self, test_db, session_factory):
        IndexStore(test_db).upsert("task", "t1", {"title": "Ship it"})

        assert apply_index_removal("task", "t1", session_factory) is True
        assert IndexStore(test_db).get("task", "t1") is None

    @pytest.mark.unit
    def test_failure_is_logged_not_raised(self, session_factory, caplog):
        ok = apply_index_update("invoice", "i1", {"name": "Bad type"}, session_factory)

        assert ok is False
        assert "Index upsert failed" in caplog.text

    @pytest.mark.unit
    def test_session_error_is_swallowed(self):
        factory = MagicMock(side_effect=RuntimeError("database unavailable"))

        assert apply_index_update("contact", "c1", {"name": "x"}, factory) is False
        assert apply_index_removal("contact", "c1", factory) is False

    @pytest.mark.unit
    def test_scheduled_tasks_run_later(self, test_db, session_factory):
        tasks = BackgroundTasks()
        fields = {"name": "Acme Rollout"}

        schedule_index_update(tasks, "project", "p1", fields, session_factory)
        fields["name"] = "Changed after scheduling"
        schedule_index_removal(tasks, "project", "p_old", session_factory)

        assert IndexStore(test_db).get("project", "p1") is None
        assert len(tasks.tasks) == 2

        for task in tasks.tasks:
            task.func(*task.args, **task.kwargs)

        assert IndexStore(test_db).get("project", "p1").entry_metadata["title"] == "Acme Rollout"


class TestRequireAdmin:

    @pytest.mark.unit
    def test_admin_allowed(self, test_db, sample_users, settings_env):
        assert require_admin(test_db, "u_admin").id == "u_admin"

    @pytest.mark.unit
    def test_regular_user_forbidden(self, test_db, sample_users, settings_env):
        with pytest.raises(AuthorizationError):
            require_admin(test_db, "u_bob")

    @pytest.mark.unit
    def test_unknown_user(self, test_db, settings_env):
        with pytest.raises(NotFoundError):
            require_admin(test_db, "ghost")
