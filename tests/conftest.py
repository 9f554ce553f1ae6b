"""
Pytest configuration and shared fixtures.
"""
import pytest
from datetime import datetime
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from app.core.models import Base, User, Contact, Project, Task
from app.core.config import reset_settings
from app.core import search_models  # noqa: F401
from app.search.index_store import IndexStore


@pytest.fixture(scope="function")
def clean_env(monkeypatch):
    """
    Clean environment for testing.

    Removes all app-related env vars to ensure clean state.
    """
    env_vars = [
        "DATABASE_URL",
        "LOG_LEVEL",
        "SEARCH_DEFAULT_LIMIT",
        "SEARCH_MAX_LIMIT",
        "SUGGEST_DEFAULT_LIMIT",
        "SEARCH_HISTORY_RETENTION",
        "ADMIN_ROLE",
    ]
    for var in env_vars:
        monkeypatch.delenv(var, raising=False)

    # Reset settings singleton
    reset_settings()

    yield

    # Reset again after test
    reset_settings()


@pytest.fixture(scope="function")
def test_engine():
    """
    In-memory SQLite engine shared by every session of one test.

    StaticPool keeps a single connection so background index maintenance and
    the TestClient worker thread see the same database.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine):
    """Session factory bound to the test engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="function")
def test_db(session_factory):
    """
    Create an in-memory SQLite database for testing.

    Fresh database for each test.
    """
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def db_session(test_db):
    """
    Alias for test_db fixture.
    """
    yield test_db


@pytest.fixture(scope="function")
def settings_env(monkeypatch):
    """Minimal environment so get_settings() succeeds."""
    monkeypatch.setenv("DATABASE_URL", "sqlite:///:memory:")
    reset_settings()
    yield
    reset_settings()


# =============================================================================
# Entity Store Fixtures
# =============================================================================

@pytest.fixture
def sample_users(test_db):
    """An admin and a regular user."""
    users = [
        User(id="u_admin", name="Ada Admin", email="ada@example.com", role="admin"),
        User(id="u_bob", name="Bob Builder", email="bob@example.com", role="user"),
    ]
    test_db.add_all(users)
    test_db.commit()
    return {u.id: u for u in users}


@pytest.fixture
def sample_contacts(test_db):
    """Contacts with tags and distinct creation times."""
    contacts = [
        Contact(
            id="c_jane",
            name="Jane Doe",
            email="jane@acme.com",
            phone="555-0100",
            company="Acme Ltd",
            notes="Key account. Prefers email.",
            tags=["vip", "customer"],
            created_at=datetime(2024, 1, 10, 9, 0, 0),
            updated_at=datetime(2024, 1, 10, 9, 0, 0),
        ),
        Contact(
            id="c_john",
            name="John Smith",
            email="john@globex.com",
            company="Globex",
            notes="Met at the trade fair",
            tags=["prospect"],
            created_at=datetime(2024, 3, 5, 14, 30, 0),
            updated_at=datetime(2024, 3, 5, 14, 30, 0),
        ),
    ]
    test_db.add_all(contacts)
    test_db.commit()
    return {c.id: c for c in contacts}


@pytest.fixture
def sample_projects(test_db, sample_users):
    """Projects created by the sample users."""
    projects = [
        Project(
            id="p_rollout",
            name="Acme Rollout",
            company="Acme Ltd",
            description="Deploy the platform to every Acme office",
            status="open",
            created_by="u_admin",
            created_at=datetime(2024, 2, 1, 8, 0, 0),
            updated_at=datetime(2024, 2, 1, 8, 0, 0),
        ),
        Project(
            id="p_audit",
            name="Globex Audit",
            company="Globex",
            description="Annual security audit",
            status="closed",
            created_by="u_bob",
            created_at=datetime(2023, 11, 20, 8, 0, 0),
            updated_at=datetime(2023, 11, 20, 8, 0, 0),
        ),
    ]
    test_db.add_all(projects)
    test_db.commit()
    return {p.id: p for p in projects}


@pytest.fixture
def sample_tasks(test_db, sample_projects):
    """Ten rollout tasks, five of them high priority."""
    tasks = []
    for i in range(10):
        tasks.append(Task(
            id=f"t_{i}",
            title=f"Rollout step {i}",
            description=f"Configure office {i} for the rollout",
            status="in_progress" if i % 3 == 0 else "todo",
            priority="high" if i % 2 == 0 else "low",
            project_id="p_rollout",
            assigned_to="u_bob",
            created_at=datetime(2024, 4, 1 + i, 12, 0, 0),
            updated_at=datetime(2024, 4, 1 + i, 12, 0, 0),
        ))
    test_db.add_all(tasks)
    test_db.commit()
    return tasks


@pytest.fixture
def indexed_records(test_db, sample_contacts, sample_projects, sample_tasks):
    """Entity stores populated and the search index rebuilt from them."""
    counts = IndexStore(test_db).rebuild_all()
    return counts
