import pytest

from crudcore.config import TestingSettings
from crudcore.crud import CrudOptions, CrudService
from crudcore.db import InMemoryStore

USER_ROWS = [
    {"id": 1, "name": "Alice", "email": "alice@example.com", "age": 31, "password": "a-secret", "status": "active"},
    {"id": 2, "name": "Bob", "email": "bob@example.com", "age": 17, "password": "b-secret", "status": "banned"},
    {"id": 3, "name": "Carol", "email": "carol@example.com", "age": 45, "password": "c-secret", "status": "active"},
    {"id": 4, "name": "Dave", "email": "", "age": None, "password": "d-secret", "status": "pending"},
    {"id": 5, "name": "Eve", "email": None, "age": 22, "password": "e-secret", "status": "active"},
]


@pytest.fixture(autouse=True)
def clear_env(monkeypatch):
    # Automatically clear environment variables that change settings
    monkeypatch.delenv("APP_ENV", raising=False)
    monkeypatch.delenv("APP_NAME", raising=False)
    monkeypatch.delenv("DEBUG", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    for name in (
        "CRUD_DEFAULT_TAKE",
        "CRUD_DEFAULT_PAGE_SIZE",
        "CRUD_MAX_PAGE_SIZE",
        "CRUD_BATCH_THRESHOLD",
        "CRUD_MAX_BATCH_SIZE",
        "CRUD_SOFT_DELETE",
        "CRUD_REJECT_DISALLOWED",
        "CRUD_FTS_CONFIG",
        "CACHE_URL",
        "CACHE_DEFAULT_TTL",
        "CACHE_KEY_PREFIX",
    ):
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def settings():
    """Testing settings with the default CRUD engine configuration."""
    return TestingSettings()


@pytest.fixture
def user_store():
    """In-memory user store with five rows."""
    return InMemoryStore(
        name="User",
        columns=["name", "email", "age", "password", "status"],
        relations=["profile", "posts"],
        rows=[dict(row) for row in USER_ROWS],
    )


@pytest.fixture
def make_service(user_store, settings):
    """Factory building a CrudService over the user store."""

    def _make(options=None, store=None, **kwargs):
        return CrudService(store or user_store, options or CrudOptions(), settings=settings, **kwargs)

    return _make
