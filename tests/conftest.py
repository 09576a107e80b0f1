import os

import pytest
from fastapi.testclient import TestClient

# Ensure the module-level app uses the memory backend to avoid filesystem dependencies
os.environ.setdefault("PERSISTENCE_BACKEND", "memory")

from todo_audit.db import SQLiteRepository  # noqa: E402
from todo_audit.main import create_app  # noqa: E402
from todo_audit.repositories import InMemoryRepository  # noqa: E402
from todo_audit.settings import Settings  # noqa: E402


@pytest.fixture(params=["memory", "sqlite"])
def repository(request, tmp_path):
    """Every contract test runs once per storage backend."""
    if request.param == "sqlite":
        return SQLiteRepository(str(tmp_path / "todos.db"))
    return InMemoryRepository()


@pytest.fixture
def client(repository):
    backend = "sqlite" if isinstance(repository, SQLiteRepository) else "memory"
    app = create_app(settings=Settings(persistence_backend=backend), repository=repository)
    return TestClient(app)
