from todo_audit.db import SQLiteRepository
from todo_audit.repositories import InMemoryRepository, create_repository
from todo_audit.settings import Settings, get_settings


def test_defaults(monkeypatch):
    for name in ["PERSISTENCE_BACKEND", "SQLITE_DB_PATH", "CORS_ALLOW_ORIGINS", "LOG_LEVEL"]:
        monkeypatch.delenv(name, raising=False)
    settings = get_settings()
    assert settings.persistence_backend == "memory"
    assert settings.sqlite_db_path == "./data/todos.db"
    assert settings.cors_allow_origins == ["*"]
    assert settings.log_level == "INFO"


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("PERSISTENCE_BACKEND", " SQLite ")
    monkeypatch.setenv("CORS_ALLOW_ORIGINS", "http://a.test, http://b.test,")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    settings = get_settings()
    assert settings.persistence_backend == "sqlite"
    assert settings.cors_allow_origins == ["http://a.test", "http://b.test"]
    assert settings.log_level == "DEBUG"


def test_unknown_backend_falls_back_to_memory(monkeypatch):
    monkeypatch.setenv("PERSISTENCE_BACKEND", "postgres")
    assert get_settings().persistence_backend == "memory"


def test_create_repository_selects_backend(tmp_path):
    assert isinstance(create_repository(Settings()), InMemoryRepository)
    repo = create_repository(Settings(persistence_backend="sqlite", sqlite_db_path=str(tmp_path / "t.db")))
    assert isinstance(repo, SQLiteRepository)
