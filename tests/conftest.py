"""Shared fixtures: a throwaway SQLite store, settings and an API client."""

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from daily_vibe.config import Settings, get_settings
from daily_vibe.db import Database, get_database
from daily_vibe.main import app
from daily_vibe.models.user import UserCreate
from daily_vibe.services.auth import create_auth_response, create_user

TEST_PASSWORD = "Secret123"


@pytest.fixture
def settings(tmp_path, monkeypatch) -> Generator[Settings, None, None]:
    """Settings pointing every path into the test's temporary directory."""
    monkeypatch.setenv("DATABASE_URL", "")
    monkeypatch.setenv("SQLITE_PATH", str(tmp_path / "data" / "app.db"))
    monkeypatch.setenv("UPLOAD_DIR", str(tmp_path / "uploads"))
    monkeypatch.setenv("BACKUP_DIR", str(tmp_path / "backups"))
    monkeypatch.setenv("STATIC_DIR", str(tmp_path / "public"))
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    monkeypatch.setenv("APP_ENV", "test")
    monkeypatch.setenv("MAX_FILE_SIZE", "1024")
    monkeypatch.setenv("MAX_FILES", "3")
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest.fixture
def database(settings: Settings) -> Generator[Database, None, None]:
    """An initialized database adapter over a fresh SQLite file."""
    db = Database(settings)
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def db_session(database: Database) -> Generator[Session, None, None]:
    with database.session_scope() as session:
        yield session


@pytest.fixture
def client(database: Database, settings: Settings) -> Generator[TestClient, None, None]:
    """API client wired to the test database."""
    app.dependency_overrides[get_database] = lambda: database
    app.dependency_overrides[get_settings] = lambda: settings
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def test_user(db_session: Session):
    return create_user(
        db_session,
        UserCreate(email="vibe@example.com", password=TEST_PASSWORD, name="Vibe"),
    )


@pytest.fixture
def auth_token(db_session: Session, test_user) -> str:
    return create_auth_response(db_session, test_user).token


@pytest.fixture
def auth_headers(auth_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {auth_token}"}
