"""Pytest configuration and shared fixtures."""

import os

# Settings are read at import time: point everything at test doubles first.
os.environ.setdefault("ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test_jwt_secret_key_change_in_production_min_32_chars")
os.environ.setdefault("TOKEN_PEPPER", "test_pepper_change_in_production")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017")

from collections.abc import AsyncGenerator, Generator  # noqa: E402
from unittest.mock import MagicMock  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from app.core.security import create_access_token  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.db.engine import engine  # noqa: E402
from app.db.mongo import get_pdf_collection  # noqa: E402
from app.db.session import get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models.user import User  # noqa: E402
from tests.helpers.seed import create_test_admin, create_test_user  # noqa: E402


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Fresh schema per test on the in-memory SQLite engine."""
    Base.metadata.create_all(bind=engine)
    session = Session(bind=engine, expire_on_commit=False)
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def pdf_collection() -> MagicMock:
    """Stand-in for the pymongo PDF collection; configure per test."""
    return MagicMock(name="pdfs")


def _override_dependencies(db: Session, pdf_collection: MagicMock) -> None:
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_pdf_collection] = lambda: pdf_collection


@pytest.fixture
def client(db, pdf_collection) -> Generator[TestClient, None, None]:
    """FastAPI test client with the SQL session and PDF collection overridden."""
    _override_dependencies(db, pdf_collection)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
async def async_client(db, pdf_collection) -> AsyncGenerator[AsyncClient, None]:
    """Async client for the auth flows, sharing the same overrides."""
    _override_dependencies(db, pdf_collection)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        try:
            yield ac
        finally:
            app.dependency_overrides.clear()


@pytest.fixture
def test_user(db) -> User:
    user = create_test_user(db, email="reader@example.com")
    db.commit()
    return user


@pytest.fixture
def test_admin_user(db) -> User:
    user = create_test_admin(db, email="admin@example.com")
    db.commit()
    return user


def _bearer(user: User) -> dict[str, str]:
    token = create_access_token(user_id=str(user.id), role=user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers_user(test_user) -> dict[str, str]:
    """Authorization header for a regular user."""
    return _bearer(test_user)


@pytest.fixture
def auth_headers_admin(test_admin_user) -> dict[str, str]:
    """Authorization header for an admin."""
    return _bearer(test_admin_user)
