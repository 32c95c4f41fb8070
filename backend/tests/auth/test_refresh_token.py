"""Tests for refresh token rotation and logout."""

from datetime import UTC, datetime, timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy.orm import Session

from app.core.security import hash_token
from app.models.auth import RefreshToken


async def _login(async_client: AsyncClient) -> dict:
    response = await async_client.post(
        "/v1/auth/login",
        json={"email": "reader@example.com", "password": "TestPass123!"},
    )
    assert response.status_code == 200
    return response.json()["tokens"]


@pytest.mark.asyncio
async def test_refresh_token_success(async_client: AsyncClient, test_user) -> None:
    """Test successful token refresh returns new tokens."""
    tokens = await _login(async_client)

    response = await async_client.post(
        "/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]}
    )

    assert response.status_code == 200
    new_tokens = response.json()["tokens"]
    assert new_tokens["token_type"] == "bearer"
    assert new_tokens["access_token"] != tokens["access_token"]
    assert new_tokens["refresh_token"] != tokens["refresh_token"]


@pytest.mark.asyncio
async def test_refresh_rotation_links_tokens(
    async_client: AsyncClient, db: Session, test_user
) -> None:
    tokens = await _login(async_client)
    response = await async_client.post(
        "/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]}
    )
    new_refresh = response.json()["tokens"]["refresh_token"]

    db.expire_all()
    old = db.query(RefreshToken).filter(RefreshToken.token_hash == hash_token(tokens["refresh_token"])).one()
    new = db.query(RefreshToken).filter(RefreshToken.token_hash == hash_token(new_refresh)).one()
    assert old.revoked_at is not None
    assert old.replaced_by_token_id == new.id
    assert new.revoked_at is None


@pytest.mark.asyncio
async def test_refresh_token_invalid_token(async_client: AsyncClient) -> None:
    response = await async_client.post("/v1/auth/refresh", json={"refresh_token": "invalid_token_here"})

    assert response.status_code == 401
    assert response.json()["error_code"] == "UNAUTHORIZED"


@pytest.mark.asyncio
async def test_refresh_token_reuse_rejected(async_client: AsyncClient, test_user) -> None:
    """A rotated refresh token cannot be used again."""
    tokens = await _login(async_client)

    first = await async_client.post("/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert first.status_code == 200

    second = await async_client.post("/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert second.status_code == 401


@pytest.mark.asyncio
async def test_refresh_token_expired(async_client: AsyncClient, db: Session, test_user) -> None:
    tokens = await _login(async_client)
    record = db.query(RefreshToken).filter(RefreshToken.token_hash == hash_token(tokens["refresh_token"])).one()
    record.expires_at = datetime.now(UTC) - timedelta(minutes=1)
    db.commit()

    response = await async_client.post("/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_refresh_inactive_user(async_client: AsyncClient, db: Session, test_user) -> None:
    tokens = await _login(async_client)
    test_user.is_active = False
    db.commit()

    response = await async_client.post("/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_logout_revokes_refresh_token(async_client: AsyncClient, test_user) -> None:
    tokens = await _login(async_client)

    logout = await async_client.post("/v1/auth/logout", json={"refresh_token": tokens["refresh_token"]})
    assert logout.status_code == 200
    assert logout.json() == {"status": "ok", "message": "Logged out"}

    response = await async_client.post("/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_logout_is_idempotent(async_client: AsyncClient) -> None:
    response = await async_client.post("/v1/auth/logout", json={"refresh_token": "never-issued"})
    assert response.status_code == 200
