"""Tests for the entitlement service and endpoints."""

import uuid
from datetime import UTC, datetime, timedelta

from bson import ObjectId

from app.models.entitlement import Entitlement, EntitlementKind, EntitlementSource
from app.services import entitlements


class TestEntitlementService:
    """Grant / revoke / has_access semantics."""

    def test_grant_and_check(self, db, test_user):
        ref_id = str(ObjectId())

        entitlement = entitlements.grant(db, test_user.id, EntitlementKind.PDF, ref_id)

        assert entitlement.active is True
        assert entitlement.source == EntitlementSource.PURCHASE.value
        assert entitlements.has_access(db, test_user.id, EntitlementKind.PDF, ref_id)

    def test_no_entitlement(self, db, test_user):
        assert not entitlements.has_access(db, test_user.id, "pdf", str(ObjectId()))

    def test_kind_must_match(self, db, test_user):
        ref_id = str(ObjectId())
        entitlements.grant(db, test_user.id, EntitlementKind.COURSE, ref_id)
        assert not entitlements.has_access(db, test_user.id, EntitlementKind.PDF, ref_id)

    def test_expiry_boundary(self, db, test_user):
        ref_id = str(ObjectId())
        expires_at = datetime(2030, 1, 1, tzinfo=UTC)
        entitlements.grant(db, test_user.id, "pdf", ref_id, expires_at=expires_at)

        before = expires_at - timedelta(seconds=1)
        assert entitlements.has_access(db, test_user.id, "pdf", ref_id, now=before)
        assert not entitlements.has_access(db, test_user.id, "pdf", ref_id, now=expires_at)

    def test_revoke(self, db, test_user):
        ref_id = str(ObjectId())
        entitlements.grant(db, test_user.id, "pdf", ref_id)

        assert entitlements.revoke(db, test_user.id, "pdf", ref_id) is True
        assert not entitlements.has_access(db, test_user.id, "pdf", ref_id)
        # Row is kept, just inactive
        assert db.query(Entitlement).count() == 1

    def test_revoke_missing(self, db, test_user):
        assert entitlements.revoke(db, test_user.id, "pdf", str(ObjectId())) is False

    def test_regrant_reactivates_single_row(self, db, test_user):
        ref_id = str(ObjectId())
        entitlements.grant(db, test_user.id, "pdf", ref_id, expires_at=datetime.now(UTC) - timedelta(days=1))
        entitlements.revoke(db, test_user.id, "pdf", ref_id)

        regranted = entitlements.grant(
            db, test_user.id, "pdf", ref_id, source=EntitlementSource.PROMO, order_ref="PROMO-1"
        )

        assert db.query(Entitlement).count() == 1
        assert regranted.active is True
        assert regranted.expires_at is None
        assert regranted.source == "promo"
        assert regranted.order_ref == "PROMO-1"
        assert entitlements.has_access(db, test_user.id, "pdf", ref_id)

    def test_list_active(self, db, test_user):
        live = str(ObjectId())
        entitlements.grant(db, test_user.id, "pdf", live)
        entitlements.grant(db, test_user.id, "pdf", str(ObjectId()), expires_at=datetime.now(UTC) - timedelta(hours=1))
        revoked = str(ObjectId())
        entitlements.grant(db, test_user.id, "pdf", revoked)
        entitlements.revoke(db, test_user.id, "pdf", revoked)

        active = entitlements.list_active(db, test_user.id)

        assert [e.ref_id for e in active] == [live]

    def test_model_grants_access(self):
        now = datetime(2025, 1, 1, tzinfo=UTC)
        entitlement = Entitlement(active=True, expires_at=now + timedelta(days=1))
        assert entitlement.grants_access(now)
        assert not entitlement.grants_access(now + timedelta(days=2))
        entitlement.active = False
        assert not entitlement.grants_access(now)


class TestEntitlementEndpoints:
    def test_admin_grant(self, client, db, test_user, auth_headers_admin):
        ref_id = str(ObjectId())

        response = client.post(
            "/v1/entitlements",
            json={"user_id": str(test_user.id), "ref_id": ref_id},
            headers=auth_headers_admin,
        )

        assert response.status_code == 201
        data = response.json()
        assert data["user_id"] == str(test_user.id)
        assert data["kind"] == "pdf"
        assert data["source"] == "admin-grant"
        assert data["active"] is True
        assert entitlements.has_access(db, test_user.id, "pdf", ref_id)

    def test_grant_unknown_user(self, client, auth_headers_admin):
        response = client.post(
            "/v1/entitlements",
            json={"user_id": str(uuid.uuid4()), "ref_id": str(ObjectId())},
            headers=auth_headers_admin,
        )

        assert response.status_code == 404
        assert response.json()["error"] == "User not found"

    def test_grant_requires_admin(self, client, test_user, auth_headers_user):
        response = client.post(
            "/v1/entitlements",
            json={"user_id": str(test_user.id), "ref_id": str(ObjectId())},
            headers=auth_headers_user,
        )

        assert response.status_code == 403

    def test_invalid_kind(self, client, test_user, auth_headers_admin):
        response = client.post(
            "/v1/entitlements",
            json={"user_id": str(test_user.id), "ref_id": "x", "kind": "ebook"},
            headers=auth_headers_admin,
        )

        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_admin_revoke(self, client, db, test_user, auth_headers_admin):
        ref_id = str(ObjectId())
        entitlements.grant(db, test_user.id, "pdf", ref_id)

        response = client.request(
            "DELETE",
            "/v1/entitlements",
            json={"user_id": str(test_user.id), "ref_id": ref_id},
            headers=auth_headers_admin,
        )

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert not entitlements.has_access(db, test_user.id, "pdf", ref_id)

    def test_revoke_missing(self, client, test_user, auth_headers_admin):
        response = client.request(
            "DELETE",
            "/v1/entitlements",
            json={"user_id": str(test_user.id), "ref_id": str(ObjectId())},
            headers=auth_headers_admin,
        )

        assert response.status_code == 404

    def test_my_entitlements(self, client, db, test_user, test_admin_user, auth_headers_user):
        mine = str(ObjectId())
        entitlements.grant(db, test_user.id, "pdf", mine)
        entitlements.grant(db, test_admin_user.id, "pdf", str(ObjectId()))

        response = client.get("/v1/entitlements/me", headers=auth_headers_user)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["total"] == 1
        assert data["results"][0]["ref_id"] == mine
        assert response.headers["Cache-Control"] == "no-store"
