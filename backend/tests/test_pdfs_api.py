"""Tests for the PDF catalog endpoints."""

from unittest.mock import MagicMock

from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from tests.helpers.seed import make_pdf


def _cursor_over(collection, docs):
    cursor = MagicMock(name="cursor")
    cursor.sort.return_value = cursor
    cursor.skip.return_value = cursor
    cursor.limit.return_value = cursor
    cursor.__iter__.return_value = iter(docs)
    collection.find.return_value = cursor
    return cursor


class TestListPdfs:
    def test_listing_envelope(self, client, pdf_collection):
        docs = [make_pdf(1), make_pdf(2)]
        _cursor_over(pdf_collection, docs)
        pdf_collection.count_documents.return_value = 2

        response = client.get("/v1/pdfs?category=ssc-cgl&limit=1")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["total"] == 2
        assert data["page"] == 1
        assert data["limit"] == 1
        assert data["totalPages"] == 2
        assert data["results"][0]["_id"] == str(docs[0]["_id"])
        pdf_collection.find.assert_called_once()
        assert pdf_collection.find.call_args.args[0] == {"category": "ssc-cgl"}

    def test_listing_is_edge_cacheable(self, client, pdf_collection):
        _cursor_over(pdf_collection, [])
        pdf_collection.estimated_document_count.return_value = 0

        response = client.get("/v1/pdfs")

        assert response.status_code == 200
        assert response.headers["Cache-Control"] == "s-maxage=60, stale-while-revalidate=30"

    def test_term_routes_to_search_pipeline(self, client, pdf_collection):
        pdf_collection.aggregate.return_value = iter(
            [{"results": [make_pdf(3)], "totalCount": [{"count": 1}]}]
        )

        response = client.get("/v1/pdfs?q=practice&language=en")

        assert response.status_code == 200
        assert response.json()["results"][0]["seoSlug"] == "practice-set-3"
        pdf_collection.find.assert_not_called()

    def test_search_endpoint(self, client, pdf_collection):
        pdf_collection.aggregate.return_value = iter([{"results": [], "totalCount": []}])

        response = client.get("/v1/search?q=railway&sort=downloads")

        assert response.status_code == 200
        assert response.json()["total"] == 0
        assert response.headers["Cache-Control"].startswith("s-maxage=")
        pipeline = pdf_collection.aggregate.call_args.args[0]
        assert pipeline[3] == {"$sort": {"downloads": -1, "createdAt": -1}}


class TestGetPdf:
    def test_by_slug(self, client, pdf_collection):
        pdf = make_pdf(4, description="Full solutions")
        pdf_collection.find_one.return_value = pdf

        response = client.get("/v1/pdfs/practice-set-4")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["pdf"]["_id"] == str(pdf["_id"])
        assert data["pdf"]["description"] == "Full solutions"
        assert pdf_collection.find_one.call_args.args[0] == {"seoSlug": "practice-set-4"}
        assert response.headers["Cache-Control"] == "s-maxage=120, stale-while-revalidate=60"

    def test_by_object_id(self, client, pdf_collection):
        oid = ObjectId()
        pdf_collection.find_one.return_value = make_pdf(1, _id=oid)

        response = client.get(f"/v1/pdfs/{oid}")

        assert response.status_code == 200
        assert pdf_collection.find_one.call_args.args[0] == {"_id": oid}

    def test_not_found(self, client, pdf_collection):
        pdf_collection.find_one.return_value = None

        response = client.get("/v1/pdfs/missing-slug")

        assert response.status_code == 404
        data = response.json()
        assert data["success"] is False
        assert data["error_code"] == "NOT_FOUND"
        assert data["error"] == "PDF not found"
        assert "request_id" in data
        assert response.headers["Cache-Control"] == "no-store"


class TestCreatePdf:
    PAYLOAD = {
        "title_en": "SSC CGL Maths: Algebra Drill",
        "r2Key": "pdfs/ssc-cgl-algebra.pdf",
        "category": "ssc-cgl",
        "tags": [" maths ", ""],
        "isPaid": True,
        "price": 49,
    }

    def test_admin_creates(self, client, pdf_collection, auth_headers_admin, test_admin_user):
        oid = ObjectId()
        pdf_collection.count_documents.return_value = 0
        pdf_collection.insert_one.return_value = MagicMock(inserted_id=oid)

        response = client.post("/v1/pdfs", json=self.PAYLOAD, headers=auth_headers_admin)

        assert response.status_code == 201
        pdf = response.json()["pdf"]
        assert pdf["_id"] == str(oid)
        assert pdf["seoSlug"] == "ssc-cgl-maths-algebra-drill"
        assert pdf["tags"] == ["maths"]
        assert pdf["language"] == "en"
        assert pdf["downloads"] == 0
        assert pdf["uploadedBy"] == str(test_admin_user.id)
        inserted = pdf_collection.insert_one.call_args.args[0]
        assert inserted["isPaid"] is True
        assert inserted["price"] == 49

    def test_slug_collision_gets_suffix(self, client, pdf_collection, auth_headers_admin):
        pdf_collection.count_documents.side_effect = [1, 0]
        pdf_collection.insert_one.return_value = MagicMock(inserted_id=ObjectId())

        response = client.post("/v1/pdfs", json=self.PAYLOAD, headers=auth_headers_admin)

        assert response.status_code == 201
        slug = response.json()["pdf"]["seoSlug"]
        assert slug.startswith("ssc-cgl-maths-algebra-drill-")
        assert len(slug) == len("ssc-cgl-maths-algebra-drill-") + 6

    def test_duplicate_slug_conflict(self, client, pdf_collection, auth_headers_admin):
        pdf_collection.insert_one.side_effect = DuplicateKeyError(
            "E11000 duplicate key", 11000, {"keyValue": {"seoSlug": "taken"}}
        )

        response = client.post(
            "/v1/pdfs", json={**self.PAYLOAD, "seoSlug": "taken"}, headers=auth_headers_admin
        )

        assert response.status_code == 409
        data = response.json()
        assert data["error_code"] == "CONFLICT"
        assert data["details"] == {"key": {"seoSlug": "taken"}}

    def test_non_admin_forbidden(self, client, pdf_collection, auth_headers_user):
        response = client.post("/v1/pdfs", json=self.PAYLOAD, headers=auth_headers_user)

        assert response.status_code == 403
        assert response.json()["error_code"] == "FORBIDDEN"
        pdf_collection.insert_one.assert_not_called()

    def test_anonymous_unauthorized(self, client, pdf_collection):
        response = client.post("/v1/pdfs", json=self.PAYLOAD)
        assert response.status_code == 401
        assert response.json()["error_code"] == "UNAUTHORIZED"

    def test_validation_error_envelope(self, client, auth_headers_admin):
        response = client.post(
            "/v1/pdfs", json={"title_en": "   ", "r2Key": "x", "price": -1}, headers=auth_headers_admin
        )

        assert response.status_code == 422
        data = response.json()
        assert data["error_code"] == "VALIDATION_ERROR"
        fields = {item["field"] for item in data["details"]}
        assert "body.title_en" in fields
        assert "body.price" in fields


class TestUpdateDeletePdf:
    def test_partial_update(self, client, pdf_collection, auth_headers_admin):
        updated = make_pdf(5, price=99, seoSlug="new-slug")
        pdf_collection.find_one_and_update.return_value = updated

        response = client.put(
            "/v1/pdfs/practice-set-5",
            json={"price": 99, "seoSlug": "New Slug"},
            headers=auth_headers_admin,
        )

        assert response.status_code == 200
        assert response.json()["pdf"]["price"] == 99
        query, update = pdf_collection.find_one_and_update.call_args.args
        assert query == {"seoSlug": "practice-set-5"}
        changes = update["$set"]
        assert changes["price"] == 99
        assert changes["seoSlug"] == "new-slug"
        assert "updatedAt" in changes
        assert "title_en" not in changes

    def test_update_missing(self, client, pdf_collection, auth_headers_admin):
        pdf_collection.find_one_and_update.return_value = None

        response = client.put("/v1/pdfs/nope", json={"price": 1}, headers=auth_headers_admin)

        assert response.status_code == 404

    def test_update_non_admin(self, client, pdf_collection, auth_headers_user):
        response = client.put("/v1/pdfs/x", json={"price": 1}, headers=auth_headers_user)
        assert response.status_code == 403
        pdf_collection.find_one_and_update.assert_not_called()

    def test_delete(self, client, pdf_collection, auth_headers_admin):
        oid = ObjectId()
        pdf_collection.find_one_and_delete.return_value = {"_id": oid}

        response = client.delete(f"/v1/pdfs/{oid}", headers=auth_headers_admin)

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "PDF deleted"}
        assert pdf_collection.find_one_and_delete.call_args.args[0] == {"_id": oid}

    def test_delete_missing(self, client, pdf_collection, auth_headers_admin):
        pdf_collection.find_one_and_delete.return_value = None

        response = client.delete("/v1/pdfs/gone", headers=auth_headers_admin)

        assert response.status_code == 404
        assert response.json()["error_code"] == "NOT_FOUND"
