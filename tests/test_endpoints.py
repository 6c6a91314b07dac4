# SPDX-License-Identifier: AGPL-3.0-only

"""
Integration tests for the HTTP endpoints.
"""

import time

import pytest

from app import create_app

from tests.helpers import http_error

HEADERS = {"X-User-Id": "user-1"}


@pytest.fixture
def service_and_client(make_service, classified_response):
    service, reasoning = make_service([classified_response])
    app = create_app(service)
    app.config["TESTING"] = True
    return service, reasoning, app.test_client()


def poll(client, job_id, timeout=5.0, headers=HEADERS):
    deadline = time.time() + timeout
    while time.time() < deadline:
        body = client.get(f"/api/analysis/status/{job_id}", headers=headers).get_json()
        if body["done"]:
            return body
        time.sleep(0.01)
    raise AssertionError("job did not finish")


class TestEndpoints:
    """Test the request/response contract."""

    def test_health(self, service_and_client):
        _, _, client = service_and_client
        assert client.get("/health").get_json() == {"status": "ok"}

    def test_owner_header_required(self, service_and_client):
        _, _, client = service_and_client
        assert client.post("/api/documents", json={}).status_code == 401

    def test_create_analyze_and_read_links(self, service_and_client):
        _, _, client = service_and_client

        created = client.post("/api/documents", json={"title": "Скан", "raw_text": "Жалобы"}, headers=HEADERS)
        assert created.status_code == 201
        document_id = created.get_json()["id"]

        started = client.post(f"/api/documents/{document_id}/analyze", json={}, headers=HEADERS)
        assert started.status_code == 202
        status = poll(client, started.get_json()["job_id"])
        assert status["status"] == "completed"

        links = client.get(f"/api/documents/{document_id}/links", headers=HEADERS).get_json()
        assert links["document"]["status"] == "classified"
        assert {l["article_id"] for l in links["links"]} == {"art-68", "art-66"}

    def test_other_owner_cannot_analyze(self, service_and_client):
        service, _, client = service_and_client
        document = service.documents.create_document("user-2", raw_text="текст")

        response = client.post(f"/api/documents/{document.id}/analyze", json={}, headers=HEADERS)

        assert response.status_code == 404

    def test_analyze_requires_input(self, service_and_client):
        service, _, client = service_and_client
        document = service.documents.create_document("user-1")

        response = client.post(f"/api/documents/{document.id}/analyze", json={}, headers=HEADERS)

        assert response.status_code == 400

    def test_analyze_rejects_both_inputs(self, service_and_client):
        service, _, client = service_and_client
        document = service.documents.create_document("user-1")

        response = client.post(
            f"/api/documents/{document.id}/analyze",
            json={"image_base64": "QUJD" * 40, "text": "текст"},
            headers=HEADERS,
        )

        assert response.status_code == 400
        assert "details" in response.get_json()

    def test_unknown_document(self, service_and_client):
        _, _, client = service_and_client
        assert client.get("/api/documents/missing/links", headers=HEADERS).status_code == 404

    def test_unknown_job(self, service_and_client):
        _, _, client = service_and_client
        assert client.get("/api/analysis/status/missing", headers=HEADERS).status_code == 404

    def test_job_status_scoped_to_owner(self, service_and_client):
        service, _, client = service_and_client
        document = service.documents.create_document("user-1", raw_text="текст")
        started = client.post(f"/api/documents/{document.id}/analyze", json={}, headers=HEADERS)
        job_id = started.get_json()["job_id"]
        poll(client, job_id)

        assert client.get(f"/api/analysis/status/{job_id}").status_code == 401
        other = client.get(f"/api/analysis/status/{job_id}", headers={"X-User-Id": "user-2"})
        assert other.status_code == 404

    def test_assessment_and_summary(self, service_and_client):
        _, _, client = service_and_client

        put = client.put("/api/articles/art-43/assessment", json={"value": 65}, headers=HEADERS)
        assert put.status_code == 200

        summary = client.get("/api/articles/art-43/summary?today=2026-10-17", headers=HEADERS).get_json()
        assert summary["article"]["number"] == "43"
        assert summary["score"]["applies"] == 65
        assert summary["score"]["overridden"] is True

    def test_assessment_out_of_range(self, service_and_client):
        _, _, client = service_and_client
        response = client.put("/api/articles/art-43/assessment", json={"value": 120}, headers=HEADERS)
        assert response.status_code == 400

    def test_unknown_article_summary(self, service_and_client):
        _, _, client = service_and_client
        assert client.get("/api/articles/art-404/summary", headers=HEADERS).status_code == 404

    def test_questionnaire(self, service_and_client):
        _, _, client = service_and_client

        response = client.post("/api/questionnaire", json={"answers": {"13.1": "Плоскостопие"}}, headers=HEADERS)

        assert response.status_code == 202
        body = response.get_json()
        assert body["document"]["is_questionnaire"] is True
        assert poll(client, body["job_id"])["status"] == "completed"

    def test_empty_questionnaire(self, service_and_client):
        _, _, client = service_and_client

        response = client.post("/api/questionnaire", json={"answers": {}}, headers=HEADERS)

        assert response.status_code == 400
        assert response.get_json()["error"]["kind"] == "malformed-input"


class TestErrorMapping:
    """Typed analysis failures map onto HTTP statuses."""

    def test_failed_job_reports_kind(self, make_service):
        service, _ = make_service([http_error(429)])
        client = create_app(service).test_client()
        document = service.documents.create_document("user-1", raw_text="текст")

        started = client.post(f"/api/documents/{document.id}/analyze", json={}, headers=HEADERS)
        status = poll(client, started.get_json()["job_id"])

        assert status["status"] == "failed"
        assert status["error"]["kind"] == "rate-limited"
