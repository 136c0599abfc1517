"""Integration tests for job, first piece and trail endpoints via TestClient."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from production.api import jobs_router, trail_router


@pytest.fixture()
def client():
    app = FastAPI()
    app.include_router(jobs_router)
    app.include_router(trail_router)
    return TestClient(app)


def _open_job(client, **overrides):
    """Helper: POST /jobs and return the job_id."""
    defaults = {"order_id": "ord-001", "sample_required": True, "actor_id": "ops-1"}
    defaults.update(overrides)
    response = client.post("/jobs", json=defaults)
    assert response.status_code == 201
    return response.json()["job_id"]


def _move(client, job_id, *statuses):
    for status in statuses:
        response = client.put(f"/jobs/{job_id}/status", json={"target_status": status, "actor_id": "mfr-1"})
        assert response.status_code == 200, response.json()


class TestOpenJobEndpoint:
    def test_open_job(self, client):
        response = client.post(
            "/jobs",
            json={"order_id": "ord-001", "priority": "high", "required_delivery_date": "2026-12-01"},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["manufacturer_status"] == "accepted"
        assert data["public_status"] == "awaiting_production"
        assert data["priority"] == "high"
        assert data["required_delivery_date"] == "2026-12-01"

    def test_unknown_priority_is_422(self, client):
        response = client.post("/jobs", json={"order_id": "ord-001", "priority": "whenever"})
        assert response.status_code == 422
        assert response.json()["detail"]["kind"] == "validation_error"

    def test_get_unknown_job_is_404(self, client):
        response = client.get("/jobs/job-404")
        assert response.status_code == 404
        assert response.json()["detail"]["kind"] == "not_found"


class TestFunnelEndpoints:
    def test_transition(self, client):
        job_id = _open_job(client)
        _move(client, job_id, "sample_production")
        data = client.get(f"/jobs/{job_id}").json()
        assert data["manufacturer_status"] == "sample_production"
        assert data["public_status"] == "sampling"

    def test_invalid_transition_is_409(self, client):
        job_id = _open_job(client)
        response = client.put(f"/jobs/{job_id}/status", json={"target_status": "shipped"})
        assert response.status_code == 409
        assert response.json()["detail"]["kind"] == "invalid_transition"

    def test_gate_is_409_until_approved(self, client):
        job_id = _open_job(client)
        _move(client, job_id, "sample_production", "first_piece_review")

        blocked = client.put(f"/jobs/{job_id}/status", json={"target_status": "bulk_production"})
        assert blocked.status_code == 409
        assert blocked.json()["detail"]["kind"] == "gate_not_satisfied"

        submitted = client.post(
            f"/jobs/{job_id}/first-piece/samples",
            json={"image_references": ["front.jpg"], "actor_id": "mfr-1"},
        )
        assert submitted.json()["status"] == "awaiting_approval"
        approved = client.put(f"/jobs/{job_id}/first-piece/approve", json={"actor_id": "qa-1"})
        assert approved.json()["approved_by"] == "qa-1"

        _move(client, job_id, "bulk_production")

    def test_details(self, client):
        job_id = _open_job(client)
        assert client.put(f"/jobs/{job_id}/manufacturer", json={"manufacturer_id": "mfr-7"}).json()[
            "manufacturer_id"
        ] == "mfr-7"
        assert client.put(f"/jobs/{job_id}/specs-lock", json={}).json()["specs_locked"] is True
        assert client.put(f"/jobs/{job_id}/priority", json={"priority": "urgent"}).json()["priority"] == "urgent"
        rescheduled = client.put(f"/jobs/{job_id}/schedule", json={"promised_ship_date": "2026-11-20"})
        assert rescheduled.json()["promised_ship_date"] == "2026-11-20"
        cleared = client.put(f"/jobs/{job_id}/schedule", json={"clear_ship_date": True})
        assert cleared.json()["promised_ship_date"] is None
        assert client.post(f"/jobs/{job_id}/notes", json={"note": "Trims late"}).status_code == 200


class TestFirstPieceEndpoints:
    def test_reject_without_notes_is_422(self, client):
        job_id = _open_job(client)
        client.post(f"/jobs/{job_id}/first-piece/samples", json={"image_references": ["front.jpg"]})

        response = client.put(f"/jobs/{job_id}/first-piece/reject", json={"notes": ""})
        assert response.status_code == 422
        assert client.get(f"/jobs/{job_id}/first-piece").json()["status"] == "awaiting_approval"

    def test_reject_then_reset(self, client):
        job_id = _open_job(client)
        client.post(f"/jobs/{job_id}/first-piece/samples", json={"image_references": ["front.jpg"]})
        rejected = client.put(f"/jobs/{job_id}/first-piece/reject", json={"notes": "Wrong dye lot"})
        assert rejected.json()["rejection_notes"] == "Wrong dye lot"
        assert client.get(f"/jobs/{job_id}").json()["first_piece_status"] == "rejected"

        reset = client.put(f"/jobs/{job_id}/first-piece/reset", json={"note": "new dye lot"})
        assert reset.json()["status"] == "pending"
        assert reset.json()["image_references"] == []

    def test_images(self, client, file_storage):
        job_id = _open_job(client)
        client.post(f"/jobs/{job_id}/first-piece/samples", json={"image_references": ["a.jpg", "b.jpg"]})
        file_storage.mark_missing("b.jpg")

        images = client.get(f"/jobs/{job_id}/first-piece/images").json()
        assert [(i["reference"], i["exists"]) for i in images] == [("a.jpg", True), ("b.jpg", False)]


class TestTrailEndpoint:
    def test_timeline_pages(self, client):
        job_id = _open_job(client)
        _move(client, job_id, "sample_production", "first_piece_review")

        first_page = client.get(f"/trail/manufacturing_job/{job_id}", params={"limit": 2}).json()
        assert [e["new_value"] for e in first_page] == ["accepted", "sample_production"]

        rest = client.get(
            f"/trail/manufacturing_job/{job_id}",
            params={"after_sequence": first_page[-1]["sequence"]},
        ).json()
        assert [e["new_value"] for e in rest] == ["first_piece_review"]
        assert rest[0]["actor_id"] == "mfr-1"

    def test_unknown_entity_type_is_422(self, client):
        response = client.get("/trail/purchase_order/po-1")
        assert response.status_code == 422
