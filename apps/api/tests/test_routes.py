"""Tests for logbook, vision and admin routes."""

from unittest.mock import MagicMock, patch

import pytest

from conftest import block_image, image_bytes
from ccpp_api.models import LogEntry


@pytest.mark.usefixtures("plant_equipment")
class TestLogbookRoutes:
    """/v1/logbook"""

    def test_append_returns_persisted_shape(self, client):
        response = client.post(
            "/v1/logbook",
            json={"type": "MANUAL", "source": "operator", "message": "Valve V12 closed", "equipmentId": "B1"},
        )

        assert response.status_code == 201
        data = response.json()
        assert set(data) == {"id", "timestamp", "type", "source", "message", "equipmentId", "signature"}
        assert data["equipmentId"] == "B1"
        assert len(data["signature"]) == 64

    def test_list_is_newest_first_and_filterable(self, client):
        for message, equipment in [("first", "TG1"), ("second", None), ("third", "TG1")]:
            client.post("/v1/logbook", json={"type": "AUTO", "source": "SCADA", "message": message, "equipmentId": equipment})

        all_entries = client.get("/v1/logbook").json()
        tg1 = client.get("/v1/logbook", params={"equipmentId": "TG1"}).json()

        assert [e["message"] for e in all_entries] == ["third", "second", "first"]
        assert [e["message"] for e in tg1] == ["third", "first"]

    def test_invalid_entry_is_422(self, client):
        response = client.post("/v1/logbook", json={"type": "NOTE", "source": "x", "message": "y"})
        assert response.status_code == 422

    def test_verify_reports_break(self, client, session_factory):
        for i in range(3):
            client.post("/v1/logbook", json={"type": "AUTO", "source": "SCADA", "message": f"m{i}"})
        assert client.get("/v1/logbook/verify").json()["valid"]

        db = session_factory()
        db.query(LogEntry).filter(LogEntry.message == "m1").update({"source": "intruder"})
        db.commit()
        db.close()

        report = client.get("/v1/logbook/verify").json()
        assert report["valid"] is False
        assert report["firstInvalidIndex"] == 1
        assert report["checked"] == 3
        assert report["error"]["index"] == 1

    def test_correlation_id_echoed(self, client):
        response = client.get("/v1/logbook", headers={"x-correlation-id": "abc-123"})
        assert response.headers["x-correlation-id"] == "abc-123"


class TestVisionRoutes:
    """/v1/vision and /v1/provision"""

    def test_fingerprint(self, client, backend):
        photo = image_bytes(block_image(50))
        response = client.post("/v1/vision/fingerprint", files={"image": ("p.png", photo, "image/png")})

        assert response.status_code == 200
        assert response.json() == {"hash": backend.fingerprint(photo)}

    def test_fingerprint_rejects_garbage(self, client):
        response = client.post("/v1/vision/fingerprint", files={"image": ("p.png", b"nope", "image/png")})

        assert response.status_code == 422
        assert response.json()["error"] == "DecodeError"

    def test_provision_then_identify(self, client):
        photo = image_bytes(block_image(51))
        created = client.post(
            "/v1/provision",
            data={"externalId": "HRSG-3", "name": "Drum level gauge", "type": "GAUGE", "ocrText": "LT-301"},
            files={"image": ("gauge.png", photo, "image/png")},
        )
        assert created.status_code == 201
        assert created.json()["document"]["ocrText"] == "LT-301"

        identified = client.post("/v1/vision/identify", files={"image": ("gauge.png", photo, "image/png")}).json()
        assert identified["isMatch"]
        assert identified["match"]["equipmentId"] == "HRSG-3"

    def test_provision_conflict_is_409(self, client):
        photo = image_bytes(block_image(52))
        client.post("/v1/provision", data={"externalId": "DUP"}, files={"image": ("a.png", photo, "image/png")})

        response = client.post("/v1/provision", data={"externalId": "DUP"}, files={"image": ("a.png", photo, "image/png")})

        assert response.status_code == 409
        assert response.json()["error"] == "ConflictError"


class TestAdminRoutes:
    """Background task queueing."""

    @patch("ccpp_api.routes.admin.get_celery_app")
    def test_backfill_is_queued(self, mock_get_celery_app, client):
        mock_get_celery_app.return_value.send_task.return_value = MagicMock(id="task-1")

        response = client.post("/admin/fingerprints/backfill")

        assert response.status_code == 202
        assert response.json() == {
            "task_id": "task-1",
            "task": "ccpp_worker.tasks.backfill_fingerprints",
            "status": "queued",
        }

    @patch("ccpp_api.routes.admin.get_celery_app")
    def test_broker_down_is_503(self, mock_get_celery_app, client):
        mock_get_celery_app.return_value.send_task.side_effect = ConnectionError("Broker unavailable")

        response = client.post("/admin/ledger/verify")

        assert response.status_code == 503


def test_unknown_equipment_is_422(client):
    response = client.post(
        "/v1/logbook",
        json={"type": "MANUAL", "source": "operator", "message": "m", "equipmentId": "NOPE"},
    )

    assert response.status_code == 422
    assert response.json()["error"] == "ValidationError"


def test_oversized_image_is_422(client, monkeypatch):
    from PIL import Image

    photo = image_bytes(block_image(53))
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)

    response = client.post("/v1/vision/fingerprint", files={"image": ("big.png", photo, "image/png")})

    assert response.status_code == 422
    assert response.json()["error"] == "DecodeError"
