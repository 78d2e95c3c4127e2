"""Tests for equipment provisioning from photos."""

import pytest

from conftest import block_image, image_bytes, inverted
from ccpp_api.errors import ConflictError, DecodeError, PersistenceError
from ccpp_api.models import Document, Equipment, LogEntry
from ccpp_api.services.provisioning import ComponentIn


def test_provision_creates_equipment_document_and_log_entry(backend, session_factory, minio_client):
    photo = image_bytes(block_image(10))

    result = backend.provision(
        {"externalId": "P-101", "name": "Feedwater pump", "type": "PUMP"},
        photo,
        content_type="image/png",
        ocr_text="KSB 250",
    )

    assert result["success"]
    assert result["equipment"]["externalId"] == "P-101"
    assert result["document"]["perceptualHash"] == backend.fingerprint(photo)
    assert result["document"]["imageKey"].startswith("documents/P-101/")
    assert result["document"]["imageKey"].endswith(".png")
    assert result["document"]["ocrText"] == "KSB 250"
    assert result["logEntry"]["type"] == "DOCUMENT_ADDED"
    assert result["logEntry"]["source"] == "Provisioning"
    assert result["logEntry"]["equipmentId"] == "P-101"
    assert result["duplicateOf"] is None

    assert minio_client.objects[result["document"]["imageKey"]] == photo

    db = session_factory()
    try:
        assert db.get(Equipment, "P-101").name == "Feedwater pump"
        assert db.query(Document).count() == 1
        assert db.query(LogEntry).count() == 1
    finally:
        db.close()
    assert backend.verify_ledger()["valid"]


def test_defaults_fill_blank_fields(backend):
    result = backend.provision({}, image_bytes(block_image(11)))

    external_id = result["equipment"]["externalId"]
    assert external_id.startswith("PROV-")
    assert result["equipment"]["name"] == f"Unspecified equipment - {external_id}"
    assert result["equipment"]["type"] == "UNKNOWN"
    assert result["document"]["description"].startswith("Photo provisioning - ")


def test_component_resolved_strips_whitespace():
    fields = ComponentIn.model_validate({"externalId": "  V-7 ", "name": "", "type": " VALVE"}).resolved()
    assert fields == {"externalId": "V-7", "name": "Unspecified equipment - V-7", "type": "VALVE"}


def test_existing_equipment_conflicts(backend):
    backend.provision({"externalId": "P-1"}, image_bytes(block_image(12)))

    with pytest.raises(ConflictError):
        backend.provision({"externalId": "P-1"}, image_bytes(block_image(13)))

    assert len(backend.ledger.entries()) == 1


def test_undecodable_photo_stores_nothing(backend, session_factory, minio_client):
    with pytest.raises(DecodeError):
        backend.provision({"externalId": "P-2"}, b"not a photo")

    assert minio_client.objects == {}
    db = session_factory()
    try:
        assert db.get(Equipment, "P-2") is None
    finally:
        db.close()
    assert backend.ledger.entries() == []


def test_similar_photo_reported_as_duplicate(backend):
    image = block_image(14)
    first = backend.provision({"externalId": "TG1-CAM"}, image_bytes(image))

    second = backend.provision({"externalId": "TG1-CAM-2"}, image_bytes(image, "JPEG", quality=90))

    assert second["duplicateOf"]["documentId"] == first["document"]["id"]
    assert second["duplicateOf"]["equipmentId"] == "TG1-CAM"


def test_different_photo_is_not_duplicate(backend):
    image = block_image(15)
    backend.provision({"externalId": "A"}, image_bytes(image))

    result = backend.provision({"externalId": "B"}, image_bytes(inverted(image)))

    assert result["duplicateOf"] is None


def test_log_entries_chain_across_provisionings(backend):
    backend.ledger.append({"type": "MANUAL", "source": "operator", "message": "Shift start"})
    backend.provision({"externalId": "X-1"}, image_bytes(block_image(16)))
    backend.provision({"externalId": "X-2"}, image_bytes(block_image(17)))

    report = backend.verify_ledger()
    assert report == {"valid": True, "firstInvalidIndex": None, "checked": 3, "error": None}


def test_failed_log_append_removes_uploaded_photo(backend, session_factory, minio_client, monkeypatch):
    def fail(*args, **kwargs):
        raise PersistenceError("Log append failed after 3 attempts")

    monkeypatch.setattr(backend.ledger, "append", fail)

    with pytest.raises(PersistenceError):
        backend.provision({"externalId": "P-3"}, image_bytes(block_image(18)))

    assert minio_client.objects == {}
    minio_client.remove_object.assert_called_once()
    db = session_factory()
    try:
        assert db.get(Equipment, "P-3") is None
        assert db.query(Document).count() == 0
    finally:
        db.close()


def test_document_timestamp_is_utc_aware(backend):
    result = backend.provision({"externalId": "P-4"}, image_bytes(block_image(19)))

    assert result["document"]["createdAt"].endswith("+00:00")
