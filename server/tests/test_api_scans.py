from unittest.mock import MagicMock

from flask.testing import FlaskClient

from cargotrack.app import socketio
from cargotrack.repositories import StorageError


def test_scan_of_known_barcode_updates_status(seeded):
    client: FlaskClient = seeded.test_client()

    response = client.post(
        "/api/scans",
        json={
            "barcode": "  BC-001 ",
            "scanType": "scanned_for_manifest",
            "location": "Guwahati Hub",
            "occurredAt": "2025-03-01T08:00:00Z",
            "operatorId": "op-7",
        },
    )

    assert response.status_code == 201
    body = response.get_json()
    assert body["scan"]["barcode_number"] == "BC-001"
    assert body["scan"]["barcode_id"] == "b-1"
    assert body["scan"]["scan_type"] == "scanned_for_manifest"
    assert body["scan"]["scanned_by"] == "op-7"
    assert body["barcode"] == {
        "id": "b-1",
        "status": "scanned_for_manifest",
        "last_scanned_at": "2025-03-01T08:00:00+00:00",
        "last_scanned_location": "Guwahati Hub",
        "applied": True,
    }

    stored = seeded.config["BARCODE_REPOSITORY"].get_by_number("BC-001")
    assert stored.status == "scanned_for_manifest"


def test_plain_scan_moves_barcode_in_transit(seeded):
    client = seeded.test_client()

    response = client.post("/api/scans", json={"barcode": "BC-002", "location": "Silchar"})

    assert response.status_code == 201
    assert response.get_json()["barcode"]["status"] == "in-transit"


def test_unknown_barcode_is_still_logged(seeded):
    client = seeded.test_client()

    response = client.post("/api/scans", json={"barcode": "BC-UNKNOWN", "scanType": "scan"})

    assert response.status_code == 201
    body = response.get_json()
    assert body["barcode"] is None
    assert body["scan"]["barcode_id"] is None

    history = seeded.config["SCAN_REPOSITORY"].list_for_barcodes(["BC-UNKNOWN"])
    assert [scan.barcode_number for scan in history] == ["BC-UNKNOWN"]


def test_older_scan_does_not_regress_status(seeded):
    client = seeded.test_client()

    newer = client.post(
        "/api/scans",
        json={"barcode": "BC-001", "scanType": "delivered", "location": "Imphal", "occurredAt": "2025-03-02T10:00:00+00:00"},
    )
    older = client.post(
        "/api/scans",
        json={"barcode": "BC-001", "scanType": "scan", "location": "Guwahati", "occurredAt": "2025-03-01T10:00:00+00:00"},
    )

    assert newer.status_code == 201
    assert older.status_code == 201
    assert older.get_json()["barcode"]["applied"] is False
    assert older.get_json()["barcode"]["status"] == "delivered"

    barcode = seeded.config["BARCODE_REPOSITORY"].get_by_number("BC-001")
    assert barcode.status == "delivered"
    assert barcode.last_scanned_location == "Imphal"

    # both events stay in the log
    history = seeded.config["SCAN_REPOSITORY"].list_for_barcodes(["BC-001"])
    assert [scan.scan_type for scan in history] == ["scan", "delivered"]


def test_scan_rejects_invalid_payload(client: FlaskClient):
    response = client.post("/api/scans", json={"location": "Imphal"})
    assert response.status_code == 400
    assert response.get_json() == {"status": "error", "reason": "missing-barcode"}

    response = client.post("/api/scans", data="not-json")
    assert response.status_code == 400
    assert response.get_json()["reason"] == "invalid-json"

    response = client.post("/api/scans", json={"barcode": "BC-001", "scanType": "teleported"})
    assert response.get_json()["reason"] == "invalid-scanType"

    response = client.post("/api/scans", json={"barcode": "BC-001", "occurredAt": "yesterday"})
    assert response.get_json()["reason"] == "invalid-occurredAt"

    response = client.post("/api/scans", json={"barcode": "BC-001", "location": 42})
    assert response.get_json()["reason"] == "invalid-location"


def test_scan_is_broadcast(seeded):
    mock_broadcast = MagicMock()
    seeded.config["BROADCAST_SERVICE"] = mock_broadcast
    client = seeded.test_client()

    response = client.post("/api/scans", json={"barcode": "BC-001", "location": "Imphal"})

    assert response.status_code == 201
    mock_broadcast.scan_ingested.assert_called_once()
    (result,) = mock_broadcast.scan_ingested.call_args.args
    assert result.scan.id == response.get_json()["scan"]["id"]
    assert result.scan.location == "Imphal"


def test_socketio_emission_occurs(seeded):
    client = seeded.test_client()
    socket_client = socketio.test_client(seeded, namespace="/")

    response = client.post("/api/scans", json={"barcode": "BC-SIO", "location": "Dimapur"})
    assert response.status_code == 201

    received = socket_client.get_received("/")
    events = [packet for packet in received if packet.get("name") == "scan.ingested"]
    assert events, f"Socket.IO events not received: {received!r}"
    assert events[0]["args"][0]["barcodeNumber"] == "BC-SIO"


def test_storage_failure_returns_503(app):
    class BrokenScans:
        def save(self, event, barcode_id=None):
            raise StorageError("scan insert failed")

    from cargotrack.services import ScanIngestionService

    app.config["SCAN_INGESTION_SERVICE"] = ScanIngestionService(BrokenScans(), app.config["BARCODE_REPOSITORY"])
    mock_broadcast = MagicMock()
    app.config["BROADCAST_SERVICE"] = mock_broadcast

    response = app.test_client().post("/api/scans", json={"barcode": "BC-001"})

    assert response.status_code == 503
    assert response.get_json() == {"status": "error", "error": "storage_unavailable"}
    mock_broadcast.scan_ingested.assert_not_called()


def test_activity_feed_lists_recent_scans_and_manifests(seeded):
    client = seeded.test_client()
    for hour in range(3):
        client.post("/api/scans", json={"barcode": "BC-001", "occurredAt": f"2025-03-01T0{hour}:00:00+00:00"})
    client.post(
        "/api/manifests",
        json={"originHub": "GAU", "destination": "IMF", "airlineCode": "6E", "scannedBarcodeIds": ["b-1"]},
    )

    response = client.get("/api/ops/activity")

    assert response.status_code == 200
    body = response.get_json()
    assert [scan["scanned_at"] for scan in body["scans"]] == [
        "2025-03-01T02:00:00+00:00",
        "2025-03-01T01:00:00+00:00",
        "2025-03-01T00:00:00+00:00",
    ]
    assert len(body["manifests"]) == 1
