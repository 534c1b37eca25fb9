from cargotrack.repositories import StorageError
from cargotrack.services import BarcodeResolver


def test_resolve_barcodes_is_positional(seeded):
    client = seeded.test_client()

    response = client.post("/api/resolve-barcodes", json={"barcodes": ["BC-001", "NOPE", "BC-101"]})

    assert response.status_code == 200
    body = response.get_json()
    assert body["ids"] == ["b-1", None, "b-3"]
    assert body["resolved"][1] is None
    assert body["resolved"][2] == {"id": "b-3", "barcode_number": "BC-101", "shipment_id": "s-2"}


def test_resolve_barcodes_repeats_duplicates(seeded):
    client = seeded.test_client()

    response = client.post("/api/resolve-barcodes", json={"barcodes": ["BC-002", "BC-002", "BC-900"]})

    assert response.get_json()["ids"] == ["b-2", "b-2", "b-9"]


def test_resolve_barcodes_validates_input(client):
    assert client.post("/api/resolve-barcodes", json={}).status_code == 400
    assert client.post("/api/resolve-barcodes", json={"barcodes": []}).status_code == 400
    assert client.post("/api/resolve-barcodes", json={"barcodes": ["ok", 3]}).status_code == 400
    assert client.post("/api/resolve-barcodes", data="junk").status_code == 400


def test_resolve_barcodes_storage_failure(app):
    class BrokenBarcodes:
        def find_by_numbers(self, numbers):
            raise StorageError("barcode lookup failed")

    app.config["BARCODE_RESOLVER"] = BarcodeResolver(BrokenBarcodes())

    response = app.test_client().post("/api/resolve-barcodes", json={"barcodes": ["BC-001"]})

    assert response.status_code == 503
