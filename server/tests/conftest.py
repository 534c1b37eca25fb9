from datetime import datetime, timezone
import pathlib

import pytest

from cargotrack.app import create_app
from cargotrack.models import Barcode, Customer, Invoice, Shipment


@pytest.fixture
def app(tmp_path: pathlib.Path, monkeypatch):
    config_path = tmp_path / "config.toml"
    config_path.write_text(
        f"""
APP_NAME = "TestServer"

[logging]
path = "{tmp_path / 'app.log'}"
"""
    )
    monkeypatch.setenv("CARGOTRACK_CONFIG", str(config_path))
    app = create_app()
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def seeded(app):
    """
    Tracking fixtures:

    SHP-1001 (s-1, 12.5kg) -> BC-001, BC-002
    SHP-1002 (s-2, 4kg)    -> BC-101
    BC-900 has no shipment
    INV-2001 bills s-1 and s-2 for customer c-1
    """
    shipments = app.config["SHIPMENT_REPOSITORY"]
    barcodes = app.config["BARCODE_REPOSITORY"]
    invoices = app.config["INVOICE_REPOSITORY"]

    shipments.add(Shipment(id="s-1", shipment_ref="SHP-1001", origin="Guwahati", destination="Imphal", weight=12.5))
    shipments.add(Shipment(id="s-2", shipment_ref="SHP-1002", origin="Guwahati", destination="Aizawl", weight=4.0))

    created = datetime(2025, 1, 1, tzinfo=timezone.utc)
    barcodes.add(Barcode(id="b-1", barcode_number="BC-001", shipment_id="s-1", status="created", created_at=created))
    barcodes.add(Barcode(id="b-2", barcode_number="BC-002", shipment_id="s-1", status="created", created_at=created))
    barcodes.add(Barcode(id="b-3", barcode_number="BC-101", shipment_id="s-2", status="created", created_at=created))
    barcodes.add(Barcode(id="b-9", barcode_number="BC-900", status="created", created_at=created))

    invoices.add_customer(Customer(id="c-1", name="Tapan Traders", phone="+91-9000000000", city="Imphal"))
    invoices.add(Invoice(id="i-1", invoice_ref="INV-2001", customer_id="c-1", amount=1800.0, status="pending"), ["s-1", "s-2"])
    return app
