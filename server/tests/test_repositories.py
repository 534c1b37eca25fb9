from __future__ import annotations

from datetime import datetime, timedelta, timezone

import psycopg
from psycopg.rows import dict_row
import pytest

from cargotrack.models import Barcode, Manifest, ManifestItem, ScanEvent
from cargotrack.repositories import (
    ConflictError,
    DatabaseBarcodeRepository,
    DatabaseManifestRepository,
    DatabaseScanRepository,
    InMemoryBarcodeRepository,
    InMemoryManifestRepository,
    InMemoryScanRepository,
    StorageError,
)

T0 = datetime(2025, 3, 1, 8, 0, tzinfo=timezone.utc)


class FakeCursor:
    def __init__(self, rows=None):
        self.executed = []
        self.rows = list(rows or [])

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def execute(self, query, params=None):
        self.executed.append((query, params))

    def executemany(self, query, params_seq):
        self.executed.append((query, list(params_seq)))

    def fetchone(self):
        return self.rows.pop(0) if self.rows else None

    def fetchall(self):
        rows, self.rows = self.rows, []
        return rows


class FakeConnection:
    def __init__(self, rows=None):
        self.cursor_obj = FakeCursor(rows)
        self.commit_called = False
        self.row_factory = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def cursor(self, row_factory=None):
        self.row_factory = row_factory
        return self.cursor_obj

    def commit(self):
        self.commit_called = True


def test_inmemory_scan_log_keeps_every_scan_in_order():
    repo = InMemoryScanRepository()
    for offset in (2, 0, 1):
        repo.save(ScanEvent(barcode_number="BC-1", occurred_at=T0 + timedelta(hours=offset)))

    history = repo.list_for_barcodes(["BC-1"])
    assert [scan.occurred_at for scan in history] == [T0, T0 + timedelta(hours=1), T0 + timedelta(hours=2)]
    assert [scan.occurred_at for scan in repo.recent(limit=1)] == [T0 + timedelta(hours=2)]
    assert repo.recent(limit=0) == []


def test_inmemory_apply_scan_guards_against_stale_events():
    repo = InMemoryBarcodeRepository([Barcode(id="b-1", barcode_number="BC-1")])

    first = repo.apply_scan("b-1", "in-transit", T0, "Guwahati")
    stale = repo.apply_scan("b-1", "delivered", T0 - timedelta(minutes=1), "Imphal")
    same_instant = repo.apply_scan("b-1", "delivered", T0, "Imphal")

    assert first.status == "in-transit"
    assert stale is None
    assert same_instant.status == "delivered"
    assert repo.apply_scan("missing", "delivered", T0, None) is None


def test_database_scan_save_uses_dict_rows_and_commits():
    row = {
        "id": "41",
        "barcode_id": "b-1",
        "barcode_number": "BC-1",
        "scan_type": "delivered",
        "location": "Imphal",
        "scanned_by": "op-7",
        "scanned_at": T0,
    }
    fake_conn = FakeConnection(rows=[row])
    repo = DatabaseScanRepository("postgresql://cargo@db/cargotrack", connect=lambda dsn: fake_conn)

    record = repo.save(
        ScanEvent(barcode_number="BC-1", scan_type="delivered", location="Imphal", occurred_at=T0, operator_id="op-7"),
        barcode_id="b-1",
    )

    assert record.id == "41"
    assert record.operator_id == "op-7"
    assert fake_conn.commit_called is True
    assert fake_conn.row_factory is dict_row
    query, params = fake_conn.cursor_obj.executed[0]
    assert "INSERT INTO package_scans" in query
    assert params == ("b-1", "BC-1", "delivered", "Imphal", "op-7", T0)


def test_database_apply_scan_is_conditional():
    fake_conn = FakeConnection(rows=[])
    repo = DatabaseBarcodeRepository("postgresql://cargo@db/cargotrack", connect=lambda dsn: fake_conn)

    assert repo.apply_scan("b-1", "delivered", T0, "Imphal") is None

    query, params = fake_conn.cursor_obj.executed[0]
    assert "last_scanned_at IS NULL OR last_scanned_at <= %s" in query
    assert params == ("delivered", T0, "Imphal", "b-1", T0)


def test_database_find_by_numbers_skips_query_for_empty_input():
    fake_conn = FakeConnection()
    repo = DatabaseBarcodeRepository("postgresql://cargo@db/cargotrack", connect=lambda dsn: fake_conn)

    assert repo.find_by_numbers([]) == {}
    assert fake_conn.cursor_obj.executed == []


def test_database_manifest_create_writes_items_in_one_transaction():
    fake_conn = FakeConnection(rows=[{"id": "m-1"}])
    repo = DatabaseManifestRepository("postgresql://cargo@db/cargotrack", connect=lambda dsn: fake_conn)
    manifest = Manifest(
        manifest_ref="MAN-1",
        origin_hub="GAU",
        destination="IMF",
        airline_code="6E",
        manifest_date=T0,
        total_weight=12.5,
        total_pieces=2,
    )

    created = repo.create(manifest, [ManifestItem("b-1", "s-1", 12.5), ManifestItem("b-2", "s-1", 12.5)])

    assert created.id == "m-1"
    assert created.barcode_ids == ("b-1", "b-2")
    assert fake_conn.commit_called is True
    items_query, items_params = fake_conn.cursor_obj.executed[1]
    assert "INSERT INTO manifest_items" in items_query
    assert items_params == [("m-1", "s-1", "b-1", 12.5), ("m-1", "s-1", "b-2", 12.5)]


class DuplicateKeyCursor(FakeCursor):
    def execute(self, query, params=None):
        super().execute(query, params)
        raise psycopg.errors.UniqueViolation("duplicate key value violates unique constraint \"manifests_manifest_ref_key\"")


def _manifest(ref: str = "MAN-1") -> Manifest:
    return Manifest(
        manifest_ref=ref,
        origin_hub="GAU",
        destination="IMF",
        airline_code="6E",
        manifest_date=T0,
        total_weight=12.5,
        total_pieces=1,
    )


def test_database_duplicate_manifest_ref_is_a_conflict():
    fake_conn = FakeConnection()
    fake_conn.cursor_obj = DuplicateKeyCursor()
    repo = DatabaseManifestRepository("postgresql://cargo@db/cargotrack", connect=lambda dsn: fake_conn)

    with pytest.raises(ConflictError):
        repo.create(_manifest(), [ManifestItem("b-1", "s-1", 12.5)])

    assert fake_conn.commit_called is False


def test_inmemory_duplicate_manifest_ref_is_a_conflict():
    repo = InMemoryManifestRepository()
    repo.create(_manifest(), [ManifestItem("b-1", "s-1", 12.5)])

    with pytest.raises(ConflictError):
        repo.create(_manifest(), [ManifestItem("b-2", "s-1", 12.5)])

    assert len(repo.recent()) == 1


def test_database_errors_become_storage_errors():
    def connect(dsn):
        raise psycopg.OperationalError("connection refused")

    repo = DatabaseScanRepository("postgresql://cargo@db/cargotrack", connect=connect)

    with pytest.raises(StorageError):
        repo.recent()


def test_missing_dsn_raises_storage_error():
    repo = DatabaseBarcodeRepository("")

    with pytest.raises(StorageError):
        repo.get_by_number("BC-1")
