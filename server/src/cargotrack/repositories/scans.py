"""
Repository abstraction for the scan event log.

The log is append-only: events are inserted once and never updated. Unknown
barcode numbers are still recorded (``barcode_id`` is ``None``) so they can be
reconciled later.
"""

from __future__ import annotations

import threading
import uuid
from typing import List, Optional, Protocol, Sequence

from cargotrack.models import ScanEvent, ScanRecord

from .base import DatabaseRepository


class ScanRepository(Protocol):
    """Protocol defining scan log behavior."""

    def save(self, event: ScanEvent, barcode_id: Optional[str] = None) -> ScanRecord:  # noqa: D401
        """Append a scan event and return the stored record."""

    def list_for_barcodes(self, barcode_numbers: Sequence[str]) -> List[ScanRecord]:
        """Return every scan for the given barcode numbers, oldest first."""

    def recent(self, limit: int = 20) -> List[ScanRecord]:
        """Return the newest scans, newest first."""


class InMemoryScanRepository:
    """Simple in-memory scan log for development/testing. Nothing is ever evicted."""

    def __init__(self) -> None:
        self._items: List[ScanRecord] = []
        self._lock = threading.Lock()

    def save(self, event: ScanEvent, barcode_id: Optional[str] = None) -> ScanRecord:
        record = ScanRecord(
            id=str(uuid.uuid4()),
            barcode_number=event.barcode_number,
            barcode_id=barcode_id,
            scan_type=event.scan_type,
            location=event.location,
            occurred_at=event.occurred_at,
            operator_id=event.operator_id,
        )
        with self._lock:
            self._items.append(record)
        return record

    def list_for_barcodes(self, barcode_numbers: Sequence[str]) -> List[ScanRecord]:
        wanted = set(barcode_numbers)
        if not wanted:
            return []
        with self._lock:
            matches = [item for item in self._items if item.barcode_number in wanted]
        # sorted() is stable, so same-instant scans keep insertion order
        return sorted(matches, key=lambda item: item.occurred_at)

    def recent(self, limit: int = 20) -> List[ScanRecord]:
        if limit <= 0:
            return []
        with self._lock:
            items = list(self._items)
        return sorted(items, key=lambda item: item.occurred_at, reverse=True)[:limit]


class DatabaseScanRepository(DatabaseRepository):
    """PostgreSQL-backed scan log (``package_scans`` table)."""

    _COLUMNS = "id::text AS id, barcode_id::text AS barcode_id, barcode_number, scan_type, location, scanned_by, scanned_at"

    def save(self, event: ScanEvent, barcode_id: Optional[str] = None) -> ScanRecord:
        with self._cursor(f"scan insert barcode={event.barcode_number}") as cur:
            cur.execute(
                f"""
                INSERT INTO package_scans (barcode_id, barcode_number, scan_type, location, scanned_by, scanned_at)
                VALUES (%s, %s, %s, %s, %s, %s)
                RETURNING {self._COLUMNS}
                """,
                (
                    barcode_id,
                    event.barcode_number,
                    event.scan_type,
                    event.location,
                    event.operator_id,
                    event.occurred_at,
                ),
            )
            row = cur.fetchone()
        return _row_to_record(row)

    def list_for_barcodes(self, barcode_numbers: Sequence[str]) -> List[ScanRecord]:
        numbers = list(dict.fromkeys(barcode_numbers))
        if not numbers:
            return []
        with self._cursor(f"scan history barcodes={len(numbers)}") as cur:
            cur.execute(
                f"""
                SELECT {self._COLUMNS}
                  FROM package_scans
                 WHERE barcode_number = ANY(%s)
              ORDER BY scanned_at ASC, id ASC
                """,
                (numbers,),
            )
            rows = cur.fetchall()
        return [_row_to_record(row) for row in rows]

    def recent(self, limit: int = 20) -> List[ScanRecord]:
        if limit <= 0:
            return []
        with self._cursor("recent scans") as cur:
            cur.execute(
                f"""
                SELECT {self._COLUMNS}
                  FROM package_scans
              ORDER BY scanned_at DESC
                 LIMIT %s
                """,
                (limit,),
            )
            rows = cur.fetchall()
        return [_row_to_record(row) for row in rows]


def _row_to_record(row: dict) -> ScanRecord:
    return ScanRecord(
        id=row["id"],
        barcode_id=row.get("barcode_id"),
        barcode_number=row["barcode_number"],
        scan_type=row.get("scan_type") or "scan",
        location=row.get("location"),
        occurred_at=row["scanned_at"],
        operator_id=row.get("scanned_by"),
    )
