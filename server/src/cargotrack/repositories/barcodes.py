"""Repositories for barcode rows and their materialized scan state."""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional, Protocol, Sequence

from cargotrack.models import Barcode

from .base import DatabaseRepository


class BarcodeRepository(Protocol):
    """Protocol for barcode lookups and scan-state updates."""

    def get_by_number(self, barcode_number: str) -> Optional[Barcode]:  # noqa: D401
        """Return the barcode with this number, if any."""

    def find_by_numbers(self, barcode_numbers: Sequence[str]) -> Dict[str, Barcode]:
        """Return known barcodes keyed by barcode number."""

    def get_many(self, barcode_ids: Sequence[str]) -> List[Barcode]:
        """Return the barcodes with the given ids (unknown ids are skipped)."""

    def list_for_shipments(self, shipment_ids: Sequence[str]) -> List[Barcode]:
        """Return barcodes linked to any of the given shipments."""

    def apply_scan(
        self,
        barcode_id: str,
        status: str,
        scanned_at: datetime,
        location: Optional[str],
    ) -> Optional[Barcode]:
        """
        Move the barcode to ``status`` unless it already holds a newer scan.

        Returns the updated barcode, or ``None`` when ``scanned_at`` is older
        than the stored ``last_scanned_at`` and nothing changed.
        """


class InMemoryBarcodeRepository:
    """In-memory barcode table for development/testing."""

    def __init__(self, barcodes: Sequence[Barcode] = ()) -> None:
        self._by_id: Dict[str, Barcode] = {}
        self._lock = threading.Lock()
        for barcode in barcodes:
            self.add(barcode)

    def add(self, barcode: Barcode) -> Barcode:
        with self._lock:
            self._by_id[barcode.id] = barcode
        return barcode

    def get_by_number(self, barcode_number: str) -> Optional[Barcode]:
        return self.find_by_numbers([barcode_number]).get(barcode_number)

    def find_by_numbers(self, barcode_numbers: Sequence[str]) -> Dict[str, Barcode]:
        wanted = set(barcode_numbers)
        with self._lock:
            return {
                barcode.barcode_number: replace(barcode)
                for barcode in self._by_id.values()
                if barcode.barcode_number in wanted
            }

    def get_many(self, barcode_ids: Sequence[str]) -> List[Barcode]:
        with self._lock:
            found = [self._by_id.get(barcode_id) for barcode_id in dict.fromkeys(barcode_ids)]
        return [replace(barcode) for barcode in found if barcode is not None]

    def list_for_shipments(self, shipment_ids: Sequence[str]) -> List[Barcode]:
        wanted = set(shipment_ids)
        with self._lock:
            return [replace(barcode) for barcode in self._by_id.values() if barcode.shipment_id in wanted]

    def apply_scan(
        self,
        barcode_id: str,
        status: str,
        scanned_at: datetime,
        location: Optional[str],
    ) -> Optional[Barcode]:
        with self._lock:
            current = self._by_id.get(barcode_id)
            if current is None:
                return None
            if current.last_scanned_at is not None and scanned_at < current.last_scanned_at:
                return None
            updated = replace(
                current,
                status=status,
                last_scanned_at=scanned_at,
                last_scanned_location=location,
            )
            self._by_id[barcode_id] = updated
        return replace(updated)


class DatabaseBarcodeRepository(DatabaseRepository):
    """PostgreSQL-backed barcode repository (``barcodes`` table)."""

    _COLUMNS = (
        "id::text AS id, barcode_number, shipment_id::text AS shipment_id, status, "
        "last_scanned_at, last_scanned_location, created_at"
    )

    def get_by_number(self, barcode_number: str) -> Optional[Barcode]:
        return self.find_by_numbers([barcode_number]).get(barcode_number)

    def find_by_numbers(self, barcode_numbers: Sequence[str]) -> Dict[str, Barcode]:
        numbers = list(dict.fromkeys(barcode_numbers))
        if not numbers:
            return {}
        with self._cursor(f"barcode lookup numbers={len(numbers)}") as cur:
            cur.execute(
                f"SELECT {self._COLUMNS} FROM barcodes WHERE barcode_number = ANY(%s)",
                (numbers,),
            )
            rows = cur.fetchall()
        return {row["barcode_number"]: _row_to_barcode(row) for row in rows}

    def get_many(self, barcode_ids: Sequence[str]) -> List[Barcode]:
        ids = list(dict.fromkeys(barcode_ids))
        if not ids:
            return []
        with self._cursor(f"barcode fetch ids={len(ids)}") as cur:
            cur.execute(
                f"SELECT {self._COLUMNS} FROM barcodes WHERE id::text = ANY(%s)",
                (ids,),
            )
            rows = cur.fetchall()
        return [_row_to_barcode(row) for row in rows]

    def list_for_shipments(self, shipment_ids: Sequence[str]) -> List[Barcode]:
        ids = list(dict.fromkeys(shipment_ids))
        if not ids:
            return []
        with self._cursor(f"barcodes for shipments={len(ids)}") as cur:
            cur.execute(
                f"""
                SELECT {self._COLUMNS}
                  FROM barcodes
                 WHERE shipment_id::text = ANY(%s)
              ORDER BY created_at ASC, barcode_number ASC
                """,
                (ids,),
            )
            rows = cur.fetchall()
        return [_row_to_barcode(row) for row in rows]

    def apply_scan(
        self,
        barcode_id: str,
        status: str,
        scanned_at: datetime,
        location: Optional[str],
    ) -> Optional[Barcode]:
        # Single conditional UPDATE so concurrent ingestion converges on the newest scan.
        with self._cursor(f"barcode scan update id={barcode_id}") as cur:
            cur.execute(
                f"""
                UPDATE barcodes
                   SET status = %s,
                       last_scanned_at = %s,
                       last_scanned_location = %s
                 WHERE id::text = %s
                   AND (last_scanned_at IS NULL OR last_scanned_at <= %s)
             RETURNING {self._COLUMNS}
                """,
                (status, scanned_at, location, barcode_id, scanned_at),
            )
            row = cur.fetchone()
        return _row_to_barcode(row) if row else None


def _row_to_barcode(row: dict) -> Barcode:
    return Barcode(
        id=row["id"],
        barcode_number=row["barcode_number"],
        shipment_id=row.get("shipment_id"),
        status=row.get("status"),
        last_scanned_at=row.get("last_scanned_at"),
        last_scanned_location=row.get("last_scanned_location"),
        created_at=row.get("created_at"),
    )
