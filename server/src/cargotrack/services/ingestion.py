"""Scan ingestion: append to the scan log and advance the barcode's state."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from cargotrack.models import Barcode, ScanEvent, ScanRecord, format_dt, status_for_scan_type
from cargotrack.repositories import BarcodeRepository, ScanRepository

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    scan: ScanRecord
    barcode: Optional[Barcode] = None
    applied: bool = False

    def as_dict(self) -> Dict[str, Any]:
        barcode = None
        if self.barcode is not None:
            barcode = {
                "id": self.barcode.id,
                "status": self.barcode.status,
                "last_scanned_at": format_dt(self.barcode.last_scanned_at),
                "last_scanned_location": self.barcode.last_scanned_location,
                "applied": self.applied,
            }
        return {"scan": self.scan.as_dict(), "barcode": barcode}


class ScanIngestionService:
    """Records scan events and keeps ``barcodes`` in step with the newest one."""

    def __init__(self, scans: ScanRepository, barcodes: BarcodeRepository) -> None:
        self._scans = scans
        self._barcodes = barcodes

    def ingest(self, event: ScanEvent) -> IngestResult:
        barcode = self._barcodes.get_by_number(event.barcode_number)
        record = self._scans.save(event, barcode.id if barcode else None)

        if barcode is None:
            logger.info("Scan recorded for unknown barcode %s (scan=%s)", event.barcode_number, record.id)
            return IngestResult(scan=record)

        updated = self._barcodes.apply_scan(
            barcode.id,
            status_for_scan_type(event.scan_type),
            event.occurred_at,
            event.location,
        )
        if updated is None:
            logger.info(
                "Stale scan for barcode %s ignored for status (scan at %s, current %s)",
                event.barcode_number,
                format_dt(event.occurred_at),
                format_dt(barcode.last_scanned_at),
            )
            return IngestResult(scan=record, barcode=barcode, applied=False)
        return IngestResult(scan=record, barcode=updated, applied=True)
