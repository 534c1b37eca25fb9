"""
Live ``scan.ingested`` notifications for ops dashboards.

Broadcasting is fire-and-forget: it runs after the scan is persisted, a
failed emit is logged and dropped, and the ingest request still returns 201.
Clients that miss an event recover through ``GET /api/ops/activity``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from cargotrack.models import format_dt

from .ingestion import IngestResult

logger = logging.getLogger(__name__)

SCAN_INGESTED = "scan.ingested"


@dataclass(frozen=True)
class ScanIngestedEvent:
    scan_id: str
    barcode_number: str
    barcode_id: Optional[str]
    scan_type: str
    location: Optional[str]
    scanned_at: Optional[str]
    status: Optional[str]
    applied: bool

    @classmethod
    def from_result(cls, result: IngestResult) -> "ScanIngestedEvent":
        scan = result.scan
        return cls(
            scan_id=scan.id,
            barcode_number=scan.barcode_number,
            barcode_id=scan.barcode_id,
            scan_type=scan.scan_type,
            location=scan.location,
            scanned_at=format_dt(scan.occurred_at),
            status=result.barcode.status if result.barcode else None,
            applied=result.applied,
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "scanId": self.scan_id,
            "barcodeNumber": self.barcode_number,
            "barcodeId": self.barcode_id,
            "scanType": self.scan_type,
            "location": self.location,
            "scannedAt": self.scanned_at,
            "status": self.status,
            "applied": self.applied,
        }


class ScanBroadcaster(Protocol):
    def scan_ingested(self, result: IngestResult) -> None:  # noqa: D401
        """Announce a persisted scan. Must not raise."""


class SocketIOScanBroadcaster:
    """Emit ``scan.ingested`` on a Socket.IO namespace."""

    def __init__(self, socketio=None, namespace: str = "/") -> None:
        self._socketio = socketio
        self._namespace = namespace

    def scan_ingested(self, result: IngestResult) -> None:
        event = ScanIngestedEvent.from_result(result)
        if self._socketio is None:
            logger.debug("SocketIO not configured; scan %s not broadcast", event.scan_id)
            return
        try:
            self._socketio.emit(SCAN_INGESTED, event.as_dict(), namespace=self._namespace)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Broadcast of scan %s (%s) failed: %s", event.scan_id, event.barcode_number, exc)
