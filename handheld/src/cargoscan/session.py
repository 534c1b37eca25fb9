"""Manifest scanning session: record scans for one route, then finalize once."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .client import ScanClient, ScanClientError, ScanDeliveryError, ScanRejectedError
from .offline_queue import OfflineScanQueue
from .types import ScanEvent

logger = logging.getLogger(__name__)


class NoPackagesResolvedError(ScanClientError):
    """None of the session's barcodes matched a known package."""

    def __init__(self, unresolved: List[str]) -> None:
        super().__init__("no packages resolved")
        self.unresolved = unresolved


class SessionFinalizedError(ScanClientError):
    """The session already produced a manifest."""


@dataclass
class SessionScan:
    code: str
    scan_id: Optional[str] = None
    queued: bool = False


@dataclass
class FinalizeResult:
    manifest: dict
    unresolved: List[str] = field(default_factory=list)


class ManifestScanSession:
    def __init__(
        self,
        client: ScanClient,
        queue: OfflineScanQueue,
        *,
        origin_hub: str,
        destination: str,
        airline_code: str,
        is_online: Callable[[], bool] = lambda: True,
    ) -> None:
        self.client = client
        self.queue = queue
        self.origin_hub = origin_hub
        self.destination = destination
        self.airline_code = airline_code
        self.is_online = is_online
        self.scans: List[SessionScan] = []
        self.manifest: Optional[dict] = None

    def record(self, code: str) -> Optional[SessionScan]:
        """
        Submit a scan, or queue it while offline or behind earlier queued scans.

        Duplicates within the session are ignored.
        """
        code = (code or "").strip()
        if not code or any(scan.code == code for scan in self.scans):
            return None

        event = ScanEvent(barcode=code, scan_type="scanned_for_manifest", location=self.origin_hub)
        entry = SessionScan(code=code)
        if not self.is_online() or self.queue.size() > 0:
            # keep capture order: older queued scans must reach the server first
            self.queue.enqueue(event)
            entry.queued = True
        else:
            try:
                response = self.client.submit_scan(event)
                entry.scan_id = (response.get("scan") or {}).get("id")
            except ScanDeliveryError as exc:
                logger.info("Scan %s not delivered, queuing offline: %s", code, exc)
                self.queue.enqueue(event)
                entry.queued = True
            except ScanRejectedError as exc:
                logger.warning("Scan %s rejected by server: %s", code, exc)
                return None
        self.scans.append(entry)
        return entry

    def finalize(self) -> FinalizeResult:
        """Resolve the session's barcodes and create the manifest."""
        if self.manifest is not None:
            raise SessionFinalizedError("session already finalized")
        codes = [scan.code for scan in self.scans]
        if not codes:
            raise NoPackagesResolvedError([])

        ids = self.client.resolve_barcodes(codes)
        unresolved = [code for code, barcode_id in zip(codes, ids) if not barcode_id]
        resolved = [barcode_id for barcode_id in ids if barcode_id]
        if not resolved:
            raise NoPackagesResolvedError(unresolved)

        response = self.client.create_manifest(
            origin_hub=self.origin_hub,
            destination=self.destination,
            airline_code=self.airline_code,
            scanned_barcode_ids=resolved,
        )
        self.manifest = response.get("manifest") or {}
        logger.info(
            "Manifest %s finalized with %s packages (%s unresolved)",
            self.manifest.get("manifest_ref"),
            len(resolved),
            len(unresolved),
        )
        return FinalizeResult(manifest=self.manifest, unresolved=unresolved)
