"""Service layer utilities."""

from .broadcast import SCAN_INGESTED, ScanBroadcaster, ScanIngestedEvent, SocketIOScanBroadcaster
from .ingestion import IngestResult, ScanIngestionService
from .manifests import (
    ManifestAssemblyService,
    ManifestError,
    ManifestRefConflictError,
    ManifestRequest,
    NoPackagesResolvedError,
)
from .resolver import BarcodeResolver
from .tracking import BarcodeMatch, InvoiceMatch, ShipmentMatch, TrackingMatch, TrackingResolver

__all__ = [
    "SCAN_INGESTED",
    "ScanBroadcaster",
    "ScanIngestedEvent",
    "SocketIOScanBroadcaster",
    "IngestResult",
    "ScanIngestionService",
    "ManifestAssemblyService",
    "ManifestError",
    "ManifestRefConflictError",
    "ManifestRequest",
    "NoPackagesResolvedError",
    "BarcodeResolver",
    "BarcodeMatch",
    "InvoiceMatch",
    "ShipmentMatch",
    "TrackingMatch",
    "TrackingResolver",
]
