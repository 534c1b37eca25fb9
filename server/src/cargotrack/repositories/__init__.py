"""Repository interfaces and implementations."""

from .base import ConflictError, DatabaseRepository, StorageError
from .scans import ScanRepository, InMemoryScanRepository, DatabaseScanRepository
from .barcodes import BarcodeRepository, InMemoryBarcodeRepository, DatabaseBarcodeRepository
from .shipments import ShipmentRepository, InMemoryShipmentRepository, DatabaseShipmentRepository
from .invoices import InvoiceRepository, InMemoryInvoiceRepository, DatabaseInvoiceRepository
from .manifests import ManifestRepository, InMemoryManifestRepository, DatabaseManifestRepository

__all__ = [
    "ConflictError",
    "DatabaseRepository",
    "StorageError",
    "ScanRepository",
    "InMemoryScanRepository",
    "DatabaseScanRepository",
    "BarcodeRepository",
    "InMemoryBarcodeRepository",
    "DatabaseBarcodeRepository",
    "ShipmentRepository",
    "InMemoryShipmentRepository",
    "DatabaseShipmentRepository",
    "InvoiceRepository",
    "InMemoryInvoiceRepository",
    "DatabaseInvoiceRepository",
    "ManifestRepository",
    "InMemoryManifestRepository",
    "DatabaseManifestRepository",
]
