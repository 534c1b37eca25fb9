"""Records exchanged between repositories, services and blueprints."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

SCAN_TYPES = ("scan", "scanned_for_manifest", "delivered")

_STATUS_BY_SCAN_TYPE = {
    "scanned_for_manifest": "scanned_for_manifest",
    "delivered": "delivered",
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_dt(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def parse_dt(value: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are read as UTC."""
    parsed = datetime.fromisoformat(value.strip())
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def status_for_scan_type(scan_type: str) -> str:
    """Return the barcode status a scan of ``scan_type`` moves the package into."""
    return _STATUS_BY_SCAN_TYPE.get(scan_type, "in-transit")


@dataclass(frozen=True)
class ScanEvent:
    barcode_number: str
    scan_type: str = "scan"
    location: Optional[str] = None
    occurred_at: datetime = field(default_factory=utcnow)
    operator_id: Optional[str] = None


@dataclass(frozen=True)
class ScanRecord:
    """A scan event as stored in the append-only scan log."""

    id: str
    barcode_number: str
    barcode_id: Optional[str]
    scan_type: str
    location: Optional[str]
    occurred_at: datetime
    operator_id: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "barcode_id": self.barcode_id,
            "barcode_number": self.barcode_number,
            "scan_type": self.scan_type,
            "location": self.location,
            "scanned_at": format_dt(self.occurred_at),
            "scanned_by": self.operator_id,
        }


@dataclass
class Barcode:
    id: str
    barcode_number: str
    shipment_id: Optional[str] = None
    status: Optional[str] = None
    last_scanned_at: Optional[datetime] = None
    last_scanned_location: Optional[str] = None
    created_at: Optional[datetime] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "barcode_number": self.barcode_number,
            "shipment_id": self.shipment_id,
            "status": self.status,
            "last_scanned_at": format_dt(self.last_scanned_at),
            "last_scanned_location": self.last_scanned_location,
            "created_at": format_dt(self.created_at),
        }


@dataclass
class Shipment:
    id: str
    shipment_ref: str
    origin: Optional[str] = None
    destination: Optional[str] = None
    weight: Optional[float] = None
    status: Optional[str] = None
    progress: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "shipment_ref": self.shipment_ref,
            "origin": self.origin,
            "destination": self.destination,
            "weight": self.weight,
            "status": self.status,
            "progress": self.progress,
            "created_at": format_dt(self.created_at),
            "updated_at": format_dt(self.updated_at),
        }


@dataclass
class Customer:
    id: str
    name: Optional[str] = None
    phone: Optional[str] = None
    city: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "phone": self.phone, "city": self.city}


@dataclass
class Invoice:
    id: str
    invoice_ref: str
    customer_id: Optional[str] = None
    amount: Optional[float] = None
    status: Optional[str] = None
    invoice_date: Optional[datetime] = None
    due_date: Optional[datetime] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "invoice_ref": self.invoice_ref,
            "customer_id": self.customer_id,
            "amount": self.amount,
            "status": self.status,
            "invoice_date": format_dt(self.invoice_date),
            "due_date": format_dt(self.due_date),
        }


@dataclass
class ManifestItem:
    barcode_id: str
    shipment_id: Optional[str] = None
    weight: Optional[float] = None


@dataclass
class Manifest:
    manifest_ref: str
    origin_hub: str
    destination: str
    airline_code: str
    manifest_date: datetime
    total_weight: float = 0.0
    total_pieces: int = 0
    status: str = "scheduled"
    created_by: Optional[str] = None
    id: Optional[str] = None
    barcode_ids: tuple[str, ...] = ()

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "manifest_ref": self.manifest_ref,
            "origin_hub": self.origin_hub,
            "destination": self.destination,
            "airline_code": self.airline_code,
            "manifest_date": format_dt(self.manifest_date),
            "total_weight": self.total_weight,
            "total_pieces": self.total_pieces,
            "status": self.status,
            "created_by": self.created_by,
            "barcode_ids": list(self.barcode_ids),
        }
