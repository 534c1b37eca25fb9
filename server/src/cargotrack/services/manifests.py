"""Manifest assembly from a scanning session."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from cargotrack.models import Manifest, ManifestItem, utcnow
from cargotrack.repositories import BarcodeRepository, ConflictError, ManifestRepository, ShipmentRepository

logger = logging.getLogger(__name__)


class ManifestError(Exception):
    """Base exception for manifest assembly failures."""


class NoPackagesResolvedError(ManifestError):
    """Raised when none of the scanned barcode ids resolve to a known barcode."""

    def __init__(self) -> None:
        super().__init__("no packages resolved")


class ManifestRefConflictError(ManifestError):
    """Raised when the manifest reference is already used by another manifest."""

    def __init__(self, manifest_ref: str) -> None:
        super().__init__(f"manifest ref {manifest_ref} already exists")
        self.manifest_ref = manifest_ref


@dataclass
class ManifestRequest:
    origin_hub: str
    destination: str
    airline_code: str
    scanned_barcode_ids: Sequence[Optional[str]] = field(default_factory=list)
    manifest_ref: Optional[str] = None
    created_by: Optional[str] = None


def generate_manifest_ref(now: datetime) -> str:
    return f"MAN-{int(now.timestamp() * 1000)}-{uuid.uuid4().hex[:6]}"


class ManifestAssemblyService:
    """
    Turn resolved barcode ids plus route metadata into a persisted manifest.

    Not idempotent: every call that succeeds writes a new manifest. Overlapping
    barcode sets across manifests are allowed.
    """

    def __init__(
        self,
        barcodes: BarcodeRepository,
        shipments: ShipmentRepository,
        manifests: ManifestRepository,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._barcodes = barcodes
        self._shipments = shipments
        self._manifests = manifests
        self._clock = clock

    def create(self, request: ManifestRequest) -> Manifest:
        for name in ("origin_hub", "destination", "airline_code"):
            if not str(getattr(request, name) or "").strip():
                raise ManifestError(f"missing-{name}")

        candidate_ids = [barcode_id for barcode_id in request.scanned_barcode_ids if barcode_id]
        barcodes = self._barcodes.get_many(candidate_ids) if candidate_ids else []
        if not barcodes:
            logger.info("Manifest rejected: none of %d scanned ids resolved", len(request.scanned_barcode_ids))
            raise NoPackagesResolvedError()

        shipment_ids = [barcode.shipment_id for barcode in barcodes if barcode.shipment_id]
        weights = {shipment.id: shipment.weight for shipment in self._shipments.get_many(shipment_ids)}

        items: List[ManifestItem] = [
            ManifestItem(
                barcode_id=barcode.id,
                shipment_id=barcode.shipment_id,
                weight=weights.get(barcode.shipment_id) if barcode.shipment_id else None,
            )
            for barcode in barcodes
        ]
        now = self._clock()
        manifest = Manifest(
            manifest_ref=(request.manifest_ref or "").strip() or generate_manifest_ref(now),
            origin_hub=request.origin_hub.strip(),
            destination=request.destination.strip(),
            airline_code=request.airline_code.strip(),
            manifest_date=now,
            # each shipment's weight counts once even when several of its packages are on board
            total_weight=float(sum(weight or 0 for weight in weights.values())),
            total_pieces=len(items),
            created_by=request.created_by,
        )
        try:
            created = self._manifests.create(manifest, items)
        except ConflictError as exc:
            logger.info("Manifest rejected: %s", exc)
            raise ManifestRefConflictError(manifest.manifest_ref) from exc
        dropped = len(request.scanned_barcode_ids) - len(items)
        logger.info(
            "Manifest %s created: pieces=%s dropped=%s route=%s->%s",
            created.manifest_ref,
            created.total_pieces,
            dropped,
            created.origin_hub,
            created.destination,
        )
        return created
