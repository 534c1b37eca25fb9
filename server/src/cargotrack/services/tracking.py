"""
Public tracking resolution.

A single user-supplied reference is tried, in order, as a shipment reference,
a barcode number and an invoice reference. The first hit wins; there is no
ambiguity check because the three reference formats are namespaced. Each hit
produces its own match type so callers handle every terminal case explicitly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

from cargotrack.models import Barcode, Customer, Invoice, ScanRecord, Shipment
from cargotrack.repositories import (
    BarcodeRepository,
    InvoiceRepository,
    ScanRepository,
    ShipmentRepository,
)

logger = logging.getLogger(__name__)


@dataclass
class _Aggregate:
    barcodes: List[Barcode] = field(default_factory=list)
    scans: List[ScanRecord] = field(default_factory=list)


@dataclass
class ShipmentMatch:
    matched_on = "shipment_ref"
    lookup_type = "shipment_ref"

    shipment: Shipment
    barcodes: List[Barcode]
    scans: List[ScanRecord]

    def as_dict(self, query: str) -> Dict[str, Any]:
        return _result(self.lookup_type, self.matched_on, query, self.shipment, [self.shipment], self.barcodes, self.scans)


@dataclass
class BarcodeMatch:
    """
    Barcode hit. ``shipment`` is ``None`` for a barcode not linked to a shipment.

    A linked barcode is reported as a shipment lookup (``lookupType`` is
    ``shipment_ref``) because the view is the whole shipment; ``matchedOn``
    still says the reference was a barcode number.
    """

    matched_on = "barcode"

    barcode: Barcode
    shipment: Optional[Shipment]
    barcodes: List[Barcode]
    scans: List[ScanRecord]

    @property
    def lookup_type(self) -> str:
        return "shipment_ref" if self.shipment else "barcode"

    def as_dict(self, query: str) -> Dict[str, Any]:
        shipments = [self.shipment] if self.shipment else []
        return _result(self.lookup_type, self.matched_on, query, self.shipment, shipments, self.barcodes, self.scans)


@dataclass
class InvoiceMatch:
    matched_on = "invoice_ref"
    lookup_type = "invoice_ref"

    invoice: Invoice
    customer: Optional[Customer]
    shipments: List[Shipment]
    barcodes: List[Barcode]
    scans: List[ScanRecord]

    def as_dict(self, query: str) -> Dict[str, Any]:
        shipment = self.shipments[0] if len(self.shipments) == 1 else None
        result = _result(self.lookup_type, self.matched_on, query, shipment, self.shipments, self.barcodes, self.scans)
        result["invoice"] = self.invoice.as_dict()
        result["customer"] = self.customer.as_dict() if self.customer else None
        return result


TrackingMatch = Union[ShipmentMatch, BarcodeMatch, InvoiceMatch]


def _result(
    lookup_type: str,
    matched_on: str,
    query: str,
    shipment: Optional[Shipment],
    shipments: Sequence[Shipment],
    barcodes: Sequence[Barcode],
    scans: Sequence[ScanRecord],
) -> Dict[str, Any]:
    return {
        "lookupType": lookup_type,
        "lookup": {"type": lookup_type, "value": query},
        "matchedOn": matched_on,
        "shipment": shipment.as_dict() if shipment else None,
        "shipments": [item.as_dict() for item in shipments],
        "barcodes": [item.as_dict() for item in barcodes],
        "scans": [item.as_dict() for item in scans],
        "invoice": None,
        "customer": None,
    }


class TrackingResolver:
    """Resolve a reference through the shipment -> barcode -> invoice chain."""

    def __init__(
        self,
        shipments: ShipmentRepository,
        barcodes: BarcodeRepository,
        scans: ScanRepository,
        invoices: InvoiceRepository,
    ) -> None:
        self._shipments = shipments
        self._barcodes = barcodes
        self._scans = scans
        self._invoices = invoices

    def resolve(self, query: str) -> Optional[TrackingMatch]:
        """Return the first matching view for ``query``, or ``None`` when nothing matches."""
        reference = (query or "").strip()
        if not reference:
            return None

        shipment = self._shipments.get_by_ref(reference)
        if shipment is not None:
            aggregate = self._aggregate([shipment.id])
            return ShipmentMatch(shipment=shipment, barcodes=aggregate.barcodes, scans=aggregate.scans)

        barcode = self._barcodes.get_by_number(reference)
        if barcode is not None:
            return self._barcode_match(barcode)

        invoice = self._invoices.get_by_ref(reference)
        if invoice is not None:
            return self._invoice_match(invoice)

        logger.info("Tracking lookup found no match for %r", reference)
        return None

    def _barcode_match(self, barcode: Barcode) -> BarcodeMatch:
        if not barcode.shipment_id:
            scans = self._scans.list_for_barcodes([barcode.barcode_number])
            return BarcodeMatch(barcode=barcode, shipment=None, barcodes=[barcode], scans=scans)

        shipment = self._shipments.get(barcode.shipment_id)
        if shipment is None:
            logger.warning(
                "Barcode %s references missing shipment %s", barcode.barcode_number, barcode.shipment_id
            )
        aggregate = self._aggregate([barcode.shipment_id])
        return BarcodeMatch(
            barcode=barcode,
            shipment=shipment,
            barcodes=aggregate.barcodes or [barcode],
            scans=aggregate.scans,
        )

    def _invoice_match(self, invoice: Invoice) -> InvoiceMatch:
        shipments = self._shipments.get_many(self._invoices.shipment_ids(invoice.id))
        aggregate = self._aggregate([shipment.id for shipment in shipments])
        customer = self._invoices.get_customer(invoice.customer_id) if invoice.customer_id else None
        return InvoiceMatch(
            invoice=invoice,
            customer=customer,
            shipments=shipments,
            barcodes=aggregate.barcodes,
            scans=aggregate.scans,
        )

    def _aggregate(self, shipment_ids: Sequence[str]) -> _Aggregate:
        if not shipment_ids:
            return _Aggregate()
        barcodes = self._barcodes.list_for_shipments(shipment_ids)
        scans = self._scans.list_for_barcodes([barcode.barcode_number for barcode in barcodes])
        return _Aggregate(barcodes=barcodes, scans=scans)
