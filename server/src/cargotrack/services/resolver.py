"""Batch translation of scanned barcode numbers into barcode ids."""

from __future__ import annotations

from typing import List, Optional, Sequence

from cargotrack.models import Barcode
from cargotrack.repositories import BarcodeRepository


class BarcodeResolver:
    """Resolve barcode numbers positionally; unknown numbers map to ``None``."""

    def __init__(self, barcodes: BarcodeRepository) -> None:
        self._barcodes = barcodes

    def resolve_records(self, barcode_numbers: Sequence[str]) -> List[Optional[Barcode]]:
        known = self._barcodes.find_by_numbers(barcode_numbers)
        return [known.get(number) for number in barcode_numbers]

    def resolve(self, barcode_numbers: Sequence[str]) -> List[Optional[str]]:
        return [barcode.id if barcode else None for barcode in self.resolve_records(barcode_numbers)]
