"""Read-only shipment lookups used by tracking and manifest assembly."""

from __future__ import annotations

import threading
from typing import Dict, List, Optional, Protocol, Sequence

from cargotrack.models import Shipment

from .base import DatabaseRepository


class ShipmentRepository(Protocol):
    """Protocol for shipment lookups."""

    def get_by_ref(self, shipment_ref: str) -> Optional[Shipment]:  # noqa: D401
        """Return the shipment with this reference."""

    def get(self, shipment_id: str) -> Optional[Shipment]:
        """Return the shipment with this id."""

    def get_many(self, shipment_ids: Sequence[str]) -> List[Shipment]:
        """Return shipments in the order of ``shipment_ids``; unknown ids are skipped."""


class InMemoryShipmentRepository:
    """In-memory shipment table for development/testing."""

    def __init__(self, shipments: Sequence[Shipment] = ()) -> None:
        self._by_id: Dict[str, Shipment] = {}
        self._lock = threading.Lock()
        for shipment in shipments:
            self.add(shipment)

    def add(self, shipment: Shipment) -> Shipment:
        with self._lock:
            self._by_id[shipment.id] = shipment
        return shipment

    def get_by_ref(self, shipment_ref: str) -> Optional[Shipment]:
        with self._lock:
            for shipment in self._by_id.values():
                if shipment.shipment_ref == shipment_ref:
                    return shipment
        return None

    def get(self, shipment_id: str) -> Optional[Shipment]:
        with self._lock:
            return self._by_id.get(shipment_id)

    def get_many(self, shipment_ids: Sequence[str]) -> List[Shipment]:
        with self._lock:
            found = [self._by_id.get(shipment_id) for shipment_id in dict.fromkeys(shipment_ids)]
        return [shipment for shipment in found if shipment is not None]


class DatabaseShipmentRepository(DatabaseRepository):
    """PostgreSQL-backed shipment repository (``shipments`` table)."""

    _COLUMNS = (
        "id::text AS id, shipment_ref, origin, destination, weight, status, progress, "
        "created_at, updated_at"
    )

    def get_by_ref(self, shipment_ref: str) -> Optional[Shipment]:
        with self._cursor(f"shipment lookup ref={shipment_ref}") as cur:
            cur.execute(
                f"SELECT {self._COLUMNS} FROM shipments WHERE shipment_ref = %s LIMIT 1",
                (shipment_ref,),
            )
            row = cur.fetchone()
        return _row_to_shipment(row) if row else None

    def get(self, shipment_id: str) -> Optional[Shipment]:
        shipments = self.get_many([shipment_id])
        return shipments[0] if shipments else None

    def get_many(self, shipment_ids: Sequence[str]) -> List[Shipment]:
        ids = list(dict.fromkeys(shipment_ids))
        if not ids:
            return []
        with self._cursor(f"shipment fetch ids={len(ids)}") as cur:
            cur.execute(
                f"SELECT {self._COLUMNS} FROM shipments WHERE id::text = ANY(%s)",
                (ids,),
            )
            rows = cur.fetchall()
        by_id = {row["id"]: _row_to_shipment(row) for row in rows}
        return [by_id[shipment_id] for shipment_id in ids if shipment_id in by_id]


def _row_to_shipment(row: dict) -> Shipment:
    weight = row.get("weight")
    return Shipment(
        id=row["id"],
        shipment_ref=row["shipment_ref"],
        origin=row.get("origin"),
        destination=row.get("destination"),
        weight=float(weight) if weight is not None else None,
        status=row.get("status"),
        progress=row.get("progress"),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )
