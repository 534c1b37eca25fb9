"""Repositories for manifests and their per-barcode items."""

from __future__ import annotations

import threading
import uuid
from dataclasses import replace
from typing import Dict, List, Protocol, Sequence

from cargotrack.models import Manifest, ManifestItem

from .base import ConflictError, DatabaseRepository


class ManifestRepository(Protocol):
    """Protocol for manifest persistence."""

    def create(self, manifest: Manifest, items: Sequence[ManifestItem]) -> Manifest:  # noqa: D401
        """
        Persist a manifest with its items and return it with an id.

        Raises ``ConflictError`` when ``manifest_ref`` is already taken.
        """

    def recent(self, limit: int = 10) -> List[Manifest]:
        """Return the newest manifests, newest first."""


class InMemoryManifestRepository:
    """In-memory manifest store for development/testing."""

    def __init__(self) -> None:
        self._manifests: List[Manifest] = []
        self._items: Dict[str, List[ManifestItem]] = {}
        self._lock = threading.Lock()

    def create(self, manifest: Manifest, items: Sequence[ManifestItem]) -> Manifest:
        stored = replace(
            manifest,
            id=str(uuid.uuid4()),
            barcode_ids=tuple(item.barcode_id for item in items),
        )
        with self._lock:
            if any(existing.manifest_ref == manifest.manifest_ref for existing in self._manifests):
                raise ConflictError(f"manifest ref {manifest.manifest_ref} already exists")
            self._manifests.append(stored)
            self._items[stored.id] = list(items)
        return stored

    def items(self, manifest_id: str) -> List[ManifestItem]:
        with self._lock:
            return list(self._items.get(manifest_id, []))

    def recent(self, limit: int = 10) -> List[Manifest]:
        if limit <= 0:
            return []
        with self._lock:
            return list(reversed(self._manifests))[:limit]


class DatabaseManifestRepository(DatabaseRepository):
    """PostgreSQL-backed manifest repository (``manifests`` / ``manifest_items``)."""

    def create(self, manifest: Manifest, items: Sequence[ManifestItem]) -> Manifest:
        # Manifest row and items share one transaction.
        with self._cursor(f"manifest insert ref={manifest.manifest_ref}") as cur:
            cur.execute(
                """
                INSERT INTO manifests (manifest_ref, origin_hub, destination, airline_code, manifest_date,
                                       total_weight, total_pieces, status, created_by)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING id::text AS id
                """,
                (
                    manifest.manifest_ref,
                    manifest.origin_hub,
                    manifest.destination,
                    manifest.airline_code,
                    manifest.manifest_date,
                    manifest.total_weight,
                    manifest.total_pieces,
                    manifest.status,
                    manifest.created_by,
                ),
            )
            manifest_id = cur.fetchone()["id"]
            cur.executemany(
                """
                INSERT INTO manifest_items (manifest_id, shipment_id, barcode_id, weight)
                VALUES (%s, %s, %s, %s)
                """,
                [(manifest_id, item.shipment_id, item.barcode_id, item.weight) for item in items],
            )
        return replace(manifest, id=manifest_id, barcode_ids=tuple(item.barcode_id for item in items))

    def recent(self, limit: int = 10) -> List[Manifest]:
        if limit <= 0:
            return []
        with self._cursor("recent manifests") as cur:
            cur.execute(
                """
                SELECT id::text AS id, manifest_ref, origin_hub, destination, airline_code, manifest_date,
                       total_weight, total_pieces, status, created_by
                  FROM manifests
              ORDER BY created_at DESC
                 LIMIT %s
                """,
                (limit,),
            )
            rows = cur.fetchall()
        return [
            Manifest(
                id=row["id"],
                manifest_ref=row["manifest_ref"],
                origin_hub=row.get("origin_hub") or "",
                destination=row.get("destination") or "",
                airline_code=row.get("airline_code") or "",
                manifest_date=row.get("manifest_date"),
                total_weight=float(row.get("total_weight") or 0),
                total_pieces=int(row.get("total_pieces") or 0),
                status=row.get("status") or "scheduled",
                created_by=row.get("created_by"),
            )
            for row in rows
        ]
