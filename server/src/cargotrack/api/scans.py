"""Blueprint for the /api/scans ingestion endpoint."""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from flask import Blueprint, current_app, jsonify, request

from cargotrack.models import SCAN_TYPES, ScanEvent, parse_dt, utcnow
from cargotrack.repositories import StorageError
from cargotrack.services import ScanBroadcaster, ScanIngestionService

logger = logging.getLogger(__name__)

scans_bp = Blueprint("scans", __name__, url_prefix="/api")


@scans_bp.route("/scans", methods=["POST"])
def ingest_scan():
    """Record a scan event and update the scanned barcode's status."""
    raw_payload = request.get_json(silent=True)
    try:
        event = _normalize_payload(raw_payload)
    except ValueError as exc:
        logger.info("Rejected scan payload: %s (%s)", raw_payload, exc)
        return (
            jsonify(
                {
                    "status": "error",
                    "reason": str(exc),
                }
            ),
            HTTPStatus.BAD_REQUEST,
        )

    service: ScanIngestionService = current_app.config["SCAN_INGESTION_SERVICE"]
    try:
        result = service.ingest(event)
    except StorageError as exc:
        logger.error("Scan ingestion failed for barcode %s: %s", event.barcode_number, exc)
        return jsonify({"status": "error", "error": "storage_unavailable"}), HTTPStatus.SERVICE_UNAVAILABLE

    broadcaster: ScanBroadcaster | None = current_app.config.get("BROADCAST_SERVICE")
    if broadcaster:
        broadcaster.scan_ingested(result)

    return jsonify(result.as_dict()), HTTPStatus.CREATED


def _optional_text(raw_payload: dict, key: str) -> str | None:
    value = raw_payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"invalid-{key}")
    return value.strip() or None


def _normalize_payload(raw_payload: Any) -> ScanEvent:
    if not isinstance(raw_payload, dict):
        raise ValueError("invalid-json")

    barcode = raw_payload.get("barcode")
    if not isinstance(barcode, str) or not barcode.strip():
        raise ValueError("missing-barcode")

    scan_type = raw_payload.get("scanType") or "scan"
    if scan_type not in SCAN_TYPES:
        raise ValueError("invalid-scanType")

    occurred_raw = raw_payload.get("occurredAt")
    if occurred_raw is None:
        occurred_at = utcnow()
    else:
        if not isinstance(occurred_raw, str):
            raise ValueError("invalid-occurredAt")
        try:
            occurred_at = parse_dt(occurred_raw)
        except ValueError as exc:
            raise ValueError("invalid-occurredAt") from exc

    return ScanEvent(
        barcode_number=barcode.strip(),
        scan_type=scan_type,
        location=_optional_text(raw_payload, "location"),
        occurred_at=occurred_at,
        operator_id=_optional_text(raw_payload, "operatorId"),
    )
