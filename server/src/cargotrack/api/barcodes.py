"""Barcode resolution API used when finalizing a manifest."""

from __future__ import annotations

import logging
from http import HTTPStatus

from flask import Blueprint, current_app, jsonify, request

from cargotrack.repositories import StorageError
from cargotrack.services import BarcodeResolver

logger = logging.getLogger(__name__)

barcodes_bp = Blueprint("barcodes", __name__, url_prefix="/api")


@barcodes_bp.post("/resolve-barcodes")
def resolve_barcodes():
    """Return ids aligned with the posted barcode numbers (``null`` for unknown)."""
    payload = request.get_json(silent=True) or {}
    barcodes = payload.get("barcodes") if isinstance(payload, dict) else None
    if not isinstance(barcodes, list) or not barcodes or not all(isinstance(code, str) for code in barcodes):
        return jsonify({"error": "barcodes must be a non-empty array of strings"}), HTTPStatus.BAD_REQUEST

    resolver: BarcodeResolver = current_app.config["BARCODE_RESOLVER"]
    numbers = [code.strip() for code in barcodes]
    try:
        records = resolver.resolve_records(numbers)
    except StorageError as exc:
        logger.error("Barcode resolution failed for %d codes: %s", len(numbers), exc)
        return jsonify({"error": "storage_unavailable"}), HTTPStatus.SERVICE_UNAVAILABLE

    resolved = [
        {"id": record.id, "barcode_number": record.barcode_number, "shipment_id": record.shipment_id}
        if record
        else None
        for record in records
    ]
    return jsonify({"ids": [record.id if record else None for record in records], "resolved": resolved})
