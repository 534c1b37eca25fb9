"""Manifest creation API."""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from flask import Blueprint, current_app, jsonify, request

from cargotrack.repositories import StorageError
from cargotrack.services import (
    ManifestAssemblyService,
    ManifestError,
    ManifestRefConflictError,
    ManifestRequest,
    NoPackagesResolvedError,
)

logger = logging.getLogger(__name__)

manifests_bp = Blueprint("manifests", __name__, url_prefix="/api")


@manifests_bp.post("/manifests")
def create_manifest():
    try:
        manifest_request = _normalize_payload(request.get_json(silent=True))
    except ValueError as exc:
        return jsonify({"success": False, "error": str(exc)}), HTTPStatus.BAD_REQUEST

    service: ManifestAssemblyService = current_app.config["MANIFEST_SERVICE"]
    try:
        manifest = service.create(manifest_request)
    except NoPackagesResolvedError as exc:
        return jsonify({"success": False, "error": str(exc)}), HTTPStatus.UNPROCESSABLE_ENTITY
    except ManifestRefConflictError as exc:
        return jsonify({"success": False, "error": str(exc)}), HTTPStatus.CONFLICT
    except ManifestError as exc:
        return jsonify({"success": False, "error": str(exc)}), HTTPStatus.BAD_REQUEST
    except StorageError as exc:
        logger.error("Manifest creation failed (%s -> %s): %s", manifest_request.origin_hub, manifest_request.destination, exc)
        return jsonify({"success": False, "error": "storage_unavailable"}), HTTPStatus.SERVICE_UNAVAILABLE

    return jsonify({"success": True, "manifest": manifest.as_dict()}), HTTPStatus.CREATED


def _required_text(raw_payload: dict, key: str) -> str:
    value = raw_payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"missing-{key}")
    return value.strip()


def _normalize_payload(raw_payload: Any) -> ManifestRequest:
    if not isinstance(raw_payload, dict):
        raise ValueError("invalid-json")

    ids = raw_payload.get("scannedBarcodeIds")
    if not isinstance(ids, list) or not all(item is None or isinstance(item, str) for item in ids):
        raise ValueError("invalid-scannedBarcodeIds")

    manifest_ref = raw_payload.get("manifestRef")
    if manifest_ref is not None and not isinstance(manifest_ref, str):
        raise ValueError("invalid-manifestRef")
    created_by = raw_payload.get("createdBy")
    if created_by is not None and not isinstance(created_by, str):
        raise ValueError("invalid-createdBy")

    return ManifestRequest(
        origin_hub=_required_text(raw_payload, "originHub"),
        destination=_required_text(raw_payload, "destination"),
        airline_code=_required_text(raw_payload, "airlineCode"),
        scanned_barcode_ids=ids,
        manifest_ref=manifest_ref,
        created_by=created_by,
    )
