"""Operations activity feed: latest scans and manifests."""

from __future__ import annotations

import logging
from http import HTTPStatus

from flask import Blueprint, current_app, jsonify

from cargotrack.repositories import ManifestRepository, ScanRepository, StorageError

logger = logging.getLogger(__name__)

activity_bp = Blueprint("activity", __name__, url_prefix="/api/ops")

SCAN_LIMIT = 20
MANIFEST_LIMIT = 10


@activity_bp.get("/activity")
def recent_activity():
    scans: ScanRepository = current_app.config["SCAN_REPOSITORY"]
    manifests: ManifestRepository = current_app.config["MANIFEST_REPOSITORY"]
    try:
        recent_scans = scans.recent(SCAN_LIMIT)
        recent_manifests = manifests.recent(MANIFEST_LIMIT)
    except StorageError as exc:
        logger.error("Activity feed failed: %s", exc)
        return jsonify({"error": "storage_unavailable"}), HTTPStatus.SERVICE_UNAVAILABLE

    return jsonify(
        {
            "scans": [scan.as_dict() for scan in recent_scans],
            "manifests": [manifest.as_dict() for manifest in recent_manifests],
        }
    )
