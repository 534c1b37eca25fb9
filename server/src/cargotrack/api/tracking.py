"""Public tracking lookup (shipment ref, barcode number or invoice ref)."""

from __future__ import annotations

import logging
from http import HTTPStatus

from flask import Blueprint, current_app, jsonify, request

from cargotrack.ratelimit import with_rate_limit
from cargotrack.repositories import StorageError
from cargotrack.services import TrackingResolver

logger = logging.getLogger(__name__)

tracking_bp = Blueprint("tracking", __name__, url_prefix="/api/public")


@tracking_bp.route("/track", methods=["GET", "POST"])
@with_rate_limit("tracking")
def track():
    if request.method == "POST":
        payload = request.get_json(silent=True)
        query = payload.get("query") if isinstance(payload, dict) else None
    else:
        query = request.args.get("query")

    if not isinstance(query, str) or not query.strip():
        return jsonify({"error": "query is required", "status": 400}), HTTPStatus.BAD_REQUEST
    query = query.strip()

    resolver: TrackingResolver = current_app.config["TRACKING_RESOLVER"]
    try:
        match = resolver.resolve(query)
    except StorageError as exc:
        logger.error("Tracking lookup failed for %r: %s", query, exc)
        return jsonify({"error": "Tracking is temporarily unavailable", "status": 503}), HTTPStatus.SERVICE_UNAVAILABLE

    if match is None:
        return (
            jsonify({"error": "No shipment, barcode or invoice found for this reference", "status": 404}),
            HTTPStatus.NOT_FOUND,
        )
    return jsonify(match.as_dict(query))
