"""API blueprint package for CargoTrack."""

from .scans import scans_bp
from .barcodes import barcodes_bp
from .manifests import manifests_bp
from .tracking import tracking_bp
from .activity import activity_bp

__all__ = [
    "scans_bp",
    "barcodes_bp",
    "manifests_bp",
    "tracking_bp",
    "activity_bp",
]
