"""Handheld scan client: offline queue, server client and manifest sessions."""

from .client import (
    ScanClient,
    ScanClientConfigError,
    ScanClientError,
    ScanDeliveryError,
    ScanRejectedError,
)
from .offline_queue import OfflineScanQueue
from .session import ManifestScanSession, NoPackagesResolvedError, SessionFinalizedError
from .triggers import FlushTrigger
from .types import FlushReport, PendingScan, ScanEvent

__all__ = [
    "ScanClient",
    "ScanClientConfigError",
    "ScanClientError",
    "ScanDeliveryError",
    "ScanRejectedError",
    "OfflineScanQueue",
    "ManifestScanSession",
    "NoPackagesResolvedError",
    "SessionFinalizedError",
    "FlushTrigger",
    "FlushReport",
    "PendingScan",
    "ScanEvent",
]
