"""Minimal HTTP client for talking to the CargoTrack server."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

import requests

from .types import ScanEvent

# Rejections that will never succeed on retry; everything else stays queued.
NON_RETRYABLE_STATUSES = frozenset({400, 413, 422})


class ScanClientError(Exception):
    """Base error."""


class ScanClientConfigError(ScanClientError):
    """Configuration missing."""


class ScanDeliveryError(ScanClientError):
    """Transient failure (network, 5xx, 429, auth); the request may be retried."""


class ScanRejectedError(ScanClientError):
    """The server rejected the payload as malformed; retrying cannot help."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass
class ScanClient:
    base_url: str
    api_token: Optional[str] = None
    timeout: float = 5.0

    @classmethod
    def from_env(cls) -> "ScanClient":
        base = os.getenv("CARGOSCAN_API_BASE", "").strip()
        token = os.getenv("CARGOSCAN_API_TOKEN")
        timeout = float(os.getenv("CARGOSCAN_TIMEOUT", "5.0"))
        return cls(base_url=base, api_token=token, timeout=timeout)

    def is_configured(self) -> bool:
        return bool(self.base_url)

    def _build_url(self, path: str) -> str:
        if not path.startswith("/"):
            path = "/" + path
        return f"{self.base_url.rstrip('/')}{path}"

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
        allow_statuses: Optional[Iterable[int]] = None,
    ) -> requests.Response:
        if not self.is_configured():
            raise ScanClientConfigError("CARGOSCAN_API_BASE is not configured")

        url = self._build_url(path)
        headers = {}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"

        try:
            response = requests.request(
                method=method,
                url=url,
                params=params,
                json=json,
                timeout=self.timeout,
                headers=headers,
            )
        except requests.RequestException as exc:
            raise ScanDeliveryError(str(exc)) from exc

        allowed = set(allow_statuses or {200})
        if response.status_code in allowed:
            return response
        message = f"{method} {path} returned {response.status_code}: {response.text}"
        if response.status_code in NON_RETRYABLE_STATUSES:
            raise ScanRejectedError(message, response.status_code)
        raise ScanDeliveryError(message)

    def _json(self, response: requests.Response) -> dict:
        try:
            return response.json()
        except ValueError as exc:
            raise ScanDeliveryError("Invalid JSON response") from exc

    def submit_scan(self, event: ScanEvent) -> dict:
        response = self._request("POST", "/api/scans", json=event.as_payload(), allow_statuses={200, 201})
        return self._json(response)

    def resolve_barcodes(self, barcodes: Sequence[str]) -> List[Optional[str]]:
        response = self._request("POST", "/api/resolve-barcodes", json={"barcodes": list(barcodes)})
        return list(self._json(response).get("ids") or [])

    def create_manifest(
        self,
        *,
        origin_hub: str,
        destination: str,
        airline_code: str,
        scanned_barcode_ids: Sequence[str],
        manifest_ref: Optional[str] = None,
    ) -> dict:
        payload = {
            "originHub": origin_hub,
            "destination": destination,
            "airlineCode": airline_code,
            "scannedBarcodeIds": list(scanned_barcode_ids),
        }
        if manifest_ref:
            payload["manifestRef"] = manifest_ref
        response = self._request("POST", "/api/manifests", json=payload, allow_statuses={200, 201})
        return self._json(response)

    def track(self, query: str) -> Optional[dict]:
        """Return the tracking view for ``query``, or ``None`` when nothing matches."""
        response = self._request("GET", "/api/public/track", params={"query": query}, allow_statuses={200, 404})
        if response.status_code == 404:
            return None
        return self._json(response)
