#!/usr/bin/env python3
"""
Send a test scan to the CargoTrack server and optionally look it up.

Example:
    python server/scripts/send_scan.py --barcode BC-001 \
      --type scanned_for_manifest --location Imphal --track SHP-1001
"""

from __future__ import annotations

import argparse
import json
import os
import sys
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass

DEFAULT_API_BASE = "http://127.0.0.1:8501"


@dataclass
class ScanPayload:
    barcode: str
    scan_type: str = "scan"
    location: str | None = None

    def as_dict(self) -> dict[str, str]:
        data = {"barcode": self.barcode, "scanType": self.scan_type}
        if self.location:
            data["location"] = self.location
        return data


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Send scan payload to CargoTrack.")
    parser.add_argument("--api", dest="api_base", default=os.environ.get("API_BASE", DEFAULT_API_BASE))
    parser.add_argument("--barcode", required=True)
    parser.add_argument("--type", dest="scan_type", default="scan")
    parser.add_argument("--location")
    parser.add_argument("--track", dest="track_query", help="Reference to look up after the scan")
    parser.add_argument("--token", dest="token", default=os.environ.get("API_TOKEN"))
    parser.add_argument("--dry-run", action="store_true", help="Print payload without sending")
    return parser


def _call(request: urllib.request.Request) -> int:
    try:
        with urllib.request.urlopen(request, timeout=10) as response:
            body = response.read().decode("utf-8")
            print(f"Response ({response.status}): {body}")
            return 0
    except urllib.error.HTTPError as exc:
        print(f"HTTP error {exc.code}: {exc.read().decode('utf-8')}", file=sys.stderr)
        return exc.code
    except urllib.error.URLError as exc:
        print(f"Request failed: {exc}", file=sys.stderr)
        return 1


def main() -> int:
    args = build_parser().parse_args()

    payload = ScanPayload(barcode=args.barcode, scan_type=args.scan_type, location=args.location)
    print("=== Send Scan Payload ===")
    print(f"API base   : {args.api_base}")
    print(f"Barcode    : {payload.barcode}")
    print(f"Scan type  : {payload.scan_type}")
    print(f"Location   : {payload.location or '(none)'}")

    if args.dry_run:
        print("Dry-run mode. Payload not sent.")
        return 0

    base = args.api_base.rstrip("/")
    headers = {"Content-Type": "application/json"}
    if args.token:
        headers["Authorization"] = f"Bearer {args.token}"

    request = urllib.request.Request(
        url=f"{base}/api/scans",
        data=json.dumps(payload.as_dict()).encode("utf-8"),
        headers=headers,
        method="POST",
    )
    status = _call(request)
    if status or not args.track_query:
        return status

    query = urllib.parse.urlencode({"query": args.track_query})
    return _call(urllib.request.Request(url=f"{base}/api/public/track?{query}", method="GET"))


if __name__ == "__main__":
    sys.exit(main())
