#!/usr/bin/env python3
"""
Inspect and drive the handheld offline scan queue without the scanner UI.

Examples:
    scan_queue_ctl.py status
    scan_queue_ctl.py enqueue BC-001 --type scanned_for_manifest --location Imphal
    CARGOSCAN_API_BASE=http://127.0.0.1:8501 scan_queue_ctl.py flush
"""

from __future__ import annotations

import argparse
import logging
import sys

from cargoscan import FlushTrigger, OfflineScanQueue, ScanClient, ScanEvent
from cargoscan.offline_queue import QUEUE_FILE


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Offline scan queue control")
    parser.add_argument("--queue", default=str(QUEUE_FILE), help=f"Queue database path (default: {QUEUE_FILE})")
    parser.add_argument("--log-level", default="INFO", help="Python logging level (default: INFO)")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("status", help="Show queued scans")

    enqueue = sub.add_parser("enqueue", help="Queue a scan for later delivery")
    enqueue.add_argument("barcode")
    enqueue.add_argument("--type", dest="scan_type", default="scan", choices=["scan", "scanned_for_manifest", "delivered"])
    enqueue.add_argument("--location")
    enqueue.add_argument("--operator")

    sub.add_parser("flush", help="Deliver queued scans to the server (CARGOSCAN_API_BASE)")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
    )
    queue = OfflineScanQueue(args.queue)

    if args.command == "enqueue":
        item = queue.enqueue(
            ScanEvent(
                barcode=args.barcode,
                scan_type=args.scan_type,
                location=args.location,
                operator_id=args.operator,
            )
        )
        print(f"queued id={item.queue_id} barcode={item.event.barcode}")
        return 0

    if args.command == "flush":
        client = ScanClient.from_env()
        if not client.is_configured():
            print("CARGOSCAN_API_BASE is not configured", file=sys.stderr)
            return 2
        report = FlushTrigger(queue, client.submit_scan).flush()
        if report is None:
            print("queue empty")
            return 0
        print(f"delivered={len(report.delivered)} dropped={len(report.dropped)} remaining={report.remaining}")
        return 1 if report.stopped_early else 0

    pending = queue.pending()
    print(f"queued scans: {len(pending)}")
    for item in pending:
        print(
            f"  #{item.queue_id} {item.event.barcode} type={item.event.scan_type} "
            f"attempts={item.attempts} queued_at={item.enqueued_at.isoformat()}"
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())
