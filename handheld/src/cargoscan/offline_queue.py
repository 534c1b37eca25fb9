"""
Durable offline scan queue.

Scans that cannot be delivered right away are appended to a local SQLite
file and replayed in FIFO order by ``flush``. A retryable failure leaves the
item at the head of the queue and ends the flush so later scans never
overtake it; a malformed scan rejected by the server is dropped.
"""

from __future__ import annotations

import json
import logging
import os
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

from .client import ScanClientError, ScanRejectedError
from .types import FlushReport, PendingScan, ScanEvent, utcnow

logger = logging.getLogger(__name__)

QUEUE_FILE = Path(os.environ.get("CARGOSCAN_QUEUE_PATH", "~/.cargoscan/scan_queue.db")).expanduser()


class OfflineScanQueue:
    def __init__(self, path: Path | str = QUEUE_FILE) -> None:
        self.path = Path(path).expanduser()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._flush_lock = threading.Lock()
        self.conn = sqlite3.connect(self.path, check_same_thread=False)
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS scan_queue (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                payload TEXT NOT NULL,
                attempts INTEGER NOT NULL DEFAULT 0,
                enqueued_at TEXT NOT NULL
            )
            """
        )
        self.conn.commit()

    def close(self) -> None:
        with self._lock:
            self.conn.close()

    def enqueue(self, event: ScanEvent) -> PendingScan:
        enqueued_at = utcnow()
        with self._lock:
            cursor = self.conn.execute(
                "INSERT INTO scan_queue (payload, attempts, enqueued_at) VALUES (?, 0, ?)",
                (json.dumps(event.as_payload()), enqueued_at.isoformat()),
            )
            self.conn.commit()
            queue_id = int(cursor.lastrowid)
        logger.info("Queued scan %s offline (queue id=%s)", event.barcode, queue_id)
        return PendingScan(queue_id=queue_id, event=event, attempts=0, enqueued_at=enqueued_at)

    def pending(self, limit: Optional[int] = None) -> List[PendingScan]:
        query = "SELECT id, payload, attempts, enqueued_at FROM scan_queue ORDER BY id ASC"
        params: tuple = ()
        if limit is not None:
            query += " LIMIT ?"
            params = (limit,)
        with self._lock:
            rows = self.conn.execute(query, params).fetchall()
        return [_row_to_pending(row) for row in rows]

    def size(self) -> int:
        with self._lock:
            (count,) = self.conn.execute("SELECT COUNT(*) FROM scan_queue").fetchone()
        return int(count or 0)

    def clear(self) -> int:
        with self._lock:
            cursor = self.conn.execute("DELETE FROM scan_queue")
            self.conn.commit()
        return cursor.rowcount

    def flush(self, send: Callable[[ScanEvent], object], limit: Optional[int] = None) -> FlushReport:
        """
        Deliver queued scans in order through ``send``.

        ``send`` raises ``ScanRejectedError`` for payloads the server will never
        accept; any other ``ScanClientError`` (delivery or configuration)
        keeps the item queued and stops the flush. A
        concurrent flush already in progress turns this call into a no-op.
        """
        report = FlushReport()
        if not self._flush_lock.acquire(blocking=False):
            logger.debug("Flush already running; skipping")
            report.remaining = self.size()
            return report
        try:
            for item in self.pending(limit):
                try:
                    send(item.event)
                except ScanRejectedError as exc:
                    logger.warning(
                        "Dropping malformed queued scan %s (queue id=%s): %s",
                        item.event.barcode,
                        item.queue_id,
                        exc,
                    )
                    self._delete(item.queue_id)
                    report.dropped.append(item.queue_id)
                    continue
                except ScanClientError as exc:
                    self._record_attempt(item.queue_id)
                    report.failed = item.queue_id
                    logger.info(
                        "Delivery of queued scan %s failed (attempt %s): %s",
                        item.event.barcode,
                        item.attempts + 1,
                        exc,
                    )
                    break
                self._delete(item.queue_id)
                report.delivered.append(item.queue_id)
        finally:
            self._flush_lock.release()
        report.remaining = self.size()
        if report.delivered or report.dropped or report.failed is not None:
            logger.info(
                "Flush finished: delivered=%s dropped=%s remaining=%s",
                len(report.delivered),
                len(report.dropped),
                report.remaining,
            )
        return report

    def _delete(self, queue_id: int) -> None:
        with self._lock:
            self.conn.execute("DELETE FROM scan_queue WHERE id=?", (queue_id,))
            self.conn.commit()

    def _record_attempt(self, queue_id: int) -> None:
        with self._lock:
            self.conn.execute("UPDATE scan_queue SET attempts = attempts + 1 WHERE id=?", (queue_id,))
            self.conn.commit()


def _row_to_pending(row: tuple) -> PendingScan:
    queue_id, payload_json, attempts, enqueued_at = row
    payload = json.loads(payload_json)
    event = ScanEvent(
        barcode=payload["barcode"],
        scan_type=payload.get("scanType", "scan"),
        location=payload.get("location"),
        occurred_at=datetime.fromisoformat(payload["occurredAt"]),
        operator_id=payload.get("operatorId"),
    )
    return PendingScan(
        queue_id=int(queue_id),
        event=event,
        attempts=int(attempts),
        enqueued_at=datetime.fromisoformat(enqueued_at),
    )
