from datetime import datetime, timezone
from pathlib import Path

from cargoscan import OfflineScanQueue, ScanClientConfigError, ScanDeliveryError, ScanEvent, ScanRejectedError

T0 = datetime(2025, 3, 1, 8, 0, tzinfo=timezone.utc)


class FlakySender:
    """Fails the listed barcodes once each, then delivers them."""

    def __init__(self, fail_once=(), reject=()):
        self.fail_once = set(fail_once)
        self.reject = set(reject)
        self.delivered = []
        self.calls = []

    def __call__(self, event: ScanEvent):
        self.calls.append(event.barcode)
        if event.barcode in self.reject:
            raise ScanRejectedError("400 missing-barcode", 400)
        if event.barcode in self.fail_once:
            self.fail_once.discard(event.barcode)
            raise ScanDeliveryError("connection refused")
        self.delivered.append(event.barcode)
        return {"scan": {"id": event.barcode}}


def _queue(tmp_path: Path) -> OfflineScanQueue:
    return OfflineScanQueue(tmp_path / "queue.db")


def test_enqueue_survives_restart(tmp_path: Path):
    queue = _queue(tmp_path)
    queue.enqueue(ScanEvent(barcode="BC-1", scan_type="delivered", location="Imphal", occurred_at=T0, operator_id="op-7"))
    queue.close()

    reopened = _queue(tmp_path)
    pending = reopened.pending()

    assert reopened.size() == 1
    assert pending[0].event == ScanEvent(
        barcode="BC-1", scan_type="delivered", location="Imphal", occurred_at=T0, operator_id="op-7"
    )
    assert pending[0].attempts == 0


def test_flush_delivers_in_order(tmp_path: Path):
    queue = _queue(tmp_path)
    for code in ("BC-1", "BC-2", "BC-3"):
        queue.enqueue(ScanEvent(barcode=code, occurred_at=T0))
    sender = FlakySender()

    report = queue.flush(sender)

    assert sender.delivered == ["BC-1", "BC-2", "BC-3"]
    assert len(report.delivered) == 3
    assert report.remaining == 0
    assert report.stopped_early is False


def test_flush_stops_at_first_retryable_failure(tmp_path: Path):
    queue = _queue(tmp_path)
    for code in ("BC-1", "BC-2", "BC-3"):
        queue.enqueue(ScanEvent(barcode=code, occurred_at=T0))
    sender = FlakySender(fail_once={"BC-2"})

    first = queue.flush(sender)

    # BC-3 must not overtake BC-2
    assert sender.calls == ["BC-1", "BC-2"]
    assert first.stopped_early is True
    assert first.remaining == 2
    assert [item.event.barcode for item in queue.pending()] == ["BC-2", "BC-3"]
    assert queue.pending()[0].attempts == 1

    second = queue.flush(sender)

    assert sender.delivered == ["BC-1", "BC-2", "BC-3"]
    assert second.remaining == 0


def test_rejected_scan_is_dropped(tmp_path: Path):
    queue = _queue(tmp_path)
    for code in ("BC-1", "BAD", "BC-3"):
        queue.enqueue(ScanEvent(barcode=code, occurred_at=T0))
    sender = FlakySender(reject={"BAD"})

    report = queue.flush(sender)

    assert sender.delivered == ["BC-1", "BC-3"]
    assert len(report.dropped) == 1
    assert queue.size() == 0


def test_flush_of_empty_queue_is_noop(tmp_path: Path):
    queue = _queue(tmp_path)
    sender = FlakySender()

    report = queue.flush(sender)

    assert sender.calls == []
    assert report.delivered == []
    assert report.remaining == 0


def test_flush_limit_and_clear(tmp_path: Path):
    queue = _queue(tmp_path)
    for code in ("BC-1", "BC-2", "BC-3"):
        queue.enqueue(ScanEvent(barcode=code, occurred_at=T0))

    report = queue.flush(FlakySender(), limit=2)

    assert report.remaining == 1
    assert queue.clear() == 1
    assert queue.size() == 0


def test_unconfigured_sender_keeps_items_queued(tmp_path: Path):
    queue = _queue(tmp_path)
    queue.enqueue(ScanEvent(barcode="BC-1"))
    queue.enqueue(ScanEvent(barcode="BC-2"))

    def send(event: ScanEvent):
        raise ScanClientConfigError("CARGOSCAN_API_BASE is not set")

    report = queue.flush(send)

    assert report.stopped_early is True
    assert report.delivered == []
    assert report.dropped == []
    pending = queue.pending()
    assert [item.event.barcode for item in pending] == ["BC-1", "BC-2"]
    assert pending[0].attempts == 1
    assert pending[1].attempts == 0
