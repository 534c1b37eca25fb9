from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from .offline_queue import OfflineScanQueue
from .types import FlushReport, ScanEvent

logger = logging.getLogger(__name__)


class FlushTrigger:
    """
    Decide when the offline queue is flushed.

    Flushes run at start-up, whenever connectivity flips from offline to
    online, and every ``interval`` seconds while ``start()``'s timer thread is
    running. Failures are never raised to the operator; ``report_hook`` gets
    ``(delivered, failed)`` counts after each flush that did something.
    """

    def __init__(
        self,
        queue: OfflineScanQueue,
        send: Callable[[ScanEvent], object],
        *,
        interval: Optional[float] = None,
        report_hook: Callable[[int, int], None] | None = None,
        online: bool = True,
    ) -> None:
        self.queue = queue
        self.send = send
        self.interval = interval
        self.report_hook = report_hook
        self.online = online
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def on_start(self) -> Optional[FlushReport]:
        return self.flush()

    def set_online(self, online: bool) -> Optional[FlushReport]:
        went_online = online and not self.online
        self.online = online
        if went_online:
            logger.info("Connectivity restored; flushing offline scans")
            return self.flush()
        return None

    def flush(self) -> Optional[FlushReport]:
        if not self.online:
            return None
        if self.queue.size() == 0:
            return None
        try:
            report = self.queue.flush(self.send)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Offline scan flush failed: %s", exc)
            return None
        self._report(len(report.delivered), 1 if report.stopped_early else 0)
        return report

    def start(self) -> None:
        if not self.interval or self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="cargoscan-flush", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            self.flush()

    def _report(self, success: int, failure: int) -> None:
        if self.report_hook and (success or failure):
            try:
                self.report_hook(success, failure)
            except Exception as exc:  # noqa: BLE001
                logger.warning("flush report hook failed: %s", exc)
