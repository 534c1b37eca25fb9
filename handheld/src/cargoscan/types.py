from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ScanEvent:
    barcode: str
    scan_type: str = "scan"
    location: Optional[str] = None
    occurred_at: datetime = field(default_factory=utcnow)
    operator_id: Optional[str] = None

    def as_payload(self) -> dict:
        payload = {
            "barcode": self.barcode,
            "scanType": self.scan_type,
            "occurredAt": self.occurred_at.isoformat(),
        }
        if self.location:
            payload["location"] = self.location
        if self.operator_id:
            payload["operatorId"] = self.operator_id
        return payload


@dataclass(frozen=True)
class PendingScan:
    queue_id: int
    event: ScanEvent
    attempts: int
    enqueued_at: datetime


@dataclass
class FlushReport:
    delivered: List[int] = field(default_factory=list)
    dropped: List[int] = field(default_factory=list)
    failed: Optional[int] = None
    remaining: int = 0

    @property
    def stopped_early(self) -> bool:
        return self.failed is not None
