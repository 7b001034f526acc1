"""
Shared fixtures for audit trail tests.
"""

import json
from datetime import datetime, timedelta, timezone
from typing import List

from auditchain.capture.service import EventCaptureService
from auditchain.core.clock import ManualClock

T0 = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_service(store, step_seconds: int = 1, **kwargs) -> EventCaptureService:
    kwargs.setdefault("sleep", lambda _s: None)
    return EventCaptureService(
        store,
        clock=ManualClock(start=T0, step=timedelta(seconds=step_seconds)),
        **kwargs,
    )


def read_lines(path: str) -> List[dict]:
    with open(path, "r") as f:
        return [json.loads(line) for line in f if line.strip()]


def write_lines(path: str, records: List[dict]) -> None:
    with open(path, "w") as f:
        for rec in records:
            f.write(json.dumps(rec) + "\n")
