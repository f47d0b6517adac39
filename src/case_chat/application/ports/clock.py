from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """UTC wall clock that never steps backwards within the process.

    Stamps edits, deletes and read receipts; an adjustment must not make
    a later edit look older than an earlier one.
    """

    def __init__(self) -> None:
        self._last: datetime | None = None

    def now(self) -> datetime:
        current = datetime.now(timezone.utc)
        if self._last is not None and current < self._last:
            return self._last
        self._last = current
        return current
