from datetime import datetime, timezone
from typing import Callable, List

from .value_objects import BookingStatus, StatusHistoryEntry


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StatusHistoryRecorder:
    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self._clock = clock

    def initial_entry(self) -> StatusHistoryEntry:
        return StatusHistoryEntry(BookingStatus.RECEIVED, self._clock())

    def record(
        self,
        history: List[StatusHistoryEntry],
        before: BookingStatus,
        after: BookingStatus,
    ) -> bool:
        """Append an entry for ``after`` only when the status really changed."""
        if before == after:
            return False
        history.append(StatusHistoryEntry(after, self._clock()))
        return True
