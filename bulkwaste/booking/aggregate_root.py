from datetime import date, datetime
from typing import Iterable, List, Optional, Tuple
from uuid import uuid4

from .history import StatusHistoryRecorder
from .state_machine import transition
from .value_objects import BookingAction, BookingStatus, Item, StatusHistoryEntry, TimeSlot

_default_recorder = StatusHistoryRecorder()


class Booking:
    def __init__(
        self,
        municipality: str,
        collection_date: date,
        time_slot: TimeSlot,
        access_token: str,
        status: BookingStatus,
        items: Iterable[Item],
        history: Iterable[StatusHistoryEntry],
        created_at: datetime,
        booking_id: Optional[int] = None,
        version: int = 0,
    ):
        self.booking_id = booking_id
        self.municipality = municipality
        self.collection_date = collection_date
        self.time_slot = time_slot
        self._access_token = access_token
        self.status = status
        self._items: List[Item] = list(items)
        self._history: List[StatusHistoryEntry] = list(history)
        self.created_at = created_at
        self.version = version

        if self._history and self._history[-1].status != self.status:
            raise ValueError(
                f"Status {self.status.value} does not match last history entry "
                f"{self._history[-1].status.value}"
            )
        if not self._history and self.status != BookingStatus.RECEIVED:
            raise ValueError(f"Booking without history must be RECEIVED, got {self.status.value}")

    @staticmethod
    def create(
        municipality: str,
        collection_date: date,
        time_slot: TimeSlot,
        items: Iterable[Item],
        recorder: StatusHistoryRecorder = _default_recorder,
    ) -> 'Booking':
        initial = recorder.initial_entry()
        return Booking(
            municipality=municipality,
            collection_date=collection_date,
            time_slot=time_slot,
            access_token=str(uuid4()),
            status=BookingStatus.RECEIVED,
            items=items,
            history=[initial],
            created_at=initial.timestamp,
        )

    @property
    def access_token(self) -> str:
        return self._access_token

    @property
    def items(self) -> Tuple[Item, ...]:
        return tuple(self._items)

    @property
    def history(self) -> Tuple[StatusHistoryEntry, ...]:
        return tuple(self._history)

    @property
    def is_active(self) -> bool:
        return self.status.is_active

    def apply(self, action, recorder: StatusHistoryRecorder = _default_recorder) -> BookingStatus:
        # transition() raises before anything is touched
        before = self.status
        after = transition(before, action)
        self.status = after
        recorder.record(self._history, before, after)
        return after

    def assign(self, recorder: StatusHistoryRecorder = _default_recorder) -> None:
        self.apply(BookingAction.ASSIGN, recorder)

    def start(self, recorder: StatusHistoryRecorder = _default_recorder) -> None:
        self.apply(BookingAction.START, recorder)

    def complete(self, recorder: StatusHistoryRecorder = _default_recorder) -> None:
        self.apply(BookingAction.COMPLETE, recorder)

    def cancel(self, recorder: StatusHistoryRecorder = _default_recorder) -> None:
        self.apply(BookingAction.CANCEL, recorder)

    def history_most_recent_first(self) -> List[StatusHistoryEntry]:
        return list(reversed(self._history))

    def __repr__(self) -> str:
        return (
            f"Booking(id={self.booking_id!r}, municipality={self.municipality!r}, "
            f"collection_date={self.collection_date}, status={self.status.value})"
        )


