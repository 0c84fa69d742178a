import copy
import logging
import threading
from abc import ABC, abstractmethod
from datetime import date
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from bulkwaste.booking.aggregate_root import Booking
from bulkwaste.booking.value_objects import BookingStatus, Item, StatusHistoryEntry, TimeSlot
from bulkwaste.database import BookingModel, BulkItemModel, StatusHistoryModel
from bulkwaste.exceptions import NotFoundError, WriteConflictError

logger = logging.getLogger(__name__)


class BookingStorage(ABC):
    """Persistence contract for booking aggregates.

    Reads return fully resolved bookings (items and history included) that
    the caller may mutate freely; nothing is written back until ``save``.
    ``save`` of an already stored booking only succeeds when the stored
    version still equals ``booking.version``.
    """

    @abstractmethod
    def save(self, booking: Booking) -> Booking:
        raise NotImplementedError

    @abstractmethod
    def find_by_id(self, booking_id: int) -> Optional[Booking]:
        raise NotImplementedError

    @abstractmethod
    def find_by_access_token(self, access_token: str) -> Optional[Booking]:
        raise NotImplementedError

    @abstractmethod
    def get_all(self) -> List[Booking]:
        raise NotImplementedError

    @abstractmethod
    def delete(self, booking_id: int) -> bool:
        raise NotImplementedError

    def find_by_municipality(self, municipality: str) -> List[Booking]:
        return [b for b in self.get_all() if b.municipality == municipality]

    def find_by_status(self, status: BookingStatus) -> List[Booking]:
        return [b for b in self.get_all() if b.status == status]

    def find_by_municipality_and_status(self, municipality: str, status: BookingStatus) -> List[Booking]:
        return [b for b in self.find_by_municipality(municipality) if b.status == status]

    def find_by_municipality_and_date(self, municipality: str, collection_date: date) -> List[Booking]:
        return [b for b in self.find_by_municipality(municipality) if b.collection_date == collection_date]


# ============================================================================
# IN-MEMORY
# ============================================================================

FAKE_BOOKING_DB: Dict[int, Booking] = {}
_FAKE_DB_LOCK = threading.Lock()


class InMemoryBookingStorage(BookingStorage):
    def __init__(self, db: Optional[Dict[int, Booking]] = None):
        self._db = FAKE_BOOKING_DB if db is None else db

    def save(self, booking: Booking) -> Booking:
        with _FAKE_DB_LOCK:
            if booking.booking_id is None:
                booking.booking_id = max(self._db, default=0) + 1
                booking.version = 0
            else:
                stored = self._db.get(booking.booking_id)
                if stored is None:
                    raise NotFoundError("Booking", booking.booking_id)
                if stored.version != booking.version:
                    logger.warning("Write conflict on booking %s", booking.booking_id)
                    raise WriteConflictError(booking.booking_id, booking.version)
                booking.version += 1
            self._db[booking.booking_id] = copy.deepcopy(booking)
        return booking

    def _snapshot(self) -> List[Booking]:
        # iterating the shared dict while another thread saves is unsafe
        with _FAKE_DB_LOCK:
            return [b for _, b in sorted(self._db.items())]

    def find_by_id(self, booking_id: int) -> Optional[Booking]:
        booking = self._db.get(booking_id)
        return copy.deepcopy(booking) if booking else None

    def find_by_access_token(self, access_token: str) -> Optional[Booking]:
        for booking in self._snapshot():
            if booking.access_token == access_token:
                return copy.deepcopy(booking)
        return None

    def get_all(self) -> List[Booking]:
        return [copy.deepcopy(b) for b in self._snapshot()]

    def delete(self, booking_id: int) -> bool:
        with _FAKE_DB_LOCK:
            if booking_id in self._db:
                del self._db[booking_id]
                return True
            return False


# ============================================================================
# SQLALCHEMY
# ============================================================================

def _to_domain(model: BookingModel) -> Booking:
    return Booking(
        booking_id=model.id,
        municipality=model.municipality,
        collection_date=model.collection_date,
        time_slot=TimeSlot(model.time_slot),
        access_token=model.access_token,
        status=BookingStatus(model.current_status),
        items=[
            Item(name=i.name, description=i.description, weight=i.weight, volume=i.volume)
            for i in model.items
        ],
        history=[
            StatusHistoryEntry(BookingStatus(h.status), h.timestamp)
            for h in model.status_history
        ],
        created_at=model.created_at,
        version=model.version,
    )


def _to_model(booking: Booking) -> BookingModel:
    return BookingModel(
        municipality=booking.municipality,
        collection_date=booking.collection_date,
        time_slot=booking.time_slot.value,
        access_token=booking.access_token,
        current_status=booking.status.value,
        created_at=booking.created_at,
        version=0,
        items=[
            BulkItemModel(name=i.name, description=i.description, weight=i.weight, volume=i.volume)
            for i in booking.items
        ],
        status_history=[
            StatusHistoryModel(status=h.status.value, timestamp=h.timestamp)
            for h in booking.history
        ],
    )


class SqlBookingStorage(BookingStorage):
    def __init__(self, session: Session):
        self.session = session

    def save(self, booking: Booking) -> Booking:
        if booking.booking_id is None:
            model = _to_model(booking)
            self.session.add(model)
            self.session.commit()
            booking.booking_id = model.id
            booking.version = model.version
            return booking

        model = self.session.get(BookingModel, booking.booking_id)
        if model is None:
            raise NotFoundError("Booking", booking.booking_id)
        if model.version != booking.version:
            logger.warning("Write conflict on booking %s", booking.booking_id)
            raise WriteConflictError(booking.booking_id, booking.version)

        model.current_status = booking.status.value
        persisted = len(model.status_history)
        for entry in booking.history[persisted:]:
            model.status_history.append(
                StatusHistoryModel(status=entry.status.value, timestamp=entry.timestamp)
            )
        model.version = booking.version + 1

        try:
            self.session.commit()
        except StaleDataError:
            self.session.rollback()
            logger.warning("Write conflict on booking %s", booking.booking_id)
            raise WriteConflictError(booking.booking_id, booking.version)

        booking.version = model.version
        return booking

    def _find(self, query) -> List[Booking]:
        return [_to_domain(m) for m in self.session.scalars(query.order_by(BookingModel.id)).all()]

    def find_by_id(self, booking_id: int) -> Optional[Booking]:
        model = self.session.get(BookingModel, booking_id)
        return _to_domain(model) if model else None

    def find_by_access_token(self, access_token: str) -> Optional[Booking]:
        found = self._find(select(BookingModel).where(BookingModel.access_token == access_token))
        return found[0] if found else None

    def get_all(self) -> List[Booking]:
        return self._find(select(BookingModel))

    def find_by_municipality(self, municipality: str) -> List[Booking]:
        return self._find(select(BookingModel).where(BookingModel.municipality == municipality))

    def find_by_status(self, status: BookingStatus) -> List[Booking]:
        return self._find(select(BookingModel).where(BookingModel.current_status == status.value))

    def find_by_municipality_and_status(self, municipality: str, status: BookingStatus) -> List[Booking]:
        return self._find(
            select(BookingModel).where(
                BookingModel.municipality == municipality,
                BookingModel.current_status == status.value,
            )
        )

    def find_by_municipality_and_date(self, municipality: str, collection_date: date) -> List[Booking]:
        return self._find(
            select(BookingModel).where(
                BookingModel.municipality == municipality,
                BookingModel.collection_date == collection_date,
            )
        )

    def delete(self, booking_id: int) -> bool:
        model = self.session.get(BookingModel, booking_id)
        if model is None:
            return False
        self.session.delete(model)
        self.session.commit()
        return True
