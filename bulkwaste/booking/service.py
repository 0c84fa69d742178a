import logging
from collections import Counter
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from bulkwaste.exceptions import (
    CapacityExceededError,
    EmptyItemsError,
    InvalidDateError,
    NotFoundError,
    ValidationError,
)
from bulkwaste.municipality import MunicipalityDirectory
from bulkwaste.storage import BookingStorage
from .aggregate_root import Booking
from .history import StatusHistoryRecorder
from .validators import CapacityValidator, DateWindowValidator
from .value_objects import BookingAction, BookingStatus, Item, TimeSlot

logger = logging.getLogger(__name__)


class BookingLifecycleService:
    """Creates bookings and moves them through the collection workflow.

    Admission checks run in a fixed order (items, date, capacity) so the
    error a caller sees for a bad request is always the same one.
    """

    def __init__(
        self,
        storage: BookingStorage,
        municipality_directory: Optional[MunicipalityDirectory] = None,
        date_validator: Optional[DateWindowValidator] = None,
        capacity_validator: Optional[CapacityValidator] = None,
        recorder: Optional[StatusHistoryRecorder] = None,
    ):
        self.storage = storage
        self.municipality_directory = municipality_directory
        self.date_validator = date_validator or DateWindowValidator()
        self.capacity_validator = capacity_validator or CapacityValidator(storage)
        self.recorder = recorder or StatusHistoryRecorder()

    # ------------------------------------------------------------------
    # creation
    # ------------------------------------------------------------------

    def _check_municipality(self, municipality: str) -> str:
        if municipality is None or not municipality.strip():
            raise ValidationError("municipality", "Municipality is required")
        if self.municipality_directory is None:
            return municipality.strip()
        # bookings are stored and counted under the directory spelling
        canonical = self.municipality_directory.canonical_name(municipality)
        if canonical is None:
            logger.warning("Invalid municipality in booking request")
            raise ValidationError(
                "municipality",
                "Invalid municipality. Please select a valid Portuguese municipality.",
            )
        return canonical

    def create_booking(
        self,
        municipality: str,
        collection_date: date,
        time_slot,
        items: Iterable[Item],
    ) -> Booking:
        logger.info("Creating booking for a specific municipality and date")

        municipality = self._check_municipality(municipality)
        slot = TimeSlot.parse(time_slot)
        items = list(items or [])

        if not items:
            logger.warning("Cannot create booking without items")
            raise EmptyItemsError()

        if not self.date_validator.is_valid(collection_date):
            min_date, max_date = self.date_validator.window()
            raise InvalidDateError(collection_date, min_date, max_date)

        if not self.capacity_validator.can_accept(municipality, collection_date):
            raise CapacityExceededError(municipality, collection_date, self.capacity_validator.daily_limit)

        booking = Booking.create(municipality, collection_date, slot, items, self.recorder)
        saved = self.storage.save(booking)
        logger.info("Booking %s created for %s on %s", saved.booking_id, municipality, collection_date)
        return saved

    # ------------------------------------------------------------------
    # transitions
    # ------------------------------------------------------------------

    def _get_booking_or_raise(self, booking_id: int) -> Booking:
        booking = self.storage.find_by_id(booking_id)
        if booking is None:
            raise NotFoundError("Booking", booking_id)
        return booking

    def _apply(self, booking: Booking, action: BookingAction) -> Booking:
        # an InvalidTransition propagates before anything is saved
        booking.apply(action, self.recorder)
        return self.storage.save(booking)

    def assign_booking(self, booking_id: int) -> Booking:
        logger.info("Assigning booking: %s", booking_id)
        return self._apply(self._get_booking_or_raise(booking_id), BookingAction.ASSIGN)

    def start_booking(self, booking_id: int) -> Booking:
        logger.info("Starting booking: %s", booking_id)
        return self._apply(self._get_booking_or_raise(booking_id), BookingAction.START)

    def complete_booking(self, booking_id: int) -> Booking:
        logger.info("Completing booking: %s", booking_id)
        return self._apply(self._get_booking_or_raise(booking_id), BookingAction.COMPLETE)

    def cancel_booking(self, booking_id: int) -> Booking:
        logger.info("Cancelling booking: %s", booking_id)
        return self._apply(self._get_booking_or_raise(booking_id), BookingAction.CANCEL)

    def cancel_by_token(self, access_token: str) -> Booking:
        logger.info("Received booking cancellation request")
        return self._apply(self.get_by_access_token(access_token), BookingAction.CANCEL)

    # ------------------------------------------------------------------
    # queries
    # ------------------------------------------------------------------

    def get_booking(self, booking_id: int) -> Booking:
        return self._get_booking_or_raise(booking_id)

    def find_by_access_token(self, access_token: str) -> Optional[Booking]:
        logger.debug("Finding booking by token")
        return self.storage.find_by_access_token(access_token)

    def get_by_access_token(self, access_token: str) -> Booking:
        booking = self.find_by_access_token(access_token)
        if booking is None:
            # the token is a secret and stays out of error bodies
            raise NotFoundError("Booking", "<access token>")
        return booking

    def get_all_bookings(self) -> List[Booking]:
        return self.storage.get_all()

    def get_bookings_by_municipality(self, municipality: str) -> List[Booking]:
        logger.debug("Finding bookings for municipality: %s", municipality)
        return self.storage.find_by_municipality(municipality)

    def get_bookings_by_status(self, status: BookingStatus) -> List[Booking]:
        logger.debug("Finding bookings with status: %s", status.value)
        return self.storage.find_by_status(status)

    def get_bookings_by_municipality_and_status(self, municipality: str, status: BookingStatus) -> List[Booking]:
        logger.debug("Finding bookings for municipality: %s with status: %s", municipality, status.value)
        return self.storage.find_by_municipality_and_status(municipality, status)

    def summary(self) -> Dict[str, Any]:
        bookings = self.storage.get_all()
        return {
            "total": len(bookings),
            "by_status": dict(Counter(b.status.value for b in bookings)),
            "by_municipality": dict(Counter(b.municipality for b in bookings)),
        }
