import logging
from datetime import date, timedelta
from typing import Any, Callable, Iterable, List, Mapping, Tuple

from bulkwaste.exceptions import ValidationError
from bulkwaste.storage import BookingStorage
from .value_objects import Item

logger = logging.getLogger(__name__)

MIN_ADVANCE_DAYS = 1
MAX_ADVANCE_DAYS = 90
MAX_DAILY_BOOKINGS_PER_MUNICIPALITY = 10


class DateWindowValidator:
    """Collection dates must fall in [today + 1, today + 90], both inclusive."""

    def __init__(
        self,
        today: Callable[[], date] = date.today,
        min_advance_days: int = MIN_ADVANCE_DAYS,
        max_advance_days: int = MAX_ADVANCE_DAYS,
    ):
        self._today = today
        self.min_advance_days = min_advance_days
        self.max_advance_days = max_advance_days

    def window(self) -> Tuple[date, date]:
        today = self._today()
        return (
            today + timedelta(days=self.min_advance_days),
            today + timedelta(days=self.max_advance_days),
        )

    def is_valid(self, collection_date: date) -> bool:
        min_date, max_date = self.window()
        valid = min_date <= collection_date <= max_date
        if not valid:
            logger.warning("Invalid booking date. Must be between %s and %s", min_date, max_date)
        return valid


class CapacityValidator:
    """Daily quota of active bookings per municipality.

    The check reads existing bookings and reserves nothing, so two concurrent
    creations near the limit can both pass it.
    """

    def __init__(self, storage: BookingStorage, daily_limit: int = MAX_DAILY_BOOKINGS_PER_MUNICIPALITY):
        self.storage = storage
        self.daily_limit = daily_limit

    def active_count(self, municipality: str, collection_date: date) -> int:
        bookings = self.storage.find_by_municipality_and_date(municipality, collection_date)
        return sum(1 for b in bookings if b.is_active)

    def can_accept(self, municipality: str, collection_date: date) -> bool:
        can_accept = self.active_count(municipality, collection_date) < self.daily_limit
        if not can_accept:
            logger.warning("Municipality %s has reached capacity for %s", municipality, collection_date)
        return can_accept


def parse_items(raw_items: Iterable[Mapping[str, Any]]) -> List[Item]:
    """Build items from request payloads, labelling errors with their position."""
    items = []
    for index, raw in enumerate(raw_items or []):
        try:
            items.append(
                Item(
                    name=raw.get("name"),
                    description=raw.get("description"),
                    weight=raw.get("weight"),
                    volume=raw.get("volume"),
                )
            )
        except ValidationError as e:
            raise ValidationError(f"items[{index}].{e.field}", e.message) from e
    return items
