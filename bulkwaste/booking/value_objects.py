import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from bulkwaste.exceptions import ValidationError

ITEM_NAME_MAX_LENGTH = 30
ITEM_DESCRIPTION_MAX_LENGTH = 100


class BookingStatus(str, Enum):
    RECEIVED = "RECEIVED"
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    @property
    def is_active(self) -> bool:
        # active bookings count against the daily capacity
        return self not in (BookingStatus.COMPLETED, BookingStatus.CANCELLED)


class BookingAction(str, Enum):
    ASSIGN = "assign"
    START = "start"
    COMPLETE = "complete"
    CANCEL = "cancel"


class TimeSlot(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"

    @staticmethod
    def parse(value) -> "TimeSlot":
        if isinstance(value, TimeSlot):
            return value
        try:
            return TimeSlot(value)
        except ValueError:
            allowed = ", ".join(slot.value for slot in TimeSlot)
            raise ValidationError("time_slot", f"Time slot must be one of: {allowed}")


@dataclass(frozen=True)
class Item:
    name: str
    weight: float
    volume: float
    description: Optional[str] = None

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ValidationError("name", "Item name is mandatory")
        if len(self.name) > ITEM_NAME_MAX_LENGTH:
            raise ValidationError("name", f"Name must not exceed {ITEM_NAME_MAX_LENGTH} characters")
        if self.description is not None and len(self.description) > ITEM_DESCRIPTION_MAX_LENGTH:
            raise ValidationError(
                "description",
                f"Description must not exceed {ITEM_DESCRIPTION_MAX_LENGTH} characters",
            )
        if self.weight is None or not math.isfinite(self.weight) or self.weight <= 0:
            raise ValidationError("weight", "Weight must be positive")
        if self.volume is None or not math.isfinite(self.volume) or self.volume <= 0:
            raise ValidationError("volume", "Volume must be positive")


@dataclass(frozen=True)
class StatusHistoryEntry:
    status: BookingStatus
    timestamp: datetime
