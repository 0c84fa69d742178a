"""Domain errors raised by the booking core.

Every error carries the structured data needed to build a user-facing
message, so the HTTP layer never has to parse ``str(exc)``.
"""
from datetime import date
from typing import Any, Dict, Optional


class BookingError(Exception):
    kind = "booking_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.kind, "message": self.message}


class ValidationError(BookingError, ValueError):
    kind = "validation_error"

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["field"] = self.field
        return body


class EmptyItemsError(ValidationError):
    kind = "empty_items"

    def __init__(self):
        super().__init__("items", "At least one bulk item is required for booking")


class InvalidDateError(ValidationError):
    kind = "invalid_date"

    def __init__(self, collection_date: date, min_date: date, max_date: date):
        super().__init__(
            "collection_date",
            f"Collection date must be between {min_date.isoformat()} and {max_date.isoformat()}",
        )
        self.collection_date = collection_date
        self.min_date = min_date
        self.max_date = max_date

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body.update(
            collection_date=self.collection_date.isoformat(),
            min_date=self.min_date.isoformat(),
            max_date=self.max_date.isoformat(),
        )
        return body


class CapacityExceededError(BookingError):
    kind = "capacity_exceeded"

    def __init__(self, municipality: str, collection_date: date, limit: int):
        super().__init__(
            f"Municipality has reached booking capacity ({limit}) for {collection_date.isoformat()}"
        )
        self.municipality = municipality
        self.collection_date = collection_date
        self.limit = limit

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body.update(
            municipality=self.municipality,
            collection_date=self.collection_date.isoformat(),
            limit=self.limit,
        )
        return body


class InvalidTransition(BookingError):
    kind = "invalid_transition"

    def __init__(self, current_status: str, action: str):
        super().__init__(f"Cannot perform action '{action}' in state '{current_status}'")
        self.current_status = current_status
        self.action = action

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body.update(current_status=self.current_status, action=self.action)
        return body


class NotFoundError(BookingError):
    kind = "not_found"

    def __init__(self, resource: str, identifier: Any):
        super().__init__(f"{resource} not found with id: {identifier}")
        self.resource = resource
        self.identifier = identifier

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body.update(resource=self.resource, identifier=str(self.identifier))
        return body


class WriteConflictError(BookingError):
    """Raised when a booking changed in the store since it was read.

    The only error where re-reading and retrying is a sensible caller strategy.
    """

    kind = "write_conflict"

    def __init__(self, booking_id: Any, expected_version: Optional[int]):
        super().__init__(
            f"Booking {booking_id} was modified concurrently (expected version {expected_version})"
        )
        self.booking_id = booking_id
        self.expected_version = expected_version

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body.update(booking_id=self.booking_id, expected_version=self.expected_version)
        return body
