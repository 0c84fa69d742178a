import logging
from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from .aggregate_root import Booking
from .service import BookingLifecycleService
from .validators import parse_items
from bulkwaste.database import get_db
from bulkwaste.exceptions import (
    BookingError,
    CapacityExceededError,
    InvalidTransition,
    NotFoundError,
    ValidationError,
    WriteConflictError,
)
from bulkwaste.municipality import MunicipalityDirectory, get_municipality_directory
from bulkwaste.storage import SqlBookingStorage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/bookings", tags=["Bookings"])

# ==========================================
# DEPENDENCIES & HELPERS
# ==========================================

def get_booking_service(
    session: Session = Depends(get_db),
    directory: MunicipalityDirectory = Depends(get_municipality_directory),
) -> BookingLifecycleService:
    return BookingLifecycleService(SqlBookingStorage(session), municipality_directory=directory)


_STATUS_CODES = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    InvalidTransition: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    CapacityExceededError: status.HTTP_409_CONFLICT,
    WriteConflictError: status.HTTP_409_CONFLICT,
}


def to_http_error(error: BookingError) -> HTTPException:
    """Map a domain error onto an HTTPException carrying its structured body."""
    for error_type, code in _STATUS_CODES.items():
        if isinstance(error, error_type):
            return HTTPException(status_code=code, detail=error.to_dict())
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=error.to_dict())


# Request/Response Models
class BulkItemRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    weight: Optional[float] = None
    volume: Optional[float] = None

class CreateBookingRequest(BaseModel):
    municipality: Optional[str] = None
    collection_date: date
    time_slot: Optional[str] = None
    items: List[BulkItemRequest] = []

class BulkItemResponse(BaseModel):
    name: str
    description: Optional[str] = None
    weight: float
    volume: float

class StatusHistoryResponse(BaseModel):
    status: str
    timestamp: datetime

class BookingResponse(BaseModel):
    id: int
    access_token: str
    municipality: str
    collection_date: date
    time_slot: str
    current_status: str
    items: List[BulkItemResponse]
    status_history: Optional[List[StatusHistoryResponse]] = None


def to_response(booking: Booking, include_history: bool = False) -> BookingResponse:
    history = None
    if include_history:
        history = [
            StatusHistoryResponse(status=h.status.value, timestamp=h.timestamp)
            for h in booking.history_most_recent_first()
        ]
    return BookingResponse(
        id=booking.booking_id,
        access_token=booking.access_token,
        municipality=booking.municipality,
        collection_date=booking.collection_date,
        time_slot=booking.time_slot.value,
        current_status=booking.status.value,
        items=[
            BulkItemResponse(name=i.name, description=i.description, weight=i.weight, volume=i.volume)
            for i in booking.items
        ],
        status_history=history,
    )

# ==========================================
# ENDPOINTS
# ==========================================

@router.get("/municipalities", response_model=List[str])
def get_available_municipalities(
    directory: MunicipalityDirectory = Depends(get_municipality_directory),
):
    return directory.list_available()

@router.post("/", status_code=status.HTTP_201_CREATED, response_model=BookingResponse, response_model_exclude_none=True)
def create_booking(request: CreateBookingRequest, service: BookingLifecycleService = Depends(get_booking_service)):
    logger.info("Received booking creation request")
    try:
        items = parse_items(item.model_dump() for item in request.items)
        booking = service.create_booking(
            request.municipality,
            request.collection_date,
            request.time_slot,
            items,
        )
    except BookingError as e:
        raise to_http_error(e)
    return to_response(booking)

@router.get("/{token}", response_model=BookingResponse, response_model_exclude_none=True)
def get_booking(token: str, service: BookingLifecycleService = Depends(get_booking_service)):
    try:
        booking = service.get_by_access_token(token)
    except NotFoundError as e:
        raise to_http_error(e)
    return to_response(booking)

@router.get("/{token}/details", response_model=BookingResponse)
def get_booking_details(token: str, service: BookingLifecycleService = Depends(get_booking_service)):
    try:
        booking = service.get_by_access_token(token)
    except NotFoundError as e:
        raise to_http_error(e)
    return to_response(booking, include_history=True)

@router.put("/{token}/cancel", response_model=BookingResponse, response_model_exclude_none=True)
def cancel_booking(token: str, service: BookingLifecycleService = Depends(get_booking_service)):
    try:
        booking = service.cancel_by_token(token)
    except BookingError as e:
        raise to_http_error(e)
    logger.info("Booking cancelled successfully")
    return to_response(booking)
