import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from .booking_api import BookingResponse, get_booking_service, to_http_error, to_response
from .service import BookingLifecycleService
from .value_objects import BookingStatus
from bulkwaste.exceptions import BookingError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/staff/bookings", tags=["Staff"])


@router.get("/", response_model=List[BookingResponse], response_model_exclude_none=True)
def get_all_bookings(service: BookingLifecycleService = Depends(get_booking_service)):
    """List all bookings (without status history)"""
    return [to_response(b) for b in service.get_all_bookings()]

@router.get("/summary")
def get_summary(service: BookingLifecycleService = Depends(get_booking_service)) -> Dict[str, Any]:
    """Booking counts for the operations dashboard"""
    return service.summary()

@router.get("/municipality/{municipality}", response_model=List[BookingResponse], response_model_exclude_none=True)
def get_bookings_by_municipality(municipality: str, service: BookingLifecycleService = Depends(get_booking_service)):
    return [to_response(b) for b in service.get_bookings_by_municipality(municipality)]

@router.get("/status/{booking_status}", response_model=List[BookingResponse], response_model_exclude_none=True)
def get_bookings_by_status(booking_status: BookingStatus, service: BookingLifecycleService = Depends(get_booking_service)):
    return [to_response(b) for b in service.get_bookings_by_status(booking_status)]

@router.get(
    "/municipality/{municipality}/status/{booking_status}",
    response_model=List[BookingResponse],
    response_model_exclude_none=True,
)
def get_bookings_by_municipality_and_status(
    municipality: str,
    booking_status: BookingStatus,
    service: BookingLifecycleService = Depends(get_booking_service),
):
    return [
        to_response(b)
        for b in service.get_bookings_by_municipality_and_status(municipality, booking_status)
    ]

@router.get("/{booking_id}", response_model=BookingResponse)
def get_booking(booking_id: int, service: BookingLifecycleService = Depends(get_booking_service)):
    """Booking details with status history, most recent first"""
    try:
        booking = service.get_booking(booking_id)
    except BookingError as e:
        raise to_http_error(e)
    return to_response(booking, include_history=True)

# ==========================================
# TRANSITIONS
# ==========================================

@router.put("/{booking_id}/assign", response_model=BookingResponse, response_model_exclude_none=True)
def assign_booking(booking_id: int, service: BookingLifecycleService = Depends(get_booking_service)):
    try:
        return to_response(service.assign_booking(booking_id))
    except BookingError as e:
        raise to_http_error(e)

@router.put("/{booking_id}/start", response_model=BookingResponse, response_model_exclude_none=True)
def start_collection(booking_id: int, service: BookingLifecycleService = Depends(get_booking_service)):
    try:
        return to_response(service.start_booking(booking_id))
    except BookingError as e:
        raise to_http_error(e)

@router.put("/{booking_id}/complete", response_model=BookingResponse, response_model_exclude_none=True)
def complete_collection(booking_id: int, service: BookingLifecycleService = Depends(get_booking_service)):
    try:
        return to_response(service.complete_booking(booking_id))
    except BookingError as e:
        raise to_http_error(e)

@router.put("/{booking_id}/cancel", response_model=BookingResponse, response_model_exclude_none=True)
def cancel_booking(booking_id: int, service: BookingLifecycleService = Depends(get_booking_service)):
    try:
        return to_response(service.cancel_booking(booking_id))
    except BookingError as e:
        raise to_http_error(e)
