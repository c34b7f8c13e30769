# app/routes/bookings.py
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from app.core.exceptions import BookingConflictError, BookingNotFoundError, VillaNotFoundError
from app.dependencies import get_booking_service, get_owner_scope
from app.schemas.booking import BookingCreate, BookingRead
from app.services.booking_service import BookingService

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("", response_model=BookingRead, status_code=201)
async def create_booking(
    data: BookingCreate,
    owner_id: Optional[str] = Depends(get_owner_scope),
    bookings: BookingService = Depends(get_booking_service),
):
    """Enter a booking by hand (phone or walk-in)."""
    try:
        booking = await bookings.create_manual_booking(data, owner_id=owner_id)
    except VillaNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except BookingConflictError as e:
        raise HTTPException(
            status_code=409,
            detail={"message": str(e), "conflicting_booking_id": e.conflicting_booking_id, "reason": e.reason},
        )
    return BookingRead.model_validate(booking)


@router.post("/{booking_id}/cancel", response_model=BookingRead)
async def cancel_booking(
    booking_id: int,
    owner_id: Optional[str] = Depends(get_owner_scope),
    bookings: BookingService = Depends(get_booking_service),
):
    try:
        booking = await bookings.cancel_booking(booking_id, owner_id=owner_id)
    except (BookingNotFoundError, VillaNotFoundError) as e:
        raise HTTPException(status_code=404, detail=str(e))
    return BookingRead.model_validate(booking)
