from fastapi import APIRouter, Depends, HTTPException, status

from app.internal.errors import to_http_exception
from app.models.booking import Booking, BookingCRUD
from app.models.inout import (
    ActionResult,
    BookingActionRequest,
    CreateBookingRequest,
    CreateBookingResponse,
)
from app.services.bookings import (
    cancel_booking,
    confirm_booking,
    create_booking,
    reject_booking,
)
from app.services.database import get_database, run_in_transaction

router = APIRouter(prefix="/api/bookings", tags=["bookings"])


@router.get("/{booking_id}", response_model=Booking)
async def get_booking(booking_id: str, db=Depends(get_database)):
    """Get a booking by ID"""
    booking = await BookingCRUD(db).get_booking(booking_id)
    if not booking:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Booking not found",
        )

    return booking


@router.post(
    "/", response_model=CreateBookingResponse, status_code=status.HTTP_201_CREATED
)
async def create(request: CreateBookingRequest, db=Depends(get_database)):
    """
    Book seats on the earliest slot with room

    A request that finds no slot still creates a booking, already rejected,
    and answers with success=False and the reason.
    """

    async def callback(session):
        return await create_booking(db, request, session=session)

    try:
        return await run_in_transaction(callback)
    except ValueError as e:
        raise to_http_exception(e)


@router.post("/{booking_id}/confirm", response_model=ActionResult)
async def confirm(
    booking_id: str, request: BookingActionRequest, db=Depends(get_database)
):
    async def callback(session):
        return await confirm_booking(db, request.user_id, booking_id, session=session)

    try:
        return await run_in_transaction(callback)
    except ValueError as e:
        raise to_http_exception(e)


@router.post("/{booking_id}/reject", response_model=ActionResult)
async def reject(
    booking_id: str, request: BookingActionRequest, db=Depends(get_database)
):
    async def callback(session):
        return await reject_booking(
            db,
            request.user_id,
            booking_id,
            request.reason or "Rejected by front desk",
            session=session,
        )

    try:
        return await run_in_transaction(callback)
    except ValueError as e:
        raise to_http_exception(e)


@router.post("/{booking_id}/cancel", response_model=ActionResult)
async def cancel(
    booking_id: str, request: BookingActionRequest, db=Depends(get_database)
):
    async def callback(session):
        return await cancel_booking(
            db,
            request.user_id,
            booking_id,
            request.reason or "Cancelled",
            session=session,
        )

    try:
        return await run_in_transaction(callback)
    except ValueError as e:
        raise to_http_exception(e)
