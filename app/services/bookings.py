import os
from typing import Optional

from dotenv import load_dotenv

from app.internal.errors import (
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ShuttleDomainError,
)
from app.internal.log import debug
from app.internal.timeaddr import is_past_date, utc_now_iso
from app.models.booking import Booking, BookingCRUD
from app.models.inout import (
    ActionResult,
    AssignedSlot,
    CreateBookingRequest,
    CreateBookingResponse,
)
from app.models.shuttle import ShuttleCRUD
from app.models.status import BookingStatus, CancelledBy, UserRole
from app.models.trip import TripCRUD
from app.models.trip_instance import TripInstanceCRUD
from app.models.user import UserCRUD, require_role
from app.services.route_utils import (
    calculate_total_charges,
    get_route_segments_for_booking,
)
from app.services.seat_ledger import update_multiple_route_instance_seats
from app.services.slot_finder import find_best_available_slot
from app.services.trip_instances import get_or_create_trip_instance

load_dotenv()
SEAT_HOLD_MINUTES = int(os.getenv("SEAT_HOLD_MINUTES", "30"))  # Default: 30 minutes


async def create_booking(
    db, request: CreateBookingRequest, session=None
) -> CreateBookingResponse:
    """
    Place a guest on the best slot and hold their seats

    When no slot is found the booking is still stored, already rejected, so
    that the guest and the front desk can see why.

    Raises:
        ShuttleDomainError: If the request itself is invalid
    """
    guest = await UserCRUD(db).get_user(request.guest_id, session=session)
    require_role(guest, UserRole.GUEST, "Invalid guest")

    if request.seats <= 0:
        raise ShuttleDomainError("Seats must be greater than 0")
    if request.bags < 0:
        raise ShuttleDomainError("Bags cannot be negative")

    trip_crud = TripCRUD(db)
    trip = await trip_crud.get_trip(request.trip_id, session=session)
    if not trip:
        raise NotFoundError("Trip not found")
    if trip.hotel_id != request.hotel_id:
        raise ShuttleDomainError("Trip does not belong to the specified hotel")

    segments = await get_route_segments_for_booking(
        db,
        request.trip_id,
        request.from_location_id,
        request.to_location_id,
        session=session,
    )
    if segments is None:
        raise ShuttleDomainError(
            "Invalid route: selected locations are not valid stops on this trip"
        )
    from_index, to_index, ridden_routes = segments

    if is_past_date(request.scheduled_date):
        raise ShuttleDomainError("Cannot book for a past date")

    shuttles = await ShuttleCRUD(db).get_active_shuttles(
        request.hotel_id, session=session
    )
    if not shuttles:
        raise ShuttleDomainError("No active shuttles available")

    max_capacity = max(shuttle.total_seats for shuttle in shuttles)
    if request.seats > max_capacity:
        raise ShuttleDomainError(
            f"Cannot book {request.seats} seats. Maximum shuttle capacity is {max_capacity} seats."
        )

    total_price = calculate_total_charges(ridden_routes) * request.seats

    slot_result = await find_best_available_slot(
        db,
        request.trip_id,
        request.hotel_id,
        request.scheduled_date,
        request.desired_time,
        request.seats,
        from_route_index=from_index,
        to_route_index=to_index,
        session=session,
    )

    booking = Booking(
        guest_id=request.guest_id,
        hotel_id=request.hotel_id,
        trip_id=request.trip_id,
        scheduled_date=request.scheduled_date,
        from_route_index=from_index,
        to_route_index=to_index,
        seats=request.seats,
        bags=request.bags,
        total_price=total_price,
        payment_method=request.payment_method,
        name=request.name,
        confirmation_num=request.confirmation_num,
        notes=request.notes,
        is_park_sleep_fly=request.is_park_sleep_fly,
    )
    booking_crud = BookingCRUD(db)

    if not (slot_result.found and slot_result.slot):
        reason = slot_result.reason or "No shuttle available"
        booking.booking_status = BookingStatus.REJECTED
        booking.cancelled_by = CancelledBy.AUTO_CANCEL
        booking.cancellation_reason = reason
        await booking_crud.create_booking(booking, session=session)

        debug(f"Auto-rejected {booking.short()}: {reason}")
        return CreateBookingResponse(
            booking_id=booking.id, success=False, message=reason
        )

    slot = slot_result.slot
    trip_instance_id = slot.existing_trip_instance_id
    if not trip_instance_id:
        trip_instance = await get_or_create_trip_instance(
            db,
            request.trip_id,
            request.scheduled_date,
            slot.start_time,
            slot.end_time,
            slot.shuttle_id,
            session=session,
        )
        trip_instance_id = trip_instance.id

    booking.trip_instance_id = trip_instance_id
    booking.hold_expires_at = utc_now_iso(SEAT_HOLD_MINUTES)
    await booking_crud.create_booking(booking, session=session)

    await update_multiple_route_instance_seats(
        db,
        trip_instance_id,
        from_index,
        to_index,
        seat_held_delta=request.seats,
        seats_occupied_delta=0,
        session=session,
    )
    await TripInstanceCRUD(db).add_booking(trip_instance_id, booking.id, session=session)

    debug(f"Held {booking.short()} on {trip_instance_id}")
    return CreateBookingResponse(
        booking_id=booking.id,
        success=True,
        message="Booking created successfully. Awaiting confirmation.",
        assigned_slot=AssignedSlot(start_time=slot.start_time, end_time=slot.end_time),
        total_price=total_price,
    )


async def _get_hotel_booking(db, frontdesk_id: str, booking_id: str, message: str, session=None):
    frontdesk = await UserCRUD(db).get_user(frontdesk_id, session=session)
    require_role(frontdesk, UserRole.FRONTDESK, message)

    booking = await BookingCRUD(db).get_booking(booking_id, session=session)
    if not booking:
        raise NotFoundError("Booking not found")

    if booking.hotel_id != frontdesk.hotel_id:
        raise PermissionDeniedError("Booking does not belong to your hotel")

    return booking


async def _release_booking(
    db,
    booking: Booking,
    seat_held_delta: int,
    seats_occupied_delta: int,
    session=None,
):
    if not booking.trip_instance_id:
        return

    await update_multiple_route_instance_seats(
        db,
        booking.trip_instance_id,
        booking.from_route_index,
        booking.to_route_index,
        seat_held_delta=seat_held_delta,
        seats_occupied_delta=seats_occupied_delta,
        session=session,
    )
    await TripInstanceCRUD(db).remove_booking(
        booking.trip_instance_id, booking.id, session=session
    )


async def confirm_booking(
    db, frontdesk_id: str, booking_id: str, session=None
) -> ActionResult:
    """Front desk accepts a pending booking: its held seats become occupied"""
    booking = await _get_hotel_booking(
        db,
        frontdesk_id,
        booking_id,
        "Only frontdesk staff can confirm bookings",
        session=session,
    )

    if booking.booking_status != BookingStatus.PENDING:
        raise InvalidStateError("Only pending bookings can be confirmed")
    if not booking.trip_instance_id:
        raise InvalidStateError("Booking has no associated trip instance")

    await BookingCRUD(db).update_booking(
        booking.id,
        {
            "booking_status": BookingStatus.CONFIRMED.value,
            "verified_at": utc_now_iso(),
            "verified_by": frontdesk_id,
            "hold_expires_at": None,
        },
        session=session,
    )

    await update_multiple_route_instance_seats(
        db,
        booking.trip_instance_id,
        booking.from_route_index,
        booking.to_route_index,
        seat_held_delta=-booking.seats,
        seats_occupied_delta=booking.seats,
        session=session,
    )

    return ActionResult(success=True, message="Booking confirmed successfully")


async def reject_booking(
    db, frontdesk_id: str, booking_id: str, reason: str, session=None
) -> ActionResult:
    """Front desk turns down a pending booking and frees its held seats"""
    booking = await _get_hotel_booking(
        db,
        frontdesk_id,
        booking_id,
        "Only frontdesk staff can reject bookings",
        session=session,
    )

    if booking.booking_status != BookingStatus.PENDING:
        raise InvalidStateError("Only pending bookings can be rejected")

    await BookingCRUD(db).update_booking(
        booking.id,
        {
            "booking_status": BookingStatus.REJECTED.value,
            "cancellation_reason": reason,
            "cancelled_by": CancelledBy.FRONTDESK.value,
            "hold_expires_at": None,
        },
        session=session,
    )
    await _release_booking(db, booking, -booking.seats, 0, session=session)

    return ActionResult(success=True, message="Booking rejected successfully")


async def cancel_booking(
    db, user_id: str, booking_id: str, reason: str, session=None
) -> ActionResult:
    """
    Cancel a pending or confirmed booking

    Guests may only cancel their own bookings. Held seats are released for a
    pending booking, occupied seats for a confirmed one.
    """
    user = await UserCRUD(db).get_user(user_id, session=session)
    if not user:
        raise NotFoundError("User not found")

    booking = await BookingCRUD(db).get_booking(booking_id, session=session)
    if not booking:
        raise NotFoundError("Booking not found")

    if user.role == UserRole.GUEST and booking.guest_id != user_id:
        raise PermissionDeniedError("You can only cancel your own bookings")

    if booking.booking_status == BookingStatus.REJECTED:
        raise InvalidStateError("Booking is already cancelled/rejected")

    await BookingCRUD(db).update_booking(
        booking.id,
        {
            "booking_status": BookingStatus.REJECTED.value,
            "cancellation_reason": reason,
            "cancelled_by": CancelledBy.from_role(user.role).value,
            "hold_expires_at": None,
        },
        session=session,
    )

    if booking.booking_status == BookingStatus.PENDING:
        await _release_booking(db, booking, -booking.seats, 0, session=session)
    else:
        await _release_booking(db, booking, 0, -booking.seats, session=session)

    return ActionResult(success=True, message="Booking cancelled successfully")


async def expire_booking_hold(
    db, booking_id: str, now_iso: Optional[str] = None, session=None
) -> bool:
    """
    Release the seats of a pending booking whose hold has run out

    Returns:
        True if the booking was expired, False if it was no longer eligible
    """
    now_iso = now_iso or utc_now_iso()

    booking = await BookingCRUD(db).get_booking(booking_id, session=session)
    if not booking:
        raise LookupError(f"Booking {booking_id} not found")

    if (
        booking.booking_status != BookingStatus.PENDING
        or not booking.hold_expires_at
        or booking.hold_expires_at >= now_iso
    ):
        return False

    await BookingCRUD(db).update_booking(
        booking.id,
        {
            "booking_status": BookingStatus.REJECTED.value,
            "cancellation_reason": "Seat hold expired before confirmation",
            "cancelled_by": CancelledBy.AUTO_CANCEL.value,
            "hold_expires_at": None,
        },
        session=session,
    )
    await _release_booking(db, booking, -booking.seats, 0, session=session)
    return True
