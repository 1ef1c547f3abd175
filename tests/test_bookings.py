import pytest

from app.internal.errors import (
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ShuttleDomainError,
)
from app.internal.timeaddr import hour_to_iso_time
from app.models.booking import BookingCRUD
from app.models.inout import CreateBookingRequest
from app.models.status import BookingStatus, CancelledBy, TripInstanceStatus, UserRole
from app.models.trip_instance import TripInstanceCRUD
from app.services.bookings import (
    cancel_booking,
    confirm_booking,
    create_booking,
    expire_booking_hold,
    reject_booking,
)
from app.services.hold_sweeper import HoldSweeper
from app.services.seat_ledger import complete_route_instance, get_route_instances_for_trip_instance
from app.services.trip_instances import start_trip_instance
from tests.conftest import DATE, HOTEL_ID

FAR_FUTURE = "2999-01-01T00:00:00.000Z"


def request(world, seats=2, desired_time="9", from_location_id="A", to_location_id="C", **kwargs):
    return CreateBookingRequest(
        guest_id=world.guest.id,
        trip_id=world.trip.id,
        hotel_id=HOTEL_ID,
        from_location_id=from_location_id,
        to_location_id=to_location_id,
        scheduled_date=DATE,
        desired_time=desired_time,
        seats=seats,
        **kwargs,
    )


async def seats_of(db, booking_id):
    booking = await BookingCRUD(db).get_booking(booking_id)
    route_instances = await get_route_instances_for_trip_instance(db, booking.trip_instance_id)
    return [(ri.seats_occupied, ri.seat_held) for ri in route_instances]


async def test_booking_holds_seats_until_confirmed(db, world):
    response = await create_booking(db, request(world, seats=2))

    assert response.success
    assert response.assigned_slot.start_time == hour_to_iso_time(9)
    assert response.total_price == 50.0

    booking = await BookingCRUD(db).get_booking(response.booking_id)
    assert booking.booking_status == BookingStatus.PENDING
    assert booking.hold_expires_at is not None
    assert await seats_of(db, booking.id) == [(0, 2), (0, 2)]

    trip_instance = await TripInstanceCRUD(db).get_trip_instance(booking.trip_instance_id)
    assert trip_instance.booking_ids == [booking.id]

    result = await confirm_booking(db, world.frontdesk.id, booking.id)

    assert result.success
    assert await seats_of(db, booking.id) == [(2, 0), (2, 0)]
    booking = await BookingCRUD(db).get_booking(booking.id)
    assert booking.booking_status == BookingStatus.CONFIRMED
    assert booking.verified_by == world.frontdesk.id
    assert booking.hold_expires_at is None


async def test_partial_ride_only_touches_its_segments(db, world):
    response = await create_booking(db, request(world, seats=1, from_location_id="B"))

    assert response.total_price == 15.0
    assert await seats_of(db, response.booking_id) == [(0, 0), (0, 1)]


async def test_ride_from_booking_to_drop_off(db, world):
    response = await create_booking(db, request(world, seats=3))
    booking = await BookingCRUD(db).get_booking(response.booking_id)
    await confirm_booking(db, world.frontdesk.id, booking.id)
    await start_trip_instance(db, world.driver.id, booking.trip_instance_id)

    first, second = await get_route_instances_for_trip_instance(db, booking.trip_instance_id)
    await complete_route_instance(db, world.driver.id, first.id)
    assert await seats_of(db, booking.id) == [(3, 0), (3, 0)]

    result = await complete_route_instance(db, world.driver.id, second.id)

    assert result.all_routes_completed
    assert await seats_of(db, booking.id) == [(3, 0), (0, 0)]
    trip_instance = await TripInstanceCRUD(db).get_trip_instance(booking.trip_instance_id)
    assert trip_instance.status == TripInstanceStatus.COMPLETED


async def test_overflow_moves_to_next_hour_then_same_instance_fills(db, world):
    first = await create_booking(db, request(world, seats=3))
    second = await create_booking(db, request(world, seats=2))
    third = await create_booking(db, request(world, seats=1))

    assert first.assigned_slot.start_time == hour_to_iso_time(9)
    assert second.assigned_slot.start_time == hour_to_iso_time(10)
    assert third.assigned_slot.start_time == hour_to_iso_time(9)

    first_booking = await BookingCRUD(db).get_booking(first.booking_id)
    third_booking = await BookingCRUD(db).get_booking(third.booking_id)
    assert first_booking.trip_instance_id == third_booking.trip_instance_id
    assert await seats_of(db, first.booking_id) == [(0, 4), (0, 4)]


async def test_no_slot_stores_rejected_booking(db, world):
    await create_booking(db, request(world, seats=4, desired_time="16"))

    response = await create_booking(db, request(world, seats=1, desired_time="16"))

    assert not response.success
    assert response.message == "Shuttle full at 16:00-17:00 and no service available at 17:00"
    booking = await BookingCRUD(db).get_booking(response.booking_id)
    assert booking.booking_status == BookingStatus.REJECTED
    assert booking.cancelled_by == CancelledBy.AUTO_CANCEL
    assert booking.trip_instance_id is None


async def test_invalid_booking_requests(db, seed, world):
    with pytest.raises(PermissionDeniedError, match="Invalid guest"):
        await create_booking(db, request(world).model_copy(update={"guest_id": world.driver.id}))
    with pytest.raises(ShuttleDomainError, match="Invalid route"):
        await create_booking(db, request(world, from_location_id="C", to_location_id="A"))
    with pytest.raises(ShuttleDomainError, match="past date"):
        await create_booking(db, request(world).model_copy(update={"scheduled_date": "2000-01-01"}))
    with pytest.raises(ShuttleDomainError, match="Maximum shuttle capacity is 4"):
        await create_booking(db, request(world, seats=5))
    with pytest.raises(ShuttleDomainError, match="greater than 0"):
        await create_booking(db, request(world, seats=0))
    with pytest.raises(NotFoundError):
        await create_booking(db, request(world).model_copy(update={"trip_id": "missing"}))

    other_trip = await seed.trip(hotel_id="other-hotel")
    with pytest.raises(ShuttleDomainError, match="does not belong"):
        await create_booking(db, request(world).model_copy(update={"trip_id": other_trip.id}))


async def test_reject_releases_hold_once(db, world):
    response = await create_booking(db, request(world, seats=2))

    await reject_booking(db, world.frontdesk.id, response.booking_id, "No room for luggage")

    assert await seats_of(db, response.booking_id) == [(0, 0), (0, 0)]
    booking = await BookingCRUD(db).get_booking(response.booking_id)
    assert booking.cancelled_by == CancelledBy.FRONTDESK
    assert booking.cancellation_reason == "No room for luggage"

    with pytest.raises(InvalidStateError):
        await reject_booking(db, world.frontdesk.id, response.booking_id, "again")
    with pytest.raises(InvalidStateError):
        await confirm_booking(db, world.frontdesk.id, response.booking_id)
    with pytest.raises(InvalidStateError):
        await cancel_booking(db, world.guest.id, response.booking_id, "again")


async def test_frontdesk_of_another_hotel(db, seed, world):
    response = await create_booking(db, request(world))
    stranger = await seed.user(UserRole.FRONTDESK, hotel_id="other-hotel")

    with pytest.raises(PermissionDeniedError):
        await confirm_booking(db, stranger.id, response.booking_id)
    with pytest.raises(PermissionDeniedError, match="Only frontdesk"):
        await confirm_booking(db, world.guest.id, response.booking_id)


async def test_cancel_pending_and_confirmed(db, world):
    pending = await create_booking(db, request(world, seats=1))
    confirmed = await create_booking(db, request(world, seats=2))
    await confirm_booking(db, world.frontdesk.id, confirmed.booking_id)

    await cancel_booking(db, world.guest.id, pending.booking_id, "Changed plans")
    assert await seats_of(db, confirmed.booking_id) == [(2, 0), (2, 0)]

    await cancel_booking(db, world.frontdesk.id, confirmed.booking_id, "Flight delayed")
    assert await seats_of(db, confirmed.booking_id) == [(0, 0), (0, 0)]

    booking = await BookingCRUD(db).get_booking(confirmed.booking_id)
    assert booking.booking_status == BookingStatus.REJECTED
    assert booking.cancelled_by == CancelledBy.FRONTDESK
    trip_instance = await TripInstanceCRUD(db).get_trip_instance(booking.trip_instance_id)
    assert trip_instance.booking_ids == []


async def test_guest_cannot_cancel_someone_else(db, seed, world):
    response = await create_booking(db, request(world))
    other_guest = await seed.user(UserRole.GUEST, name="other")

    with pytest.raises(PermissionDeniedError):
        await cancel_booking(db, other_guest.id, response.booking_id, "not mine")


async def test_expired_hold_is_released_exactly_once(db, world):
    response = await create_booking(db, request(world, seats=2))

    assert not await expire_booking_hold(db, response.booking_id)
    assert await expire_booking_hold(db, response.booking_id, now_iso=FAR_FUTURE)
    assert not await expire_booking_hold(db, response.booking_id, now_iso=FAR_FUTURE)

    assert await seats_of(db, response.booking_id) == [(0, 0), (0, 0)]
    booking = await BookingCRUD(db).get_booking(response.booking_id)
    assert booking.cancelled_by == CancelledBy.AUTO_CANCEL


async def test_confirmed_booking_does_not_expire(db, world):
    response = await create_booking(db, request(world, seats=2))
    await confirm_booking(db, world.frontdesk.id, response.booking_id)

    assert not await expire_booking_hold(db, response.booking_id, now_iso=FAR_FUTURE)
    assert await seats_of(db, response.booking_id) == [(2, 0), (2, 0)]


async def test_sweeper_releases_overdue_holds(db, world):
    overdue = await create_booking(db, request(world, seats=1))
    fresh = await create_booking(db, request(world, seats=2))
    await BookingCRUD(db).update_booking(
        overdue.booking_id, {"hold_expires_at": "2000-01-01T00:00:00.000Z"}
    )

    expired = await HoldSweeper(db).fetch_and_expire_holds()

    assert expired == [overdue.booking_id]
    assert await seats_of(db, fresh.booking_id) == [(0, 2), (0, 2)]
    assert await HoldSweeper(db).fetch_and_expire_holds() == []
