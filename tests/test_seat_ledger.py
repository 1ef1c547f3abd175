import pytest

from app.internal.errors import InvalidStateError, NotFoundError, PermissionDeniedError
from app.models.booking import Booking, BookingCRUD
from app.models.inout import EtaUpdate
from app.models.status import BookingStatus, TripInstanceStatus, UserRole
from app.models.trip_instance import TripInstanceCRUD
from app.services.seat_ledger import (
    clamp_seats,
    is_valid_range,
    complete_route_instance,
    create_route_instances_for_trip_instance,
    delete_route_instances_for_trip_instance,
    get_effective_next_route_index,
    get_incomplete_route_instances,
    get_max_available_seats,
    get_route_instances_for_trip_instance,
    get_skippable_routes,
    get_trip_instance_seat_summary,
    revert_last_route_completion,
    start_next_route_segment,
    uncomplete_route_instance,
    update_multiple_route_instance_etas,
    update_multiple_route_instance_seats,
    update_route_instance_eta,
    update_route_instance_seats,
    validate_seat_availability,
)
from app.services.trip_instances import start_trip_instance
from tests.conftest import DATE, HOTEL_ID


def seats(route_instances):
    return [(ri.seats_occupied, ri.seat_held) for ri in route_instances]


async def ledger(db, trip_instance_id):
    return await get_route_instances_for_trip_instance(db, trip_instance_id)


async def board(db, trip_instance, from_index, to_index, count, guest_id="guest"):
    """Confirmed passengers riding [from_index, to_index]"""
    booking = Booking(
        guest_id=guest_id,
        hotel_id=HOTEL_ID,
        trip_id=trip_instance.trip_id,
        trip_instance_id=trip_instance.id,
        scheduled_date=DATE,
        from_route_index=from_index,
        to_route_index=to_index,
        seats=count,
        booking_status=BookingStatus.CONFIRMED,
    )
    await BookingCRUD(db).create_booking(booking)
    await update_multiple_route_instance_seats(
        db, trip_instance.id, from_index, to_index, 0, count
    )
    return booking


@pytest.fixture
async def departed(db, seed, world):
    """Instance at 9:00 already on the road with 3 riders A -> C and 1 rider A -> B"""
    trip_instance = await seed.instance(world.trip.id, 9, world.shuttle.id)
    await board(db, trip_instance, 0, 1, 3)
    await board(db, trip_instance, 0, 0, 1)
    await start_trip_instance(db, world.driver.id, trip_instance.id)
    return await TripInstanceCRUD(db).get_trip_instance(trip_instance.id)


def test_clamp_seats():
    assert clamp_seats(3, -2) == 1
    assert clamp_seats(1, -5) == 0
    assert clamp_seats(0, 4) == 4


async def test_route_instances_follow_routes(db, seed, world):
    trip_instance = await seed.instance(world.trip.id, 9, world.shuttle.id)

    route_instances = await ledger(db, trip_instance.id)

    assert [ri.order_index for ri in route_instances] == [0, 1]
    assert seats(route_instances) == [(0, 0), (0, 0)]
    assert not any(ri.completed for ri in route_instances)


async def test_route_instances_for_trip_without_routes(db, seed):
    trip = await seed.trip(stops=())

    created = await create_route_instances_for_trip_instance(db, "instance", trip.id)

    assert created == []


async def test_counters_never_go_negative(db, seed, world):
    trip_instance = await seed.instance(world.trip.id, 9, world.shuttle.id, held=1)
    first = (await ledger(db, trip_instance.id))[0]

    await update_route_instance_seats(db, first.id, -5, -5)

    assert seats(await ledger(db, trip_instance.id))[0] == (0, 0)


async def test_single_update_of_unknown_segment(db):
    with pytest.raises(LookupError):
        await update_route_instance_seats(db, "missing", 1, 0)


async def test_range_update_is_uniform(db, seed):
    trip = await seed.trip(stops=("A", "B", "C", "D"), charges=(1, 1, 1))
    shuttle = await seed.shuttle(8)
    trip_instance = await seed.instance(trip.id, 9, shuttle.id)

    await update_multiple_route_instance_seats(db, trip_instance.id, 1, 2, 2, 0)
    await update_multiple_route_instance_seats(db, trip_instance.id, 0, 2, -1, 3)

    assert seats(await ledger(db, trip_instance.id)) == [(3, 0), (3, 1), (3, 1)]


async def test_complete_releases_seats_of_passengers_leaving(db, world, departed):
    first, second = await ledger(db, departed.id)

    result = await complete_route_instance(db, world.driver.id, first.id)

    assert result.success
    assert not result.all_routes_completed
    first, second = await ledger(db, departed.id)
    assert first.completed
    assert seats([first, second]) == [(3, 0), (3, 0)]


async def test_completing_last_segment_completes_trip(db, world, departed):
    first, second = await ledger(db, departed.id)

    await complete_route_instance(db, world.driver.id, first.id)
    result = await complete_route_instance(db, world.driver.id, second.id)

    assert result.all_routes_completed
    trip_instance = await TripInstanceCRUD(db).get_trip_instance(departed.id)
    assert trip_instance.status == TripInstanceStatus.COMPLETED
    assert trip_instance.actual_end_time is not None
    assert seats(await ledger(db, departed.id)) == [(3, 0), (0, 0)]


async def test_segment_cannot_be_completed_twice(db, world, departed):
    first, _ = await ledger(db, departed.id)
    await complete_route_instance(db, world.driver.id, first.id)

    with pytest.raises(InvalidStateError, match="already completed"):
        await complete_route_instance(db, world.driver.id, first.id)

    assert seats(await ledger(db, departed.id))[0] == (3, 0)


async def test_complete_requires_departed_trip(db, seed, world):
    trip_instance = await seed.instance(world.trip.id, 9, world.shuttle.id)
    first, _ = await ledger(db, trip_instance.id)

    with pytest.raises(InvalidStateError):
        await complete_route_instance(db, world.driver.id, first.id)


async def test_only_the_assigned_driver_may_complete(db, seed, world, departed):
    other_driver = await seed.user(UserRole.DRIVER, name="other")
    first, _ = await ledger(db, departed.id)

    with pytest.raises(PermissionDeniedError, match="not assigned"):
        await complete_route_instance(db, other_driver.id, first.id)
    with pytest.raises(PermissionDeniedError, match="Only drivers"):
        await complete_route_instance(db, world.guest.id, first.id)


async def test_complete_unknown_segment(db, world):
    with pytest.raises(NotFoundError):
        await complete_route_instance(db, world.driver.id, "missing")


async def test_uncomplete_restores_seats_and_reopens_trip(db, world, departed):
    first, second = await ledger(db, departed.id)
    await complete_route_instance(db, world.driver.id, first.id)
    await complete_route_instance(db, world.driver.id, second.id)

    result = await uncomplete_route_instance(db, world.driver.id, second.id)

    assert result.success
    trip_instance = await TripInstanceCRUD(db).get_trip_instance(departed.id)
    assert trip_instance.status == TripInstanceStatus.IN_PROGRESS
    assert trip_instance.actual_end_time is None
    route_instances = await ledger(db, departed.id)
    assert seats(route_instances) == [(3, 0), (3, 0)]
    assert [ri.completed for ri in route_instances] == [True, False]


async def test_uncomplete_requires_completed_segment(db, world, departed):
    first, _ = await ledger(db, departed.id)

    with pytest.raises(InvalidStateError, match="not completed"):
        await uncomplete_route_instance(db, world.driver.id, first.id)


async def test_start_next_segment(db, world, departed):
    result = await start_next_route_segment(db, world.driver.id, departed.id)

    assert result.completed_route_index == 0
    assert result.next_route_index == 1
    assert result.seats_released == 1

    with pytest.raises(InvalidStateError, match="last segment"):
        await start_next_route_segment(db, world.driver.id, departed.id)


async def test_revert_last_completion(db, world, departed):
    await start_next_route_segment(db, world.driver.id, departed.id)

    result = await revert_last_route_completion(db, world.driver.id, departed.id)

    assert result.reverted_route_index == 0
    assert result.seats_restored == 1
    assert seats(await ledger(db, departed.id)) == [(4, 0), (3, 0)]

    with pytest.raises(InvalidStateError, match="No completed routes"):
        await revert_last_route_completion(db, world.driver.id, departed.id)


async def test_etas(db, seed, world):
    trip_instance = await seed.instance(world.trip.id, 9, world.shuttle.id)
    first, second = await ledger(db, trip_instance.id)

    await update_route_instance_eta(db, first.id, "09:12")
    await update_multiple_route_instance_etas(
        db,
        [
            EtaUpdate(route_instance_id=second.id, eta="09:30"),
            EtaUpdate(route_instance_id="missing", eta="10:00"),
        ],
    )

    assert [ri.eta for ri in await ledger(db, trip_instance.id)] == ["09:12", "09:30"]
    with pytest.raises(LookupError):
        await update_route_instance_eta(db, "missing", "09:00")


async def test_delete_route_instances(db, seed, world):
    trip_instance = await seed.instance(world.trip.id, 9, world.shuttle.id)

    assert await delete_route_instances_for_trip_instance(db, trip_instance.id) == 2
    assert await ledger(db, trip_instance.id) == []


async def test_seat_queries(db, seed, world):
    trip_instance = await seed.instance(
        world.trip.id, 9, world.shuttle.id, held=1, from_index=1, to_index=1
    )
    await board(db, trip_instance, 0, 1, 2)

    summary = await get_trip_instance_seat_summary(db, trip_instance.id)

    assert summary.shuttle_capacity == 4
    assert summary.max_seats_occupied == 2
    assert summary.max_seats_held == 1
    assert summary.max_total_used == 3
    assert summary.available_seats == 1

    assert await get_max_available_seats(db, trip_instance.id, 0, 0, 4) == 2
    assert (await validate_seat_availability(db, trip_instance.id, 0, 0, 2, 4)).valid

    result = await validate_seat_availability(db, trip_instance.id, 0, 1, 2, 4)
    assert not result.valid
    assert result.available_seats == 1

    assert await get_trip_instance_seat_summary(db, "missing") is None


def test_is_valid_range():
    assert is_valid_range(3, 0, 2)
    assert is_valid_range(3, 1, 1)
    assert not is_valid_range(3, 2, 1)
    assert not is_valid_range(3, 0, 3)
    assert not is_valid_range(3, -1, 0)
    assert not is_valid_range(0, 0, 0)


async def test_segments_without_riders(db, seed, world):
    trip = await seed.trip(stops=("A", "B", "C", "D"))
    trip_instance = await seed.instance(trip.id, 9, world.shuttle.id)
    await board(db, trip_instance, 1, 1, 2)
    await BookingCRUD(db).create_booking(
        Booking(
            guest_id="gone",
            hotel_id=HOTEL_ID,
            trip_id=trip.id,
            trip_instance_id=trip_instance.id,
            scheduled_date=DATE,
            from_route_index=0,
            to_route_index=0,
            seats=1,
            booking_status=BookingStatus.REJECTED,
        )
    )

    assert await get_skippable_routes(db, trip_instance.id) == [0]
    assert await get_effective_next_route_index(db, trip_instance.id, 0) == 1
    assert await get_effective_next_route_index(db, trip_instance.id, 1) == 2
    assert await get_effective_next_route_index(db, trip_instance.id, 2) == 2


async def test_incomplete_route_instances(db, world, departed):
    first, second = await ledger(db, departed.id)
    await update_route_instance_eta(db, second.id, "09:40")

    upcoming = await get_incomplete_route_instances(db, departed.id)
    assert [(stop.order_index, stop.end_location_id) for stop in upcoming] == [
        (0, "B"),
        (1, "C"),
    ]

    await complete_route_instance(db, world.driver.id, first.id)

    (remaining,) = await get_incomplete_route_instances(db, departed.id)
    assert remaining.route_instance_id == second.id
    assert remaining.end_location_id == "C"
    assert remaining.eta == "09:40"
