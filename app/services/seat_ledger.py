from typing import List, Optional, Set

from app.internal.errors import (
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
)
from app.internal.log import debug
from app.internal.timeaddr import utc_now_iso
from app.models.booking import Booking, BookingCRUD
from app.models.inout import (
    CompletionResult,
    EtaUpdate,
    RevertResult,
    SeatSummary,
    SeatValidationResult,
    SegmentAdvanceResult,
    UncompletionResult,
    UpcomingStop,
)
from app.models.route_instance import RouteInstance, RouteInstanceCRUD
from app.models.shuttle import ShuttleCRUD
from app.models.status import BookingStatus, TripInstanceStatus, UserRole
from app.models.trip import TripCRUD
from app.models.trip_instance import TripInstance, TripInstanceCRUD
from app.models.user import UserCRUD, require_role


def clamp_seats(current: int, delta: int) -> int:
    """Apply a delta to a seat counter without ever going below zero"""
    return max(0, current + delta)


def in_range(route_instance: RouteInstance, from_index: int, to_index: int) -> bool:
    return from_index <= route_instance.order_index <= to_index


def is_valid_range(segment_count: int, from_index: int, to_index: int) -> bool:
    """A ride must cover at least one existing segment, moving forward"""
    return 0 <= from_index <= to_index < segment_count


def max_used_seats(
    route_instances: List[RouteInstance], from_index: int, to_index: int
) -> int:
    """Bottleneck occupancy of a segment range"""
    used = 0
    for ri in route_instances:
        if in_range(ri, from_index, to_index):
            used = max(used, ri.used_seats())
    return used


def seats_leaving_at(bookings: List[Booking], order_index: int) -> int:
    """Seats of confirmed passengers whose ride ends with this segment"""
    seats = 0
    for booking in bookings:
        if (
            booking.booking_status == BookingStatus.CONFIRMED
            and booking.to_route_index == order_index
        ):
            seats += booking.seats
    return seats


def segments_with_riders(bookings: List[Booking]) -> Set[int]:
    """Order indexes covered by at least one live (pending or confirmed) booking"""
    indexes = set()
    for booking in bookings:
        if booking.booking_status in (BookingStatus.PENDING, BookingStatus.CONFIRMED):
            indexes.update(range(booking.from_route_index, booking.to_route_index + 1))
    return indexes


async def create_route_instances_for_trip_instance(
    db, trip_instance_id: str, trip_id: str, session=None
) -> List[RouteInstance]:
    """
    Seed one empty seat ledger per route of the trip

    Must run in the same transaction that created the trip instance.
    """
    routes = await TripCRUD(db).get_routes(trip_id, session=session)

    route_instances = [
        RouteInstance(
            trip_instance_id=trip_instance_id,
            route_id=route.id,
            order_index=route.order_index,
        )
        for route in routes
    ]
    return await RouteInstanceCRUD(db).create_route_instances(
        route_instances, session=session
    )


async def get_route_instances_for_trip_instance(
    db, trip_instance_id: str, session=None
) -> List[RouteInstance]:
    return await RouteInstanceCRUD(db).get_for_trip_instance(
        trip_instance_id, session=session
    )


async def get_max_used_seats(
    db, trip_instance_id: str, from_index: int, to_index: int, session=None
) -> int:
    route_instances = await get_route_instances_for_trip_instance(
        db, trip_instance_id, session=session
    )
    return max_used_seats(route_instances, from_index, to_index)


async def update_route_instance_seats(
    db,
    route_instance_id: str,
    seat_held_delta: int,
    seats_occupied_delta: int,
    session=None,
):
    """
    Apply seat deltas to a single segment

    Raises:
        LookupError: If the route instance does not exist
    """
    crud = RouteInstanceCRUD(db)
    route_instance = await crud.get_route_instance(route_instance_id, session=session)
    if not route_instance:
        raise LookupError(f"RouteInstance {route_instance_id} not found")

    await crud.set_seats(
        route_instance_id,
        seat_held=clamp_seats(route_instance.seat_held, seat_held_delta),
        seats_occupied=clamp_seats(route_instance.seats_occupied, seats_occupied_delta),
        session=session,
    )


async def update_multiple_route_instance_seats(
    db,
    trip_instance_id: str,
    from_index: int,
    to_index: int,
    seat_held_delta: int,
    seats_occupied_delta: int,
    session=None,
):
    """Apply the same seat deltas to every segment in [from_index, to_index]"""
    crud = RouteInstanceCRUD(db)
    route_instances = await crud.get_for_trip_instance(trip_instance_id, session=session)

    for ri in route_instances:
        if not in_range(ri, from_index, to_index):
            continue
        await crud.set_seats(
            ri.id,
            seat_held=clamp_seats(ri.seat_held, seat_held_delta),
            seats_occupied=clamp_seats(ri.seats_occupied, seats_occupied_delta),
            session=session,
        )

    debug(
        f"Seats {trip_instance_id} [{from_index}-{to_index}] held{seat_held_delta:+d} occupied{seats_occupied_delta:+d}"
    )


async def authorize_driver(db, driver_id: str, trip_instance: TripInstance, session=None):
    """
    Check the driver is the one currently assigned to the instance's shuttle

    Raises:
        PermissionDeniedError: If not
    """
    if trip_instance.shuttle_id:
        shuttle = await ShuttleCRUD(db).get_shuttle(
            trip_instance.shuttle_id, session=session
        )
        if not shuttle or shuttle.currently_assigned_to != driver_id:
            raise PermissionDeniedError("You are not assigned to this shuttle")


async def _load_for_driver(
    db, driver_id: str, route_instance_id: str, message: str, session=None
):
    driver = await UserCRUD(db).get_user(driver_id, session=session)
    require_role(driver, UserRole.DRIVER, message)

    route_instance = await RouteInstanceCRUD(db).get_route_instance(
        route_instance_id, session=session
    )
    if not route_instance:
        raise NotFoundError("Route instance not found")

    trip_instance = await TripInstanceCRUD(db).get_trip_instance(
        route_instance.trip_instance_id, session=session
    )
    if not trip_instance:
        raise NotFoundError("Trip instance not found")

    await authorize_driver(db, driver_id, trip_instance, session=session)
    return route_instance, trip_instance


async def complete_route_instance(
    db, driver_id: str, route_instance_id: str, session=None
) -> CompletionResult:
    """
    Mark a segment as driven and release the seats of passengers leaving at its end

    Raises:
        PermissionDeniedError: Not a driver, or not assigned to the shuttle
        NotFoundError: Route instance or trip instance missing
        InvalidStateError: Trip not IN_PROGRESS, or segment already completed
    """
    route_instance, trip_instance = await _load_for_driver(
        db,
        driver_id,
        route_instance_id,
        "Only drivers can complete route instances",
        session=session,
    )

    if trip_instance.status != TripInstanceStatus.IN_PROGRESS:
        raise InvalidStateError("Trip must be IN_PROGRESS to complete route segments")

    if route_instance.completed:
        raise InvalidStateError("Route segment already completed")

    bookings = await BookingCRUD(db).get_for_trip_instance(
        trip_instance.id, session=session
    )
    seats_to_release = seats_leaving_at(bookings, route_instance.order_index)

    crud = RouteInstanceCRUD(db)
    await crud.set_completed(
        route_instance.id,
        completed=True,
        seats_occupied=clamp_seats(route_instance.seats_occupied, -seats_to_release),
        session=session,
    )

    all_route_instances = await crud.get_for_trip_instance(
        trip_instance.id, session=session
    )
    all_completed = all(ri.completed for ri in all_route_instances)

    if all_completed:
        await TripInstanceCRUD(db).update_status(
            trip_instance.id,
            TripInstanceStatus.COMPLETED,
            actual_end_time=utc_now_iso(),
            session=session,
        )

    debug(
        f"Completed segment {route_instance.order_index} of {trip_instance.id}, released {seats_to_release}"
    )

    return CompletionResult(
        success=True,
        message="Route segment completed",
        all_routes_completed=all_completed,
    )


async def uncomplete_route_instance(
    db, driver_id: str, route_instance_id: str, session=None
) -> UncompletionResult:
    """
    Undo an accidental segment completion

    Raises:
        PermissionDeniedError: Not a driver, or not assigned to the shuttle
        NotFoundError: Route instance or trip instance missing
        InvalidStateError: Trip neither IN_PROGRESS nor COMPLETED, or segment not completed
    """
    route_instance, trip_instance = await _load_for_driver(
        db,
        driver_id,
        route_instance_id,
        "Only drivers can modify route instances",
        session=session,
    )

    if trip_instance.status not in (
        TripInstanceStatus.IN_PROGRESS,
        TripInstanceStatus.COMPLETED,
    ):
        raise InvalidStateError(
            "Trip must be IN_PROGRESS or COMPLETED to modify route segments"
        )

    if not route_instance.completed:
        raise InvalidStateError("Route segment is not completed")

    await _restore_segment(db, trip_instance, route_instance, session=session)

    return UncompletionResult(success=True, message="Route segment uncompleted")


async def _restore_segment(
    db, trip_instance: TripInstance, route_instance: RouteInstance, session=None
) -> int:
    bookings = await BookingCRUD(db).get_for_trip_instance(
        trip_instance.id, session=session
    )
    seats_to_restore = seats_leaving_at(bookings, route_instance.order_index)

    await RouteInstanceCRUD(db).set_completed(
        route_instance.id,
        completed=False,
        seats_occupied=route_instance.seats_occupied + seats_to_restore,
        session=session,
    )

    if trip_instance.status == TripInstanceStatus.COMPLETED:
        await TripInstanceCRUD(db).update_status(
            trip_instance.id,
            TripInstanceStatus.IN_PROGRESS,
            clear_actual_end_time=True,
            session=session,
        )

    return seats_to_restore


async def _load_trip_for_driver(
    db, driver_id: str, trip_instance_id: str, message: str, session=None
) -> TripInstance:
    driver = await UserCRUD(db).get_user(driver_id, session=session)
    require_role(driver, UserRole.DRIVER, message)

    trip_instance = await TripInstanceCRUD(db).get_trip_instance(
        trip_instance_id, session=session
    )
    if not trip_instance:
        raise NotFoundError("Trip instance not found")

    await authorize_driver(db, driver_id, trip_instance, session=session)
    return trip_instance


async def start_next_route_segment(
    db, driver_id: str, trip_instance_id: str, session=None
) -> SegmentAdvanceResult:
    """Complete the current segment and move on, for every segment but the last"""
    trip_instance = await _load_trip_for_driver(
        db,
        driver_id,
        trip_instance_id,
        "Only drivers can advance route segments",
        session=session,
    )

    if trip_instance.status != TripInstanceStatus.IN_PROGRESS:
        raise InvalidStateError("Trip must be IN_PROGRESS to advance route segments")

    route_instances = await get_route_instances_for_trip_instance(
        db, trip_instance_id, session=session
    )
    current = next(
        (i for i, ri in enumerate(route_instances) if not ri.completed), None
    )
    if current is None:
        raise InvalidStateError("All route segments are already completed")
    if current == len(route_instances) - 1:
        raise InvalidStateError("This is the last segment. Use complete trip instead.")

    route_instance = route_instances[current]
    bookings = await BookingCRUD(db).get_for_trip_instance(
        trip_instance_id, session=session
    )
    seats_to_release = seats_leaving_at(bookings, route_instance.order_index)

    await RouteInstanceCRUD(db).set_completed(
        route_instance.id,
        completed=True,
        seats_occupied=clamp_seats(route_instance.seats_occupied, -seats_to_release),
        session=session,
    )

    return SegmentAdvanceResult(
        success=True,
        message=f"Completed segment {current}. Next segment: {current + 1}",
        completed_route_index=current,
        next_route_index=current + 1,
        seats_released=seats_to_release,
    )


async def revert_last_route_completion(
    db, driver_id: str, trip_instance_id: str, session=None
) -> RevertResult:
    """Undo the most recent segment completion of a trip instance"""
    trip_instance = await _load_trip_for_driver(
        db,
        driver_id,
        trip_instance_id,
        "Only drivers can revert route completions",
        session=session,
    )

    if trip_instance.status not in (
        TripInstanceStatus.IN_PROGRESS,
        TripInstanceStatus.COMPLETED,
    ):
        raise InvalidStateError("Trip must be IN_PROGRESS or COMPLETED to revert")

    route_instances = await get_route_instances_for_trip_instance(
        db, trip_instance_id, session=session
    )
    completed = [ri for ri in route_instances if ri.completed]
    if not completed:
        raise InvalidStateError("No completed routes to revert")

    last_completed = completed[-1]
    seats_restored = await _restore_segment(
        db, trip_instance, last_completed, session=session
    )

    return RevertResult(
        success=True,
        message=f"Reverted completion of segment {last_completed.order_index}",
        reverted_route_index=last_completed.order_index,
        seats_restored=seats_restored,
    )


async def update_route_instance_eta(db, route_instance_id: str, eta: str, session=None):
    """
    Raises:
        LookupError: If the route instance does not exist
    """
    updated = await RouteInstanceCRUD(db).set_eta(route_instance_id, eta, session=session)
    if not updated:
        raise LookupError(f"RouteInstance {route_instance_id} not found")


async def update_multiple_route_instance_etas(
    db, updates: List[EtaUpdate], session=None
):
    crud = RouteInstanceCRUD(db)
    for update in updates:
        await crud.set_eta(update.route_instance_id, update.eta, session=session)


async def delete_route_instances_for_trip_instance(
    db, trip_instance_id: str, session=None
) -> int:
    return await RouteInstanceCRUD(db).delete_for_trip_instance(
        trip_instance_id, session=session
    )


async def get_trip_instance_seat_summary(
    db, trip_instance_id: str, session=None
) -> Optional[SeatSummary]:
    """Capacity overview of a trip instance across all segments"""
    trip_instance = await TripInstanceCRUD(db).get_trip_instance(
        trip_instance_id, session=session
    )
    if not trip_instance:
        return None

    capacity = 0
    if trip_instance.shuttle_id:
        shuttle = await ShuttleCRUD(db).get_shuttle(
            trip_instance.shuttle_id, session=session
        )
        capacity = shuttle.total_seats if shuttle else 0

    route_instances = await get_route_instances_for_trip_instance(
        db, trip_instance_id, session=session
    )
    max_occupied = max((ri.seats_occupied for ri in route_instances), default=0)
    max_held = max((ri.seat_held for ri in route_instances), default=0)
    max_total = max((ri.used_seats() for ri in route_instances), default=0)

    return SeatSummary(
        shuttle_capacity=capacity,
        max_seats_occupied=max_occupied,
        max_seats_held=max_held,
        max_total_used=max_total,
        available_seats=max(0, capacity - max_total),
    )


async def get_max_available_seats(
    db,
    trip_instance_id: str,
    from_index: int,
    to_index: int,
    shuttle_capacity: int,
    session=None,
) -> int:
    used = await get_max_used_seats(
        db, trip_instance_id, from_index, to_index, session=session
    )
    return max(0, shuttle_capacity - used)


async def validate_seat_availability(
    db,
    trip_instance_id: str,
    from_index: int,
    to_index: int,
    required_seats: int,
    shuttle_capacity: int,
    session=None,
) -> SeatValidationResult:
    """Check every segment in the range can take the extra seats"""
    route_instances = await get_route_instances_for_trip_instance(
        db, trip_instance_id, session=session
    )
    by_index = {ri.order_index: ri for ri in route_instances}

    for i in range(from_index, to_index + 1):
        route_instance = by_index.get(i)
        if not route_instance:
            return SeatValidationResult(
                valid=False, reason=f"Route segment at index {i} not found"
            )

        available = shuttle_capacity - route_instance.used_seats()
        if available < required_seats:
            return SeatValidationResult(
                valid=False,
                reason=f"Segment at index {i} is at capacity ({available} seats available, {required_seats} required)",
                available_seats=available,
            )

    return SeatValidationResult(valid=True)


async def _riders_by_segment(db, trip_instance_id: str, session=None) -> Set[int]:
    bookings = await BookingCRUD(db).get_for_trip_instance(
        trip_instance_id, session=session
    )
    return segments_with_riders(bookings)


async def get_effective_next_route_index(
    db, trip_instance_id: str, current_index: int, session=None
) -> int:
    """
    Next segment after current_index that carries a passenger

    Segments nobody rides can be driven through without stopping. When no
    later segment has riders, the last segment is returned.
    """
    route_instances = await get_route_instances_for_trip_instance(
        db, trip_instance_id, session=session
    )
    ridden = await _riders_by_segment(db, trip_instance_id, session=session)

    for i in range(current_index + 1, len(route_instances)):
        if i in ridden:
            return i
    return len(route_instances) - 1


async def get_skippable_routes(db, trip_instance_id: str, session=None) -> List[int]:
    """Indexes of segments without riders, the last segment excluded"""
    route_instances = await get_route_instances_for_trip_instance(
        db, trip_instance_id, session=session
    )
    ridden = await _riders_by_segment(db, trip_instance_id, session=session)
    return [i for i in range(len(route_instances) - 1) if i not in ridden]


async def get_incomplete_route_instances(
    db, trip_instance_id: str, session=None
) -> List[UpcomingStop]:
    """Segments not yet driven, in itinerary order, with the stop each ends at"""
    route_instances = await get_route_instances_for_trip_instance(
        db, trip_instance_id, session=session
    )
    trip_crud = TripCRUD(db)

    upcoming = []
    for ri in route_instances:
        if ri.completed:
            continue
        route = await trip_crud.get_route(ri.route_id, session=session)
        upcoming.append(
            UpcomingStop(
                route_instance_id=ri.id,
                route_id=ri.route_id,
                order_index=ri.order_index,
                end_location_id=route.end_location_id if route else None,
                eta=ri.eta,
            )
        )
    return upcoming
