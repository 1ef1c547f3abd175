from typing import Iterable, List, Optional, Set

from app.internal.log import debug
from app.internal.timeaddr import format_hour_range, hour_to_iso_time, parse_time_to_hour
from app.models.inout import SlotAvailability, SlotResult, SlotSearchResult
from app.models.shuttle import Shuttle, ShuttleCRUD
from app.models.trip import TripCRUD, TripTime
from app.models.trip_instance import TripInstanceCRUD
from app.services.seat_ledger import get_max_used_seats, is_valid_range


def build_covered_hours(trip_times: Iterable[TripTime]) -> Set[int]:
    """
    Hours serviced by any operating window

    Each window [start, end) contributes start..end-1; overlaps simply union.
    """
    covered_hours = set()
    for trip_time in trip_times:
        for hour in range(trip_time.start_hour(), trip_time.end_hour()):
            covered_hours.add(hour)
    return covered_hours


def find_trip_time_for_hour(
    trip_times: List[TripTime], hour: int
) -> Optional[TripTime]:
    for trip_time in trip_times:
        if trip_time.contains_hour(hour):
            return trip_time
    return None


async def check_slot_availability(
    db,
    trip_id: str,
    scheduled_date: str,
    slot_start_time: str,
    slot_end_time: str,
    shuttles: List[Shuttle],
    required_seats: int,
    from_route_index: int,
    to_route_index: int,
    session=None,
) -> SlotAvailability:
    """
    Find the first shuttle, in the given order, that can carry the seats in a slot

    A shuttle without an instance in the slot is free at once. A SCHEDULED
    instance is reused while its tightest segment in the range has room. Any
    other status takes the shuttle out of the slot.
    """
    crud = TripInstanceCRUD(db)
    instances = await crud.get_for_slot(
        trip_id, scheduled_date, slot_start_time, session=session
    )

    for shuttle in shuttles:
        matching_instance = next(
            (
                instance
                for instance in instances
                if instance.scheduled_end_time == slot_end_time
                and instance.shuttle_id == shuttle.id
            ),
            None,
        )

        if not matching_instance:
            return SlotAvailability(available=True, shuttle_id=shuttle.id)

        if not matching_instance.status.accepts_bookings():
            continue

        used_seats = await get_max_used_seats(
            db, matching_instance.id, from_route_index, to_route_index, session=session
        )
        available_seats = shuttle.total_seats - used_seats

        if available_seats >= required_seats:
            return SlotAvailability(
                available=True,
                shuttle_id=shuttle.id,
                existing_trip_instance_id=matching_instance.id,
            )

    return SlotAvailability(available=False)


async def find_best_available_slot(
    db,
    trip_id: str,
    hotel_id: str,
    scheduled_date: str,
    desired_time: str,
    required_seats: int,
    from_route_index: int = 0,
    to_route_index: Optional[int] = None,
    session=None,
) -> SlotSearchResult:
    """
    Find the earliest slot at or after the desired hour that has room

    The search walks forward one hour at a time through contiguous covered
    hours only. It never looks back, and an uncovered hour ends the search
    even when a later operating window would have seats.

    Args:
        db: Database handle
        trip_id: Trip to ride
        hotel_id: Hotel whose active shuttles may serve the ride
        scheduled_date: YYYY-MM-DD
        desired_time: Any time string accepted by parse_time_to_hour
        required_seats: Seats the booking needs
        from_route_index: First segment of the ride
        to_route_index: Last segment of the ride, defaults to the trip's last

    Returns:
        SlotSearchResult with the slot, or found=False and the reason
    """
    trip_crud = TripCRUD(db)

    trip = await trip_crud.get_trip(trip_id, session=session)
    if not trip:
        return SlotSearchResult(found=False, reason="Trip not found")

    routes = await trip_crud.get_routes(trip_id, session=session)
    if not routes:
        return SlotSearchResult(found=False, reason="Trip has no routes defined")

    if to_route_index is None:
        to_route_index = len(routes) - 1

    if not is_valid_range(len(routes), from_route_index, to_route_index):
        return SlotSearchResult(
            found=False,
            reason=f"Invalid route segment range {from_route_index}-{to_route_index}",
        )

    trip_times = await trip_crud.get_trip_times(trip, session=session)
    if not trip_times:
        return SlotSearchResult(
            found=False, reason="No time slots available for this trip"
        )

    covered_hours = build_covered_hours(trip_times)
    desired_hour = parse_time_to_hour(desired_time)

    if desired_hour not in covered_hours:
        return SlotSearchResult(
            found=False,
            reason=f"No shuttle service available at {desired_hour}:00",
        )

    shuttles = await ShuttleCRUD(db).get_active_shuttles(hotel_id, session=session)
    if not shuttles:
        return SlotSearchResult(found=False, reason="No active shuttles available")

    current_hour = desired_hour

    while current_hour in covered_hours:
        slot_start_time = hour_to_iso_time(current_hour)
        slot_end_time = hour_to_iso_time(current_hour + 1)

        trip_time = find_trip_time_for_hour(trip_times, current_hour)
        if not trip_time:
            break

        availability = await check_slot_availability(
            db,
            trip_id,
            scheduled_date,
            slot_start_time,
            slot_end_time,
            shuttles,
            required_seats,
            from_route_index,
            to_route_index,
            session=session,
        )

        if availability.available and availability.shuttle_id:
            debug(
                f"Slot {scheduled_date} {current_hour}:00 on {availability.shuttle_id} for {required_seats} seat(s)"
            )
            return SlotSearchResult(
                found=True,
                slot=SlotResult(
                    trip_time_id=trip_time.id,
                    start_time=slot_start_time,
                    end_time=slot_end_time,
                    shuttle_id=availability.shuttle_id,
                    existing_trip_instance_id=availability.existing_trip_instance_id,
                ),
            )

        next_hour = current_hour + 1

        if next_hour not in covered_hours:
            return SlotSearchResult(
                found=False,
                reason=f"Shuttle full at {format_hour_range(current_hour, next_hour)} and no service available at {next_hour}:00",
            )

        current_hour = next_hour

    return SlotSearchResult(
        found=False, reason="No shuttle available for the requested time"
    )
