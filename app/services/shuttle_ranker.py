from typing import List, Optional

from pydantic import BaseModel

from app.models.inout import ShuttleSeats, SlotCapacity
from app.models.shuttle import ShuttleCRUD
from app.models.trip_instance import TripInstanceCRUD
from app.services.seat_ledger import (
    get_route_instances_for_trip_instance,
    is_valid_range,
    max_used_seats,
)


class ShuttleWithAvailability(BaseModel):
    shuttle_id: str
    total_seats: int
    available_seats: int


async def rank_available_shuttles(
    db,
    hotel_id: str,
    scheduled_date: str,
    scheduled_start_time: str,
    scheduled_end_time: str,
    required_seats: int,
    from_route_index: Optional[int] = None,
    to_route_index: Optional[int] = None,
    session=None,
) -> List[ShuttleWithAvailability]:
    """
    Active shuttles of a hotel that can take the seats in a window, tightest fit first

    Used seats of a shuttle are the busiest segment of its instance within the
    requested range (every segment when no range is given). A range that does
    not fit the instance's segments rules the shuttle out.
    """
    if (
        from_route_index is not None
        and to_route_index is not None
        and from_route_index > to_route_index
    ):
        return []

    shuttles = await ShuttleCRUD(db).get_active_shuttles(hotel_id, session=session)
    instance_crud = TripInstanceCRUD(db)

    ranked = []
    for shuttle in shuttles:
        used_seats = 0
        trip_instance = await instance_crud.find_for_shuttle(
            shuttle.id,
            scheduled_date,
            scheduled_start_time,
            scheduled_end_time,
            session=session,
        )

        if trip_instance:
            if not trip_instance.status.accepts_bookings():
                continue

            route_instances = await get_route_instances_for_trip_instance(
                db, trip_instance.id, session=session
            )
            from_index = 0 if from_route_index is None else from_route_index
            to_index = (
                len(route_instances) - 1 if to_route_index is None else to_route_index
            )
            if not is_valid_range(len(route_instances), from_index, to_index):
                continue
            used_seats = max_used_seats(route_instances, from_index, to_index)

        available_seats = shuttle.total_seats - used_seats
        if available_seats >= required_seats:
            ranked.append(
                ShuttleWithAvailability(
                    shuttle_id=shuttle.id,
                    total_seats=shuttle.total_seats,
                    available_seats=available_seats,
                )
            )

    ranked.sort(key=lambda s: s.available_seats)
    return ranked


async def get_available_shuttle(
    db,
    hotel_id: str,
    scheduled_date: str,
    scheduled_start_time: str,
    scheduled_end_time: str,
    required_seats: int,
    from_route_index: Optional[int] = None,
    to_route_index: Optional[int] = None,
    session=None,
) -> Optional[str]:
    """Best-fit shuttle id for a window, or None when no shuttle has room"""
    ranked = await rank_available_shuttles(
        db,
        hotel_id,
        scheduled_date,
        scheduled_start_time,
        scheduled_end_time,
        required_seats,
        from_route_index=from_route_index,
        to_route_index=to_route_index,
        session=session,
    )
    if not ranked:
        return None
    return ranked[0].shuttle_id


async def get_slot_capacity(
    db,
    hotel_id: str,
    scheduled_date: str,
    scheduled_start_time: str,
    scheduled_end_time: str,
    session=None,
) -> SlotCapacity:
    """
    Seats left per active shuttle of a hotel in one window

    A shuttle whose instance already left has none. Only shuttles with seats
    left are listed; the total sums them.
    """
    shuttles = await ShuttleCRUD(db).get_active_shuttles(hotel_id, session=session)
    instance_crud = TripInstanceCRUD(db)

    with_seats = []
    for shuttle in shuttles:
        available_seats = shuttle.total_seats
        trip_instance = await instance_crud.find_for_shuttle(
            shuttle.id,
            scheduled_date,
            scheduled_start_time,
            scheduled_end_time,
            session=session,
        )

        if trip_instance:
            if trip_instance.status.accepts_bookings():
                route_instances = await get_route_instances_for_trip_instance(
                    db, trip_instance.id, session=session
                )
                used_seats = max((ri.used_seats() for ri in route_instances), default=0)
                available_seats = max(0, shuttle.total_seats - used_seats)
            else:
                available_seats = 0

        if available_seats > 0:
            with_seats.append(
                ShuttleSeats(
                    shuttle_id=shuttle.id,
                    vehicle_number=shuttle.vehicle_number,
                    available_seats=available_seats,
                )
            )

    return SlotCapacity(
        total_available_seats=sum(s.available_seats for s in with_seats),
        shuttles=with_seats,
    )
