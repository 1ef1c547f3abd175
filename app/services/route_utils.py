from typing import List, Optional, Tuple

from app.models.trip import Route, TripCRUD


def get_route_segment_range(
    routes: List[Route], from_location_id: str, to_location_id: str
) -> Optional[Tuple[int, int]]:
    """
    Find the segments a ride between two stops occupies

    Args:
        routes: Trip routes sorted by order index
        from_location_id: Pickup stop
        to_location_id: Dropoff stop

    Returns:
        Inclusive (from_index, to_index), or None when the stops do not form a
        forward ride on this trip
    """
    from_index = -1
    to_index = -1

    for i, route in enumerate(routes):
        if route.start_location_id == from_location_id and from_index == -1:
            from_index = i
        if route.end_location_id == to_location_id:
            to_index = i

    if from_index == -1 or to_index == -1 or from_index > to_index:
        return None

    return from_index, to_index


async def get_route_segments_for_booking(
    db, trip_id: str, from_location_id: str, to_location_id: str, session=None
) -> Optional[Tuple[int, int, List[Route]]]:
    routes = await TripCRUD(db).get_routes(trip_id, session=session)
    if not routes:
        return None

    segment_range = get_route_segment_range(routes, from_location_id, to_location_id)
    if segment_range is None:
        return None

    from_index, to_index = segment_range
    return from_index, to_index, routes[from_index : to_index + 1]


def calculate_total_charges(routes: List[Route]) -> float:
    """Sum the per-seat charges of the segments ridden"""
    total = 0.0
    for route in routes:
        total += route.charges
    return total


def get_all_stops(routes: List[Route]) -> List[str]:
    """Ordered stop location ids of an itinerary"""
    if not routes:
        return []

    stops = [routes[0].start_location_id]
    for route in routes:
        stops.append(route.end_location_id)
    return stops


async def get_all_stops_for_trip(db, trip_id: str, session=None) -> List[str]:
    routes = await TripCRUD(db).get_routes(trip_id, session=session)
    return get_all_stops(routes)
