from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from app.internal.errors import to_http_exception
from app.models.inout import (
    DriverAction,
    RevertResult,
    SeatSummary,
    SegmentAdvanceResult,
    UpcomingStop,
)
from app.models.route_instance import RouteInstance
from app.models.trip_instance import TripInstance, TripInstanceCRUD
from app.services.database import get_database, run_in_transaction
from app.services.seat_ledger import (
    get_effective_next_route_index,
    get_incomplete_route_instances,
    get_route_instances_for_trip_instance,
    get_skippable_routes,
    get_trip_instance_seat_summary,
    revert_last_route_completion,
    start_next_route_segment,
)
from app.services.trip_instances import delete_trip_instance, start_trip_instance

router = APIRouter(prefix="/api/trip-instances", tags=["trip-instances"])


@router.get("/{trip_instance_id}", response_model=TripInstance)
async def get_trip_instance(trip_instance_id: str, db=Depends(get_database)):
    """Get a trip instance by ID"""
    trip_instance = await TripInstanceCRUD(db).get_trip_instance(trip_instance_id)
    if not trip_instance:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Trip instance not found",
        )

    return trip_instance


@router.get("/{trip_instance_id}/route-instances", response_model=List[RouteInstance])
async def get_route_instances(trip_instance_id: str, db=Depends(get_database)):
    """Segments of a trip instance in itinerary order"""
    return await get_route_instances_for_trip_instance(db, trip_instance_id)


@router.get(
    "/{trip_instance_id}/incomplete-route-instances", response_model=List[UpcomingStop]
)
async def get_incomplete(trip_instance_id: str, db=Depends(get_database)):
    """Segments still to drive, with the stop each one ends at"""
    return await get_incomplete_route_instances(db, trip_instance_id)


@router.get("/{trip_instance_id}/skippable-routes", response_model=List[int])
async def get_skippable(trip_instance_id: str, db=Depends(get_database)):
    return await get_skippable_routes(db, trip_instance_id)


@router.get("/{trip_instance_id}/next-route-index", response_model=int)
async def get_next_route_index(
    trip_instance_id: str, current_index: int, db=Depends(get_database)
):
    """Next segment after current_index that has someone aboard"""
    return await get_effective_next_route_index(db, trip_instance_id, current_index)


@router.get("/{trip_instance_id}/seat-summary", response_model=SeatSummary)
async def get_seat_summary(trip_instance_id: str, db=Depends(get_database)):
    summary = await get_trip_instance_seat_summary(db, trip_instance_id)
    if not summary:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Trip instance not found",
        )

    return summary


@router.post("/{trip_instance_id}/start", response_model=TripInstance)
async def start_trip(
    trip_instance_id: str, request: DriverAction, db=Depends(get_database)
):
    """Driver departs with the trip instance"""

    async def callback(session):
        return await start_trip_instance(
            db, request.driver_id, trip_instance_id, session=session
        )

    try:
        return await run_in_transaction(callback)
    except ValueError as e:
        raise to_http_exception(e)


@router.post("/{trip_instance_id}/next-segment", response_model=SegmentAdvanceResult)
async def next_segment(
    trip_instance_id: str, request: DriverAction, db=Depends(get_database)
):
    """Complete the current segment and move to the next one"""

    async def callback(session):
        return await start_next_route_segment(
            db, request.driver_id, trip_instance_id, session=session
        )

    try:
        return await run_in_transaction(callback)
    except ValueError as e:
        raise to_http_exception(e)


@router.post("/{trip_instance_id}/revert-last", response_model=RevertResult)
async def revert_last(
    trip_instance_id: str, request: DriverAction, db=Depends(get_database)
):
    """Undo the most recent segment completion"""

    async def callback(session):
        return await revert_last_route_completion(
            db, request.driver_id, trip_instance_id, session=session
        )

    try:
        return await run_in_transaction(callback)
    except ValueError as e:
        raise to_http_exception(e)


@router.delete("/{trip_instance_id}")
async def remove_trip_instance(trip_instance_id: str, db=Depends(get_database)):
    """Delete a trip instance and its segments"""

    async def callback(session):
        return await delete_trip_instance(db, trip_instance_id, session=session)

    deleted = await run_in_transaction(callback)
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Trip instance not found",
        )

    return {"message": "Trip instance deleted successfully"}
