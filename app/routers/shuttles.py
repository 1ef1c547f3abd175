from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status

from app.internal.errors import to_http_exception
from app.models.inout import AssignDriverRequest, AvailableShuttleResponse, SlotCapacity
from app.models.shuttle import Shuttle, ShuttleCRUD
from app.services.database import get_database, run_in_transaction
from app.services.shuttle_ranker import get_available_shuttle, get_slot_capacity

router = APIRouter(prefix="/api/shuttles", tags=["shuttles"])


@router.get("/available", response_model=AvailableShuttleResponse)
async def available_shuttle(
    hotel_id: str,
    scheduled_date: str,
    scheduled_start_time: str,
    scheduled_end_time: str,
    required_seats: int = 1,
    from_route_index: Optional[int] = None,
    to_route_index: Optional[int] = None,
    db=Depends(get_database),
):
    """Tightest-fit active shuttle that can take the seats in a window"""
    shuttle_id = await get_available_shuttle(
        db,
        hotel_id,
        scheduled_date,
        scheduled_start_time,
        scheduled_end_time,
        required_seats,
        from_route_index=from_route_index,
        to_route_index=to_route_index,
    )
    return AvailableShuttleResponse(shuttle_id=shuttle_id)


@router.get("/capacity", response_model=SlotCapacity)
async def slot_capacity(
    hotel_id: str,
    scheduled_date: str,
    scheduled_start_time: str,
    scheduled_end_time: str,
    db=Depends(get_database),
):
    """Seats left on each shuttle of a hotel in one window"""
    return await get_slot_capacity(
        db, hotel_id, scheduled_date, scheduled_start_time, scheduled_end_time
    )


@router.get("/{shuttle_id}", response_model=Shuttle)
async def get_shuttle(shuttle_id: str, db=Depends(get_database)):
    """Get a shuttle by ID"""
    shuttle = await ShuttleCRUD(db).get_shuttle(shuttle_id)
    if not shuttle:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Shuttle not found",
        )

    return shuttle


@router.post("/", response_model=Shuttle, status_code=status.HTTP_201_CREATED)
async def create_shuttle(shuttle: Shuttle, db=Depends(get_database)):
    """Register a shuttle with a hotel"""
    return await ShuttleCRUD(db).create_shuttle(shuttle)


@router.post("/{shuttle_id}/assign", response_model=Shuttle)
async def assign_driver(
    shuttle_id: str, request: AssignDriverRequest, db=Depends(get_database)
):
    """Put a driver on a shuttle, taking them off any other shuttle of the hotel"""

    async def callback(session):
        return await ShuttleCRUD(db).assign_driver(
            shuttle_id, request.driver_id, session=session
        )

    try:
        shuttle = await run_in_transaction(callback)
    except ValueError as e:
        raise to_http_exception(e)

    if not shuttle:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Shuttle not found",
        )

    return shuttle
