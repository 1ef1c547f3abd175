from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from app.models.trip import Route, RouteCreate, Trip, TripCRUD, TripTime, TripTimeCreate
from app.models.user import User, UserCRUD
from app.services.database import get_database
from app.services.route_utils import get_all_stops_for_trip

router = APIRouter(prefix="/api", tags=["trips"])


async def get_trip_crud(db=Depends(get_database)) -> TripCRUD:
    return TripCRUD(db)


@router.post("/trips", response_model=Trip, status_code=status.HTTP_201_CREATED)
async def create_trip(trip: Trip, crud: TripCRUD = Depends(get_trip_crud)):
    """Create a new trip"""
    return await crud.create_trip(trip)


@router.get("/trips/{trip_id}", response_model=Trip)
async def get_trip(trip_id: str, crud: TripCRUD = Depends(get_trip_crud)):
    """Get a trip by ID"""
    trip = await crud.get_trip(trip_id)
    if not trip:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Trip not found",
        )

    return trip


@router.get("/trips/{trip_id}/routes", response_model=List[Route])
async def get_routes(trip_id: str, crud: TripCRUD = Depends(get_trip_crud)):
    return await crud.get_routes(trip_id)


@router.get("/trips/{trip_id}/stops", response_model=List[str])
async def get_stops(trip_id: str, db=Depends(get_database)):
    """Ordered stop location ids of a trip itinerary"""
    return await get_all_stops_for_trip(db, trip_id)


@router.post(
    "/trips/{trip_id}/times",
    response_model=TripTime,
    status_code=status.HTTP_201_CREATED,
)
async def add_trip_time(
    trip_id: str, trip_time: TripTimeCreate, crud: TripCRUD = Depends(get_trip_crud)
):
    """Add an operating window to a trip"""
    try:
        created = await crud.add_trip_time(trip_id, trip_time)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    if not created:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Trip not found",
        )

    return created


@router.post(
    "/trips/{trip_id}/routes",
    response_model=Route,
    status_code=status.HTTP_201_CREATED,
)
async def add_route(
    trip_id: str, route: RouteCreate, crud: TripCRUD = Depends(get_trip_crud)
):
    """Append a route segment to a trip itinerary"""
    try:
        created = await crud.add_route(trip_id, route)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    if not created:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Trip not found",
        )

    return created


@router.post("/users", response_model=User, status_code=status.HTTP_201_CREATED)
async def create_user(user: User, db=Depends(get_database)):
    """Create a new user"""
    return await UserCRUD(db).create_user(user)
