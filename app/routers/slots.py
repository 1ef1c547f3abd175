from fastapi import APIRouter, Depends, status

from app.internal.errors import to_http_exception
from app.models.inout import SlotSearchRequest, SlotSearchResult
from app.services.database import get_database
from app.services.slot_finder import find_best_available_slot

router = APIRouter(prefix="/api/slots", tags=["slots"])


@router.post("/search", response_model=SlotSearchResult, status_code=status.HTTP_200_OK)
async def search_slot(request: SlotSearchRequest, db=Depends(get_database)):
    """Find the earliest slot with room for the requested seats"""
    try:
        return await find_best_available_slot(
            db,
            request.trip_id,
            request.hotel_id,
            request.scheduled_date,
            request.desired_time,
            request.required_seats,
            from_route_index=request.from_route_index,
            to_route_index=request.to_route_index,
        )
    except ValueError as e:
        raise to_http_exception(e)
