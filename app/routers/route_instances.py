from fastapi import APIRouter, Depends, HTTPException, status

from app.internal.errors import to_http_exception
from app.models.inout import (
    CompletionResult,
    DriverAction,
    EtaBatchRequest,
    EtaRequest,
    UncompletionResult,
)
from app.services.database import get_database, run_in_transaction
from app.services.seat_ledger import (
    complete_route_instance,
    uncomplete_route_instance,
    update_multiple_route_instance_etas,
    update_route_instance_eta,
)

router = APIRouter(prefix="/api/route-instances", tags=["route-instances"])


@router.post("/{route_instance_id}/complete", response_model=CompletionResult)
async def complete(
    route_instance_id: str, request: DriverAction, db=Depends(get_database)
):
    """Driver finished a segment: passengers leaving at its end free their seats"""

    async def callback(session):
        return await complete_route_instance(
            db, request.driver_id, route_instance_id, session=session
        )

    try:
        return await run_in_transaction(callback)
    except ValueError as e:
        raise to_http_exception(e)


@router.post("/{route_instance_id}/uncomplete", response_model=UncompletionResult)
async def uncomplete(
    route_instance_id: str, request: DriverAction, db=Depends(get_database)
):
    """Undo a segment completion"""

    async def callback(session):
        return await uncomplete_route_instance(
            db, request.driver_id, route_instance_id, session=session
        )

    try:
        return await run_in_transaction(callback)
    except ValueError as e:
        raise to_http_exception(e)


@router.put("/etas")
async def update_etas(request: EtaBatchRequest, db=Depends(get_database)):
    """Write a batch of ETAs, unknown segments are skipped"""
    await update_multiple_route_instance_etas(db, request.updates)
    return {"message": "ETAs updated successfully"}


@router.put("/{route_instance_id}/eta")
async def update_eta(
    route_instance_id: str, request: EtaRequest, db=Depends(get_database)
):
    try:
        await update_route_instance_eta(db, route_instance_id, request.eta)
    except LookupError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Route instance not found",
        )

    return {"message": "ETA updated successfully"}
