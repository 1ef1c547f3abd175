from typing import Optional

from pymongo.errors import DuplicateKeyError

from app.internal.errors import InvalidStateError, NotFoundError
from app.internal.log import debug
from app.internal.timeaddr import utc_now_iso
from app.models.status import TripInstanceStatus, UserRole
from app.models.trip_instance import TripInstance, TripInstanceCRUD
from app.models.user import UserCRUD, require_role
from app.services.seat_ledger import (
    authorize_driver,
    create_route_instances_for_trip_instance,
    delete_route_instances_for_trip_instance,
)


async def get_or_create_trip_instance(
    db,
    trip_id: str,
    scheduled_date: str,
    scheduled_start_time: str,
    scheduled_end_time: str,
    shuttle_id: Optional[str],
    session=None,
) -> TripInstance:
    """
    Get the instance of a trip for a slot and shuttle, opening it if needed

    A new instance is created together with its route instances.
    """
    crud = TripInstanceCRUD(db)

    existing = await crud.find_matching(
        trip_id,
        scheduled_date,
        scheduled_start_time,
        scheduled_end_time,
        shuttle_id,
        session=session,
    )
    if existing:
        return existing

    trip_instance = TripInstance(
        trip_id=trip_id,
        shuttle_id=shuttle_id,
        scheduled_date=scheduled_date,
        scheduled_start_time=scheduled_start_time,
        scheduled_end_time=scheduled_end_time,
    )

    try:
        await crud.create_trip_instance(trip_instance, session=session)
    except DuplicateKeyError:
        # lost the race against a concurrent first booker; an aborted
        # transaction cannot read, run_in_transaction reruns it instead
        if session is not None:
            raise
        winner = await crud.find_matching(
            trip_id,
            scheduled_date,
            scheduled_start_time,
            scheduled_end_time,
            shuttle_id,
            session=session,
        )
        if winner is None:
            raise
        return winner

    await create_route_instances_for_trip_instance(
        db, trip_instance.id, trip_id, session=session
    )

    debug(
        f"Opened trip instance {trip_instance.id} {scheduled_date} {scheduled_start_time} on {shuttle_id}"
    )
    return trip_instance


async def start_trip_instance(
    db, driver_id: str, trip_instance_id: str, session=None
) -> TripInstance:
    """Driver departs: SCHEDULED to IN_PROGRESS"""
    driver = await UserCRUD(db).get_user(driver_id, session=session)
    require_role(driver, UserRole.DRIVER, "Only drivers can start trips")

    crud = TripInstanceCRUD(db)
    trip_instance = await crud.get_trip_instance(trip_instance_id, session=session)
    if not trip_instance:
        raise NotFoundError("Trip instance not found")

    await authorize_driver(db, driver_id, trip_instance, session=session)

    if trip_instance.status != TripInstanceStatus.SCHEDULED:
        raise InvalidStateError("Only SCHEDULED trips can be started")

    await crud.update_status(
        trip_instance_id,
        TripInstanceStatus.IN_PROGRESS,
        actual_start_time=utc_now_iso(),
        session=session,
    )
    return await crud.get_trip_instance(trip_instance_id, session=session)


async def delete_trip_instance(db, trip_instance_id: str, session=None) -> bool:
    """Delete a trip instance together with its route instances"""
    crud = TripInstanceCRUD(db)
    trip_instance = await crud.get_trip_instance(trip_instance_id, session=session)
    if not trip_instance:
        return False

    await delete_route_instances_for_trip_instance(
        db, trip_instance_id, session=session
    )
    return await crud.delete_trip_instance(trip_instance_id, session=session)
