from types import SimpleNamespace
from typing import Optional, Sequence, Tuple

import pytest
from mongomock_motor import AsyncMongoMockClient

from app.internal.timeaddr import hour_to_iso_time
from app.models.shuttle import Shuttle, ShuttleCRUD
from app.models.status import TripInstanceStatus, UserRole
from app.models.trip import RouteCreate, Trip, TripCRUD, TripTimeCreate
from app.models.trip_instance import TripInstanceCRUD
from app.models.user import User, UserCRUD
from app.services.seat_ledger import update_multiple_route_instance_seats
from app.services.trip_instances import get_or_create_trip_instance

# far enough ahead to never be a past date
DATE = "2099-06-01"
HOTEL_ID = "hotel-1"


class Seeder:
    """Builds hotels, trips, shuttles and users straight through the CRUD layer"""

    def __init__(self, db):
        self.db = db

    async def user(self, role: UserRole, hotel_id: Optional[str] = HOTEL_ID, name: str = "") -> User:
        return await UserCRUD(self.db).create_user(
            User(name=name or role.value.lower(), role=role, hotel_id=hotel_id)
        )

    async def shuttle(
        self,
        total_seats: int,
        hotel_id: str = HOTEL_ID,
        is_active: bool = True,
        driver_id: Optional[str] = None,
    ) -> Shuttle:
        crud = ShuttleCRUD(self.db)
        shuttle = await crud.create_shuttle(
            Shuttle(
                hotel_id=hotel_id,
                vehicle_number=f"V-{total_seats}",
                total_seats=total_seats,
                is_active=is_active,
            )
        )
        if driver_id:
            shuttle = await crud.assign_driver(shuttle.id, driver_id)
        return shuttle

    async def trip(
        self,
        windows: Sequence[Tuple[int, int]] = ((9, 14), (15, 17)),
        stops: Sequence[str] = ("A", "B", "C"),
        charges: Sequence[float] = (10.0, 15.0),
        hotel_id: str = HOTEL_ID,
    ) -> Trip:
        crud = TripCRUD(self.db)
        trip = await crud.create_trip(Trip(name="Airport loop", hotel_id=hotel_id))

        for start, end in windows:
            await crud.add_trip_time(
                trip.id, TripTimeCreate(start_time=str(start), end_time=str(end))
            )
        for i in range(len(stops) - 1):
            await crud.add_route(
                trip.id,
                RouteCreate(
                    start_location_id=stops[i],
                    end_location_id=stops[i + 1],
                    charges=charges[i] if i < len(charges) else 0.0,
                ),
            )
        return await crud.get_trip(trip.id)

    async def instance(
        self,
        trip_id: str,
        hour: int,
        shuttle_id: str,
        occupied: int = 0,
        held: int = 0,
        from_index: int = 0,
        to_index: int = 10,
        status: TripInstanceStatus = TripInstanceStatus.SCHEDULED,
        date: str = DATE,
    ):
        trip_instance = await get_or_create_trip_instance(
            self.db,
            trip_id,
            date,
            hour_to_iso_time(hour),
            hour_to_iso_time(hour + 1),
            shuttle_id,
        )
        if occupied or held:
            await update_multiple_route_instance_seats(
                self.db, trip_instance.id, from_index, to_index, held, occupied
            )
        if status != TripInstanceStatus.SCHEDULED:
            await TripInstanceCRUD(self.db).update_status(trip_instance.id, status)
        return await TripInstanceCRUD(self.db).get_trip_instance(trip_instance.id)


@pytest.fixture
def db():
    return AsyncMongoMockClient()["shuttle_test"]


@pytest.fixture
def seed(db) -> Seeder:
    return Seeder(db)


@pytest.fixture
async def world(seed) -> SimpleNamespace:
    """
    One hotel with a guest, a front desk clerk and a driver, a two-segment
    trip A -> B -> C running 9-14 and 15-17, and one 4-seat shuttle driven
    by the driver
    """
    guest = await seed.user(UserRole.GUEST)
    frontdesk = await seed.user(UserRole.FRONTDESK)
    driver = await seed.user(UserRole.DRIVER)
    trip = await seed.trip()
    shuttle = await seed.shuttle(4, driver_id=driver.id)
    return SimpleNamespace(
        guest=guest, frontdesk=frontdesk, driver=driver, trip=trip, shuttle=shuttle
    )
