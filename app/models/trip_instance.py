from typing import List, Optional

from pydantic import BaseModel, Field

from app.models import generate_id
from app.models.status import TripInstanceStatus


class TripInstance(BaseModel):
    """A trip realized on one date, one hour slot and one shuttle"""

    id: str = Field(default_factory=generate_id)
    trip_id: str
    shuttle_id: Optional[str] = None
    scheduled_date: str  # YYYY-MM-DD (UTC)
    scheduled_start_time: str  # 1970-01-01THH:00:00.000Z
    scheduled_end_time: str
    status: TripInstanceStatus = Field(default=TripInstanceStatus.SCHEDULED)
    actual_start_time: Optional[str] = None
    actual_end_time: Optional[str] = None
    booking_ids: List[str] = Field(default_factory=list)

    # maintained by the live tracking collaborator
    driver_latitude: Optional[float] = None
    driver_longitude: Optional[float] = None
    eta: Optional[str] = None


class TripInstanceCRUD:
    def __init__(self, database):
        self.collection = database["trip_instances"]

    async def create_trip_instance(
        self, trip_instance: TripInstance, session=None
    ) -> TripInstance:
        """Create a new trip instance"""
        await self.collection.insert_one(trip_instance.model_dump(mode="json"), session=session)
        return trip_instance

    async def get_trip_instance(self, id: str, session=None) -> Optional[TripInstance]:
        """Get a trip instance by ID"""
        instance_dict = await self.collection.find_one({"id": id}, session=session)
        if instance_dict:
            return TripInstance(**instance_dict)
        return None

    async def get_for_slot(
        self, trip_id: str, scheduled_date: str, scheduled_start_time: str, session=None
    ) -> List[TripInstance]:
        """Get every instance of a trip starting in a slot, across shuttles"""
        cursor = self.collection.find(
            {
                "trip_id": trip_id,
                "scheduled_date": scheduled_date,
                "scheduled_start_time": scheduled_start_time,
            },
            session=session,
        )
        return [TripInstance(**instance_dict) async for instance_dict in cursor]

    async def find_matching(
        self,
        trip_id: str,
        scheduled_date: str,
        scheduled_start_time: str,
        scheduled_end_time: str,
        shuttle_id: Optional[str],
        session=None,
    ) -> Optional[TripInstance]:
        """Find the instance of a trip for an exact slot and shuttle"""
        instances = await self.get_for_slot(
            trip_id, scheduled_date, scheduled_start_time, session=session
        )
        for instance in instances:
            if (
                instance.scheduled_end_time == scheduled_end_time
                and instance.shuttle_id == shuttle_id
            ):
                return instance
        return None

    async def find_for_shuttle(
        self,
        shuttle_id: str,
        scheduled_date: str,
        scheduled_start_time: str,
        scheduled_end_time: str,
        session=None,
    ) -> Optional[TripInstance]:
        """Find the instance a shuttle runs in an exact window"""
        instance_dict = await self.collection.find_one(
            {
                "shuttle_id": shuttle_id,
                "scheduled_date": scheduled_date,
                "scheduled_start_time": scheduled_start_time,
                "scheduled_end_time": scheduled_end_time,
            },
            session=session,
        )
        if instance_dict:
            return TripInstance(**instance_dict)
        return None

    async def update_status(
        self,
        id: str,
        status: TripInstanceStatus,
        actual_start_time: Optional[str] = None,
        actual_end_time: Optional[str] = None,
        clear_actual_end_time: bool = False,
        session=None,
    ):
        """Update trip instance status and optional actual times"""
        update_data = {"status": status.value}

        if actual_start_time:
            update_data["actual_start_time"] = actual_start_time
        if actual_end_time:
            update_data["actual_end_time"] = actual_end_time
        if clear_actual_end_time:
            update_data["actual_end_time"] = None

        await self.collection.update_one({"id": id}, {"$set": update_data}, session=session)

    async def add_booking(self, id: str, booking_id: str, session=None):
        """Attach a booking to a trip instance once"""
        await self.collection.update_one(
            {"id": id}, {"$addToSet": {"booking_ids": booking_id}}, session=session
        )

    async def remove_booking(self, id: str, booking_id: str, session=None):
        """Detach a booking from a trip instance"""
        await self.collection.update_one(
            {"id": id}, {"$pull": {"booking_ids": booking_id}}, session=session
        )

    async def delete_trip_instance(self, id: str, session=None) -> bool:
        """Delete a trip instance"""
        result = await self.collection.delete_one({"id": id}, session=session)
        return result.deleted_count == 1
