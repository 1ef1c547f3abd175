from typing import List, Optional

from pydantic import BaseModel, Field

from app.models import generate_id


class Shuttle(BaseModel):
    id: str = Field(default_factory=generate_id)
    hotel_id: str
    vehicle_number: str = Field(..., min_length=1, max_length=20)
    total_seats: int = Field(..., ge=1, le=100)
    is_active: bool = Field(default=True)
    currently_assigned_to: Optional[str] = None

    model_config = {
        "json_schema_extra": {
            "example": {
                "id": "Vh3kQ9sLm2",
                "hotel_id": "Ht7aP0xYc1",
                "vehicle_number": "SHT-01",
                "total_seats": 12,
                "is_active": True,
                "currently_assigned_to": None,
            }
        }
    }


class ShuttleCRUD:
    def __init__(self, database):
        self.collection = database["shuttles"]

    async def create_shuttle(self, shuttle: Shuttle, session=None) -> Shuttle:
        """Create a new shuttle"""
        await self.collection.insert_one(shuttle.model_dump(mode="json"), session=session)
        return shuttle

    async def get_shuttle(self, id: str, session=None) -> Optional[Shuttle]:
        """Get a shuttle by ID"""
        shuttle_dict = await self.collection.find_one({"id": id}, session=session)
        if shuttle_dict:
            return Shuttle(**shuttle_dict)
        return None

    async def get_active_shuttles(self, hotel_id: str, session=None) -> List[Shuttle]:
        """Get active shuttles of a hotel, in insertion order"""
        cursor = self.collection.find(
            {"hotel_id": hotel_id, "is_active": True}, session=session
        )
        shuttles = []
        async for shuttle_dict in cursor:
            shuttles.append(Shuttle(**shuttle_dict))
        return shuttles

    async def get_hotel_shuttles(self, hotel_id: str, session=None) -> List[Shuttle]:
        """Get every shuttle of a hotel"""
        cursor = self.collection.find({"hotel_id": hotel_id}, session=session)
        return [Shuttle(**shuttle_dict) async for shuttle_dict in cursor]

    async def assign_driver(
        self, shuttle_id: str, driver_id: Optional[str], session=None
    ) -> Optional[Shuttle]:
        """Assign a driver to a shuttle, unassigning them from any other"""
        shuttle = await self.get_shuttle(shuttle_id, session=session)
        if not shuttle:
            return None

        if driver_id:
            await self.collection.update_many(
                {
                    "hotel_id": shuttle.hotel_id,
                    "currently_assigned_to": driver_id,
                    "id": {"$ne": shuttle_id},
                },
                {"$set": {"currently_assigned_to": None}},
                session=session,
            )

        await self.collection.update_one(
            {"id": shuttle_id},
            {"$set": {"currently_assigned_to": driver_id}},
            session=session,
        )
        return await self.get_shuttle(shuttle_id, session=session)
