from typing import List, Optional

from pydantic import BaseModel, Field

from app.models import generate_id


class RouteInstance(BaseModel):
    """Seat ledger of one route segment of one trip instance"""

    id: str = Field(default_factory=generate_id)
    trip_instance_id: str
    route_id: str
    order_index: int = Field(..., ge=0)
    seats_occupied: int = Field(default=0, ge=0)
    seat_held: int = Field(default=0, ge=0)
    completed: bool = Field(default=False)
    eta: Optional[str] = None

    def used_seats(self) -> int:
        return self.seats_occupied + self.seat_held


class RouteInstanceCRUD:
    def __init__(self, database):
        self.collection = database["route_instances"]

    async def create_route_instances(
        self, route_instances: List[RouteInstance], session=None
    ) -> List[RouteInstance]:
        """Insert the route instances of a trip instance"""
        if route_instances:
            await self.collection.insert_many(
                [ri.model_dump(mode="json") for ri in route_instances], session=session
            )
        return route_instances

    async def get_route_instance(self, id: str, session=None) -> Optional[RouteInstance]:
        """Get a route instance by ID"""
        ri_dict = await self.collection.find_one({"id": id}, session=session)
        if ri_dict:
            return RouteInstance(**ri_dict)
        return None

    async def get_for_trip_instance(
        self, trip_instance_id: str, session=None
    ) -> List[RouteInstance]:
        """Get the route instances of a trip instance sorted by order index"""
        cursor = self.collection.find(
            {"trip_instance_id": trip_instance_id}, session=session
        )
        route_instances = [RouteInstance(**ri_dict) async for ri_dict in cursor]
        return sorted(route_instances, key=lambda ri: ri.order_index)

    async def set_seats(
        self, id: str, seat_held: int, seats_occupied: int, session=None
    ):
        await self.collection.update_one(
            {"id": id},
            {"$set": {"seat_held": seat_held, "seats_occupied": seats_occupied}},
            session=session,
        )

    async def set_completed(
        self, id: str, completed: bool, seats_occupied: int, session=None
    ):
        await self.collection.update_one(
            {"id": id},
            {"$set": {"completed": completed, "seats_occupied": seats_occupied}},
            session=session,
        )

    async def set_eta(self, id: str, eta: str, session=None) -> bool:
        result = await self.collection.update_one(
            {"id": id}, {"$set": {"eta": eta}}, session=session
        )
        return result.matched_count == 1

    async def delete_for_trip_instance(self, trip_instance_id: str, session=None) -> int:
        """Delete every route instance of a trip instance"""
        result = await self.collection.delete_many(
            {"trip_instance_id": trip_instance_id}, session=session
        )
        return result.deleted_count
